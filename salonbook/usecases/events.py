"""
Outbound audit events for reservation and booking mutations.

Delivery is best-effort: the dispatcher never lets a publisher failure fail
the operation that produced the event. Failures are logged and counted.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Protocol

from pydantic import BaseModel, Field

from salonbook.logging_context import get_request_id

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    RESERVATION_CREATED = "reservation_created"
    RESERVATION_UPDATED = "reservation_updated"
    RESERVATION_CONFIRMED = "reservation_confirmed"
    RESERVATION_CANCELLED = "reservation_cancelled"
    RESERVATION_COMPLETED = "reservation_completed"
    RESERVATION_NO_SHOW = "reservation_no_show"
    PAYMENT_RECEIVED = "payment_received"
    BOOKING_CREATED = "booking_created"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_COMPLETED = "booking_completed"
    BOOKING_NO_SHOW = "booking_no_show"
    BOOKING_PAYMENT_UPDATED = "booking_payment_updated"
    REFUND_ISSUED = "refund_issued"


class DomainEvent(BaseModel):
    type: EventType
    aggregate_id: str
    actor: str
    occurred_at: datetime
    payload: dict[str, Any] = Field(default_factory=dict)
    request_id: str = Field(default_factory=get_request_id)


class EventPublisher(Protocol):
    async def publish(self, event: DomainEvent) -> None: ...


class LoggingEventPublisher:
    """Writes each event to the audit logger."""

    def __init__(self, logger_name: str = "salonbook.audit") -> None:
        self._logger = logging.getLogger(logger_name)

    async def publish(self, event: DomainEvent) -> None:
        self._logger.info(
            "%s %s by %s [%s] %s",
            event.type.value, event.aggregate_id, event.actor, event.request_id,
            event.payload,
        )


class InMemoryEventPublisher:
    """Collects events in a list. Used by tests and the console demo."""

    def __init__(self) -> None:
        self.events: list[DomainEvent] = []

    async def publish(self, event: DomainEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> list[DomainEvent]:
        return [e for e in self.events if e.type == event_type]


class EventDispatcher:
    """Best-effort side channel wrapped around an optional publisher."""

    def __init__(self, publisher: Optional[EventPublisher] = None) -> None:
        self._publisher = publisher
        self.delivered = 0
        self.failed_deliveries = 0

    async def dispatch(self, event: DomainEvent) -> bool:
        """Deliver one event. Returns False when there is no publisher or it failed."""
        if self._publisher is None:
            return False
        try:
            await self._publisher.publish(event)
        except Exception:
            self.failed_deliveries += 1
            logger.warning(
                "Event delivery failed: %s for %s (failures so far: %d)",
                event.type.value, event.aggregate_id, self.failed_deliveries,
                exc_info=True,
            )
            return False
        self.delivered += 1
        return True
