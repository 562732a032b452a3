from salonbook.usecases.bookings import BookingService
from salonbook.usecases.events import (
    DomainEvent,
    EventDispatcher,
    EventType,
    InMemoryEventPublisher,
    LoggingEventPublisher,
)
from salonbook.usecases.locks import KeyedLocks
from salonbook.usecases.reservations import ReservationService

__all__ = [
    "ReservationService",
    "BookingService",
    "DomainEvent",
    "EventDispatcher",
    "EventType",
    "InMemoryEventPublisher",
    "LoggingEventPublisher",
    "KeyedLocks",
]
