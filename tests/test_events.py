"""Tests for best-effort event delivery."""

import logging

import pytest

from salonbook.domain.result import Ok
from salonbook.logging_context import set_request_id
from salonbook.usecases.events import (
    DomainEvent,
    EventDispatcher,
    EventType,
    LoggingEventPublisher,
)
from salonbook.usecases.reservations import ReservationService

from tests.conftest import START_OF_TEST, make_create_input


class ExplodingPublisher:
    async def publish(self, event: DomainEvent) -> None:
        raise RuntimeError("broker unavailable")


def _event() -> DomainEvent:
    return DomainEvent(
        type=EventType.RESERVATION_CREATED,
        aggregate_id="r-1",
        actor="tester",
        occurred_at=START_OF_TEST,
    )


class TestDispatcher:
    @pytest.mark.asyncio
    async def test_no_publisher_is_a_no_op(self):
        dispatcher = EventDispatcher()
        assert await dispatcher.dispatch(_event()) is False
        assert dispatcher.failed_deliveries == 0

    @pytest.mark.asyncio
    async def test_delivery_counted(self, publisher):
        dispatcher = EventDispatcher(publisher)
        assert await dispatcher.dispatch(_event()) is True
        assert dispatcher.delivered == 1
        assert publisher.events[0].aggregate_id == "r-1"

    @pytest.mark.asyncio
    async def test_failure_is_logged_and_counted(self, caplog):
        dispatcher = EventDispatcher(ExplodingPublisher())
        with caplog.at_level(logging.WARNING, logger="salonbook.usecases.events"):
            assert await dispatcher.dispatch(_event()) is False
        assert dispatcher.failed_deliveries == 1
        assert "Event delivery failed" in caplog.text

    @pytest.mark.asyncio
    async def test_logging_publisher(self, caplog):
        with caplog.at_level(logging.INFO, logger="salonbook.audit"):
            await LoggingEventPublisher().publish(_event())
        assert "reservation_created" in caplog.text

    def test_event_values_match_member_names(self):
        for member in EventType:
            assert member.value == member.name.lower()

    def test_event_carries_request_id(self):
        set_request_id("REQ-42")
        try:
            assert _event().request_id == "REQ-42"
        finally:
            set_request_id("NO_REQUEST_ID")


class TestOperationsSurvivePublisherFailure:
    @pytest.mark.asyncio
    async def test_create_succeeds(
        self, reservation_repo, service_repo, schedule_repo, config, clock
    ):
        dispatcher = EventDispatcher(ExplodingPublisher())
        service = ReservationService(
            reservation_repo, service_repo, schedule_repo,
            events=dispatcher, config=config, clock=clock,
        )
        result = await service.create_reservation(make_create_input())
        assert isinstance(result, Ok)
        assert len(reservation_repo.all()) == 1
        assert dispatcher.failed_deliveries == 1
