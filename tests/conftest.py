"""Shared test fixtures and helpers."""

from datetime import datetime, time, timedelta, timezone
from typing import Optional

import pytest

from salonbook.config import AppConfig, AvailabilityConfig, PolicyConfig
from salonbook.repositories.base import ServiceInfo
from salonbook.repositories.memory import (
    InMemoryBookingRepository,
    InMemoryReservationRepository,
    InMemoryServiceRepository,
    InMemoryStaffScheduleRepository,
)
from salonbook.schemas.requests import CreateReservationInput
from salonbook.schemas.reservation_schema import (
    ConfirmedStatus,
    PendingStatus,
    Reservation,
)
from salonbook.schemas.slot_schema import WorkingHours
from salonbook.usecases.bookings import BookingService
from salonbook.usecases.events import EventDispatcher, InMemoryEventPublisher
from salonbook.usecases.reservations import ReservationService

SALON_ID = "5a1f0c2e-8f43-4b7e-9d2a-6c1b3e4f5a60"
CUSTOMER_ID = "c0ffee00-1234-4abc-8def-0123456789ab"
OTHER_CUSTOMER_ID = "c0ffee00-1234-4abc-8def-0123456789ac"
STAFF_ID = "57aff000-aaaa-4bbb-8ccc-000000000001"
OTHER_STAFF_ID = "57aff000-aaaa-4bbb-8ccc-000000000002"
SERVICE_ID = "5e701ce0-0000-4000-8000-000000000001"
COLOR_SERVICE_ID = "5e701ce0-0000-4000-8000-000000000002"
MISSING_ID = "00000000-0000-4000-8000-00000000dead"

START_OF_TEST = datetime(2024, 5, 30, 10, 0, tzinfo=timezone.utc)


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock injected into the services."""

    def __init__(self, now: datetime = START_OF_TEST) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return AppConfig(
        policy=PolicyConfig(
            cancellation_lead_hours=1.0,
            modification_lead_hours=12.0,
            max_advance_months=3,
            max_amount=10_000_000,
            overtime_rate_per_minute=0,
            allow_no_show_from_pending=False,
        ),
        availability=AvailabilityConfig(
            workday_start="09:00",
            workday_end="18:00",
            allow_past_date_queries=True,
            default_slot_minutes=60,
        ),
    )


@pytest.fixture
def reservation_repo():
    return InMemoryReservationRepository()


@pytest.fixture
def booking_repo():
    return InMemoryBookingRepository()


@pytest.fixture
def service_repo():
    return InMemoryServiceRepository([
        ServiceInfo(id=SERVICE_ID, name="Haircut", duration_minutes=60, price=5000),
        ServiceInfo(
            id=COLOR_SERVICE_ID, name="Colour", duration_minutes=90, price=12000,
            overtime_rate_per_minute=100,
        ),
    ])


@pytest.fixture
def schedule_repo():
    return InMemoryStaffScheduleRepository(WorkingHours(start=time(9, 0), end=time(18, 0)))


@pytest.fixture
def publisher():
    return InMemoryEventPublisher()


@pytest.fixture
def dispatcher(publisher):
    return EventDispatcher(publisher)


@pytest.fixture
def reservation_service(reservation_repo, service_repo, schedule_repo, dispatcher, config, clock):
    return ReservationService(
        reservation_repo, service_repo, schedule_repo,
        events=dispatcher, config=config, clock=clock,
    )


@pytest.fixture
def booking_service(booking_repo, reservation_repo, service_repo, dispatcher, config, clock):
    return BookingService(
        booking_repo, reservation_repo, service_repo,
        events=dispatcher, config=config, clock=clock,
    )


def make_create_input(
    start: datetime = utc(2024, 6, 1, 10),
    end: Optional[datetime] = utc(2024, 6, 1, 11),
    staff_id: str = STAFF_ID,
    customer_id: str = CUSTOMER_ID,
    total_amount: Optional[int] = 5000,
    **kwargs,
) -> CreateReservationInput:
    """Helper to build a CreateReservationInput with sensible defaults."""
    return CreateReservationInput(
        salon_id=kwargs.pop("salon_id", SALON_ID),
        customer_id=customer_id,
        staff_id=staff_id,
        service_id=kwargs.pop("service_id", SERVICE_ID),
        start_time=start,
        end_time=end,
        total_amount=total_amount,
        **kwargs,
    )


def make_reservation(
    start: datetime = utc(2024, 6, 1, 10),
    end: datetime = utc(2024, 6, 1, 11),
    staff_id: str = STAFF_ID,
    confirmed: bool = False,
    reservation_id: str = "7e5e0000-0000-4000-8000-000000000001",
    **kwargs,
) -> Reservation:
    """Helper to build a Reservation directly, bypassing the use-cases."""
    status = (
        ConfirmedStatus(confirmed_at=START_OF_TEST, confirmed_by="staff")
        if confirmed else PendingStatus()
    )
    return Reservation(
        id=reservation_id,
        salon_id=kwargs.pop("salon_id", SALON_ID),
        customer_id=kwargs.pop("customer_id", CUSTOMER_ID),
        staff_id=staff_id,
        service_id=kwargs.pop("service_id", SERVICE_ID),
        start_time=start,
        end_time=end,
        total_amount=kwargs.pop("total_amount", 5000),
        status=status,
        created_at=START_OF_TEST,
        created_by="test",
        updated_at=START_OF_TEST,
        updated_by="test",
        **kwargs,
    )
