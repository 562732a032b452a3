"""
Offline console demo: drives the reservation engine against in-memory stores.

Walks through the reservation lifecycle, slot discovery, a booking with a
refund, and a burst of concurrent requests for the same slot. No database,
no network. The clock is pinned so the output is the same on every run.

Usage:
    python console_demo.py
    python console_demo.py --scenario lifecycle
    python console_demo.py --scenario race --requests 20
"""

import argparse
import asyncio
from datetime import date, datetime, time, timedelta, timezone

from salonbook.config import settings
from salonbook.domain.result import Err, Ok, Result
from salonbook.logging_context import set_request_id
from salonbook.mappers import error_response
from salonbook.repositories.base import ServiceInfo
from salonbook.repositories.memory import (
    InMemoryBookingRepository,
    InMemoryReservationRepository,
    InMemoryServiceRepository,
    InMemoryStaffScheduleRepository,
)
from salonbook.schemas.booking_schema import PaymentStatus
from salonbook.schemas.requests import (
    BookingActionInput,
    CancelBookingInput,
    CancelReservationInput,
    ConfirmReservationInput,
    CreateBookingInput,
    CreateReservationInput,
    FindAvailableSlotsInput,
    RecordBookingPaymentInput,
    RecordPaymentInput,
)
from salonbook.schemas.slot_schema import WorkingHours
from salonbook.usecases.bookings import BookingService
from salonbook.usecases.events import EventDispatcher, InMemoryEventPublisher
from salonbook.usecases.reservations import ReservationService
from salonbook.utils import new_id

GREEN = "\033[92m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_NOW = datetime(2024, 5, 30, 10, 0, tzinfo=timezone.utc)
DEMO_DAY = date(2024, 6, 1)


class DemoClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class DemoSalon:
    """One salon, one service, two stylists, and fresh in-memory stores."""

    def __init__(self, enforce_exclusion: bool = True) -> None:
        self.salon_id = new_id()
        self.customer_id = new_id()
        self.staff_id = new_id()
        self.service_id = new_id()
        self.clock = DemoClock(DEMO_NOW)
        self.publisher = InMemoryEventPublisher()
        dispatcher = EventDispatcher(self.publisher)

        self.reservations = InMemoryReservationRepository(enforce_exclusion=enforce_exclusion)
        services = InMemoryServiceRepository([
            ServiceInfo(id=self.service_id, name="Cut & finish", duration_minutes=60, price=5000),
        ])
        schedules = InMemoryStaffScheduleRepository(WorkingHours(start=time(9), end=time(18)))

        self.reservation_service = ReservationService(
            self.reservations, services, schedules,
            events=dispatcher, config=settings, clock=self.clock,
        )
        self.booking_service = BookingService(
            InMemoryBookingRepository(), self.reservations, services,
            events=dispatcher, config=settings, clock=self.clock,
        )

    def create_input(self, start: datetime, end: datetime, amount: int = 5000) -> CreateReservationInput:
        return CreateReservationInput(
            salon_id=self.salon_id,
            customer_id=self.customer_id,
            staff_id=self.staff_id,
            service_id=self.service_id,
            start_time=start,
            end_time=end,
            total_amount=amount,
            created_by="front-desk",
        )


def heading(title: str) -> None:
    print(f"\n{BOLD}{'=' * 60}{RESET}")
    print(f"{BOLD}  {title}{RESET}")
    print(f"{BOLD}{'=' * 60}{RESET}")


def show(label: str, result: Result) -> None:
    if isinstance(result, Ok):
        print(f"{GREEN}  ok   {RESET}{label}")
    else:
        body = error_response(result.error)
        print(f"{RED}  err  {RESET}{label}: {body['code']} ({body['status']}) {body['message']}")


def at(hour: int, minute: int = 0) -> datetime:
    return datetime.combine(DEMO_DAY, time(hour, minute), tzinfo=timezone.utc)


async def run_lifecycle() -> None:
    heading("Reservation lifecycle")
    salon = DemoSalon()
    svc = salon.reservation_service

    first = await svc.create_reservation(salon.create_input(at(10), at(11)))
    show("create 10:00-11:00", first)
    if isinstance(first, Err):
        return
    reservation = first.value
    print(f"{DIM}       status: {reservation.status_kind.value}{RESET}")

    show("create 10:30-11:30 for the same stylist",
         await svc.create_reservation(salon.create_input(at(10, 30), at(11, 30))))

    show("confirm", await svc.confirm_reservation(
        ConfirmReservationInput(id=reservation.id, confirmed_by="stylist")))
    show("confirm again", await svc.confirm_reservation(
        ConfirmReservationInput(id=reservation.id, confirmed_by="stylist")))

    paid = await svc.create_reservation(salon.create_input(at(14), at(15), amount=10000))
    show("create 14:00-15:00 (10000)", paid)
    if isinstance(paid, Ok):
        await svc.record_payment(RecordPaymentInput(id=paid.value.id, updated_by="till"))
        salon.clock.now = paid.value.start_time - timedelta(hours=30)
        outcome = await svc.cancel_reservation(CancelReservationInput(
            id=paid.value.id, reason="schedule conflict", cancelled_by="customer"))
        show("cancel 30 hours ahead", outcome)
        if isinstance(outcome, Ok):
            print(f"{DIM}       refund: {outcome.value.refund_amount} "
                  f"of {outcome.value.paid_amount}, fee {outcome.value.cancellation_fee}{RESET}")

    salon.clock.now = reservation.start_time - timedelta(minutes=30)
    show("cancel 30 minutes before start", await svc.cancel_reservation(
        CancelReservationInput(id=reservation.id, reason="running late", cancelled_by="customer")))

    print(f"{DIM}  events: {[e.type.value for e in salon.publisher.events]}{RESET}")


async def run_slots() -> None:
    heading("Available 60-minute slots")
    salon = DemoSalon()
    svc = salon.reservation_service
    create = salon.create_input(at(10), at(11)).model_copy(update={"confirm_immediately": True})
    show("create confirmed 10:00-11:00", await svc.create_reservation(create))

    result = await svc.find_available_slots(FindAvailableSlotsInput(
        staff_id=salon.staff_id, service_id=salon.service_id, day=DEMO_DAY,
    ))
    show(f"slots on {DEMO_DAY.isoformat()}", result)
    if isinstance(result, Ok):
        starts = ", ".join(s.start_time.strftime("%H:%M") for s in result.value)
        print(f"{DIM}       {starts}{RESET}")


async def run_booking() -> None:
    heading("Booking with refund")
    salon = DemoSalon()
    created = [
        await salon.reservation_service.create_reservation(salon.create_input(at(h), at(h + 1)))
        for h in (10, 12)
    ]
    ids = [r.value.id for r in created if isinstance(r, Ok)]
    booking = await salon.booking_service.create_booking(CreateBookingInput(
        salon_id=salon.salon_id, customer_id=salon.customer_id,
        reservation_ids=ids, discount_amount=1000, created_by="front-desk",
    ))
    show("create booking for two reservations", booking)
    if isinstance(booking, Err):
        return
    print(f"{DIM}       total {booking.value.total_amount}, "
          f"final {booking.value.final_amount}{RESET}")

    bid = booking.value.id
    show("confirm", await salon.booking_service.confirm_booking(
        BookingActionInput(id=bid, actor="front-desk")))
    show("record payment", await salon.booking_service.record_booking_payment(
        RecordBookingPaymentInput(id=bid, payment_status=PaymentStatus.PAID, payment_method="card")))

    salon.clock.now = at(10) - timedelta(hours=20)
    cancelled = await salon.booking_service.cancel_booking(CancelBookingInput(
        id=bid, reason="travelling", cancelled_by="customer"))
    show("cancel 20 hours ahead", cancelled)
    if isinstance(cancelled, Ok):
        print(f"{DIM}       refund {cancelled.value.status.refund_amount}, "
              f"payment {cancelled.value.payment_status.value}{RESET}")


async def run_race(requests: int) -> None:
    heading(f"{requests} concurrent requests for one slot")
    salon = DemoSalon(enforce_exclusion=False)
    results = await asyncio.gather(*[
        salon.reservation_service.create_reservation(salon.create_input(at(10), at(11)))
        for _ in range(requests)
    ])
    winners = sum(1 for r in results if r.ok)
    print(f"  accepted: {winners}, rejected: {requests - winners}, "
          f"stored: {len(salon.reservations.all())}")


SCENARIOS = ["lifecycle", "slots", "booking", "race"]


async def run(scenario: str, requests: int) -> None:
    set_request_id(f"DEMO-{scenario}")
    if scenario in ("lifecycle", "all"):
        await run_lifecycle()
    if scenario in ("slots", "all"):
        await run_slots()
    if scenario in ("booking", "all"):
        await run_booking()
    if scenario in ("race", "all"):
        await run_race(requests)


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline reservation engine demo")
    parser.add_argument(
        "--scenario",
        choices=SCENARIOS + ["all"],
        default="all",
        help="Run a single scenario instead of all of them",
    )
    parser.add_argument(
        "--requests",
        type=int,
        default=10,
        help="Number of simultaneous requests in the race scenario",
    )
    args = parser.parse_args()
    asyncio.run(run(args.scenario, args.requests))


if __name__ == "__main__":
    main()
