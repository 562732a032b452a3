"""Tests for the booking aggregate use-cases."""

import asyncio
from datetime import timedelta

import pytest

from salonbook.config import AppConfig, PolicyConfig
from salonbook.domain.errors import ErrorType
from salonbook.domain.result import Ok
from salonbook.schemas.booking_schema import BookingStatusKind, PaymentStatus
from salonbook.schemas.requests import (
    BookingActionInput,
    CancelBookingInput,
    CancelReservationInput,
    CompleteBookingInput,
    CreateBookingInput,
    ListBookingsInput,
    RecordBookingPaymentInput,
)
from salonbook.usecases.bookings import BookingService
from salonbook.usecases.events import EventType

from tests.conftest import (
    COLOR_SERVICE_ID,
    CUSTOMER_ID,
    MISSING_ID,
    OTHER_CUSTOMER_ID,
    SALON_ID,
    make_create_input,
    utc,
)


async def _reservations(reservation_service, count=2, **kwargs):
    created = []
    for i in range(count):
        start = utc(2024, 6, 1, 10 + 2 * i)
        result = await reservation_service.create_reservation(
            make_create_input(start=start, end=start + timedelta(hours=1), **kwargs)
        )
        created.append(result.value)
    return created


async def _booking(booking_service, reservation_service, **kwargs):
    reservations = await _reservations(reservation_service)
    result = await booking_service.create_booking(CreateBookingInput(
        salon_id=SALON_ID,
        customer_id=CUSTOMER_ID,
        reservation_ids=[r.id for r in reservations],
        created_by="front-desk",
        **kwargs,
    ))
    assert isinstance(result, Ok), result
    return result.value, reservations


class TestCreateBooking:
    @pytest.mark.asyncio
    async def test_totals_summed_from_reservations(self, booking_service, reservation_service):
        booking, _ = await _booking(booking_service, reservation_service, discount_amount=1000)
        assert booking.status_kind == BookingStatusKind.DRAFT
        assert booking.total_amount == 10000
        assert booking.final_amount == 9000
        assert booking.payment_status == PaymentStatus.PENDING

    @pytest.mark.asyncio
    async def test_explicit_total(self, booking_service, reservation_service):
        booking, _ = await _booking(booking_service, reservation_service, total_amount=8000)
        assert booking.final_amount == 8000

    @pytest.mark.asyncio
    async def test_discount_over_total(self, booking_service, reservation_service):
        reservations = await _reservations(reservation_service, count=1)
        result = await booking_service.create_booking(CreateBookingInput(
            salon_id=SALON_ID, customer_id=CUSTOMER_ID,
            reservation_ids=[reservations[0].id], discount_amount=9000,
        ))
        assert result.error.type == ErrorType.INVALID_AMOUNT

    @pytest.mark.asyncio
    async def test_empty_reservation_list(self, booking_service):
        result = await booking_service.create_booking(CreateBookingInput(
            salon_id=SALON_ID, customer_id=CUSTOMER_ID, reservation_ids=[],
        ))
        assert result.error.type == ErrorType.VALIDATION_FAILED

    @pytest.mark.asyncio
    async def test_missing_and_foreign_reservations(self, booking_service, reservation_service):
        foreign = await _reservations(
            reservation_service, count=1, customer_id=OTHER_CUSTOMER_ID
        )
        result = await booking_service.create_booking(CreateBookingInput(
            salon_id=SALON_ID, customer_id=CUSTOMER_ID,
            reservation_ids=[foreign[0].id, MISSING_ID],
        ))
        assert result.error.type == ErrorType.VALIDATION_FAILED
        fields = [fe.field for fe in result.error.field_errors]
        assert fields == ["reservation_ids[0]", "reservation_ids[1]"]

    @pytest.mark.asyncio
    async def test_cancelled_reservation_rejected(self, booking_service, reservation_service):
        reservations = await _reservations(reservation_service, count=1)
        await reservation_service.cancel_reservation(CancelReservationInput(
            id=reservations[0].id, reason="ill", cancelled_by="customer",
        ))
        result = await booking_service.create_booking(CreateBookingInput(
            salon_id=SALON_ID, customer_id=CUSTOMER_ID, reservation_ids=[reservations[0].id],
        ))
        assert result.error.type == ErrorType.VALIDATION_FAILED


class TestBookingLifecycle:
    @pytest.mark.asyncio
    async def test_confirm_then_complete_with_overtime(
        self, booking_service, reservation_service, publisher
    ):
        booking, reservations = await _booking(booking_service, reservation_service)
        await booking_service.confirm_booking(BookingActionInput(id=booking.id, actor="staff"))

        result = await booking_service.complete_booking(CompleteBookingInput(
            id=booking.id,
            completed_by="staff",
            actual_end_time=reservations[-1].end_time + timedelta(minutes=12),
            overtime_rate_per_minute=50,
        ))
        assert result.value.status_kind == BookingStatusKind.COMPLETED
        assert result.value.status.overtime_charge == 600
        assert publisher.of_type(EventType.BOOKING_COMPLETED)[0].payload["overtime_charge"] == 600

    @pytest.mark.asyncio
    async def test_complete_draft_rejected(self, booking_service, reservation_service):
        booking, _ = await _booking(booking_service, reservation_service)
        result = await booking_service.complete_booking(
            CompleteBookingInput(id=booking.id, completed_by="staff")
        )
        assert result.error.type == ErrorType.INVALID_STATUS

    @pytest.mark.asyncio
    async def test_cancel_paid_booking_refunds(self, booking_service, reservation_service, clock):
        booking, reservations = await _booking(
            booking_service, reservation_service, discount_amount=2000
        )
        await booking_service.record_booking_payment(RecordBookingPaymentInput(
            id=booking.id, payment_status=PaymentStatus.PAID, payment_method="card",
        ))
        clock.now = reservations[0].start_time - timedelta(hours=30)

        result = await booking_service.cancel_booking(CancelBookingInput(
            id=booking.id, reason="travelling", cancelled_by="customer",
        ))
        assert result.value.status.refund_amount == 5600
        assert result.value.payment_status == PaymentStatus.REFUNDED

    @pytest.mark.asyncio
    async def test_cancel_unpaid_booking(self, booking_service, reservation_service, publisher):
        booking, _ = await _booking(booking_service, reservation_service)
        result = await booking_service.cancel_booking(CancelBookingInput(
            id=booking.id, reason="travelling", cancelled_by="customer",
        ))
        assert result.value.status.refund_amount == 0
        assert result.value.payment_status == PaymentStatus.PENDING
        assert publisher.of_type(EventType.REFUND_ISSUED) == []

    @pytest.mark.asyncio
    async def test_cancel_twice(self, booking_service, reservation_service):
        booking, _ = await _booking(booking_service, reservation_service)
        data = CancelBookingInput(id=booking.id, reason="x", cancelled_by="customer")
        await booking_service.cancel_booking(data)
        result = await booking_service.cancel_booking(data)
        assert result.error.type == ErrorType.CANNOT_CANCEL

    @pytest.mark.asyncio
    async def test_no_show(self, booking_service, reservation_service, publisher):
        booking, _ = await _booking(booking_service, reservation_service)
        await booking_service.confirm_booking(BookingActionInput(id=booking.id, actor="staff"))
        result = await booking_service.mark_booking_no_show(
            BookingActionInput(id=booking.id, actor="staff")
        )
        assert result.value.status_kind == BookingStatusKind.NO_SHOW
        events = publisher.of_type(EventType.BOOKING_NO_SHOW)
        assert events[0].type.value == "booking_no_show"

    @pytest.mark.asyncio
    async def test_get_missing(self, booking_service):
        result = await booking_service.get_booking(MISSING_ID)
        assert result.error.type == ErrorType.NOT_FOUND


class TestBookingPayments:
    @pytest.mark.asyncio
    async def test_refunded_not_recordable(self, booking_service, reservation_service):
        booking, _ = await _booking(booking_service, reservation_service)
        result = await booking_service.record_booking_payment(RecordBookingPaymentInput(
            id=booking.id, payment_status=PaymentStatus.REFUNDED,
        ))
        assert result.error.type == ErrorType.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_paid_twice(self, booking_service, reservation_service):
        booking, _ = await _booking(booking_service, reservation_service)
        data = RecordBookingPaymentInput(id=booking.id, payment_status=PaymentStatus.PAID)
        await booking_service.record_booking_payment(data)
        result = await booking_service.record_booking_payment(data)
        assert result.error.type == ErrorType.INVALID_STATUS

    @pytest.mark.asyncio
    async def test_failed_then_paid(self, booking_service, reservation_service):
        booking, _ = await _booking(booking_service, reservation_service)
        await booking_service.record_booking_payment(RecordBookingPaymentInput(
            id=booking.id, payment_status=PaymentStatus.FAILED,
        ))
        result = await booking_service.record_booking_payment(RecordBookingPaymentInput(
            id=booking.id, payment_status=PaymentStatus.PAID, payment_method="cash",
        ))
        assert result.value.payment_status == PaymentStatus.PAID
        assert result.value.payment_method == "cash"


class TestBookingQueries:
    @pytest.mark.asyncio
    async def test_list_and_count(self, booking_service, reservation_service):
        booking, _ = await _booking(booking_service, reservation_service)
        await booking_service.confirm_booking(BookingActionInput(id=booking.id, actor="staff"))

        listed = await booking_service.list_bookings(ListBookingsInput(salon_id=SALON_ID))
        assert listed.value.total == 1

        counts = await booking_service.count_bookings_by_status(SALON_ID)
        assert counts.value == {"confirmed": 1}


class TestReservationMembership:
    @pytest.mark.asyncio
    async def test_booking_id_set_on_reservations(
        self, booking_service, reservation_service, reservation_repo
    ):
        booking, reservations = await _booking(booking_service, reservation_service)
        for reservation in reservations:
            stored = (await reservation_repo.find_by_id(reservation.id)).value
            assert stored.booking_id == booking.id

    @pytest.mark.asyncio
    async def test_already_booked_reservation_rejected(self, booking_service, reservation_service):
        booking, reservations = await _booking(booking_service, reservation_service)
        result = await booking_service.create_booking(CreateBookingInput(
            salon_id=SALON_ID, customer_id=CUSTOMER_ID,
            reservation_ids=[reservations[1].id],
        ))
        assert result.error.type == ErrorType.VALIDATION_FAILED
        assert result.error.field_errors[0].field == "reservation_ids[0]"
        assert booking.id in result.error.field_errors[0].message

    @pytest.mark.asyncio
    async def test_rebookable_after_booking_cancelled(
        self, booking_service, reservation_service, reservation_repo
    ):
        booking, reservations = await _booking(booking_service, reservation_service)
        await booking_service.cancel_booking(CancelBookingInput(
            id=booking.id, reason="changed plans", cancelled_by="customer",
        ))
        result = await booking_service.create_booking(CreateBookingInput(
            salon_id=SALON_ID, customer_id=CUSTOMER_ID,
            reservation_ids=[r.id for r in reservations],
        ))
        assert isinstance(result, Ok)
        stored = (await reservation_repo.find_by_id(reservations[0].id)).value
        assert stored.booking_id == result.value.id

    @pytest.mark.asyncio
    async def test_concurrent_bookings_of_same_reservation(
        self, booking_service, reservation_service, booking_repo
    ):
        reservations = await _reservations(reservation_service, count=1)
        data = CreateBookingInput(
            salon_id=SALON_ID, customer_id=CUSTOMER_ID,
            reservation_ids=[reservations[0].id],
        )
        results = await asyncio.gather(*[booking_service.create_booking(data) for _ in range(5)])
        assert sum(1 for r in results if r.ok) == 1
        assert len(booking_repo.all()) == 1
        losers = [r for r in results if not r.ok]
        assert all(r.error.type == ErrorType.VALIDATION_FAILED for r in losers)


class TestOvertimeRate:
    async def _confirmed_colour_booking(self, booking_service, reservation_service):
        reservations = await _reservations(
            reservation_service, count=1, service_id=COLOR_SERVICE_ID
        )
        result = await booking_service.create_booking(CreateBookingInput(
            salon_id=SALON_ID, customer_id=CUSTOMER_ID,
            reservation_ids=[reservations[0].id],
        ))
        await booking_service.confirm_booking(
            BookingActionInput(id=result.value.id, actor="staff")
        )
        return result.value, reservations[0]

    @pytest.mark.asyncio
    async def test_service_rate_used_when_request_has_none(
        self, booking_service, reservation_service
    ):
        booking, reservation = await self._confirmed_colour_booking(
            booking_service, reservation_service
        )
        result = await booking_service.complete_booking(CompleteBookingInput(
            id=booking.id,
            completed_by="staff",
            actual_end_time=reservation.end_time + timedelta(minutes=5, seconds=30),
        ))
        assert result.value.status.overtime_charge == 600

    @pytest.mark.asyncio
    async def test_request_rate_wins_over_service_rate(
        self, booking_service, reservation_service
    ):
        booking, reservation = await self._confirmed_colour_booking(
            booking_service, reservation_service
        )
        result = await booking_service.complete_booking(CompleteBookingInput(
            id=booking.id,
            completed_by="staff",
            actual_end_time=reservation.end_time + timedelta(minutes=10),
            overtime_rate_per_minute=10,
        ))
        assert result.value.status.overtime_charge == 100

    @pytest.mark.asyncio
    async def test_salon_rate_when_service_has_none(
        self, booking_repo, reservation_repo, service_repo, reservation_service, clock
    ):
        service = BookingService(
            booking_repo, reservation_repo, service_repo,
            config=AppConfig(policy=PolicyConfig(overtime_rate_per_minute=20)),
            clock=clock,
        )
        booking, reservations = await _booking(service, reservation_service)
        await service.confirm_booking(BookingActionInput(id=booking.id, actor="staff"))
        result = await service.complete_booking(CompleteBookingInput(
            id=booking.id,
            completed_by="staff",
            actual_end_time=reservations[-1].end_time + timedelta(minutes=3),
        ))
        assert result.value.status.overtime_charge == 60

    @pytest.mark.asyncio
    async def test_no_overtime_when_finished_on_time(self, booking_service, reservation_service):
        booking, reservation = await self._confirmed_colour_booking(
            booking_service, reservation_service
        )
        result = await booking_service.complete_booking(CompleteBookingInput(
            id=booking.id, completed_by="staff", actual_end_time=reservation.end_time,
        ))
        assert result.value.status.overtime_charge == 0
