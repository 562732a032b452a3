"""
Booking use-cases: grouping reservations into one purchase and moving it
through draft -> confirmed -> completed / cancelled / no_show.
"""

from datetime import datetime
from typing import Callable, Optional

from salonbook.config import AppConfig, settings
from salonbook.domain.errors import DomainError, ErrorType, FieldError, as_system_error
from salonbook.domain.result import Err, Ok, Result
from salonbook.engine.refund_policy import (
    calculate_overtime_charge,
    calculate_refund,
    hours_until,
)
from salonbook.engine.state_machine import BookingStateMachine
from salonbook.engine.validation import (
    validate_amount,
    validate_discount,
    validate_reason,
    validate_reservation_ids,
)
from salonbook.logging_context import get_request_logger
from salonbook.repositories.base import (
    BookingRepository,
    BookingSearchCriteria,
    NewBooking,
    PaginatedResult,
    Pagination,
    ReservationRepository,
    ServiceRepository,
)
from salonbook.schemas.booking_schema import Booking, BookingStatusKind, PaymentStatus
from salonbook.schemas.requests import (
    BookingActionInput,
    CancelBookingInput,
    CompleteBookingInput,
    CreateBookingInput,
    ListBookingsInput,
    RecordBookingPaymentInput,
)
from salonbook.schemas.reservation_schema import Reservation
from salonbook.usecases.events import DomainEvent, EventDispatcher, EventType
from salonbook.usecases.locks import KeyedLocks
from salonbook.utils import ensure_utc, utc_now

logger = get_request_logger(__name__)


def _system(result: Err) -> Err:
    return Err(as_system_error(result.error))


class BookingService:
    """Caller-facing booking operations."""

    def __init__(
        self,
        bookings: BookingRepository,
        reservations: ReservationRepository,
        services: Optional[ServiceRepository] = None,
        events: Optional[EventDispatcher] = None,
        config: Optional[AppConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._bookings = bookings
        self._reservations = reservations
        self._services = services
        self._events = events or EventDispatcher()
        self._config = config or settings
        self._clock = clock
        self._machine = BookingStateMachine()
        self._locks = KeyedLocks()
        self._reservation_locks = KeyedLocks()

    def _now(self) -> datetime:
        return ensure_utc(self._clock())

    async def _load(self, booking_id: str) -> Result[Booking]:
        result = await self._bookings.find_by_id(booking_id)
        if isinstance(result, Err):
            return _system(result)
        return result

    async def _load_reservations(self, booking: Booking) -> Result[list[Reservation]]:
        found = []
        for reservation_id in booking.reservation_ids:
            result = await self._reservations.find_by_id(reservation_id)
            if isinstance(result, Err):
                return _system(result)
            found.append(result.value)
        return Ok(found)

    async def _live_booking(self, reservation: Reservation) -> Result[Optional[Booking]]:
        """The non-cancelled booking a reservation already belongs to, if any."""
        if reservation.booking_id is None:
            return Ok(None)
        result = await self._bookings.find_by_id(reservation.booking_id)
        if isinstance(result, Err):
            if result.error.type == ErrorType.NOT_FOUND:
                return Ok(None)
            return _system(result)
        if result.value.status_kind == BookingStatusKind.CANCELLED:
            return Ok(None)
        return result

    async def _overtime_rate(self, reservation: Reservation) -> Result[int]:
        """Per-minute overtime rate of the reservation's service, else the salon rate."""
        fallback = self._config.policy.overtime_rate_per_minute
        if self._services is None:
            return Ok(fallback)
        result = await self._services.find_by_id(reservation.service_id)
        if isinstance(result, Err):
            if result.error.type == ErrorType.NOT_FOUND:
                return Ok(fallback)
            return _system(result)
        return Ok(result.value.overtime_rate_per_minute or fallback)

    async def _publish(self, event_type: EventType, booking: Booking, actor: str, **payload) -> None:
        await self._events.dispatch(DomainEvent(
            type=event_type,
            aggregate_id=booking.id,
            actor=actor,
            occurred_at=booking.updated_at,
            payload=payload,
        ))

    async def create_booking(self, data: CreateBookingInput) -> Result[Booking]:
        """Group existing reservations of one customer into a draft booking.

        A reservation belongs to at most one live booking. Its ``booking_id``
        is set here and released again only when that booking is cancelled.
        """
        ids = validate_reservation_ids(data.reservation_ids)
        if isinstance(ids, Err):
            return ids

        async with self._reservation_locks.hold(*ids.value):
            reservations: list[Reservation] = []
            problems: list[FieldError] = []
            for index, reservation_id in enumerate(ids.value):
                field = f"reservation_ids[{index}]"
                result = await self._reservations.find_by_id(reservation_id)
                if isinstance(result, Err):
                    if result.error.type != ErrorType.NOT_FOUND:
                        return _system(result)
                    problems.append(FieldError(field, f"Reservation {reservation_id} not found"))
                    continue
                reservation = result.value
                if reservation.customer_id != data.customer_id:
                    problems.append(FieldError(field, "Reservation belongs to another customer"))
                elif reservation.salon_id != data.salon_id:
                    problems.append(FieldError(field, "Reservation belongs to another salon"))
                elif reservation.is_terminal:
                    problems.append(FieldError(
                        field, f"Reservation is already {reservation.status_kind.value}"
                    ))
                else:
                    live = await self._live_booking(reservation)
                    if isinstance(live, Err):
                        return live
                    if live.value is not None:
                        problems.append(FieldError(
                            field, f"Reservation is already part of booking {live.value.id}"
                        ))
                reservations.append(reservation)
            if problems:
                return Err(DomainError(
                    type=ErrorType.VALIDATION_FAILED,
                    message="Reservations cannot be booked together",
                    field_errors=problems,
                ))

            total = (
                data.total_amount if data.total_amount is not None
                else sum(r.total_amount for r in reservations)
            )
            amount = validate_amount(total, self._config.policy.max_amount)
            if isinstance(amount, Err):
                return amount
            discount = validate_discount(data.discount_amount, amount.value)
            if isinstance(discount, Err):
                return discount

            now = self._now()
            created = await self._bookings.create(NewBooking(
                salon_id=data.salon_id,
                customer_id=data.customer_id,
                reservation_ids=ids.value,
                total_amount=amount.value,
                discount_amount=data.discount_amount,
                final_amount=amount.value - discount.value,
                created_by=data.created_by,
                created_at=now,
                payment_method=data.payment_method,
                notes=data.notes,
            ))
            if isinstance(created, Err):
                return _system(created)
            booking = created.value
            for reservation_id in booking.reservation_ids:
                assigned = await self._reservations.assign_booking(
                    reservation_id, booking.id, data.created_by, now
                )
                if isinstance(assigned, Err):
                    return _system(assigned)

        logger.info(
            "Booking created: %s with %d reservation(s), final %d",
            booking.id, len(booking.reservation_ids), booking.final_amount,
        )
        await self._publish(EventType.BOOKING_CREATED, booking, data.created_by)
        return created

    async def get_booking(self, booking_id: str) -> Result[Booking]:
        return await self._load(booking_id)

    async def list_bookings(self, data: ListBookingsInput) -> Result[PaginatedResult[Booking]]:
        result = await self._bookings.search(
            BookingSearchCriteria(
                salon_id=data.salon_id,
                customer_id=data.customer_id,
                status=data.status,
                payment_status=data.payment_status,
            ),
            Pagination(limit=data.limit, offset=data.offset),
        )
        if isinstance(result, Err):
            return _system(result)
        return result

    async def confirm_booking(self, data: BookingActionInput) -> Result[Booking]:
        now = self._now()
        async with self._locks.hold(data.id):
            current = await self._load(data.id)
            if isinstance(current, Err):
                return current
            guard = self._machine.guard(current.value, BookingStatusKind.CONFIRMED)
            if isinstance(guard, Err):
                return guard
            result = await self._bookings.confirm(data.id, data.actor, now)
        if isinstance(result, Err):
            return _system(result)
        logger.info("Booking confirmed: %s", data.id)
        await self._publish(EventType.BOOKING_CONFIRMED, result.value, data.actor)
        return result

    async def cancel_booking(self, data: CancelBookingInput) -> Result[Booking]:
        """Cancel and refund a paid booking per the tiered policy.

        Hours are measured to the earliest reservation start. Unpaid
        bookings are cancelled with no refund.
        """
        reason = validate_reason(data.reason)
        if isinstance(reason, Err):
            return reason

        now = self._now()
        async with self._locks.hold(data.id):
            current = await self._load(data.id)
            if isinstance(current, Err):
                return current
            booking = current.value
            guard = self._machine.guard(booking, BookingStatusKind.CANCELLED)
            if isinstance(guard, Err):
                return guard

            refund = 0
            if booking.payment_status == PaymentStatus.PAID:
                reservations = await self._load_reservations(booking)
                if isinstance(reservations, Err):
                    return reservations
                earliest = min(r.start_time for r in reservations.value)
                refund = calculate_refund(booking.final_amount, hours_until(earliest, now))

            result = await self._bookings.cancel(
                data.id, reason.value, data.cancelled_by, now, refund_amount=refund
            )
        if isinstance(result, Err):
            return _system(result)
        logger.info("Booking cancelled: %s refund=%d", data.id, refund)
        await self._publish(
            EventType.BOOKING_CANCELLED, result.value, data.cancelled_by,
            reason=reason.value, refund_amount=refund,
        )
        if refund > 0:
            await self._publish(
                EventType.REFUND_ISSUED, result.value, data.cancelled_by, amount=refund
            )
        return result

    async def complete_booking(self, data: CompleteBookingInput) -> Result[Booking]:
        """Complete a confirmed booking, charging overtime past the latest scheduled end.

        The rate is taken from the request, then from the service of the
        latest-ending reservation, then from ``OVERTIME_RATE_PER_MINUTE``.
        """
        now = self._now()
        async with self._locks.hold(data.id):
            current = await self._load(data.id)
            if isinstance(current, Err):
                return current
            booking = current.value
            guard = self._machine.guard(booking, BookingStatusKind.COMPLETED)
            if isinstance(guard, Err):
                return guard

            overtime = 0
            if data.actual_end_time is not None:
                reservations = await self._load_reservations(booking)
                if isinstance(reservations, Err):
                    return reservations
                latest = max(reservations.value, key=lambda r: r.end_time)
                rate = data.overtime_rate_per_minute
                if rate is None:
                    service_rate = await self._overtime_rate(latest)
                    if isinstance(service_rate, Err):
                        return service_rate
                    rate = service_rate.value
                if rate > 0:
                    overtime = calculate_overtime_charge(
                        data.actual_end_time, latest.end_time, rate
                    )

            result = await self._bookings.complete(
                data.id, data.completed_by, now, overtime_charge=overtime
            )
        if isinstance(result, Err):
            return _system(result)
        logger.info("Booking completed: %s overtime=%d", data.id, overtime)
        await self._publish(
            EventType.BOOKING_COMPLETED, result.value, data.completed_by,
            overtime_charge=overtime,
        )
        return result

    async def mark_booking_no_show(self, data: BookingActionInput) -> Result[Booking]:
        now = self._now()
        async with self._locks.hold(data.id):
            current = await self._load(data.id)
            if isinstance(current, Err):
                return current
            guard = self._machine.guard(current.value, BookingStatusKind.NO_SHOW)
            if isinstance(guard, Err):
                return guard
            result = await self._bookings.mark_as_no_show(data.id, data.actor, now)
        if isinstance(result, Err):
            return _system(result)
        logger.info("Booking marked no-show: %s", data.id)
        await self._publish(EventType.BOOKING_NO_SHOW, result.value, data.actor)
        return result

    async def record_booking_payment(self, data: RecordBookingPaymentInput) -> Result[Booking]:
        """Record a payment outcome. Refunds happen only through cancellation."""
        if data.payment_status == PaymentStatus.REFUNDED:
            return Err(DomainError(
                type=ErrorType.INVALID_REQUEST,
                message="Refunds are issued by cancelling the booking",
            ))

        now = self._now()
        async with self._locks.hold(data.id):
            current = await self._load(data.id)
            if isinstance(current, Err):
                return current
            booking = current.value
            if booking.status_kind == BookingStatusKind.CANCELLED:
                return Err(DomainError(
                    type=ErrorType.INVALID_STATUS,
                    message="Cannot record payment for a cancelled booking",
                ))
            if booking.payment_status in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
                return Err(DomainError(
                    type=ErrorType.INVALID_STATUS,
                    message=f"Booking payment is already {booking.payment_status.value}",
                ))
            result = await self._bookings.update_payment(
                data.id, data.payment_status, data.payment_method, data.updated_by, now
            )
        if isinstance(result, Err):
            return _system(result)
        await self._publish(
            EventType.BOOKING_PAYMENT_UPDATED, result.value, data.updated_by,
            payment_status=data.payment_status.value,
        )
        return result

    async def count_bookings_by_status(self, salon_id: str) -> Result[dict[str, int]]:
        result = await self._bookings.count_by_status(salon_id)
        if isinstance(result, Err):
            return _system(result)
        return result
