"""
In-memory repositories.

Used by the test-suite and the console demo. In production these contracts
are backed by a database whose insert enforces the same staff/interval
exclusion as ``enforce_exclusion`` does here.

Every read and write yields to the event loop once, the way a network round
trip would, so interleavings between concurrent use-cases actually happen.
"""

import asyncio
import logging
from collections import Counter
from datetime import date, datetime
from typing import Optional

from salonbook.domain.errors import DomainError, ErrorType, database_error, not_found
from salonbook.domain.result import Err, Ok, Result
from salonbook.engine.availability import find_conflicts, overlaps
from salonbook.engine.state_machine import (
    BookingStateMachine,
    ReservationStateMachine,
    can_transition,
    can_transition_booking,
)
from salonbook.repositories.base import (
    BookingSearchCriteria,
    NewBooking,
    NewReservation,
    PaginatedResult,
    Pagination,
    ReservationSearchCriteria,
    ReservationUpdate,
    ServiceInfo,
)
from salonbook.schemas.booking_schema import Booking, BookingStatusKind, PaymentStatus
from salonbook.schemas.reservation_schema import (
    ConfirmedStatus,
    PendingStatus,
    Reservation,
    ReservationStatusKind,
)
from salonbook.schemas.slot_schema import WorkingHours
from salonbook.utils import ensure_utc, new_id

logger = logging.getLogger(__name__)


def _paginate(items: list, pagination: Pagination) -> PaginatedResult:
    page = items[pagination.offset:pagination.offset + pagination.limit]
    return PaginatedResult(
        items=page, total=len(items), limit=pagination.limit, offset=pagination.offset
    )


class _OutageMixin:
    """Lets tests make every call fail with a database error."""

    _outage: Optional[str] = None

    def simulate_outage(self, message: Optional[str] = "connection refused") -> None:
        self._outage = message

    async def _round_trip(self) -> Optional[Err]:
        await asyncio.sleep(0)
        if self._outage:
            return Err(database_error(self._outage))
        return None


class InMemoryReservationRepository(_OutageMixin):
    """Reservation store keyed by id."""

    def __init__(self, enforce_exclusion: bool = True) -> None:
        self._rows: dict[str, Reservation] = {}
        self._write_lock = asyncio.Lock()
        self._machine = ReservationStateMachine()
        self.enforce_exclusion = enforce_exclusion

    def all(self) -> list[Reservation]:
        return list(self._rows.values())

    def put(self, reservation: Reservation) -> None:
        """Seed a row directly, bypassing validation. Test fixtures only."""
        self._rows[reservation.id] = reservation

    def reset(self) -> None:
        """Clear all reservations. Used by test fixtures for isolation."""
        self._rows.clear()

    async def find_by_id(self, reservation_id: str) -> Result[Reservation]:
        failure = await self._round_trip()
        if failure is not None:
            return failure
        row = self._rows.get(reservation_id)
        if row is None:
            return Err(not_found("Reservation", reservation_id))
        return Ok(row)

    async def create(self, data: NewReservation) -> Result[Reservation]:
        failure = await self._round_trip()
        if failure is not None:
            return failure
        async with self._write_lock:
            if self.enforce_exclusion and find_conflicts(
                data.staff_id, data.start_time, data.end_time, self._rows.values()
            ):
                return Err(DomainError(
                    type=ErrorType.SLOT_NOT_AVAILABLE,
                    message="The time slot is already booked",
                ))
            status = (
                ConfirmedStatus(confirmed_at=data.created_at, confirmed_by=data.created_by)
                if data.confirmed else PendingStatus()
            )
            reservation = Reservation(
                id=new_id(),
                salon_id=data.salon_id,
                customer_id=data.customer_id,
                staff_id=data.staff_id,
                service_id=data.service_id,
                start_time=ensure_utc(data.start_time),
                end_time=ensure_utc(data.end_time),
                notes=data.notes,
                total_amount=data.total_amount,
                deposit_amount=data.deposit_amount,
                status=status,
                created_at=data.created_at,
                created_by=data.created_by,
                updated_at=data.created_at,
                updated_by=data.created_by,
            )
            self._rows[reservation.id] = reservation
        logger.debug("Reservation row inserted: %s", reservation.id)
        return Ok(reservation)

    async def update(self, reservation_id: str, data: ReservationUpdate) -> Result[Reservation]:
        failure = await self._round_trip()
        if failure is not None:
            return failure
        async with self._write_lock:
            current = self._rows.get(reservation_id)
            if current is None:
                return Err(not_found("Reservation", reservation_id))
            changes = {
                "start_time": data.start_time,
                "end_time": data.end_time,
                "staff_id": data.staff_id,
                "notes": data.notes,
            }
            changes = {k: v for k, v in changes.items() if v is not None}
            candidate = current.model_copy(update=changes)
            if self.enforce_exclusion and find_conflicts(
                candidate.staff_id, candidate.start_time, candidate.end_time,
                self._rows.values(), exclude_id=reservation_id,
            ):
                return Err(DomainError(
                    type=ErrorType.SLOT_NOT_AVAILABLE,
                    message="The time slot is already booked",
                ))
            changes.update(updated_by=data.updated_by, updated_at=data.updated_at or current.updated_at)
            # revalidate so start < end still holds after a partial change
            updated = Reservation.model_validate({**current.model_dump(), **changes})
            self._rows[reservation_id] = updated
        return Ok(updated)

    async def _transition(
        self,
        reservation_id: str,
        target: ReservationStatusKind,
        actor: str,
        at: datetime,
        reason: Optional[str] = None,
    ) -> Result[Reservation]:
        failure = await self._round_trip()
        if failure is not None:
            return failure
        async with self._write_lock:
            current = self._rows.get(reservation_id)
            if current is None:
                return Err(not_found("Reservation", reservation_id))
            if not can_transition(current.status_kind, target):
                return Err(DomainError(
                    type=ErrorType.INVALID_STATUS,
                    message=(
                        f"Reservation {reservation_id} is {current.status_kind.value}, "
                        f"cannot become {target.value}"
                    ),
                ))
            updated = self._machine.apply(current, target, actor, at, reason)
            self._rows[reservation_id] = updated
        return Ok(updated)

    async def confirm(self, reservation_id: str, confirmed_by: str, at: datetime) -> Result[Reservation]:
        return await self._transition(reservation_id, ReservationStatusKind.CONFIRMED, confirmed_by, at)

    async def cancel(
        self, reservation_id: str, reason: str, cancelled_by: str, at: datetime
    ) -> Result[Reservation]:
        return await self._transition(
            reservation_id, ReservationStatusKind.CANCELLED, cancelled_by, at, reason
        )

    async def complete(self, reservation_id: str, completed_by: str, at: datetime) -> Result[Reservation]:
        return await self._transition(reservation_id, ReservationStatusKind.COMPLETED, completed_by, at)

    async def mark_as_no_show(self, reservation_id: str, marked_by: str, at: datetime) -> Result[Reservation]:
        return await self._transition(reservation_id, ReservationStatusKind.NO_SHOW, marked_by, at)

    async def update_payment_status(
        self, reservation_id: str, is_paid: bool, updated_by: str, at: datetime
    ) -> Result[Reservation]:
        failure = await self._round_trip()
        if failure is not None:
            return failure
        async with self._write_lock:
            current = self._rows.get(reservation_id)
            if current is None:
                return Err(not_found("Reservation", reservation_id))
            updated = current.model_copy(
                update={"is_paid": is_paid, "updated_by": updated_by, "updated_at": at}
            )
            self._rows[reservation_id] = updated
        return Ok(updated)

    async def assign_booking(
        self, reservation_id: str, booking_id: str, updated_by: str, at: datetime
    ) -> Result[Reservation]:
        failure = await self._round_trip()
        if failure is not None:
            return failure
        async with self._write_lock:
            current = self._rows.get(reservation_id)
            if current is None:
                return Err(not_found("Reservation", reservation_id))
            updated = current.model_copy(
                update={"booking_id": booking_id, "updated_by": updated_by, "updated_at": at}
            )
            self._rows[reservation_id] = updated
        return Ok(updated)

    async def search(
        self, criteria: ReservationSearchCriteria, pagination: Pagination
    ) -> Result[PaginatedResult[Reservation]]:
        failure = await self._round_trip()
        if failure is not None:
            return failure

        def matches(r: Reservation) -> bool:
            return (
                (criteria.salon_id is None or r.salon_id == criteria.salon_id)
                and (criteria.customer_id is None or r.customer_id == criteria.customer_id)
                and (criteria.staff_id is None or r.staff_id == criteria.staff_id)
                and (criteria.service_id is None or r.service_id == criteria.service_id)
                and (criteria.status is None or r.status_kind == criteria.status)
                and (criteria.is_paid is None or r.is_paid == criteria.is_paid)
                and (criteria.start_date is None or r.start_time >= ensure_utc(criteria.start_date))
                and (criteria.end_date is None or r.start_time <= ensure_utc(criteria.end_date))
            )

        found = sorted((r for r in self._rows.values() if matches(r)), key=lambda r: r.start_time)
        return Ok(_paginate(found, pagination))

    async def find_by_customer(
        self, customer_id: str, pagination: Pagination
    ) -> Result[PaginatedResult[Reservation]]:
        return await self.search(ReservationSearchCriteria(customer_id=customer_id), pagination)

    async def find_by_staff_and_date_range(
        self, staff_id: str, start: datetime, end: datetime
    ) -> Result[list[Reservation]]:
        failure = await self._round_trip()
        if failure is not None:
            return failure
        start, end = ensure_utc(start), ensure_utc(end)
        found = [
            r for r in self._rows.values()
            if r.staff_id == staff_id and overlaps(start, end, r.start_time, r.end_time)
        ]
        return Ok(sorted(found, key=lambda r: r.start_time))

    async def check_time_slot_conflict(
        self,
        staff_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> Result[bool]:
        failure = await self._round_trip()
        if failure is not None:
            return failure
        return Ok(bool(find_conflicts(staff_id, start, end, self._rows.values(), exclude_id)))

    async def count_by_date(
        self, salon_id: str, start: datetime, end: datetime
    ) -> Result[dict[str, int]]:
        failure = await self._round_trip()
        if failure is not None:
            return failure
        start, end = ensure_utc(start), ensure_utc(end)
        counts = Counter(
            r.start_time.date().isoformat()
            for r in self._rows.values()
            if r.salon_id == salon_id and start <= r.start_time <= end
        )
        return Ok(dict(sorted(counts.items())))


class InMemoryBookingRepository(_OutageMixin):
    """Booking store keyed by id."""

    def __init__(self) -> None:
        self._rows: dict[str, Booking] = {}
        self._write_lock = asyncio.Lock()
        self._machine = BookingStateMachine()

    def all(self) -> list[Booking]:
        return list(self._rows.values())

    def reset(self) -> None:
        self._rows.clear()

    async def find_by_id(self, booking_id: str) -> Result[Booking]:
        failure = await self._round_trip()
        if failure is not None:
            return failure
        row = self._rows.get(booking_id)
        if row is None:
            return Err(not_found("Booking", booking_id))
        return Ok(row)

    async def create(self, data: NewBooking) -> Result[Booking]:
        failure = await self._round_trip()
        if failure is not None:
            return failure
        booking = Booking(
            id=new_id(),
            salon_id=data.salon_id,
            customer_id=data.customer_id,
            reservation_ids=list(data.reservation_ids),
            total_amount=data.total_amount,
            discount_amount=data.discount_amount,
            final_amount=data.final_amount,
            payment_method=data.payment_method,
            notes=data.notes,
            created_at=data.created_at,
            created_by=data.created_by,
            updated_at=data.created_at,
            updated_by=data.created_by,
        )
        async with self._write_lock:
            self._rows[booking.id] = booking
        return Ok(booking)

    async def update_payment(
        self,
        booking_id: str,
        payment_status: PaymentStatus,
        payment_method: Optional[str],
        updated_by: str,
        at: datetime,
    ) -> Result[Booking]:
        failure = await self._round_trip()
        if failure is not None:
            return failure
        async with self._write_lock:
            current = self._rows.get(booking_id)
            if current is None:
                return Err(not_found("Booking", booking_id))
            updated = current.model_copy(update={
                "payment_status": payment_status,
                "payment_method": payment_method or current.payment_method,
                "updated_by": updated_by,
                "updated_at": at,
            })
            self._rows[booking_id] = updated
        return Ok(updated)

    async def _transition(
        self,
        booking_id: str,
        target: BookingStatusKind,
        actor: str,
        at: datetime,
        **payload,
    ) -> Result[Booking]:
        failure = await self._round_trip()
        if failure is not None:
            return failure
        async with self._write_lock:
            current = self._rows.get(booking_id)
            if current is None:
                return Err(not_found("Booking", booking_id))
            if not can_transition_booking(current.status_kind, target):
                return Err(DomainError(
                    type=ErrorType.INVALID_STATUS,
                    message=(
                        f"Booking {booking_id} is {current.status_kind.value}, "
                        f"cannot become {target.value}"
                    ),
                ))
            updated = self._machine.apply(current, target, actor, at, **payload)
            if target == BookingStatusKind.CANCELLED and payload.get("refund_amount", 0) > 0:
                updated = updated.model_copy(update={"payment_status": PaymentStatus.REFUNDED})
            self._rows[booking_id] = updated
        return Ok(updated)

    async def confirm(self, booking_id: str, confirmed_by: str, at: datetime) -> Result[Booking]:
        return await self._transition(booking_id, BookingStatusKind.CONFIRMED, confirmed_by, at)

    async def cancel(
        self,
        booking_id: str,
        reason: str,
        cancelled_by: str,
        at: datetime,
        refund_amount: int = 0,
    ) -> Result[Booking]:
        return await self._transition(
            booking_id, BookingStatusKind.CANCELLED, cancelled_by, at,
            reason=reason, refund_amount=refund_amount,
        )

    async def complete(
        self, booking_id: str, completed_by: str, at: datetime, overtime_charge: int = 0
    ) -> Result[Booking]:
        return await self._transition(
            booking_id, BookingStatusKind.COMPLETED, completed_by, at,
            overtime_charge=overtime_charge,
        )

    async def mark_as_no_show(self, booking_id: str, marked_by: str, at: datetime) -> Result[Booking]:
        return await self._transition(booking_id, BookingStatusKind.NO_SHOW, marked_by, at)

    async def search(
        self, criteria: BookingSearchCriteria, pagination: Pagination
    ) -> Result[PaginatedResult[Booking]]:
        failure = await self._round_trip()
        if failure is not None:
            return failure
        found = [
            b for b in self._rows.values()
            if (criteria.salon_id is None or b.salon_id == criteria.salon_id)
            and (criteria.customer_id is None or b.customer_id == criteria.customer_id)
            and (criteria.status is None or b.status_kind == criteria.status)
            and (criteria.payment_status is None or b.payment_status == criteria.payment_status)
        ]
        found.sort(key=lambda b: b.created_at)
        return Ok(_paginate(found, pagination))

    async def count_by_status(self, salon_id: str) -> Result[dict[str, int]]:
        failure = await self._round_trip()
        if failure is not None:
            return failure
        counts = Counter(
            b.status_kind.value for b in self._rows.values() if b.salon_id == salon_id
        )
        return Ok(dict(counts))


class InMemoryServiceRepository(_OutageMixin):
    """Service catalog lookup for durations and prices."""

    def __init__(self, services: Optional[list[ServiceInfo]] = None) -> None:
        self._services: dict[str, ServiceInfo] = {s.id: s for s in services or []}

    def add(self, service: ServiceInfo) -> None:
        self._services[service.id] = service

    async def find_by_id(self, service_id: str) -> Result[ServiceInfo]:
        failure = await self._round_trip()
        if failure is not None:
            return failure
        service = self._services.get(service_id)
        if service is None or not service.is_active:
            return Err(not_found("Service", service_id))
        return Ok(service)


class InMemoryStaffScheduleRepository(_OutageMixin):
    """Weekly working hours per staff member, with a shared default."""

    def __init__(self, default_hours: WorkingHours) -> None:
        self._default = default_hours
        self._weekly: dict[tuple[str, int], Optional[WorkingHours]] = {}

    def set_hours(self, staff_id: str, weekday: int, hours: Optional[WorkingHours]) -> None:
        """Override one weekday (0 = Monday); ``None`` marks a day off."""
        self._weekly[(staff_id, weekday)] = hours

    async def working_hours(self, staff_id: str, day: date) -> Result[Optional[WorkingHours]]:
        failure = await self._round_trip()
        if failure is not None:
            return failure
        return Ok(self._weekly.get((staff_id, day.weekday()), self._default))
