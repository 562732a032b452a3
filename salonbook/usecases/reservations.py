"""
Reservation use-cases: create, update, status transitions, and slot queries.

Every operation has the same shape: validate input -> load current state ->
run the state-machine guard -> (create/update) check the staff calendar ->
single repository write -> publish an audit event. Failures at any step
short-circuit with a tagged ``Err``; nothing here raises for expected errors.

Double booking is prevented by serializing the conflict check and the insert
per staff member (``KeyedLocks``). Status transitions serialize per
reservation so a second concurrent cancel sees the first one's result.
Updates take the reservation lock first and the staff locks inside it;
creates take only staff locks and transitions only reservation locks, so
the two registries are always acquired in the same order.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

from salonbook.config import AppConfig, settings
from salonbook.domain.errors import DomainError, ErrorType, FieldError, as_system_error
from salonbook.domain.result import Err, Ok, Result
from salonbook.engine.availability import find_available_slots, working_window
from salonbook.engine.refund_policy import paid_amount_for, refund_for_cancellation
from salonbook.engine.state_machine import ReservationStateMachine
from salonbook.engine.validation import (
    validate_amount,
    validate_deposit_amount,
    validate_reason,
    validate_time_range,
)
from salonbook.logging_context import get_request_logger
from salonbook.repositories.base import (
    NewReservation,
    PaginatedResult,
    Pagination,
    ReservationRepository,
    ReservationSearchCriteria,
    ReservationUpdate,
    ServiceInfo,
    ServiceRepository,
    StaffScheduleRepository,
)
from salonbook.schemas.requests import (
    CancelReservationInput,
    CompleteReservationInput,
    ConfirmReservationInput,
    CountByDateInput,
    CreateReservationInput,
    FindAvailableSlotsInput,
    GetReservationInput,
    ListReservationsInput,
    MarkNoShowInput,
    RecordPaymentInput,
    UpdateReservationInput,
)
from salonbook.schemas.reservation_schema import (
    FieldChange,
    Reservation,
    ReservationChanges,
    ReservationStatusKind,
)
from salonbook.schemas.responses import CancellationOutcome
from salonbook.schemas.slot_schema import AvailableSlot
from salonbook.usecases.events import DomainEvent, EventDispatcher, EventType
from salonbook.usecases.locks import KeyedLocks
from salonbook.utils import ensure_utc, utc_now

logger = get_request_logger(__name__)


def _system(result: Err) -> Err:
    return Err(as_system_error(result.error))


class ReservationService:
    """Caller-facing reservation operations."""

    def __init__(
        self,
        reservations: ReservationRepository,
        services: ServiceRepository,
        schedules: StaffScheduleRepository,
        events: Optional[EventDispatcher] = None,
        config: Optional[AppConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._reservations = reservations
        self._services = services
        self._schedules = schedules
        self._events = events or EventDispatcher()
        self._config = config or settings
        self._clock = clock
        self._machine = ReservationStateMachine(self._config.policy)
        self._staff_locks = KeyedLocks()
        self._reservation_locks = KeyedLocks()

    # ------------------------------------------------------------------ #
    # Shared helpers
    # ------------------------------------------------------------------ #

    def _now(self) -> datetime:
        return ensure_utc(self._clock())

    async def _lookup_service(self, service_id: str) -> Result[ServiceInfo]:
        result = await self._services.find_by_id(service_id)
        if isinstance(result, Err):
            if result.error.type == ErrorType.NOT_FOUND:
                return Err(DomainError(
                    type=ErrorType.SERVICE_NOT_FOUND,
                    message=f"Service {service_id} not found",
                    entity="Service",
                    entity_id=service_id,
                ))
            return _system(result)
        return result

    def _duration_for(self, service: ServiceInfo, requested: Optional[int] = None) -> Result[int]:
        duration = requested or service.duration_minutes
        if duration is None:
            duration = self._config.availability.default_slot_minutes
        if duration <= 0:
            return Err(DomainError(
                type=ErrorType.VALIDATION_FAILED,
                message=f"Service {service.id} has no usable duration",
                field_errors=[FieldError("duration_minutes", f"Must be positive, got {duration}")],
                entity="Service",
                entity_id=service.id,
            ))
        return Ok(duration)

    async def _load(self, reservation_id: str) -> Result[Reservation]:
        result = await self._reservations.find_by_id(reservation_id)
        if isinstance(result, Err):
            return _system(result)
        return result

    async def _publish(
        self, event_type: EventType, reservation: Reservation, actor: str, **payload
    ) -> None:
        await self._events.dispatch(DomainEvent(
            type=event_type,
            aggregate_id=reservation.id,
            actor=actor,
            occurred_at=reservation.updated_at,
            payload=payload,
        ))

    # ------------------------------------------------------------------ #
    # Create / update
    # ------------------------------------------------------------------ #

    async def create_reservation(self, data: CreateReservationInput) -> Result[Reservation]:
        """Validate, check the staff calendar, and insert a new reservation."""
        now = self._now()
        policy = self._config.policy

        service = await self._lookup_service(data.service_id)
        if isinstance(service, Err):
            return service

        start = ensure_utc(data.start_time)
        if data.end_time is not None:
            end = ensure_utc(data.end_time)
        else:
            duration = self._duration_for(service.value)
            if isinstance(duration, Err):
                return duration
            end = start + timedelta(minutes=duration.value)
        time_range = validate_time_range(start, end, now, policy.max_advance_months)
        if isinstance(time_range, Err):
            logger.info("Reservation rejected: %s", time_range.error.message)
            return time_range

        total = data.total_amount if data.total_amount is not None else service.value.price
        amount = validate_amount(total, policy.max_amount)
        if isinstance(amount, Err):
            return amount
        deposit = validate_deposit_amount(data.deposit_amount, amount.value)
        if isinstance(deposit, Err):
            return deposit

        async with self._staff_locks.hold(data.staff_id):
            conflict = await self._reservations.check_time_slot_conflict(
                data.staff_id, time_range.value.start, time_range.value.end
            )
            if isinstance(conflict, Err):
                return _system(conflict)
            if conflict.value:
                logger.info(
                    "Slot conflict for staff %s at %s",
                    data.staff_id, time_range.value.start.isoformat(),
                )
                return Err(DomainError(
                    type=ErrorType.SLOT_CONFLICT,
                    message="The selected time slot is not available",
                ))

            created = await self._reservations.create(NewReservation(
                salon_id=data.salon_id,
                customer_id=data.customer_id,
                staff_id=data.staff_id,
                service_id=data.service_id,
                start_time=time_range.value.start,
                end_time=time_range.value.end,
                total_amount=amount.value,
                deposit_amount=deposit.value,
                notes=data.notes,
                created_by=data.created_by,
                created_at=now,
                confirmed=data.confirm_immediately,
            ))
        if isinstance(created, Err):
            return _system(created)

        reservation = created.value
        logger.info(
            "Reservation created: %s staff=%s %s (%d min, %s)",
            reservation.id, reservation.staff_id,
            reservation.start_time.isoformat(), reservation.duration_minutes,
            reservation.status_kind.value,
        )
        await self._publish(EventType.RESERVATION_CREATED, reservation, data.created_by)
        if data.confirm_immediately:
            await self._publish(EventType.RESERVATION_CONFIRMED, reservation, data.created_by)
        return Ok(reservation)

    async def update_reservation(self, data: UpdateReservationInput) -> Result[Reservation]:
        """Change time, staff, or notes of a pending/confirmed reservation.

        The reservation lock is taken first and the row is read under it, so
        the staff locks always cover the staff member the row holds right now
        as well as the requested one.
        """
        now = self._now()
        async with self._reservation_locks.hold(data.id):
            current = await self._load(data.id)
            if isinstance(current, Err):
                return current
            reservation = current.value

            guard = self._machine.guard_modify(reservation, now)
            if isinstance(guard, Err):
                logger.info("Update rejected for %s: %s", data.id, guard.error.message)
                return guard

            start = reservation.start_time
            if data.start_time is not None:
                start = ensure_utc(data.start_time)
            end = reservation.end_time
            if data.end_time is not None:
                end = ensure_utc(data.end_time)
            staff_id = data.staff_id or reservation.staff_id
            reschedule = (
                start != reservation.start_time
                or end != reservation.end_time
                or staff_id != reservation.staff_id
            )

            async with self._staff_locks.hold(reservation.staff_id, staff_id):
                if reschedule:
                    time_range = validate_time_range(
                        start, end, now, self._config.policy.max_advance_months
                    )
                    if isinstance(time_range, Err):
                        return time_range
                    conflict = await self._reservations.check_time_slot_conflict(
                        staff_id, start, end, exclude_id=reservation.id
                    )
                    if isinstance(conflict, Err):
                        return _system(conflict)
                    if conflict.value:
                        return Err(DomainError(
                            type=ErrorType.SLOT_CONFLICT,
                            message="The selected time slot is not available",
                        ))

                updated = await self._reservations.update(reservation.id, ReservationUpdate(
                    start_time=start if start != reservation.start_time else None,
                    end_time=end if end != reservation.end_time else None,
                    staff_id=staff_id if staff_id != reservation.staff_id else None,
                    notes=data.notes,
                    updated_by=data.updated_by,
                    updated_at=now,
                ))
        if isinstance(updated, Err):
            return _system(updated)

        changes = _diff(reservation, updated.value)
        if changes.is_empty():
            logger.debug("Reservation %s updated with no field changes", reservation.id)
            return updated
        logger.info("Reservation updated: %s fields=%s", reservation.id, changes.fields)
        await self._publish(
            EventType.RESERVATION_UPDATED, updated.value, data.updated_by,
            changes=changes.model_dump(mode="json", by_alias=True)["changes"],
        )
        return updated

    # ------------------------------------------------------------------ #
    # Status transitions
    # ------------------------------------------------------------------ #

    async def confirm_reservation(self, data: ConfirmReservationInput) -> Result[Reservation]:
        now = self._now()
        async with self._reservation_locks.hold(data.id):
            current = await self._load(data.id)
            if isinstance(current, Err):
                return current
            guard = self._machine.guard_confirm(current.value)
            if isinstance(guard, Err):
                logger.info("Confirm rejected for %s: %s", data.id, guard.error.message)
                return guard
            result = await self._reservations.confirm(data.id, data.confirmed_by, now)
        if isinstance(result, Err):
            return _system(result)
        logger.info("Reservation confirmed: %s by %s", data.id, data.confirmed_by)
        await self._publish(EventType.RESERVATION_CONFIRMED, result.value, data.confirmed_by)
        return result

    async def cancel_reservation(self, data: CancelReservationInput) -> Result[CancellationOutcome]:
        """Cancel and compute the refund owed under the cancellation policy."""
        reason = validate_reason(data.reason)
        if isinstance(reason, Err):
            return reason

        now = self._now()
        async with self._reservation_locks.hold(data.id):
            current = await self._load(data.id)
            if isinstance(current, Err):
                return current
            guard = self._machine.guard_cancel(current.value, now)
            if isinstance(guard, Err):
                logger.info("Cancel rejected for %s: %s", data.id, guard.error.message)
                return guard
            result = await self._reservations.cancel(data.id, reason.value, data.cancelled_by, now)
        if isinstance(result, Err):
            return _system(result)

        paid = paid_amount_for(current.value)
        refund, hours = refund_for_cancellation(current.value, now, paid)
        outcome = CancellationOutcome(
            reservation=result.value,
            paid_amount=paid,
            refund_amount=refund,
            cancellation_fee=paid - refund,
            hours_before_start=hours,
        )
        logger.info(
            "Reservation cancelled: %s (%.1fh before start, refund %d, fee %d)",
            data.id, hours, refund, outcome.cancellation_fee,
        )
        await self._publish(
            EventType.RESERVATION_CANCELLED, result.value, data.cancelled_by,
            reason=reason.value, refund_amount=refund,
            cancellation_fee=outcome.cancellation_fee,
        )
        return Ok(outcome)

    async def complete_reservation(self, data: CompleteReservationInput) -> Result[Reservation]:
        now = self._now()
        async with self._reservation_locks.hold(data.id):
            current = await self._load(data.id)
            if isinstance(current, Err):
                return current
            guard = self._machine.guard_complete(current.value)
            if isinstance(guard, Err):
                return guard
            result = await self._reservations.complete(data.id, data.completed_by, now)
        if isinstance(result, Err):
            return _system(result)
        logger.info("Reservation completed: %s", data.id)
        await self._publish(EventType.RESERVATION_COMPLETED, result.value, data.completed_by)
        return result

    async def mark_as_no_show(self, data: MarkNoShowInput) -> Result[Reservation]:
        now = self._now()
        async with self._reservation_locks.hold(data.id):
            current = await self._load(data.id)
            if isinstance(current, Err):
                return current
            guard = self._machine.guard_no_show(current.value, now)
            if isinstance(guard, Err):
                return guard
            result = await self._reservations.mark_as_no_show(data.id, data.marked_by, now)
        if isinstance(result, Err):
            return _system(result)
        logger.info("Reservation marked no-show: %s", data.id)
        await self._publish(EventType.RESERVATION_NO_SHOW, result.value, data.marked_by)
        return result

    async def record_payment(self, data: RecordPaymentInput) -> Result[Reservation]:
        """Flip the paid flag; cancelled reservations cannot take payment."""
        now = self._now()
        async with self._reservation_locks.hold(data.id):
            current = await self._load(data.id)
            if isinstance(current, Err):
                return current
            if current.value.status_kind == ReservationStatusKind.CANCELLED:
                return Err(DomainError(
                    type=ErrorType.INVALID_STATUS,
                    message="Cannot record payment for a cancelled reservation",
                ))
            result = await self._reservations.update_payment_status(
                data.id, data.is_paid, data.updated_by, now
            )
        if isinstance(result, Err):
            return _system(result)
        if data.is_paid:
            await self._publish(
                EventType.PAYMENT_RECEIVED, result.value, data.updated_by,
                amount=result.value.total_amount,
            )
        return result

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    async def find_available_slots(
        self, data: FindAvailableSlotsInput
    ) -> Result[list[AvailableSlot]]:
        """Free slots of the service's duration for one staff member on one day.

        Recomputed on every call; nothing is cached.
        """
        if (
            not self._config.availability.allow_past_date_queries
            and data.day < self._now().date()
        ):
            return Err(DomainError(
                type=ErrorType.PAST_TIME_NOT_ALLOWED,
                message=f"Cannot query availability for past date {data.day.isoformat()}",
            ))

        service = await self._lookup_service(data.service_id)
        if isinstance(service, Err):
            return service
        duration = self._duration_for(service.value, data.duration_minutes)
        if isinstance(duration, Err):
            return duration

        hours = await self._schedules.working_hours(data.staff_id, data.day)
        if isinstance(hours, Err):
            return _system(hours)
        if hours.value is None:
            return Ok([])

        window_start, window_end = working_window(data.day, hours.value)
        existing = await self._reservations.find_by_staff_and_date_range(
            data.staff_id, window_start, window_end
        )
        if isinstance(existing, Err):
            return _system(existing)

        return Ok(find_available_slots(
            data.staff_id, data.day, duration.value, hours.value, existing.value
        ))

    async def get_reservation_by_id(self, data: GetReservationInput) -> Result[Reservation]:
        return await self._load(data.id)

    async def list_reservations(
        self, data: ListReservationsInput
    ) -> Result[PaginatedResult[Reservation]]:
        criteria = ReservationSearchCriteria(
            salon_id=data.salon_id,
            customer_id=data.customer_id,
            staff_id=data.staff_id,
            service_id=data.service_id,
            status=data.status,
            start_date=data.start_date,
            end_date=data.end_date,
            is_paid=data.is_paid,
        )
        result = await self._reservations.search(
            criteria, Pagination(limit=data.limit, offset=data.offset)
        )
        if isinstance(result, Err):
            return _system(result)
        return result

    async def get_customer_reservations(
        self, customer_id: str, limit: int = 20, offset: int = 0
    ) -> Result[PaginatedResult[Reservation]]:
        result = await self._reservations.find_by_customer(
            customer_id, Pagination(limit=limit, offset=offset)
        )
        if isinstance(result, Err):
            return _system(result)
        return result

    async def count_reservations_by_date(self, data: CountByDateInput) -> Result[dict[str, int]]:
        if ensure_utc(data.start_date) > ensure_utc(data.end_date):
            return Err(DomainError(
                type=ErrorType.INVALID_TIME_RANGE,
                message="start_date must not be after end_date",
            ))
        result = await self._reservations.count_by_date(
            data.salon_id, data.start_date, data.end_date
        )
        if isinstance(result, Err):
            return _system(result)
        return result


def _diff(before: Reservation, after: Reservation) -> ReservationChanges:
    changes: dict[str, FieldChange] = {}
    for name in ("start_time", "end_time", "staff_id", "notes"):
        old, new = getattr(before, name), getattr(after, name)
        if old != new:
            changes[name] = FieldChange(before=old, after=new)
    return ReservationChanges(changes=changes)
