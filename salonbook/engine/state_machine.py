"""
Finite state machines for the reservation and booking lifecycles.

Transitions are data: every legal (from, to) pair is listed in a table and
anything not listed is rejected. Guards add the time-based rules on top of
the table (cancellation and modification lead times, no-show only after the
scheduled end).

Usage:
    machine = ReservationStateMachine()
    guard = machine.guard_confirm(reservation)
    if guard.ok:
        confirmed = machine.apply(reservation, ReservationStatusKind.CONFIRMED,
                                  actor="staff-1", at=now)
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from salonbook.config import PolicyConfig, settings
from salonbook.domain.errors import DomainError, ErrorType
from salonbook.domain.result import Err, Ok, Result
from salonbook.engine.refund_policy import hours_until
from salonbook.schemas.booking_schema import (
    Booking,
    BookingCancelledStatus,
    BookingCompletedStatus,
    BookingConfirmedStatus,
    BookingNoShowStatus,
    BookingStatusKind,
    TERMINAL_BOOKING_STATUSES,
)
from salonbook.schemas.reservation_schema import (
    CancelledStatus,
    CompletedStatus,
    ConfirmedStatus,
    NoShowStatus,
    Reservation,
    ReservationStatusKind,
    TERMINAL_RESERVATION_STATUSES,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    """A single valid status transition."""
    from_state: ReservationStatusKind
    to_state: ReservationStatusKind


@dataclass(frozen=True)
class BookingTransition:
    from_state: BookingStatusKind
    to_state: BookingStatusKind


class InvalidTransitionError(Exception):
    """Raised when apply() is called for a pair the table does not allow.

    Use-cases run the guards first, so this only fires on a programming error.
    """


RESERVATION_TRANSITIONS: list[Transition] = [
    # --- Pending ---
    Transition(ReservationStatusKind.PENDING, ReservationStatusKind.CONFIRMED),
    Transition(ReservationStatusKind.PENDING, ReservationStatusKind.CANCELLED),
    Transition(ReservationStatusKind.PENDING, ReservationStatusKind.NO_SHOW),

    # --- Confirmed ---
    Transition(ReservationStatusKind.CONFIRMED, ReservationStatusKind.COMPLETED),
    Transition(ReservationStatusKind.CONFIRMED, ReservationStatusKind.CANCELLED),
    Transition(ReservationStatusKind.CONFIRMED, ReservationStatusKind.NO_SHOW),

    # cancelled, completed, no_show: terminal, no rows
]

BOOKING_TRANSITIONS: list[BookingTransition] = [
    BookingTransition(BookingStatusKind.DRAFT, BookingStatusKind.CONFIRMED),
    BookingTransition(BookingStatusKind.DRAFT, BookingStatusKind.CANCELLED),
    BookingTransition(BookingStatusKind.CONFIRMED, BookingStatusKind.COMPLETED),
    BookingTransition(BookingStatusKind.CONFIRMED, BookingStatusKind.CANCELLED),
    BookingTransition(BookingStatusKind.CONFIRMED, BookingStatusKind.NO_SHOW),
]


def allowed_targets(state: ReservationStatusKind) -> list[ReservationStatusKind]:
    """Return every status reachable in one step from ``state``."""
    return [t.to_state for t in RESERVATION_TRANSITIONS if t.from_state == state]


def can_transition(from_state: ReservationStatusKind, to_state: ReservationStatusKind) -> bool:
    return any(
        t.from_state == from_state and t.to_state == to_state
        for t in RESERVATION_TRANSITIONS
    )


def is_terminal(state: ReservationStatusKind) -> bool:
    return state in TERMINAL_RESERVATION_STATUSES


def can_transition_booking(from_state: BookingStatusKind, to_state: BookingStatusKind) -> bool:
    return any(
        t.from_state == from_state and t.to_state == to_state
        for t in BOOKING_TRANSITIONS
    )


def _invalid_status(message: str) -> Err:
    return Err(DomainError(type=ErrorType.INVALID_STATUS, message=message))


class ReservationStateMachine:
    """
    Guards and transition application for a single reservation.

    Guards return ``Ok(None)`` or a tagged ``Err``; ``apply`` returns a new
    immutable Reservation with the status envelope replaced and every other
    attribute carried over unchanged apart from the update audit fields.
    """

    def __init__(self, policy: Optional[PolicyConfig] = None) -> None:
        self._policy = policy or settings.policy

    def guard_confirm(self, reservation: Reservation) -> Result[None]:
        if reservation.status_kind != ReservationStatusKind.PENDING:
            return _invalid_status(
                f"Cannot confirm reservation in {reservation.status_kind.value} status"
            )
        return Ok(None)

    def guard_cancel(self, reservation: Reservation, now: datetime) -> Result[None]:
        if reservation.is_terminal:
            return Err(DomainError(
                type=ErrorType.CANNOT_CANCEL,
                message=f"Cannot cancel reservation in {reservation.status_kind.value} status",
            ))
        lead = self._policy.cancellation_lead_hours
        if hours_until(reservation.start_time, now) <= lead:
            return Err(DomainError(
                type=ErrorType.CANNOT_CANCEL,
                message=f"Cannot cancel less than {lead:g} hour(s) before the start time",
            ))
        return Ok(None)

    def guard_complete(self, reservation: Reservation) -> Result[None]:
        if reservation.status_kind != ReservationStatusKind.CONFIRMED:
            return _invalid_status(
                f"Cannot complete reservation in {reservation.status_kind.value} status"
            )
        return Ok(None)

    def guard_no_show(self, reservation: Reservation, now: datetime) -> Result[None]:
        allowed = {ReservationStatusKind.CONFIRMED}
        if self._policy.allow_no_show_from_pending:
            allowed.add(ReservationStatusKind.PENDING)
        if reservation.status_kind not in allowed:
            return _invalid_status(
                f"Cannot mark as no-show for reservation in "
                f"{reservation.status_kind.value} status"
            )
        if now < reservation.end_time:
            return _invalid_status("Cannot mark as no-show before reservation end time")
        return Ok(None)

    def guard_modify(self, reservation: Reservation, now: datetime) -> Result[None]:
        if reservation.status_kind not in (
            ReservationStatusKind.PENDING, ReservationStatusKind.CONFIRMED
        ):
            return _invalid_status(
                f"Cannot modify reservation in {reservation.status_kind.value} status"
            )
        lead = self._policy.modification_lead_hours
        if hours_until(reservation.start_time, now) <= lead:
            return _invalid_status(
                f"Cannot modify less than {lead:g} hour(s) before the start time"
            )
        return Ok(None)

    def apply(
        self,
        reservation: Reservation,
        target: ReservationStatusKind,
        actor: str,
        at: datetime,
        reason: Optional[str] = None,
    ) -> Reservation:
        """
        Execute a status transition.

        Raises:
            InvalidTransitionError: If the table has no row for the pair.
        """
        current = reservation.status_kind
        if not can_transition(current, target):
            valid = [s.value for s in allowed_targets(current)]
            raise InvalidTransitionError(
                f"No valid transition from '{current.value}' to '{target.value}'. "
                f"Valid targets: {valid}"
            )

        if target == ReservationStatusKind.CONFIRMED:
            status = ConfirmedStatus(confirmed_at=at, confirmed_by=actor)
        elif target == ReservationStatusKind.CANCELLED:
            if not reason:
                raise InvalidTransitionError("Cancellation requires a reason")
            status = CancelledStatus(cancelled_at=at, cancelled_by=actor, reason=reason)
        elif target == ReservationStatusKind.COMPLETED:
            status = CompletedStatus(completed_at=at, completed_by=actor)
        else:
            status = NoShowStatus(marked_at=at, marked_by=actor)

        logger.debug(
            "Reservation %s transition: %s -> %s (by %s)",
            reservation.id, current.value, target.value, actor,
        )
        return reservation.model_copy(
            update={"status": status, "updated_at": at, "updated_by": actor}
        )


class BookingStateMachine:
    """Guards and transition application for the booking aggregate."""

    def guard(self, booking: Booking, target: BookingStatusKind) -> Result[None]:
        current = booking.status_kind
        if target == BookingStatusKind.CANCELLED and current in TERMINAL_BOOKING_STATUSES:
            return Err(DomainError(
                type=ErrorType.CANNOT_CANCEL,
                message=f"Cannot cancel booking in {current.value} status",
            ))
        if not can_transition_booking(current, target):
            return _invalid_status(
                f"Cannot move booking from {current.value} to {target.value}"
            )
        return Ok(None)

    def apply(
        self,
        booking: Booking,
        target: BookingStatusKind,
        actor: str,
        at: datetime,
        reason: Optional[str] = None,
        refund_amount: int = 0,
        overtime_charge: int = 0,
    ) -> Booking:
        current = booking.status_kind
        if not can_transition_booking(current, target):
            raise InvalidTransitionError(
                f"No valid booking transition from '{current.value}' to '{target.value}'"
            )

        if target == BookingStatusKind.CONFIRMED:
            status = BookingConfirmedStatus(confirmed_at=at, confirmed_by=actor)
        elif target == BookingStatusKind.CANCELLED:
            if not reason:
                raise InvalidTransitionError("Cancellation requires a reason")
            status = BookingCancelledStatus(
                cancelled_at=at, cancelled_by=actor, reason=reason,
                refund_amount=refund_amount,
            )
        elif target == BookingStatusKind.COMPLETED:
            status = BookingCompletedStatus(
                completed_at=at, completed_by=actor, overtime_charge=overtime_charge,
            )
        else:
            status = BookingNoShowStatus(marked_at=at, marked_by=actor)

        logger.debug(
            "Booking %s transition: %s -> %s (by %s)",
            booking.id, current.value, target.value, actor,
        )
        return booking.model_copy(
            update={"status": status, "updated_at": at, "updated_by": actor}
        )
