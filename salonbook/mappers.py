"""Convert domain models and errors into the public response shapes."""

from typing import Any

from salonbook.domain.errors import DomainError, http_status_for
from salonbook.schemas.booking_schema import (
    Booking,
    BookingCancelledStatus,
    BookingCompletedStatus,
    BookingConfirmedStatus,
    BookingNoShowStatus,
)
from salonbook.schemas.reservation_schema import (
    CancelledStatus,
    CompletedStatus,
    ConfirmedStatus,
    NoShowStatus,
    Reservation,
)
from salonbook.schemas.responses import BookingResponse, ReservationResponse


def to_reservation_response(reservation: Reservation) -> ReservationResponse:
    """Flatten the status union into nullable columns."""
    fields: dict[str, Any] = reservation.model_dump(exclude={"status"})
    status = reservation.status
    if isinstance(status, ConfirmedStatus):
        fields.update(confirmed_at=status.confirmed_at, confirmed_by=status.confirmed_by)
    elif isinstance(status, CancelledStatus):
        fields.update(
            cancelled_at=status.cancelled_at,
            cancelled_by=status.cancelled_by,
            cancellation_reason=status.reason,
        )
    elif isinstance(status, CompletedStatus):
        fields.update(completed_at=status.completed_at, completed_by=status.completed_by)
    elif isinstance(status, NoShowStatus):
        fields.update(marked_no_show_at=status.marked_at, marked_no_show_by=status.marked_by)
    return ReservationResponse(status=status.type.value, **fields)


def to_booking_response(booking: Booking) -> BookingResponse:
    fields: dict[str, Any] = booking.model_dump(
        exclude={"status", "payment_status", "created_by", "updated_by"}
    )
    status = booking.status
    if isinstance(status, BookingConfirmedStatus):
        fields.update(status_changed_at=status.confirmed_at, status_changed_by=status.confirmed_by)
    elif isinstance(status, BookingCancelledStatus):
        fields.update(
            status_changed_at=status.cancelled_at,
            status_changed_by=status.cancelled_by,
            cancellation_reason=status.reason,
            refund_amount=status.refund_amount,
        )
    elif isinstance(status, BookingCompletedStatus):
        fields.update(
            status_changed_at=status.completed_at,
            status_changed_by=status.completed_by,
            overtime_charge=status.overtime_charge,
        )
    elif isinstance(status, BookingNoShowStatus):
        fields.update(status_changed_at=status.marked_at, status_changed_by=status.marked_by)
    return BookingResponse(
        status=status.type.value,
        payment_status=booking.payment_status.value,
        **fields,
    )


def error_response(error: DomainError) -> dict[str, Any]:
    """Error envelope: upper-cased code, message, status, optional details."""
    body: dict[str, Any] = {
        "code": error.type.value.upper(),
        "message": error.message,
        "status": http_status_for(error),
    }
    details: dict[str, Any] = {}
    if error.field_errors:
        details["fields"] = [
            {"field": fe.field, "message": fe.message} for fe in error.field_errors
        ]
    if error.entity:
        details["entity"] = error.entity
        details["entity_id"] = error.entity_id
    if details:
        body["details"] = details
    return body
