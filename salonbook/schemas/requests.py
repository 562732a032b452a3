"""Input records accepted by the use-case surface.

Each use-case takes one of these plain records. Raw mappings from an outer
layer are converted with ``salonbook.engine.validation.parse_input`` so
malformed payloads become ``validation_failed`` errors instead of exceptions.
"""

from datetime import date, datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, Field

from salonbook.schemas.booking_schema import BookingStatusKind, PaymentStatus
from salonbook.schemas.reservation_schema import ReservationStatusKind
from salonbook.utils import is_valid_uuid


def _check_uuid(value: str) -> str:
    if not is_valid_uuid(value):
        raise ValueError(f"'{value}' is not a valid id")
    return value.lower()


EntityId = Annotated[str, AfterValidator(_check_uuid)]


class CreateReservationInput(BaseModel):
    salon_id: EntityId
    customer_id: EntityId
    staff_id: EntityId
    service_id: EntityId
    start_time: datetime
    end_time: Optional[datetime] = None
    notes: Optional[str] = None
    total_amount: Optional[int] = None
    deposit_amount: Optional[int] = None
    created_by: str = "system"
    confirm_immediately: bool = False


class UpdateReservationInput(BaseModel):
    id: EntityId
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    staff_id: Optional[EntityId] = None
    notes: Optional[str] = None
    updated_by: str = "system"


class ConfirmReservationInput(BaseModel):
    id: EntityId
    confirmed_by: str


class CancelReservationInput(BaseModel):
    id: EntityId
    reason: Optional[str] = None
    cancelled_by: str


class CompleteReservationInput(BaseModel):
    id: EntityId
    completed_by: str


class MarkNoShowInput(BaseModel):
    id: EntityId
    marked_by: str


class RecordPaymentInput(BaseModel):
    id: EntityId
    is_paid: bool = True
    updated_by: str = "system"


class GetReservationInput(BaseModel):
    id: EntityId


class FindAvailableSlotsInput(BaseModel):
    staff_id: EntityId
    service_id: EntityId
    day: date
    duration_minutes: Optional[int] = Field(default=None, gt=0)


class ListReservationsInput(BaseModel):
    salon_id: Optional[EntityId] = None
    customer_id: Optional[EntityId] = None
    staff_id: Optional[EntityId] = None
    service_id: Optional[EntityId] = None
    status: Optional[ReservationStatusKind] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_paid: Optional[bool] = None
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class CountByDateInput(BaseModel):
    salon_id: EntityId
    start_date: datetime
    end_date: datetime


class CreateBookingInput(BaseModel):
    salon_id: EntityId
    customer_id: EntityId
    reservation_ids: list[EntityId]
    total_amount: Optional[int] = None
    discount_amount: Optional[int] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    created_by: str = "system"


class BookingActionInput(BaseModel):
    """Shared shape of confirm / no-show requests on a booking."""
    id: EntityId
    actor: str


class CancelBookingInput(BaseModel):
    id: EntityId
    reason: Optional[str] = None
    cancelled_by: str


class CompleteBookingInput(BaseModel):
    id: EntityId
    completed_by: str
    actual_end_time: Optional[datetime] = None
    overtime_rate_per_minute: Optional[int] = Field(default=None, ge=0)


class RecordBookingPaymentInput(BaseModel):
    id: EntityId
    payment_status: PaymentStatus
    payment_method: Optional[str] = None
    updated_by: str = "system"


class ListBookingsInput(BaseModel):
    salon_id: Optional[EntityId] = None
    customer_id: Optional[EntityId] = None
    status: Optional[BookingStatusKind] = None
    payment_status: Optional[PaymentStatus] = None
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
