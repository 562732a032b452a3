"""Public representations returned across the use-case boundary."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from salonbook.schemas.reservation_schema import Reservation


class ReservationResponse(BaseModel):
    """Flat view of a reservation: status discriminant plus its payload."""

    id: str
    salon_id: str
    customer_id: str
    staff_id: str
    service_id: str
    start_time: datetime
    end_time: datetime
    status: str
    notes: Optional[str] = None
    total_amount: int
    deposit_amount: Optional[int] = None
    is_paid: bool
    booking_id: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    confirmed_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    marked_no_show_at: Optional[datetime] = None
    marked_no_show_by: Optional[str] = None
    created_at: datetime
    created_by: str
    updated_at: datetime
    updated_by: str


class BookingResponse(BaseModel):
    id: str
    salon_id: str
    customer_id: str
    reservation_ids: list[str]
    status: str
    total_amount: int
    discount_amount: Optional[int] = None
    final_amount: int
    payment_method: Optional[str] = None
    payment_status: str
    notes: Optional[str] = None
    refund_amount: Optional[int] = None
    overtime_charge: Optional[int] = None
    cancellation_reason: Optional[str] = None
    status_changed_at: Optional[datetime] = None
    status_changed_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CancellationOutcome(BaseModel):
    """Result of a successful cancellation, with the policy refund.

    ``cancellation_fee`` is the part of the paid amount the salon keeps.
    """

    reservation: Reservation
    paid_amount: int
    refund_amount: int
    cancellation_fee: int
    hours_before_start: float
