"""Booking aggregate: a payable unit wrapping one or more reservations."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BookingStatusKind(str, Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


TERMINAL_BOOKING_STATUSES = frozenset({
    BookingStatusKind.CANCELLED,
    BookingStatusKind.COMPLETED,
    BookingStatusKind.NO_SHOW,
})


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class DraftStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[BookingStatusKind.DRAFT] = BookingStatusKind.DRAFT


class BookingConfirmedStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[BookingStatusKind.CONFIRMED] = BookingStatusKind.CONFIRMED
    confirmed_at: datetime
    confirmed_by: str


class BookingCancelledStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[BookingStatusKind.CANCELLED] = BookingStatusKind.CANCELLED
    cancelled_at: datetime
    cancelled_by: str
    reason: str = Field(min_length=1)
    refund_amount: int = Field(default=0, ge=0)


class BookingCompletedStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[BookingStatusKind.COMPLETED] = BookingStatusKind.COMPLETED
    completed_at: datetime
    completed_by: str
    overtime_charge: int = Field(default=0, ge=0)


class BookingNoShowStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[BookingStatusKind.NO_SHOW] = BookingStatusKind.NO_SHOW
    marked_at: datetime
    marked_by: str


BookingStatus = Annotated[
    Union[
        DraftStatus,
        BookingConfirmedStatus,
        BookingCancelledStatus,
        BookingCompletedStatus,
        BookingNoShowStatus,
    ],
    Field(discriminator="type"),
]


class Booking(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    salon_id: str
    customer_id: str
    reservation_ids: list[str] = Field(min_length=1)
    total_amount: int = Field(ge=0)
    discount_amount: Optional[int] = Field(default=None, ge=0)
    final_amount: int = Field(ge=0)
    payment_method: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    notes: Optional[str] = None
    status: BookingStatus = Field(default_factory=DraftStatus)
    created_at: datetime
    created_by: str
    updated_at: datetime
    updated_by: str

    @model_validator(mode="after")
    def _check_invariants(self) -> "Booking":
        if len(set(self.reservation_ids)) != len(self.reservation_ids):
            raise ValueError("reservation_ids must be unique")
        if self.final_amount != self.total_amount - (self.discount_amount or 0):
            raise ValueError("final_amount must equal total_amount - discount_amount")
        return self

    @property
    def status_kind(self) -> BookingStatusKind:
        return self.status.type

    @property
    def is_terminal(self) -> bool:
        return self.status.type in TERMINAL_BOOKING_STATUSES
