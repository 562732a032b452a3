"""Reservation data model with its status carried as a tagged union."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ReservationStatusKind(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


TERMINAL_RESERVATION_STATUSES = frozenset({
    ReservationStatusKind.CANCELLED,
    ReservationStatusKind.COMPLETED,
    ReservationStatusKind.NO_SHOW,
})


class PendingStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[ReservationStatusKind.PENDING] = ReservationStatusKind.PENDING


class ConfirmedStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[ReservationStatusKind.CONFIRMED] = ReservationStatusKind.CONFIRMED
    confirmed_at: datetime
    confirmed_by: str


class CancelledStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[ReservationStatusKind.CANCELLED] = ReservationStatusKind.CANCELLED
    cancelled_at: datetime
    cancelled_by: str
    reason: str = Field(min_length=1)


class CompletedStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[ReservationStatusKind.COMPLETED] = ReservationStatusKind.COMPLETED
    completed_at: datetime
    completed_by: str


class NoShowStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[ReservationStatusKind.NO_SHOW] = ReservationStatusKind.NO_SHOW
    marked_at: datetime
    marked_by: str


ReservationStatus = Annotated[
    Union[PendingStatus, ConfirmedStatus, CancelledStatus, CompletedStatus, NoShowStatus],
    Field(discriminator="type"),
]


class Reservation(BaseModel):
    """One scheduled service occurrence. Immutable; transitions return copies."""

    model_config = ConfigDict(frozen=True)

    id: str
    salon_id: str
    customer_id: str
    staff_id: str
    service_id: str
    start_time: datetime
    end_time: datetime
    notes: Optional[str] = None
    total_amount: int = Field(ge=0)
    deposit_amount: Optional[int] = Field(default=None, ge=0)
    is_paid: bool = False
    booking_id: Optional[str] = None
    status: ReservationStatus = Field(default_factory=PendingStatus)
    created_at: datetime
    created_by: str
    updated_at: datetime
    updated_by: str

    @model_validator(mode="after")
    def _check_invariants(self) -> "Reservation":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        if self.deposit_amount is not None and self.deposit_amount > self.total_amount:
            raise ValueError("deposit_amount cannot exceed total_amount")
        return self

    @property
    def status_kind(self) -> ReservationStatusKind:
        return self.status.type

    @property
    def is_terminal(self) -> bool:
        return self.status.type in TERMINAL_RESERVATION_STATUSES

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)


class FieldChange(BaseModel):
    before: Any = Field(alias="from")
    after: Any = Field(alias="to")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ReservationChanges(BaseModel):
    """Before/after pairs recorded by an update, keyed by field name."""

    changes: dict[str, FieldChange] = Field(default_factory=dict)

    @property
    def fields(self) -> list[str]:
        return sorted(self.changes)

    def is_empty(self) -> bool:
        return not self.changes
