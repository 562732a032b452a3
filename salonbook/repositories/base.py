"""
Repository contracts consumed by the use-cases.

Every method returns a ``Result``; implementations report missing rows as
``not_found`` and storage failures as ``database_error`` instead of raising.
Each mutating method is a single atomic write.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Generic, Optional, Protocol, TypeVar

from salonbook.domain.result import Result
from salonbook.schemas.booking_schema import (
    Booking,
    BookingStatusKind,
    PaymentStatus,
)
from salonbook.schemas.reservation_schema import Reservation, ReservationStatusKind
from salonbook.schemas.slot_schema import WorkingHours

T = TypeVar("T")


@dataclass(frozen=True)
class Pagination:
    limit: int = 20
    offset: int = 0


@dataclass(frozen=True)
class PaginatedResult(Generic[T]):
    items: list[T]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


@dataclass(frozen=True)
class ReservationSearchCriteria:
    salon_id: Optional[str] = None
    customer_id: Optional[str] = None
    staff_id: Optional[str] = None
    service_id: Optional[str] = None
    status: Optional[ReservationStatusKind] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_paid: Optional[bool] = None


@dataclass(frozen=True)
class BookingSearchCriteria:
    salon_id: Optional[str] = None
    customer_id: Optional[str] = None
    status: Optional[BookingStatusKind] = None
    payment_status: Optional[PaymentStatus] = None


@dataclass(frozen=True)
class NewReservation:
    """Validated data for a reservation insert."""
    salon_id: str
    customer_id: str
    staff_id: str
    service_id: str
    start_time: datetime
    end_time: datetime
    total_amount: int
    created_by: str
    created_at: datetime
    notes: Optional[str] = None
    deposit_amount: Optional[int] = None
    confirmed: bool = False


@dataclass(frozen=True)
class ReservationUpdate:
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    staff_id: Optional[str] = None
    notes: Optional[str] = None
    updated_by: str = "system"
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class NewBooking:
    salon_id: str
    customer_id: str
    reservation_ids: list[str]
    total_amount: int
    discount_amount: Optional[int]
    final_amount: int
    created_by: str
    created_at: datetime
    payment_method: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class ServiceInfo:
    """Duration and price of a bookable service.

    ``duration_minutes`` is ``None`` for services without a fixed length;
    callers then fall back to the configured default slot length.
    ``overtime_rate_per_minute`` of 0 defers to the salon-wide rate.
    """
    id: str
    name: str
    duration_minutes: Optional[int]
    price: int
    overtime_rate_per_minute: int = 0
    is_active: bool = True


class ReservationRepository(Protocol):
    async def find_by_id(self, reservation_id: str) -> Result[Reservation]: ...

    async def create(self, data: NewReservation) -> Result[Reservation]: ...

    async def update(self, reservation_id: str, data: ReservationUpdate) -> Result[Reservation]: ...

    async def confirm(
        self, reservation_id: str, confirmed_by: str, at: datetime
    ) -> Result[Reservation]: ...

    async def cancel(
        self, reservation_id: str, reason: str, cancelled_by: str, at: datetime
    ) -> Result[Reservation]: ...

    async def complete(
        self, reservation_id: str, completed_by: str, at: datetime
    ) -> Result[Reservation]: ...

    async def mark_as_no_show(
        self, reservation_id: str, marked_by: str, at: datetime
    ) -> Result[Reservation]: ...

    async def update_payment_status(
        self, reservation_id: str, is_paid: bool, updated_by: str, at: datetime
    ) -> Result[Reservation]: ...

    async def assign_booking(
        self, reservation_id: str, booking_id: str, updated_by: str, at: datetime
    ) -> Result[Reservation]: ...

    async def search(
        self, criteria: ReservationSearchCriteria, pagination: Pagination
    ) -> Result[PaginatedResult[Reservation]]: ...

    async def find_by_customer(
        self, customer_id: str, pagination: Pagination
    ) -> Result[PaginatedResult[Reservation]]: ...

    async def find_by_staff_and_date_range(
        self, staff_id: str, start: datetime, end: datetime
    ) -> Result[list[Reservation]]: ...

    async def check_time_slot_conflict(
        self,
        staff_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> Result[bool]: ...

    async def count_by_date(
        self, salon_id: str, start: datetime, end: datetime
    ) -> Result[dict[str, int]]: ...


class BookingRepository(Protocol):
    async def find_by_id(self, booking_id: str) -> Result[Booking]: ...

    async def create(self, data: NewBooking) -> Result[Booking]: ...

    async def update_payment(
        self,
        booking_id: str,
        payment_status: PaymentStatus,
        payment_method: Optional[str],
        updated_by: str,
        at: datetime,
    ) -> Result[Booking]: ...

    async def confirm(
        self, booking_id: str, confirmed_by: str, at: datetime
    ) -> Result[Booking]: ...

    async def cancel(
        self,
        booking_id: str,
        reason: str,
        cancelled_by: str,
        at: datetime,
        refund_amount: int = 0,
    ) -> Result[Booking]:
        """Cancel; a positive refund also moves payment_status to refunded."""
        ...

    async def complete(
        self, booking_id: str, completed_by: str, at: datetime, overtime_charge: int = 0
    ) -> Result[Booking]: ...

    async def mark_as_no_show(
        self, booking_id: str, marked_by: str, at: datetime
    ) -> Result[Booking]: ...

    async def search(
        self, criteria: BookingSearchCriteria, pagination: Pagination
    ) -> Result[PaginatedResult[Booking]]: ...

    async def count_by_status(self, salon_id: str) -> Result[dict[str, int]]: ...


class ServiceRepository(Protocol):
    async def find_by_id(self, service_id: str) -> Result[ServiceInfo]: ...


class StaffScheduleRepository(Protocol):
    async def working_hours(self, staff_id: str, day: date) -> Result[Optional[WorkingHours]]:
        """Working window for the day, or ``None`` when the staff member is off."""
        ...
