from salonbook.repositories.base import (
    BookingRepository,
    BookingSearchCriteria,
    PaginatedResult,
    Pagination,
    ReservationRepository,
    ReservationSearchCriteria,
    ServiceInfo,
    ServiceRepository,
    StaffScheduleRepository,
)

__all__ = [
    "ReservationRepository",
    "BookingRepository",
    "ServiceRepository",
    "StaffScheduleRepository",
    "ReservationSearchCriteria",
    "BookingSearchCriteria",
    "Pagination",
    "PaginatedResult",
    "ServiceInfo",
]
