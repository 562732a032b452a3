from salonbook.schemas.booking_schema import Booking, BookingStatusKind, PaymentStatus
from salonbook.schemas.reservation_schema import (
    Reservation,
    ReservationStatusKind,
)
from salonbook.schemas.slot_schema import AvailableSlot, WorkingHours

__all__ = [
    "Reservation",
    "ReservationStatusKind",
    "Booking",
    "BookingStatusKind",
    "PaymentStatus",
    "AvailableSlot",
    "WorkingHours",
]
