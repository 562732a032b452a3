"""
Cancellation refund and overtime charge calculators.

Both are pure: no I/O, no clock, no reservation required. Amounts are
integer currency units; fractional results are floored for refunds and
overtime minutes are rounded up.
"""

import math
from datetime import datetime
from typing import Optional

from salonbook.schemas.reservation_schema import Reservation
from salonbook.utils import ensure_utc

# (minimum hours before start, refund percent), checked top to bottom
REFUND_TIERS: list[tuple[int, int]] = [
    (48, 100),
    (24, 70),
    (12, 50),
]


def hours_until(start: datetime, instant: datetime) -> float:
    """Hours from ``instant`` to ``start``; negative once start has passed."""
    return (ensure_utc(start) - ensure_utc(instant)).total_seconds() / 3600


def calculate_refund(paid_amount: int, hours_before_start: float) -> int:
    """Refund owed for a cancellation ``hours_before_start`` ahead of the start.

    Examples:
        >>> calculate_refund(10000, 30)
        7000
        >>> calculate_refund(3333, 12)
        1666
        >>> calculate_refund(10000, -2)
        0
    """
    if paid_amount <= 0:
        return 0
    for min_hours, percent in REFUND_TIERS:
        if hours_before_start >= min_hours:
            return paid_amount * percent // 100
    return 0


def calculate_overtime_charge(
    actual_end: datetime, scheduled_end: datetime, per_minute_rate: int
) -> int:
    """Charge for a service that ran past its scheduled end.

    Examples:
        >>> from datetime import datetime
        >>> calculate_overtime_charge(
        ...     datetime(2024, 6, 1, 11, 10, 30), datetime(2024, 6, 1, 11, 0), 100)
        1100
    """
    actual_end, scheduled_end = ensure_utc(actual_end), ensure_utc(scheduled_end)
    if actual_end <= scheduled_end:
        return 0
    overtime_minutes = math.ceil((actual_end - scheduled_end).total_seconds() / 60)
    return overtime_minutes * per_minute_rate


def paid_amount_for(reservation: Reservation) -> int:
    """Amount the customer has paid: full total if settled, else the deposit."""
    if reservation.is_paid:
        return reservation.total_amount
    return reservation.deposit_amount or 0


def refund_for_cancellation(
    reservation: Reservation, cancelled_at: datetime, paid_amount: Optional[int] = None
) -> tuple[int, float]:
    """Refund and hours-before-start for cancelling ``reservation`` at ``cancelled_at``."""
    paid = paid_amount_for(reservation) if paid_amount is None else paid_amount
    hours = hours_until(reservation.start_time, cancelled_at)
    return calculate_refund(paid, hours), hours
