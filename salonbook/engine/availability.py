"""
Staff calendar conflict detection and free-slot discovery.

Intervals are half-open ``[start, end)``: two appointments that merely
touch (one ends at 10:00, the next starts at 10:00) do not conflict.
Cancelled reservations release their interval; every other status keeps it.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Iterator, Optional

from salonbook.config import AvailabilityConfig, settings
from salonbook.schemas.reservation_schema import Reservation, ReservationStatusKind
from salonbook.schemas.slot_schema import AvailableSlot, WorkingHours
from salonbook.utils import ensure_utc

logger = logging.getLogger(__name__)


def overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    """Half-open interval overlap test."""
    return start < other_end and other_start < end


def occupying(reservations: Iterable[Reservation]) -> list[Reservation]:
    """Reservations that still hold their slot (everything but cancelled)."""
    return [
        r for r in reservations if r.status_kind != ReservationStatusKind.CANCELLED
    ]


def find_conflicts(
    staff_id: str,
    start: datetime,
    end: datetime,
    reservations: Iterable[Reservation],
    exclude_id: Optional[str] = None,
) -> list[Reservation]:
    """Return the staff member's live reservations overlapping ``[start, end)``."""
    start, end = ensure_utc(start), ensure_utc(end)
    return [
        r for r in occupying(reservations)
        if r.staff_id == staff_id
        and r.id != exclude_id
        and overlaps(start, end, r.start_time, r.end_time)
    ]


def default_working_hours(config: Optional[AvailabilityConfig] = None) -> WorkingHours:
    cfg = config or settings.availability
    return WorkingHours(
        start=time.fromisoformat(cfg.workday_start),
        end=time.fromisoformat(cfg.workday_end),
    )


def working_window(day: date, hours: WorkingHours) -> tuple[datetime, datetime]:
    """Absolute UTC bounds of a working day."""
    return (
        datetime.combine(day, hours.start, tzinfo=timezone.utc),
        datetime.combine(day, hours.end, tzinfo=timezone.utc),
    )


def _segment(
    staff_id: str, free_start: datetime, free_end: datetime, step: timedelta
) -> Iterator[AvailableSlot]:
    cursor = free_start
    while cursor + step <= free_end:
        yield AvailableSlot(staff_id=staff_id, start_time=cursor, end_time=cursor + step)
        cursor += step


def iter_available_slots(
    staff_id: str,
    day: date,
    duration_minutes: int,
    working_hours: WorkingHours,
    reservations: Iterable[Reservation],
) -> Iterator[AvailableSlot]:
    """
    Yield every free slot of ``duration_minutes`` on ``day``, in order.

    Occupied intervals are subtracted from the working window; each remaining
    gap is cut into consecutive slots starting at the gap's beginning. A gap
    shorter than the duration yields nothing.
    """
    if duration_minutes <= 0:
        raise ValueError(f"duration_minutes must be positive, got {duration_minutes}")

    window_start, window_end = working_window(day, working_hours)
    step = timedelta(minutes=duration_minutes)

    busy = sorted(
        (
            r for r in occupying(reservations)
            if r.staff_id == staff_id
            and overlaps(window_start, window_end, r.start_time, r.end_time)
        ),
        key=lambda r: r.start_time,
    )

    cursor = window_start
    for reservation in busy:
        busy_start = max(reservation.start_time, window_start)
        busy_end = min(reservation.end_time, window_end)
        if busy_start > cursor:
            yield from _segment(staff_id, cursor, busy_start, step)
        cursor = max(cursor, busy_end)

    if cursor < window_end:
        yield from _segment(staff_id, cursor, window_end, step)


def find_available_slots(
    staff_id: str,
    day: date,
    duration_minutes: int,
    working_hours: WorkingHours,
    reservations: Iterable[Reservation],
) -> list[AvailableSlot]:
    """Materialized form of ``iter_available_slots``."""
    slots = list(iter_available_slots(
        staff_id, day, duration_minutes, working_hours, list(reservations)
    ))
    logger.debug(
        "Found %d slot(s) of %d min for staff %s on %s",
        len(slots), duration_minutes, staff_id, day.isoformat(),
    )
    return slots
