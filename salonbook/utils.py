"""Shared utilities used across the reservation engine."""

import calendar
import uuid
from datetime import datetime, timezone


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC already.

    Examples:
        >>> ensure_utc(datetime(2024, 6, 1, 10, 0)).isoformat()
        '2024-06-01T10:00:00+00:00'
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the end of the target month.

    Examples:
        >>> add_months(datetime(2024, 11, 30), 3).date().isoformat()
        '2025-02-28'
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def is_valid_uuid(value: str) -> bool:
    """Check whether a string is a canonical UUID (any case)."""
    try:
        uuid.UUID(value)
    except (ValueError, AttributeError, TypeError):
        return False
    return len(value) == 36


def new_id() -> str:
    """Generate a new opaque entity identifier."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Current instant in UTC. Injected as the default clock."""
    return datetime.now(timezone.utc)
