"""
Centralized configuration with environment variable overrides.

Booking policy thresholds and availability defaults live here. Nothing is
hardcoded in engine or use-case logic; every component also accepts an
explicit config so tests can inject their own.
"""

import logging
import os
import re
from dataclasses import dataclass, field

from dotenv import load_dotenv

from salonbook.logging_context import attach_request_id_filter

load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(name)s] [%(request_id)s] %(levelname)s: %(message)s"

_CLOCK_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag (true/false/1/0/yes/no) from an env var."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class PolicyConfig:
    """Business rules applied by the reservation lifecycle."""

    cancellation_lead_hours: float = _safe_float("CANCELLATION_LEAD_HOURS", "1")
    modification_lead_hours: float = _safe_float("MODIFICATION_LEAD_HOURS", "12")
    max_advance_months: int = _safe_int("MAX_ADVANCE_MONTHS", "3")
    max_amount: int = _safe_int("MAX_AMOUNT", "10000000")
    overtime_rate_per_minute: int = _safe_int("OVERTIME_RATE_PER_MINUTE", "0")
    allow_no_show_from_pending: bool = _safe_bool("ALLOW_NO_SHOW_FROM_PENDING", "false")


@dataclass(frozen=True)
class AvailabilityConfig:
    """Defaults for slot discovery."""

    workday_start: str = os.getenv("WORKDAY_START", "09:00")
    workday_end: str = os.getenv("WORKDAY_END", "18:00")
    allow_past_date_queries: bool = _safe_bool("ALLOW_PAST_DATE_QUERIES", "true")
    default_slot_minutes: int = _safe_int("DEFAULT_SLOT_MINUTES", "60")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    policy: PolicyConfig = field(default_factory=PolicyConfig)
    availability: AvailabilityConfig = field(default_factory=AvailabilityConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "salonbook")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    policy = config.policy
    if policy.cancellation_lead_hours < 0:
        raise ValueError(
            f"CANCELLATION_LEAD_HOURS must be >= 0, got {policy.cancellation_lead_hours}"
        )
    if policy.max_advance_months < 1:
        raise ValueError(
            f"MAX_ADVANCE_MONTHS must be >= 1, got {policy.max_advance_months}"
        )
    if policy.max_amount < 1:
        raise ValueError(f"MAX_AMOUNT must be >= 1, got {policy.max_amount}")
    if policy.overtime_rate_per_minute < 0:
        raise ValueError(
            f"OVERTIME_RATE_PER_MINUTE must be >= 0, got {policy.overtime_rate_per_minute}"
        )
    if policy.modification_lead_hours < 0:
        raise ValueError(
            f"MODIFICATION_LEAD_HOURS must be >= 0, got {policy.modification_lead_hours}"
        )

    availability = config.availability
    for name, value in [
        ("WORKDAY_START", availability.workday_start),
        ("WORKDAY_END", availability.workday_end),
    ]:
        if not _CLOCK_PATTERN.match(value):
            raise ValueError(f"{name} must be HH:MM, got {value!r}")
    if availability.workday_start >= availability.workday_end:
        raise ValueError(
            "WORKDAY_START must be before WORKDAY_END, "
            f"got {availability.workday_start} - {availability.workday_end}"
        )
    if availability.default_slot_minutes < 1:
        raise ValueError(
            f"DEFAULT_SLOT_MINUTES must be >= 1, got {availability.default_slot_minutes}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    attach_request_id_filter(logging.getLogger())
    logger.info("Configuration loaded for '%s'", config.app_name)
    return config


# Singleton instance
settings = load_config()
