"""
Pure validation of time ranges, amounts, and raw request payloads.

Every function here is side-effect free and must run before any state
mutation or repository write. Failures are returned as ``Err`` values.
"""

from datetime import datetime
from typing import Any, Mapping, NamedTuple, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from salonbook.domain.errors import DomainError, ErrorType, FieldError
from salonbook.domain.result import Err, Ok, Result
from salonbook.utils import add_months, ensure_utc

ModelT = TypeVar("ModelT", bound=BaseModel)

DEFAULT_MAX_ADVANCE_MONTHS = 3
DEFAULT_MAX_AMOUNT = 10_000_000


class TimeRange(NamedTuple):
    start: datetime
    end: datetime


def validate_time_range(
    start: datetime,
    end: datetime,
    now: datetime,
    max_advance_months: int = DEFAULT_MAX_ADVANCE_MONTHS,
) -> Result[TimeRange]:
    """Check ordering, that start is not in the past, and the look-ahead horizon."""
    start, end, now = ensure_utc(start), ensure_utc(end), ensure_utc(now)

    if start >= end:
        return Err(DomainError(
            type=ErrorType.INVALID_TIME_RANGE,
            message="Start time must be before end time",
        ))
    if start < now:
        return Err(DomainError(
            type=ErrorType.PAST_TIME_NOT_ALLOWED,
            message="Cannot create reservation in the past",
        ))
    horizon = add_months(now, max_advance_months)
    if start > horizon:
        return Err(DomainError(
            type=ErrorType.INVALID_TIME_RANGE,
            message=f"Cannot book more than {max_advance_months} months in advance",
        ))
    return Ok(TimeRange(start, end))


def validate_amount(amount: int, max_amount: int = DEFAULT_MAX_AMOUNT) -> Result[int]:
    if amount < 0:
        return Err(DomainError(
            type=ErrorType.INVALID_AMOUNT,
            message="Amount cannot be negative",
        ))
    if amount > max_amount:
        return Err(DomainError(
            type=ErrorType.INVALID_AMOUNT,
            message=f"Amount cannot exceed {max_amount}",
        ))
    return Ok(amount)


def validate_deposit_amount(deposit: Optional[int], total: int) -> Result[Optional[int]]:
    if deposit is None:
        return Ok(None)
    if deposit < 0:
        return Err(DomainError(
            type=ErrorType.INVALID_AMOUNT,
            message="Deposit amount cannot be negative",
        ))
    if deposit > total:
        return Err(DomainError(
            type=ErrorType.INVALID_AMOUNT,
            message="Deposit amount cannot exceed total amount",
        ))
    return Ok(deposit)


def validate_discount(discount: Optional[int], total: int) -> Result[int]:
    """Discounts are optional; a present discount must lie within [0, total]."""
    if discount is None:
        return Ok(0)
    if discount < 0 or discount > total:
        return Err(DomainError(
            type=ErrorType.INVALID_AMOUNT,
            message=f"Discount must be between 0 and {total}",
        ))
    return Ok(discount)


def validate_reason(reason: Optional[str]) -> Result[str]:
    if reason is None or not reason.strip():
        return Err(DomainError(
            type=ErrorType.INVALID_REQUEST,
            message="Cancellation reason is required",
            field_errors=[FieldError("reason", "must not be empty")],
        ))
    return Ok(reason.strip())


def validate_reservation_ids(reservation_ids: list[str]) -> Result[list[str]]:
    errors: list[FieldError] = []
    if not reservation_ids:
        errors.append(FieldError("reservation_ids", "At least one reservation ID is required"))
    elif len(set(reservation_ids)) != len(reservation_ids):
        errors.append(FieldError("reservation_ids", "Reservation IDs must be unique"))
    if errors:
        return Err(DomainError(
            type=ErrorType.VALIDATION_FAILED,
            message="Invalid reservation list",
            field_errors=errors,
        ))
    return Ok(list(reservation_ids))


def parse_input(model_cls: type[ModelT], payload: Mapping[str, Any]) -> Result[ModelT]:
    """Build an input record from a raw mapping.

    Pydantic errors become a single ``validation_failed`` error with one
    field/message pair per problem. Malformed ids are reported as
    ``invalid_id`` so callers can tell them apart from shape errors.
    """
    try:
        return Ok(model_cls.model_validate(dict(payload)))
    except ValidationError as e:
        field_errors = [
            FieldError(".".join(str(part) for part in err["loc"]) or "__root__", err["msg"])
            for err in e.errors()
        ]
        only_ids = all("not a valid id" in fe.message for fe in field_errors)
        return Err(DomainError(
            type=ErrorType.INVALID_ID if only_ids else ErrorType.VALIDATION_FAILED,
            message=f"Invalid {model_cls.__name__}",
            field_errors=field_errors,
        ))
