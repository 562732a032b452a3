"""Error taxonomy for the reservation engine. All errors are values."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ErrorType(str, Enum):
    INVALID_TIME_RANGE = "invalid_time_range"
    PAST_TIME_NOT_ALLOWED = "past_time_not_allowed"
    INVALID_AMOUNT = "invalid_amount"
    SLOT_NOT_AVAILABLE = "slot_not_available"
    SLOT_CONFLICT = "slot_conflict"
    NOT_FOUND = "not_found"
    INVALID_STATUS = "invalid_status"
    CANNOT_CANCEL = "cannot_cancel"
    SERVICE_NOT_FOUND = "service_not_found"
    DATABASE_ERROR = "database_error"
    VALIDATION_FAILED = "validation_failed"
    INVALID_REQUEST = "invalid_request"
    INVALID_ID = "invalid_id"
    SYSTEM_ERROR = "system_error"


@dataclass(frozen=True)
class FieldError:
    """A single field-level validation failure."""
    field: str
    message: str


@dataclass(frozen=True)
class DomainError:
    """Tagged failure value returned inside ``Err``."""
    type: ErrorType
    message: str
    field_errors: list[FieldError] = field(default_factory=list)
    entity: Optional[str] = None
    entity_id: Optional[str] = None


_HTTP_STATUS: dict[ErrorType, int] = {
    ErrorType.NOT_FOUND: 404,
    ErrorType.SERVICE_NOT_FOUND: 404,
    ErrorType.INVALID_STATUS: 409,
    ErrorType.CANNOT_CANCEL: 409,
    ErrorType.SLOT_CONFLICT: 409,
    ErrorType.SLOT_NOT_AVAILABLE: 409,
    ErrorType.INVALID_TIME_RANGE: 400,
    ErrorType.PAST_TIME_NOT_ALLOWED: 400,
    ErrorType.INVALID_AMOUNT: 400,
    ErrorType.VALIDATION_FAILED: 400,
    ErrorType.INVALID_REQUEST: 400,
    ErrorType.INVALID_ID: 400,
    ErrorType.DATABASE_ERROR: 500,
    ErrorType.SYSTEM_ERROR: 500,
}


def http_status_for(error: DomainError) -> int:
    """HTTP-equivalent status for the boundary this engine feeds."""
    return _HTTP_STATUS[error.type]


def not_found(entity: str, entity_id: str) -> DomainError:
    return DomainError(
        type=ErrorType.NOT_FOUND,
        message=f"{entity} {entity_id} not found",
        entity=entity,
        entity_id=entity_id,
    )


def database_error(message: str) -> DomainError:
    return DomainError(type=ErrorType.DATABASE_ERROR, message=message)


def as_system_error(error: DomainError) -> DomainError:
    """Wrap a persistence failure with orchestration context.

    Non-persistence errors are returned unchanged.
    """
    if error.type != ErrorType.DATABASE_ERROR:
        return error
    return DomainError(
        type=ErrorType.SYSTEM_ERROR,
        message=f"Repository failure: {error.message}",
        entity=error.entity,
        entity_id=error.entity_id,
    )
