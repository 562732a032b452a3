from salonbook.domain.errors import DomainError, ErrorType, FieldError
from salonbook.domain.result import Err, Ok, Result, is_err, is_ok

__all__ = [
    "DomainError",
    "ErrorType",
    "FieldError",
    "Ok",
    "Err",
    "Result",
    "is_ok",
    "is_err",
]
