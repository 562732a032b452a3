"""
Success/failure wrapper carried through every public operation.

Expected failures (validation, guards, conflicts, repository errors) travel
as ``Err`` values. Exceptions are reserved for programmer errors.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from salonbook.domain.errors import DomainError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: DomainError

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


def is_ok(result: "Result") -> bool:
    return isinstance(result, Ok)


def is_err(result: "Result") -> bool:
    return isinstance(result, Err)
