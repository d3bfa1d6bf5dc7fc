"""Explicit outcome of a mutating call made by a view."""
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union

from .api_client import NetworkFailure

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    ok: bool = True


@dataclass(frozen=True)
class Failure:
    error: Exception
    message: str
    retryable: bool = False
    ok: bool = False


Result = Union[Success[T], Failure]


def failure_from(error: Exception, message: Optional[str] = None) -> Failure:
    return Failure(
        error=error,
        message=message or str(error),
        retryable=isinstance(error, NetworkFailure),
    )
