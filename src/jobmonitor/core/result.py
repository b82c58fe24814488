"""
Returned-failure envelope for schedule parsing.

``parse_cron`` runs on every keystroke of a schedule form, so a bad
expression is an expected outcome rather than an exceptional one.  It comes
back as ``Err(CronValidationError)`` and the caller branches with ``match``.

Manifesto:
    - **Failures are values:** callers cannot forget to handle them
    - **Match-friendly:** ``Ok`` and ``Err`` are frozen dataclasses, so
      ``case Ok(expression):`` / ``case Err(error):`` destructure them

Examples:
    >>> from jobmonitor.scheduling.cron import parse_cron
    >>> match parse_cron("* *"):
    ...     case Ok(expression):
    ...         print(expression)
    ...     case Err(error):
    ...         print(error.category.value)
    VALIDATION

Tags:
    result-pattern, error-handling, job-monitor
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """A successful outcome."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, f: Callable[[T], U]) -> Result[U]:
        return Ok(f(self.value))

    def map_err(self, f: Callable[[Exception], Exception]) -> Result[T]:
        return self


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """A failed outcome; ``unwrap()`` raises the carried error."""

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, f: Callable[[T], U]) -> Result[U]:
        return Err(self.error)

    def map_err(self, f: Callable[[Exception], Exception]) -> Result[T]:
        return Err(f(self.error))


Result = Ok[T] | Err[T]


__all__ = ["Err", "Ok", "Result"]
