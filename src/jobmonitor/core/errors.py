"""
Error types shared by the scheduling and execution packages.

A bad schedule expression is returned as ``Err(CronValidationError)``; a
broken event channel reaches the session's ``on_error`` callback as a
``ChannelError``.  The CLI renders both the same way, by category.

Manifesto:
    - **One base class:** every failure the package produces is a
      :class:`JobMonitorError` with a category and a retry flag
    - **Context travels with the error:** job log id, expression, URL and
      HTTP status are attached with :meth:`JobMonitorError.with_context`
    - **Causes are chained:** the httpx or json exception is kept as
      ``cause`` (and ``__cause__``)

Hierarchy::

    JobMonitorError                 INTERNAL
    ├── ValidationError             VALIDATION
    │   └── CronValidationError
    ├── TransientError              NETWORK, retryable
    │   └── ChannelError
    ├── ParseError                  PARSE
    │   └── StreamProtocolError
    └── ConfigError                 CONFIG

Examples:
    >>> ChannelError("stream dropped").with_context(job_log_id=42).context.job_log_id
    42

Tags:
    error-handling, exception-hierarchy, job-monitor
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Coarse classification used for display and exit handling."""

    VALIDATION = "VALIDATION"
    NETWORK = "NETWORK"
    PARSE = "PARSE"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """Where an error happened.  Unknown keys land in ``extra``."""

    job_log_id: int | None = None
    expression: str | None = None
    url: str | None = None
    http_status: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = {k: v for k, v in asdict(self).items() if k != "extra" and v is not None}
        data.update(self.extra)
        return data


class JobMonitorError(Exception):
    """Base class; subclasses pick the category and retry default."""

    category: ErrorCategory = ErrorCategory.INTERNAL
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if retryable is not None:
            self.retryable = retryable
        self.context = context or ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **values: Any) -> JobMonitorError:
        """Attach context in place and return ``self`` for ``raise``/callback use."""
        for key, value in values.items():
            if key in ErrorContext.__dataclass_fields__ and key != "extra":
                setattr(self.context, key, value)
            else:
                self.context.extra[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Flat representation for structured logs and ``--json`` output."""
        data: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context = self.context.to_dict()
        if context:
            data["context"] = context
        if self.cause is not None:
            data["cause"] = repr(self.cause)
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, category={self.category.value})"


class ValidationError(JobMonitorError):
    """User input that cannot be used as given; retrying will not help."""

    category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        constraint: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.constraint = constraint

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        for key in ("field", "value", "constraint"):
            if getattr(self, key) is not None:
                data[key] = getattr(self, key)
        return data


class CronValidationError(ValidationError):
    """Schedule expression with the wrong number of fields."""

    def __init__(self, message: str, *, value: str | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("constraint", "field-count")
        super().__init__(message, field="expression", value=value, **kwargs)
        self.context.expression = value


class TransientError(JobMonitorError):
    """May succeed if tried again.  Sessions never retry on their own."""

    category = ErrorCategory.NETWORK
    retryable = True


class ChannelError(TransientError):
    """The event channel could not be opened, or failed while streaming."""


class ParseError(JobMonitorError):
    category = ErrorCategory.PARSE


class StreamProtocolError(ParseError):
    """A channel frame whose data is not a JSON object."""


class ConfigError(JobMonitorError):
    """Settings could not be loaded from the environment or ``.env``."""

    category = ErrorCategory.CONFIG


def is_retryable(error: BaseException) -> bool:
    return isinstance(error, JobMonitorError) and error.retryable


__all__ = [
    "ChannelError",
    "ConfigError",
    "CronValidationError",
    "ErrorCategory",
    "ErrorContext",
    "JobMonitorError",
    "ParseError",
    "StreamProtocolError",
    "TransientError",
    "ValidationError",
    "is_retryable",
]
