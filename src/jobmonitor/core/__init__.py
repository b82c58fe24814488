"""
Core primitives shared by the scheduling and execution packages.

Modules
-------
errors      Typed error hierarchy (JobMonitorError and subclasses)
result      Ok/Err result envelope for returned failures
logging     structlog configuration and helpers
settings    pydantic-settings configuration (JOBMONITOR_*)
"""

from jobmonitor.core.errors import (
    ChannelError,
    ConfigError,
    CronValidationError,
    ErrorCategory,
    ErrorContext,
    JobMonitorError,
    ParseError,
    StreamProtocolError,
    TransientError,
    ValidationError,
    is_retryable,
)
from jobmonitor.core.result import Err, Ok, Result

__all__ = [
    "ChannelError",
    "ConfigError",
    "CronValidationError",
    "Err",
    "ErrorCategory",
    "ErrorContext",
    "JobMonitorError",
    "Ok",
    "ParseError",
    "Result",
    "StreamProtocolError",
    "TransientError",
    "ValidationError",
    "is_retryable",
]
