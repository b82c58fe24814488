"""
Structured logging for job-monitor.

structlog is routed through the standard library so that level filtering
and logger names come from ``logging``.  Every line is written to stderr;
stdout is reserved for command output.

Processor chain::

    filter_by_level → contextvars → TimeStamper(iso) → level → logger name
      → stack/exc info → service.name → [ECS renames] → JSON | console

Events are snake_case names with keyword fields::

    logger = get_logger(__name__)
    logger.info("stream_opened", job_log_id=42)

    with LogContext(job_log_id=42):
        logger.info("step_started")     # carries job_log_id

Tags:
    logging, structlog, json-logging, job-monitor
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from contextvars import Token
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

DEFAULT_SERVICE = "jobmonitor"


def _service_name(service: str) -> Processor:
    def add_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service.name", service)
        return event_dict

    return add_service


def _ecs_field_names(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Rename ``timestamp``/``level`` to the keys log shippers index on."""
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")
    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = DEFAULT_SERVICE,
) -> None:
    """Configure structlog and the stdlib root handler.

    Args:
        level: Level name (``DEBUG``, ``INFO``, ``WARNING``, ``ERROR``).
        json_format: JSON lines when True, coloured console output when
            False; when None, JSON unless stderr is a terminal.
        service: Value of the ``service.name`` field.
    """
    if json_format is None:
        json_format = not sys.stderr.isatty()
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _service_name(service),
    ]
    if json_format:
        processors += [_ecs_field_names, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level, force=True)
    logging.getLogger(DEFAULT_SERVICE).setLevel(numeric_level)


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


def bind_context(**values: Any) -> Mapping[str, Token[Any]]:
    """Bind values to every later log line in this context."""
    return structlog.contextvars.bind_contextvars(**values)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind values for the duration of a ``with`` (or ``async with``) block.

    On exit the previous values are restored, so nested scopes that bind the
    same key do not clobber the outer one.
    """

    def __init__(self, **values: Any) -> None:
        self._values = values
        self._tokens: Mapping[str, Token[Any]] = {}

    def __enter__(self) -> LogContext:
        self._tokens = bind_context(**self._values)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, *exc_info: Any) -> None:
        self.__exit__(*exc_info)


__all__ = [
    "DEFAULT_SERVICE",
    "LogContext",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
]
