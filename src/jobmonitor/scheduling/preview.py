"""Schedule preview: description, upcoming runs and diagnostics in one call.

The preview is a pure function of (expression, reference time, count); the
same inputs always give the same output.  Invalid expressions produce a
preview with ``valid=False`` and no runs instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from jobmonitor.core.logging import get_logger
from jobmonitor.core.result import Err, Ok
from jobmonitor.scheduling.cron import DEFAULT_SEARCH_MINUTES, next_executions, parse_cron
from jobmonitor.scheduling.describe import INVALID_DESCRIPTION, describe_cron, format_datetime
from jobmonitor.scheduling.lint import CronDiagnostic, lint_cron

logger = get_logger(__name__)


@dataclass(frozen=True)
class SchedulePreview:
    """What a schedule form shows next to the expression input."""

    expression: str
    valid: bool
    description: str
    next_runs: list[datetime] = field(default_factory=list)
    diagnostics: list[CronDiagnostic] = field(default_factory=list)
    error: str | None = None

    @property
    def has_upcoming_runs(self) -> bool:
        return bool(self.next_runs)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "expression": self.expression,
            "valid": self.valid,
            "description": self.description,
            "next_runs": [format_datetime(run) for run in self.next_runs],
            "diagnostics": [
                {
                    "code": d.code,
                    "severity": d.severity.value,
                    "field": d.field,
                    "message": d.message,
                }
                for d in self.diagnostics
            ],
            "error": self.error,
        }


def preview_schedule(
    raw: str,
    *,
    now: datetime | None = None,
    count: int = 3,
    search_days: int = DEFAULT_SEARCH_MINUTES // (24 * 60),
) -> SchedulePreview:
    """Build a :class:`SchedulePreview` for ``raw``.

    Args:
        raw: Schedule expression as typed.
        now: Reference time; defaults to the current local time.
        count: Number of upcoming runs to compute.
        search_days: Horizon searched for each run.
    """
    match parse_cron(raw):
        case Err(error):
            logger.debug("cron_preview_invalid", expression=raw, error=str(error))
            return SchedulePreview(
                expression=raw,
                valid=False,
                description=INVALID_DESCRIPTION,
                error=str(error),
            )
        case Ok(expression):
            pass

    reference = now if now is not None else datetime.now()
    runs = next_executions(
        expression,
        reference,
        count,
        search_minutes=search_days * 24 * 60,
    )
    if len(runs) < count:
        logger.debug(
            "cron_preview_short",
            expression=raw,
            requested=count,
            found=len(runs),
        )
    return SchedulePreview(
        expression=raw,
        valid=True,
        description=describe_cron(expression),
        next_runs=runs,
        diagnostics=lint_cron(expression),
    )


__all__ = ["SchedulePreview", "preview_schedule"]
