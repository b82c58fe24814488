"""Diagnostics for schedule expressions.

Matching never raises on malformed field content; a bad token just never
matches.  That is the right behaviour for previews, but it hides typos.
``lint_cron`` reports them so a form can show *why* no upcoming runs are
listed.

Codes
-----
W001  step with a base other than ``*`` (``a/n``) is never evaluated
W002  range whose end is before its start never matches
W003  value outside the field's bounds never matches
W004  token that is not a number (or day name) never matches
W005  step in the day-of-week field is not supported
I001  day-of-month and day-of-week are both restricted; both must match

Example::

    for diagnostic in lint_cron(parse_cron("5/10 25 * * *").unwrap()):
        print(diagnostic)
    # [W001] WARNING in minute: ...
    # [W003] WARNING in hour: ...
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from jobmonitor.scheduling.cron import (
    FIELD_BOUNDS,
    WILDCARDS,
    CronExpression,
    parse_int,
    weekday_token,
)


class Severity(str, Enum):
    """Severity level for a lint diagnostic."""

    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class CronDiagnostic:
    """A single lint finding.

    Attributes:
        code: Short identifier (e.g. ``"W001"``).
        severity: ``warning`` or ``info``.
        field: Name of the offending field, if any.
        message: Human-readable description.
    """

    code: str
    severity: Severity
    message: str
    field: str | None = None

    def __str__(self) -> str:
        prefix = f"[{self.code}] {self.severity.value.upper()}"
        location = f" in {self.field}" if self.field else ""
        return f"{prefix}{location}: {self.message}"


def _parse_token(field_name: str, token: str) -> int | None:
    token = token.strip()
    if field_name == "day_of_week":
        return weekday_token(token)
    return parse_int(token)


def _check_single(field_name: str, token: str) -> list[CronDiagnostic]:
    low, high = FIELD_BOUNDS[field_name]
    number = _parse_token(field_name, token)
    if number is None:
        return [
            CronDiagnostic(
                code="W004",
                severity=Severity.WARNING,
                field=field_name,
                message=f"'{token}' is not a valid value and never matches",
            )
        ]
    if not low <= number <= high:
        return [
            CronDiagnostic(
                code="W003",
                severity=Severity.WARNING,
                field=field_name,
                message=f"{number} is outside {low}-{high} and never matches",
            )
        ]
    return []


def _check_field(field_name: str, token: str) -> list[CronDiagnostic]:
    if token in WILDCARDS:
        return []

    if "-" in token:
        start, _, end = token.partition("-")
        diagnostics = _check_single(field_name, start) + _check_single(field_name, end)
        if diagnostics:
            return diagnostics
        low, high = _parse_token(field_name, start), _parse_token(field_name, end)
        starts_on_sunday = field_name == "day_of_week" and low == 7
        if low is not None and high is not None and high < low and not starts_on_sunday:
            return [
                CronDiagnostic(
                    code="W002",
                    severity=Severity.WARNING,
                    field=field_name,
                    message=f"range {token} ends before it starts and never matches",
                )
            ]
        return []

    if "," in token:
        diagnostics: list[CronDiagnostic] = []
        for item in token.split(","):
            diagnostics.extend(_check_single(field_name, item))
        return diagnostics

    if "/" in token:
        base, _, step = token.partition("/")
        if field_name == "day_of_week":
            return [
                CronDiagnostic(
                    code="W005",
                    severity=Severity.WARNING,
                    field=field_name,
                    message=f"step '{token}' is not supported for days of the week",
                )
            ]
        step_size = parse_int(step)
        if step_size is None or step_size <= 0:
            return [
                CronDiagnostic(
                    code="W004",
                    severity=Severity.WARNING,
                    field=field_name,
                    message=f"step '{step}' must be a positive number",
                )
            ]
        if base != "*":
            return [
                CronDiagnostic(
                    code="W001",
                    severity=Severity.WARNING,
                    field=field_name,
                    message=f"only '*/n' steps are evaluated; '{token}' never matches",
                )
            ]
        return []

    return _check_single(field_name, token)


def lint_cron(expression: CronExpression) -> list[CronDiagnostic]:
    """Run every check against ``expression`` and return the findings."""
    diagnostics: list[CronDiagnostic] = []
    for field_name, token in expression.field_items():
        diagnostics.extend(_check_field(field_name, token))

    if expression.day_of_month not in WILDCARDS and expression.day_of_week not in WILDCARDS:
        diagnostics.append(
            CronDiagnostic(
                code="I001",
                severity=Severity.INFO,
                message="day of month and day of week must both match",
            )
        )
    return diagnostics


__all__ = ["CronDiagnostic", "Severity", "lint_cron"]
