"""Human-readable descriptions of schedule expressions.

``describe_cron`` is a display helper: it never raises.  Common schedules
come from a fixed preset catalogue; anything else is described field by
field.  Expressions are normalized before the preset lookup, so
``0 0 2 * * *``, ``0 0 2 * * ?`` and ``0 2 * * *`` read the same.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from jobmonitor.core.result import Err, Ok
from jobmonitor.scheduling.cron import WILDCARDS, CronExpression, parse_cron

INVALID_DESCRIPTION = "Invalid cron expression"
CUSTOM_DESCRIPTION = "Custom expression"


@dataclass(frozen=True)
class CronPreset:
    """A named, commonly used schedule."""

    label: str
    value: str
    description: str


CRON_PRESETS: tuple[CronPreset, ...] = (
    CronPreset("Every minute", "* * * * *", "Runs every minute"),
    CronPreset("Every hour", "0 * * * *", "Runs every hour on the hour"),
    CronPreset("Daily at 02:00", "0 2 * * *", "Runs every day at 02:00"),
    CronPreset("Daily at 12:00", "0 12 * * *", "Runs every day at 12:00"),
    CronPreset("Mondays at 02:00", "0 2 * * MON", "Runs every Monday at 02:00"),
    CronPreset("Monthly on the 1st at 02:00", "0 2 1 * *", "Runs on the 1st of every month at 02:00"),
    CronPreset("Weekdays at 09:00", "0 9 * * MON-FRI", "Runs Monday to Friday at 09:00"),
)

WEEKDAY_NAMES: dict[str, str] = {
    "MON": "Monday",
    "TUE": "Tuesday",
    "WED": "Wednesday",
    "THU": "Thursday",
    "FRI": "Friday",
    "SAT": "Saturday",
    "SUN": "Sunday",
    "0": "Sunday",
    "1": "Monday",
    "2": "Tuesday",
    "3": "Wednesday",
    "4": "Thursday",
    "5": "Friday",
    "6": "Saturday",
    "7": "Sunday",
}


def canonical_form(expression: CronExpression) -> str:
    """Comparable form: ``?`` becomes ``*`` and day names are upper-cased."""
    tokens = ["*" if token in WILDCARDS else token for token in expression.fields]
    tokens[4] = tokens[4].upper()
    return " ".join(tokens)


_PRESETS_BY_FORM: dict[str, CronPreset] = {
    canonical_form(parse_cron(preset.value).unwrap()): preset for preset in CRON_PRESETS
}


def find_preset(expression: CronExpression | str) -> CronPreset | None:
    """Return the preset ``expression`` is equivalent to, if any."""
    if isinstance(expression, str):
        match parse_cron(expression):
            case Ok(parsed):
                expression = parsed
            case Err():
                return None
    return _PRESETS_BY_FORM.get(canonical_form(expression))


def _weekday_name(token: str) -> str:
    token = token.strip()
    return WEEKDAY_NAMES.get(token.upper(), token)


def _describe_weekday(field: str) -> str:
    if "-" in field:
        start, _, end = field.partition("-")
        return f"on {_weekday_name(start)} to {_weekday_name(end)}"
    if "," in field:
        return "on " + ", ".join(_weekday_name(token) for token in field.split(","))
    return f"on {_weekday_name(field)}"


def _every(step: str, unit: str) -> str:
    if step == "1":
        return f"every {unit}"
    return f"every {step} {unit}s"


def describe_cron(expression: CronExpression | str) -> str:
    """Describe a schedule in plain English.

    Returns ``"Invalid cron expression"`` when the field count is wrong and
    ``"Custom expression"`` when every field is a wildcard but no preset
    matched.
    """
    if isinstance(expression, str):
        match parse_cron(expression):
            case Ok(parsed):
                expression = parsed
            case Err():
                return INVALID_DESCRIPTION

    preset = find_preset(expression)
    if preset is not None:
        return preset.description

    fragments: list[str] = []

    minute = expression.minute
    if "/" in minute:
        fragments.append(_every(minute.partition("/")[2], "minute"))
    elif minute not in WILDCARDS:
        fragments.append(f"at minute {minute}")

    hour = expression.hour
    if "/" in hour:
        fragments.append(_every(hour.partition("/")[2], "hour"))
    elif hour not in WILDCARDS:
        fragments.append(f"at hour {hour}")

    day_of_month = expression.day_of_month
    if "/" in day_of_month:
        fragments.append(_every(day_of_month.partition("/")[2], "day"))
    elif day_of_month not in WILDCARDS:
        fragments.append(f"on day {day_of_month} of the month")

    month = expression.month
    if "/" in month:
        fragments.append(_every(month.partition("/")[2], "month"))
    elif month not in WILDCARDS:
        fragments.append(f"in month {month}")

    if expression.day_of_week not in WILDCARDS:
        fragments.append(_describe_weekday(expression.day_of_week))

    if not fragments:
        return CUSTOM_DESCRIPTION
    text = ", ".join(fragments)
    return text[0].upper() + text[1:]


def format_datetime(moment: datetime) -> str:
    """Format as ``YYYY-MM-DD HH:MM:SS``."""
    return moment.strftime("%Y-%m-%d %H:%M:%S")


__all__ = [
    "CRON_PRESETS",
    "CUSTOM_DESCRIPTION",
    "INVALID_DESCRIPTION",
    "WEEKDAY_NAMES",
    "CronPreset",
    "canonical_form",
    "describe_cron",
    "find_preset",
    "format_datetime",
]
