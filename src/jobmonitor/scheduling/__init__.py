"""
Schedule preview engine.

Interprets cron-style expressions locally: parse, match, list upcoming runs,
describe, and lint, without a server round-trip.

Modules
-------
cron        CronExpression, parse_cron, match_field, match_weekday, next_executions
describe    Preset catalogue, describe_cron, format_datetime
lint        lint_cron diagnostics for tokens that can never match
preview     SchedulePreview aggregate used by forms and the CLI
"""

from jobmonitor.scheduling.cron import (
    CronExpression,
    match_field,
    match_weekday,
    next_executions,
    parse_cron,
)
from jobmonitor.scheduling.describe import (
    CRON_PRESETS,
    CronPreset,
    describe_cron,
    find_preset,
    format_datetime,
)
from jobmonitor.scheduling.lint import CronDiagnostic, lint_cron
from jobmonitor.scheduling.preview import SchedulePreview, preview_schedule

__all__ = [
    "CRON_PRESETS",
    "CronDiagnostic",
    "CronExpression",
    "CronPreset",
    "SchedulePreview",
    "describe_cron",
    "find_preset",
    "format_datetime",
    "lint_cron",
    "match_field",
    "match_weekday",
    "next_executions",
    "parse_cron",
    "preview_schedule",
]
