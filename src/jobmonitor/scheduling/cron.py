"""Cron expression parsing, field matching and upcoming-run search.

Manifesto:
    Operators type schedule expressions into a form and expect to see, right
    away, when the job will fire next.  Everything here is pure and
    synchronous so it can run on every keystroke. Parsing only checks the
    field count; a malformed field simply never matches.

Supported syntax (5 fields: ``minute hour day-of-month month day-of-week``)::

    *  ?        any value
    a-b         inclusive range (no wraparound; b < a never matches)
    a,b,c       list of integers
    */n         every n-th value (value % n == 0)
    a/n         accepted but never matches (see lint_cron)
    n           a single value within the field's bounds
    MON..SUN    day-of-week names; 0 and 7 both mean Sunday

A 6-field expression whose first (seconds) token is ``0`` is accepted and the
seconds field dropped.  Day-of-month and day-of-week must *both* match, where
traditional cron accepts either.

Examples:
    >>> from datetime import datetime
    >>> expr = parse_cron("0 2 * * *").unwrap()
    >>> next_executions(expr, datetime(2025, 1, 1, 13, 30), count=2)
    [datetime.datetime(2025, 1, 2, 2, 0), datetime.datetime(2025, 1, 3, 2, 0)]

Tags:
    job-monitor, scheduling, cron, preview, pure-functions
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from jobmonitor.core.errors import CronValidationError
from jobmonitor.core.result import Err, Ok, Result

WILDCARDS = frozenset({"*", "?"})

FIELD_NAMES: tuple[str, ...] = ("minute", "hour", "day_of_month", "month", "day_of_week")

FIELD_BOUNDS: dict[str, tuple[int, int]] = {
    "minute": (0, 59),
    "hour": (0, 23),
    "day_of_month": (1, 31),
    "month": (1, 12),
    "day_of_week": (0, 7),
}

WEEKDAY_NUMBERS: dict[str, int] = {
    "SUN": 7,
    "MON": 1,
    "TUE": 2,
    "WED": 3,
    "THU": 4,
    "FRI": 5,
    "SAT": 6,
}

# Minutes searched for each upcoming run (30 days).
DEFAULT_SEARCH_MINUTES = 30 * 24 * 60

ONE_MINUTE = timedelta(minutes=1)

_DIGITS = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class CronExpression:
    """A parsed five-field schedule.

    Each field keeps its raw token; tokens are only interpreted when
    matching.  ``raw`` is the text the expression was parsed from and does
    not take part in equality.
    """

    minute: str
    hour: str
    day_of_month: str
    month: str
    day_of_week: str
    raw: str = field(default="", compare=False)

    @property
    def fields(self) -> tuple[str, str, str, str, str]:
        return (self.minute, self.hour, self.day_of_month, self.month, self.day_of_week)

    def field_items(self) -> list[tuple[str, str]]:
        """``(field_name, token)`` pairs in expression order."""
        return list(zip(FIELD_NAMES, self.fields))

    def matches(self, moment: datetime) -> bool:
        """True if ``moment`` (at minute resolution) satisfies all five fields."""
        return (
            match_field(self.minute, moment.minute, 0, 59)
            and match_field(self.hour, moment.hour, 0, 23)
            and _matches_date(self, moment)
        )

    def __str__(self) -> str:
        return " ".join(self.fields)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def normalize_cron_parts(raw: str) -> list[str] | None:
    """Split ``raw`` into five tokens, or None if the field count is wrong."""
    parts = raw.split()
    if len(parts) == 6 and parts[0] == "0":
        parts = parts[1:]
    if len(parts) != 5:
        return None
    return parts


def parse_cron(raw: str) -> Result[CronExpression]:
    """Parse a schedule expression.

    Only the field count is validated; field contents are checked lazily
    when matching.

    Returns:
        ``Ok(CronExpression)`` or ``Err(CronValidationError)`` with
        ``constraint == "field-count"``.
    """
    parts = normalize_cron_parts(raw)
    if parts is None:
        count = len(raw.split())
        return Err(
            CronValidationError(
                f"Expected 5 fields (or 6 with a leading 0 seconds field), got {count}",
                value=raw,
            )
        )
    minute, hour, day_of_month, month, day_of_week = parts
    return Ok(
        CronExpression(
            minute=minute,
            hour=hour,
            day_of_month=day_of_month,
            month=month,
            day_of_week=day_of_week,
            raw=raw,
        )
    )


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def parse_int(token: str) -> int | None:
    """Non-negative integer in ASCII digits, or None."""
    token = token.strip()
    if _DIGITS.fullmatch(token):
        return int(token)
    return None


def match_field(field: str, value: int, min_value: int, max_value: int) -> bool:
    """Match one numeric field token against ``value``.

    Forms are tried in order: wildcard, range, list, step, single value.
    Anything that does not parse never matches.
    """
    if field in WILDCARDS:
        return True

    if "-" in field:
        start, _, end = field.partition("-")
        low, high = parse_int(start), parse_int(end)
        if low is None or high is None:
            return False
        return low <= value <= high

    if "," in field:
        values = {number for number in map(parse_int, field.split(",")) if number is not None}
        return value in values

    if "/" in field:
        base, _, step = field.partition("/")
        step_size = parse_int(step)
        if step_size is None or step_size <= 0:
            return False
        if base == "*":
            return value % step_size == 0
        # a/n: base-restricted steps are not evaluated
        return False

    number = parse_int(field)
    if number is None or not min_value <= number <= max_value:
        return False
    return number == value


def weekday_token(token: str) -> int | None:
    """Resolve a day-of-week token (``MON`` or ``1``) to its number."""
    token = token.strip().upper()
    if token in WEEKDAY_NUMBERS:
        return WEEKDAY_NUMBERS[token]
    return parse_int(token)


def _sunday_as_seven(day: int | None) -> int | None:
    return 7 if day == 0 else day


def match_weekday(field: str, weekday: int) -> bool:
    """Match a day-of-week token.

    Args:
        field: Day-of-week token (numbers 0-7, ``MON``..``SUN``, ranges, lists).
        weekday: Cron weekday of the candidate: 1 = Monday ... 6 = Saturday,
            0 or 7 = Sunday (``datetime.isoweekday()`` is directly usable).
    """
    if field in WILDCARDS:
        return True

    day = _sunday_as_seven(weekday)

    if "-" in field:
        start, _, end = field.partition("-")
        low, high = weekday_token(start), weekday_token(end)
        if low is None or high is None:
            return False
        if low == 7 and high < 7:
            # SUN-SAT / 7-3: a range that starts on Sunday
            low = 0
        if day == 7:
            return low <= 0 <= high or low <= 7 <= high
        return low <= day <= high

    if "," in field:
        return any(_sunday_as_seven(weekday_token(token)) == day for token in field.split(","))

    return _sunday_as_seven(weekday_token(field)) == day


def _matches_date(expression: CronExpression, moment: datetime) -> bool:
    return (
        match_field(expression.month, moment.month, 1, 12)
        and match_field(expression.day_of_month, moment.day, 1, 31)
        and match_weekday(expression.day_of_week, moment.isoweekday())
    )


# ---------------------------------------------------------------------------
# Upcoming runs
# ---------------------------------------------------------------------------


def ceil_to_minute(moment: datetime) -> datetime:
    """Round ``moment`` up to a whole minute (unchanged if already whole)."""
    floored = moment.replace(second=0, microsecond=0)
    if floored == moment:
        return floored
    return floored + ONE_MINUTE


def _minutes_between(earlier: datetime, later: datetime) -> int:
    return int((later - earlier).total_seconds() // 60)


def _search(
    expression: CronExpression,
    start: datetime,
    budget_minutes: int,
) -> datetime | None:
    """First matching minute in ``[start, start + budget)``, or None.

    Days whose date fields fail and hours whose hour field fails are skipped
    whole; the skipped minutes still count against the budget, so the result
    is the same as testing every minute.
    """
    candidate = start
    spent = 0
    while spent < budget_minutes:
        if not _matches_date(expression, candidate):
            following = candidate.replace(hour=0, minute=0) + timedelta(days=1)
        elif not match_field(expression.hour, candidate.hour, 0, 23):
            following = candidate.replace(minute=0) + timedelta(hours=1)
        elif match_field(expression.minute, candidate.minute, 0, 59):
            return candidate
        else:
            following = candidate + ONE_MINUTE
        spent += _minutes_between(candidate, following)
        candidate = following
    return None


def next_executions(
    expression: CronExpression,
    start: datetime,
    count: int = 3,
    *,
    search_minutes: int = DEFAULT_SEARCH_MINUTES,
) -> list[datetime]:
    """Compute up to ``count`` upcoming run times at or after ``start``.

    The search starts at ``start`` rounded up to a whole minute.  Each run is
    looked for within ``search_minutes`` of the previous one (or of the
    start); when nothing matches within that horizon the list is returned
    short.  Fewer results than requested is not an error.
    """
    results: list[datetime] = []
    candidate = ceil_to_minute(start)
    while len(results) < count:
        found = _search(expression, candidate, search_minutes)
        if found is None:
            break
        results.append(found)
        candidate = found + ONE_MINUTE
    return results


__all__ = [
    "DEFAULT_SEARCH_MINUTES",
    "FIELD_BOUNDS",
    "FIELD_NAMES",
    "WEEKDAY_NUMBERS",
    "WILDCARDS",
    "CronExpression",
    "ceil_to_minute",
    "match_field",
    "match_weekday",
    "next_executions",
    "normalize_cron_parts",
    "parse_int",
    "parse_cron",
    "weekday_token",
]
