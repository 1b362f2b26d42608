"""Cron expression evaluation in a schedule's own timezone.

Expressions are evaluated against wall-clock time in the schedule's IANA
zone, so ``0 9 * * 1`` fires at 09:00 local time across daylight-saving
changes. Returned instants are always aware UTC timestamps.
"""

from __future__ import annotations

import datetime as dt
import zoneinfo

from croniter import croniter

from dossier.schedules.errors import ScheduleValidationError

MAX_PREVIEW_RUNS = 50


def is_valid(expression: str) -> bool:
    """Return whether ``expression`` is a parseable cron expression."""
    return bool(expression.strip()) and croniter.is_valid(expression)


def resolve_timezone(name: str) -> zoneinfo.ZoneInfo:
    """Return the zone called ``name``.

    Raises
    ------
    ScheduleValidationError
        If ``name`` is not a known IANA zone.

    """
    try:
        return zoneinfo.ZoneInfo(name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError) as exc:
        raise ScheduleValidationError.invalid_timezone(name) from exc


def validate(expression: str, timezone: str) -> None:
    """Raise :class:`ScheduleValidationError` unless both values are usable."""
    if not is_valid(expression):
        raise ScheduleValidationError.invalid_cron(expression)
    resolve_timezone(timezone)


def next_runs(
    expression: str, timezone: str, *, after: dt.datetime, count: int = 1
) -> list[dt.datetime]:
    """Return the next ``count`` fire times strictly after ``after``.

    Parameters
    ----------
    expression
        Five-field cron expression.
    timezone
        IANA zone the expression is evaluated in.
    after
        Aware reference instant.
    count
        Number of fire times to return.

    Raises
    ------
    ScheduleValidationError
        If the expression or zone is invalid, or ``count`` is out of range.

    """
    if count < 1 or count > MAX_PREVIEW_RUNS:
        raise ScheduleValidationError.bad_count(MAX_PREVIEW_RUNS)
    if not is_valid(expression):
        raise ScheduleValidationError.invalid_cron(expression)
    zone = resolve_timezone(timezone)
    iterator = croniter(expression, after.astimezone(zone))
    return [iterator.get_next(dt.datetime).astimezone(dt.UTC) for _ in range(count)]


def next_run(expression: str, timezone: str, *, after: dt.datetime) -> dt.datetime:
    """Return the first fire time strictly after ``after``."""
    return next_runs(expression, timezone, after=after)[0]
