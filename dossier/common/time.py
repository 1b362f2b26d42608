"""Common time utilities."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for DB defaults."""
    return dt.datetime.now(dt.UTC)


def start_of_day(moment: dt.datetime) -> dt.datetime:
    """Truncate an aware timestamp to midnight UTC of the same day."""
    utc = moment.astimezone(dt.UTC)
    return utc.replace(hour=0, minute=0, second=0, microsecond=0)


def next_daily_run(now: dt.datetime, *, hour: int, minute: int = 0) -> dt.datetime:
    """Return the next ``hour:minute`` UTC strictly after ``now``.

    The target is computed in UTC so daylight-saving shifts in any local
    timezone never move it.

    Parameters
    ----------
    now
        Aware reference timestamp.
    hour
        Hour of day (0-23) in UTC.
    minute
        Minute of the hour.

    Returns
    -------
    datetime.datetime
        Today's target if it is still ahead of ``now``, otherwise
        tomorrow's.

    """
    utc_now = now.astimezone(dt.UTC)
    target = utc_now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= utc_now:
        target += dt.timedelta(days=1)
    return target
