"""Configuration for recurring schedules and the schedule processor."""

from __future__ import annotations

import dataclasses as dc

from dossier.common.env import env_str, positive_float, positive_int

DEFAULT_TIMEZONE = "America/New_York"


@dc.dataclass(frozen=True, slots=True)
class ScheduleConfig:
    """Settings for cron polling.

    Attributes
    ----------
    poll_interval
        Seconds between checks for due schedules.
    max_concurrent
        Schedules executed at once.
    stop_timeout
        Seconds shutdown waits for in-flight executions.
    default_timezone
        IANA zone used when a schedule does not name one.

    """

    poll_interval: float = 60.0
    max_concurrent: int = 2
    stop_timeout: float = 60.0
    default_timezone: str = DEFAULT_TIMEZONE

    @classmethod
    def from_env(cls) -> ScheduleConfig:
        """Create configuration from ``DOSSIER_SCHEDULE_*`` variables.

        Raises
        ------
        ValueError
            If a numeric variable is malformed or not positive.

        """
        return cls(
            poll_interval=positive_float("DOSSIER_SCHEDULE_POLL_INTERVAL_S", 60.0),
            max_concurrent=positive_int("DOSSIER_SCHEDULE_MAX_CONCURRENT", 2),
            stop_timeout=positive_float("DOSSIER_SCHEDULE_STOP_TIMEOUT_S", 60.0),
            default_timezone=env_str("DOSSIER_SCHEDULE_DEFAULT_TIMEZONE", DEFAULT_TIMEZONE),
        )
