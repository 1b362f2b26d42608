"""Configuration for the daily retention sweep."""

from __future__ import annotations

import dataclasses as dc
import os

from dossier.common.env import positive_float, positive_int


def _hour(env_var: str, default: int) -> int:
    raw = os.environ.get(env_var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        msg = f"{env_var} must be an integer, got: {raw!r}"
        raise ValueError(msg) from exc
    if not 0 <= value <= 23:  # noqa: PLR2004 - hours of the day
        msg = f"{env_var} must be between 0 and 23, got: {value}"
        raise ValueError(msg)
    return value


@dc.dataclass(frozen=True, slots=True)
class CleanupConfig:
    """Retention windows and the daily run time.

    Attributes
    ----------
    run_hour
        Hour of day (UTC) the sweep runs.
    report_retention_days
        Reports created longer ago than this are deleted.
    activity_retention_days
        Activity rows older than this are deleted.
    analytics_retention_days
        Analytics buckets older than this are deleted.
    stop_timeout
        Seconds shutdown waits for a running sweep.

    """

    run_hour: int = 2
    report_retention_days: int = 90
    activity_retention_days: int = 90
    analytics_retention_days: int = 365
    stop_timeout: float = 60.0

    @classmethod
    def from_env(cls) -> CleanupConfig:
        """Create configuration from ``DOSSIER_CLEANUP_*`` variables.

        Raises
        ------
        ValueError
            If a variable is malformed or out of range.

        """
        return cls(
            run_hour=_hour("DOSSIER_CLEANUP_RUN_HOUR", 2),
            report_retention_days=positive_int("DOSSIER_REPORT_RETENTION_DAYS", 90),
            activity_retention_days=positive_int("DOSSIER_ACTIVITY_RETENTION_DAYS", 90),
            analytics_retention_days=positive_int("DOSSIER_ANALYTICS_RETENTION_DAYS", 365),
            stop_timeout=positive_float("DOSSIER_CLEANUP_STOP_TIMEOUT_S", 60.0),
        )
