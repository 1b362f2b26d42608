"""Configuration for document exports and the export processor."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
from pathlib import Path

from dossier.common.env import env_path, positive_float, positive_int
from dossier.storage import DEFAULT_MAX_RETRIES

@dc.dataclass(frozen=True, slots=True)
class ExportConfig:
    """Settings for export storage, retries and polling.

    Attributes
    ----------
    storage_path
        Root directory; files land in ``<root>/<report_id>/``.
    ttl
        Lifetime of an export from its creation.
    max_retries
        Attempts before an export fails permanently.
    poll_interval
        Seconds between processor ticks.
    max_concurrent
        Exports rendered at once.
    stale_after
        PROCESSING exports older than this are reset.
    stop_timeout
        Seconds shutdown waits for in-flight renders.

    """

    storage_path: Path = Path("storage/exports")
    ttl: dt.timedelta = dt.timedelta(hours=72)
    max_retries: int = DEFAULT_MAX_RETRIES
    poll_interval: float = 5.0
    max_concurrent: int = 2
    stale_after: dt.timedelta = dt.timedelta(minutes=10)
    stop_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> ExportConfig:
        """Create configuration from ``DOSSIER_EXPORT_*`` variables.

        Reads ``DOSSIER_EXPORT_STORAGE_PATH``, ``DOSSIER_EXPORT_TTL_HOURS``,
        ``DOSSIER_EXPORT_MAX_RETRIES``, ``DOSSIER_EXPORT_POLL_INTERVAL_S``
        and ``DOSSIER_EXPORT_MAX_CONCURRENT``.

        Raises
        ------
        ValueError
            If a numeric variable is malformed or not positive.

        """
        return cls(
            storage_path=env_path("DOSSIER_EXPORT_STORAGE_PATH", Path("storage/exports")),
            ttl=dt.timedelta(hours=positive_float("DOSSIER_EXPORT_TTL_HOURS", 72)),
            max_retries=positive_int("DOSSIER_EXPORT_MAX_RETRIES", DEFAULT_MAX_RETRIES),
            poll_interval=positive_float("DOSSIER_EXPORT_POLL_INTERVAL_S", 5.0),
            max_concurrent=positive_int("DOSSIER_EXPORT_MAX_CONCURRENT", 2),
        )
