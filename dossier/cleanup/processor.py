"""Daily retention sweep over reports, artifacts, activity and analytics."""

from __future__ import annotations

import asyncio
import dataclasses as dc
import datetime as dt
import time
import typing as typ

from sqlalchemy import delete, select

from dossier.activity import ActivityAction
from dossier.cleanup.config import CleanupConfig
from dossier.cleanup.errors import CleanupAlreadyRunningError
from dossier.cleanup.observability import CleanupEventLogger
from dossier.common.time import next_daily_run, utcnow
from dossier.processing import PollingProcessor
from dossier.storage import (
    DocumentExport,
    ExportStatus,
    PodcastGeneration,
    Report,
    ReportAnalytics,
    UserActivity,
    delete_reports,
)
from dossier.storage.files import remove_files

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.engine import CursorResult
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from dossier.activity import ActivityRecorder
    from dossier.exports.service import ExportService

_SCHEDULED_JOB_ID = "daily-cleanup"


@dc.dataclass(frozen=True, slots=True)
class CleanupStats:
    """Counters from one sweep; ``duration`` is in seconds."""

    reports_deleted: int = 0
    exports_deleted: int = 0
    activities_deleted: int = 0
    analytics_deleted: int = 0
    files_deleted: int = 0
    bytes_freed: int = 0
    duration: float = 0.0


def _rowcount(result: object) -> int:
    return typ.cast("CursorResult[typ.Any]", result).rowcount or 0


class CleanupProcessor(PollingProcessor):
    """Run the retention sweep once a day and on demand.

    The timer sleeps until the next ``run_hour`` UTC, runs the sweep and
    computes the following target again, so the schedule tracks absolute
    wall-clock time rather than a fixed interval. Only one sweep runs at a
    time; a trigger that arrives while one is running is rejected.

    Parameters
    ----------
    session_factory
        Async session factory for database access.
    config
        Retention windows and run time.
    exports
        Export service whose TTL expiry runs as part of the sweep.
    activity
        Recorder for the ``DATA_CLEANUP`` system activity.
    event_logger
        Structured lifecycle logger.
    clock
        Source of the current time.

    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: CleanupConfig | None = None,
        *,
        exports: ExportService | None = None,
        activity: ActivityRecorder | None = None,
        event_logger: CleanupEventLogger | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Configure the sweep; no timer runs until :meth:`start`."""
        self._config = config or CleanupConfig()
        super().__init__(
            name="cleanup-processor",
            poll_interval=dt.timedelta(days=1).total_seconds(),
            max_concurrent=1,
            stop_timeout=self._config.stop_timeout,
        )
        self._session_factory = session_factory
        self._exports = exports
        self._activity = activity
        self._events = event_logger or CleanupEventLogger()
        self._clock = clock
        self._sweeping = False

    @property
    def is_cleanup_running(self) -> bool:
        """Whether a sweep is in progress."""
        return self._sweeping

    def next_run_at(self, now: dt.datetime | None = None) -> dt.datetime:
        """Return the next scheduled sweep strictly after ``now``."""
        return next_daily_run(now or self._clock(), hour=self._config.run_hour)

    async def tick(self) -> None:
        """Run a scheduled sweep, skipping it if one is already running."""
        try:
            await self.run_cleanup(manual=False)
        except CleanupAlreadyRunningError:
            return

    def _timer_loops(self) -> list[cabc.Coroutine[typ.Any, typ.Any, None]]:
        return [self._daily()]

    async def _daily(self) -> None:
        while self._running:
            now = self._clock()
            run_at = self.next_run_at(now)
            self._events.log_scheduled(run_at=run_at)
            await asyncio.sleep((run_at - now).total_seconds())
            if self._running:
                self.launch(_SCHEDULED_JOB_ID, self.tick)

    async def run_cleanup(self, *, manual: bool = True) -> CleanupStats:
        """Delete data older than the retention windows.

        Returns
        -------
        CleanupStats
            Rows deleted per table plus files removed and bytes freed.

        Raises
        ------
        CleanupAlreadyRunningError
            If another sweep is in progress.

        """
        if self._sweeping:
            self._events.log_rejected(manual=manual)
            raise CleanupAlreadyRunningError.in_progress()
        self._sweeping = True
        started = time.perf_counter()
        try:
            stats = await self._sweep(self._clock(), manual=manual)
        except Exception as exc:
            self._events.log_failed(error=exc)
            raise
        finally:
            self._sweeping = False
        stats = dc.replace(stats, duration=round(time.perf_counter() - started, 3))
        self._events.log_completed(**dc.asdict(stats))
        if self._activity is not None:
            await self._activity.record(
                None, ActivityAction.DATA_CLEANUP, manual=manual, **dc.asdict(stats)
            )
        return stats

    async def _sweep(self, now: dt.datetime, *, manual: bool) -> CleanupStats:
        report_cutoff = now - dt.timedelta(days=self._config.report_retention_days)
        activity_cutoff = now - dt.timedelta(days=self._config.activity_retention_days)
        analytics_cutoff = now - dt.timedelta(days=self._config.analytics_retention_days)
        self._events.log_started(manual=manual, report_cutoff=report_cutoff)

        async with self._session_factory() as session:
            report_ids = list(
                await session.scalars(select(Report.id).where(Report.created_at < report_cutoff))
            )
            paths: list[str | None] = []
            if report_ids:
                paths.extend(
                    await session.scalars(
                        select(DocumentExport.file_path).where(
                            DocumentExport.report_id.in_(report_ids)
                        )
                    )
                )
                paths.extend(
                    await session.scalars(
                        select(PodcastGeneration.final_audio_path).where(
                            PodcastGeneration.report_id.in_(report_ids)
                        )
                    )
                )
                await delete_reports(session, report_ids)
            activities = _rowcount(
                await session.execute(
                    delete(UserActivity).where(UserActivity.created_at < activity_cutoff)
                )
            )
            analytics = _rowcount(
                await session.execute(
                    delete(ReportAnalytics).where(ReportAnalytics.date < analytics_cutoff)
                )
            )
            await session.commit()
        files, freed = await remove_files(paths)

        if self._exports is not None:
            expiry = await self._exports.expire_exports(now=now)
            files += expiry.files_deleted
            freed += expiry.bytes_freed
        async with self._session_factory() as session:
            exports = _rowcount(
                await session.execute(
                    delete(DocumentExport).where(
                        DocumentExport.status == ExportStatus.EXPIRED,
                        DocumentExport.expires_at < now,
                    )
                )
            )
            await session.commit()

        return CleanupStats(
            reports_deleted=len(report_ids),
            exports_deleted=exports,
            activities_deleted=activities,
            analytics_deleted=analytics,
            files_deleted=files,
            bytes_freed=freed,
        )
