"""Per-day, per-workflow generation counters and the queries that read them."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import typing as typ

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from dossier.common.time import start_of_day, utcnow
from dossier.logging import get_logger, log_warning
from dossier.storage import (
    Report,
    ReportAnalytics,
    ReportStatus,
    Schedule,
    Template,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from dossier.storage import WorkflowType

logger = get_logger(__name__)


async def _upsert(
    session: AsyncSession,
    workflow: WorkflowType,
    *,
    succeeded: bool,
    duration_ms: float | None,
) -> None:
    day = start_of_day(utcnow())
    row = await session.scalar(
        select(ReportAnalytics).where(
            ReportAnalytics.date == day,
            ReportAnalytics.workflow_type == workflow,
        )
    )
    if row is None:
        row = ReportAnalytics(
            date=day, workflow_type=workflow, total_generated=0, total_failed=0
        )
        session.add(row)
    if succeeded:
        row.total_generated += 1
        # Latest duration only; a true running mean is not tracked.
        row.avg_duration_ms = duration_ms
    else:
        row.total_failed += 1
    await session.commit()


async def record_generation(
    session_factory: async_sessionmaker[AsyncSession],
    workflow: WorkflowType,
    *,
    succeeded: bool,
    duration_ms: float | None = None,
) -> None:
    """Bump today's counter for ``workflow``.

    A concurrent insert of the same bucket raises ``IntegrityError``; the
    update is retried once against the row that won. Other failures are
    logged and dropped so analytics never fail a report.
    """
    for attempt in (1, 2):
        try:
            async with session_factory() as session:
                await _upsert(
                    session, workflow, succeeded=succeeded, duration_ms=duration_ms
                )
        except IntegrityError:
            if attempt == 2:  # noqa: PLR2004
                log_warning(logger, "Analytics bucket for %s kept conflicting", workflow)
            continue
        except Exception as exc:  # noqa: BLE001 - analytics are best-effort
            log_warning(logger, "Failed to record analytics for %s: %s", workflow, exc)
        return


_WEEK = dt.timedelta(days=7)
_MONTH = dt.timedelta(days=30)
_DEFAULT_TREND_WINDOW = dt.timedelta(days=30)


def _percent(part: int, whole: int) -> int:
    return round(part * 100 / whole) if whole else 0


def _change(current: int, previous: int) -> int:
    """Percentage change against ``previous``; 100 when it grew from nothing."""
    if previous:
        return round((current - previous) * 100 / previous)
    return 100 if current else 0


@dc.dataclass(frozen=True, slots=True)
class DashboardSummary:
    """Headline report counters across every owner.

    Attributes
    ----------
    success_rate
        Percentage of finished reports that COMPLETED; 100 when none
        have finished yet.
    reports_change
        Percentage change of the last 30 days against the 30 before.

    """

    total_reports: int
    reports_this_week: int
    reports_this_month: int
    success_rate: int
    reports_change: int
    active_schedules: int
    total_templates: int


@dc.dataclass(frozen=True, slots=True)
class TrendPoint:
    """Generation counts of one workflow on one UTC day."""

    date: dt.date
    workflow_type: WorkflowType
    total: int
    completed: int
    failed: int
    avg_duration_ms: float | None


@dc.dataclass(frozen=True, slots=True)
class WorkflowShare:
    """Number of reports of one workflow and its rounded share."""

    workflow_type: WorkflowType
    count: int
    percentage: int


class ReportAnalyticsService:
    """Read-only dashboard queries over reports and the daily counters.

    Parameters
    ----------
    session_factory
        Async session factory.
    clock
        Returns the current time; injectable for tests.

    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Bind the queries to a session factory."""
        self._session_factory = session_factory
        self._clock = clock

    async def dashboard_summary(self) -> DashboardSummary:
        """Count reports, schedules and templates for the dashboard."""
        now = self._clock()
        week_start = now - _WEEK
        month_start = now - _MONTH
        previous_start = now - 2 * _MONTH
        async with self._session_factory() as session:
            total = await self._count(session, select(func.count()).select_from(Report))
            this_week = await self._count(
                session, select(func.count()).where(Report.created_at >= week_start)
            )
            this_month = await self._count(
                session, select(func.count()).where(Report.created_at >= month_start)
            )
            previous_month = await self._count(
                session,
                select(func.count()).where(
                    Report.created_at >= previous_start, Report.created_at < month_start
                ),
            )
            statuses = dict(
                (
                    await session.execute(
                        select(Report.status, func.count())
                        .where(Report.status.in_([ReportStatus.COMPLETED, ReportStatus.FAILED]))
                        .group_by(Report.status)
                    )
                ).tuples()
            )
            schedules = await self._count(
                session, select(func.count()).where(Schedule.is_active.is_(True))
            )
            templates = await self._count(
                session, select(func.count()).select_from(Template)
            )
        completed = statuses.get(ReportStatus.COMPLETED, 0)
        finished = completed + statuses.get(ReportStatus.FAILED, 0)
        return DashboardSummary(
            total_reports=total,
            reports_this_week=this_week,
            reports_this_month=this_month,
            success_rate=_percent(completed, finished) if finished else 100,
            reports_change=_change(this_month, previous_month),
            active_schedules=schedules,
            total_templates=templates,
        )

    async def report_trends(
        self,
        start: dt.datetime | None = None,
        end: dt.datetime | None = None,
    ) -> list[TrendPoint]:
        """Return the daily counters between ``start`` and ``end``, oldest first.

        ``end`` defaults to now and ``start`` to 30 days before ``end``.
        """
        until = end or self._clock()
        since = start or until - _DEFAULT_TREND_WINDOW
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(ReportAnalytics)
                .where(
                    ReportAnalytics.date >= start_of_day(since),
                    ReportAnalytics.date <= until,
                )
                .order_by(ReportAnalytics.date, ReportAnalytics.workflow_type)
            )
            return [
                TrendPoint(
                    date=row.date.date(),
                    workflow_type=row.workflow_type,
                    total=row.total_generated + row.total_failed,
                    completed=row.total_generated,
                    failed=row.total_failed,
                    avg_duration_ms=row.avg_duration_ms,
                )
                for row in rows
            ]

    async def workflow_distribution(
        self,
        start: dt.datetime | None = None,
        end: dt.datetime | None = None,
    ) -> list[WorkflowShare]:
        """Count reports per workflow, optionally within a creation window."""
        query = select(Report.workflow_type, func.count()).group_by(Report.workflow_type)
        if start is not None:
            query = query.where(Report.created_at >= start)
        if end is not None:
            query = query.where(Report.created_at <= end)
        async with self._session_factory() as session:
            counts = list((await session.execute(query)).tuples())
        total = sum(count for _, count in counts)
        return [
            WorkflowShare(
                workflow_type=workflow,
                count=count,
                percentage=_percent(count, total),
            )
            for workflow, count in sorted(counts, key=lambda item: item[0])
        ]

    @staticmethod
    async def _count(session: AsyncSession, query: typ.Any) -> int:  # noqa: ANN401
        return int(await session.scalar(query) or 0)
