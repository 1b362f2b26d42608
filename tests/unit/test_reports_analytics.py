"""Unit tests for the dashboard analytics queries."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest

from dossier.reports import ReportAnalyticsService, TrendPoint, WorkflowShare
from dossier.storage import ReportAnalytics, ReportStatus, Template, WorkflowType
from tests.helpers.builders import OWNER, insert_report

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


def _service(
    session_factory: async_sessionmaker[AsyncSession], now: dt.datetime
) -> ReportAnalyticsService:
    return ReportAnalyticsService(session_factory, clock=lambda: now)


class TestDashboardSummary:
    """Headline counters."""

    @pytest.mark.asyncio
    async def test_empty_store(
        self, session_factory: async_sessionmaker[AsyncSession], fixed_now: dt.datetime
    ) -> None:
        """Nothing finished yet reads as a perfect success rate."""
        summary = await _service(session_factory, fixed_now).dashboard_summary()

        assert summary.total_reports == 0
        assert summary.success_rate == 100
        assert summary.reports_change == 0
        assert summary.total_templates == 0

    @pytest.mark.asyncio
    async def test_counts_windows_and_success_rate(
        self, session_factory: async_sessionmaker[AsyncSession], fixed_now: dt.datetime
    ) -> None:
        """Reports are bucketed by age and finished ones feed the success rate."""
        await insert_report(session_factory, created_at=fixed_now - dt.timedelta(days=1))
        await insert_report(
            session_factory,
            status=ReportStatus.FAILED,
            created_at=fixed_now - dt.timedelta(days=10),
        )
        await insert_report(
            session_factory,
            status=ReportStatus.PROCESSING,
            created_at=fixed_now - dt.timedelta(days=2),
        )
        await insert_report(session_factory, created_at=fixed_now - dt.timedelta(days=40))
        async with session_factory() as session:
            session.add(
                Template(
                    owner_id=OWNER,
                    name="Weekly",
                    workflow_type=WorkflowType.ACCOUNT_INTELLIGENCE,
                )
            )
            await session.commit()

        summary = await _service(session_factory, fixed_now).dashboard_summary()

        assert summary.total_reports == 4
        assert summary.reports_this_week == 2
        assert summary.reports_this_month == 3
        assert summary.success_rate == 67, "two of three finished reports completed"
        assert summary.reports_change == 200, "three this month against one before"
        assert summary.active_schedules == 0
        assert summary.total_templates == 1


class TestTrends:
    """Daily counters read back from the analytics table."""

    @pytest.mark.asyncio
    async def test_window_and_totals(
        self, session_factory: async_sessionmaker[AsyncSession], fixed_now: dt.datetime
    ) -> None:
        """Rows inside the window are returned oldest first with derived totals."""
        today = fixed_now.replace(hour=0)
        async with session_factory() as session:
            session.add_all(
                [
                    ReportAnalytics(
                        date=today,
                        workflow_type=WorkflowType.NEWS_DIGEST,
                        total_generated=4,
                        total_failed=1,
                        avg_duration_ms=1500.0,
                    ),
                    ReportAnalytics(
                        date=today - dt.timedelta(days=3),
                        workflow_type=WorkflowType.ACCOUNT_INTELLIGENCE,
                        total_generated=2,
                        total_failed=0,
                    ),
                    ReportAnalytics(
                        date=today - dt.timedelta(days=45),
                        workflow_type=WorkflowType.ACCOUNT_INTELLIGENCE,
                        total_generated=9,
                        total_failed=9,
                    ),
                ]
            )
            await session.commit()

        points = await _service(session_factory, fixed_now).report_trends()

        assert points == [
            TrendPoint(
                date=(today - dt.timedelta(days=3)).date(),
                workflow_type=WorkflowType.ACCOUNT_INTELLIGENCE,
                total=2,
                completed=2,
                failed=0,
                avg_duration_ms=None,
            ),
            TrendPoint(
                date=today.date(),
                workflow_type=WorkflowType.NEWS_DIGEST,
                total=5,
                completed=4,
                failed=1,
                avg_duration_ms=1500.0,
            ),
        ]


class TestDistribution:
    """Reports per workflow."""

    @pytest.mark.asyncio
    async def test_shares_are_rounded_percentages(
        self, session_factory: async_sessionmaker[AsyncSession], fixed_now: dt.datetime
    ) -> None:
        """Each workflow's share of all reports is reported."""
        for _ in range(2):
            await insert_report(session_factory, created_at=fixed_now)
        await insert_report(
            session_factory,
            workflow_type=WorkflowType.NEWS_DIGEST,
            created_at=fixed_now,
        )

        shares = await _service(session_factory, fixed_now).workflow_distribution()

        assert shares == [
            WorkflowShare(
                workflow_type=WorkflowType.ACCOUNT_INTELLIGENCE, count=2, percentage=67
            ),
            WorkflowShare(workflow_type=WorkflowType.NEWS_DIGEST, count=1, percentage=33),
        ]

    @pytest.mark.asyncio
    async def test_window_filters_by_creation(
        self, session_factory: async_sessionmaker[AsyncSession], fixed_now: dt.datetime
    ) -> None:
        """Reports created before ``start`` are left out."""
        await insert_report(session_factory, created_at=fixed_now - dt.timedelta(days=90))
        await insert_report(session_factory, created_at=fixed_now)

        shares = await _service(session_factory, fixed_now).workflow_distribution(
            start=fixed_now - dt.timedelta(days=1)
        )

        assert [share.count for share in shares] == [1]
