"""Unit tests for guarded status transitions and cascading report removal."""

from __future__ import annotations

import typing as typ

import pytest
from sqlalchemy import func, select

from dossier.storage import (
    DeliveryStatus,
    DestinationType,
    DocumentExport,
    ExportStatus,
    PodcastDelivery,
    PodcastGeneration,
    Report,
    ReportDelivery,
)
from dossier.storage.transitions import delete_reports, transition
from tests.helpers.builders import insert_export, insert_podcast, insert_report

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class TestTransition:
    """Single-row compare-and-set updates."""

    @pytest.mark.asyncio
    async def test_matching_status_wins(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """The row moves when it holds an expected status."""
        report = await insert_report(session_factory)
        job = await insert_export(session_factory, report.id, status=ExportStatus.PENDING)

        async with session_factory() as session:
            moved = await transition(
                session,
                DocumentExport,
                job.id,
                expected=[ExportStatus.PENDING],
                status=ExportStatus.PROCESSING,
                retry_count=DocumentExport.retry_count + 1,
            )
            await session.commit()

        async with session_factory() as session:
            stored = await session.get(DocumentExport, job.id)
        assert moved is True
        assert stored is not None
        assert stored.status is ExportStatus.PROCESSING
        assert stored.retry_count == 1, "SQL expressions are applied"

    @pytest.mark.asyncio
    async def test_second_claim_loses(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Only one of two racing claims succeeds."""
        report = await insert_report(session_factory)
        job = await insert_export(session_factory, report.id, status=ExportStatus.PENDING)

        outcomes = []
        for _ in range(2):
            async with session_factory() as session:
                outcomes.append(
                    await transition(
                        session,
                        DocumentExport,
                        job.id,
                        expected=[ExportStatus.PENDING],
                        status=ExportStatus.PROCESSING,
                    )
                )
                await session.commit()

        assert outcomes == [True, False]

    @pytest.mark.asyncio
    async def test_unknown_row_is_not_updated(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """A missing id reports no update."""
        async with session_factory() as session:
            moved = await transition(
                session,
                DocumentExport,
                "missing",
                expected=[ExportStatus.PENDING],
                status=ExportStatus.FAILED,
            )

        assert moved is False


class TestDeleteReports:
    """Explicit cascade over every job table."""

    @pytest.mark.asyncio
    async def test_children_are_removed_with_report(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Exports, deliveries, podcasts and podcast deliveries go too."""
        doomed = await insert_report(session_factory)
        kept = await insert_report(session_factory)
        await insert_export(session_factory, doomed.id)
        await insert_export(session_factory, kept.id)
        podcast = await insert_podcast(session_factory, doomed.id)
        async with session_factory() as session:
            session.add_all(
                [
                    ReportDelivery(
                        report_id=doomed.id,
                        destination="ops@example.com",
                        destination_type=DestinationType.EMAIL,
                        status=DeliveryStatus.PENDING,
                    ),
                    PodcastDelivery(
                        podcast_id=podcast.id,
                        destination="ops@example.com",
                        destination_type=DestinationType.EMAIL,
                        status=DeliveryStatus.PENDING,
                    ),
                ]
            )
            await session.commit()

        async with session_factory() as session:
            await delete_reports(session, [doomed.id])
            await session.commit()

        async with session_factory() as session:
            counts = {
                model.__name__: await session.scalar(select(func.count()).select_from(model))
                for model in (
                    Report,
                    DocumentExport,
                    ReportDelivery,
                    PodcastGeneration,
                    PodcastDelivery,
                )
            }
        assert counts == {
            "Report": 1,
            "DocumentExport": 1,
            "ReportDelivery": 0,
            "PodcastGeneration": 0,
            "PodcastDelivery": 0,
        }

    @pytest.mark.asyncio
    async def test_empty_id_list_is_a_no_op(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Nothing is issued for an empty selection."""
        await insert_report(session_factory)

        async with session_factory() as session:
            await delete_reports(session, [])
            await session.commit()
            remaining = await session.scalar(select(func.count(Report.id)))

        assert remaining == 1
