"""Unit tests for the report-completion triggers and context wiring."""

from __future__ import annotations

import typing as typ
from unittest.mock import AsyncMock, MagicMock

import msgspec
import pytest

from dossier.context import AppContext, DownstreamTriggers
from dossier.reports import DeliveryOptions, PodcastOptions, ReportConfiguration
from dossier.storage import (
    ExportFormat,
    ExportStatus,
    ExportTrigger,
    PodcastStatus,
    Report,
    ReportStatus,
    WorkflowType,
)


def _report(
    *,
    formats: tuple[str, ...] = ("PDF", "DOCX"),
    delivery: DeliveryOptions | None = None,
    podcast: PodcastOptions | None = None,
) -> Report:
    configuration = ReportConfiguration(
        sections=("account_overview",), delivery=delivery, podcast_options=podcast
    )
    return Report(
        id="report-1",
        owner_id="user-1",
        title="Acme briefing",
        workflow_type=WorkflowType.ACCOUNT_INTELLIGENCE,
        status=ReportStatus.COMPLETED,
        configuration=msgspec.to_builtins(configuration),
        input_data={"company_name": "Acme"},
        requested_formats=list(formats),
    )


class _Mocks(typ.NamedTuple):
    triggers: DownstreamTriggers
    exports: MagicMock
    export_processor: MagicMock
    delivery: MagicMock
    delivery_processor: MagicMock
    podcasts: MagicMock
    podcast_processor: MagicMock


def _mocks() -> _Mocks:
    exports = MagicMock()
    exports.request_exports = AsyncMock(
        return_value=[
            MagicMock(id="export-1", status=ExportStatus.PENDING),
            MagicMock(id="export-2", status=ExportStatus.COMPLETED),
        ]
    )
    delivery = MagicMock()
    delivery.schedule_delivery = AsyncMock(return_value=MagicMock(id="delivery-1"))
    podcasts = MagicMock()
    podcasts.request_podcast = AsyncMock(
        return_value=MagicMock(id="podcast-1", status=PodcastStatus.PENDING)
    )
    export_processor = MagicMock()
    delivery_processor = MagicMock()
    podcast_processor = MagicMock()
    triggers = DownstreamTriggers(
        exports=exports,
        export_processor=export_processor,
        delivery=delivery,
        delivery_processor=delivery_processor,
        podcasts=podcasts,
        podcast_processor=podcast_processor,
    )
    return _Mocks(
        triggers,
        exports,
        export_processor,
        delivery,
        delivery_processor,
        podcasts,
        podcast_processor,
    )


class TestDownstreamTriggers:
    """Exports, delivery and podcast requests after completion."""

    @pytest.mark.asyncio
    async def test_requests_exports_and_dispatches_pending(self) -> None:
        """Requested formats become eager exports; only PENDING ones dispatch."""
        mocks = _mocks()

        await mocks.triggers.on_report_completed(_report())

        mocks.exports.request_exports.assert_awaited_once_with(
            "report-1",
            "user-1",
            [ExportFormat.PDF, ExportFormat.DOCX],
            ExportTrigger.EAGER,
        )
        mocks.export_processor.dispatch.assert_called_once_with("export-1")
        mocks.delivery.schedule_delivery.assert_not_awaited()
        mocks.podcasts.request_podcast.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_formats_skips_exports(self) -> None:
        """Reports without requested formats create no exports."""
        mocks = _mocks()

        await mocks.triggers.on_report_completed(_report(formats=()))

        mocks.exports.request_exports.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delivery_and_podcast_are_triggered(self) -> None:
        """Configured delivery and podcast are scheduled and dispatched."""
        mocks = _mocks()
        delivery = DeliveryOptions(destination="ops@example.com")
        podcast = PodcastOptions(
            delivery_enabled=True, delivery_destination="ops@example.com"
        )

        await mocks.triggers.on_report_completed(
            _report(delivery=delivery, podcast=podcast)
        )

        mocks.delivery.schedule_delivery.assert_awaited_once_with(
            "report-1", "user-1", delivery
        )
        mocks.delivery_processor.dispatch_report.assert_called_once_with("delivery-1")
        kwargs = mocks.podcasts.request_podcast.await_args.kwargs
        assert kwargs["delivery_destination"] == "ops@example.com"
        assert kwargs["triggered_by"] is ExportTrigger.EAGER
        mocks.podcast_processor.dispatch.assert_called_once_with("podcast-1")

    @pytest.mark.asyncio
    async def test_disabled_podcast_delivery_passes_no_destination(self) -> None:
        """A destination is ignored unless podcast delivery is enabled."""
        mocks = _mocks()
        podcast = PodcastOptions(delivery_destination="ops@example.com")

        await mocks.triggers.on_report_completed(_report(podcast=podcast))

        kwargs = mocks.podcasts.request_podcast.await_args.kwargs
        assert kwargs["delivery_destination"] is None

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_later_steps(self) -> None:
        """An export failure still lets delivery and podcast run."""
        mocks = _mocks()
        mocks.exports.request_exports.side_effect = RuntimeError("db down")
        mocks.delivery.schedule_delivery.side_effect = RuntimeError("also down")

        await mocks.triggers.on_report_completed(
            _report(
                delivery=DeliveryOptions(destination="ops@example.com"),
                podcast=PodcastOptions(),
            )
        )

        mocks.delivery.schedule_delivery.assert_awaited_once()
        mocks.podcasts.request_podcast.assert_awaited_once()


class TestAppContext:
    """Processor lifecycle."""

    @pytest.mark.asyncio
    async def test_stop_reverses_start_order_and_closes_clients(self) -> None:
        """Webhooks and generation stop first, then processors in reverse, then clients."""
        calls: list[str] = []

        def processor(name: str) -> MagicMock:
            mock = MagicMock()
            mock.start.side_effect = lambda: calls.append(f"start:{name}")

            async def stop() -> bool:
                calls.append(f"stop:{name}")
                return True

            mock.stop.side_effect = stop
            return mock

        context = AppContext(
            session_factory=MagicMock(),
            activity=MagicMock(),
            completion=MagicMock(aclose=AsyncMock()),
            reports=MagicMock(
                stop=AsyncMock(side_effect=lambda: calls.append("stop:reports"))
            ),
            templates=MagicMock(),
            analytics=MagicMock(),
            exports=MagicMock(),
            export_processor=processor("exports"),
            webex=MagicMock(aclose=AsyncMock()),
            delivery=MagicMock(),
            delivery_processor=processor("delivery"),
            schedules=MagicMock(),
            schedule_processor=processor("schedules"),
            synthesizer=MagicMock(aclose=AsyncMock()),
            podcasts=MagicMock(),
            podcast_processor=processor("podcasts"),
            cleanup=processor("cleanup"),
            webhooks=MagicMock(
                stop=AsyncMock(side_effect=lambda: calls.append("stop:webhooks"))
            ),
        )

        context.start()
        await context.stop()

        assert calls == [
            "start:exports",
            "start:delivery",
            "start:schedules",
            "start:podcasts",
            "start:cleanup",
            "stop:webhooks",
            "stop:reports",
            "stop:cleanup",
            "stop:podcasts",
            "stop:schedules",
            "stop:delivery",
            "stop:exports",
        ]
        context.webhooks.stop.assert_awaited_once()
        context.reports.stop.assert_awaited_once()
        context.completion.aclose.assert_awaited_once()
        context.webex.aclose.assert_awaited_once()
