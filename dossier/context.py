"""Application context: one instance of every service and processor.

:func:`build_app_context` wires the object graph once at startup. The
report service never references the export, delivery or podcast
services directly; it notifies :class:`DownstreamTriggers` through the
:class:`~dossier.reports.hooks.ReportCompletedHook` protocol instead.

Usage
-----
>>> context = build_app_context(session_factory)
>>> context.start()
>>> ...
>>> await context.stop()

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from dossier.activity import ActivityRecorder
from dossier.cleanup import CleanupConfig, CleanupProcessor
from dossier.completion.factory import create_completion_service
from dossier.delivery import (
    DeliveryConfig,
    DeliveryProcessor,
    DeliveryService,
    WebexClient,
    WebexConfig,
)
from dossier.exports import ExportConfig, ExportProcessor, ExportService
from dossier.logging import get_logger, log_exception, log_info
from dossier.podcasts import (
    ConcatMp3Mixer,
    PodcastConfig,
    PodcastProcessor,
    PodcastService,
    ScriptWriter,
    SpeechConfig,
    create_synthesizer,
)
from dossier.reports import (
    ReportAnalyticsService,
    ReportsConfig,
    ReportService,
    ReportServiceDependencies,
    SectionGenerator,
    TemplateService,
    load_configuration,
)
from dossier.schedules import ScheduleConfig, ScheduleProcessor, ScheduleService
from dossier.storage import ExportFormat, ExportStatus, ExportTrigger, PodcastStatus
from dossier.webhooks import RequestParser, WebexWebhookService, WebhookConfig

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from dossier.completion import CompletionService
    from dossier.podcasts import SpeechSynthesizer
    from dossier.processing import PollingProcessor
    from dossier.reports import DeliveryOptions, PodcastOptions
    from dossier.storage import Report

logger = get_logger(__name__)


class DownstreamTriggers:
    """Request exports, delivery and a podcast once a report completes.

    The three steps run in order. Each is attempted even when an earlier
    one fails; failures are logged and never reach the report.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        exports: ExportService,
        export_processor: ExportProcessor,
        delivery: DeliveryService,
        delivery_processor: DeliveryProcessor,
        podcasts: PodcastService,
        podcast_processor: PodcastProcessor,
    ) -> None:
        """Bind the triggers to the downstream services and processors."""
        self._exports = exports
        self._export_processor = export_processor
        self._delivery = delivery
        self._delivery_processor = delivery_processor
        self._podcasts = podcasts
        self._podcast_processor = podcast_processor

    async def on_report_completed(self, report: Report) -> None:
        """Run every downstream trigger configured on ``report``."""
        configuration = load_configuration(report.configuration)
        try:
            await self._request_exports(report)
        except Exception as exc:  # noqa: BLE001 - exports are retried independently
            log_exception(logger, f"Failed to request exports for report {report.id}", exc)
        if configuration.delivery is not None:
            try:
                await self._schedule_delivery(report, configuration.delivery)
            except Exception as exc:  # noqa: BLE001 - delivery is retried independently
                log_exception(logger, f"Failed to schedule delivery for report {report.id}", exc)
        if configuration.podcast_options is not None:
            try:
                await self._request_podcast(report, configuration.podcast_options)
            except Exception as exc:  # noqa: BLE001 - podcasts are retried independently
                log_exception(logger, f"Failed to request podcast for report {report.id}", exc)

    async def _request_exports(self, report: Report) -> None:
        formats = [ExportFormat(fmt) for fmt in report.requested_formats]
        if not formats:
            return
        jobs = await self._exports.request_exports(
            report.id, report.owner_id, formats, ExportTrigger.EAGER
        )
        for job in jobs:
            if job.status is ExportStatus.PENDING:
                self._export_processor.dispatch(job.id)
        log_info(logger, "Requested %s exports for report %s", len(jobs), report.id)

    async def _schedule_delivery(self, report: Report, options: DeliveryOptions) -> None:
        delivery = await self._delivery.schedule_delivery(report.id, report.owner_id, options)
        self._delivery_processor.dispatch_report(delivery.id)

    async def _request_podcast(self, report: Report, options: PodcastOptions) -> None:
        destination = options.delivery_destination if options.delivery_enabled else None
        podcast = await self._podcasts.request_podcast(
            report.id,
            report.owner_id,
            template=options.template,
            duration=options.duration,
            triggered_by=ExportTrigger.EAGER,
            delivery_destination=destination,
            delivery_destination_type=options.delivery_destination_type,
        )
        if podcast.status is PodcastStatus.PENDING:
            self._podcast_processor.dispatch(podcast.id)


@dc.dataclass(slots=True)
class AppContext:
    """Every long-lived service and processor of one process."""

    session_factory: async_sessionmaker[AsyncSession]
    activity: ActivityRecorder
    completion: CompletionService
    reports: ReportService
    templates: TemplateService
    analytics: ReportAnalyticsService
    exports: ExportService
    export_processor: ExportProcessor
    webex: WebexClient
    delivery: DeliveryService
    delivery_processor: DeliveryProcessor
    schedules: ScheduleService
    schedule_processor: ScheduleProcessor
    synthesizer: SpeechSynthesizer
    podcasts: PodcastService
    podcast_processor: PodcastProcessor
    cleanup: CleanupProcessor
    webhooks: WebexWebhookService

    @property
    def processors(self) -> tuple[PollingProcessor, ...]:
        """All background processors in start order."""
        return (
            self.export_processor,
            self.delivery_processor,
            self.schedule_processor,
            self.podcast_processor,
            self.cleanup,
        )

    def start(self) -> None:
        """Start every processor on the running event loop."""
        for processor in self.processors:
            processor.start()

    async def stop(self) -> None:
        """Stop inbound messages, report generation, processors, then clients.

        Webhook messages go first because they create reports, and
        generations go before the processors so reports that finish can
        still hand work to them. Each step waits only for its own timeout.
        """
        await self.webhooks.stop()
        await self.reports.stop()
        for processor in reversed(self.processors):
            await processor.stop()
        await self.completion.aclose()
        await self.webex.aclose()
        aclose = getattr(self.synthesizer, "aclose", None)
        if aclose is not None:
            await aclose()


def build_app_context(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    completion: CompletionService | None = None,
    webex: WebexClient | None = None,
    synthesizer: SpeechSynthesizer | None = None,
) -> AppContext:
    """Build the object graph from ``DOSSIER_*`` configuration.

    Parameters
    ----------
    session_factory
        Async session factory shared by every service.
    completion
        Completion service; built from ``DOSSIER_LLM_*`` when omitted.
    webex
        Webex client; built from ``DOSSIER_WEBEX_*`` when omitted.
    synthesizer
        Speech synthesizer; built from ``DOSSIER_TTS_*`` when omitted.

    Raises
    ------
    ValueError
        If an environment variable is malformed.

    """
    activity = ActivityRecorder(session_factory)
    completion = completion or create_completion_service()

    reports = ReportService(
        ReportServiceDependencies(
            session_factory=session_factory,
            generator=SectionGenerator(completion),
        ),
        ReportsConfig.from_env(),
        activity=activity,
    )
    templates = TemplateService(session_factory, reports, activity=activity)
    analytics = ReportAnalyticsService(session_factory)

    exports = ExportService(session_factory, ExportConfig.from_env())
    export_processor = ExportProcessor(exports)

    webex = webex or WebexClient(WebexConfig.from_env())
    delivery = DeliveryService(
        session_factory,
        webex,
        exports,
        DeliveryConfig.from_env(),
        export_dispatcher=export_processor,
        activity=activity,
    )
    delivery_processor = DeliveryProcessor(delivery)

    schedules = ScheduleService(
        session_factory, templates, ScheduleConfig.from_env(), activity=activity
    )
    schedule_processor = ScheduleProcessor(schedules)

    podcast_config = PodcastConfig.from_env()
    synthesizer = synthesizer or create_synthesizer(SpeechConfig.from_env())
    podcasts = PodcastService(
        session_factory,
        ScriptWriter(
            completion,
            temperature=podcast_config.script_temperature,
            model=podcast_config.script_model,
        ),
        synthesizer,
        ConcatMp3Mixer(),
        podcast_config,
        activity=activity,
    )
    podcast_processor = PodcastProcessor(podcasts, delivery_dispatcher=delivery_processor)

    cleanup = CleanupProcessor(
        session_factory, CleanupConfig.from_env(), exports=exports, activity=activity
    )

    webhook_config = WebhookConfig.from_env()
    webhooks = WebexWebhookService(
        reports,
        webex,
        RequestParser(completion, min_confidence=webhook_config.min_confidence),
        webhook_config,
        activity=activity,
    )

    reports.set_completed_hook(
        DownstreamTriggers(
            exports=exports,
            export_processor=export_processor,
            delivery=delivery,
            delivery_processor=delivery_processor,
            podcasts=podcasts,
            podcast_processor=podcast_processor,
        )
    )
    return AppContext(
        session_factory=session_factory,
        activity=activity,
        completion=completion,
        reports=reports,
        templates=templates,
        analytics=analytics,
        exports=exports,
        export_processor=export_processor,
        webex=webex,
        delivery=delivery,
        delivery_processor=delivery_processor,
        schedules=schedules,
        schedule_processor=schedule_processor,
        synthesizer=synthesizer,
        podcasts=podcasts,
        podcast_processor=podcast_processor,
        cleanup=cleanup,
        webhooks=webhooks,
    )
