"""Report and podcast deliveries to Webex.

A delivery row is created PENDING and sent by :meth:`DeliveryService.deliver_report`
or :meth:`DeliveryService.deliver_podcast`. Attachment deliveries wait for
the report's export, triggering it when it is missing and re-checking with
a linearly growing pause. Failures increment ``retry_count`` and requeue
the row while the error is retryable and the ceiling is not reached.

There is no in-between "sending" status: the delivery processor's
in-flight set keeps one process from sending the same row twice, and the
final update only applies to a row that is still PENDING.
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import typing as typ
from pathlib import Path

from sqlalchemy import select

from dossier.activity import ActivityAction
from dossier.common.time import utcnow
from dossier.delivery.config import DeliveryConfig
from dossier.delivery.errors import (
    DeliveryError,
    DeliveryNotFoundError,
    DeliveryStateError,
    DeliveryValidationError,
)
from dossier.delivery.messages import (
    attachment_message,
    podcast_filename,
    podcast_message,
    summary_message,
)
from dossier.delivery.observability import DeliveryEventLogger
from dossier.exports.errors import ExportExpiredError, ExportStateError
from dossier.processing import linear_backoff, plan_failure
from dossier.storage import (
    DeliveryContent,
    DeliveryStatus,
    DestinationType,
    ExportStatus,
    ExportTrigger,
    PodcastDelivery,
    PodcastGeneration,
    PodcastStatus,
    Report,
    ReportDelivery,
    ReportStatus,
    transition,
)
from dossier.storage.files import file_exists

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from dossier.activity import ActivityRecorder
    from dossier.delivery.webex import WebexClient
    from dossier.exports.service import ExportDownload, ExportService
    from dossier.reports.options import DeliveryOptions

DeliveryRow: typ.TypeAlias = ReportDelivery | PodcastDelivery

PODCAST_MIME_TYPE = "audio/mpeg"


class ExportDispatcher(typ.Protocol):
    """Starts rendering an export job without waiting for the next poll."""

    def dispatch(self, export_id: str) -> bool:
        """Launch ``export_id`` if possible; return whether it started."""
        ...


@dc.dataclass(frozen=True, slots=True)
class DeliveryResult:
    """Outcome of one send attempt."""

    delivery_id: str
    status: DeliveryStatus
    message_id: str | None = None
    error: str | None = None
    code: str | None = None
    attempted: bool = True

    @property
    def success(self) -> bool:
        """Whether the message was sent."""
        return self.status is DeliveryStatus.SENT


class DeliveryService:
    """Create, send and retry report and podcast deliveries.

    Parameters
    ----------
    session_factory
        Async session factory for database access.
    client
        Webex client used for sending.
    exports
        Export service consulted for attachment artifacts.
    config
        Retry ceiling and artifact-wait settings.
    export_dispatcher
        Optional hook that starts a freshly requested export immediately.
    event_logger
        Structured lifecycle logger.
    activity
        Optional audit trail recorder.
    sleep
        Awaitable sleep used between artifact checks.

    """

    def __init__(  # noqa: PLR0913
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: WebexClient,
        exports: ExportService,
        config: DeliveryConfig | None = None,
        *,
        export_dispatcher: ExportDispatcher | None = None,
        event_logger: DeliveryEventLogger | None = None,
        activity: ActivityRecorder | None = None,
        sleep: cabc.Callable[[float], cabc.Awaitable[object]] = asyncio.sleep,
    ) -> None:
        """Configure the service."""
        self._session_factory = session_factory
        self._client = client
        self._exports = exports
        self._config = config or DeliveryConfig()
        self._export_dispatcher = export_dispatcher
        self._events = event_logger or DeliveryEventLogger()
        self._activity = activity
        self._sleep = sleep

    @property
    def config(self) -> DeliveryConfig:
        """Active configuration."""
        return self._config

    def set_export_dispatcher(self, dispatcher: ExportDispatcher | None) -> None:
        """Install the hook that starts eagerly requested exports."""
        self._export_dispatcher = dispatcher

    # -- report deliveries -------------------------------------------------

    async def schedule_delivery(
        self, report_id: str, owner_id: str, options: DeliveryOptions
    ) -> ReportDelivery:
        """Create a PENDING delivery for one of the caller's reports.

        Raises
        ------
        DeliveryValidationError
            If the destination is blank.
        DeliveryNotFoundError
            If the report is absent or owned by someone else.

        """
        destination = options.destination.strip()
        if not destination:
            raise DeliveryValidationError.missing_destination()
        async with self._session_factory() as session:
            await self._owned_report(session, report_id, owner_id)
            delivery = ReportDelivery(
                report_id=report_id,
                method=options.method,
                destination=destination,
                destination_type=options.destination_type,
                content_type=options.content_type,
                format=options.format,
                status=DeliveryStatus.PENDING,
                max_retries=self._config.max_retries,
            )
            session.add(delivery)
            await session.commit()
        self._events.log_scheduled(
            kind="report",
            delivery_id=delivery.id,
            subject_id=report_id,
            destination_type=options.destination_type,
        )
        if self._activity is not None:
            await self._activity.record(
                owner_id,
                ActivityAction.REPORT_DELIVER,
                report_id=report_id,
                delivery_id=delivery.id,
            )
        return delivery

    async def get_deliveries(self, report_id: str, owner_id: str) -> list[ReportDelivery]:
        """List a report's deliveries, newest first."""
        async with self._session_factory() as session:
            await self._owned_report(session, report_id, owner_id)
            rows = await session.scalars(
                select(ReportDelivery)
                .where(ReportDelivery.report_id == report_id)
                .order_by(ReportDelivery.created_at.desc())
            )
            return list(rows)

    async def deliver_report(self, delivery_id: str) -> DeliveryResult:
        """Send one PENDING report delivery.

        A delivery in any other status is left untouched and reported with
        ``attempted=False``. So is a delivery whose report has not
        finished generating; it is sent once the report is COMPLETED.

        Raises
        ------
        DeliveryNotFoundError
            If no such delivery exists.

        """
        async with self._session_factory() as session:
            delivery = await session.get(ReportDelivery, delivery_id)
            if delivery is None:
                raise DeliveryNotFoundError.for_delivery(delivery_id)
            report = await session.get(Report, delivery.report_id)
        if delivery.status is not DeliveryStatus.PENDING:
            return self._skipped("report", delivery)
        if report is not None and report.status is not ReportStatus.COMPLETED:
            return self._skipped("report", delivery)
        return await self._attempt(
            ReportDelivery, "report", delivery, lambda: self._send_report(delivery, report)
        )

    async def _send_report(self, delivery: ReportDelivery, report: Report | None) -> str:
        if report is None or report.status is not ReportStatus.COMPLETED:
            msg = f"Report '{delivery.report_id}' is not completed"
            raise DeliveryError.invalid_state(msg)
        if delivery.content_type is DeliveryContent.SUMMARY_LINK:
            return await self._client.send_markdown(
                delivery.destination,
                delivery.destination_type,
                summary_message(report, self._client.config.frontend_url),
            )
        download = await self._await_export(delivery, report)
        content = await asyncio.to_thread(download.path.read_bytes)
        return await self._client.send_file(
            delivery.destination,
            delivery.destination_type,
            attachment_message(report),
            filename=download.filename,
            content=content,
            mime_type=download.mime_type,
        )

    async def _await_export(
        self, delivery: ReportDelivery, report: Report
    ) -> ExportDownload:
        """Return the export download, requesting it and waiting if needed."""
        attempts = self._config.artifact_wait_attempts
        for attempt in range(attempts + 1):
            if attempt:
                wait = linear_backoff(attempt, step=self._config.artifact_wait_step_s)
                self._events.log_waiting(
                    delivery_id=delivery.id, attempt=attempt, wait_s=wait
                )
                await self._sleep(wait)
            try:
                return await self._exports.get_download(
                    report.id, report.owner_id, delivery.format
                )
            except (ExportStateError, ExportExpiredError):
                if attempt == 0:
                    await self._trigger_export(delivery, report)
        msg = (
            f"{delivery.format} export for report '{report.id}' not ready "
            f"after {attempts} checks"
        )
        raise DeliveryError.export_not_ready(msg, retryable=True)

    async def _trigger_export(self, delivery: ReportDelivery, report: Report) -> None:
        job = await self._exports.request_export(
            report.id, report.owner_id, delivery.format, ExportTrigger.EAGER
        )
        if job.status is ExportStatus.PENDING and self._export_dispatcher is not None:
            self._export_dispatcher.dispatch(job.id)

    async def retry_delivery(self, delivery_id: str, owner_id: str) -> ReportDelivery:
        """Reset a FAILED report delivery to PENDING with a fresh retry budget.

        Raises
        ------
        DeliveryNotFoundError
            If the delivery is absent or its report belongs to someone else.
        DeliveryStateError
            If the delivery is not FAILED.

        """
        async with self._session_factory() as session:
            delivery = await session.scalar(
                select(ReportDelivery)
                .join(Report, Report.id == ReportDelivery.report_id)
                .where(ReportDelivery.id == delivery_id, Report.owner_id == owner_id)
            )
            if delivery is None:
                raise DeliveryNotFoundError.for_delivery(delivery_id)
            await self._reset(session, ReportDelivery, delivery)
            refreshed = await session.get(
                ReportDelivery, delivery_id, populate_existing=True
            )
        self._events.log_retried(kind="report", delivery_id=delivery_id)
        return refreshed or delivery

    async def pending_report_delivery_ids(self, limit: int) -> list[str]:
        """Return up to ``limit`` PENDING deliveries of COMPLETED reports."""
        if limit <= 0:
            return []
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(ReportDelivery.id)
                .join(Report, Report.id == ReportDelivery.report_id)
                .where(
                    ReportDelivery.status == DeliveryStatus.PENDING,
                    Report.status == ReportStatus.COMPLETED,
                )
                .order_by(ReportDelivery.created_at)
                .limit(limit)
            )
            return list(rows)

    # -- podcast deliveries ------------------------------------------------

    async def schedule_podcast_delivery(
        self,
        podcast_id: str,
        owner_id: str,
        destination: str,
        destination_type: DestinationType = DestinationType.EMAIL,
    ) -> PodcastDelivery:
        """Create a PENDING delivery for one of the caller's podcasts.

        The row is sent once the podcast is COMPLETED.
        """
        destination = destination.strip()
        if not destination:
            raise DeliveryValidationError.missing_destination()
        async with self._session_factory() as session:
            await self._owned_podcast(session, podcast_id, owner_id)
            delivery = PodcastDelivery(
                podcast_id=podcast_id,
                destination=destination,
                destination_type=destination_type,
                status=DeliveryStatus.PENDING,
                max_retries=self._config.max_retries,
            )
            session.add(delivery)
            await session.commit()
        self._events.log_scheduled(
            kind="podcast",
            delivery_id=delivery.id,
            subject_id=podcast_id,
            destination_type=destination_type,
        )
        return delivery

    async def get_podcast_deliveries(
        self, podcast_id: str, owner_id: str
    ) -> list[PodcastDelivery]:
        """List a podcast's deliveries, newest first."""
        async with self._session_factory() as session:
            await self._owned_podcast(session, podcast_id, owner_id)
            rows = await session.scalars(
                select(PodcastDelivery)
                .where(PodcastDelivery.podcast_id == podcast_id)
                .order_by(PodcastDelivery.created_at.desc())
            )
            return list(rows)

    async def deliver_podcast(self, delivery_id: str) -> DeliveryResult:
        """Send one PENDING podcast delivery with the episode attached.

        A delivery whose podcast is still being produced is left PENDING
        and reported with ``attempted=False``.
        """
        async with self._session_factory() as session:
            delivery = await session.get(PodcastDelivery, delivery_id)
            if delivery is None:
                raise DeliveryNotFoundError.for_delivery(delivery_id)
            podcast = await session.get(PodcastGeneration, delivery.podcast_id)
            report = (
                await session.get(Report, podcast.report_id) if podcast is not None else None
            )
        if delivery.status is not DeliveryStatus.PENDING:
            return self._skipped("podcast", delivery)
        if podcast is not None and podcast.status is not PodcastStatus.COMPLETED:
            return self._skipped("podcast", delivery)
        return await self._attempt(
            PodcastDelivery,
            "podcast",
            delivery,
            lambda: self._send_podcast(delivery, podcast, report),
        )

    async def _send_podcast(
        self,
        delivery: PodcastDelivery,
        podcast: PodcastGeneration | None,
        report: Report | None,
    ) -> str:
        if podcast is None or report is None:
            msg = f"Podcast '{delivery.podcast_id}' no longer exists"
            raise DeliveryError.invalid_state(msg)
        if podcast.status is not PodcastStatus.COMPLETED:
            msg = f"Podcast '{podcast.id}' is {podcast.status}"
            raise DeliveryError.invalid_state(msg)
        path = podcast.final_audio_path
        if not path or not await file_exists(path):
            msg = f"Audio file for podcast '{podcast.id}' is missing"
            raise DeliveryError.export_not_ready(msg, retryable=False)
        content = await asyncio.to_thread(Path(path).read_bytes)
        return await self._client.send_file(
            delivery.destination,
            delivery.destination_type,
            podcast_message(podcast, report),
            filename=podcast_filename(report.id),
            content=content,
            mime_type=PODCAST_MIME_TYPE,
        )

    async def retry_podcast_delivery(
        self, delivery_id: str, owner_id: str
    ) -> PodcastDelivery:
        """Reset a FAILED podcast delivery to PENDING with a fresh retry budget."""
        async with self._session_factory() as session:
            delivery = await session.scalar(
                select(PodcastDelivery)
                .join(PodcastGeneration, PodcastGeneration.id == PodcastDelivery.podcast_id)
                .join(Report, Report.id == PodcastGeneration.report_id)
                .where(PodcastDelivery.id == delivery_id, Report.owner_id == owner_id)
            )
            if delivery is None:
                raise DeliveryNotFoundError.for_delivery(delivery_id)
            await self._reset(session, PodcastDelivery, delivery)
            refreshed = await session.get(
                PodcastDelivery, delivery_id, populate_existing=True
            )
        self._events.log_retried(kind="podcast", delivery_id=delivery_id)
        return refreshed or delivery

    async def pending_podcast_delivery_ids(self, limit: int) -> list[str]:
        """Return up to ``limit`` PENDING deliveries of COMPLETED podcasts."""
        if limit <= 0:
            return []
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(PodcastDelivery.id)
                .join(PodcastGeneration, PodcastGeneration.id == PodcastDelivery.podcast_id)
                .where(
                    PodcastDelivery.status == DeliveryStatus.PENDING,
                    PodcastGeneration.status == PodcastStatus.COMPLETED,
                )
                .order_by(PodcastDelivery.created_at)
                .limit(limit)
            )
            return list(rows)

    # -- shared helpers ----------------------------------------------------

    @staticmethod
    async def _owned_report(
        session: AsyncSession, report_id: str, owner_id: str
    ) -> Report:
        report = await session.scalar(
            select(Report).where(Report.id == report_id, Report.owner_id == owner_id)
        )
        if report is None:
            raise DeliveryNotFoundError.for_report(report_id)
        return report

    @staticmethod
    async def _owned_podcast(
        session: AsyncSession, podcast_id: str, owner_id: str
    ) -> PodcastGeneration:
        podcast = await session.scalar(
            select(PodcastGeneration)
            .join(Report, Report.id == PodcastGeneration.report_id)
            .where(PodcastGeneration.id == podcast_id, Report.owner_id == owner_id)
        )
        if podcast is None:
            raise DeliveryNotFoundError.for_podcast(podcast_id)
        return podcast

    @staticmethod
    async def _reset(
        session: AsyncSession,
        model: type[ReportDelivery] | type[PodcastDelivery],
        delivery: DeliveryRow,
    ) -> None:
        reset = await transition(
            session,
            model,
            delivery.id,
            expected=[DeliveryStatus.FAILED],
            status=DeliveryStatus.PENDING,
            retry_count=0,
            error=None,
        )
        if not reset:
            raise DeliveryStateError.not_failed(delivery.id, delivery.status)
        await session.commit()

    def _skipped(self, kind: str, delivery: DeliveryRow) -> DeliveryResult:
        self._events.log_skipped(
            kind=kind, delivery_id=delivery.id, status=delivery.status
        )
        return DeliveryResult(
            delivery_id=delivery.id,
            status=delivery.status,
            message_id=delivery.message_id,
            error=delivery.error,
            attempted=False,
        )

    async def _attempt(
        self,
        model: type[ReportDelivery] | type[PodcastDelivery],
        kind: str,
        delivery: DeliveryRow,
        send: cabc.Callable[[], cabc.Awaitable[str]],
    ) -> DeliveryResult:
        try:
            message_id = await send()
        except DeliveryError as exc:
            return await self._record_failure(model, kind, delivery, exc)
        except Exception as exc:  # noqa: BLE001 - failure is persisted on the job
            return await self._record_failure(
                model, kind, delivery, DeliveryError.unexpected(exc)
            )

        async with self._session_factory() as session:
            await transition(
                session,
                model,
                delivery.id,
                expected=[DeliveryStatus.PENDING],
                status=DeliveryStatus.SENT,
                message_id=message_id,
                error=None,
                delivered_at=utcnow(),
            )
            await session.commit()
        self._events.log_sent(kind=kind, delivery_id=delivery.id, message_id=message_id)
        return DeliveryResult(
            delivery_id=delivery.id, status=DeliveryStatus.SENT, message_id=message_id
        )

    async def _record_failure(
        self,
        model: type[ReportDelivery] | type[PodcastDelivery],
        kind: str,
        delivery: DeliveryRow,
        error: DeliveryError,
    ) -> DeliveryResult:
        plan = plan_failure(delivery, retryable=error.retryable)
        status = DeliveryStatus.PENDING if plan.requeue else DeliveryStatus.FAILED
        async with self._session_factory() as session:
            await transition(
                session,
                model,
                delivery.id,
                expected=[DeliveryStatus.PENDING],
                status=status,
                retry_count=plan.retry_count,
                error=str(error),
            )
            await session.commit()
        self._events.log_failed(
            kind=kind,
            delivery_id=delivery.id,
            retry_count=plan.retry_count,
            requeued=plan.requeue,
            code=error.code,
            error=error,
        )
        return DeliveryResult(
            delivery_id=delivery.id, status=status, error=str(error), code=error.code
        )

