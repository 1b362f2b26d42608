"""Export jobs: idempotent requests, rendering and downloads.

One :class:`~dossier.storage.DocumentExport` row exists per (report,
format). Requesting a format that is already COMPLETED returns the same
row and file; FAILED or EXPIRED rows are reset to PENDING.
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import re
import typing as typ
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from dossier.common.time import utcnow
from dossier.exports.config import ExportConfig
from dossier.exports.document import ReportDocument
from dossier.exports.errors import (
    ExportExpiredError,
    ExportNotFoundError,
    ExportStateError,
)
from dossier.exports.observability import ExportEventLogger
from dossier.exports.renderer import default_renderers
from dossier.processing import plan_failure
from dossier.storage import (
    DocumentExport,
    ExportFormat,
    ExportStatus,
    ExportTrigger,
    Report,
    ReportStatus,
    transition,
)
from dossier.storage.files import file_exists, remove_files, write_atomic

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from dossier.exports.renderer import DocumentRenderer

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9]")
_MAX_FILENAME_STEM = 50


@dc.dataclass(frozen=True, slots=True)
class ExportDownload:
    """A file ready to stream to the caller."""

    path: Path
    filename: str
    mime_type: str
    size: int


@dc.dataclass(frozen=True, slots=True)
class ExpiryStats:
    """Outcome of expiring exports past their TTL."""

    expired: int
    files_deleted: int
    bytes_freed: int


def download_filename(title: str, fmt: ExportFormat) -> str:
    """Return ``<title>.<ext>`` with unsafe characters replaced by ``_``."""
    stem = _UNSAFE_FILENAME.sub("_", title)[:_MAX_FILENAME_STEM] or "report"
    return f"{stem}.{fmt.extension}"


class ExportService:
    """Create, render and serve document exports.

    Parameters
    ----------
    session_factory
        Async session factory for database access.
    config
        Storage, TTL and retry settings.
    renderers
        Renderer per format; PDF and DOCX renderers by default.
    event_logger
        Structured lifecycle logger.

    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: ExportConfig | None = None,
        *,
        renderers: cabc.Mapping[ExportFormat, DocumentRenderer] | None = None,
        event_logger: ExportEventLogger | None = None,
    ) -> None:
        """Configure the service."""
        self._session_factory = session_factory
        self._config = config or ExportConfig()
        self._renderers = dict(renderers) if renderers is not None else default_renderers()
        self._events = event_logger or ExportEventLogger()

    @property
    def config(self) -> ExportConfig:
        """Active configuration."""
        return self._config

    @staticmethod
    async def _owned_report(
        session: AsyncSession, report_id: str, owner_id: str
    ) -> Report:
        report = await session.scalar(
            select(Report).where(Report.id == report_id, Report.owner_id == owner_id)
        )
        if report is None:
            raise ExportNotFoundError.for_report(report_id)
        return report

    @staticmethod
    async def _find(
        session: AsyncSession, report_id: str, fmt: ExportFormat
    ) -> DocumentExport | None:
        return await session.scalar(
            select(DocumentExport).where(
                DocumentExport.report_id == report_id, DocumentExport.format == fmt
            )
        )

    async def request_export(
        self,
        report_id: str,
        owner_id: str,
        fmt: ExportFormat,
        triggered_by: ExportTrigger = ExportTrigger.ON_DEMAND,
    ) -> DocumentExport:
        """Return the export job for (report, format), creating it if needed.

        A COMPLETED job is returned unchanged. A FAILED or EXPIRED job is
        reset to PENDING with its artifacts cleared. A PENDING or
        PROCESSING job is returned as is.

        Raises
        ------
        ExportNotFoundError
            If the report is absent or owned by someone else.
        ExportStateError
            If the report is not COMPLETED.

        """
        async with self._session_factory() as session:
            report = await self._owned_report(session, report_id, owner_id)
            if report.status is not ReportStatus.COMPLETED:
                raise ExportStateError.report_not_completed(report_id, report.status)
            existing = await self._find(session, report_id, fmt)
            if existing is None:
                return await self._create(session, report_id, fmt, triggered_by)
            if existing.status in {ExportStatus.FAILED, ExportStatus.EXPIRED}:
                return await self._reset(session, existing, triggered_by)
            return existing

    async def request_exports(
        self,
        report_id: str,
        owner_id: str,
        formats: cabc.Iterable[ExportFormat],
        triggered_by: ExportTrigger = ExportTrigger.ON_DEMAND,
    ) -> list[DocumentExport]:
        """Request one export per distinct format, in order."""
        return [
            await self.request_export(report_id, owner_id, fmt, triggered_by)
            for fmt in dict.fromkeys(formats)
        ]

    async def _create(
        self,
        session: AsyncSession,
        report_id: str,
        fmt: ExportFormat,
        triggered_by: ExportTrigger,
    ) -> DocumentExport:
        job = DocumentExport(
            report_id=report_id,
            format=fmt,
            status=ExportStatus.PENDING,
            triggered_by=triggered_by,
            max_retries=self._config.max_retries,
            expires_at=utcnow() + self._config.ttl,
        )
        session.add(job)
        try:
            await session.commit()
        except IntegrityError:
            # A concurrent request created the row first; use theirs.
            await session.rollback()
            winner = await self._find(session, report_id, fmt)
            if winner is None:
                raise
            return winner
        self._events.log_requested(
            export_id=job.id, report_id=report_id, fmt=fmt, trigger=triggered_by
        )
        return job

    async def _reset(
        self,
        session: AsyncSession,
        job: DocumentExport,
        triggered_by: ExportTrigger,
    ) -> DocumentExport:
        old_path = job.file_path
        reset = await transition(
            session,
            DocumentExport,
            job.id,
            expected=[ExportStatus.FAILED, ExportStatus.EXPIRED],
            status=ExportStatus.PENDING,
            triggered_by=triggered_by,
            error=None,
            retry_count=0,
            started_at=None,
            completed_at=None,
            file_path=None,
            file_size=None,
            expires_at=utcnow() + self._config.ttl,
        )
        await session.commit()
        refreshed = await session.get(DocumentExport, job.id, populate_existing=True)
        if reset:
            await remove_files([old_path])
            self._events.log_requested(
                export_id=job.id, report_id=job.report_id, fmt=job.format, trigger=triggered_by
            )
        return refreshed or job

    async def list_exports(self, report_id: str, owner_id: str) -> list[DocumentExport]:
        """List a report's export jobs, newest first."""
        async with self._session_factory() as session:
            await self._owned_report(session, report_id, owner_id)
            rows = await session.scalars(
                select(DocumentExport)
                .where(DocumentExport.report_id == report_id)
                .order_by(DocumentExport.created_at.desc())
            )
            return list(rows)

    async def get_export(self, export_id: str) -> DocumentExport:
        """Return an export job by id.

        Raises
        ------
        ExportNotFoundError
            If no such export exists.

        """
        async with self._session_factory() as session:
            job = await session.get(DocumentExport, export_id)
        if job is None:
            raise ExportNotFoundError.for_id(export_id)
        return job

    async def find_export(
        self, report_id: str, fmt: ExportFormat
    ) -> DocumentExport | None:
        """Return the export for (report, format) without an owner check."""
        async with self._session_factory() as session:
            return await self._find(session, report_id, fmt)

    async def pending_export_ids(self, limit: int) -> list[str]:
        """Return up to ``limit`` PENDING export ids, oldest first."""
        if limit <= 0:
            return []
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(DocumentExport.id)
                .where(DocumentExport.status == ExportStatus.PENDING)
                .order_by(DocumentExport.created_at)
                .limit(limit)
            )
            return list(rows)

    async def process_export(self, export_id: str) -> ExportStatus:
        """Render one PENDING export and store its file.

        Jobs in any other status are left untouched. A render or storage
        failure increments ``retry_count`` and requeues the job while it is
        under ``max_retries``; otherwise the job fails permanently.

        Returns
        -------
        ExportStatus
            The job's status after this call.

        Raises
        ------
        ExportNotFoundError
            If no such export exists.

        """
        async with self._session_factory() as session:
            job = await session.get(DocumentExport, export_id)
            if job is None:
                raise ExportNotFoundError.for_id(export_id)
            started = await transition(
                session,
                DocumentExport,
                export_id,
                expected=[ExportStatus.PENDING],
                status=ExportStatus.PROCESSING,
                started_at=utcnow(),
            )
            await session.commit()
            if not started:
                return job.status
            report = await session.get(Report, job.report_id)

        self._events.log_started(export_id=export_id, attempt=job.retry_count + 1)
        try:
            if report is None:
                raise ExportNotFoundError.for_report(job.report_id)
            path, size = await self._render_and_store(report, job.format)
        except Exception as exc:  # noqa: BLE001 - failure is persisted on the job
            return await self._record_failure(job, exc)

        async with self._session_factory() as session:
            completed = await transition(
                session,
                DocumentExport,
                export_id,
                expected=[ExportStatus.PROCESSING],
                status=ExportStatus.COMPLETED,
                file_path=str(path),
                file_size=size,
                error=None,
                completed_at=utcnow(),
            )
            await session.commit()
        if not completed:
            # The job was reclaimed while rendering; drop the orphaned file.
            await remove_files([str(path)])
            return ExportStatus.PENDING
        self._events.log_completed(export_id=export_id, path=str(path), size=size)
        return ExportStatus.COMPLETED

    async def _render_and_store(
        self, report: Report, fmt: ExportFormat
    ) -> tuple[Path, int]:
        renderer = self._renderers[fmt]
        document = ReportDocument.from_report(report)
        data = await asyncio.to_thread(renderer.render, document)
        stamp = int(utcnow().timestamp() * 1000)
        path = self._config.storage_path / report.id / f"report-{stamp}.{fmt.extension}"
        size = await write_atomic(path, data)
        return path, size

    async def _record_failure(self, job: DocumentExport, error: Exception) -> ExportStatus:
        plan = plan_failure(job)
        status = ExportStatus.PENDING if plan.requeue else ExportStatus.FAILED
        async with self._session_factory() as session:
            await transition(
                session,
                DocumentExport,
                job.id,
                expected=[ExportStatus.PROCESSING],
                status=status,
                retry_count=plan.retry_count,
                error=str(error) or type(error).__name__,
                started_at=None,
                completed_at=None if plan.requeue else utcnow(),
            )
            await session.commit()
        self._events.log_failed(
            export_id=job.id,
            retry_count=plan.retry_count,
            requeued=plan.requeue,
            error=error,
        )
        return status

    async def get_download(
        self, report_id: str, owner_id: str, fmt: ExportFormat
    ) -> ExportDownload:
        """Return the stored file for (report, format).

        A COMPLETED export whose file is missing is demoted to EXPIRED.

        Raises
        ------
        ExportNotFoundError
            If the report is absent or owned by someone else.
        ExportStateError
            If the export is not COMPLETED.
        ExportExpiredError
            If the file has disappeared.

        """
        async with self._session_factory() as session:
            report = await self._owned_report(session, report_id, owner_id)
            job = await self._find(session, report_id, fmt)
            if job is None or job.status is not ExportStatus.COMPLETED or not job.file_path:
                raise ExportStateError.not_ready(
                    report_id, fmt, job.status if job is not None else None
                )
            if not await file_exists(job.file_path):
                await transition(
                    session,
                    DocumentExport,
                    job.id,
                    expected=[ExportStatus.COMPLETED],
                    status=ExportStatus.EXPIRED,
                    file_path=None,
                )
                await session.commit()
                self._events.log_expired(export_id=job.id, reason="file_missing")
                raise ExportExpiredError.file_missing(report_id, fmt)
        return ExportDownload(
            path=Path(job.file_path),
            filename=download_filename(report.title, fmt),
            mime_type=fmt.mime_type,
            size=job.file_size or 0,
        )

    async def reset_stale(
        self,
        *,
        now: dt.datetime | None = None,
        exclude: cabc.Container[str] = frozenset(),
    ) -> int:
        """Reclaim PROCESSING exports started before the stale threshold.

        Jobs in ``exclude`` (this process's in-flight set) are skipped.
        Each reclaimed job counts as a failed attempt.

        Returns
        -------
        int
            Number of jobs reclaimed.

        """
        cutoff = (now or utcnow()) - self._config.stale_after
        async with self._session_factory() as session:
            stale = list(
                await session.scalars(
                    select(DocumentExport).where(
                        DocumentExport.status == ExportStatus.PROCESSING,
                        DocumentExport.started_at < cutoff,
                    )
                )
            )
            reclaimed = 0
            for job in stale:
                if job.id in exclude:
                    continue
                plan = plan_failure(job)
                won = await transition(
                    session,
                    DocumentExport,
                    job.id,
                    expected=[ExportStatus.PROCESSING],
                    status=ExportStatus.PENDING if plan.requeue else ExportStatus.FAILED,
                    retry_count=plan.retry_count,
                    started_at=None,
                    error="Job timed out and was reset",
                )
                if won:
                    reclaimed += 1
                    self._events.log_stale_reset(
                        export_id=job.id,
                        retry_count=plan.retry_count,
                        requeued=plan.requeue,
                    )
            await session.commit()
        return reclaimed

    async def expire_exports(self, *, now: dt.datetime | None = None) -> ExpiryStats:
        """Delete files of COMPLETED exports past their TTL and mark them EXPIRED."""
        moment = now or utcnow()
        async with self._session_factory() as session:
            due = list(
                await session.scalars(
                    select(DocumentExport).where(
                        DocumentExport.status == ExportStatus.COMPLETED,
                        DocumentExport.expires_at < moment,
                    )
                )
            )
            paths: list[str | None] = []
            expired = 0
            for job in due:
                won = await transition(
                    session,
                    DocumentExport,
                    job.id,
                    expected=[ExportStatus.COMPLETED],
                    status=ExportStatus.EXPIRED,
                    file_path=None,
                )
                if won:
                    expired += 1
                    paths.append(job.file_path)
                    self._events.log_expired(export_id=job.id, reason="ttl")
            await session.commit()
        files, freed = await remove_files(paths)
        return ExpiryStats(expired=expired, files_deleted=files, bytes_freed=freed)
