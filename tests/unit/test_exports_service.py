"""Unit tests for ExportService and ExportProcessor."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest

from dossier.common.time import utcnow
from dossier.exports import (
    ExportConfig,
    ExportExpiredError,
    ExportNotFoundError,
    ExportProcessor,
    ExportService,
    ExportStateError,
    ReportDocument,
    download_filename,
)
from dossier.storage import (
    DocumentExport,
    ExportFormat,
    ExportStatus,
    ExportTrigger,
    ReportStatus,
)
from tests.helpers.builders import OWNER, insert_export, insert_report

if typ.TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class _CountingRenderer:
    """Renderer that records calls and can fail a set number of times."""

    def __init__(self, failures: int = 0) -> None:
        self.calls: list[ReportDocument] = []
        self._failures = failures

    def render(self, document: ReportDocument) -> bytes:
        self.calls.append(document)
        if self._failures:
            self._failures -= 1
            msg = "renderer crashed"
            raise RuntimeError(msg)
        return b"%PDF-1.4 rendered " + document.title.encode()


def _service(
    session_factory: async_sessionmaker[AsyncSession],
    tmp_path: Path,
    renderer: _CountingRenderer | None = None,
    **overrides: typ.Any,  # noqa: ANN401
) -> tuple[ExportService, _CountingRenderer]:
    resolved = renderer or _CountingRenderer()
    config = ExportConfig(storage_path=tmp_path / "exports", **overrides)
    service = ExportService(
        session_factory,
        config,
        renderers={ExportFormat.PDF: resolved, ExportFormat.DOCX: resolved},
    )
    return service, resolved


async def _get(
    session_factory: async_sessionmaker[AsyncSession], export_id: str
) -> DocumentExport:
    async with session_factory() as session:
        job = await session.get(DocumentExport, export_id)
    assert job is not None, "export should exist"
    return job


class TestRequestExport:
    """Idempotent export requests."""

    @pytest.mark.asyncio
    async def test_creates_pending_job_with_ttl(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """A new request stores a PENDING job that expires after the TTL."""
        report = await insert_report(session_factory)
        service, _ = _service(session_factory, tmp_path)

        job = await service.request_export(report.id, OWNER, ExportFormat.PDF)

        assert job.status is ExportStatus.PENDING
        assert job.triggered_by is ExportTrigger.ON_DEMAND
        remaining = job.expires_at - utcnow()
        assert dt.timedelta(hours=71) < remaining <= dt.timedelta(hours=72)

    @pytest.mark.asyncio
    async def test_second_request_returns_same_file(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """A COMPLETED export is returned without re-rendering."""
        report = await insert_report(session_factory)
        service, renderer = _service(session_factory, tmp_path)
        first = await service.request_export(report.id, OWNER, ExportFormat.PDF)
        await service.process_export(first.id)
        completed = await _get(session_factory, first.id)

        again = await service.request_export(report.id, OWNER, ExportFormat.PDF)

        assert again.id == first.id, "the same job should be returned"
        assert again.file_path == completed.file_path, "the same file is reused"
        assert len(renderer.calls) == 1, "no second render"

    @pytest.mark.asyncio
    async def test_failed_job_is_reset(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Requesting a FAILED format requeues it with a fresh counter."""
        report = await insert_report(session_factory)
        failed = await insert_export(
            session_factory, report.id, status=ExportStatus.FAILED, retry_count=3
        )
        service, _ = _service(session_factory, tmp_path)

        job = await service.request_export(report.id, OWNER, ExportFormat.PDF)

        assert job.id == failed.id
        assert job.status is ExportStatus.PENDING
        assert job.retry_count == 0

    @pytest.mark.asyncio
    async def test_requires_completed_report(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Unfinished reports cannot be exported."""
        report = await insert_report(session_factory, status=ReportStatus.PROCESSING)
        service, _ = _service(session_factory, tmp_path)

        with pytest.raises(ExportStateError, match="COMPLETED"):
            await service.request_export(report.id, OWNER, ExportFormat.PDF)

    @pytest.mark.asyncio
    async def test_foreign_report_is_not_found(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Only the owner may export."""
        report = await insert_report(session_factory)
        service, _ = _service(session_factory, tmp_path)

        with pytest.raises(ExportNotFoundError):
            await service.request_export(report.id, "intruder", ExportFormat.PDF)

    @pytest.mark.asyncio
    async def test_request_exports_deduplicates_formats(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """One job per distinct format."""
        report = await insert_report(session_factory)
        service, _ = _service(session_factory, tmp_path)

        jobs = await service.request_exports(
            report.id, OWNER, [ExportFormat.PDF, ExportFormat.DOCX, ExportFormat.PDF]
        )

        assert [job.format for job in jobs] == [ExportFormat.PDF, ExportFormat.DOCX]


class TestProcessExport:
    """Rendering, storage and failure handling."""

    @pytest.mark.asyncio
    async def test_writes_file_under_report_directory(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Completed exports point at a stored file with its size."""
        report = await insert_report(session_factory)
        service, renderer = _service(session_factory, tmp_path)
        job = await service.request_export(report.id, OWNER, ExportFormat.PDF)

        status = await service.process_export(job.id)

        stored = await _get(session_factory, job.id)
        assert status is ExportStatus.COMPLETED
        assert stored.file_path is not None
        assert stored.file_path.startswith(str(tmp_path / "exports" / report.id))
        assert stored.file_path.endswith(".pdf")
        assert stored.file_size == len(b"%PDF-1.4 rendered Acme briefing")
        assert [s.title for s in renderer.calls[0].sections] == [
            "Account Overview",
            "Financial Health",
        ]

    @pytest.mark.asyncio
    async def test_failure_requeues_until_ceiling(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Failures requeue with retry+1 and fail at the ceiling."""
        report = await insert_report(session_factory)
        service, _ = _service(session_factory, tmp_path, _CountingRenderer(failures=3))
        job = await service.request_export(report.id, OWNER, ExportFormat.PDF)

        statuses = [await service.process_export(job.id) for _ in range(3)]

        stored = await _get(session_factory, job.id)
        assert statuses == [ExportStatus.PENDING, ExportStatus.PENDING, ExportStatus.FAILED]
        assert stored.retry_count == 3, "counter stops at the ceiling"
        assert stored.error == "renderer crashed"

    @pytest.mark.asyncio
    async def test_non_pending_job_is_left_alone(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Only PENDING jobs render."""
        report = await insert_report(session_factory)
        job = await insert_export(session_factory, report.id, status=ExportStatus.FAILED)
        service, renderer = _service(session_factory, tmp_path)

        status = await service.process_export(job.id)

        assert status is ExportStatus.FAILED
        assert renderer.calls == []


class TestDownloads:
    """Download lookups."""

    @pytest.mark.asyncio
    async def test_download_of_completed_export(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """The download names the file after the sanitized title."""
        report = await insert_report(session_factory, title="Acme: Q3/Q4 review")
        service, _ = _service(session_factory, tmp_path)
        job = await service.request_export(report.id, OWNER, ExportFormat.PDF)
        await service.process_export(job.id)

        download = await service.get_download(report.id, OWNER, ExportFormat.PDF)

        assert download.filename == "Acme__Q3_Q4_review.pdf"
        assert download.mime_type == "application/pdf"
        assert download.path.exists()

    @pytest.mark.asyncio
    async def test_missing_file_expires_export(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """A vanished file demotes the export to EXPIRED."""
        report = await insert_report(session_factory)
        job = await insert_export(
            session_factory, report.id, file_path=str(tmp_path / "gone.pdf")
        )
        service, _ = _service(session_factory, tmp_path)

        with pytest.raises(ExportExpiredError):
            await service.get_download(report.id, OWNER, ExportFormat.PDF)

        assert (await _get(session_factory, job.id)).status is ExportStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_pending_export_is_not_ready(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Downloads need a COMPLETED export."""
        report = await insert_report(session_factory)
        await insert_export(session_factory, report.id, status=ExportStatus.PENDING)
        service, _ = _service(session_factory, tmp_path)

        with pytest.raises(ExportStateError) as excinfo:
            await service.get_download(report.id, OWNER, ExportFormat.PDF)

        assert excinfo.value.code == "EXPORT_NOT_READY"

    def test_download_filename_truncates(self) -> None:
        """Stems are capped at 50 characters."""
        name = download_filename("x" * 80, ExportFormat.DOCX)
        assert name == "x" * 50 + ".docx"


class TestMaintenance:
    """Stale reclaim and TTL expiry."""

    @pytest.mark.asyncio
    async def test_stale_processing_job_is_requeued(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """PROCESSING past the threshold goes back to PENDING with retry+1."""
        report = await insert_report(session_factory)
        job = await insert_export(
            session_factory,
            report.id,
            status=ExportStatus.PROCESSING,
            started_at=utcnow() - dt.timedelta(minutes=30),
        )
        service, _ = _service(session_factory, tmp_path)

        reclaimed = await service.reset_stale()

        stored = await _get(session_factory, job.id)
        assert reclaimed == 1
        assert stored.status is ExportStatus.PENDING
        assert stored.retry_count == 1

    @pytest.mark.asyncio
    async def test_in_flight_jobs_are_not_reclaimed(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Jobs this process is still working on are skipped."""
        report = await insert_report(session_factory)
        job = await insert_export(
            session_factory,
            report.id,
            status=ExportStatus.PROCESSING,
            started_at=utcnow() - dt.timedelta(minutes=30),
        )
        service, _ = _service(session_factory, tmp_path)

        assert await service.reset_stale(exclude={job.id}) == 0

    @pytest.mark.asyncio
    async def test_expire_exports_deletes_files(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Exports past their TTL lose their files."""
        report = await insert_report(session_factory)
        stored = tmp_path / "old.pdf"
        stored.write_bytes(b"12345")
        job = await insert_export(
            session_factory,
            report.id,
            file_path=str(stored),
            expires_at=utcnow() - dt.timedelta(hours=1),
        )
        service, _ = _service(session_factory, tmp_path)

        stats = await service.expire_exports()

        assert (stats.expired, stats.files_deleted, stats.bytes_freed) == (1, 1, 5)
        assert not stored.exists()
        assert (await _get(session_factory, job.id)).status is ExportStatus.EXPIRED


class TestExportProcessor:
    """The polling processor."""

    @pytest.mark.asyncio
    async def test_tick_renders_pending_exports(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """A tick dispatches pending work up to the free slots."""
        report = await insert_report(session_factory)
        service, _ = _service(session_factory, tmp_path)
        pdf, docx = await service.request_exports(
            report.id, OWNER, [ExportFormat.PDF, ExportFormat.DOCX]
        )
        processor = ExportProcessor(service)

        await processor.tick()
        await processor.wait_idle()

        assert (await _get(session_factory, pdf.id)).status is ExportStatus.COMPLETED
        assert (await _get(session_factory, docx.id)).status is ExportStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_dispatch_refuses_duplicates(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """A job already in flight is not launched again."""
        report = await insert_report(session_factory)
        service, _ = _service(session_factory, tmp_path)
        job = await service.request_export(report.id, OWNER, ExportFormat.PDF)
        processor = ExportProcessor(service)

        assert processor.dispatch(job.id) is True
        assert processor.dispatch(job.id) is False
        await processor.wait_idle()
