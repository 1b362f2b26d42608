"""Report orchestration: creation, section generation and lifecycle.

A report moves PENDING -> PROCESSING -> COMPLETED or FAILED. Only
:meth:`ReportService.retry_report` leaves FAILED, resetting the report to
PENDING. Every edge is a guarded update, so a report whose status changed
underneath a caller is left alone.

Usage
-----
>>> service = ReportService(
...     ReportServiceDependencies(
...         session_factory=session_factory,
...         generator=SectionGenerator(completion_service),
...     ),
...     completed_hook=triggers,
... )
>>> report = await service.create_report(
...     CreateReportInput(
...         owner_id="u-1",
...         title="Acme briefing",
...         workflow_type=WorkflowType.ACCOUNT_INTELLIGENCE,
...         input_data=ReportInput(company_name="Acme"),
...     )
... )
>>> await service.drain()

"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import time
import typing as typ

from sqlalchemy import func, select

from dossier.activity import ActivityAction
from dossier.common.time import utcnow
from dossier.logging import get_logger, log_exception, log_warning
from dossier.reports.analytics import record_generation
from dossier.reports.config import ReportsConfig
from dossier.reports.errors import (
    ReportNotFoundError,
    ReportStateError,
    ReportValidationError,
)
from dossier.reports.options import (
    ReportConfiguration,
    load_configuration,
    load_input,
    to_builtins,
)
from dossier.reports.workflows import (
    describe_sections,
    resolve_sections,
    token_budget,
)
from dossier.storage import (
    DocumentExport,
    PodcastGeneration,
    Report,
    ReportStatus,
    WorkflowType,
    delete_reports,
    transition,
)
from dossier.storage.files import remove_files

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from dossier.activity import ActivityRecorder
    from dossier.reports.generator import SectionGenerator
    from dossier.reports.hooks import ReportCompletedHook
    from dossier.reports.observability import ReportEventLogger
    from dossier.reports.options import CreateReportInput, ReportInput
    from dossier.reports.workflows import SectionInfo

logger = get_logger(__name__)


@dc.dataclass(frozen=True, slots=True)
class ReportServiceDependencies:
    """Mandatory collaborators for :class:`ReportService`.

    Attributes
    ----------
    session_factory
        Async session factory for database access.
    generator
        Produces the text of one section.

    """

    session_factory: async_sessionmaker[AsyncSession]
    generator: SectionGenerator


@dc.dataclass(frozen=True, slots=True)
class ReportPage:
    """One page of a report listing plus the unpaged total."""

    reports: list[Report]
    total: int


@dc.dataclass(frozen=True, slots=True)
class ReportProgress:
    """Status of a report with section-level progress.

    ``progress`` is 0 while PENDING or FAILED, 100 once COMPLETED, and the
    rounded share of generated sections while PROCESSING.
    """

    report_id: str
    status: ReportStatus
    progress: int
    completed_sections: int
    total_sections: int
    error: str | None = None


def _validate_input(workflow: WorkflowType, input_data: ReportInput) -> None:
    if workflow is WorkflowType.NEWS_DIGEST:
        if not any(name.strip() for name in input_data.company_names):
            raise ReportValidationError.missing_company_names()
    elif not (input_data.company_name or "").strip():
        raise ReportValidationError.missing_company_name(workflow)


class ReportService:
    """Create reports and drive them through section generation.

    Generation runs in background tasks owned by the service; callers get
    the PENDING record back at once. :meth:`drain` waits for those tasks,
    which tests and shutdown use.
    """

    def __init__(
        self,
        dependencies: ReportServiceDependencies,
        config: ReportsConfig | None = None,
        *,
        completed_hook: ReportCompletedHook | None = None,
        event_logger: ReportEventLogger | None = None,
        activity: ActivityRecorder | None = None,
    ) -> None:
        """Configure the service.

        Parameters
        ----------
        dependencies
            Session factory and section generator.
        config
            Optional settings; defaults apply when omitted.
        completed_hook
            Receives each report that reaches COMPLETED.
        event_logger
            Optional structured lifecycle logger.
        activity
            Optional audit trail recorder.

        """
        self._session_factory = dependencies.session_factory
        self._generator = dependencies.generator
        self._config = config or ReportsConfig()
        self._completed_hook = completed_hook
        self._event_logger = event_logger
        self._activity = activity
        self._tasks: set[asyncio.Task[None]] = set()

    def set_completed_hook(self, hook: ReportCompletedHook | None) -> None:
        """Attach the hook after construction, for cyclic wiring."""
        self._completed_hook = hook

    def _log_to_event_logger(
        self,
        event_method_name: str,
        **kwargs: typ.Any,  # noqa: ANN401
    ) -> None:
        if self._event_logger is None:
            return
        getattr(self._event_logger, event_method_name)(**kwargs)

    async def _record_activity(
        self, owner_id: str, action: ActivityAction, **details: object
    ) -> None:
        if self._activity is not None:
            await self._activity.record(owner_id, action, **details)

    async def create_report(self, request: CreateReportInput) -> Report:
        """Validate ``request``, persist a PENDING report and start generation.

        Raises
        ------
        ReportValidationError
            If the title is blank, company data is missing for the
            workflow, or a requested section is not offered by it.

        """
        if not request.title.strip():
            raise ReportValidationError.empty_title()
        _validate_input(request.workflow_type, request.input_data)
        sections = resolve_sections(request.workflow_type, request.sections)

        is_ci = request.workflow_type is WorkflowType.COMPETITIVE_INTELLIGENCE
        is_nd = request.workflow_type is WorkflowType.NEWS_DIGEST
        configuration = ReportConfiguration(
            sections=sections,
            depth=request.depth,
            max_tokens=token_budget(request.depth),
            temperature=self._config.temperature,
            competitive_options=request.competitive_options if is_ci else None,
            news_digest_options=request.news_digest_options if is_nd else None,
            delivery=request.delivery,
            podcast_options=request.podcast_options,
        )
        report = Report(
            owner_id=request.owner_id,
            title=request.title.strip(),
            workflow_type=request.workflow_type,
            status=ReportStatus.PENDING,
            configuration=to_builtins(configuration),
            input_data=to_builtins(request.input_data),
            llm_model=request.llm_model or self._config.default_llm_model,
            requested_formats=[str(fmt) for fmt in dict.fromkeys(request.requested_formats)],
            schedule_id=request.schedule_id,
        )
        async with self._session_factory() as session:
            session.add(report)
            await session.commit()

        self._log_to_event_logger(
            "log_report_created",
            report_id=report.id,
            workflow=report.workflow_type,
            owner_id=report.owner_id,
        )
        await self._record_activity(
            report.owner_id,
            ActivityAction.REPORT_CREATE,
            report_id=report.id,
            workflow_type=str(report.workflow_type),
        )
        self._spawn_generation(report.id)
        return report

    def _spawn_generation(self, report_id: str) -> None:
        task = asyncio.create_task(
            self._run_generation(report_id), name=f"report-{report_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_generation(self, report_id: str) -> None:
        try:
            await self.generate_report_content(report_id)
        except Exception as exc:  # noqa: BLE001 - background task boundary
            log_exception(logger, f"Report generation crashed for {report_id}", exc)

    async def drain(self) -> None:
        """Wait for every background generation started so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self, timeout: float | None = None) -> bool:
        """Wait a bounded time for background generations, then cancel the rest.

        Cancelled reports are marked FAILED so they can be retried.

        Returns
        -------
        bool
            ``True`` when every generation finished before the timeout.

        """
        limit = self._config.stop_timeout if timeout is None else timeout
        tasks = set(self._tasks)
        if not tasks:
            return True
        _done, pending = await asyncio.wait(tasks, timeout=limit)
        if not pending:
            return True
        log_warning(
            logger, "Abandoning %s report generation(s) after %ss", len(pending), limit
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        return False

    async def generate_report_content(self, report_id: str) -> ReportStatus:
        """Generate every section of a PENDING report, strictly in order.

        Each finished section is persisted immediately so progress can be
        observed. Any section failure fails the whole report, replacing its
        content with ``{"error": message}``. On success the completed hook
        runs; its failures are logged and never revert the report.

        Returns
        -------
        ReportStatus
            The status the report ended in, or its current status when it
            was not PENDING and therefore left untouched.

        Raises
        ------
        ReportNotFoundError
            If the report does not exist.

        """
        async with self._session_factory() as session:
            report = await session.get(Report, report_id)
            if report is None:
                raise ReportNotFoundError.for_id(report_id)
            started = await transition(
                session,
                Report,
                report_id,
                expected=[ReportStatus.PENDING],
                status=ReportStatus.PROCESSING,
                error=None,
            )
            await session.commit()
            if not started:
                return report.status
            workflow = report.workflow_type
            configuration = load_configuration(report.configuration)
            input_data = load_input(report.input_data)
            model = report.llm_model

        self._log_to_event_logger(
            "log_report_started",
            report_id=report_id,
            workflow=workflow,
            sections=len(configuration.sections),
        )

        content: dict[str, typ.Any] = {}
        total_tokens = 0
        clock = time.perf_counter()
        current_section: str | None = None
        try:
            for current_section in configuration.sections:
                section = await self._generator.generate(
                    workflow=workflow,
                    section=current_section,
                    input_data=input_data,
                    configuration=configuration,
                    model=model,
                )
                content[current_section] = to_builtins(section)
                total_tokens += section.metadata.tokens
                await self._store_progress(report_id, content)
                self._log_to_event_logger(
                    "log_section_completed",
                    report_id=report_id,
                    section=current_section,
                    model=section.metadata.model,
                    tokens=section.metadata.tokens,
                )
        except asyncio.CancelledError:
            await self._fail(
                report_id, workflow, current_section, ReportStateError.interrupted(report_id)
            )
            raise
        except Exception as exc:  # noqa: BLE001 - any failure fails the report
            await self._fail(report_id, workflow, current_section, exc)
            return ReportStatus.FAILED

        duration_ms = (time.perf_counter() - clock) * 1000
        async with self._session_factory() as session:
            completed = await transition(
                session,
                Report,
                report_id,
                expected=[ReportStatus.PROCESSING],
                status=ReportStatus.COMPLETED,
                generated_content=content,
                completed_at=utcnow(),
            )
            await session.commit()
            if not completed:
                current = await session.get(Report, report_id, populate_existing=True)
                return current.status if current is not None else ReportStatus.FAILED
            report = await session.get(Report, report_id, populate_existing=True)

        await record_generation(
            self._session_factory, workflow, succeeded=True, duration_ms=duration_ms
        )
        self._log_to_event_logger(
            "log_report_completed",
            report_id=report_id,
            sections=len(configuration.sections),
            total_tokens=total_tokens,
            duration_ms=duration_ms,
        )
        if report is not None:
            await self._fire_completed(report)
        return ReportStatus.COMPLETED

    async def _store_progress(self, report_id: str, content: dict[str, typ.Any]) -> None:
        async with self._session_factory() as session:
            await transition(
                session,
                Report,
                report_id,
                expected=[ReportStatus.PROCESSING],
                generated_content=dict(content),
            )
            await session.commit()

    async def _fail(
        self,
        report_id: str,
        workflow: WorkflowType,
        section: str | None,
        error: Exception,
    ) -> None:
        message = str(error) or type(error).__name__
        async with self._session_factory() as session:
            await transition(
                session,
                Report,
                report_id,
                expected=[ReportStatus.PROCESSING],
                status=ReportStatus.FAILED,
                generated_content={"error": message},
                error=message,
            )
            await session.commit()
        self._log_to_event_logger(
            "log_report_failed", report_id=report_id, section=section, error=error
        )
        await record_generation(self._session_factory, workflow, succeeded=False)

    async def _fire_completed(self, report: Report) -> None:
        if self._completed_hook is None:
            return
        try:
            await self._completed_hook.on_report_completed(report)
        except Exception as exc:  # noqa: BLE001 - downstream work retries on its own
            self._log_to_event_logger("log_triggers_failed", report_id=report.id, error=exc)

    async def get_report(self, report_id: str, owner_id: str) -> Report:
        """Return the report if ``owner_id`` owns it.

        Raises
        ------
        ReportNotFoundError
            If the report is absent or owned by someone else.

        """
        async with self._session_factory() as session:
            return await self._owned(session, report_id, owner_id)

    @staticmethod
    async def _owned(session: AsyncSession, report_id: str, owner_id: str) -> Report:
        report = await session.scalar(
            select(Report).where(Report.id == report_id, Report.owner_id == owner_id)
        )
        if report is None:
            raise ReportNotFoundError.for_id(report_id)
        return report

    async def list_reports(
        self,
        owner_id: str,
        *,
        workflow_type: WorkflowType | None = None,
        status: ReportStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> ReportPage:
        """List the owner's reports, newest first, with the unpaged total."""
        limit = min(max(limit, 1), self._config.max_page_size)
        offset = max(offset, 0)
        filters = [Report.owner_id == owner_id]
        if workflow_type is not None:
            filters.append(Report.workflow_type == workflow_type)
        if status is not None:
            filters.append(Report.status == status)
        async with self._session_factory() as session:
            total = await session.scalar(
                select(func.count()).select_from(Report).where(*filters)
            )
            rows = await session.scalars(
                select(Report)
                .where(*filters)
                .order_by(Report.created_at.desc(), Report.id.desc())
                .limit(limit)
                .offset(offset)
            )
            return ReportPage(reports=list(rows), total=total or 0)

    async def delete_report(self, report_id: str, owner_id: str) -> None:
        """Delete a report, its job rows and their stored files.

        Raises
        ------
        ReportNotFoundError
            If the report is absent or owned by someone else.

        """
        async with self._session_factory() as session:
            await self._owned(session, report_id, owner_id)
            export_paths = await session.scalars(
                select(DocumentExport.file_path).where(
                    DocumentExport.report_id == report_id
                )
            )
            audio_paths = await session.scalars(
                select(PodcastGeneration.final_audio_path).where(
                    PodcastGeneration.report_id == report_id
                )
            )
            paths = [*export_paths, *audio_paths]
            await delete_reports(session, [report_id])
            await session.commit()
        await remove_files(paths)
        await self._record_activity(
            owner_id, ActivityAction.REPORT_DELETE, report_id=report_id
        )

    async def retry_report(self, report_id: str, owner_id: str) -> Report:
        """Reset a FAILED report to PENDING and regenerate it.

        Raises
        ------
        ReportNotFoundError
            If the report is absent or owned by someone else.
        ReportStateError
            If the report is not FAILED.

        """
        async with self._session_factory() as session:
            report = await self._owned(session, report_id, owner_id)
            reset = await transition(
                session,
                Report,
                report_id,
                expected=[ReportStatus.FAILED],
                status=ReportStatus.PENDING,
                generated_content=None,
                error=None,
                completed_at=None,
            )
            await session.commit()
            if not reset:
                raise ReportStateError.not_failed(report_id, report.status)
            report = await session.get(Report, report_id, populate_existing=True)

        self._log_to_event_logger("log_report_retried", report_id=report_id)
        await self._record_activity(
            owner_id, ActivityAction.REPORT_RETRY, report_id=report_id
        )
        self._spawn_generation(report_id)
        return typ.cast("Report", report)

    async def get_report_status(self, report_id: str, owner_id: str) -> ReportProgress:
        """Return status and section-level progress for a report."""
        report = await self.get_report(report_id, owner_id)
        sections = load_configuration(report.configuration).sections
        content = report.generated_content or {}
        done = sum(1 for section in sections if section in content)
        total = len(sections)
        if report.status is ReportStatus.COMPLETED:
            progress = 100
        elif report.status is ReportStatus.PROCESSING and total:
            progress = round(done / total * 100)
        else:
            progress = 0
        return ReportProgress(
            report_id=report.id,
            status=report.status,
            progress=progress,
            completed_sections=done,
            total_sections=total,
            error=report.error,
        )

    @staticmethod
    def get_workflow_sections(workflow: WorkflowType) -> list[SectionInfo]:
        """Return the sections ``workflow`` offers with display metadata."""
        return describe_sections(workflow)
