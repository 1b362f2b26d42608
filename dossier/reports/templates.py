"""Saved report configurations and report creation from them."""

from __future__ import annotations

import typing as typ

from sqlalchemy import func, select

from dossier.activity import ActivityAction
from dossier.reports.errors import (
    TemplateInUseError,
    TemplateNotFoundError,
    TemplateValidationError,
)
from dossier.reports.options import (
    CreateReportInput,
    ReportInput,
    TemplateConfiguration,
    load_template_configuration,
    to_builtins,
)
from dossier.reports.workflows import resolve_sections
from dossier.storage import Schedule, Template

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from dossier.activity import ActivityRecorder
    from dossier.reports.options import DeliveryOptions
    from dossier.reports.service import ReportService
    from dossier.storage import Report, WorkflowType

MAX_NAME_LENGTH: typ.Final[int] = 200


class TemplateService:
    """CRUD for report templates plus :meth:`apply_template`."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        report_service: ReportService,
        *,
        activity: ActivityRecorder | None = None,
    ) -> None:
        """Bind the service to storage and the report orchestrator."""
        self._session_factory = session_factory
        self._reports = report_service
        self._activity = activity

    async def create_template(
        self,
        owner_id: str,
        *,
        name: str,
        workflow_type: WorkflowType,
        configuration: TemplateConfiguration,
        description: str | None = None,
    ) -> Template:
        """Persist a template after validating its name and sections.

        Raises
        ------
        TemplateValidationError
            If the name is blank or longer than 200 characters.
        ReportValidationError
            If a configured section is not offered by ``workflow_type``.

        """
        cleaned = name.strip()
        if not cleaned or len(cleaned) > MAX_NAME_LENGTH:
            raise TemplateValidationError.invalid_name(MAX_NAME_LENGTH)
        if configuration.sections:
            resolve_sections(workflow_type, configuration.sections)
        template = Template(
            owner_id=owner_id,
            name=cleaned,
            description=description,
            workflow_type=workflow_type,
            configuration=to_builtins(configuration),
        )
        async with self._session_factory() as session:
            session.add(template)
            await session.commit()
        if self._activity is not None:
            await self._activity.record(
                owner_id, ActivityAction.TEMPLATE_CREATE, template_id=template.id
            )
        return template

    async def get_template(self, template_id: str, owner_id: str) -> Template:
        """Return the owner's template.

        Raises
        ------
        TemplateNotFoundError
            If the template is absent or owned by someone else.

        """
        async with self._session_factory() as session:
            template = await session.scalar(
                select(Template).where(
                    Template.id == template_id, Template.owner_id == owner_id
                )
            )
        if template is None:
            raise TemplateNotFoundError.for_id(template_id)
        return template

    async def list_templates(
        self, owner_id: str, *, workflow_type: WorkflowType | None = None
    ) -> list[Template]:
        """List the owner's templates, most recently updated first."""
        stmt = select(Template).where(Template.owner_id == owner_id)
        if workflow_type is not None:
            stmt = stmt.where(Template.workflow_type == workflow_type)
        async with self._session_factory() as session:
            rows = await session.scalars(stmt.order_by(Template.updated_at.desc()))
            return list(rows)

    async def delete_template(self, template_id: str, owner_id: str) -> None:
        """Delete a template no schedule refers to.

        Raises
        ------
        TemplateNotFoundError
            If the template is absent or owned by someone else.
        TemplateInUseError
            If schedules still reference it.

        """
        template = await self.get_template(template_id, owner_id)
        async with self._session_factory() as session:
            in_use = await session.scalar(
                select(func.count())
                .select_from(Schedule)
                .where(Schedule.template_id == template_id)
            )
            if in_use:
                raise TemplateInUseError.for_schedules(template_id, in_use)
            await session.delete(await session.merge(template))
            await session.commit()
        if self._activity is not None:
            await self._activity.record(
                owner_id, ActivityAction.TEMPLATE_DELETE, template_id=template_id
            )

    async def apply_template(
        self,
        template_id: str,
        owner_id: str,
        *,
        title: str,
        input_data: ReportInput,
        schedule_id: str | None = None,
        delivery: DeliveryOptions | None = None,
    ) -> Report:
        """Create a report from a saved configuration plus company data.

        ``delivery`` replaces the template's own delivery settings when given.

        Raises
        ------
        TemplateNotFoundError
            If the template is absent or owned by someone else.
        ReportValidationError
            If the company fields do not fit the template's workflow.

        """
        template = await self.get_template(template_id, owner_id)
        configuration = load_template_configuration(template.configuration)
        report = await self._reports.create_report(
            CreateReportInput(
                owner_id=owner_id,
                title=title,
                workflow_type=template.workflow_type,
                input_data=input_data,
                sections=configuration.sections,
                depth=configuration.depth,
                competitive_options=configuration.competitive_options,
                news_digest_options=configuration.news_digest_options,
                requested_formats=configuration.requested_formats,
                delivery=delivery or configuration.delivery,
                podcast_options=configuration.podcast_options,
                schedule_id=schedule_id,
            )
        )
        if self._activity is not None:
            await self._activity.record(
                owner_id,
                ActivityAction.TEMPLATE_APPLY,
                template_id=template_id,
                report_id=report.id,
            )
        return report
