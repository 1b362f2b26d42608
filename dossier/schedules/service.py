"""Recurring report schedules: CRUD, due-time bookkeeping and execution.

A schedule names a template, a cron expression and the company data the
template's workflow needs. Each execution applies the template to create
a report titled ``"<name> - YYYY-MM-DD"``. Whatever the outcome,
:meth:`ScheduleService.mark_schedule_executed` advances ``next_run_at``
so a schedule that keeps failing does not fire on every poll.
"""

from __future__ import annotations

import typing as typ

import msgspec
from sqlalchemy import func, select, update

from dossier.activity import ActivityAction
from dossier.common.time import utcnow
from dossier.reports.options import DeliveryOptions, ReportInput
from dossier.schedules import cron
from dossier.schedules.config import ScheduleConfig
from dossier.schedules.errors import ScheduleNotFoundError, ScheduleValidationError
from dossier.schedules.observability import ScheduleEventLogger
from dossier.storage import DeliveryMethod, DestinationType, Schedule, WorkflowType

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from dossier.activity import ActivityRecorder
    from dossier.reports.templates import TemplateService
    from dossier.storage import Report

MAX_NAME_LENGTH: typ.Final[int] = 200
MAX_ERROR_CHARS: typ.Final[int] = 1000


class CreateScheduleInput(msgspec.Struct, kw_only=True, frozen=True):
    """Caller-supplied definition of a new schedule."""

    name: str
    template_id: str
    cron_expression: str
    timezone: str | None = None
    description: str | None = None
    is_active: bool = True
    delivery_method: DeliveryMethod | None = None
    delivery_destination: str | None = None
    target_company_name: str | None = None
    target_company_names: tuple[str, ...] | None = None


class UpdateScheduleInput(msgspec.Struct, kw_only=True, frozen=True):
    """Partial update; fields left ``UNSET`` keep their stored value."""

    name: str | msgspec.UnsetType = msgspec.UNSET
    description: str | None | msgspec.UnsetType = msgspec.UNSET
    cron_expression: str | msgspec.UnsetType = msgspec.UNSET
    timezone: str | msgspec.UnsetType = msgspec.UNSET
    delivery_method: DeliveryMethod | None | msgspec.UnsetType = msgspec.UNSET
    delivery_destination: str | None | msgspec.UnsetType = msgspec.UNSET
    target_company_name: str | None | msgspec.UnsetType = msgspec.UNSET
    target_company_names: tuple[str, ...] | None | msgspec.UnsetType = msgspec.UNSET


def _clean_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise ScheduleValidationError.name_required()
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ScheduleValidationError.name_too_long(MAX_NAME_LENGTH)
    return cleaned


def _strip_or_none(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def _check_delivery(method: DeliveryMethod | None, destination: str | None) -> None:
    if method is DeliveryMethod.WEBEX and not (destination and destination.strip()):
        raise ScheduleValidationError.missing_destination()


def destination_type_for(destination: str) -> DestinationType:
    """Classify a Webex destination as an email address or a room id."""
    return DestinationType.EMAIL if "@" in destination else DestinationType.ROOM_ID


def report_title(name: str, now: dt.datetime) -> str:
    """Return the title of the report a schedule creates at ``now``."""
    return f"{name} - {now:%Y-%m-%d}"


def report_input(schedule: Schedule, workflow: WorkflowType) -> ReportInput:
    """Build report input from a schedule's targeting fields.

    Raises
    ------
    ScheduleValidationError
        If the schedule lacks the company data ``workflow`` requires.

    """
    names = tuple(schedule.target_company_names or ())
    if workflow is WorkflowType.NEWS_DIGEST:
        if not names:
            raise ScheduleValidationError.missing_company_names()
    elif not schedule.target_company_name:
        raise ScheduleValidationError.missing_company_name(workflow)
    return ReportInput(company_name=schedule.target_company_name, company_names=names)


def delivery_override(schedule: Schedule) -> DeliveryOptions | None:
    """Return delivery settings configured on the schedule itself, if any."""
    destination = schedule.delivery_destination
    if schedule.delivery_method is not DeliveryMethod.WEBEX or not destination:
        return None
    return DeliveryOptions(
        destination=destination,
        destination_type=destination_type_for(destination),
        method=DeliveryMethod.WEBEX,
    )


class ScheduleService:
    """Manage schedules and run them through the template service.

    Parameters
    ----------
    session_factory
        Async session factory for database access.
    templates
        Template service used to check ownership and create reports.
    config
        Polling settings and the default timezone.
    event_logger
        Structured lifecycle logger.
    activity
        Optional audit trail recorder.
    clock
        Source of the current time.

    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        templates: TemplateService,
        config: ScheduleConfig | None = None,
        *,
        event_logger: ScheduleEventLogger | None = None,
        activity: ActivityRecorder | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Configure the service."""
        self._session_factory = session_factory
        self._templates = templates
        self._config = config or ScheduleConfig()
        self._events = event_logger or ScheduleEventLogger()
        self._activity = activity
        self._clock = clock

    @property
    def config(self) -> ScheduleConfig:
        """Active configuration."""
        return self._config

    async def _record(self, owner_id: str, action: ActivityAction, **details: object) -> None:
        if self._activity is not None:
            await self._activity.record(owner_id, action, **details)

    def get_next_runs(
        self, cron_expression: str, timezone: str | None = None, count: int = 5
    ) -> list[dt.datetime]:
        """Preview the next ``count`` fire times of an expression.

        Raises
        ------
        ScheduleValidationError
            If the expression or zone is invalid.

        """
        return cron.next_runs(
            cron_expression,
            timezone or self._config.default_timezone,
            after=self._clock(),
            count=count,
        )

    async def create_schedule(self, owner_id: str, data: CreateScheduleInput) -> Schedule:
        """Validate and persist a schedule.

        Raises
        ------
        ScheduleValidationError
            If the name, cron expression, zone or delivery settings are bad.
        TemplateNotFoundError
            If the template is absent or owned by someone else.

        """
        name = _clean_name(data.name)
        timezone = data.timezone or self._config.default_timezone
        cron.validate(data.cron_expression, timezone)
        await self._templates.get_template(data.template_id, owner_id)
        _check_delivery(data.delivery_method, data.delivery_destination)

        schedule = Schedule(
            owner_id=owner_id,
            name=name,
            description=_strip_or_none(data.description),
            template_id=data.template_id,
            cron_expression=data.cron_expression,
            timezone=timezone,
            is_active=data.is_active,
            delivery_method=data.delivery_method,
            delivery_destination=_strip_or_none(data.delivery_destination),
            target_company_name=_strip_or_none(data.target_company_name),
            target_company_names=(
                list(data.target_company_names) if data.target_company_names else None
            ),
            next_run_at=(
                cron.next_run(data.cron_expression, timezone, after=self._clock())
                if data.is_active
                else None
            ),
        )
        async with self._session_factory() as session:
            session.add(schedule)
            await session.commit()
        self._events.log_saved(
            schedule_id=schedule.id,
            is_active=schedule.is_active,
            next_run_at=schedule.next_run_at,
        )
        await self._record(owner_id, ActivityAction.SCHEDULE_CREATE, schedule_id=schedule.id)
        return schedule

    @staticmethod
    async def _owned(session: AsyncSession, schedule_id: str, owner_id: str) -> Schedule:
        schedule = await session.scalar(
            select(Schedule).where(
                Schedule.id == schedule_id, Schedule.owner_id == owner_id
            )
        )
        if schedule is None:
            raise ScheduleNotFoundError.for_id(schedule_id)
        return schedule

    async def get_schedule(self, schedule_id: str, owner_id: str) -> Schedule:
        """Return the owner's schedule.

        Raises
        ------
        ScheduleNotFoundError
            If the schedule is absent or owned by someone else.

        """
        async with self._session_factory() as session:
            return await self._owned(session, schedule_id, owner_id)

    async def list_schedules(
        self,
        owner_id: str,
        *,
        is_active: bool | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Schedule], int]:
        """Return one page of the owner's schedules, newest first, and the total."""
        conditions = [Schedule.owner_id == owner_id]
        if is_active is not None:
            conditions.append(Schedule.is_active == is_active)
        async with self._session_factory() as session:
            total = await session.scalar(
                select(func.count()).select_from(Schedule).where(*conditions)
            )
            rows = await session.scalars(
                select(Schedule)
                .where(*conditions)
                .order_by(Schedule.created_at.desc())
                .limit(limit)
                .offset(offset)
            )
            return list(rows), int(total or 0)

    async def update_schedule(
        self, schedule_id: str, owner_id: str, changes: UpdateScheduleInput
    ) -> Schedule:
        """Apply a partial update.

        ``next_run_at`` is recomputed when the expression or zone changes
        on an active schedule.

        Raises
        ------
        ScheduleNotFoundError
            If the schedule is absent or owned by someone else.
        ScheduleValidationError
            If a changed field is invalid or Webex delivery would be left
            without a destination.

        """
        async with self._session_factory() as session:
            schedule = await self._owned(session, schedule_id, owner_id)
            values = {
                field: value
                for field in UpdateScheduleInput.__struct_fields__
                if (value := getattr(changes, field)) is not msgspec.UNSET
            }
            if "name" in values:
                values["name"] = _clean_name(values["name"])
            for field in ("description", "delivery_destination", "target_company_name"):
                if field in values:
                    values[field] = _strip_or_none(values[field])
            if "target_company_names" in values:
                names = values["target_company_names"]
                values["target_company_names"] = list(names) if names else None

            cron_expression = values.get("cron_expression", schedule.cron_expression)
            timezone = values.get("timezone", schedule.timezone)
            if "cron_expression" in values or "timezone" in values:
                cron.validate(cron_expression, timezone)
            _check_delivery(
                values.get("delivery_method", schedule.delivery_method),
                values.get("delivery_destination", schedule.delivery_destination),
            )
            if schedule.is_active and ("cron_expression" in values or "timezone" in values):
                values["next_run_at"] = cron.next_run(
                    cron_expression, timezone, after=self._clock()
                )

            for field, value in values.items():
                setattr(schedule, field, value)
            await session.commit()
        self._events.log_saved(
            schedule_id=schedule.id,
            is_active=schedule.is_active,
            next_run_at=schedule.next_run_at,
        )
        await self._record(
            owner_id,
            ActivityAction.SCHEDULE_UPDATE,
            schedule_id=schedule_id,
            fields=sorted(values),
        )
        return schedule

    async def delete_schedule(self, schedule_id: str, owner_id: str) -> None:
        """Delete the owner's schedule; reports it created are kept.

        Raises
        ------
        ScheduleNotFoundError
            If the schedule is absent or owned by someone else.

        """
        async with self._session_factory() as session:
            schedule = await self._owned(session, schedule_id, owner_id)
            await session.delete(schedule)
            await session.commit()
        await self._record(owner_id, ActivityAction.SCHEDULE_DELETE, schedule_id=schedule_id)

    async def activate_schedule(self, schedule_id: str, owner_id: str) -> Schedule:
        """Mark the schedule active and compute its next fire time."""
        async with self._session_factory() as session:
            schedule = await self._owned(session, schedule_id, owner_id)
            schedule.is_active = True
            schedule.next_run_at = cron.next_run(
                schedule.cron_expression, schedule.timezone, after=self._clock()
            )
            await session.commit()
        self._events.log_saved(
            schedule_id=schedule_id, is_active=True, next_run_at=schedule.next_run_at
        )
        await self._record(owner_id, ActivityAction.SCHEDULE_ACTIVATE, schedule_id=schedule_id)
        return schedule

    async def deactivate_schedule(self, schedule_id: str, owner_id: str) -> Schedule:
        """Mark the schedule inactive and clear its next fire time."""
        async with self._session_factory() as session:
            schedule = await self._owned(session, schedule_id, owner_id)
            schedule.is_active = False
            schedule.next_run_at = None
            await session.commit()
        self._events.log_saved(schedule_id=schedule_id, is_active=False, next_run_at=None)
        await self._record(
            owner_id, ActivityAction.SCHEDULE_DEACTIVATE, schedule_id=schedule_id
        )
        return schedule

    async def get_due_schedules(self, *, now: dt.datetime | None = None) -> list[Schedule]:
        """Return active schedules whose ``next_run_at`` is at or before ``now``."""
        moment = now or self._clock()
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(Schedule)
                .where(
                    Schedule.is_active.is_(True),
                    Schedule.next_run_at.is_not(None),
                    Schedule.next_run_at <= moment,
                )
                .order_by(Schedule.next_run_at)
            )
            return list(rows)

    async def mark_schedule_executed(
        self,
        schedule_id: str,
        *,
        error: BaseException | None = None,
        now: dt.datetime | None = None,
    ) -> dt.datetime | None:
        """Record an execution and advance ``next_run_at``.

        A successful run resets ``consecutive_failures`` and ``last_error``;
        a failed one increments the counter and stores the message.

        Returns
        -------
        datetime.datetime | None
            The new ``next_run_at``; ``None`` for an inactive schedule.

        Raises
        ------
        ScheduleNotFoundError
            If the schedule no longer exists.

        """
        moment = now or self._clock()
        async with self._session_factory() as session:
            schedule = await session.get(Schedule, schedule_id)
            if schedule is None:
                raise ScheduleNotFoundError.for_id(schedule_id)
            next_run_at = (
                cron.next_run(schedule.cron_expression, schedule.timezone, after=moment)
                if schedule.is_active
                else None
            )
            values: dict[str, object] = {"last_run_at": moment, "next_run_at": next_run_at}
            if error is None:
                values |= {"consecutive_failures": 0, "last_error": None}
            else:
                values |= {
                    "consecutive_failures": Schedule.consecutive_failures + 1,
                    "last_error": str(error)[:MAX_ERROR_CHARS],
                }
            await session.execute(
                update(Schedule)
                .where(Schedule.id == schedule_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        self._events.log_advanced(schedule_id=schedule_id, next_run_at=next_run_at)
        return next_run_at

    async def _create_report(self, schedule: Schedule, now: dt.datetime) -> Report:
        template = await self._templates.get_template(
            schedule.template_id, schedule.owner_id
        )
        report = await self._templates.apply_template(
            template.id,
            schedule.owner_id,
            title=report_title(schedule.name, now),
            input_data=report_input(schedule, template.workflow_type),
            schedule_id=schedule.id,
            delivery=delivery_override(schedule),
        )
        self._events.log_completed(schedule_id=schedule.id, report_id=report.id)
        return report

    async def execute_schedule(self, schedule_id: str) -> Report | None:
        """Run a due schedule once and always advance its next fire time.

        Returns
        -------
        Report | None
            The created report, or ``None`` when the run failed or the
            schedule has disappeared or been deactivated.

        """
        now = self._clock()
        async with self._session_factory() as session:
            schedule = await session.get(Schedule, schedule_id)
        if schedule is None or not schedule.is_active:
            return None
        self._events.log_started(schedule_id=schedule_id, manual=False)
        try:
            report = await self._create_report(schedule, now)
        except Exception as exc:  # noqa: BLE001 - the failure is stored on the schedule
            self._events.log_failed(
                schedule_id=schedule_id,
                consecutive_failures=schedule.consecutive_failures + 1,
                error=exc,
            )
            await self.mark_schedule_executed(schedule_id, error=exc, now=now)
            return None
        await self.mark_schedule_executed(schedule_id, now=now)
        return report

    async def trigger_schedule(self, schedule_id: str, owner_id: str) -> Report:
        """Run the owner's schedule now, leaving its timing untouched.

        Raises
        ------
        ScheduleNotFoundError
            If the schedule is absent or owned by someone else.
        ScheduleValidationError
            If the schedule lacks company data for its workflow.
        TemplateNotFoundError
            If the schedule's template has been deleted.

        """
        schedule = await self.get_schedule(schedule_id, owner_id)
        self._events.log_started(schedule_id=schedule_id, manual=True)
        report = await self._create_report(schedule, self._clock())
        await self._record(
            owner_id,
            ActivityAction.SCHEDULE_TRIGGER,
            schedule_id=schedule_id,
            report_id=report.id,
        )
        return report
