"""Structured events for schedule executions."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import enum

from dossier.logging import get_logger, log_event

logger = get_logger(__name__)


class ScheduleEventType(enum.StrEnum):
    """Structured log event types for schedules."""

    SCHEDULE_SAVED = "schedules.schedule.saved"
    RUN_STARTED = "schedules.run.started"
    RUN_COMPLETED = "schedules.run.completed"
    RUN_FAILED = "schedules.run.failed"
    RUN_ADVANCED = "schedules.run.advanced"


class ScheduleEventLogger:
    """Emit structured schedule events via femtologging."""

    def log_saved(
        self, *, schedule_id: str, is_active: bool, next_run_at: dt.datetime | None
    ) -> None:
        """Log a created or updated schedule."""
        log_event(
            logger,
            ScheduleEventType.SCHEDULE_SAVED,
            schedule_id=schedule_id,
            is_active=is_active,
            next_run_at=next_run_at.isoformat() if next_run_at else None,
        )

    def log_started(self, *, schedule_id: str, manual: bool) -> None:
        """Log the start of an execution."""
        log_event(
            logger, ScheduleEventType.RUN_STARTED, schedule_id=schedule_id, manual=manual
        )

    def log_completed(self, *, schedule_id: str, report_id: str) -> None:
        """Log a report created by a schedule."""
        log_event(
            logger,
            ScheduleEventType.RUN_COMPLETED,
            schedule_id=schedule_id,
            report_id=report_id,
        )

    def log_failed(
        self, *, schedule_id: str, consecutive_failures: int, error: BaseException
    ) -> None:
        """Log an execution that did not create a report."""
        log_event(
            logger,
            ScheduleEventType.RUN_FAILED,
            level="ERROR",
            exc_info=error,
            schedule_id=schedule_id,
            consecutive_failures=consecutive_failures,
            error_type=type(error).__name__,
            error_message=str(error),
        )

    def log_advanced(
        self, *, schedule_id: str, next_run_at: dt.datetime | None
    ) -> None:
        """Log the bookkeeping written after every execution."""
        log_event(
            logger,
            ScheduleEventType.RUN_ADVANCED,
            level="DEBUG",
            schedule_id=schedule_id,
            next_run_at=next_run_at.isoformat() if next_run_at else None,
        )
