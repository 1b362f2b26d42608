"""Structured events for the retention sweep."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import enum

from dossier.logging import get_logger, log_event

logger = get_logger(__name__)


class CleanupEventType(enum.StrEnum):
    """Structured log event types for cleanup runs."""

    RUN_SCHEDULED = "cleanup.run.scheduled"
    RUN_STARTED = "cleanup.run.started"
    RUN_COMPLETED = "cleanup.run.completed"
    RUN_FAILED = "cleanup.run.failed"
    RUN_REJECTED = "cleanup.run.rejected"


class CleanupEventLogger:
    """Emit structured cleanup events via femtologging."""

    def log_scheduled(self, *, run_at: dt.datetime) -> None:
        """Log the next scheduled sweep."""
        log_event(logger, CleanupEventType.RUN_SCHEDULED, run_at=run_at.isoformat())

    def log_started(self, *, manual: bool, report_cutoff: dt.datetime) -> None:
        """Log the start of a sweep."""
        log_event(
            logger,
            CleanupEventType.RUN_STARTED,
            manual=manual,
            report_cutoff=report_cutoff.isoformat(),
        )

    def log_completed(self, **stats: object) -> None:
        """Log a finished sweep with its counters."""
        log_event(logger, CleanupEventType.RUN_COMPLETED, **stats)

    def log_failed(self, *, error: BaseException) -> None:
        """Log a sweep that raised."""
        log_event(
            logger,
            CleanupEventType.RUN_FAILED,
            level="ERROR",
            exc_info=error,
            error_type=type(error).__name__,
            error_message=str(error),
        )

    def log_rejected(self, *, manual: bool) -> None:
        """Log a trigger refused because a sweep is running."""
        log_event(logger, CleanupEventType.RUN_REJECTED, level="WARNING", manual=manual)
