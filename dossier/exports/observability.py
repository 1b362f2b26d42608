"""Structured events for export jobs."""

from __future__ import annotations

import enum

from dossier.logging import get_logger, log_event

logger = get_logger(__name__)


class ExportEventType(enum.StrEnum):
    """Structured log event types for export jobs."""

    JOB_REQUESTED = "exports.job.requested"
    JOB_STARTED = "exports.job.started"
    JOB_COMPLETED = "exports.job.completed"
    JOB_REQUEUED = "exports.job.requeued"
    JOB_FAILED = "exports.job.failed"
    JOB_STALE_RESET = "exports.job.stale_reset"
    JOB_EXPIRED = "exports.job.expired"


class ExportEventLogger:
    """Emit structured export events via femtologging."""

    def log_requested(self, *, export_id: str, report_id: str, fmt: str, trigger: str) -> None:
        """Log a new or reset export job."""
        log_event(
            logger,
            ExportEventType.JOB_REQUESTED,
            export_id=export_id,
            report_id=report_id,
            format=fmt,
            trigger=trigger,
        )

    def log_started(self, *, export_id: str, attempt: int) -> None:
        """Log the PENDING to PROCESSING transition."""
        log_event(logger, ExportEventType.JOB_STARTED, export_id=export_id, attempt=attempt)

    def log_completed(self, *, export_id: str, path: str, size: int) -> None:
        """Log a rendered and stored export."""
        log_event(
            logger, ExportEventType.JOB_COMPLETED, export_id=export_id, path=path, size=size
        )

    def log_failed(
        self, *, export_id: str, retry_count: int, requeued: bool, error: BaseException
    ) -> None:
        """Log a failed render, requeued or terminal."""
        log_event(
            logger,
            ExportEventType.JOB_REQUEUED if requeued else ExportEventType.JOB_FAILED,
            level="WARNING" if requeued else "ERROR",
            exc_info=error,
            export_id=export_id,
            retry_count=retry_count,
            error_type=type(error).__name__,
            error_message=str(error),
        )

    def log_stale_reset(self, *, export_id: str, retry_count: int, requeued: bool) -> None:
        """Log a PROCESSING export reclaimed after the stale threshold."""
        log_event(
            logger,
            ExportEventType.JOB_STALE_RESET,
            level="WARNING",
            export_id=export_id,
            retry_count=retry_count,
            requeued=requeued,
        )

    def log_expired(self, *, export_id: str, reason: str) -> None:
        """Log an export demoted to EXPIRED."""
        log_event(logger, ExportEventType.JOB_EXPIRED, export_id=export_id, reason=reason)
