"""Emit structured observability events for the report lifecycle.

Usage
-----
>>> event_logger = ReportEventLogger()
>>> event_logger.log_report_started(report_id="r-1", workflow="NEWS_DIGEST", sections=1)

"""

from __future__ import annotations

import enum

from dossier.logging import get_logger, log_error, log_info, log_warning

logger = get_logger(__name__)


class ReportEventType(enum.StrEnum):
    """Structured log event types for report generation."""

    REPORT_CREATED = "reports.report.created"
    REPORT_STARTED = "reports.report.started"
    SECTION_COMPLETED = "reports.section.completed"
    REPORT_COMPLETED = "reports.report.completed"
    REPORT_FAILED = "reports.report.failed"
    REPORT_RETRIED = "reports.report.retried"
    TRIGGERS_FAILED = "reports.triggers.failed"


class ReportEventLogger:
    """Emit structured report events via femtologging."""

    def log_report_created(self, *, report_id: str, workflow: str, owner_id: str) -> None:
        """Log that a report was persisted as PENDING."""
        log_info(
            logger,
            "[%s] report_id=%s workflow=%s owner_id=%s",
            ReportEventType.REPORT_CREATED,
            report_id,
            workflow,
            owner_id,
        )

    def log_report_started(self, *, report_id: str, workflow: str, sections: int) -> None:
        """Log the PENDING to PROCESSING transition."""
        log_info(
            logger,
            "[%s] report_id=%s workflow=%s sections=%s",
            ReportEventType.REPORT_STARTED,
            report_id,
            workflow,
            sections,
        )

    def log_section_completed(
        self, *, report_id: str, section: str, model: str, tokens: int
    ) -> None:
        """Log one generated section with its token usage."""
        log_info(
            logger,
            "[%s] report_id=%s section=%s model=%s tokens=%s",
            ReportEventType.SECTION_COMPLETED,
            report_id,
            section,
            model,
            tokens,
        )

    def log_report_completed(
        self, *, report_id: str, sections: int, total_tokens: int, duration_ms: float
    ) -> None:
        """Log successful generation of every section.

        Parameters
        ----------
        report_id
            Identifier of the completed report.
        sections
            Number of sections generated.
        total_tokens
            Sum of tokens across sections.
        duration_ms
            Wall-clock generation time.

        """
        log_info(
            logger,
            "[%s] report_id=%s sections=%s total_tokens=%s duration_ms=%.1f",
            ReportEventType.REPORT_COMPLETED,
            report_id,
            sections,
            total_tokens,
            duration_ms,
        )

    def log_report_failed(
        self, *, report_id: str, section: str | None, error: BaseException
    ) -> None:
        """Log a failed generation, naming the section that broke it."""
        log_error(
            logger,
            "[%s] report_id=%s section=%s error_type=%s error_message=%s",
            ReportEventType.REPORT_FAILED,
            report_id,
            section,
            type(error).__name__,
            str(error),
            exc_info=error,
        )

    def log_report_retried(self, *, report_id: str) -> None:
        """Log a FAILED report being reset to PENDING."""
        log_info(logger, "[%s] report_id=%s", ReportEventType.REPORT_RETRIED, report_id)

    def log_triggers_failed(self, *, report_id: str, error: BaseException) -> None:
        """Log a downstream trigger failure; the report stays COMPLETED."""
        log_warning(
            logger,
            "[%s] report_id=%s error_type=%s error_message=%s",
            ReportEventType.TRIGGERS_FAILED,
            report_id,
            type(error).__name__,
            str(error),
            exc_info=error,
        )
