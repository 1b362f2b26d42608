"""Errors raised by the export service."""

from __future__ import annotations

import typing as typ

from dossier.errors import DossierError, InvalidStateError, NotFoundError

if typ.TYPE_CHECKING:
    from dossier.storage import ExportFormat, ExportStatus, ReportStatus


class ExportError(DossierError):
    """Base class for export failures."""


class ExportNotFoundError(ExportError, NotFoundError):
    """Raised when an export or its report is missing."""

    @classmethod
    def for_id(cls, export_id: str) -> ExportNotFoundError:
        """Create error naming the missing export."""
        return cls(f"Export '{export_id}' not found")

    @classmethod
    def for_report(cls, report_id: str) -> ExportNotFoundError:
        """Create error for a missing or foreign report."""
        return cls(f"Report '{report_id}' not found")


class ExportStateError(ExportError, InvalidStateError):
    """Raised when an export cannot be requested or downloaded yet."""

    @classmethod
    def report_not_completed(
        cls, report_id: str, status: ReportStatus
    ) -> ExportStateError:
        """Create error for exporting an unfinished report."""
        return cls(f"Report '{report_id}' is {status}; only COMPLETED reports export")

    @classmethod
    def not_ready(
        cls, report_id: str, fmt: ExportFormat, status: ExportStatus | None
    ) -> ExportStateError:
        """Create error for downloading an export that has no file."""
        state = status or "not requested"
        return cls(f"{fmt} export of report '{report_id}' is {state}", code="EXPORT_NOT_READY")


class ExportExpiredError(ExportError, NotFoundError):
    """Raised when a completed export's file has disappeared."""

    @classmethod
    def file_missing(cls, report_id: str, fmt: ExportFormat) -> ExportExpiredError:
        """Create error for a download whose file is gone."""
        return cls(
            f"{fmt} export of report '{report_id}' has expired; request it again",
            code="EXPORT_EXPIRED",
        )
