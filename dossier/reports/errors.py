"""Errors specific to the report lifecycle."""

from __future__ import annotations

import typing as typ

from dossier.errors import (
    ConflictError,
    DossierError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from dossier.storage import ReportStatus, WorkflowType


class ReportError(DossierError):
    """Base class for report and template failures."""


class ReportValidationError(ReportError, ValidationError):
    """Raised when report input does not satisfy its workflow's rules."""

    @classmethod
    def missing_company_name(cls, workflow: WorkflowType) -> ReportValidationError:
        """Create error for a single-company workflow without a company."""
        return cls(f"company_name is required for {workflow} reports")

    @classmethod
    def missing_company_names(cls) -> ReportValidationError:
        """Create error for a news digest without any companies."""
        return cls("At least one company name is required for NEWS_DIGEST reports")

    @classmethod
    def invalid_sections(
        cls, invalid: cabc.Iterable[str], workflow: WorkflowType
    ) -> ReportValidationError:
        """Create error listing sections the workflow does not offer."""
        names = ", ".join(sorted(invalid))
        return cls(f"Invalid sections for {workflow}: {names}")

    @classmethod
    def empty_title(cls) -> ReportValidationError:
        """Create error for a blank title."""
        return cls("title must be non-empty")


class ReportNotFoundError(ReportError, NotFoundError):
    """Raised when a report is absent or belongs to someone else."""

    @classmethod
    def for_id(cls, report_id: str) -> ReportNotFoundError:
        """Create error naming the missing report."""
        return cls(f"Report '{report_id}' not found")


class ReportStateError(ReportError, InvalidStateError):
    """Raised when a report operation does not fit the report's status."""

    @classmethod
    def not_failed(cls, report_id: str, status: ReportStatus) -> ReportStateError:
        """Create error for retrying a report that has not failed."""
        return cls(f"Report '{report_id}' is {status}; only FAILED reports can be retried")

    @classmethod
    def interrupted(cls, report_id: str) -> ReportStateError:
        """Create error for a generation abandoned at shutdown."""
        return cls(f"Generation of report '{report_id}' was interrupted by shutdown")


class TemplateValidationError(ReportError, ValidationError):
    """Raised when a template definition is invalid."""

    @classmethod
    def invalid_name(cls, max_length: int) -> TemplateValidationError:
        """Create error for a blank or overlong template name."""
        return cls(f"Template name is required and must be at most {max_length} characters")


class TemplateNotFoundError(ReportError, NotFoundError):
    """Raised when a template is absent or belongs to someone else."""

    @classmethod
    def for_id(cls, template_id: str) -> TemplateNotFoundError:
        """Create error naming the missing template."""
        return cls(f"Template '{template_id}' not found")


class TemplateInUseError(ReportError, ConflictError):
    """Raised when deleting a template that schedules still reference."""

    @classmethod
    def for_schedules(cls, template_id: str, count: int) -> TemplateInUseError:
        """Create error reporting how many schedules use the template."""
        return cls(
            f"Template '{template_id}' is used by {count} schedule(s); "
            "delete the schedules first"
        )
