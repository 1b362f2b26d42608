"""Errors raised by the schedule service."""

from __future__ import annotations

import typing as typ

from dossier.errors import DossierError, NotFoundError, ValidationError

if typ.TYPE_CHECKING:
    from dossier.storage import WorkflowType


class ScheduleError(DossierError):
    """Base class for schedule failures."""


class ScheduleValidationError(ScheduleError, ValidationError):
    """Raised when a schedule definition is incomplete or malformed."""

    @classmethod
    def name_required(cls) -> ScheduleValidationError:
        """Create error for a blank name."""
        return cls("Schedule name is required")

    @classmethod
    def name_too_long(cls, max_length: int) -> ScheduleValidationError:
        """Create error for an overlong name."""
        return cls(f"Schedule name must be {max_length} characters or less")

    @classmethod
    def invalid_cron(cls, expression: str) -> ScheduleValidationError:
        """Create error for an unparseable cron expression."""
        return cls(f"Invalid cron expression: {expression!r}", code="INVALID_CRON")

    @classmethod
    def invalid_timezone(cls, timezone: str) -> ScheduleValidationError:
        """Create error for an unknown IANA zone."""
        return cls(f"Unknown timezone: {timezone!r}", code="INVALID_TIMEZONE")

    @classmethod
    def missing_destination(cls) -> ScheduleValidationError:
        """Create error for Webex delivery without a destination."""
        return cls("Delivery destination is required for Webex delivery")

    @classmethod
    def missing_company_name(cls, workflow: WorkflowType) -> ScheduleValidationError:
        """Create error for a single-company workflow without a company."""
        return cls(f"Schedule is missing company name configuration for {workflow}")

    @classmethod
    def missing_company_names(cls) -> ScheduleValidationError:
        """Create error for a news digest schedule without companies."""
        return cls("Schedule is missing company names configuration")

    @classmethod
    def bad_count(cls, maximum: int) -> ScheduleValidationError:
        """Create error for a next-runs count outside 1..maximum."""
        return cls(f"count must be between 1 and {maximum}")


class ScheduleNotFoundError(ScheduleError, NotFoundError):
    """Raised when a schedule is absent or owned by someone else."""

    @classmethod
    def for_id(cls, schedule_id: str) -> ScheduleNotFoundError:
        """Create error naming the missing schedule."""
        return cls(f"Schedule '{schedule_id}' not found")
