"""Errors raised by the retention sweep."""

from __future__ import annotations

from dossier.errors import ConflictError, DossierError


class CleanupError(DossierError):
    """Base class for cleanup failures."""


class CleanupAlreadyRunningError(CleanupError, ConflictError):
    """Raised when a sweep is requested while another is running."""

    code = "CLEANUP_RUNNING"

    @classmethod
    def in_progress(cls) -> CleanupAlreadyRunningError:
        """Create error for an overlapping trigger."""
        return cls("Cleanup is already running")
