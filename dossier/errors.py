"""Error bases shared by every Dossier area.

Area packages subclass these so the HTTP layer can map whole families of
failures (validation, missing resources, invalid state) to a status code
and a machine-readable ``code`` without knowing each concrete class.
"""

from __future__ import annotations


class DossierError(Exception):
    """Base class for expected, reportable Dossier failures.

    Attributes
    ----------
    code
        Machine-readable error code surfaced in API error envelopes.

    """

    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        """Initialise with a message and an optional code override."""
        if code is not None:
            self.code = code
        super().__init__(message)


class ValidationError(DossierError):
    """Raised for bad caller input; never retried."""

    code = "VALIDATION_ERROR"


class NotFoundError(DossierError):
    """Raised when a resource is absent or not owned by the caller."""

    code = "NOT_FOUND"

    @classmethod
    def for_resource(cls, kind: str, resource_id: str) -> NotFoundError:
        """Create error naming the missing resource."""
        return cls(f"{kind} '{resource_id}' not found")


class InvalidStateError(DossierError):
    """Raised when an operation does not apply to a resource's current state."""

    code = "INVALID_STATE"


class ConflictError(DossierError):
    """Raised when an operation collides with one already running."""

    code = "CONFLICT"
