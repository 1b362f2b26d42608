"""Error envelope and Falcon error handlers for the API layer.

Every failure leaves the API as
``{"success": false, "error": {"code": ..., "message": ...}}``. The
status code follows the family of the raised :class:`DossierError`
(validation 400, forbidden 403, not found 404, invalid state and conflict
409), so the area packages never need to know about HTTP.

Usage
-----
Register the handlers on the Falcon app::

    app.add_error_handler(DossierError, handle_dossier_error)
    app.add_error_handler(falcon.HTTPError, handle_http_error)

"""

from __future__ import annotations

import typing as typ

import falcon

from dossier.errors import (
    ConflictError,
    DossierError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from dossier.logging import get_logger, log_exception

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = [
    "AuthenticationRequiredError",
    "ForbiddenError",
    "InvalidInputError",
    "error_body",
    "handle_dossier_error",
    "handle_http_error",
    "status_for",
]

logger = get_logger(__name__)


class InvalidInputError(ValidationError):
    """Raised when a request body or query parameter cannot be decoded.

    Attributes
    ----------
    field
        Name of the offending field, when known.

    """

    code = "INVALID_INPUT"

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Initialise with a reason and an optional field name."""
        self.field = field
        super().__init__(f"{field}: {reason}" if field is not None else reason)


class AuthenticationRequiredError(DossierError):
    """Raised when a request does not identify its caller."""

    code = "UNAUTHENTICATED"

    @classmethod
    def missing_header(cls, header: str) -> AuthenticationRequiredError:
        """Create error for a request without the identity header."""
        return cls(f"Missing {header} header")

    @classmethod
    def missing_signature(cls, header: str) -> AuthenticationRequiredError:
        """Create error for a webhook call without its signature header."""
        return cls(f"Missing {header} header", code="INVALID_SIGNATURE")

    @classmethod
    def invalid_signature(cls) -> AuthenticationRequiredError:
        """Create error for a webhook body whose signature does not match."""
        return cls("Invalid webhook signature", code="INVALID_SIGNATURE")


class ForbiddenError(DossierError):
    """Raised when a known caller may not use an endpoint."""

    code = "FORBIDDEN"

    @classmethod
    def admin_only(cls, user_id: str) -> ForbiddenError:
        """Create error for a caller outside the operator allow-list."""
        return cls(f"User '{user_id}' is not an administrator")


_STATUS_BY_FAMILY: tuple[tuple[type[DossierError], str], ...] = (
    (AuthenticationRequiredError, falcon.HTTP_401),
    (ForbiddenError, falcon.HTTP_403),
    (ValidationError, falcon.HTTP_400),
    (NotFoundError, falcon.HTTP_404),
    (ConflictError, falcon.HTTP_409),
    (InvalidStateError, falcon.HTTP_409),
)


def status_for(error: DossierError) -> str:
    """Return the HTTP status for ``error``; unknown families map to 500."""
    for family, status in _STATUS_BY_FAMILY:
        if isinstance(error, family):
            return status
    return falcon.HTTP_500


def error_body(code: str, message: str) -> dict[str, typ.Any]:
    """Return the failure envelope."""
    return {"success": False, "error": {"code": code, "message": message}}


async def handle_dossier_error(
    _req: Request,
    resp: Response,
    ex: DossierError,
    _params: dict[str, typ.Any],
) -> None:
    """Map a :class:`DossierError` to its status and the failure envelope."""
    status = status_for(ex)
    if status == falcon.HTTP_500:
        log_exception(logger, "Unhandled domain error", ex)
    resp.status = status
    resp.media = error_body(ex.code, str(ex))


async def handle_http_error(
    _req: Request,
    resp: Response,
    ex: falcon.HTTPError,
    _params: dict[str, typ.Any],
) -> None:
    """Render Falcon's own errors (unknown route, bad JSON) in the envelope."""
    resp.status = ex.status
    resp.media = error_body(f"HTTP_{ex.status_code}", ex.description or ex.title or "")
