"""Delivery error taxonomy.

Every :class:`DeliveryError` carries a fixed ``code`` and a static
``retryable`` flag that decides whether a failed job is requeued.
"""

from __future__ import annotations

import enum
import typing as typ

from dossier.errors import DossierError, InvalidStateError, NotFoundError, ValidationError

if typ.TYPE_CHECKING:
    from dossier.storage import DeliveryStatus

_RETRYABLE_SERVER_STATUSES = frozenset({500, 502, 503})
_MAX_BODY_CHARS = 300


class DeliveryErrorCode(enum.StrEnum):
    """Machine-readable delivery failure codes."""

    AUTH_FAILED = "AUTH_FAILED"
    ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    API_ERROR = "API_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    EXPORT_NOT_READY = "EXPORT_NOT_READY"
    INVALID_STATE = "INVALID_STATE"


class DeliveryError(DossierError):
    """Base class for delivery failures, including failed send attempts.

    Attributes
    ----------
    code
        One of :class:`DeliveryErrorCode`.
    retryable
        Whether the job may be requeued after this failure.
    status_code
        HTTP status from the messaging API, when there was one.

    """

    def __init__(
        self,
        message: str,
        *,
        code: DeliveryErrorCode | None = None,
        retryable: bool = False,
        status_code: int | None = None,
    ) -> None:
        """Initialise with taxonomy fields."""
        super().__init__(message, code=code)
        self.retryable = retryable
        self.status_code = status_code

    @classmethod
    def from_status(cls, status_code: int, body: str = "") -> DeliveryError:
        """Classify a non-2xx messaging API response."""
        detail = f"Webex API error ({status_code}): {body[:_MAX_BODY_CHARS]}".rstrip(": ")
        if status_code in {401, 403}:
            return cls(
                detail, code=DeliveryErrorCode.AUTH_FAILED, retryable=False, status_code=status_code
            )
        if status_code == 404:  # noqa: PLR2004
            return cls(
                detail,
                code=DeliveryErrorCode.ROOM_NOT_FOUND,
                retryable=False,
                status_code=status_code,
            )
        if status_code == 429:  # noqa: PLR2004
            return cls(
                detail, code=DeliveryErrorCode.RATE_LIMITED, retryable=True, status_code=status_code
            )
        return cls(
            detail,
            code=DeliveryErrorCode.API_ERROR,
            retryable=status_code in _RETRYABLE_SERVER_STATUSES,
            status_code=status_code,
        )

    @classmethod
    def network_error(cls, detail: str) -> DeliveryError:
        """Create a retryable error for a transport failure."""
        return cls(
            f"Network error: {detail}", code=DeliveryErrorCode.NETWORK_ERROR, retryable=True
        )

    @classmethod
    def invalid_response(cls, detail: str) -> DeliveryError:
        """Create error for a 2xx response without a message id."""
        return cls(
            f"Unexpected Webex response: {detail}",
            code=DeliveryErrorCode.API_ERROR,
            retryable=False,
        )

    @classmethod
    def export_not_ready(cls, detail: str, *, retryable: bool) -> DeliveryError:
        """Create error for an artifact that never became available."""
        return cls(detail, code=DeliveryErrorCode.EXPORT_NOT_READY, retryable=retryable)

    @classmethod
    def token_missing(cls) -> DeliveryError:
        """Create error for a deployment without a bot token."""
        return cls(
            "Webex bot token not configured",
            code=DeliveryErrorCode.AUTH_FAILED,
            retryable=False,
        )

    @classmethod
    def invalid_state(cls, detail: str) -> DeliveryError:
        """Create error for a delivery whose subject cannot be sent."""
        return cls(detail, code=DeliveryErrorCode.INVALID_STATE, retryable=False)

    @classmethod
    def unexpected(cls, error: Exception) -> DeliveryError:
        """Wrap an unclassified failure as a retryable API error."""
        detail = str(error) or type(error).__name__
        return cls(detail, code=DeliveryErrorCode.API_ERROR, retryable=True)


class DeliveryNotFoundError(DeliveryError, NotFoundError):
    """Raised when a delivery, report or podcast is missing or foreign."""

    @classmethod
    def for_delivery(cls, delivery_id: str) -> DeliveryNotFoundError:
        """Create error naming the missing delivery."""
        return cls(f"Delivery '{delivery_id}' not found")

    @classmethod
    def for_report(cls, report_id: str) -> DeliveryNotFoundError:
        """Create error naming the missing report."""
        return cls(f"Report '{report_id}' not found")

    @classmethod
    def for_podcast(cls, podcast_id: str) -> DeliveryNotFoundError:
        """Create error naming the missing podcast."""
        return cls(f"Podcast '{podcast_id}' not found")


class DeliveryStateError(DeliveryError, InvalidStateError):
    """Raised when a delivery operation does not fit the job's status."""

    @classmethod
    def not_failed(cls, delivery_id: str, status: DeliveryStatus) -> DeliveryStateError:
        """Create error for retrying a delivery that has not failed."""
        return cls(f"Delivery '{delivery_id}' is {status}; only FAILED deliveries can be retried")

    @classmethod
    def podcast_not_completed(cls, podcast_id: str) -> DeliveryStateError:
        """Create error for delivering an unfinished podcast."""
        return cls(f"Podcast '{podcast_id}' is not completed")


class DeliveryValidationError(DeliveryError, ValidationError):
    """Raised for malformed delivery options."""

    @classmethod
    def missing_destination(cls) -> DeliveryValidationError:
        """Create error for a blank destination."""
        return cls("A delivery destination is required")
