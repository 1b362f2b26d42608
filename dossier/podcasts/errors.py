"""Errors raised while requesting and producing podcasts."""

from __future__ import annotations

import typing as typ

from dossier.errors import DossierError, InvalidStateError, NotFoundError

if typ.TYPE_CHECKING:
    from dossier.storage import PodcastStatus, ReportStatus

_MAX_DETAIL_CHARS = 300


class PodcastError(DossierError):
    """Base class for podcast failures."""


class PodcastNotFoundError(PodcastError, NotFoundError):
    """Raised when a podcast or its report is missing or foreign."""

    @classmethod
    def for_id(cls, podcast_id: str) -> PodcastNotFoundError:
        """Create error naming the missing podcast."""
        return cls(f"Podcast '{podcast_id}' not found")

    @classmethod
    def for_report(cls, report_id: str) -> PodcastNotFoundError:
        """Create error for a report without a podcast, or a foreign report."""
        return cls(f"No podcast found for report '{report_id}'")

    @classmethod
    def report_missing(cls, report_id: str) -> PodcastNotFoundError:
        """Create error for a missing or foreign report."""
        return cls(f"Report '{report_id}' not found")


class PodcastStateError(PodcastError, InvalidStateError):
    """Raised when a report cannot be turned into a podcast yet."""

    @classmethod
    def report_not_completed(
        cls, report_id: str, status: ReportStatus
    ) -> PodcastStateError:
        """Create error for an unfinished report."""
        return cls(f"Report '{report_id}' is {status}; only COMPLETED reports convert")

    @classmethod
    def not_completed(cls, report_id: str, status: PodcastStatus) -> PodcastStateError:
        """Create error for downloading an unfinished podcast."""
        return cls(f"Podcast for report '{report_id}' is {status}", code="PODCAST_NOT_READY")


class PodcastScriptError(PodcastError):
    """Raised when the generated script cannot be used."""

    code = "SCRIPT_INVALID"

    @classmethod
    def no_json(cls, excerpt: str) -> PodcastScriptError:
        """Create error for a response without a JSON object."""
        return cls(f"No JSON object in script response: {excerpt[:_MAX_DETAIL_CHARS]!r}")

    @classmethod
    def invalid(cls, detail: str) -> PodcastScriptError:
        """Create error for JSON that does not match the script shape."""
        return cls(f"Failed to parse podcast script: {detail}")

    @classmethod
    def empty(cls) -> PodcastScriptError:
        """Create error for a script without any dialogue."""
        return cls("Podcast script contains no dialogue")


class SpeechSynthesisError(PodcastError):
    """Raised when the speech endpoint rejects or fails a request.

    Attributes
    ----------
    status_code
        HTTP status from the speech API, when there was one.

    """

    code = "SPEECH_FAILED"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with an optional HTTP status."""
        super().__init__(message)
        self.status_code = status_code

    @classmethod
    def from_status(cls, status_code: int, body: str = "") -> SpeechSynthesisError:
        """Create error for a non-2xx response."""
        detail = body[:_MAX_DETAIL_CHARS]
        return cls(f"Speech API error ({status_code}): {detail}", status_code=status_code)

    @classmethod
    def network_error(cls, detail: str) -> SpeechSynthesisError:
        """Create error for a transport failure."""
        return cls(f"Speech API network error: {detail}")

    @classmethod
    def empty_audio(cls, speaker_id: str) -> SpeechSynthesisError:
        """Create error for a response without audio."""
        return cls(f"Speech API returned no audio for speaker '{speaker_id}'")
