"""Enumerations persisted on Dossier job records."""

from __future__ import annotations

import enum


class WorkflowType(enum.StrEnum):
    """Kinds of report Dossier can generate."""

    ACCOUNT_INTELLIGENCE = "ACCOUNT_INTELLIGENCE"
    COMPETITIVE_INTELLIGENCE = "COMPETITIVE_INTELLIGENCE"
    NEWS_DIGEST = "NEWS_DIGEST"


class ReportStatus(enum.StrEnum):
    """Report lifecycle states."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ExportFormat(enum.StrEnum):
    """Document formats a report can be exported to."""

    PDF = "PDF"
    DOCX = "DOCX"

    @property
    def extension(self) -> str:
        """File extension without the leading dot."""
        return self.value.lower()

    @property
    def mime_type(self) -> str:
        """MIME type served for downloads and attachments."""
        return _MIME_TYPES[self]


_MIME_TYPES = {
    ExportFormat.PDF: "application/pdf",
    ExportFormat.DOCX: (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    ),
}


class ExportStatus(enum.StrEnum):
    """Document export job states."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"


class ExportTrigger(enum.StrEnum):
    """Why an export job was requested."""

    ON_DEMAND = "ON_DEMAND"
    EAGER = "EAGER"
    SCHEDULED = "SCHEDULED"


class DeliveryMethod(enum.StrEnum):
    """External channels a report can be pushed to."""

    WEBEX = "WEBEX"


class DestinationType(enum.StrEnum):
    """How a delivery destination is addressed."""

    EMAIL = "email"
    ROOM_ID = "roomId"


class DeliveryContent(enum.StrEnum):
    """What a report delivery sends."""

    ATTACHMENT = "ATTACHMENT"
    SUMMARY_LINK = "SUMMARY_LINK"


class DeliveryStatus(enum.StrEnum):
    """Delivery job states."""

    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class PodcastStatus(enum.StrEnum):
    """Podcast generation job states."""

    PENDING = "PENDING"
    GENERATING_SCRIPT = "GENERATING_SCRIPT"
    GENERATING_AUDIO = "GENERATING_AUDIO"
    MIXING = "MIXING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


IN_PROGRESS_PODCAST_STATUSES = frozenset(
    {
        PodcastStatus.GENERATING_SCRIPT,
        PodcastStatus.GENERATING_AUDIO,
        PodcastStatus.MIXING,
    }
)


class PodcastTemplate(enum.StrEnum):
    """Conversation formats for generated podcasts."""

    EXECUTIVE_BRIEF = "EXECUTIVE_BRIEF"
    STRATEGIC_DEBATE = "STRATEGIC_DEBATE"
    INDUSTRY_PULSE = "INDUSTRY_PULSE"


class PodcastDuration(enum.StrEnum):
    """Target length classes for generated podcasts."""

    SHORT = "SHORT"
    STANDARD = "STANDARD"
    LONG = "LONG"
