"""Persistence models for Dossier reports and background jobs."""

from __future__ import annotations

import typing as typ

from .enums import (
    IN_PROGRESS_PODCAST_STATUSES,
    DeliveryContent,
    DeliveryMethod,
    DeliveryStatus,
    DestinationType,
    ExportFormat,
    ExportStatus,
    ExportTrigger,
    PodcastDuration,
    PodcastStatus,
    PodcastTemplate,
    ReportStatus,
    WorkflowType,
)
from .errors import TimezoneAwareRequiredError
from .models import (
    DEFAULT_MAX_RETRIES,
    DocumentExport,
    PodcastDelivery,
    PodcastGeneration,
    Report,
    ReportAnalytics,
    ReportDelivery,
    Schedule,
    Template,
    UserActivity,
)
from .transitions import delete_reports, transition
from .types import Base, UTCDateTime

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


async def init_storage(engine: AsyncEngine) -> None:
    """Create all tables registered with Base if they are absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


__all__ = [
    "DEFAULT_MAX_RETRIES",
    "IN_PROGRESS_PODCAST_STATUSES",
    "Base",
    "DeliveryContent",
    "DeliveryMethod",
    "DeliveryStatus",
    "DestinationType",
    "DocumentExport",
    "ExportFormat",
    "ExportStatus",
    "ExportTrigger",
    "PodcastDelivery",
    "PodcastDuration",
    "PodcastGeneration",
    "PodcastStatus",
    "PodcastTemplate",
    "Report",
    "ReportAnalytics",
    "ReportDelivery",
    "ReportStatus",
    "Schedule",
    "Template",
    "TimezoneAwareRequiredError",
    "UTCDateTime",
    "UserActivity",
    "WorkflowType",
    "delete_reports",
    "init_storage",
    "transition",
]
