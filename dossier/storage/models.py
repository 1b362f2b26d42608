"""Job and configuration tables backing the Dossier processors.

Every job kind (report, export, delivery, podcast, podcast delivery)
carries ``status``, ``retry_count`` and ``max_retries`` plus timestamps
bracketing an attempt, so the shared retry helpers in
:mod:`dossier.processing` can treat them uniformly.
"""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import typing as typ
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from dossier.common.time import utcnow
from dossier.storage.enums import (
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
from dossier.storage.types import Base, UTCDateTime, str_enum

DEFAULT_MAX_RETRIES = 3


def _uuid() -> str:
    return str(uuid.uuid4())


class Report(Base):
    """A generated (or generating) analytical document."""

    __tablename__ = "reports"
    __table_args__ = (
        Index("ix_reports_owner_created", "owner_id", "created_at"),
        Index("ix_reports_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    workflow_type: Mapped[WorkflowType] = mapped_column(
        str_enum(WorkflowType), nullable=False
    )
    configuration: Mapped[dict[str, typ.Any]] = mapped_column(
        JSON, default=dict, nullable=False
    )
    input_data: Mapped[dict[str, typ.Any]] = mapped_column(
        JSON, default=dict, nullable=False
    )
    status: Mapped[ReportStatus] = mapped_column(
        str_enum(ReportStatus), default=ReportStatus.PENDING, nullable=False
    )
    llm_model: Mapped[str | None] = mapped_column(String(128), default=None)
    generated_content: Mapped[dict[str, typ.Any] | None] = mapped_column(
        JSON, default=None
    )
    error: Mapped[str | None] = mapped_column(Text(), default=None)
    requested_formats: Mapped[list[str]] = mapped_column(
        JSON, default=list, nullable=False
    )
    schedule_id: Mapped[str | None] = mapped_column(String(36), default=None)
    created_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )
    completed_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )


class DocumentExport(Base):
    """Rendering job for one (report, format) pair."""

    __tablename__ = "document_exports"
    __table_args__ = (
        UniqueConstraint("report_id", "format", name="uq_document_exports_format"),
        Index("ix_document_exports_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    report_id: Mapped[str] = mapped_column(
        ForeignKey("reports.id", ondelete="CASCADE"), nullable=False
    )
    format: Mapped[ExportFormat] = mapped_column(
        str_enum(ExportFormat), nullable=False
    )
    status: Mapped[ExportStatus] = mapped_column(
        str_enum(ExportStatus), default=ExportStatus.PENDING, nullable=False
    )
    triggered_by: Mapped[ExportTrigger] = mapped_column(
        str_enum(ExportTrigger), default=ExportTrigger.ON_DEMAND, nullable=False
    )
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_retries: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_MAX_RETRIES, nullable=False
    )
    file_path: Mapped[str | None] = mapped_column(String(1024), default=None)
    file_size: Mapped[int | None] = mapped_column(Integer, default=None)
    error: Mapped[str | None] = mapped_column(Text(), default=None)
    created_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )
    started_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)
    completed_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    expires_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False)


class ReportDelivery(Base):
    """Push of a finished report to an external messaging destination."""

    __tablename__ = "report_deliveries"
    __table_args__ = (Index("ix_report_deliveries_status", "status"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    report_id: Mapped[str] = mapped_column(
        ForeignKey("reports.id", ondelete="CASCADE"), nullable=False
    )
    method: Mapped[DeliveryMethod] = mapped_column(
        str_enum(DeliveryMethod), default=DeliveryMethod.WEBEX, nullable=False
    )
    destination: Mapped[str] = mapped_column(String(255), nullable=False)
    destination_type: Mapped[DestinationType] = mapped_column(
        str_enum(DestinationType), nullable=False
    )
    content_type: Mapped[DeliveryContent] = mapped_column(
        str_enum(DeliveryContent), default=DeliveryContent.ATTACHMENT, nullable=False
    )
    format: Mapped[ExportFormat] = mapped_column(
        str_enum(ExportFormat), default=ExportFormat.PDF, nullable=False
    )
    status: Mapped[DeliveryStatus] = mapped_column(
        str_enum(DeliveryStatus), default=DeliveryStatus.PENDING, nullable=False
    )
    error: Mapped[str | None] = mapped_column(Text(), default=None)
    message_id: Mapped[str | None] = mapped_column(String(255), default=None)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_retries: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_MAX_RETRIES, nullable=False
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )
    delivered_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )


class Template(Base):
    """Saved report configuration that schedules apply."""

    __tablename__ = "templates"
    __table_args__ = (Index("ix_templates_owner", "owner_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text(), default=None)
    workflow_type: Mapped[WorkflowType] = mapped_column(
        str_enum(WorkflowType), nullable=False
    )
    configuration: Mapped[dict[str, typ.Any]] = mapped_column(
        JSON, default=dict, nullable=False
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )


class Schedule(Base):
    """Recurring report request driven by a cron expression."""

    __tablename__ = "schedules"
    __table_args__ = (Index("ix_schedules_due", "is_active", "next_run_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text(), default=None)
    template_id: Mapped[str] = mapped_column(
        ForeignKey("templates.id", ondelete="CASCADE"), nullable=False
    )
    cron_expression: Mapped[str] = mapped_column(String(128), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    delivery_method: Mapped[DeliveryMethod | None] = mapped_column(
        str_enum(DeliveryMethod), default=None
    )
    delivery_destination: Mapped[str | None] = mapped_column(
        String(255), default=None
    )
    target_company_name: Mapped[str | None] = mapped_column(
        String(255), default=None
    )
    target_company_names: Mapped[list[str] | None] = mapped_column(
        JSON, default=None
    )
    last_run_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)
    next_run_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)
    consecutive_failures: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    last_error: Mapped[str | None] = mapped_column(Text(), default=None)
    created_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )


class ReportAnalytics(Base):
    """Per-day, per-workflow generation counters."""

    __tablename__ = "report_analytics"
    __table_args__ = (
        UniqueConstraint("date", "workflow_type", name="uq_report_analytics_bucket"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    date: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False)
    workflow_type: Mapped[WorkflowType] = mapped_column(
        str_enum(WorkflowType), nullable=False
    )
    total_generated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_failed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    avg_duration_ms: Mapped[float | None] = mapped_column(Float, default=None)


class UserActivity(Base):
    """Audit trail entry; ``owner_id`` is ``None`` for system activity."""

    __tablename__ = "user_activities"
    __table_args__ = (Index("ix_user_activities_created", "created_at"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_id: Mapped[str | None] = mapped_column(String(255), default=None)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    details: Mapped[dict[str, typ.Any]] = mapped_column(
        JSON, default=dict, nullable=False
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )


class PodcastGeneration(Base):
    """Audio synthesis job; at most one per report."""

    __tablename__ = "podcast_generations"
    __table_args__ = (
        UniqueConstraint("report_id", name="uq_podcast_generations_report"),
        Index("ix_podcast_generations_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    report_id: Mapped[str] = mapped_column(
        ForeignKey("reports.id", ondelete="CASCADE"), nullable=False
    )
    template: Mapped[PodcastTemplate] = mapped_column(
        str_enum(PodcastTemplate), nullable=False
    )
    duration: Mapped[PodcastDuration] = mapped_column(
        str_enum(PodcastDuration), nullable=False
    )
    status: Mapped[PodcastStatus] = mapped_column(
        str_enum(PodcastStatus), default=PodcastStatus.PENDING, nullable=False
    )
    error: Mapped[str | None] = mapped_column(Text(), default=None)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_retries: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_MAX_RETRIES, nullable=False
    )
    triggered_by: Mapped[ExportTrigger] = mapped_column(
        str_enum(ExportTrigger), default=ExportTrigger.ON_DEMAND, nullable=False
    )
    script: Mapped[dict[str, typ.Any] | None] = mapped_column(JSON, default=None)
    final_audio_path: Mapped[str | None] = mapped_column(String(1024), default=None)
    duration_seconds: Mapped[float | None] = mapped_column(Float, default=None)
    file_size_bytes: Mapped[int | None] = mapped_column(Integer, default=None)
    created_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )
    started_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)
    completed_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    expires_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False)


class PodcastDelivery(Base):
    """Push of a finished podcast to an external messaging destination."""

    __tablename__ = "podcast_deliveries"
    __table_args__ = (Index("ix_podcast_deliveries_podcast", "podcast_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    podcast_id: Mapped[str] = mapped_column(
        ForeignKey("podcast_generations.id", ondelete="CASCADE"), nullable=False
    )
    method: Mapped[DeliveryMethod] = mapped_column(
        str_enum(DeliveryMethod), default=DeliveryMethod.WEBEX, nullable=False
    )
    destination: Mapped[str] = mapped_column(String(255), nullable=False)
    destination_type: Mapped[DestinationType] = mapped_column(
        str_enum(DestinationType), nullable=False
    )
    status: Mapped[DeliveryStatus] = mapped_column(
        str_enum(DeliveryStatus), default=DeliveryStatus.PENDING, nullable=False
    )
    error: Mapped[str | None] = mapped_column(Text(), default=None)
    message_id: Mapped[str | None] = mapped_column(String(255), default=None)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_retries: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_MAX_RETRIES, nullable=False
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )
    delivered_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
