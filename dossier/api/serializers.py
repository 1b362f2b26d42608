"""JSON shapes of the resources returned by the API."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

if typ.TYPE_CHECKING:
    import datetime as dt

    from dossier.cleanup import CleanupStats
    from dossier.podcasts import PodcastProgress, QueueStats
    from dossier.reports import (
        DashboardSummary,
        ReportProgress,
        SectionInfo,
        TrendPoint,
        WorkflowShare,
    )
    from dossier.storage import (
        DocumentExport,
        PodcastDelivery,
        PodcastGeneration,
        Report,
        ReportDelivery,
        Schedule,
        Template,
    )


def iso(moment: dt.datetime | None) -> str | None:
    """Return an ISO 8601 string, or ``None``."""
    return moment.isoformat() if moment is not None else None


def envelope(data: object) -> dict[str, typ.Any]:
    """Return the success envelope around ``data``."""
    return {"success": True, "data": data}


def report_summary(report: Report) -> dict[str, typ.Any]:
    """Serialize the listing view of a report."""
    return {
        "id": report.id,
        "title": report.title,
        "workflow_type": report.workflow_type,
        "status": report.status,
        "requested_formats": list(report.requested_formats),
        "schedule_id": report.schedule_id,
        "created_at": iso(report.created_at),
        "completed_at": iso(report.completed_at),
    }


def report_detail(report: Report) -> dict[str, typ.Any]:
    """Serialize a report with its input, configuration and content."""
    return report_summary(report) | {
        "input_data": report.input_data,
        "configuration": report.configuration,
        "llm_model": report.llm_model,
        "generated_content": report.generated_content,
        "error": report.error,
        "updated_at": iso(report.updated_at),
    }


def report_progress(progress: ReportProgress) -> dict[str, typ.Any]:
    """Serialize report status with section progress."""
    return dc.asdict(progress)


def section_info(section: SectionInfo) -> dict[str, typ.Any]:
    """Serialize one workflow section."""
    return dc.asdict(section)


def export(job: DocumentExport) -> dict[str, typ.Any]:
    """Serialize an export job without its storage path."""
    return {
        "id": job.id,
        "report_id": job.report_id,
        "format": job.format,
        "status": job.status,
        "triggered_by": job.triggered_by,
        "file_size": job.file_size,
        "retry_count": job.retry_count,
        "error": job.error,
        "created_at": iso(job.created_at),
        "completed_at": iso(job.completed_at),
        "expires_at": iso(job.expires_at),
    }


def delivery(job: ReportDelivery) -> dict[str, typ.Any]:
    """Serialize a report delivery."""
    return {
        "id": job.id,
        "report_id": job.report_id,
        "method": job.method,
        "destination": job.destination,
        "destination_type": job.destination_type,
        "content_type": job.content_type,
        "format": job.format,
        "status": job.status,
        "message_id": job.message_id,
        "retry_count": job.retry_count,
        "error": job.error,
        "created_at": iso(job.created_at),
        "delivered_at": iso(job.delivered_at),
    }


def podcast_delivery(job: PodcastDelivery) -> dict[str, typ.Any]:
    """Serialize a podcast delivery."""
    return {
        "id": job.id,
        "podcast_id": job.podcast_id,
        "destination": job.destination,
        "destination_type": job.destination_type,
        "status": job.status,
        "message_id": job.message_id,
        "retry_count": job.retry_count,
        "error": job.error,
        "delivered_at": iso(job.delivered_at),
    }


def podcast(job: PodcastGeneration) -> dict[str, typ.Any]:
    """Serialize a podcast job without its script or storage path."""
    return {
        "id": job.id,
        "report_id": job.report_id,
        "template": job.template,
        "duration": job.duration,
        "status": job.status,
        "duration_seconds": job.duration_seconds,
        "file_size_bytes": job.file_size_bytes,
        "retry_count": job.retry_count,
        "error": job.error,
        "created_at": iso(job.created_at),
        "completed_at": iso(job.completed_at),
        "expires_at": iso(job.expires_at),
    }


def podcast_progress(progress: PodcastProgress) -> dict[str, typ.Any]:
    """Serialize podcast status with its progress percentage."""
    return dc.asdict(progress)


def queue_stats(stats: QueueStats) -> dict[str, typ.Any]:
    """Serialize podcast queue counters."""
    return dc.asdict(stats)


def template(row: Template) -> dict[str, typ.Any]:
    """Serialize a report template."""
    return {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "workflow_type": row.workflow_type,
        "configuration": row.configuration,
        "created_at": iso(row.created_at),
        "updated_at": iso(row.updated_at),
    }


def schedule(row: Schedule) -> dict[str, typ.Any]:
    """Serialize a schedule with its run bookkeeping."""
    return {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "template_id": row.template_id,
        "cron_expression": row.cron_expression,
        "timezone": row.timezone,
        "is_active": row.is_active,
        "delivery_method": row.delivery_method,
        "delivery_destination": row.delivery_destination,
        "target_company_name": row.target_company_name,
        "target_company_names": row.target_company_names,
        "last_run_at": iso(row.last_run_at),
        "next_run_at": iso(row.next_run_at),
        "consecutive_failures": row.consecutive_failures,
        "last_error": row.last_error,
        "created_at": iso(row.created_at),
    }


def cleanup_stats(stats: CleanupStats) -> dict[str, typ.Any]:
    """Serialize the counters of one retention sweep."""
    return dc.asdict(stats)


def dashboard_summary(summary: DashboardSummary) -> dict[str, typ.Any]:
    """Serialize the dashboard counters."""
    return dc.asdict(summary)


def trend_point(point: TrendPoint) -> dict[str, typ.Any]:
    """Serialize one day of one workflow's counters."""
    return {**dc.asdict(point), "date": point.date.isoformat()}


def workflow_share(share: WorkflowShare) -> dict[str, typ.Any]:
    """Serialize a workflow's report count and share."""
    return dc.asdict(share)
