"""Structured events for podcast jobs."""

from __future__ import annotations

import enum

from dossier.logging import get_logger, log_event

logger = get_logger(__name__)


class PodcastEventType(enum.StrEnum):
    """Structured log event types for podcast jobs."""

    JOB_REQUESTED = "podcasts.job.requested"
    JOB_STAGE = "podcasts.job.stage"
    JOB_COMPLETED = "podcasts.job.completed"
    JOB_FAILED = "podcasts.job.failed"
    JOB_RECLAIMED = "podcasts.job.reclaimed"
    JOB_REQUEUED = "podcasts.job.requeued"
    JOB_EXPIRED = "podcasts.job.expired"
    AUDIO_RELEASED = "podcasts.audio.released"


class PodcastEventLogger:
    """Emit structured podcast events via femtologging."""

    def log_requested(
        self, *, podcast_id: str, report_id: str, template: str, duration: str
    ) -> None:
        """Log a new podcast job."""
        log_event(
            logger,
            PodcastEventType.JOB_REQUESTED,
            podcast_id=podcast_id,
            report_id=report_id,
            template=template,
            duration=duration,
        )

    def log_stage(self, *, podcast_id: str, status: str) -> None:
        """Log entry into a generating stage."""
        log_event(logger, PodcastEventType.JOB_STAGE, podcast_id=podcast_id, status=status)

    def log_completed(
        self, *, podcast_id: str, duration_seconds: float, size: int, lines: int
    ) -> None:
        """Log a finished episode."""
        log_event(
            logger,
            PodcastEventType.JOB_COMPLETED,
            podcast_id=podcast_id,
            duration_seconds=duration_seconds,
            size=size,
            lines=lines,
        )

    def log_failed(
        self, *, podcast_id: str, stage: str, retry_count: int, error: BaseException
    ) -> None:
        """Log a failed attempt."""
        log_event(
            logger,
            PodcastEventType.JOB_FAILED,
            level="ERROR",
            exc_info=error,
            podcast_id=podcast_id,
            stage=stage,
            retry_count=retry_count,
            error_type=type(error).__name__,
            error_message=str(error),
        )

    def log_reclaimed(self, *, podcast_id: str, stage: str, retry_count: int) -> None:
        """Log a stale in-progress job forced to FAILED."""
        log_event(
            logger,
            PodcastEventType.JOB_RECLAIMED,
            level="WARNING",
            podcast_id=podcast_id,
            stage=stage,
            retry_count=retry_count,
        )

    def log_requeued(self, *, podcast_id: str, attempt: int) -> None:
        """Log a FAILED job returned to PENDING after its cool-down."""
        log_event(
            logger, PodcastEventType.JOB_REQUEUED, podcast_id=podcast_id, attempt=attempt
        )

    def log_expired(self, *, podcast_id: str, files_deleted: int) -> None:
        """Log an expired podcast and its files being removed."""
        log_event(
            logger,
            PodcastEventType.JOB_EXPIRED,
            podcast_id=podcast_id,
            files_deleted=files_deleted,
        )

    def log_audio_released(self, *, podcast_id: str, files_deleted: int) -> None:
        """Log the audio of an expired podcast being removed."""
        log_event(
            logger,
            PodcastEventType.AUDIO_RELEASED,
            level="DEBUG",
            podcast_id=podcast_id,
            files_deleted=files_deleted,
        )
