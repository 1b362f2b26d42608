"""Structured events for report and podcast deliveries."""

from __future__ import annotations

import enum

from dossier.logging import get_logger, log_event

logger = get_logger(__name__)


class DeliveryEventType(enum.StrEnum):
    """Structured log event types for delivery jobs."""

    SCHEDULED = "delivery.job.scheduled"
    WAITING_FOR_ARTIFACT = "delivery.job.waiting_for_artifact"
    SENT = "delivery.job.sent"
    REQUEUED = "delivery.job.requeued"
    FAILED = "delivery.job.failed"
    SKIPPED = "delivery.job.skipped"
    RETRIED = "delivery.job.retried"


class DeliveryEventLogger:
    """Emit structured delivery events via femtologging.

    ``kind`` is ``"report"`` or ``"podcast"`` throughout.
    """

    def log_scheduled(
        self, *, kind: str, delivery_id: str, subject_id: str, destination_type: str
    ) -> None:
        """Log a new delivery job."""
        log_event(
            logger,
            DeliveryEventType.SCHEDULED,
            kind=kind,
            delivery_id=delivery_id,
            subject_id=subject_id,
            destination_type=destination_type,
        )

    def log_waiting(self, *, delivery_id: str, attempt: int, wait_s: float) -> None:
        """Log a wait for an export that is not ready yet."""
        log_event(
            logger,
            DeliveryEventType.WAITING_FOR_ARTIFACT,
            level="DEBUG",
            delivery_id=delivery_id,
            attempt=attempt,
            wait_s=wait_s,
        )

    def log_sent(self, *, kind: str, delivery_id: str, message_id: str) -> None:
        """Log a delivered message."""
        log_event(
            logger,
            DeliveryEventType.SENT,
            kind=kind,
            delivery_id=delivery_id,
            message_id=message_id,
        )

    def log_failed(
        self,
        *,
        kind: str,
        delivery_id: str,
        retry_count: int,
        requeued: bool,
        code: str,
        error: BaseException,
    ) -> None:
        """Log a failed send attempt, requeued or terminal."""
        log_event(
            logger,
            DeliveryEventType.REQUEUED if requeued else DeliveryEventType.FAILED,
            level="WARNING" if requeued else "ERROR",
            kind=kind,
            delivery_id=delivery_id,
            retry_count=retry_count,
            code=code,
            error_message=str(error),
        )

    def log_skipped(self, *, kind: str, delivery_id: str, status: str) -> None:
        """Log an attempt on a delivery that is not ready or no longer PENDING."""
        log_event(
            logger,
            DeliveryEventType.SKIPPED,
            level="DEBUG",
            kind=kind,
            delivery_id=delivery_id,
            status=status,
        )

    def log_retried(self, *, kind: str, delivery_id: str) -> None:
        """Log a manual retry of a FAILED delivery."""
        log_event(logger, DeliveryEventType.RETRIED, kind=kind, delivery_id=delivery_id)
