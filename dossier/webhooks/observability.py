"""Structured events for inbound webhook messages."""

from __future__ import annotations

import enum

from dossier.logging import get_logger, log_event

logger = get_logger(__name__)


class WebhookOutcome(enum.StrEnum):
    """How one inbound message was handled."""

    IGNORED = "ignored"
    DOMAIN_REJECTED = "domain_rejected"
    RATE_LIMITED = "rate_limited"
    HELP = "help"
    NOT_UNDERSTOOD = "not_understood"
    REPORT_CREATED = "report_created"
    FAILED = "failed"


class WebhookEventType(enum.StrEnum):
    """Structured log event types for webhook messages."""

    RECEIVED = "webhooks.message.received"
    HANDLED = "webhooks.message.handled"
    REPLY_FAILED = "webhooks.reply.failed"


class WebhookEventLogger:
    """Emit structured webhook events via femtologging."""

    def log_received(self, *, message_id: str, room_type: str | None) -> None:
        """Log a notification about to be handled."""
        log_event(
            logger,
            WebhookEventType.RECEIVED,
            level="DEBUG",
            message_id=message_id,
            room_type=room_type,
        )

    def log_handled(
        self,
        *,
        message_id: str,
        outcome: WebhookOutcome,
        sender: str | None,
        report_id: str | None = None,
    ) -> None:
        """Log how a message was handled."""
        log_event(
            logger,
            WebhookEventType.HANDLED,
            level="WARNING" if outcome is WebhookOutcome.FAILED else "INFO",
            message_id=message_id,
            outcome=outcome,
            sender=sender,
            report_id=report_id,
        )

    def log_reply_failed(self, *, message_id: str, error: BaseException) -> None:
        """Log a reply that could not be posted."""
        log_event(
            logger,
            WebhookEventType.REPLY_FAILED,
            level="WARNING",
            message_id=message_id,
            error_message=str(error),
        )
