"""Inbound Webex webhook: chat messages to the bot become report requests."""

from __future__ import annotations

from .config import WebhookConfig
from .errors import MessageParseError, WebhookNotConfiguredError
from .models import ParsedMessage, ReportRequest, WebhookData, WebhookPayload
from .observability import WebhookEventLogger, WebhookEventType, WebhookOutcome
from .parser import RequestParser, parse_message, validate_request
from .ratelimit import SlidingWindowLimiter
from .service import WebexWebhookService
from .signature import SIGNATURE_HEADER, sign, verify

__all__ = [
    "SIGNATURE_HEADER",
    "MessageParseError",
    "ParsedMessage",
    "ReportRequest",
    "RequestParser",
    "SlidingWindowLimiter",
    "WebexWebhookService",
    "WebhookConfig",
    "WebhookData",
    "WebhookEventLogger",
    "WebhookEventType",
    "WebhookNotConfiguredError",
    "WebhookOutcome",
    "WebhookPayload",
    "parse_message",
    "sign",
    "validate_request",
    "verify",
]
