"""Webex delivery of finished reports and podcasts."""

from __future__ import annotations

from .config import DeliveryConfig, WebexConfig
from .errors import (
    DeliveryError,
    DeliveryErrorCode,
    DeliveryNotFoundError,
    DeliveryStateError,
    DeliveryValidationError,
)
from .observability import DeliveryEventLogger, DeliveryEventType
from .processor import DeliveryProcessor
from .service import DeliveryResult, DeliveryService, ExportDispatcher
from .webex import WebexClient, WebexMessage

__all__ = [
    "DeliveryConfig",
    "DeliveryError",
    "DeliveryErrorCode",
    "DeliveryEventLogger",
    "DeliveryEventType",
    "DeliveryNotFoundError",
    "DeliveryProcessor",
    "DeliveryResult",
    "DeliveryService",
    "DeliveryStateError",
    "DeliveryValidationError",
    "ExportDispatcher",
    "WebexClient",
    "WebexConfig",
    "WebexMessage",
]
