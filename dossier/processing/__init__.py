"""Shared concurrency and retry primitives for the background processors."""

from __future__ import annotations

from .loop import PollingProcessor, ProcessorEventType, ProcessorStatus
from .retry import (
    FailurePlan,
    RetryableJob,
    exponential_backoff,
    linear_backoff,
    plan_failure,
)

__all__ = [
    "FailurePlan",
    "PollingProcessor",
    "ProcessorEventType",
    "ProcessorStatus",
    "RetryableJob",
    "exponential_backoff",
    "linear_backoff",
    "plan_failure",
]
