"""Retry and backoff policy shared by the background processors."""

from __future__ import annotations

import dataclasses as dc
import typing as typ


class RetryableJob(typ.Protocol):
    """Shape shared by every job record: a status plus retry counters."""

    status: typ.Any
    retry_count: int
    max_retries: int


@dc.dataclass(frozen=True, slots=True)
class FailurePlan:
    """Outcome of a failed attempt.

    Attributes
    ----------
    retry_count
        Counter value to persist after this failure.
    requeue
        ``True`` when the job should return to its pending state,
        ``False`` when it should fail permanently.

    """

    retry_count: int
    requeue: bool


def plan_failure(job: RetryableJob, *, retryable: bool = True) -> FailurePlan:
    """Decide whether a failed job is requeued or failed permanently.

    The counter always increments. The job is requeued only while the
    error is retryable and the new count is still below ``max_retries``,
    so the counter never exceeds the ceiling.

    Examples
    --------
    >>> import types
    >>> job = types.SimpleNamespace(status="PENDING", retry_count=2, max_retries=3)
    >>> plan_failure(job)
    FailurePlan(retry_count=3, requeue=False)

    """
    retry_count = job.retry_count + 1
    return FailurePlan(
        retry_count=retry_count,
        requeue=retryable and retry_count < job.max_retries,
    )


def exponential_backoff(attempt: int, *, base: float = 1.0, cap: float = 10.0) -> float:
    """Return ``base * 2 ** (attempt - 1)`` seconds, capped at ``cap``.

    ``attempt`` is 1-based: the first retry waits ``base`` seconds.
    """
    if attempt < 1:
        return 0.0
    return min(base * 2 ** (attempt - 1), cap)


def linear_backoff(attempt: int, *, step: float) -> float:
    """Return ``step * attempt`` seconds for a 1-based ``attempt``."""
    return max(attempt, 0) * step
