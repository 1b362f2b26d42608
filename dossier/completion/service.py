"""Completion service: retries, backoff and provider fallback.

Usage
-----
>>> service = CompletionService(primary, fallback=fallback)
>>> result = await service.complete(
...     CompletionRequest.from_prompts(system_prompt, user_prompt, max_tokens=1000)
... )
>>> result.provider, result.usage.total_tokens

"""

from __future__ import annotations

import asyncio
import enum
import typing as typ

import msgspec

from dossier.completion.config import CompletionConfig
from dossier.completion.errors import CompletionError, RateLimitError
from dossier.logging import get_logger, log_event
from dossier.processing.retry import exponential_backoff

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from dossier.completion.models import CompletionRequest, CompletionResult
    from dossier.completion.protocol import CompletionProvider

logger = get_logger(__name__)

Sleep: typ.TypeAlias = "cabc.Callable[[float], cabc.Awaitable[None]]"


class CompletionEventType(enum.StrEnum):
    """Structured log events for completion attempts."""

    RETRY_SCHEDULED = "completion.retry.scheduled"
    FALLBACK_STARTED = "completion.fallback.started"
    FALLBACK_FAILED = "completion.fallback.failed"


class CompletionService:
    """Run completions with per-provider retries and a single fallback.

    Two retry regimes apply within one provider. A rate-limit error waits
    for the provider's Retry-After hint (or ``rate_limit_delay_s``) and
    does not advance the exponential backoff step. Any other retryable
    error waits ``backoff_base_s * 2 ** (step - 1)`` seconds, capped at
    ``backoff_cap_s``. Non-retryable errors propagate at once.

    When the primary provider is exhausted by a retryable failure and a
    fallback provider exists, the same loop runs once against the
    fallback. If that fails too, the primary's error is raised.

    Parameters
    ----------
    primary
        Provider tried first.
    fallback
        Optional distinct provider.
    config
        Retry policy; defaults to :class:`CompletionConfig` defaults.
    sleep
        Awaitable sleep used between attempts; injectable for tests.

    """

    def __init__(
        self,
        primary: CompletionProvider,
        *,
        fallback: CompletionProvider | None = None,
        config: CompletionConfig | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Store providers and retry policy."""
        self._primary = primary
        self._fallback = fallback
        self._config = config or CompletionConfig()
        self._sleep = sleep

    @property
    def primary(self) -> CompletionProvider:
        """The provider tried first."""
        return self._primary

    @property
    def fallback(self) -> CompletionProvider | None:
        """The fallback provider, if configured."""
        return self._fallback

    async def aclose(self) -> None:
        """Close both providers."""
        await self._primary.aclose()
        if self._fallback is not None:
            await self._fallback.aclose()

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        """Complete ``request``, retrying and falling back as configured.

        Raises
        ------
        CompletionError
            The primary provider's final error when every route failed.

        """
        try:
            return await self._execute_with_retry(self._primary, request)
        except CompletionError as primary_error:
            if not primary_error.retryable or self._fallback is None:
                raise
            log_event(
                logger,
                CompletionEventType.FALLBACK_STARTED,
                level="WARNING",
                primary=self._primary.name,
                fallback=self._fallback.name,
                error_code=primary_error.code,
            )
            # Model names are provider specific; the fallback uses its own.
            fallback_request = msgspec.structs.replace(request, model=None)
            try:
                return await self._execute_with_retry(self._fallback, fallback_request)
            except CompletionError as fallback_error:
                log_event(
                    logger,
                    CompletionEventType.FALLBACK_FAILED,
                    level="ERROR",
                    fallback=self._fallback.name,
                    error_code=fallback_error.code,
                    error_message=str(fallback_error),
                )
                raise primary_error from fallback_error

    async def _execute_with_retry(
        self,
        provider: CompletionProvider,
        request: CompletionRequest,
    ) -> CompletionResult:
        max_attempts = self._config.max_attempts
        backoff_step = 0
        attempt = 1
        while True:
            try:
                return await provider.complete(request)
            except RateLimitError as exc:
                if attempt >= max_attempts:
                    raise
                delay = (
                    exc.retry_after
                    if exc.retry_after is not None
                    else self._config.rate_limit_delay_s
                )
                self._log_retry(provider, attempt, delay, exc)
            except CompletionError as exc:
                if not exc.retryable or attempt >= max_attempts:
                    raise
                backoff_step += 1
                delay = exponential_backoff(
                    backoff_step,
                    base=self._config.backoff_base_s,
                    cap=self._config.backoff_cap_s,
                )
                self._log_retry(provider, attempt, delay, exc)
            await self._sleep(delay)
            attempt += 1

    def _log_retry(
        self,
        provider: CompletionProvider,
        attempt: int,
        delay: float,
        error: CompletionError,
    ) -> None:
        log_event(
            logger,
            CompletionEventType.RETRY_SCHEDULED,
            level="WARNING",
            provider=provider.name,
            attempt=attempt,
            max_attempts=self._config.max_attempts,
            delay_s=f"{delay:.3f}",
            error_code=error.code,
        )
