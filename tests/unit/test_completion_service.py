"""Unit tests for CompletionService retry, backoff and fallback."""

from __future__ import annotations

import pytest

from dossier.completion import (
    AuthenticationError,
    CompletionConfig,
    CompletionError,
    CompletionRequest,
    CompletionResult,
    CompletionService,
    MockCompletionProvider,
    RateLimitError,
)


class _ScriptedProvider:
    """Provider that raises queued errors before answering."""

    def __init__(self, name: str, errors: list[CompletionError]) -> None:
        self._name = name
        self._errors = list(errors)
        self.calls: list[CompletionRequest] = []
        self.closed = False

    @property
    def name(self) -> str:
        return self._name

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        self.calls.append(request)
        if self._errors:
            raise self._errors.pop(0)
        return CompletionResult(content="ok", model="m", provider=self._name)

    async def aclose(self) -> None:
        self.closed = True


class _SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _request(model: str | None = None) -> CompletionRequest:
    request = CompletionRequest.from_prompts("system", "user")
    if model is None:
        return request
    return CompletionRequest(messages=request.messages, model=model)


def _server_error(provider: str = "primary") -> CompletionError:
    return CompletionError.http_error(provider, 503)


class TestRetryPolicy:
    """Retries within a single provider."""

    @pytest.mark.asyncio
    async def test_retryable_errors_back_off_exponentially(self) -> None:
        """Server errors wait 1s then 2s before the third attempt."""
        provider = _ScriptedProvider("primary", [_server_error(), _server_error()])
        sleep = _SleepRecorder()
        service = CompletionService(provider, sleep=sleep)

        result = await service.complete(_request())

        assert result.content == "ok", "third attempt should succeed"
        assert sleep.delays == [1.0, 2.0], f"unexpected delays {sleep.delays}"
        assert len(provider.calls) == 3, "expected three attempts"

    @pytest.mark.asyncio
    async def test_backoff_is_capped(self) -> None:
        """Backoff never exceeds the configured ceiling."""
        config = CompletionConfig(max_attempts=5, backoff_base_s=4.0, backoff_cap_s=10.0)
        provider = _ScriptedProvider("primary", [_server_error()] * 4)
        sleep = _SleepRecorder()
        service = CompletionService(provider, config=config, sleep=sleep)

        await service.complete(_request())

        assert sleep.delays == [4.0, 8.0, 10.0, 10.0], f"unexpected delays {sleep.delays}"

    @pytest.mark.asyncio
    async def test_rate_limit_uses_retry_after_hint(self) -> None:
        """A 429 waits for the provider hint without advancing backoff."""
        provider = _ScriptedProvider(
            "primary", [RateLimitError("primary", 7.0), _server_error()]
        )
        sleep = _SleepRecorder()
        service = CompletionService(provider, sleep=sleep)

        await service.complete(_request())

        assert sleep.delays == [7.0, 1.0], "backoff step should start at one after 429"

    @pytest.mark.asyncio
    async def test_rate_limit_without_hint_uses_default_delay(self) -> None:
        """A 429 without Retry-After waits the default rate-limit delay."""
        config = CompletionConfig(rate_limit_delay_s=2.5)
        provider = _ScriptedProvider("primary", [RateLimitError("primary")])
        sleep = _SleepRecorder()
        service = CompletionService(provider, config=config, sleep=sleep)

        await service.complete(_request())

        assert sleep.delays == [2.5], f"unexpected delays {sleep.delays}"

    @pytest.mark.asyncio
    async def test_non_retryable_error_raises_immediately(self) -> None:
        """Authentication failures are not retried."""
        provider = _ScriptedProvider("primary", [AuthenticationError("primary", 401)])
        sleep = _SleepRecorder()
        service = CompletionService(provider, sleep=sleep)

        with pytest.raises(AuthenticationError):
            await service.complete(_request())

        assert len(provider.calls) == 1, "expected a single attempt"
        assert sleep.delays == [], "no sleep expected"

    @pytest.mark.asyncio
    async def test_exhausted_attempts_raise_last_error(self) -> None:
        """After max attempts the final retryable error propagates."""
        provider = _ScriptedProvider("primary", [_server_error()] * 3)
        service = CompletionService(provider, sleep=_SleepRecorder())

        with pytest.raises(CompletionError) as excinfo:
            await service.complete(_request())

        assert excinfo.value.code == "SERVER_ERROR", "expected the server error"
        assert len(provider.calls) == 3, "expected three attempts"


class TestFallback:
    """Fallback to a second provider after a retryable exhaustion."""

    @pytest.mark.asyncio
    async def test_fallback_runs_after_primary_exhausted(self) -> None:
        """The fallback answers when the primary keeps failing."""
        primary = _ScriptedProvider("primary", [_server_error()] * 3)
        fallback = _ScriptedProvider("fallback", [])
        service = CompletionService(primary, fallback=fallback, sleep=_SleepRecorder())

        result = await service.complete(_request(model="gpt-4"))

        assert result.provider == "fallback", "fallback should produce the result"
        assert fallback.calls[0].model is None, "fallback must use its own model"

    @pytest.mark.asyncio
    async def test_fallback_failure_raises_primary_error(self) -> None:
        """When both providers fail the primary's error is raised."""
        primary = _ScriptedProvider("primary", [_server_error("primary")] * 3)
        fallback = _ScriptedProvider("fallback", [_server_error("fallback")] * 3)
        service = CompletionService(primary, fallback=fallback, sleep=_SleepRecorder())

        with pytest.raises(CompletionError) as excinfo:
            await service.complete(_request())

        assert excinfo.value.provider == "primary", "primary error expected"
        assert isinstance(excinfo.value.__cause__, CompletionError), (
            "fallback error should be chained"
        )

    @pytest.mark.asyncio
    async def test_non_retryable_primary_error_skips_fallback(self) -> None:
        """Auth failures do not trigger fallback."""
        primary = _ScriptedProvider("primary", [AuthenticationError("primary", 403)])
        fallback = _ScriptedProvider("fallback", [])
        service = CompletionService(primary, fallback=fallback, sleep=_SleepRecorder())

        with pytest.raises(AuthenticationError):
            await service.complete(_request())

        assert fallback.calls == [], "fallback must not be called"

    @pytest.mark.asyncio
    async def test_aclose_closes_both_providers(self) -> None:
        """aclose releases primary and fallback."""
        primary = _ScriptedProvider("primary", [])
        fallback = _ScriptedProvider("fallback", [])
        service = CompletionService(primary, fallback=fallback)

        await service.aclose()

        assert primary.closed, "primary should be closed"
        assert fallback.closed, "fallback should be closed"


class TestMockProvider:
    """The deterministic provider used offline."""

    @pytest.mark.asyncio
    async def test_quotes_first_prompt_line(self) -> None:
        """Content echoes the first line of the user prompt."""
        provider = MockCompletionProvider()
        result = await provider.complete(
            CompletionRequest.from_prompts("system", "Write the overview\nmore")
        )
        assert result.content == "Generated content for: Write the overview"
        assert result.provider == "mock", "provider name should be mock"
        assert result.usage.total_tokens > 0, "usage should be counted"

    @pytest.mark.asyncio
    async def test_json_output_returns_script(self) -> None:
        """JSON requests receive a parseable episode script."""
        provider = MockCompletionProvider()
        result = await provider.complete(
            CompletionRequest.from_prompts("system", "Episode", json_output=True)
        )
        assert result.content.startswith("{"), "expected a JSON object"
        assert '"segments"' in result.content, "script should contain segments"
