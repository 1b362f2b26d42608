"""Unit tests for the OpenAI-compatible completion provider."""

from __future__ import annotations

import json
import secrets
import typing as typ

import httpx
import pytest

from dossier.completion import (
    AuthenticationError,
    CompletionError,
    CompletionRequest,
    CompletionTimeoutError,
    OpenAICompatibleProvider,
    ProviderConfig,
    RateLimitError,
)

_API_KEY = secrets.token_hex(8)

Handler: typ.TypeAlias = typ.Callable[[httpx.Request], httpx.Response]


def _make_provider(
    handler: Handler,
) -> tuple[OpenAICompatibleProvider, httpx.AsyncClient]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = OpenAICompatibleProvider(
        ProviderConfig(
            name="xai",
            api_key=_API_KEY,
            base_url="https://example.test/v1/",
            model="grok-2",
        ),
        http_client=http_client,
    )
    return provider, http_client


def _completion_body(content: str = "Hello") -> dict[str, typ.Any]:
    return {
        "model": "grok-2-1212",
        "choices": [{"message": {"content": content}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7},
    }


class TestSuccessfulCompletion:
    """Parsing of successful responses."""

    @pytest.mark.asyncio
    async def test_returns_content_and_usage(self) -> None:
        """The first choice and token usage are returned."""
        seen: list[dict[str, typ.Any]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == "https://example.test/v1/chat/completions"
            seen.append(json.loads(request.content))
            return httpx.Response(200, json=_completion_body())

        provider, http_client = _make_provider(handler)
        async with http_client:
            result = await provider.complete(
                CompletionRequest.from_prompts("sys", "usr", max_tokens=1000)
            )

        assert result.content == "Hello", "content should come from the first choice"
        assert result.model == "grok-2-1212", "model should come from the response"
        assert result.provider == "xai", "provider name expected"
        assert result.usage.total_tokens == 7, "usage should be parsed"
        assert result.finish_reason == "stop", "finish reason should be parsed"
        assert seen[0]["model"] == "grok-2", "configured model should be sent"
        assert seen[0]["max_tokens"] == 1000, "max tokens should be sent"
        assert "response_format" not in seen[0], "plain requests ask for text"

    @pytest.mark.asyncio
    async def test_json_output_requests_json_object(self) -> None:
        """json_output sets response_format on the payload."""
        seen: list[dict[str, typ.Any]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json=_completion_body("{}"))

        provider, http_client = _make_provider(handler)
        async with http_client:
            await provider.complete(
                CompletionRequest.from_prompts("sys", "usr", json_output=True)
            )

        assert seen[0]["response_format"] == {"type": "json_object"}


class TestErrorMapping:
    """HTTP statuses and transport failures map to typed errors."""

    @pytest.mark.asyncio
    async def test_rate_limit_carries_retry_after(self) -> None:
        """429 becomes a retryable RateLimitError with the header value."""
        provider, http_client = _make_provider(
            lambda _: httpx.Response(429, headers={"Retry-After": "12"})
        )
        async with http_client:
            with pytest.raises(RateLimitError) as excinfo:
                await provider.complete(CompletionRequest.from_prompts("s", "u"))

        assert excinfo.value.retry_after == 12.0, "Retry-After should be parsed"
        assert excinfo.value.retryable, "rate limits are retryable"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_errors_are_not_retryable(self, status: int) -> None:
        """401 and 403 raise a non-retryable AuthenticationError."""
        provider, http_client = _make_provider(lambda _: httpx.Response(status))
        async with http_client:
            with pytest.raises(AuthenticationError) as excinfo:
                await provider.complete(CompletionRequest.from_prompts("s", "u"))

        assert not excinfo.value.retryable, "auth errors must not be retried"

    @pytest.mark.asyncio
    async def test_request_timeout_status_is_retryable(self) -> None:
        """408 maps to a retryable timeout."""
        provider, http_client = _make_provider(lambda _: httpx.Response(408))
        async with http_client:
            with pytest.raises(CompletionTimeoutError) as excinfo:
                await provider.complete(CompletionRequest.from_prompts("s", "u"))

        assert excinfo.value.retryable, "timeouts are retryable"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "retryable"),
        [(500, True), (503, True), (400, False), (422, False)],
    )
    async def test_other_statuses(self, status: int, *, retryable: bool) -> None:
        """5xx is retryable; other 4xx is not."""
        provider, http_client = _make_provider(lambda _: httpx.Response(status))
        async with http_client:
            with pytest.raises(CompletionError) as excinfo:
                await provider.complete(CompletionRequest.from_prompts("s", "u"))

        assert excinfo.value.retryable is retryable, f"wrong retryable for {status}"
        assert excinfo.value.status_code == status, "status code should be kept"

    @pytest.mark.asyncio
    async def test_transport_timeout(self) -> None:
        """httpx timeouts become CompletionTimeoutError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        provider, http_client = _make_provider(handler)
        async with http_client:
            with pytest.raises(CompletionTimeoutError):
                await provider.complete(CompletionRequest.from_prompts("s", "u"))

    @pytest.mark.asyncio
    async def test_network_error_is_retryable(self) -> None:
        """Connection failures are retryable network errors."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        provider, http_client = _make_provider(handler)
        async with http_client:
            with pytest.raises(CompletionError) as excinfo:
                await provider.complete(CompletionRequest.from_prompts("s", "u"))

        assert excinfo.value.code == "NETWORK_ERROR", "network code expected"
        assert excinfo.value.retryable, "network errors are retryable"

    @pytest.mark.asyncio
    async def test_empty_choices_is_invalid_response(self) -> None:
        """A body without choices is rejected."""
        provider, http_client = _make_provider(
            lambda _: httpx.Response(200, json={"choices": []})
        )
        async with http_client:
            with pytest.raises(CompletionError) as excinfo:
                await provider.complete(CompletionRequest.from_prompts("s", "u"))

        assert excinfo.value.code == "INVALID_RESPONSE", "invalid response expected"
