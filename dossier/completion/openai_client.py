"""OpenAI-compatible chat completions provider (OpenAI, xAI)."""

from __future__ import annotations

import time
import typing as typ

import httpx
import msgspec

from dossier.completion.errors import (
    AuthenticationError,
    CompletionError,
    CompletionTimeoutError,
    RateLimitError,
)
from dossier.completion.models import CompletionResult, TokenUsage

if typ.TYPE_CHECKING:
    from dossier.completion.config import ProviderConfig
    from dossier.completion.models import CompletionRequest

_HTTP_ERROR_STATUS_THRESHOLD = 400
_HTTP_UNAUTHORIZED = 401
_HTTP_FORBIDDEN = 403
_HTTP_REQUEST_TIMEOUT = 408
_HTTP_RATE_LIMITED = 429


class _Message(msgspec.Struct):
    content: str | None = None


class _Choice(msgspec.Struct):
    message: _Message
    finish_reason: str | None = None


class _Usage(msgspec.Struct):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class _ChatCompletion(msgspec.Struct):
    choices: list[_Choice]
    model: str | None = None
    usage: _Usage | None = None


_decoder = msgspec.json.Decoder(_ChatCompletion)


def _get_retry_after(response: httpx.Response) -> float | None:
    """Extract a numeric Retry-After header value in seconds."""
    retry_after = response.headers.get("Retry-After", "").strip()
    try:
        return float(retry_after) if retry_after else None
    except ValueError:
        return None


class OpenAICompatibleProvider:
    """Chat-completions client for OpenAI-compatible APIs.

    Parameters
    ----------
    config
        Provider connection settings.
    http_client
        Optional ``httpx.AsyncClient`` for testing. If not provided, the
        instance creates and owns its own client.

    Examples
    --------
    >>> config = ProviderConfig(
    ...     name="xai", api_key="xai-...", base_url="https://api.x.ai/v1",
    ...     model="grok-2",
    ... )
    >>> provider = OpenAICompatibleProvider(config)
    >>> # result = await provider.complete(request)
    >>> await provider.aclose()

    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with configuration."""
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers={
                "Authorization": f"Bearer {config.api_key}",
                "Content-Type": "application/json",
            },
        )

    @property
    def name(self) -> str:
        """Provider identifier."""
        return self._config.name

    @property
    def config(self) -> ProviderConfig:
        """Read-only access to the provider configuration."""
        return self._config

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        """Run one chat completion against the configured endpoint.

        Raises
        ------
        RateLimitError
            On HTTP 429.
        AuthenticationError
            On HTTP 401 or 403.
        CompletionTimeoutError
            On a client timeout or HTTP 408.
        CompletionError
            On other HTTP failures, network failures or malformed bodies.

        """
        started = time.perf_counter()
        response = await self._send_request(self._build_payload(request))
        self._check_response_errors(response)
        parsed = self._parse_body(response)
        latency_ms = (time.perf_counter() - started) * 1000

        choice = parsed.choices[0]
        usage = parsed.usage or _Usage()
        return CompletionResult(
            content=choice.message.content or "",
            model=parsed.model or request.model or self._config.model,
            provider=self.name,
            usage=TokenUsage(
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
            ),
            finish_reason=choice.finish_reason,
            latency_ms=latency_ms,
        )

    def _build_payload(self, request: CompletionRequest) -> dict[str, object]:
        payload: dict[str, object] = {
            "model": request.model or self._config.model,
            "messages": [
                {"role": message.role, "content": message.content}
                for message in request.messages
            ],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if request.json_output:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def _send_request(self, payload: dict[str, object]) -> httpx.Response:
        try:
            return await self._client.post(self._config.endpoint, json=payload)
        except httpx.TimeoutException as exc:
            raise CompletionTimeoutError(self.name) from exc
        except httpx.RequestError as exc:
            raise CompletionError.network_error(self.name, str(exc)) from exc

    def _check_response_errors(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < _HTTP_ERROR_STATUS_THRESHOLD:
            return
        if status == _HTTP_RATE_LIMITED:
            raise RateLimitError(self.name, _get_retry_after(response))
        if status in {_HTTP_UNAUTHORIZED, _HTTP_FORBIDDEN}:
            raise AuthenticationError(self.name, status)
        if status == _HTTP_REQUEST_TIMEOUT:
            raise CompletionTimeoutError(self.name, status_code=status)
        raise CompletionError.http_error(self.name, status)

    def _parse_body(self, response: httpx.Response) -> _ChatCompletion:
        try:
            parsed = _decoder.decode(response.content)
        except msgspec.DecodeError as exc:
            raise CompletionError.invalid_response(self.name, str(exc)) from exc
        if not parsed.choices:
            raise CompletionError.invalid_response(self.name, "no choices returned")
        return parsed
