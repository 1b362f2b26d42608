"""Deterministic completion provider for local runs and tests."""

from __future__ import annotations

import typing as typ

import msgspec

from dossier.completion.models import CompletionResult, TokenUsage

if typ.TYPE_CHECKING:
    from dossier.completion.models import CompletionRequest


def _json_script(headline: str) -> str:
    """Return a one-line JSON episode script quoting ``headline``."""
    script = {
        "title": headline,
        "description": "Mock episode",
        "segments": [
            {
                "type": "content",
                "title": headline,
                "dialogues": [{"speakerId": "host", "text": f"Generated content for: {headline}"}],
            }
        ],
    }
    return msgspec.json.encode(script).decode()


class MockCompletionProvider:
    """Echo-style provider that never touches the network.

    The generated text quotes the first line of the last user message, so
    callers can tell which prompt produced which section. Requests asking
    for JSON output get a minimal episode script instead. Token usage is a
    whitespace word count.

    Examples
    --------
    >>> provider = MockCompletionProvider()
    >>> result = await provider.complete(
    ...     CompletionRequest.from_prompts("system", "Write the overview")
    ... )
    >>> result.provider
    'mock'

    """

    def __init__(self, *, model: str = "mock-v1", name: str = "mock") -> None:
        """Configure the reported model and provider name."""
        self._model = model
        self._name = name
        self.calls: list[CompletionRequest] = []

    @property
    def name(self) -> str:
        """Provider identifier."""
        return self._name

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        """Return canned content derived from the request."""
        self.calls.append(request)
        prompt = request.messages[-1].content if request.messages else ""
        headline = prompt.strip().splitlines()[0] if prompt.strip() else "Untitled"
        content = f"Generated content for: {headline}"
        if request.json_output:
            content = _json_script(headline)
        prompt_tokens = sum(len(m.content.split()) for m in request.messages)
        completion_tokens = len(content.split())
        return CompletionResult(
            content=content,
            model=request.model or self._model,
            provider=self._name,
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
            finish_reason="stop",
            latency_ms=0.0,
        )

    async def aclose(self) -> None:
        """Nothing to release."""
