"""Request and response structures for text completion."""

from __future__ import annotations

import msgspec


class ChatMessage(msgspec.Struct, kw_only=True, frozen=True):
    """One message in a chat-completion conversation."""

    role: str
    content: str


class CompletionRequest(msgspec.Struct, kw_only=True, frozen=True):
    """Provider-agnostic completion request.

    Attributes
    ----------
    messages
        Conversation to complete, system prompt first.
    max_tokens
        Upper bound on generated tokens.
    temperature
        Sampling temperature.
    model
        Model override; ``None`` uses the provider's configured model.
    json_output
        Ask the provider for a JSON object response.

    """

    messages: tuple[ChatMessage, ...]
    max_tokens: int = 4000
    temperature: float = 0.7
    model: str | None = None
    json_output: bool = False

    @classmethod
    def from_prompts(
        cls,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = 4000,
        temperature: float = 0.7,
        json_output: bool = False,
    ) -> CompletionRequest:
        """Build a two-message request from system and user prompts."""
        return cls(
            messages=(
                ChatMessage(role="system", content=system_prompt),
                ChatMessage(role="user", content=user_prompt),
            ),
            max_tokens=max_tokens,
            temperature=temperature,
            json_output=json_output,
        )


class TokenUsage(msgspec.Struct, kw_only=True, frozen=True):
    """Token accounting reported by the provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class CompletionResult(msgspec.Struct, kw_only=True, frozen=True):
    """Successful completion with accounting fields."""

    content: str
    model: str
    provider: str
    usage: TokenUsage = msgspec.field(default_factory=TokenUsage)
    finish_reason: str | None = None
    latency_ms: float | None = None
