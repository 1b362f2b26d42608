"""Text-completion layer with provider fallback and retry policy.

Public API
----------
CompletionService
    Retries, backs off and falls back across providers.
CompletionProvider
    Protocol for a single chat-completion backend.
OpenAICompatibleProvider
    httpx client for OpenAI and xAI chat completions.
MockCompletionProvider
    Deterministic offline provider.
CompletionRequest, CompletionResult, TokenUsage, ChatMessage
    Request and response structures.
CompletionConfig, ProviderConfig
    Environment-driven configuration.
CompletionError, RateLimitError, CompletionTimeoutError, AuthenticationError
    Typed failures carrying ``retryable`` flags.
create_completion_service
    Factory reading ``DOSSIER_LLM_*`` variables.

"""

from __future__ import annotations

from dossier.completion.config import CompletionConfig, ProviderConfig
from dossier.completion.errors import (
    AuthenticationError,
    CompletionConfigError,
    CompletionError,
    CompletionTimeoutError,
    RateLimitError,
)
from dossier.completion.factory import create_completion_service, create_provider
from dossier.completion.mock import MockCompletionProvider
from dossier.completion.models import (
    ChatMessage,
    CompletionRequest,
    CompletionResult,
    TokenUsage,
)
from dossier.completion.openai_client import OpenAICompatibleProvider
from dossier.completion.protocol import CompletionProvider
from dossier.completion.service import CompletionService

__all__ = [
    "AuthenticationError",
    "ChatMessage",
    "CompletionConfig",
    "CompletionConfigError",
    "CompletionError",
    "CompletionProvider",
    "CompletionRequest",
    "CompletionResult",
    "CompletionService",
    "CompletionTimeoutError",
    "MockCompletionProvider",
    "OpenAICompatibleProvider",
    "ProviderConfig",
    "RateLimitError",
    "TokenUsage",
    "create_completion_service",
    "create_provider",
]
