"""Factory for building a CompletionService from environment configuration."""

from __future__ import annotations

import typing as typ

from dossier.completion.config import CompletionConfig, ProviderConfig
from dossier.completion.mock import MockCompletionProvider
from dossier.completion.service import CompletionService

if typ.TYPE_CHECKING:
    from dossier.completion.protocol import CompletionProvider


def create_provider(name: str, config: CompletionConfig) -> CompletionProvider:
    """Create the provider registered under ``name``.

    Raises
    ------
    CompletionConfigError
        If the provider is unknown or lacks credentials.

    """
    provider_config = ProviderConfig.from_env(name, timeout_s=config.timeout_s)
    if provider_config.name == "mock":
        return MockCompletionProvider(model=provider_config.model)

    from dossier.completion.openai_client import OpenAICompatibleProvider

    return OpenAICompatibleProvider(provider_config)


def create_completion_service(config: CompletionConfig | None = None) -> CompletionService:
    """Create a CompletionService from ``DOSSIER_LLM_*`` settings.

    Examples
    --------
    >>> import os
    >>> os.environ["DOSSIER_LLM_PRIMARY_PROVIDER"] = "mock"
    >>> service = create_completion_service()
    >>> service.primary.name
    'mock'

    """
    resolved = config or CompletionConfig.from_env()
    primary = create_provider(resolved.primary_provider, resolved)
    fallback = (
        create_provider(resolved.fallback_provider, resolved)
        if resolved.fallback_provider is not None
        else None
    )
    return CompletionService(primary, fallback=fallback, config=resolved)
