"""Configuration for completion providers and the retry policy."""

from __future__ import annotations

import dataclasses as dc
import os

from dossier.completion.errors import CompletionConfigError

KNOWN_PROVIDERS = frozenset({"openai", "xai", "mock"})

_PROVIDER_DEFAULTS: dict[str, tuple[str, str]] = {
    "openai": ("https://api.openai.com/v1", "gpt-4"),
    "xai": ("https://api.x.ai/v1", "grok-2"),
    "mock": ("mock://local", "mock-v1"),
}

_DEFAULT_TIMEOUT_S = 30.0
_DEFAULT_MAX_ATTEMPTS = 3


def _env_float(name: str, default: float) -> float:
    """Read a positive float environment variable."""
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise CompletionConfigError.invalid_parameter(
            name, raw, "Must be a positive number"
        ) from exc
    if value <= 0:
        raise CompletionConfigError.invalid_parameter(
            name, raw, "Must be a positive number"
        )
    return value


def _env_int(name: str, default: int) -> int:
    """Read a positive integer environment variable."""
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise CompletionConfigError.invalid_parameter(
            name, raw, "Must be a positive integer"
        ) from exc
    if value < 1:
        raise CompletionConfigError.invalid_parameter(
            name, raw, "Must be a positive integer"
        )
    return value


def _provider_name(raw: str) -> str:
    name = raw.strip().lower()
    if name not in KNOWN_PROVIDERS:
        raise CompletionConfigError.invalid_provider(raw, KNOWN_PROVIDERS)
    return name


@dc.dataclass(frozen=True, slots=True)
class ProviderConfig:
    """Connection settings for one OpenAI-compatible provider.

    Attributes
    ----------
    name
        Provider identifier (``openai``, ``xai`` or ``mock``).
    api_key
        Bearer token for the provider.
    base_url
        API root; ``/chat/completions`` is appended.
    model
        Default model for requests that do not name one.
    timeout_s
        Per-request timeout in seconds.

    """

    name: str
    api_key: str
    base_url: str
    model: str
    timeout_s: float = _DEFAULT_TIMEOUT_S

    @property
    def endpoint(self) -> str:
        """Chat completions URL."""
        return f"{self.base_url.rstrip('/')}/chat/completions"

    @classmethod
    def from_env(cls, name: str, *, timeout_s: float = _DEFAULT_TIMEOUT_S) -> ProviderConfig:
        """Build provider settings from ``DOSSIER_<NAME>_*`` variables.

        Reads ``DOSSIER_<NAME>_API_KEY`` (required except for ``mock``),
        ``DOSSIER_<NAME>_BASE_URL`` and ``DOSSIER_<NAME>_MODEL``.

        Raises
        ------
        CompletionConfigError
            If the provider is unknown or its API key is missing.

        """
        provider = _provider_name(name)
        prefix = f"DOSSIER_{provider.upper()}"
        default_url, default_model = _PROVIDER_DEFAULTS[provider]
        api_key = os.environ.get(f"{prefix}_API_KEY", "").strip()
        if not api_key and provider != "mock":
            raise CompletionConfigError.missing_api_key(provider)
        return cls(
            name=provider,
            api_key=api_key,
            base_url=os.environ.get(f"{prefix}_BASE_URL", default_url),
            model=os.environ.get(f"{prefix}_MODEL", default_model),
            timeout_s=timeout_s,
        )


@dc.dataclass(frozen=True, slots=True)
class CompletionConfig:
    """Provider selection and retry policy for the completion service.

    Attributes
    ----------
    primary_provider
        Provider tried first.
    fallback_provider
        Distinct provider tried once the primary is exhausted with a
        retryable failure; ``None`` disables fallback.
    max_attempts
        Attempts per provider, including the first.
    timeout_s
        Per-request timeout applied to every provider.
    backoff_base_s
        First exponential backoff delay.
    backoff_cap_s
        Ceiling for exponential backoff delays.
    rate_limit_delay_s
        Wait used after a 429 that carries no Retry-After hint.

    """

    primary_provider: str = "openai"
    fallback_provider: str | None = None
    max_attempts: int = _DEFAULT_MAX_ATTEMPTS
    timeout_s: float = _DEFAULT_TIMEOUT_S
    backoff_base_s: float = 1.0
    backoff_cap_s: float = 10.0
    rate_limit_delay_s: float = 1.0

    @classmethod
    def from_env(cls) -> CompletionConfig:
        """Build configuration from environment variables.

        Reads the following environment variables:

        - ``DOSSIER_LLM_PRIMARY_PROVIDER``: ``openai`` (default), ``xai``
          or ``mock``
        - ``DOSSIER_LLM_FALLBACK_PROVIDER``: optional distinct provider
        - ``DOSSIER_LLM_TIMEOUT_S``: request timeout (default 30)
        - ``DOSSIER_LLM_MAX_RETRIES``: attempts per provider (default 3)

        Raises
        ------
        CompletionConfigError
            If a provider name or numeric value is invalid, or the
            fallback equals the primary.

        """
        primary = _provider_name(os.environ.get("DOSSIER_LLM_PRIMARY_PROVIDER", "openai"))
        raw_fallback = os.environ.get("DOSSIER_LLM_FALLBACK_PROVIDER", "").strip()
        fallback = _provider_name(raw_fallback) if raw_fallback else None
        if fallback == primary:
            raise CompletionConfigError.duplicate_fallback(primary)
        return cls(
            primary_provider=primary,
            fallback_provider=fallback,
            max_attempts=_env_int("DOSSIER_LLM_MAX_RETRIES", _DEFAULT_MAX_ATTEMPTS),
            timeout_s=_env_float("DOSSIER_LLM_TIMEOUT_S", _DEFAULT_TIMEOUT_S),
        )
