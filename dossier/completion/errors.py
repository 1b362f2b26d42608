"""Exceptions raised by the completion layer.

Every provider failure is a :class:`CompletionError` carrying the provider
name, a machine-readable ``code`` and a static ``retryable`` flag that
drives :class:`~dossier.completion.service.CompletionService` retries.
"""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

_HTTP_SERVER_ERROR = 500


class CompletionError(Exception):
    """Base exception for text-completion failures.

    Attributes
    ----------
    provider
        Name of the provider that raised the error.
    code
        Machine-readable error code.
    retryable
        Whether repeating the request may succeed.
    status_code
        HTTP status code from the provider, if any.

    """

    code: str = "PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        retryable: bool = False,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        """Initialise the error with provider context and retry flag."""
        self.provider = provider
        self.retryable = retryable
        self.status_code = status_code
        if code is not None:
            self.code = code
        super().__init__(message)

    @classmethod
    def http_error(cls, provider: str, status_code: int) -> CompletionError:
        """Create an error for a non-specific HTTP failure.

        Server errors (5xx) are retryable; other statuses are not.
        """
        return cls(
            f"{provider} API HTTP error {status_code}",
            provider=provider,
            retryable=status_code >= _HTTP_SERVER_ERROR,
            status_code=status_code,
            code="SERVER_ERROR" if status_code >= _HTTP_SERVER_ERROR else "API_ERROR",
        )

    @classmethod
    def network_error(cls, provider: str, detail: str) -> CompletionError:
        """Create a retryable error for DNS, connection or TLS failures."""
        return cls(
            f"{provider} API network error: {detail}",
            provider=provider,
            retryable=True,
            code="NETWORK_ERROR",
        )

    @classmethod
    def invalid_response(cls, provider: str, detail: str) -> CompletionError:
        """Create an error for a response missing expected fields."""
        return cls(
            f"{provider} API returned an unexpected response: {detail}",
            provider=provider,
            code="INVALID_RESPONSE",
        )


class RateLimitError(CompletionError):
    """Raised when the provider rejects a request with HTTP 429.

    Attributes
    ----------
    retry_after
        Seconds the provider asked callers to wait, if it said.

    """

    code = "RATE_LIMIT"

    def __init__(self, provider: str, retry_after: float | None = None) -> None:
        """Record the provider's Retry-After hint."""
        self.retry_after = retry_after
        message = f"{provider} API rate limited"
        if retry_after is not None:
            message = f"{message}, retry after {retry_after:g}s"
        super().__init__(message, provider=provider, retryable=True, status_code=429)


class CompletionTimeoutError(CompletionError):
    """Raised when a request times out, client- or server-side."""

    code = "TIMEOUT"

    def __init__(self, provider: str, *, status_code: int | None = None) -> None:
        """Build a retryable timeout error."""
        super().__init__(
            f"{provider} API request timed out",
            provider=provider,
            retryable=True,
            status_code=status_code,
        )


class AuthenticationError(CompletionError):
    """Raised when the provider rejects the API credentials."""

    code = "AUTH_ERROR"

    def __init__(self, provider: str, status_code: int) -> None:
        """Build a non-retryable authentication error."""
        super().__init__(
            f"{provider} API rejected credentials (HTTP {status_code})",
            provider=provider,
            status_code=status_code,
        )


class CompletionConfigError(Exception):
    """Raised when completion configuration is invalid."""

    @classmethod
    def missing_api_key(cls, provider: str) -> CompletionConfigError:
        """Create error for a provider with no API key configured."""
        env_var = f"DOSSIER_{provider.upper()}_API_KEY"
        return cls(f"{env_var} environment variable is required")

    @classmethod
    def invalid_provider(
        cls, name: str, valid_providers: cabc.Iterable[str]
    ) -> CompletionConfigError:
        """Create error for an unrecognised provider name."""
        valid = ", ".join(f"'{p}'" for p in sorted(valid_providers))
        return cls(f"Invalid completion provider '{name}'. Valid options are: {valid}")

    @classmethod
    def duplicate_fallback(cls, name: str) -> CompletionConfigError:
        """Create error when the fallback provider equals the primary."""
        return cls(f"Fallback provider '{name}' must differ from the primary provider")

    @classmethod
    def invalid_parameter(
        cls, parameter_name: str, value: str, constraint: str
    ) -> CompletionConfigError:
        """Create error for an invalid numeric parameter."""
        return cls(f"Invalid {parameter_name} '{value}'. {constraint}")
