"""Configuration for Webex delivery and the delivery processor."""

from __future__ import annotations

import dataclasses as dc

from dossier.common.env import env_optional, env_str, positive_float, positive_int
from dossier.storage import DEFAULT_MAX_RETRIES

_DEFAULT_API_BASE = "https://webexapis.com/v1"
_DEFAULT_FRONTEND = "http://localhost:3000"


@dc.dataclass(frozen=True, slots=True)
class WebexConfig:
    """Connection settings for the Webex messages API.

    Attributes
    ----------
    bot_token
        Bearer token of the bot that sends messages; ``None`` disables
        delivery, and attempts fail with ``AUTH_FAILED``.
    api_base_url
        API root; ``/messages`` is appended.
    frontend_url
        Base URL used for report links in summary messages.
    timeout_s
        Per-request timeout.

    """

    bot_token: str | None = None
    api_base_url: str = _DEFAULT_API_BASE
    frontend_url: str = _DEFAULT_FRONTEND
    timeout_s: float = 30.0

    @property
    def messages_url(self) -> str:
        """Endpoint for creating messages."""
        return f"{self.api_base_url.rstrip('/')}/messages"

    @property
    def people_me_url(self) -> str:
        """Endpoint describing the bot itself."""
        return f"{self.api_base_url.rstrip('/')}/people/me"

    @classmethod
    def from_env(cls) -> WebexConfig:
        """Create configuration from ``DOSSIER_WEBEX_*`` variables.

        Reads ``DOSSIER_WEBEX_BOT_TOKEN``, ``DOSSIER_WEBEX_API_BASE_URL``,
        ``DOSSIER_FRONTEND_URL`` and ``DOSSIER_WEBEX_TIMEOUT_S``.
        """
        return cls(
            bot_token=env_optional("DOSSIER_WEBEX_BOT_TOKEN"),
            api_base_url=env_str("DOSSIER_WEBEX_API_BASE_URL", _DEFAULT_API_BASE),
            frontend_url=env_str("DOSSIER_FRONTEND_URL", _DEFAULT_FRONTEND).rstrip("/"),
            timeout_s=positive_float("DOSSIER_WEBEX_TIMEOUT_S", 30.0),
        )


@dc.dataclass(frozen=True, slots=True)
class DeliveryConfig:
    """Retry, artifact-wait and polling settings for deliveries.

    Attributes
    ----------
    max_retries
        Attempts before a delivery fails permanently.
    artifact_wait_attempts
        Checks for a missing export before giving up on this attempt.
    artifact_wait_step_s
        Linear wait step; attempt ``n`` waits ``n * step`` seconds.
    poll_interval
        Seconds between processor ticks.
    max_concurrent
        Deliveries sent at once.
    stop_timeout
        Seconds shutdown waits for in-flight deliveries.

    """

    max_retries: int = DEFAULT_MAX_RETRIES
    artifact_wait_attempts: int = 3
    artifact_wait_step_s: float = 5.0
    poll_interval: float = 5.0
    max_concurrent: int = 2
    stop_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> DeliveryConfig:
        """Create configuration from ``DOSSIER_DELIVERY_*`` variables."""
        return cls(
            artifact_wait_step_s=positive_float(
                "DOSSIER_DELIVERY_ARTIFACT_WAIT_S", 5.0
            ),
            poll_interval=positive_float("DOSSIER_DELIVERY_POLL_INTERVAL_S", 5.0),
            max_concurrent=positive_int("DOSSIER_DELIVERY_MAX_CONCURRENT", 2),
        )
