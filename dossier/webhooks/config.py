"""Configuration for the inbound Webex webhook."""

from __future__ import annotations

import dataclasses as dc

from dossier.common.env import env_list, env_optional, positive_float, positive_int


@dc.dataclass(frozen=True, slots=True)
class WebhookConfig:
    """Settings for turning bot messages into report requests.

    Attributes
    ----------
    secret
        Shared secret of the registered webhook; ``None`` rejects every
        call.
    allowed_domains
        Sender email domains that may request reports; empty allows all.
    rate_limit, rate_window_s
        At most ``rate_limit`` requests per sender in ``rate_window_s``.
    min_confidence
        Parsed requests below this confidence ask the sender to clarify.
    stop_timeout
        Seconds to wait for messages still being handled at shutdown.

    """

    secret: str | None = None
    allowed_domains: tuple[str, ...] = ()
    rate_limit: int = 10
    rate_window_s: float = 60.0
    min_confidence: float = 0.7
    stop_timeout: float = 30.0

    def allows(self, email: str) -> bool:
        """Return whether ``email`` belongs to an allowed domain."""
        if not self.allowed_domains:
            return True
        domain = email.rpartition("@")[2].lower()
        return domain in {allowed.lower().lstrip("@") for allowed in self.allowed_domains}

    @classmethod
    def from_env(cls) -> WebhookConfig:
        """Create configuration from ``DOSSIER_WEBEX_WEBHOOK_*`` variables.

        Reads ``DOSSIER_WEBEX_WEBHOOK_SECRET``,
        ``DOSSIER_WEBEX_WEBHOOK_ALLOWED_DOMAINS`` (comma separated),
        ``DOSSIER_WEBEX_WEBHOOK_RATE_LIMIT`` and
        ``DOSSIER_WEBEX_WEBHOOK_RATE_WINDOW_S``.
        """
        return cls(
            secret=env_optional("DOSSIER_WEBEX_WEBHOOK_SECRET"),
            allowed_domains=env_list("DOSSIER_WEBEX_WEBHOOK_ALLOWED_DOMAINS"),
            rate_limit=positive_int("DOSSIER_WEBEX_WEBHOOK_RATE_LIMIT", 10),
            rate_window_s=positive_float("DOSSIER_WEBEX_WEBHOOK_RATE_WINDOW_S", 60.0),
        )
