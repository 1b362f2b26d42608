"""Errors raised while handling inbound webhook messages.

:class:`MessageParseError` messages are written for the person who sent
the message and are posted back to them verbatim.
"""

from __future__ import annotations

from dossier.errors import DossierError, ValidationError


class MessageParseError(ValidationError):
    """Raised when a message cannot be turned into a report request."""

    code = "MESSAGE_NOT_UNDERSTOOD"

    @classmethod
    def not_understood(cls, reason: str | None = None) -> MessageParseError:
        """Create error for a message the parser could not read."""
        detail = f" {reason}" if reason else ""
        return cls(
            "Sorry, I couldn't work out which report you want."
            f"{detail} Try something like: *Account intelligence on Acme*."
        )

    @classmethod
    def unsure(cls, company: str | None) -> MessageParseError:
        """Create error for a request parsed with too little confidence."""
        subject = f" about **{company}**" if company else ""
        return cls(
            f"I'm not sure what you'd like{subject}. Please name the company "
            "and the report type (account intelligence, competitive "
            "intelligence or news digest)."
        )

    @classmethod
    def bad_company(cls, company: str) -> MessageParseError:
        """Create error for a company name outside the accepted length."""
        return cls(f"'{company}' doesn't look like a company name. Please try again.")

    @classmethod
    def bad_option(cls, field: str, value: str) -> MessageParseError:
        """Create error for an unknown workflow or depth."""
        return cls(f"I don't recognise the {field} '{value}'. Please try again.")


class WebhookNotConfiguredError(DossierError):
    """Raised when a webhook call arrives but no secret is configured."""

    code = "WEBHOOK_NOT_CONFIGURED"

    @classmethod
    def missing_secret(cls) -> WebhookNotConfiguredError:
        """Create error for a deployment without a webhook secret."""
        return cls("Webhook secret not configured")
