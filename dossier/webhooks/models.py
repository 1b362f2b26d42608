"""Wire shapes of Webex webhook notifications and parsed requests."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import msgspec

if typ.TYPE_CHECKING:
    from dossier.reports import Depth
    from dossier.storage import WorkflowType

MESSAGES_RESOURCE = "messages"
CREATED_EVENT = "created"
DIRECT_ROOM = "direct"


class WebhookData(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """The ``data`` object of a notification; the message text is not included."""

    id: str
    room_id: str | None = None
    room_type: str | None = None
    person_id: str | None = None
    person_email: str | None = None


class WebhookPayload(msgspec.Struct, kw_only=True, frozen=True):
    """A webhook notification as posted by Webex."""

    resource: str
    event: str
    data: WebhookData
    id: str | None = None
    name: str | None = None

    @property
    def is_new_message(self) -> bool:
        """Whether this notification announces a created message."""
        return self.resource == MESSAGES_RESOURCE and self.event == CREATED_EVENT


class ParsedMessage(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """The completion's reading of a chat message, before validation."""

    target_company: str | None = None
    workflow_type: str | None = None
    additional_companies: tuple[str, ...] = ()
    depth: str | None = None
    confidence: float = 0.0
    error: str | None = None


@dc.dataclass(frozen=True, slots=True)
class ReportRequest:
    """A validated report request read from a chat message."""

    company: str
    workflow_type: WorkflowType
    depth: Depth
    additional_companies: tuple[str, ...] = ()

    @property
    def companies(self) -> tuple[str, ...]:
        """Every company named, the target first."""
        return (self.company, *self.additional_companies)
