"""Typed request bodies and query parameter readers.

Bodies are decoded with msgspec into frozen structs; anything that does
not fit is reported as :class:`~dossier.api.errors.InvalidInputError`
(HTTP 400) before a service is called.
"""

from __future__ import annotations

import datetime as dt
import enum
import typing as typ

import msgspec

from dossier.api.errors import InvalidInputError
from dossier.reports import (
    CompetitiveOptions,
    DeliveryOptions,
    Depth,
    NewsDigestOptions,
    PodcastOptions,
    ReportInput,
    TemplateConfiguration,
)
from dossier.storage import (
    DestinationType,
    ExportFormat,
    PodcastDuration,
    PodcastTemplate,
    WorkflowType,
)

if typ.TYPE_CHECKING:
    from falcon.asgi import Request

T = typ.TypeVar("T")
E = typ.TypeVar("E", bound=enum.Enum)

MAX_PAGE_SIZE = 100


class CreateReportBody(msgspec.Struct, kw_only=True, frozen=True):
    """Body of ``POST /reports``."""

    title: str
    workflow_type: WorkflowType
    input_data: ReportInput = msgspec.field(default_factory=ReportInput)
    sections: tuple[str, ...] = ()
    depth: Depth = Depth.STANDARD
    competitive_options: CompetitiveOptions | None = None
    news_digest_options: NewsDigestOptions | None = None
    llm_model: str | None = None
    requested_formats: tuple[ExportFormat, ...] = ()
    delivery: DeliveryOptions | None = None
    podcast_options: PodcastOptions | None = None


class ExportRequestBody(msgspec.Struct, kw_only=True, frozen=True):
    """Body of ``POST /reports/{id}/exports``; ``format`` or ``formats``."""

    format: ExportFormat | None = None
    formats: tuple[ExportFormat, ...] = ()

    def requested(self) -> tuple[ExportFormat, ...]:
        """Return the formats to export, defaulting to PDF."""
        chosen = (*((self.format,) if self.format else ()), *self.formats)
        return chosen or (ExportFormat.PDF,)


class PodcastRequestBody(msgspec.Struct, kw_only=True, frozen=True):
    """Body of ``POST /reports/{id}/podcast``."""

    template: PodcastTemplate = PodcastTemplate.EXECUTIVE_BRIEF
    duration: PodcastDuration = PodcastDuration.STANDARD
    delivery_destination: str | None = None
    delivery_destination_type: DestinationType = DestinationType.EMAIL


class TemplateBody(msgspec.Struct, kw_only=True, frozen=True):
    """Body of ``POST /templates``."""

    name: str
    workflow_type: WorkflowType
    description: str | None = None
    configuration: TemplateConfiguration = msgspec.field(
        default_factory=TemplateConfiguration
    )


def user_id(req: Request) -> str:
    """Return the caller id attached by the identity middleware."""
    return typ.cast("str", req.context.user_id)


async def read_body(req: Request, body_type: type[T]) -> T:
    """Decode the JSON body into ``body_type``; an empty body means ``{}``.

    Raises
    ------
    InvalidInputError
        If the body does not match ``body_type``.

    """
    media = await req.get_media(default_when_empty={})
    try:
        return msgspec.convert(media, body_type)
    except msgspec.ValidationError as exc:
        raise InvalidInputError(str(exc)) from exc


def query_enum(req: Request, name: str, enum_type: type[E]) -> E | None:
    """Return query parameter ``name`` as ``enum_type``, or ``None`` when absent.

    Raises
    ------
    InvalidInputError
        If the value is not a member of ``enum_type``.

    """
    raw = req.get_param(name)
    if raw is None:
        return None
    try:
        return enum_type(raw)
    except ValueError as exc:
        allowed = ", ".join(str(member.value) for member in enum_type)
        raise InvalidInputError(f"must be one of {allowed}", field=name) from exc


def query_int(
    req: Request, name: str, default: int, *, minimum: int = 0, maximum: int | None = None
) -> int:
    """Return query parameter ``name`` as a bounded integer.

    Raises
    ------
    InvalidInputError
        If the value is not an integer or falls outside the bounds.

    """
    raw = req.get_param(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise InvalidInputError("must be an integer", field=name) from exc
    if value < minimum or (maximum is not None and value > maximum):
        bound = f"between {minimum} and {maximum}" if maximum is not None else f">= {minimum}"
        raise InvalidInputError(f"must be {bound}", field=name)
    return value


def query_bool(req: Request, name: str) -> bool | None:
    """Return query parameter ``name`` as a boolean, or ``None`` when absent.

    Raises
    ------
    InvalidInputError
        If the value is not ``true`` or ``false``.

    """
    raw = req.get_param(name)
    if raw is None:
        return None
    lowered = raw.strip().lower()
    if lowered not in {"true", "false"}:
        raise InvalidInputError("must be true or false", field=name)
    return lowered == "true"


def query_datetime(req: Request, name: str) -> dt.datetime | None:
    """Return query parameter ``name`` as an aware datetime; naive means UTC.

    Raises
    ------
    InvalidInputError
        If the value is not an ISO 8601 date or timestamp.

    """
    raw = req.get_param(name)
    if raw is None:
        return None
    try:
        value = dt.datetime.fromisoformat(raw.strip())
    except ValueError as exc:
        raise InvalidInputError("must be an ISO 8601 timestamp", field=name) from exc
    return value if value.tzinfo is not None else value.replace(tzinfo=dt.UTC)


def query_window(req: Request) -> tuple[dt.datetime | None, dt.datetime | None]:
    """Return the optional ``start`` and ``end`` query parameters.

    Raises
    ------
    InvalidInputError
        If either is malformed or ``start`` is after ``end``.

    """
    start = query_datetime(req, "start")
    end = query_datetime(req, "end")
    if start is not None and end is not None and start > end:
        raise InvalidInputError("must not be after end", field="start")
    return start, end
