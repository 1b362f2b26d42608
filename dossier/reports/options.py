"""Typed report inputs and the configuration snapshot stored per report.

``ReportConfiguration`` is captured when a report is created and read back
by every later stage, so changes to global defaults never reach a report
that is already in flight.
"""

from __future__ import annotations

import typing as typ

import msgspec

from dossier.reports.workflows import DEPTH_TOKEN_BUDGETS, Depth
from dossier.storage import (
    DeliveryContent,
    DeliveryMethod,
    DestinationType,
    ExportFormat,
    PodcastDuration,
    PodcastTemplate,
    WorkflowType,
)

DEFAULT_TEMPERATURE: typ.Final[float] = 0.7


class CompetitiveOptions(msgspec.Struct, kw_only=True, frozen=True):
    """Competitive intelligence focus: products and industry vertical."""

    selected_products: tuple[str, ...] = ()
    focus_industry: str | None = None


class NewsDigestOptions(msgspec.Struct, kw_only=True, frozen=True):
    """News digest filters and presentation style."""

    news_focus: tuple[str, ...] = ()
    time_period: str | None = None
    industry_filter: str | None = None
    output_style: str | None = None


class DeliveryOptions(msgspec.Struct, kw_only=True, frozen=True):
    """Where and how a finished report is pushed."""

    destination: str
    destination_type: DestinationType = DestinationType.EMAIL
    method: DeliveryMethod = DeliveryMethod.WEBEX
    content_type: DeliveryContent = DeliveryContent.ATTACHMENT
    format: ExportFormat = ExportFormat.PDF


class PodcastOptions(msgspec.Struct, kw_only=True, frozen=True):
    """Podcast style requested alongside a report."""

    template: PodcastTemplate = PodcastTemplate.EXECUTIVE_BRIEF
    duration: PodcastDuration = PodcastDuration.STANDARD
    delivery_enabled: bool = False
    delivery_destination: str | None = None
    delivery_destination_type: DestinationType = DestinationType.EMAIL


class ReportInput(msgspec.Struct, kw_only=True, frozen=True):
    """Subject of a report: one company or, for news digests, several."""

    company_name: str | None = None
    company_names: tuple[str, ...] = ()
    additional_context: dict[str, typ.Any] = msgspec.field(default_factory=dict)


class ReportConfiguration(msgspec.Struct, kw_only=True, frozen=True):
    """Generation settings frozen onto the report row at creation time.

    Attributes
    ----------
    sections
        Resolved, ordered section keys.
    depth
        Requested level of detail.
    max_tokens
        Token ceiling per section derived from ``depth``.
    temperature
        Sampling temperature for section generation.
    competitive_options, news_digest_options
        Workflow-specific options, kept only for their own workflow.
    delivery, podcast_options
        Downstream work to trigger once the report completes.

    """

    sections: tuple[str, ...]
    depth: Depth = Depth.STANDARD
    max_tokens: int = DEPTH_TOKEN_BUDGETS[Depth.STANDARD]
    temperature: float = DEFAULT_TEMPERATURE
    competitive_options: CompetitiveOptions | None = None
    news_digest_options: NewsDigestOptions | None = None
    delivery: DeliveryOptions | None = None
    podcast_options: PodcastOptions | None = None


class CreateReportInput(msgspec.Struct, kw_only=True, frozen=True):
    """Caller-supplied request to create one report."""

    owner_id: str
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
    schedule_id: str | None = None


class TemplateConfiguration(msgspec.Struct, kw_only=True, frozen=True):
    """Saved report settings applied by templates and schedules."""

    sections: tuple[str, ...] = ()
    depth: Depth = Depth.STANDARD
    competitive_options: CompetitiveOptions | None = None
    news_digest_options: NewsDigestOptions | None = None
    requested_formats: tuple[ExportFormat, ...] = ()
    delivery: DeliveryOptions | None = None
    podcast_options: PodcastOptions | None = None


def to_builtins(value: msgspec.Struct) -> dict[str, typ.Any]:
    """Encode a struct into JSON-compatible builtins for a JSON column."""
    return typ.cast("dict[str, typ.Any]", msgspec.to_builtins(value))


def load_configuration(raw: typ.Mapping[str, typ.Any]) -> ReportConfiguration:
    """Decode a stored configuration snapshot."""
    return msgspec.convert(raw, ReportConfiguration)


def load_input(raw: typ.Mapping[str, typ.Any]) -> ReportInput:
    """Decode stored report input data."""
    return msgspec.convert(raw, ReportInput)


def load_template_configuration(
    raw: typ.Mapping[str, typ.Any],
) -> TemplateConfiguration:
    """Decode a stored template configuration."""
    return msgspec.convert(raw, TemplateConfiguration)
