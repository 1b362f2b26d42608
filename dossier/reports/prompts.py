"""Prompt construction for section generation."""

from __future__ import annotations

import typing as typ

import msgspec

from dossier.reports.workflows import Depth, display_name
from dossier.storage import WorkflowType

if typ.TYPE_CHECKING:
    from dossier.reports.options import (
        CompetitiveOptions,
        NewsDigestOptions,
        ReportInput,
    )

SYSTEM_PROMPTS: typ.Final[dict[WorkflowType, str]] = {
    WorkflowType.ACCOUNT_INTELLIGENCE: (
        "You are a senior business analyst preparing account intelligence "
        "briefings for enterprise sales teams. Write factual, well-structured "
        "prose and flag uncertainty where information may be outdated."
    ),
    WorkflowType.COMPETITIVE_INTELLIGENCE: (
        "You are a competitive intelligence analyst. Compare companies "
        "objectively, ground claims in observable market evidence, and "
        "close with actionable implications."
    ),
    WorkflowType.NEWS_DIGEST: (
        "You are a business news editor. Summarize recent developments "
        "across the listed companies as a coherent narrative for busy "
        "executives."
    ),
}

_DEPTH_INSTRUCTIONS: typ.Final[dict[Depth, str]] = {
    Depth.BRIEF: (
        "DEPTH: executive brief. Aim for roughly 800 words of continuous "
        "prose without headers or bullet lists."
    ),
    Depth.STANDARD: "",
    Depth.DETAILED: (
        "DEPTH: detailed analysis. Aim for at least 800-1200 words with "
        "structured subsections, concrete data points and forward-looking "
        "projections."
    ),
}

_OUTPUT_STYLES: typ.Final[dict[str, str]] = {
    "executive-brief": "Use short, scannable paragraphs that lead with key metrics.",
    "narrative": "Write flowing prose that connects events into one story.",
    "podcast-ready": "Write conversationally, as if the text will be read aloud.",
}


def system_prompt(workflow: WorkflowType) -> str:
    """Return the system prompt for ``workflow``."""
    return SYSTEM_PROMPTS[workflow]


def _subject_line(workflow: WorkflowType, input_data: ReportInput) -> str:
    if workflow is WorkflowType.NEWS_DIGEST:
        return f"Companies: {', '.join(input_data.company_names)}"
    return f"Company: {input_data.company_name}"


def _competitive_lines(options: CompetitiveOptions) -> list[str]:
    lines: list[str] = []
    if options.selected_products:
        lines.append(f"Products in scope: {', '.join(options.selected_products)}")
    if options.focus_industry:
        lines.append(f"Focus industry: {options.focus_industry}")
    return lines


def _news_lines(options: NewsDigestOptions) -> list[str]:
    lines: list[str] = []
    if options.news_focus:
        lines.append(f"News focus: {', '.join(options.news_focus)}")
    if options.time_period:
        lines.append(f"Time period: {options.time_period}")
    if options.industry_filter:
        lines.append(f"Industry filter: {options.industry_filter}")
    if options.output_style in _OUTPUT_STYLES:
        lines.append(_OUTPUT_STYLES[options.output_style])
    return lines


def section_prompt(  # noqa: PLR0913
    *,
    workflow: WorkflowType,
    section: str,
    input_data: ReportInput,
    depth: Depth,
    competitive_options: CompetitiveOptions | None = None,
    news_digest_options: NewsDigestOptions | None = None,
) -> str:
    """Build the user prompt for one section.

    The first line names the section so generated text can be traced back
    to the prompt that produced it.
    """
    lines = [
        f"Write the '{display_name(section)}' section of a report.",
        _subject_line(workflow, input_data),
    ]
    if competitive_options is not None:
        lines.extend(_competitive_lines(competitive_options))
    if news_digest_options is not None:
        lines.extend(_news_lines(news_digest_options))
    if input_data.additional_context:
        context = msgspec.json.encode(input_data.additional_context, order="sorted").decode()
        lines.append(f"Additional context: {context}")
    if instruction := _DEPTH_INSTRUCTIONS[depth]:
        lines.extend(("", instruction))
    return "\n".join(lines)
