"""Markdown bodies for report and podcast delivery messages."""

from __future__ import annotations

import typing as typ

from dossier.podcasts.catalog import template_label
from dossier.reports.workflows import WORKFLOW_LABELS, display_name

if typ.TYPE_CHECKING:
    from dossier.storage import PodcastGeneration, Report

SUMMARY_CHARS = 500
SUMMARY_SECTIONS = ("executive_summary", "news_narrative", "account_overview")
_FOOTER = "---\n_Generated by Dossier_"


def company_label(report: Report) -> str:
    """Return the company name(s) a report covers."""
    data = report.input_data or {}
    if name := data.get("company_name"):
        return str(name)
    if names := data.get("company_names"):
        return ", ".join(str(item) for item in names)
    return "Multiple Companies"


def _generated_on(report: Report) -> str:
    moment = report.completed_at or report.created_at
    return moment.date().isoformat()


def _section_text(content: dict[str, typ.Any], key: str) -> str:
    section = content.get(key)
    if isinstance(section, dict):
        return str(section.get("content") or "")
    if isinstance(section, str):
        return section
    return ""


def summary_excerpt(report: Report) -> str:
    """Return the first ``SUMMARY_CHARS`` characters of the lead section.

    The lead section is the first of ``SUMMARY_SECTIONS`` with content;
    truncated text ends with ``...``.
    """
    content = report.generated_content or {}
    for key in SUMMARY_SECTIONS:
        text = _section_text(content, key)
        if text:
            if len(text) > SUMMARY_CHARS:
                return f"{text[:SUMMARY_CHARS]}..."
            return text
    return ""


def attachment_message(report: Report) -> str:
    """Markdown sent alongside an attached report document."""
    label = WORKFLOW_LABELS.get(report.workflow_type, "Report")
    return (
        f"**{label}**\n\n"
        f"**{report.title}**\n"
        f"**Company:** {company_label(report)}\n"
        f"**Generated:** {_generated_on(report)}\n\n"
        "_Report attached below._\n\n"
        f"{_FOOTER}"
    )


def summary_message(report: Report, frontend_url: str) -> str:
    """Markdown with a summary excerpt, section list and report link."""
    label = WORKFLOW_LABELS.get(report.workflow_type, "Report")
    parts = [
        f"## {label}\n\n"
        f"**{report.title}**\n"
        f"**Company:** {company_label(report)}\n"
        f"**Generated:** {_generated_on(report)}"
    ]
    if excerpt := summary_excerpt(report):
        parts.append(f"### Summary\n{excerpt}")
    sections = [key for key in (report.generated_content or {}) if key != "error"]
    if sections:
        listing = "\n".join(f"- {display_name(key)}" for key in sections)
        parts.append(f"**Sections:**\n{listing}")
    link = f"{frontend_url.rstrip('/')}/reports/{report.id}"
    parts.append(f"---\n[View Full Report]({link})\n\n_Generated by Dossier_")
    return "\n\n".join(parts)


def podcast_message(podcast: PodcastGeneration, report: Report) -> str:
    """Markdown sent alongside an attached podcast episode."""
    minutes = round((podcast.duration_seconds or 0) / 60)
    moment = podcast.completed_at or podcast.created_at
    return (
        f"**Podcast: {template_label(podcast.template)}**\n\n"
        f"**Report:** {report.title}\n"
        f"**Company:** {company_label(report)}\n"
        f"**Duration:** {minutes} minutes\n"
        f"**Generated:** {moment.date().isoformat()}\n\n"
        "_Audio file attached below._\n\n"
        f"{_FOOTER}"
    )


def podcast_filename(report_id: str) -> str:
    """Attachment name for a report's podcast episode."""
    return f"podcast_{report_id[:8]}.mp3"
