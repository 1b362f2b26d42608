"""Render-ready view of a completed report."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from dossier.reports.options import load_configuration, load_input
from dossier.reports.workflows import WORKFLOW_LABELS, display_name
from dossier.storage import WorkflowType

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from dossier.storage import Report


@dc.dataclass(frozen=True, slots=True)
class DocumentSection:
    """One titled section of body text."""

    title: str
    content: str


@dc.dataclass(frozen=True, slots=True)
class ReportDocument:
    """Everything a renderer needs, detached from the database row."""

    title: str
    workflow_label: str
    subject: str
    generated_at: dt.datetime | None
    sections: tuple[DocumentSection, ...]

    @classmethod
    def from_report(cls, report: Report) -> ReportDocument:
        """Build the document from a report's stored content.

        Sections follow the configured order; sections without content
        are skipped.
        """
        content = report.generated_content or {}
        ordered = load_configuration(report.configuration).sections
        input_data = load_input(report.input_data)
        if report.workflow_type is WorkflowType.NEWS_DIGEST:
            subject = ", ".join(input_data.company_names)
        else:
            subject = input_data.company_name or ""
        return cls(
            title=report.title,
            workflow_label=WORKFLOW_LABELS[report.workflow_type],
            subject=subject,
            generated_at=report.completed_at,
            sections=tuple(_sections(ordered, content)),
        )


def _sections(
    ordered: cabc.Iterable[str], content: typ.Mapping[str, typ.Any]
) -> cabc.Iterator[DocumentSection]:
    for key in ordered:
        entry = content.get(key)
        text = entry.get("content") if isinstance(entry, dict) else entry
        if isinstance(text, str) and text.strip():
            yield DocumentSection(title=display_name(key), content=text)


def blocks(text: str) -> cabc.Iterator[tuple[str, str]]:
    """Split body text into ``("heading", ...)`` and ``("paragraph", ...)``.

    Markdown ``#`` lines become headings; blank lines separate paragraphs.
    """
    paragraph: list[str] = []
    for raw in text.splitlines():
        line = raw.strip()
        if line.startswith("#"):
            if paragraph:
                yield ("paragraph", " ".join(paragraph))
                paragraph = []
            yield ("heading", line.lstrip("#").strip())
        elif not line:
            if paragraph:
                yield ("paragraph", " ".join(paragraph))
                paragraph = []
        else:
            paragraph.append(line)
    if paragraph:
        yield ("paragraph", " ".join(paragraph))
