"""Unit tests for report documents and the PDF/DOCX renderers."""

from __future__ import annotations

import datetime as dt
import io
import zipfile

import pytest

from dossier.exports import (
    DocumentSection,
    DocxRenderer,
    PdfRenderer,
    ReportDocument,
)
from dossier.exports.document import blocks


@pytest.fixture
def document() -> ReportDocument:
    """Return a two-section document with markdown headings."""
    return ReportDocument(
        title="Acme — account briefing",
        workflow_label="Account Intelligence Report",
        subject="Acme",
        generated_at=dt.datetime(2024, 7, 10, 12, 0, tzinfo=dt.UTC),
        sections=(
            DocumentSection(
                title="Account Overview",
                content="# Background\n\nAcme builds anvils.\nIt ships worldwide.",
            ),
            DocumentSection(title="Financial Health", content="Revenue grew 12%."),
        ),
    )


def test_blocks_split_headings_and_paragraphs() -> None:
    """Markdown headings and blank lines delimit blocks."""
    text = "# Heading\nfirst line\nsecond line\n\n## Next\nbody"

    assert list(blocks(text)) == [
        ("heading", "Heading"),
        ("paragraph", "first line second line"),
        ("heading", "Next"),
        ("paragraph", "body"),
    ]


def test_pdf_renderer_produces_pdf(document: ReportDocument) -> None:
    """The PDF renderer returns a PDF byte stream."""
    data = PdfRenderer().render(document)

    assert data.startswith(b"%PDF"), "expected a PDF header"


def test_docx_renderer_produces_word_package(document: ReportDocument) -> None:
    """The DOCX renderer returns a zip containing the document body."""
    data = DocxRenderer().render(document)

    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        body = archive.read("word/document.xml").decode()
    assert "Account Overview" in body, "section heading should be present"
    assert "Acme builds anvils." in body, "paragraph text should be present"
