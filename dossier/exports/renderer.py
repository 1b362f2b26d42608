"""PDF and DOCX renderers for report documents.

Renderers are synchronous and CPU bound; the export service runs them in
a worker thread.
"""

from __future__ import annotations

import io
import typing as typ

from docx import Document
from docx.shared import Pt
from fpdf import FPDF
from fpdf.enums import XPos, YPos

from dossier.exports.document import blocks
from dossier.storage import ExportFormat

if typ.TYPE_CHECKING:
    from dossier.exports.document import ReportDocument

_DARK_BLUE = (0, 51, 102)
_META_GREY = (110, 110, 110)


@typ.runtime_checkable
class DocumentRenderer(typ.Protocol):
    """Turns a report document into file bytes."""

    def render(self, document: ReportDocument) -> bytes:
        """Return the encoded document."""
        ...


def _latin1(text: str) -> str:
    """Map text onto the core PDF fonts' Latin-1 repertoire."""
    replacements = {
        "\u2018": "'",
        "\u2019": "'",
        "\u201c": '"',
        "\u201d": '"',
        "\u2013": "-",
        "\u2014": "-",
        "\u2022": "-",
        "\u2026": "...",
    }
    for source, target in replacements.items():
        text = text.replace(source, target)
    return text.encode("latin-1", "replace").decode("latin-1")


class PdfRenderer:
    """fpdf2 renderer using the built-in Helvetica family."""

    def render(self, document: ReportDocument) -> bytes:
        """Lay out the title block and every section as flowing text."""
        pdf = FPDF(format="A4")
        pdf.set_auto_page_break(auto=True, margin=15)
        pdf.set_title(_latin1(document.title))
        pdf.add_page()

        pdf.set_font("Helvetica", "B", 20)
        pdf.set_text_color(*_DARK_BLUE)
        pdf.multi_cell(0, 10, _latin1(document.title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_font("Helvetica", "", 10)
        pdf.set_text_color(*_META_GREY)
        meta = [document.workflow_label]
        if document.subject:
            meta.append(document.subject)
        if document.generated_at is not None:
            meta.append(document.generated_at.strftime("%Y-%m-%d %H:%M UTC"))
        pdf.multi_cell(0, 6, _latin1(" | ".join(meta)), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.ln(4)

        for section in document.sections:
            pdf.set_font("Helvetica", "B", 14)
            pdf.set_text_color(*_DARK_BLUE)
            pdf.multi_cell(0, 8, _latin1(section.title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            pdf.set_text_color(0, 0, 0)
            for kind, text in blocks(section.content):
                if kind == "heading":
                    pdf.set_font("Helvetica", "B", 11)
                    pdf.multi_cell(0, 6, _latin1(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
                else:
                    pdf.set_font("Helvetica", "", 11)
                    pdf.multi_cell(0, 6, _latin1(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
                    pdf.ln(2)
            pdf.ln(4)
        return bytes(pdf.output())


class DocxRenderer:
    """python-docx renderer with one heading per section."""

    def render(self, document: ReportDocument) -> bytes:
        """Build the Word document in memory and return its bytes."""
        doc = Document()
        doc.core_properties.title = document.title
        doc.add_heading(document.title, level=0)
        meta = doc.add_paragraph()
        run = meta.add_run(
            " | ".join(
                part
                for part in (
                    document.workflow_label,
                    document.subject,
                    document.generated_at.strftime("%Y-%m-%d %H:%M UTC")
                    if document.generated_at is not None
                    else "",
                )
                if part
            )
        )
        run.italic = True
        run.font.size = Pt(9)

        for section in document.sections:
            doc.add_heading(section.title, level=1)
            for kind, text in blocks(section.content):
                if kind == "heading":
                    doc.add_heading(text, level=2)
                else:
                    doc.add_paragraph(text)

        buffer = io.BytesIO()
        doc.save(buffer)
        return buffer.getvalue()


def default_renderers() -> dict[ExportFormat, DocumentRenderer]:
    """Return the renderer registered for each export format."""
    return {ExportFormat.PDF: PdfRenderer(), ExportFormat.DOCX: DocxRenderer()}
