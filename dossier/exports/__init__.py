"""Document exports: PDF and DOCX rendering jobs with expiry."""

from __future__ import annotations

from .config import ExportConfig
from .document import DocumentSection, ReportDocument
from .errors import (
    ExportError,
    ExportExpiredError,
    ExportNotFoundError,
    ExportStateError,
)
from .observability import ExportEventLogger, ExportEventType
from .processor import ExportProcessor
from .renderer import DocumentRenderer, DocxRenderer, PdfRenderer, default_renderers
from .service import ExportDownload, ExportService, ExpiryStats, download_filename

__all__ = [
    "DocumentRenderer",
    "DocumentSection",
    "DocxRenderer",
    "ExpiryStats",
    "ExportConfig",
    "ExportDownload",
    "ExportError",
    "ExportEventLogger",
    "ExportEventType",
    "ExportExpiredError",
    "ExportNotFoundError",
    "ExportProcessor",
    "ExportService",
    "ExportStateError",
    "PdfRenderer",
    "ReportDocument",
    "default_renderers",
    "download_filename",
]
