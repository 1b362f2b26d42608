"""Report orchestration: workflows, section generation and templates."""

from __future__ import annotations

from .analytics import (
    DashboardSummary,
    ReportAnalyticsService,
    TrendPoint,
    WorkflowShare,
)
from .config import ReportsConfig
from .errors import (
    ReportError,
    ReportNotFoundError,
    ReportStateError,
    ReportValidationError,
    TemplateInUseError,
    TemplateNotFoundError,
    TemplateValidationError,
)
from .generator import GeneratedSection, SectionGenerator, SectionMetadata
from .hooks import ReportCompletedHook
from .observability import ReportEventLogger, ReportEventType
from .options import (
    CompetitiveOptions,
    CreateReportInput,
    DeliveryOptions,
    NewsDigestOptions,
    PodcastOptions,
    ReportConfiguration,
    ReportInput,
    TemplateConfiguration,
    load_configuration,
)
from .service import (
    ReportPage,
    ReportProgress,
    ReportService,
    ReportServiceDependencies,
)
from .templates import TemplateService
from .workflows import (
    WORKFLOW_LABELS,
    WORKFLOW_SECTIONS,
    Depth,
    SectionInfo,
    describe_sections,
    display_name,
    resolve_sections,
)

__all__ = [
    "WORKFLOW_LABELS",
    "WORKFLOW_SECTIONS",
    "CompetitiveOptions",
    "CreateReportInput",
    "DashboardSummary",
    "DeliveryOptions",
    "Depth",
    "GeneratedSection",
    "NewsDigestOptions",
    "PodcastOptions",
    "ReportAnalyticsService",
    "ReportCompletedHook",
    "ReportConfiguration",
    "ReportError",
    "ReportEventLogger",
    "ReportEventType",
    "ReportInput",
    "ReportNotFoundError",
    "ReportPage",
    "ReportProgress",
    "ReportService",
    "ReportServiceDependencies",
    "ReportStateError",
    "ReportValidationError",
    "ReportsConfig",
    "SectionGenerator",
    "SectionInfo",
    "SectionMetadata",
    "TemplateConfiguration",
    "TemplateInUseError",
    "TemplateNotFoundError",
    "TemplateService",
    "TemplateValidationError",
    "TrendPoint",
    "WorkflowShare",
    "describe_sections",
    "display_name",
    "load_configuration",
    "resolve_sections",
]
