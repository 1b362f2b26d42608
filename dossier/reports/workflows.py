"""Workflow catalogue: valid sections, display metadata and depth budgets."""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ

from dossier.reports.errors import ReportValidationError
from dossier.storage import WorkflowType

if typ.TYPE_CHECKING:
    import collections.abc as cabc


class Depth(enum.StrEnum):
    """Requested level of detail for generated sections."""

    BRIEF = "brief"
    STANDARD = "standard"
    DETAILED = "detailed"


DEPTH_TOKEN_BUDGETS: typ.Final[dict[Depth, int]] = {
    Depth.BRIEF: 1000,
    Depth.STANDARD: 4000,
    Depth.DETAILED: 6000,
}

WORKFLOW_SECTIONS: typ.Final[dict[WorkflowType, tuple[str, ...]]] = {
    WorkflowType.ACCOUNT_INTELLIGENCE: (
        "account_overview",
        "financial_health",
        "security_events",
        "current_events",
    ),
    WorkflowType.COMPETITIVE_INTELLIGENCE: (
        "executive_summary",
        "company_overview",
        "product_offerings",
        "competitive_positioning",
        "strengths_weaknesses",
        "cisco_analysis",
        "recommendations",
    ),
    WorkflowType.NEWS_DIGEST: ("news_narrative",),
}

SECTION_DISPLAY_NAMES: typ.Final[dict[str, str]] = {
    "account_overview": "Account Overview",
    "financial_health": "Financial Health",
    "security_events": "Security Events",
    "current_events": "Current Events",
    "executive_summary": "Executive Summary",
    "company_overview": "Company Overview",
    "product_offerings": "Product Offerings",
    "competitive_positioning": "Competitive Positioning",
    "strengths_weaknesses": "Strengths & Weaknesses",
    "cisco_analysis": "Cisco Analysis",
    "recommendations": "Recommendations",
    "news_narrative": "News Narrative",
}

SECTION_DESCRIPTIONS: typ.Final[dict[str, str]] = {
    "account_overview": "Company background, industry position, and key business facts",
    "financial_health": "Revenue, growth metrics, and financial indicators",
    "security_events": "Cybersecurity incidents, vulnerabilities, and compliance status",
    "current_events": "Recent news, announcements, and market activity",
    "executive_summary": "High-level overview and key findings",
    "company_overview": "Company history, structure, and market presence",
    "product_offerings": "Products, services, and solution portfolio",
    "competitive_positioning": "Market position and competitive landscape",
    "strengths_weaknesses": "SWOT analysis and strategic assessment",
    "cisco_analysis": "Cisco-specific competitive analysis and opportunities",
    "recommendations": "Strategic recommendations and next steps",
    "news_narrative": "Curated news digest and market intelligence",
}

WORKFLOW_LABELS: typ.Final[dict[WorkflowType, str]] = {
    WorkflowType.ACCOUNT_INTELLIGENCE: "Account Intelligence Report",
    WorkflowType.COMPETITIVE_INTELLIGENCE: "Competitive Intelligence Report",
    WorkflowType.NEWS_DIGEST: "News Digest",
}


@dc.dataclass(frozen=True, slots=True)
class SectionInfo:
    """Display metadata for one section."""

    key: str
    name: str
    description: str


def display_name(section: str) -> str:
    """Return the human-readable name for ``section``."""
    return SECTION_DISPLAY_NAMES.get(section, section.replace("_", " ").title())


def describe_sections(workflow: WorkflowType) -> list[SectionInfo]:
    """List the sections ``workflow`` offers, in generation order."""
    return [
        SectionInfo(
            key=key,
            name=display_name(key),
            description=SECTION_DESCRIPTIONS.get(key, ""),
        )
        for key in WORKFLOW_SECTIONS[workflow]
    ]


def resolve_sections(
    workflow: WorkflowType,
    requested: cabc.Sequence[str] | None,
) -> tuple[str, ...]:
    """Return the section list a new report will generate.

    An empty or missing selection resolves to the workflow's default list.
    Explicit selections keep the caller's order with duplicates dropped.

    Raises
    ------
    ReportValidationError
        If any requested section is not offered by ``workflow``.

    """
    valid = WORKFLOW_SECTIONS[workflow]
    if not requested:
        return valid
    invalid = {section for section in requested if section not in valid}
    if invalid:
        raise ReportValidationError.invalid_sections(invalid, workflow)
    return tuple(dict.fromkeys(requested))


def token_budget(depth: Depth) -> int:
    """Return the max-token ceiling for ``depth``."""
    return DEPTH_TOKEN_BUDGETS[depth]
