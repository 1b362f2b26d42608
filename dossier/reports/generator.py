"""Generate one report section through the completion service."""

from __future__ import annotations

import typing as typ

import msgspec

from dossier.common.time import utcnow
from dossier.completion.models import CompletionRequest
from dossier.reports.prompts import section_prompt, system_prompt

if typ.TYPE_CHECKING:
    from dossier.completion.service import CompletionService
    from dossier.reports.options import ReportConfiguration, ReportInput
    from dossier.storage import WorkflowType


class SectionMetadata(msgspec.Struct, kw_only=True, frozen=True):
    """Accounting recorded next to each generated section."""

    model: str
    provider: str
    tokens: int
    generated_at: str


class GeneratedSection(msgspec.Struct, kw_only=True, frozen=True):
    """Text of one section plus its accounting metadata."""

    content: str
    metadata: SectionMetadata


class SectionGenerator:
    """Turn (workflow, section, subject, depth) into section text."""

    def __init__(self, completion: CompletionService) -> None:
        """Store the completion service used for every section."""
        self._completion = completion

    async def generate(
        self,
        *,
        workflow: WorkflowType,
        section: str,
        input_data: ReportInput,
        configuration: ReportConfiguration,
        model: str | None = None,
    ) -> GeneratedSection:
        """Generate ``section`` and return it with model and token usage.

        Raises
        ------
        CompletionError
            Propagated from the completion service when every attempt fails.

        """
        prompt = section_prompt(
            workflow=workflow,
            section=section,
            input_data=input_data,
            depth=configuration.depth,
            competitive_options=configuration.competitive_options,
            news_digest_options=configuration.news_digest_options,
        )
        request = msgspec.structs.replace(
            CompletionRequest.from_prompts(
                system_prompt(workflow),
                prompt,
                max_tokens=configuration.max_tokens,
                temperature=configuration.temperature,
            ),
            model=model,
        )
        result = await self._completion.complete(request)
        return GeneratedSection(
            content=result.content,
            metadata=SectionMetadata(
                model=result.model,
                provider=result.provider,
                tokens=result.usage.total_tokens,
                generated_at=utcnow().isoformat(),
            ),
        )
