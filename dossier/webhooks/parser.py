"""Read report requests out of free-text chat messages with the LLM."""

from __future__ import annotations

import re
import typing as typ

import msgspec

from dossier.completion.models import CompletionRequest
from dossier.reports import Depth
from dossier.storage import WorkflowType
from dossier.webhooks.errors import MessageParseError
from dossier.webhooks.models import ParsedMessage, ReportRequest

if typ.TYPE_CHECKING:
    from dossier.completion.service import CompletionService

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_MIN_COMPANY_CHARS = 2
_MAX_COMPANY_CHARS = 200

SYSTEM_PROMPT = (
    "You read chat messages that ask for business intelligence reports and "
    "extract the request as JSON.\n\n"
    "Report types:\n"
    "- ACCOUNT_INTELLIGENCE: research on one company (default)\n"
    "- COMPETITIVE_INTELLIGENCE: a company against its competitors\n"
    "- NEWS_DIGEST: recent news about one or more companies\n\n"
    "Depth is brief, standard (default) or detailed.\n\n"
    "Return only a JSON object of the form:\n"
    '{"targetCompany": "...", "workflowType": "...", '
    '"additionalCompanies": ["..."], "depth": "...", "confidence": 0.0}\n'
    "where confidence is between 0 and 1. If the message is not a report "
    'request, return {"error": "short reason", "confidence": 0}.'
)


def parse_message(raw: str) -> ParsedMessage:
    """Extract the JSON object inside a completion response.

    Raises
    ------
    MessageParseError
        If no JSON object is present or it does not match the shape.

    """
    match = _JSON_OBJECT.search(raw)
    if match is None:
        raise MessageParseError.not_understood()
    try:
        return msgspec.json.decode(match.group(0), type=ParsedMessage)
    except msgspec.DecodeError as exc:
        raise MessageParseError.not_understood() from exc


def validate_request(parsed: ParsedMessage, *, min_confidence: float) -> ReportRequest:
    """Check a parsed message and resolve its workflow and depth.

    Raises
    ------
    MessageParseError
        If the parser reported an error, is not confident enough, or the
        company, workflow or depth is unusable.

    """
    if parsed.error:
        raise MessageParseError.not_understood(parsed.error)
    company = (parsed.target_company or "").strip()
    if parsed.confidence < min_confidence or not company:
        raise MessageParseError.unsure(company or None)
    if not _MIN_COMPANY_CHARS <= len(company) <= _MAX_COMPANY_CHARS:
        raise MessageParseError.bad_company(company)
    workflow_raw = (parsed.workflow_type or WorkflowType.ACCOUNT_INTELLIGENCE).upper()
    try:
        workflow = WorkflowType(workflow_raw)
    except ValueError as exc:
        raise MessageParseError.bad_option("report type", workflow_raw) from exc
    depth_raw = (parsed.depth or Depth.STANDARD).lower()
    try:
        depth = Depth(depth_raw)
    except ValueError as exc:
        raise MessageParseError.bad_option("depth", depth_raw) from exc
    additional = tuple(
        name.strip()
        for name in parsed.additional_companies
        if name.strip() and name.strip().lower() != company.lower()
    )
    return ReportRequest(
        company=company,
        workflow_type=workflow,
        depth=depth,
        additional_companies=additional,
    )


class RequestParser:
    """Turn a chat message into a validated :class:`ReportRequest`.

    Parameters
    ----------
    completion
        Service used for the single parsing completion.
    min_confidence
        Threshold below which the sender is asked to clarify.

    """

    def __init__(self, completion: CompletionService, *, min_confidence: float = 0.7) -> None:
        """Store the completion service and confidence threshold."""
        self._completion = completion
        self._min_confidence = min_confidence

    async def parse(self, text: str) -> ReportRequest:
        """Parse and validate ``text``.

        Raises
        ------
        CompletionError
            Propagated when every completion attempt fails.
        MessageParseError
            If the message is not a usable report request.

        """
        result = await self._completion.complete(
            CompletionRequest.from_prompts(
                SYSTEM_PROMPT,
                text,
                max_tokens=300,
                temperature=0.1,
                json_output=True,
            )
        )
        return validate_request(
            parse_message(result.content), min_confidence=self._min_confidence
        )
