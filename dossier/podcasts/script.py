"""Podcast script structures and the LLM-backed script writer."""

from __future__ import annotations

import enum
import math
import re
import typing as typ

import msgspec

from dossier.completion.models import CompletionRequest
from dossier.podcasts.catalog import DURATIONS, TEMPLATE_LABELS, TEMPLATE_SPEAKERS
from dossier.podcasts.errors import PodcastScriptError
from dossier.storage import PodcastTemplate

if typ.TYPE_CHECKING:
    from dossier.completion.service import CompletionService
    from dossier.storage import PodcastDuration, Report

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_WORDS_PER_DIALOGUE = 25
_EXCERPT_CHARS = 500


class Pacing(enum.StrEnum):
    """Delivery pace inferred from a dialogue's tone notes."""

    SLOW = "slow"
    NORMAL = "normal"
    ENERGETIC = "energetic"


_SLOW_HINTS = ("slow", "thoughtful", "measured")
_ENERGETIC_HINTS = ("energetic", "excited", "enthusiastic")


class Dialogue(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """One spoken line."""

    speaker_id: str
    text: str
    notes: str | None = None

    @property
    def pacing(self) -> Pacing:
        """Pace suggested by ``notes``."""
        if not self.notes:
            return Pacing.NORMAL
        lowered = self.notes.lower()
        if any(hint in lowered for hint in _SLOW_HINTS):
            return Pacing.SLOW
        if any(hint in lowered for hint in _ENERGETIC_HINTS):
            return Pacing.ENERGETIC
        return Pacing.NORMAL


class ScriptSegment(msgspec.Struct, kw_only=True, frozen=True):
    """A titled block of dialogue (intro, content, analysis or outro)."""

    type: str = "content"
    title: str = ""
    dialogues: tuple[Dialogue, ...] = ()


class ScriptMetadata(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """Accounting for the completion that produced a script."""

    model: str
    provider: str
    tokens: int


class PodcastScript(msgspec.Struct, kw_only=True, frozen=True):
    """A full episode script as stored on the podcast row."""

    title: str
    description: str = ""
    segments: tuple[ScriptSegment, ...] = ()
    metadata: ScriptMetadata | None = None

    def dialogues(self) -> list[Dialogue]:
        """Return every line in speaking order."""
        return [line for segment in self.segments for line in segment.dialogues]

    def word_count(self) -> int:
        """Total spoken words."""
        return sum(len(line.text.split()) for line in self.dialogues())


_SYSTEM_PROMPTS: dict[PodcastTemplate, str] = {
    PodcastTemplate.EXECUTIVE_BRIEF: (
        "You write scripts for a two-host executive briefing podcast. Sarah hosts "
        "and steers the conversation; Marcus is the industry analyst who adds "
        "depth and market context. Open with a hook, keep the exchange natural "
        "and close with concrete takeaways for business leaders."
    ),
    PodcastTemplate.STRATEGIC_DEBATE: (
        "You write scripts for a three-host strategy debate. Jordan moderates "
        "neutrally, Morgan argues bold strategic positions and Taylor answers "
        "with data-driven counterpoints. Explore several angles with evidence "
        "and finish by synthesising the strongest insights."
    ),
    PodcastTemplate.INDUSTRY_PULSE: (
        "You write scripts for a fast-paced industry news show. Riley anchors, "
        "Casey reports the details and Drew offers quick analysis. Lead with the "
        "biggest story, move briskly between items and end with a look ahead."
    ),
}


def report_digest(report: Report) -> str:
    """Render a report's generated sections as prompt context."""
    content = report.generated_content or {}
    parts: list[str] = []
    for key, section in content.items():
        if isinstance(section, dict) and section.get("content"):
            text = str(section["content"])
        elif isinstance(section, str) and key != "error":
            text = section
        else:
            continue
        parts.append(f"## {key.replace('_', ' ').upper()}\n{text}")
    return "\n\n".join(parts) or "No content available"


def script_prompt(
    report: Report, template: PodcastTemplate, duration: PodcastDuration
) -> str:
    """Build the user prompt asking for a JSON script of the target length."""
    target = DURATIONS[duration]
    speakers = ", ".join(TEMPLATE_SPEAKERS[template])
    dialogues = math.ceil(target.word_count / _WORDS_PER_DIALOGUE)
    return (
        "Create a podcast script based on the following intelligence report.\n\n"
        f"REPORT TITLE: {report.title}\n"
        f"REPORT TYPE: {report.workflow_type}\n\n"
        f"REPORT CONTENT:\n{report_digest(report)}\n\n"
        "REQUIREMENTS:\n"
        f"- Target length: {target.minutes} minutes, about {target.word_count} words\n"
        f"- At least {dialogues} dialogue entries of 20-35 words each\n"
        f"- Format: {TEMPLATE_LABELS[template]}\n"
        f"- Speakers (lowercase ids): {speakers}\n"
        "- Use specific data points from the report\n\n"
        "Return only a JSON object of the form:\n"
        '{"title": "...", "description": "...", "segments": [{"type": '
        '"intro|content|analysis|outro", "title": "...", "dialogues": '
        '[{"speakerId": "...", "text": "...", "notes": "optional tone hint"}]}]}'
    )


def parse_script(raw: str) -> PodcastScript:
    """Extract and validate the JSON script inside a completion response.

    Raises
    ------
    PodcastScriptError
        If no JSON object is present, it does not match the script shape,
        or it contains no dialogue.

    """
    match = _JSON_OBJECT.search(raw)
    if match is None:
        raise PodcastScriptError.no_json(raw[:_EXCERPT_CHARS])
    try:
        script = msgspec.json.decode(match.group(0), type=PodcastScript)
    except msgspec.DecodeError as exc:
        raise PodcastScriptError.invalid(str(exc)) from exc
    if not script.dialogues():
        raise PodcastScriptError.empty()
    return script


class ScriptWriter:
    """Generate an episode script from a report through the completion service.

    Parameters
    ----------
    completion
        Service used for the single script completion.
    temperature
        Sampling temperature for script writing.
    model
        Optional model override.

    """

    def __init__(
        self,
        completion: CompletionService,
        *,
        temperature: float = 0.8,
        model: str | None = None,
    ) -> None:
        """Store the completion service and sampling settings."""
        self._completion = completion
        self._temperature = temperature
        self._model = model

    async def write(
        self,
        report: Report,
        template: PodcastTemplate,
        duration: PodcastDuration,
    ) -> PodcastScript:
        """Return a parsed script with completion metadata attached.

        Raises
        ------
        CompletionError
            Propagated when every completion attempt fails.
        PodcastScriptError
            If the response is not a usable script.

        """
        target = DURATIONS[duration]
        request = msgspec.structs.replace(
            CompletionRequest.from_prompts(
                _SYSTEM_PROMPTS[template],
                script_prompt(report, template, duration),
                max_tokens=math.ceil(target.word_count * 1.5) + 2000,
                temperature=self._temperature,
                json_output=True,
            ),
            model=self._model,
        )
        result = await self._completion.complete(request)
        script = parse_script(result.content)
        return msgspec.structs.replace(
            script,
            metadata=ScriptMetadata(
                model=result.model,
                provider=result.provider,
                tokens=result.usage.total_tokens,
            ),
        )
