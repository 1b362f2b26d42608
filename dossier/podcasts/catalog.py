"""Podcast formats: speaker line-ups, voices, durations and progress text."""

from __future__ import annotations

import dataclasses as dc

from dossier.storage import PodcastDuration, PodcastStatus, PodcastTemplate

WORDS_PER_MINUTE = 155


@dc.dataclass(frozen=True, slots=True)
class Voice:
    """Synthesis voice and speed for one speaker."""

    voice_id: str
    speed: float = 1.0


@dc.dataclass(frozen=True, slots=True)
class DurationTarget:
    """Target runtime and script length for a duration class."""

    minutes: int
    word_count: int


@dc.dataclass(frozen=True, slots=True)
class StageProgress:
    """Progress percentage and user-facing message for a podcast status."""

    progress: int
    message: str


DEFAULT_VOICE = Voice("nova")

VOICES: dict[str, Voice] = {
    "sarah": Voice("nova"),
    "marcus": Voice("echo"),
    "jordan": Voice("shimmer"),
    "morgan": Voice("onyx", 1.05),
    "taylor": Voice("fable"),
    "riley": Voice("nova", 1.1),
    "casey": Voice("echo"),
    "drew": Voice("alloy"),
}

TEMPLATE_SPEAKERS: dict[PodcastTemplate, tuple[str, ...]] = {
    PodcastTemplate.EXECUTIVE_BRIEF: ("sarah", "marcus"),
    PodcastTemplate.STRATEGIC_DEBATE: ("jordan", "morgan", "taylor"),
    PodcastTemplate.INDUSTRY_PULSE: ("riley", "casey", "drew"),
}

TEMPLATE_LABELS: dict[PodcastTemplate, str] = {
    PodcastTemplate.EXECUTIVE_BRIEF: "Executive Brief",
    PodcastTemplate.STRATEGIC_DEBATE: "Strategic Debate",
    PodcastTemplate.INDUSTRY_PULSE: "Industry Pulse",
}

DURATIONS: dict[PodcastDuration, DurationTarget] = {
    PodcastDuration.SHORT: DurationTarget(minutes=5, word_count=775),
    PodcastDuration.STANDARD: DurationTarget(minutes=12, word_count=1860),
    PodcastDuration.LONG: DurationTarget(minutes=18, word_count=2790),
}

STATUS_PROGRESS: dict[PodcastStatus, StageProgress] = {
    PodcastStatus.PENDING: StageProgress(0, "Queued for processing"),
    PodcastStatus.GENERATING_SCRIPT: StageProgress(25, "Generating podcast script..."),
    PodcastStatus.GENERATING_AUDIO: StageProgress(50, "Converting to speech..."),
    PodcastStatus.MIXING: StageProgress(85, "Mixing audio tracks..."),
    PodcastStatus.COMPLETED: StageProgress(100, "Podcast ready"),
    PodcastStatus.FAILED: StageProgress(0, "Generation failed"),
}


def voice_for(speaker_id: str) -> Voice:
    """Return the voice for ``speaker_id``, case-insensitively."""
    return VOICES.get(speaker_id.strip().lower(), DEFAULT_VOICE)


def template_label(template: PodcastTemplate) -> str:
    """Return the human-readable name of a podcast format."""
    return TEMPLATE_LABELS[template]

