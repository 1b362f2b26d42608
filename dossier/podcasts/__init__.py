"""Podcast episodes generated from completed reports."""

from __future__ import annotations

from .catalog import (
    DURATIONS,
    STATUS_PROGRESS,
    TEMPLATE_LABELS,
    TEMPLATE_SPEAKERS,
    VOICES,
    Voice,
    template_label,
    voice_for,
)
from .config import PodcastConfig, SpeechConfig
from .errors import (
    PodcastError,
    PodcastNotFoundError,
    PodcastScriptError,
    PodcastStateError,
    SpeechSynthesisError,
)
from .mixer import AudioClip, AudioMixer, ConcatMp3Mixer, MixedAudio
from .observability import PodcastEventLogger, PodcastEventType
from .processor import PodcastDeliveryDispatcher, PodcastProcessor
from .script import Dialogue, PodcastScript, ScriptSegment, ScriptWriter, parse_script
from .service import PodcastAudio, PodcastProgress, PodcastService, QueueStats
from .speech import (
    MockSpeechSynthesizer,
    OpenAISpeechSynthesizer,
    SpeechSynthesizer,
    create_synthesizer,
)

__all__ = [
    "DURATIONS",
    "STATUS_PROGRESS",
    "TEMPLATE_LABELS",
    "TEMPLATE_SPEAKERS",
    "VOICES",
    "AudioClip",
    "AudioMixer",
    "ConcatMp3Mixer",
    "Dialogue",
    "MixedAudio",
    "MockSpeechSynthesizer",
    "OpenAISpeechSynthesizer",
    "PodcastAudio",
    "PodcastConfig",
    "PodcastDeliveryDispatcher",
    "PodcastError",
    "PodcastEventLogger",
    "PodcastEventType",
    "PodcastNotFoundError",
    "PodcastProcessor",
    "PodcastProgress",
    "PodcastScript",
    "PodcastScriptError",
    "PodcastService",
    "PodcastStateError",
    "QueueStats",
    "ScriptSegment",
    "ScriptWriter",
    "SpeechConfig",
    "SpeechSynthesisError",
    "SpeechSynthesizer",
    "Voice",
    "create_synthesizer",
    "parse_script",
    "template_label",
    "voice_for",
]
