"""Unit tests for podcast scripts, voices and mixing."""

from __future__ import annotations

import pytest

from dossier.podcasts import (
    AudioClip,
    ConcatMp3Mixer,
    PodcastScriptError,
    Voice,
    parse_script,
    voice_for,
)
from dossier.podcasts.mixer import strip_id3v2
from dossier.podcasts.script import Dialogue, Pacing
from dossier.podcasts.speech import paced

_SCRIPT = """Here is your script:
{"title": "Acme weekly", "description": "Briefing", "segments": [
  {"type": "intro", "title": "Welcome", "dialogues": [
    {"speakerId": "sarah", "text": "Welcome to the show."},
    {"speakerId": "marcus", "text": "Glad to be here.", "notes": "thoughtful"}
  ]}
]}
Enjoy!"""


class TestParseScript:
    """Extraction of the JSON script from completion text."""

    def test_extracts_embedded_json(self) -> None:
        """Text around the JSON object is ignored."""
        script = parse_script(_SCRIPT)

        assert script.title == "Acme weekly"
        assert [line.speaker_id for line in script.dialogues()] == ["sarah", "marcus"]
        assert script.word_count() == 8

    def test_missing_json_is_rejected(self) -> None:
        """Plain prose is not a script."""
        with pytest.raises(PodcastScriptError):
            parse_script("no braces here")

    def test_wrong_shape_is_rejected(self) -> None:
        """The object must match the script structure."""
        with pytest.raises(PodcastScriptError):
            parse_script('{"title": 3}')

    def test_script_without_dialogue_is_rejected(self) -> None:
        """At least one spoken line is required."""
        with pytest.raises(PodcastScriptError):
            parse_script('{"title": "Empty", "segments": []}')


class TestVoices:
    """Speaker voices and pacing."""

    @pytest.mark.parametrize(
        ("notes", "pacing"),
        [
            (None, Pacing.NORMAL),
            ("Slow and measured", Pacing.SLOW),
            ("excited", Pacing.ENERGETIC),
            ("wry", Pacing.NORMAL),
        ],
    )
    def test_pacing_from_notes(self, notes: str | None, pacing: Pacing) -> None:
        """Tone notes select the pace."""
        assert Dialogue(speaker_id="sarah", text="x", notes=notes).pacing is pacing

    def test_voice_lookup_is_case_insensitive(self) -> None:
        """Speaker ids map to voices regardless of case; unknown ids fall back."""
        assert voice_for(" Marcus ") == Voice("echo")
        assert voice_for("stranger") == Voice("nova")

    def test_pacing_adjusts_speed_within_bounds(self) -> None:
        """Speed moves by the pacing step and stays within range."""
        assert paced(Voice("onyx", 1.05), Pacing.SLOW) == Voice("onyx", 0.95)
        assert paced(Voice("nova", 1.2), Pacing.ENERGETIC) == Voice("nova", 1.25)
        assert paced(Voice("nova", 0.8), Pacing.SLOW) == Voice("nova", 0.75)


class TestMixer:
    """MP3 concatenation."""

    def test_strip_id3v2_removes_tag(self) -> None:
        """A leading ID3v2 tag of the declared size is dropped."""
        tag = b"ID3\x04\x00\x00\x00\x00\x00\x05" + b"TAGXX"

        assert strip_id3v2(tag + b"\xff\xfbframe") == b"\xff\xfbframe"
        assert strip_id3v2(b"\xff\xfbframe") == b"\xff\xfbframe"

    def test_mix_keeps_first_tag_only(self) -> None:
        """Later clips lose their tags and durations add up."""
        tag = b"ID3\x04\x00\x00\x00\x00\x00\x01" + b"T"
        words = " ".join(["word"] * 155)
        clips = [
            AudioClip(speaker_id="sarah", text=words, audio=tag + b"A"),
            AudioClip(speaker_id="marcus", text=words, audio=tag + b"B"),
        ]

        mixed = ConcatMp3Mixer().mix(clips)

        assert mixed.data == tag + b"A" + b"B"
        assert mixed.duration_seconds == pytest.approx(120.0)
