"""Combine synthesized clips into one episode."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from dossier.podcasts.catalog import WORDS_PER_MINUTE

if typ.TYPE_CHECKING:
    import collections.abc as cabc

_ID3_HEADER = b"ID3"
_ID3_HEADER_SIZE = 10
_ID3_FOOTER_FLAG = 0x10


@dc.dataclass(frozen=True, slots=True)
class AudioClip:
    """One synthesized line."""

    speaker_id: str
    text: str
    audio: bytes
    speed: float = 1.0

    @property
    def estimated_seconds(self) -> float:
        """Spoken duration estimated from the word count and voice speed."""
        words = len(self.text.split())
        return words / (WORDS_PER_MINUTE * self.speed) * 60


@dc.dataclass(frozen=True, slots=True)
class MixedAudio:
    """Final episode bytes and their estimated duration."""

    data: bytes
    duration_seconds: float


@typ.runtime_checkable
class AudioMixer(typ.Protocol):
    """Turn ordered clips into a single audio file."""

    def mix(self, clips: cabc.Sequence[AudioClip]) -> MixedAudio:
        """Return the combined episode."""
        ...


def strip_id3v2(data: bytes) -> bytes:
    """Drop a leading ID3v2 tag, leaving the MPEG frames."""
    if len(data) < _ID3_HEADER_SIZE or not data.startswith(_ID3_HEADER):
        return data
    size = 0
    for byte in data[6:10]:
        size = (size << 7) | (byte & 0x7F)
    total = _ID3_HEADER_SIZE + size
    if data[5] & _ID3_FOOTER_FLAG:
        total += _ID3_HEADER_SIZE
    return data[total:]


class ConcatMp3Mixer:
    """Join MP3 clips frame-to-frame.

    MPEG audio frames are self-delimiting, so clips with matching encoder
    settings play back-to-back once every ID3 tag after the first is
    removed. Duration is estimated from the spoken words rather than
    decoded from the frames.
    """

    def mix(self, clips: cabc.Sequence[AudioClip]) -> MixedAudio:
        """Concatenate ``clips`` in order."""
        chunks = [
            clip.audio if index == 0 else strip_id3v2(clip.audio)
            for index, clip in enumerate(clips)
        ]
        duration = sum(clip.estimated_seconds for clip in clips)
        return MixedAudio(data=b"".join(chunks), duration_seconds=round(duration, 1))
