"""Speech synthesis behind a small protocol, with an OpenAI implementation."""

from __future__ import annotations

import hashlib
import typing as typ

import httpx

from dossier.podcasts.catalog import Voice
from dossier.podcasts.errors import SpeechSynthesisError
from dossier.podcasts.script import Pacing

if typ.TYPE_CHECKING:
    from dossier.podcasts.config import SpeechConfig

_HTTP_ERROR_STATUS_THRESHOLD = 400
_MIN_SPEED = 0.75
_MAX_SPEED = 1.25


def paced(voice: Voice, pacing: Pacing) -> Voice:
    """Adjust a voice's speed for the line's pacing, within 0.75 and 1.25."""
    if pacing is Pacing.SLOW:
        return Voice(voice.voice_id, max(_MIN_SPEED, round(voice.speed - 0.1, 2)))
    if pacing is Pacing.ENERGETIC:
        return Voice(voice.voice_id, min(_MAX_SPEED, round(voice.speed + 0.15, 2)))
    return voice


@typ.runtime_checkable
class SpeechSynthesizer(typ.Protocol):
    """Turn one line of text into MP3 audio."""

    async def synthesize(self, text: str, voice: Voice) -> bytes:
        """Return encoded audio for ``text`` spoken by ``voice``."""
        ...


class OpenAISpeechSynthesizer:
    """Call the OpenAI ``/audio/speech`` endpoint over httpx.

    Parameters
    ----------
    config
        Key, endpoint and model settings.
    http_client
        Optional ``httpx.AsyncClient`` for testing. If not provided, the
        instance creates and owns its own client.

    """

    def __init__(
        self,
        config: SpeechConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the synthesizer with configuration."""
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_s)

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def synthesize(self, text: str, voice: Voice) -> bytes:
        """Return MP3 audio for ``text``.

        Raises
        ------
        SpeechSynthesisError
            On transport failure or a non-2xx response.

        """
        payload = {
            "model": self._config.model,
            "input": text,
            "voice": voice.voice_id,
            "speed": voice.speed,
            "response_format": "mp3",
        }
        headers = {"Authorization": f"Bearer {self._config.api_key}"}
        try:
            response = await self._client.post(
                self._config.speech_url, json=payload, headers=headers
            )
        except httpx.RequestError as exc:
            raise SpeechSynthesisError.network_error(
                str(exc) or type(exc).__name__
            ) from exc
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise SpeechSynthesisError.from_status(response.status_code, response.text)
        if not response.content:
            raise SpeechSynthesisError.empty_audio(voice.voice_id)
        return response.content


class MockSpeechSynthesizer:
    """Offline synthesizer returning deterministic placeholder bytes.

    Each clip is a short digest of the voice and text, so tests can tell
    which line produced which clip without decoding audio.
    """

    def __init__(self) -> None:
        """Start with an empty call log."""
        self.calls: list[tuple[str, Voice]] = []

    async def synthesize(self, text: str, voice: Voice) -> bytes:
        """Return placeholder audio for ``text``."""
        self.calls.append((text, voice))
        digest = hashlib.sha256(f"{voice.voice_id}:{voice.speed}:{text}".encode())
        return digest.digest()

    async def aclose(self) -> None:
        """Nothing to release."""


def create_synthesizer(config: SpeechConfig) -> SpeechSynthesizer:
    """Return the OpenAI synthesizer when a key is configured, else the mock."""
    if config.api_key:
        return OpenAISpeechSynthesizer(config)
    return MockSpeechSynthesizer()
