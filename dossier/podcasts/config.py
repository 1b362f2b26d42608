"""Configuration for podcast generation, speech synthesis and the processor."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
from pathlib import Path

from dossier.common.env import (
    env_optional,
    env_path,
    env_str,
    positive_float,
    positive_int,
)
from dossier.storage import DEFAULT_MAX_RETRIES

_DEFAULT_TTS_BASE = "https://api.openai.com/v1"


@dc.dataclass(frozen=True, slots=True)
class SpeechConfig:
    """Settings for the OpenAI speech endpoint.

    Attributes
    ----------
    api_key
        Bearer token; ``None`` selects the offline synthesizer.
    base_url
        API root; ``/audio/speech`` is appended.
    model
        Speech model name.
    timeout_s
        Per-request timeout.

    """

    api_key: str | None = None
    base_url: str = _DEFAULT_TTS_BASE
    model: str = "tts-1-hd"
    timeout_s: float = 60.0

    @property
    def speech_url(self) -> str:
        """Endpoint that turns text into audio."""
        return f"{self.base_url.rstrip('/')}/audio/speech"

    @classmethod
    def from_env(cls) -> SpeechConfig:
        """Create configuration from ``DOSSIER_TTS_*`` variables."""
        return cls(
            api_key=env_optional("DOSSIER_TTS_API_KEY"),
            base_url=env_str("DOSSIER_TTS_BASE_URL", _DEFAULT_TTS_BASE),
            model=env_str("DOSSIER_TTS_MODEL", "tts-1-hd"),
            timeout_s=positive_float("DOSSIER_TTS_TIMEOUT_S", 60.0),
        )


@dc.dataclass(frozen=True, slots=True)
class PodcastConfig:
    """Storage, retry and polling settings for podcast jobs.

    Attributes
    ----------
    storage_path
        Root directory; episodes land in ``<root>/<podcast_id>/``.
    ttl
        Lifetime of a podcast from its creation.
    max_retries
        Failed attempts after which a job is no longer requeued.
    retry_cooldown
        Minimum time a FAILED job rests before it is requeued.
    stale_after
        Jobs in a generating stage for longer than this are failed.
    poll_interval
        Seconds between pickup ticks.
    cleanup_interval
        Seconds between expired-podcast sweeps.
    max_concurrent
        Podcasts produced at once.
    stop_timeout
        Seconds shutdown waits for an in-flight podcast.
    script_model
        Model requested for script writing; ``None`` uses the provider's.
    script_temperature
        Sampling temperature for script writing.

    """

    storage_path: Path = Path("storage/podcasts")
    ttl: dt.timedelta = dt.timedelta(hours=72)
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_cooldown: dt.timedelta = dt.timedelta(seconds=60)
    stale_after: dt.timedelta = dt.timedelta(minutes=30)
    poll_interval: float = 10.0
    cleanup_interval: float = 3600.0
    max_concurrent: int = 1
    stop_timeout: float = 120.0
    script_model: str | None = None
    script_temperature: float = 0.8

    @classmethod
    def from_env(cls) -> PodcastConfig:
        """Create configuration from ``DOSSIER_PODCAST_*`` variables.

        Reads ``DOSSIER_PODCAST_STORAGE_PATH``, ``DOSSIER_PODCAST_TTL_HOURS``,
        ``DOSSIER_PODCAST_POLL_INTERVAL_S`` and
        ``DOSSIER_PODCAST_SCRIPT_MODEL``.

        Raises
        ------
        ValueError
            If a numeric variable is malformed or not positive.

        """
        return cls(
            storage_path=env_path("DOSSIER_PODCAST_STORAGE_PATH", Path("storage/podcasts")),
            ttl=dt.timedelta(hours=positive_float("DOSSIER_PODCAST_TTL_HOURS", 72)),
            max_retries=positive_int("DOSSIER_PODCAST_MAX_RETRIES", DEFAULT_MAX_RETRIES),
            poll_interval=positive_float("DOSSIER_PODCAST_POLL_INTERVAL_S", 10.0),
            script_model=env_optional("DOSSIER_PODCAST_SCRIPT_MODEL"),
        )
