"""Unit tests for PodcastService and PodcastProcessor."""

from __future__ import annotations

import datetime as dt
import typing as typ
from pathlib import Path

import msgspec
import pytest

from dossier.common.time import utcnow
from dossier.podcasts import (
    MockSpeechSynthesizer,
    PodcastConfig,
    PodcastNotFoundError,
    PodcastProcessor,
    PodcastService,
    PodcastStateError,
    ScriptWriter,
)
from dossier.podcasts.service import STALE_ERROR
from dossier.storage import (
    PodcastDelivery,
    PodcastGeneration,
    PodcastStatus,
    ReportStatus,
)
from tests.helpers.builders import (
    OWNER,
    ScriptedProvider,
    completion_service,
    insert_podcast,
    insert_report,
)

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

_SCRIPT = msgspec.json.encode(
    {
        "title": "Acme weekly",
        "segments": [
            {
                "type": "intro",
                "title": "Welcome",
                "dialogues": [
                    {"speakerId": "sarah", "text": "Welcome to the briefing."},
                    {"speakerId": "marcus", "text": "Acme grew revenue again."},
                ],
            }
        ],
    }
).decode()


def _service(
    session_factory: async_sessionmaker[AsyncSession],
    tmp_path: Path,
    *,
    content: str = _SCRIPT,
) -> tuple[PodcastService, MockSpeechSynthesizer]:
    synthesizer = MockSpeechSynthesizer()
    writer = ScriptWriter(completion_service(ScriptedProvider(content=content)))
    service = PodcastService(
        session_factory,
        writer,
        synthesizer,
        config=PodcastConfig(storage_path=tmp_path / "podcasts"),
    )
    return service, synthesizer


async def _podcast(
    session_factory: async_sessionmaker[AsyncSession], podcast_id: str
) -> PodcastGeneration | None:
    async with session_factory() as session:
        return await session.get(PodcastGeneration, podcast_id)


class _RecordingDispatcher:
    def __init__(self) -> None:
        self.dispatched: list[str] = []

    def dispatch_podcast(self, delivery_id: str) -> bool:
        self.dispatched.append(delivery_id)
        return True


class TestRequestPodcast:
    """One podcast per report."""

    @pytest.mark.asyncio
    async def test_requires_completed_report(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Podcasts are made from finished reports only."""
        report = await insert_report(session_factory, status=ReportStatus.PROCESSING)
        service, _ = _service(session_factory, tmp_path)

        with pytest.raises(PodcastStateError):
            await service.request_podcast(report.id, OWNER)

    @pytest.mark.asyncio
    async def test_foreign_report_is_not_found(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Podcasts are owner-scoped."""
        report = await insert_report(session_factory)
        service, _ = _service(session_factory, tmp_path)

        with pytest.raises(PodcastNotFoundError):
            await service.request_podcast(report.id, "intruder")

    @pytest.mark.asyncio
    async def test_repeat_request_returns_existing_job(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """An active job is reused."""
        report = await insert_report(session_factory)
        service, _ = _service(session_factory, tmp_path)

        first = await service.request_podcast(report.id, OWNER)
        second = await service.request_podcast(report.id, OWNER)

        assert second.id == first.id
        assert first.status is PodcastStatus.PENDING

    @pytest.mark.asyncio
    async def test_failed_job_is_replaced(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """A FAILED podcast gives way to a fresh PENDING job."""
        report = await insert_report(session_factory)
        failed = await insert_podcast(
            session_factory, report.id, status=PodcastStatus.FAILED, retry_count=3
        )
        service, _ = _service(session_factory, tmp_path)

        podcast = await service.request_podcast(report.id, OWNER)

        assert podcast.id != failed.id
        assert podcast.retry_count == 0
        assert await _podcast(session_factory, failed.id) is None

    @pytest.mark.asyncio
    async def test_delivery_destination_attaches_delivery(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """A destination creates a PENDING podcast delivery."""
        report = await insert_report(session_factory)
        service, _ = _service(session_factory, tmp_path)

        podcast = await service.request_podcast(
            report.id, OWNER, delivery_destination=" ops@example.com "
        )

        delivery_ids = await service.pending_delivery_ids(podcast.id)
        assert len(delivery_ids) == 1
        async with session_factory() as session:
            delivery = await session.get(PodcastDelivery, delivery_ids[0])
        assert delivery is not None
        assert delivery.destination == "ops@example.com"


class TestProcessPodcast:
    """Script, speech, mix and store."""

    @pytest.mark.asyncio
    async def test_completes_and_stores_audio(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Every line is synthesized with its speaker's voice and the mix stored."""
        report = await insert_report(session_factory)
        service, synthesizer = _service(session_factory, tmp_path)
        podcast = await service.request_podcast(report.id, OWNER)

        status = await service.process_podcast(podcast.id)

        assert status is PodcastStatus.COMPLETED
        assert [voice.voice_id for _, voice in synthesizer.calls] == ["nova", "echo"]
        stored = await _podcast(session_factory, podcast.id)
        assert stored is not None
        assert stored.final_audio_path == str(
            tmp_path / "podcasts" / podcast.id / "podcast.mp3"
        )
        assert Path(stored.final_audio_path).stat().st_size == stored.file_size_bytes
        assert stored.duration_seconds is not None
        assert stored.duration_seconds > 0
        assert stored.script is not None
        assert stored.script["metadata"]["provider"] == "scripted"
        progress = await service.get_podcast_status(report.id, OWNER)
        assert progress.progress == 100

    @pytest.mark.asyncio
    async def test_bad_script_fails_job(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """An unusable script marks the job FAILED and counts the attempt."""
        report = await insert_report(session_factory)
        service, synthesizer = _service(
            session_factory, tmp_path, content="I cannot write that."
        )
        podcast = await service.request_podcast(report.id, OWNER)

        status = await service.process_podcast(podcast.id)

        assert status is PodcastStatus.FAILED
        assert synthesizer.calls == []
        stored = await _podcast(session_factory, podcast.id)
        assert stored is not None
        assert stored.retry_count == 1
        assert stored.error is not None

    @pytest.mark.asyncio
    async def test_non_pending_job_is_left_alone(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Only PENDING jobs are started."""
        report = await insert_report(session_factory)
        podcast = await insert_podcast(
            session_factory, report.id, status=PodcastStatus.MIXING, started_at=utcnow()
        )
        service, synthesizer = _service(session_factory, tmp_path)

        status = await service.process_podcast(podcast.id)

        assert status is PodcastStatus.MIXING
        assert synthesizer.calls == []


class TestStatusAndAudio:
    """Progress reporting and audio access."""

    @pytest.mark.asyncio
    async def test_status_without_podcast(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """A report without a podcast reports zero progress."""
        report = await insert_report(session_factory)
        service, _ = _service(session_factory, tmp_path)

        progress = await service.get_podcast_status(report.id, OWNER)

        assert progress.podcast_id is None
        assert progress.progress == 0
        assert progress.message == "No podcast found"

    @pytest.mark.asyncio
    async def test_status_reflects_stage(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Each stage maps to a fixed percentage."""
        report = await insert_report(session_factory)
        await insert_podcast(
            session_factory,
            report.id,
            status=PodcastStatus.GENERATING_AUDIO,
            started_at=utcnow(),
        )
        service, _ = _service(session_factory, tmp_path)

        progress = await service.get_podcast_status(report.id, OWNER)

        assert progress.status is PodcastStatus.GENERATING_AUDIO
        assert progress.progress == 50

    @pytest.mark.asyncio
    async def test_audio_requires_completion(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Audio is only served for COMPLETED podcasts."""
        report = await insert_report(session_factory)
        await insert_podcast(session_factory, report.id)
        service, _ = _service(session_factory, tmp_path)

        with pytest.raises(PodcastStateError):
            await service.get_audio(report.id, OWNER)


class TestRecovery:
    """Stale reclaim, requeue and expiry."""

    @pytest.mark.asyncio
    async def test_stale_job_is_failed_once(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """A stuck job becomes FAILED with exactly one more retry."""
        report = await insert_report(session_factory)
        stuck = await insert_podcast(
            session_factory,
            report.id,
            status=PodcastStatus.GENERATING_AUDIO,
            started_at=utcnow() - dt.timedelta(minutes=31),
            retry_count=1,
        )
        service, _ = _service(session_factory, tmp_path)

        first = await service.reclaim_stale()
        second = await service.reclaim_stale()

        assert (first, second) == (1, 0)
        stored = await _podcast(session_factory, stuck.id)
        assert stored is not None
        assert stored.status is PodcastStatus.FAILED
        assert stored.retry_count == 2
        assert stored.error == STALE_ERROR

    @pytest.mark.asyncio
    async def test_in_flight_job_is_not_reclaimed(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Jobs this process is working on are excluded."""
        report = await insert_report(session_factory)
        stuck = await insert_podcast(
            session_factory,
            report.id,
            status=PodcastStatus.GENERATING_SCRIPT,
            started_at=utcnow() - dt.timedelta(hours=1),
        )
        service, _ = _service(session_factory, tmp_path)

        assert await service.reclaim_stale(exclude={stuck.id}) == 0

    @pytest.mark.asyncio
    async def test_requeue_respects_ceiling(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Failed jobs below the ceiling return to PENDING after the cool-down."""
        first = await insert_report(session_factory)
        second = await insert_report(session_factory)
        retryable = await insert_podcast(
            session_factory, first.id, status=PodcastStatus.FAILED, retry_count=1
        )
        exhausted = await insert_podcast(
            session_factory, second.id, status=PodcastStatus.FAILED, retry_count=3
        )
        service, _ = _service(session_factory, tmp_path)
        later = utcnow() + dt.timedelta(minutes=5)

        assert await service.requeue_failed(now=utcnow()) == 0, "cool-down applies"
        assert await service.requeue_failed(now=later, limit=5) == 1

        requeued = await _podcast(session_factory, retryable.id)
        kept = await _podcast(session_factory, exhausted.id)
        assert requeued is not None
        assert requeued.status is PodcastStatus.PENDING
        assert kept is not None
        assert kept.status is PodcastStatus.FAILED

    @pytest.mark.asyncio
    async def test_cleanup_skips_in_progress(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Expired finished podcasts are deleted with their files."""
        past = utcnow() - dt.timedelta(days=1)
        done_report = await insert_report(session_factory)
        busy_report = await insert_report(session_factory)
        audio = tmp_path / "old.mp3"
        audio.write_bytes(b"ID3")
        done = await insert_podcast(
            session_factory,
            done_report.id,
            status=PodcastStatus.COMPLETED,
            final_audio_path=str(audio),
            expires_at=past,
        )
        busy = await insert_podcast(
            session_factory,
            busy_report.id,
            status=PodcastStatus.MIXING,
            started_at=utcnow(),
            expires_at=past,
        )
        service, _ = _service(session_factory, tmp_path)

        deleted = await service.cleanup_expired_podcasts()

        assert deleted == 1
        assert await _podcast(session_factory, done.id) is None
        assert await _podcast(session_factory, busy.id) is not None
        assert not audio.exists()


class TestPodcastProcessor:
    """Dispatch and delivery hand-off."""

    @pytest.mark.asyncio
    async def test_completion_triggers_deliveries(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Pending deliveries are dispatched once the podcast completes."""
        report = await insert_report(session_factory)
        service, _ = _service(session_factory, tmp_path)
        podcast = await service.request_podcast(
            report.id, OWNER, delivery_destination="ops@example.com"
        )
        dispatcher = _RecordingDispatcher()
        processor = PodcastProcessor(service, delivery_dispatcher=dispatcher)

        assert processor.dispatch(podcast.id) is True
        await processor.wait_idle()

        assert dispatcher.dispatched == await service.pending_delivery_ids(podcast.id)
        assert len(dispatcher.dispatched) == 1

    @pytest.mark.asyncio
    async def test_tick_launches_pending_jobs(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """The poll picks up PENDING podcasts."""
        report = await insert_report(session_factory)
        service, _ = _service(session_factory, tmp_path)
        podcast = await service.request_podcast(report.id, OWNER)
        processor = PodcastProcessor(service)

        await processor.tick()
        await processor.wait_idle()

        stored = await _podcast(session_factory, podcast.id)
        assert stored is not None
        assert stored.status is PodcastStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_tick_releases_expired_audio(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Audio past its expiry is deleted on the pickup tick; the row waits."""
        report = await insert_report(session_factory)
        audio = tmp_path / "expired.mp3"
        audio.write_bytes(b"ID3")
        podcast = await insert_podcast(
            session_factory,
            report.id,
            status=PodcastStatus.COMPLETED,
            final_audio_path=str(audio),
            expires_at=utcnow() - dt.timedelta(minutes=5),
        )
        service, _ = _service(session_factory, tmp_path)
        processor = PodcastProcessor(service)

        await processor.tick()
        await processor.wait_idle()

        stored = await _podcast(session_factory, podcast.id)
        assert stored is not None, "row is removed by the slower sweep"
        assert stored.final_audio_path is None
        assert not audio.exists()
        with pytest.raises(PodcastNotFoundError):
            await service.get_audio(report.id, OWNER)

    @pytest.mark.asyncio
    async def test_unexpired_audio_is_kept(
        self, session_factory: async_sessionmaker[AsyncSession], tmp_path: Path
    ) -> None:
        """Audio still within its lifetime is untouched."""
        report = await insert_report(session_factory)
        audio = tmp_path / "fresh.mp3"
        audio.write_bytes(b"ID3")
        await insert_podcast(
            session_factory,
            report.id,
            status=PodcastStatus.COMPLETED,
            final_audio_path=str(audio),
        )
        service, _ = _service(session_factory, tmp_path)

        assert await service.release_expired_audio() == 0
        assert audio.exists()
