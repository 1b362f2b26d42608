"""Podcast jobs: requests, the three production stages and expiry.

A podcast moves PENDING -> GENERATING_SCRIPT -> GENERATING_AUDIO -> MIXING
-> COMPLETED. Each stage change is a guarded transition from the previous
stage, so a job reclaimed as stale while it was being worked on is not
overwritten by the worker that lost it. Any failure marks the job FAILED
and increments ``retry_count``; the podcast processor decides when a
FAILED job is requeued.
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import typing as typ
from pathlib import Path

import msgspec
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError

from dossier.activity import ActivityAction
from dossier.common.time import utcnow
from dossier.podcasts.catalog import STATUS_PROGRESS, voice_for
from dossier.podcasts.config import PodcastConfig
from dossier.podcasts.errors import PodcastNotFoundError, PodcastStateError
from dossier.podcasts.mixer import AudioClip, ConcatMp3Mixer
from dossier.podcasts.observability import PodcastEventLogger
from dossier.podcasts.speech import paced
from dossier.storage import (
    IN_PROGRESS_PODCAST_STATUSES,
    DeliveryStatus,
    DestinationType,
    ExportTrigger,
    PodcastDelivery,
    PodcastDuration,
    PodcastGeneration,
    PodcastStatus,
    PodcastTemplate,
    Report,
    ReportStatus,
    transition,
)
from dossier.storage.files import file_exists, remove_files, write_atomic

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from dossier.activity import ActivityRecorder
    from dossier.podcasts.mixer import AudioMixer
    from dossier.podcasts.script import PodcastScript, ScriptWriter
    from dossier.podcasts.speech import SpeechSynthesizer

AUDIO_FILENAME = "podcast.mp3"
AUDIO_MIME_TYPE = "audio/mpeg"
STALE_ERROR = "Job timed out and was marked as failed"


@dc.dataclass(frozen=True, slots=True)
class PodcastProgress:
    """Status of a report's podcast with the stage progress table applied."""

    report_id: str
    podcast_id: str | None
    status: PodcastStatus | None
    progress: int
    message: str
    error: str | None = None


@dc.dataclass(frozen=True, slots=True)
class QueueStats:
    """Podcast job counts by queue position."""

    pending: int
    in_progress: int
    completed: int
    failed: int


@dc.dataclass(frozen=True, slots=True)
class PodcastAudio:
    """A finished episode ready to stream."""

    path: Path
    filename: str
    mime_type: str
    size: int


class PodcastService:
    """Request, produce and expire podcast episodes.

    Parameters
    ----------
    session_factory
        Async session factory for database access.
    writer
        Script writer backed by the completion service.
    synthesizer
        Speech synthesizer used for every dialogue line.
    mixer
        Combines synthesized lines into one file; MP3 concatenation by
        default.
    config
        Storage, TTL and retry settings.
    event_logger
        Structured lifecycle logger.
    activity
        Optional audit trail recorder.

    """

    def __init__(  # noqa: PLR0913
        self,
        session_factory: async_sessionmaker[AsyncSession],
        writer: ScriptWriter,
        synthesizer: SpeechSynthesizer,
        mixer: AudioMixer | None = None,
        config: PodcastConfig | None = None,
        *,
        event_logger: PodcastEventLogger | None = None,
        activity: ActivityRecorder | None = None,
    ) -> None:
        """Configure the service."""
        self._session_factory = session_factory
        self._writer = writer
        self._synthesizer = synthesizer
        self._mixer = mixer or ConcatMp3Mixer()
        self._config = config or PodcastConfig()
        self._events = event_logger or PodcastEventLogger()
        self._activity = activity

    @property
    def config(self) -> PodcastConfig:
        """Active configuration."""
        return self._config

    # -- requests and queries ----------------------------------------------

    async def request_podcast(  # noqa: PLR0913
        self,
        report_id: str,
        owner_id: str,
        *,
        template: PodcastTemplate = PodcastTemplate.EXECUTIVE_BRIEF,
        duration: PodcastDuration = PodcastDuration.STANDARD,
        triggered_by: ExportTrigger = ExportTrigger.ON_DEMAND,
        delivery_destination: str | None = None,
        delivery_destination_type: DestinationType = DestinationType.EMAIL,
    ) -> PodcastGeneration:
        """Return the report's podcast job, creating it if needed.

        An active or COMPLETED job is returned unchanged. A FAILED job is
        replaced by a fresh PENDING one. When ``delivery_destination`` is
        given, a PENDING delivery is attached to a newly created job.

        Raises
        ------
        PodcastNotFoundError
            If the report is absent or owned by someone else.
        PodcastStateError
            If the report is not COMPLETED.

        """
        async with self._session_factory() as session:
            report = await session.scalar(
                select(Report).where(Report.id == report_id, Report.owner_id == owner_id)
            )
            if report is None:
                raise PodcastNotFoundError.report_missing(report_id)
            if report.status is not ReportStatus.COMPLETED:
                raise PodcastStateError.report_not_completed(report_id, report.status)
            existing = await self._find(session, report_id)
            if existing is not None and existing.status is not PodcastStatus.FAILED:
                return existing
            stale_path = None
            if existing is not None:
                stale_path = existing.final_audio_path
                await self._delete_rows(session, [existing.id])
            podcast = PodcastGeneration(
                report_id=report_id,
                template=template,
                duration=duration,
                status=PodcastStatus.PENDING,
                triggered_by=triggered_by,
                max_retries=self._config.max_retries,
                expires_at=utcnow() + self._config.ttl,
            )
            session.add(podcast)
            try:
                await session.flush()
            except IntegrityError:
                # A concurrent request created the row first; use theirs.
                await session.rollback()
                winner = await self._find(session, report_id)
                if winner is None:
                    raise
                return winner
            if delivery_destination and delivery_destination.strip():
                session.add(
                    PodcastDelivery(
                        podcast_id=podcast.id,
                        destination=delivery_destination.strip(),
                        destination_type=delivery_destination_type,
                        status=DeliveryStatus.PENDING,
                    )
                )
            await session.commit()
        await remove_files([stale_path])
        self._events.log_requested(
            podcast_id=podcast.id, report_id=report_id, template=template, duration=duration
        )
        if self._activity is not None:
            await self._activity.record(
                owner_id,
                ActivityAction.PODCAST_REQUEST,
                report_id=report_id,
                podcast_id=podcast.id,
                template=template,
                duration=duration,
            )
        return podcast

    async def get_podcast(self, report_id: str, owner_id: str) -> PodcastGeneration:
        """Return the podcast of one of the caller's reports.

        Raises
        ------
        PodcastNotFoundError
            If the report has no podcast or belongs to someone else.

        """
        async with self._session_factory() as session:
            podcast = await session.scalar(
                select(PodcastGeneration)
                .join(Report, Report.id == PodcastGeneration.report_id)
                .where(PodcastGeneration.report_id == report_id, Report.owner_id == owner_id)
            )
        if podcast is None:
            raise PodcastNotFoundError.for_report(report_id)
        return podcast

    async def get_podcast_status(self, report_id: str, owner_id: str) -> PodcastProgress:
        """Return stage, progress percentage and message for a report's podcast."""
        try:
            podcast = await self.get_podcast(report_id, owner_id)
        except PodcastNotFoundError:
            return PodcastProgress(
                report_id=report_id,
                podcast_id=None,
                status=None,
                progress=0,
                message="No podcast found",
            )
        stage = STATUS_PROGRESS[podcast.status]
        return PodcastProgress(
            report_id=report_id,
            podcast_id=podcast.id,
            status=podcast.status,
            progress=stage.progress,
            message=stage.message,
            error=podcast.error,
        )

    async def get_audio(self, report_id: str, owner_id: str) -> PodcastAudio:
        """Return the finished episode file of a report's podcast.

        Raises
        ------
        PodcastNotFoundError
            If there is no podcast or its file has disappeared.
        PodcastStateError
            If the podcast is not COMPLETED.

        """
        podcast = await self.get_podcast(report_id, owner_id)
        if podcast.status is not PodcastStatus.COMPLETED:
            raise PodcastStateError.not_completed(report_id, podcast.status)
        if not await file_exists(podcast.final_audio_path):
            raise PodcastNotFoundError.for_report(report_id)
        return PodcastAudio(
            path=Path(typ.cast("str", podcast.final_audio_path)),
            filename=f"podcast_{report_id[:8]}.mp3",
            mime_type=AUDIO_MIME_TYPE,
            size=podcast.file_size_bytes or 0,
        )

    async def get_queue_stats(self) -> QueueStats:
        """Count jobs pending, in a generating stage, completed and failed."""
        async with self._session_factory() as session:
            rows = await session.execute(
                select(PodcastGeneration.status, func.count()).group_by(
                    PodcastGeneration.status
                )
            )
            counts: dict[PodcastStatus, int] = {status: count for status, count in rows}
        return QueueStats(
            pending=counts.get(PodcastStatus.PENDING, 0),
            in_progress=sum(counts.get(status, 0) for status in IN_PROGRESS_PODCAST_STATUSES),
            completed=counts.get(PodcastStatus.COMPLETED, 0),
            failed=counts.get(PodcastStatus.FAILED, 0),
        )

    async def pending_podcast_ids(self, limit: int) -> list[str]:
        """Return up to ``limit`` PENDING podcast ids, oldest first."""
        if limit <= 0:
            return []
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(PodcastGeneration.id)
                .where(PodcastGeneration.status == PodcastStatus.PENDING)
                .order_by(PodcastGeneration.created_at)
                .limit(limit)
            )
            return list(rows)

    async def pending_delivery_ids(self, podcast_id: str) -> list[str]:
        """Return the PENDING deliveries attached to a podcast."""
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(PodcastDelivery.id)
                .where(
                    PodcastDelivery.podcast_id == podcast_id,
                    PodcastDelivery.status == DeliveryStatus.PENDING,
                )
                .order_by(PodcastDelivery.created_at)
            )
            return list(rows)

    # -- production --------------------------------------------------------

    async def process_podcast(self, podcast_id: str) -> PodcastStatus:
        """Produce one PENDING podcast: script, speech, mix and store.

        Jobs in any other status are left untouched.

        Returns
        -------
        PodcastStatus
            The job's status after this call.

        Raises
        ------
        PodcastNotFoundError
            If no such podcast exists.

        """
        async with self._session_factory() as session:
            podcast = await session.get(PodcastGeneration, podcast_id)
            if podcast is None:
                raise PodcastNotFoundError.for_id(podcast_id)
            started = await transition(
                session,
                PodcastGeneration,
                podcast_id,
                expected=[PodcastStatus.PENDING],
                status=PodcastStatus.GENERATING_SCRIPT,
                started_at=utcnow(),
                completed_at=None,
                error=None,
            )
            await session.commit()
            if not started:
                return podcast.status
            report = await session.get(Report, podcast.report_id)

        stage = PodcastStatus.GENERATING_SCRIPT
        self._events.log_stage(podcast_id=podcast_id, status=stage)
        try:
            if report is None:
                raise PodcastNotFoundError.report_missing(podcast.report_id)
            script = await self._writer.write(report, podcast.template, podcast.duration)
            if not await self._advance(
                podcast_id,
                stage,
                PodcastStatus.GENERATING_AUDIO,
                script=msgspec.to_builtins(script),
            ):
                return await self._current_status(podcast_id)
            stage = PodcastStatus.GENERATING_AUDIO
            clips = await self._synthesize(script)
            if not await self._advance(podcast_id, stage, PodcastStatus.MIXING):
                return await self._current_status(podcast_id)
            stage = PodcastStatus.MIXING
            mixed = await asyncio.to_thread(self._mixer.mix, clips)
            path = self._config.storage_path / podcast_id / AUDIO_FILENAME
            size = await write_atomic(path, mixed.data)
        except Exception as exc:  # noqa: BLE001 - failure is persisted on the job
            return await self._record_failure(podcast, stage, exc)

        async with self._session_factory() as session:
            completed = await transition(
                session,
                PodcastGeneration,
                podcast_id,
                expected=[PodcastStatus.MIXING],
                status=PodcastStatus.COMPLETED,
                final_audio_path=str(path),
                duration_seconds=mixed.duration_seconds,
                file_size_bytes=size,
                completed_at=utcnow(),
                error=None,
            )
            await session.commit()
        if not completed:
            await remove_files([str(path)])
            return await self._current_status(podcast_id)
        self._events.log_completed(
            podcast_id=podcast_id,
            duration_seconds=mixed.duration_seconds,
            size=size,
            lines=len(clips),
        )
        return PodcastStatus.COMPLETED

    async def _synthesize(self, script: PodcastScript) -> list[AudioClip]:
        clips: list[AudioClip] = []
        for line in script.dialogues():
            voice = paced(voice_for(line.speaker_id), line.pacing)
            audio = await self._synthesizer.synthesize(line.text, voice)
            clips.append(
                AudioClip(
                    speaker_id=line.speaker_id,
                    text=line.text,
                    audio=audio,
                    speed=voice.speed,
                )
            )
        return clips

    async def _advance(
        self,
        podcast_id: str,
        current: PodcastStatus,
        target: PodcastStatus,
        **values: object,
    ) -> bool:
        async with self._session_factory() as session:
            moved = await transition(
                session,
                PodcastGeneration,
                podcast_id,
                expected=[current],
                status=target,
                **values,
            )
            await session.commit()
        if moved:
            self._events.log_stage(podcast_id=podcast_id, status=target)
        return moved

    async def _current_status(self, podcast_id: str) -> PodcastStatus:
        async with self._session_factory() as session:
            status = await session.scalar(
                select(PodcastGeneration.status).where(PodcastGeneration.id == podcast_id)
            )
        return status or PodcastStatus.FAILED

    async def _record_failure(
        self, podcast: PodcastGeneration, stage: PodcastStatus, error: Exception
    ) -> PodcastStatus:
        async with self._session_factory() as session:
            await transition(
                session,
                PodcastGeneration,
                podcast.id,
                expected=[stage],
                status=PodcastStatus.FAILED,
                retry_count=PodcastGeneration.retry_count + 1,
                error=str(error) or type(error).__name__,
            )
            await session.commit()
        self._events.log_failed(
            podcast_id=podcast.id,
            stage=stage,
            retry_count=podcast.retry_count + 1,
            error=error,
        )
        return PodcastStatus.FAILED

    # -- recovery and expiry -----------------------------------------------

    async def reclaim_stale(
        self,
        *,
        now: dt.datetime | None = None,
        exclude: cabc.Container[str] = frozenset(),
    ) -> int:
        """Fail jobs stuck in a generating stage past the stale threshold.

        Jobs in ``exclude`` (this process's in-flight set) are skipped.
        Each reclaimed job's ``retry_count`` grows by exactly one.

        Returns
        -------
        int
            Number of jobs reclaimed.

        """
        cutoff = (now or utcnow()) - self._config.stale_after
        async with self._session_factory() as session:
            stale = list(
                await session.scalars(
                    select(PodcastGeneration).where(
                        PodcastGeneration.status.in_(list(IN_PROGRESS_PODCAST_STATUSES)),
                        PodcastGeneration.started_at < cutoff,
                    )
                )
            )
            reclaimed = 0
            for job in stale:
                if job.id in exclude:
                    continue
                won = await transition(
                    session,
                    PodcastGeneration,
                    job.id,
                    expected=[job.status],
                    status=PodcastStatus.FAILED,
                    retry_count=job.retry_count + 1,
                    error=STALE_ERROR,
                )
                if won:
                    reclaimed += 1
                    self._events.log_reclaimed(
                        podcast_id=job.id, stage=job.status, retry_count=job.retry_count + 1
                    )
            await session.commit()
        return reclaimed

    async def requeue_failed(
        self,
        *,
        now: dt.datetime | None = None,
        limit: int = 1,
        exclude: cabc.Container[str] = frozenset(),
    ) -> int:
        """Return FAILED jobs to PENDING once their cool-down has passed.

        Only jobs whose ``retry_count`` is below ``max_retries`` and whose
        last update is at least ``retry_cooldown`` old qualify, oldest
        update first.

        Returns
        -------
        int
            Number of jobs requeued.

        """
        if limit <= 0:
            return 0
        cutoff = (now or utcnow()) - self._config.retry_cooldown
        async with self._session_factory() as session:
            eligible = list(
                await session.scalars(
                    select(PodcastGeneration)
                    .where(
                        PodcastGeneration.status == PodcastStatus.FAILED,
                        PodcastGeneration.retry_count < PodcastGeneration.max_retries,
                        PodcastGeneration.updated_at <= cutoff,
                    )
                    .order_by(PodcastGeneration.updated_at)
                    .limit(limit)
                )
            )
            requeued = 0
            for job in eligible:
                if job.id in exclude:
                    continue
                won = await transition(
                    session,
                    PodcastGeneration,
                    job.id,
                    expected=[PodcastStatus.FAILED],
                    status=PodcastStatus.PENDING,
                    started_at=None,
                    error=None,
                )
                if won:
                    requeued += 1
                    self._events.log_requeued(podcast_id=job.id, attempt=job.retry_count + 1)
            await session.commit()
        return requeued

    async def release_expired_audio(self, *, now: dt.datetime | None = None) -> int:
        """Delete the audio files of COMPLETED podcasts past their expiry.

        The rows stay until :meth:`cleanup_expired_podcasts` removes them;
        clearing ``final_audio_path`` makes the audio unavailable at once.

        Returns
        -------
        int
            Number of podcasts whose audio was released.

        """
        moment = now or utcnow()
        async with self._session_factory() as session:
            expired = list(
                await session.scalars(
                    select(PodcastGeneration).where(
                        PodcastGeneration.expires_at < moment,
                        PodcastGeneration.status == PodcastStatus.COMPLETED,
                        PodcastGeneration.final_audio_path.is_not(None),
                    )
                )
            )
            paths = {job.id: job.final_audio_path for job in expired}
            for job in expired:
                job.final_audio_path = None
            await session.commit()
        for podcast_id, path in paths.items():
            files, _ = await remove_files([path])
            self._events.log_audio_released(podcast_id=podcast_id, files_deleted=files)
        return len(paths)

    async def cleanup_expired_podcasts(self, *, now: dt.datetime | None = None) -> int:
        """Delete podcasts past their expiry along with deliveries and files.

        Jobs in a generating stage are left for the stale reclaimer.

        Returns
        -------
        int
            Number of podcasts deleted.

        """
        moment = now or utcnow()
        async with self._session_factory() as session:
            expired = list(
                await session.scalars(
                    select(PodcastGeneration).where(
                        PodcastGeneration.expires_at < moment,
                        PodcastGeneration.status.not_in(list(IN_PROGRESS_PODCAST_STATUSES)),
                    )
                )
            )
            if not expired:
                return 0
            await self._delete_rows(session, [job.id for job in expired])
            await session.commit()
        for job in expired:
            files, _ = await remove_files([job.final_audio_path])
            self._events.log_expired(podcast_id=job.id, files_deleted=files)
        return len(expired)

    @staticmethod
    async def _find(session: AsyncSession, report_id: str) -> PodcastGeneration | None:
        return await session.scalar(
            select(PodcastGeneration).where(PodcastGeneration.report_id == report_id)
        )

    @staticmethod
    async def _delete_rows(session: AsyncSession, podcast_ids: list[str]) -> None:
        await session.execute(
            delete(PodcastDelivery).where(PodcastDelivery.podcast_id.in_(podcast_ids))
        )
        await session.execute(
            delete(PodcastGeneration).where(PodcastGeneration.id.in_(podcast_ids))
        )
