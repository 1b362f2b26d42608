"""Background processor for podcast jobs."""

from __future__ import annotations

import typing as typ

from dossier.logging import get_logger, log_exception, log_info
from dossier.processing import PollingProcessor
from dossier.storage import PodcastStatus

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from dossier.podcasts.config import PodcastConfig
    from dossier.podcasts.service import PodcastService

logger = get_logger(__name__)


class PodcastDeliveryDispatcher(typ.Protocol):
    """Starts sending a podcast delivery."""

    def dispatch_podcast(self, delivery_id: str) -> bool:
        """Launch ``delivery_id`` if possible; return whether it started."""
        ...


class PodcastProcessor(PollingProcessor):
    """Produce podcasts one at a time and keep the queue healthy.

    The pickup timer launches PENDING jobs, fails jobs stuck in a
    generating stage, requeues FAILED jobs whose cool-down has passed and
    deletes the audio of expired podcasts. A second, slower timer deletes
    the expired podcast rows. When a job completes,
    its PENDING deliveries are handed to the delivery dispatcher.
    """

    def __init__(
        self,
        service: PodcastService,
        config: PodcastConfig | None = None,
        *,
        delivery_dispatcher: PodcastDeliveryDispatcher | None = None,
    ) -> None:
        """Bind the processor to the podcast service."""
        resolved = config or service.config
        super().__init__(
            name="podcast-processor",
            poll_interval=resolved.poll_interval,
            max_concurrent=resolved.max_concurrent,
            stop_timeout=resolved.stop_timeout,
            stop_poll_interval=2.0,
        )
        self._service = service
        self._cleanup_interval = resolved.cleanup_interval
        self._delivery_dispatcher = delivery_dispatcher

    def set_delivery_dispatcher(self, dispatcher: PodcastDeliveryDispatcher | None) -> None:
        """Install the hook that sends deliveries of finished podcasts."""
        self._delivery_dispatcher = dispatcher

    def dispatch(self, podcast_id: str) -> bool:
        """Start producing ``podcast_id`` now if the slot is free."""
        return self.launch(podcast_id, lambda: self._produce(podcast_id))

    async def tick(self) -> None:
        """Launch pending work, reclaim stale jobs, requeue cooled-down failures.

        Expired audio files are released on the same tick.
        """
        if self.available_slots > 0:
            for podcast_id in await self._service.pending_podcast_ids(
                self.available_slots + len(self.in_flight_ids())
            ):
                if self.available_slots <= 0:
                    break
                if not self.is_in_flight(podcast_id):
                    self.dispatch(podcast_id)
        await self._service.reclaim_stale(exclude=self.in_flight_ids())
        if self.available_slots > 0:
            await self._service.requeue_failed(exclude=self.in_flight_ids())
        await self._service.release_expired_audio()

    async def cleanup(self) -> int:
        """Delete expired podcasts and their files."""
        deleted = await self._service.cleanup_expired_podcasts()
        if deleted:
            log_info(logger, "Cleaned up %s expired podcasts", deleted)
        return deleted

    def _timer_loops(self) -> list[cabc.Coroutine[typ.Any, typ.Any, None]]:
        return [
            self._periodic(self._poll_interval, self.tick),
            self._periodic(self._cleanup_interval, self.cleanup),
        ]

    async def _produce(self, podcast_id: str) -> None:
        status = await self._service.process_podcast(podcast_id)
        if status is PodcastStatus.COMPLETED:
            await self._trigger_deliveries(podcast_id)

    async def _trigger_deliveries(self, podcast_id: str) -> None:
        if self._delivery_dispatcher is None:
            return
        try:
            delivery_ids = await self._service.pending_delivery_ids(podcast_id)
        except Exception as exc:  # noqa: BLE001 - the poll loop retries deliveries
            log_exception(logger, f"Failed to load deliveries for podcast {podcast_id}", exc)
            return
        for delivery_id in delivery_ids:
            self._delivery_dispatcher.dispatch_podcast(delivery_id)
        if delivery_ids:
            log_info(
                logger,
                "Triggered %s deliveries for podcast %s",
                len(delivery_ids),
                podcast_id,
            )
