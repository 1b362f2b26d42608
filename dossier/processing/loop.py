"""Timer-driven processor base with a bounded in-flight set.

Each background processor owns one or more timer loops and a dictionary
of in-flight job tasks keyed by job id. A job id already in flight is
never launched twice, and ``stop`` waits a bounded time for in-flight
work before giving up on it.
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses as dc
import enum
import typing as typ

from dossier.logging import get_logger, log_event, log_exception

if typ.TYPE_CHECKING:
    import collections.abc as cabc

logger = get_logger(__name__)

Work: typ.TypeAlias = "cabc.Callable[[], cabc.Awaitable[object]]"


class ProcessorEventType(enum.StrEnum):
    """Structured log events emitted by every processor."""

    STARTED = "processor.started"
    STOPPED = "processor.stopped"
    STOP_TIMED_OUT = "processor.stop_timed_out"
    JOB_LAUNCHED = "processor.job.launched"


@dc.dataclass(frozen=True, slots=True)
class ProcessorStatus:
    """Snapshot of a processor for health and admin endpoints."""

    name: str
    is_running: bool
    active_jobs: int
    max_concurrent: int


class PollingProcessor:
    """Base class for the Dossier background processors.

    Subclasses implement :meth:`tick`, which inspects the job store and
    calls :meth:`launch` for work to start. Subclasses that need more than
    one timer (or a non-periodic one) override :meth:`_timer_loops`.

    Parameters
    ----------
    name
        Short processor name used in log lines.
    poll_interval
        Seconds between ticks of the main timer.
    max_concurrent
        Upper bound on in-flight jobs.
    stop_timeout
        Seconds ``stop`` waits for in-flight jobs.
    stop_poll_interval
        Seconds between in-flight checks while stopping.

    """

    def __init__(
        self,
        *,
        name: str,
        poll_interval: float,
        max_concurrent: int,
        stop_timeout: float,
        stop_poll_interval: float = 1.0,
    ) -> None:
        """Store loop settings; no task is started until :meth:`start`."""
        self.name = name
        self._poll_interval = poll_interval
        self._max_concurrent = max_concurrent
        self._stop_timeout = stop_timeout
        self._stop_poll_interval = stop_poll_interval
        self._running = False
        self._stopping = False
        self._timers: list[asyncio.Task[None]] = []
        self._in_flight: dict[str, asyncio.Task[None]] = {}

    @property
    def is_running(self) -> bool:
        """Whether the timers are active."""
        return self._running

    @property
    def available_slots(self) -> int:
        """Free concurrency slots right now."""
        return max(self._max_concurrent - len(self._in_flight), 0)

    def is_in_flight(self, job_id: str) -> bool:
        """Return whether ``job_id`` is currently being worked on."""
        return job_id in self._in_flight

    def in_flight_ids(self) -> frozenset[str]:
        """Return the ids of all in-flight jobs."""
        return frozenset(self._in_flight)

    def status(self) -> ProcessorStatus:
        """Return a point-in-time status snapshot."""
        return ProcessorStatus(
            name=self.name,
            is_running=self._running,
            active_jobs=len(self._in_flight),
            max_concurrent=self._max_concurrent,
        )

    async def tick(self) -> None:
        """Inspect the job store once and launch eligible work."""
        raise NotImplementedError

    def start(self) -> None:
        """Start the timer loops on the running event loop."""
        if self._running:
            return
        self._running = True
        self._stopping = False
        self._timers = [
            asyncio.create_task(loop, name=f"{self.name}-timer")
            for loop in self._timer_loops()
        ]
        log_event(logger, ProcessorEventType.STARTED, processor=self.name)

    async def stop(self) -> bool:
        """Halt timers and wait a bounded time for in-flight jobs.

        Returns
        -------
        bool
            ``True`` when all in-flight work finished before the timeout.
            Work still running after the timeout is abandoned.

        """
        self._running = False
        self._stopping = True
        for timer in self._timers:
            timer.cancel()
        for timer in self._timers:
            with contextlib.suppress(asyncio.CancelledError):
                await timer
        self._timers = []

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._stop_timeout
        while self._in_flight and loop.time() < deadline:
            await asyncio.sleep(self._stop_poll_interval)

        if self._in_flight:
            log_event(
                logger,
                ProcessorEventType.STOP_TIMED_OUT,
                level="WARNING",
                processor=self.name,
                abandoned=len(self._in_flight),
            )
            return False
        log_event(logger, ProcessorEventType.STOPPED, processor=self.name)
        return True

    def launch(self, job_id: str, work: Work) -> bool:
        """Run ``work`` in the background under ``job_id``.

        Returns
        -------
        bool
            ``False`` if the processor is stopping, the job is already in
            flight, or no slot is free.

        """
        if self._stopping or job_id in self._in_flight or self.available_slots <= 0:
            return False
        task = asyncio.create_task(
            self._run_job(job_id, work), name=f"{self.name}-{job_id}"
        )
        self._in_flight[job_id] = task
        log_event(
            logger,
            ProcessorEventType.JOB_LAUNCHED,
            level="DEBUG",
            processor=self.name,
            job_id=job_id,
        )
        return True

    async def wait_idle(self) -> None:
        """Wait until every job in flight at call time has finished."""
        tasks = list(self._in_flight.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_job(self, job_id: str, work: Work) -> None:
        try:
            await work()
        except Exception as exc:  # noqa: BLE001 - failures are persisted by the job
            log_exception(logger, f"{self.name} job {job_id} failed", exc)
        finally:
            self._in_flight.pop(job_id, None)

    def _timer_loops(self) -> list[cabc.Coroutine[typ.Any, typ.Any, None]]:
        return [self._periodic(self._poll_interval, self.tick)]

    async def _periodic(
        self,
        interval: float,
        action: cabc.Callable[[], cabc.Awaitable[object]],
        *,
        immediate: bool = True,
    ) -> None:
        """Run ``action`` every ``interval`` seconds until stopped."""
        if not immediate:
            await asyncio.sleep(interval)
        while self._running:
            try:
                await action()
            except Exception as exc:  # noqa: BLE001 - keep the timer alive
                log_exception(logger, f"{self.name} timer action failed", exc)
            await asyncio.sleep(interval)
