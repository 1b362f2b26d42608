"""Background processor that fires due schedules."""

from __future__ import annotations

import typing as typ

from dossier.logging import get_logger, log_info
from dossier.processing import PollingProcessor

if typ.TYPE_CHECKING:
    from dossier.schedules.config import ScheduleConfig
    from dossier.schedules.service import ScheduleService

logger = get_logger(__name__)


class ScheduleProcessor(PollingProcessor):
    """Poll for due schedules and execute them up to the concurrency cap.

    A schedule already executing is never launched twice; its
    ``next_run_at`` moves forward once the execution finishes, so it is
    not due again on the next tick.
    """

    def __init__(
        self, service: ScheduleService, config: ScheduleConfig | None = None
    ) -> None:
        """Bind the processor to the schedule service."""
        resolved = config or service.config
        super().__init__(
            name="schedule-processor",
            poll_interval=resolved.poll_interval,
            max_concurrent=resolved.max_concurrent,
            stop_timeout=resolved.stop_timeout,
        )
        self._service = service

    def dispatch(self, schedule_id: str) -> bool:
        """Start executing ``schedule_id`` now if a slot is free."""
        return self.launch(schedule_id, lambda: self._service.execute_schedule(schedule_id))

    async def tick(self) -> None:
        """Launch due schedules that are not already executing."""
        if self.available_slots <= 0:
            return
        due = [
            schedule.id
            for schedule in await self._service.get_due_schedules()
            if not self.is_in_flight(schedule.id)
        ]
        if not due:
            return
        log_info(logger, "Found %s due schedules", len(due))
        for schedule_id in due[: self.available_slots]:
            self.dispatch(schedule_id)
