"""Background processor that renders PENDING exports."""

from __future__ import annotations

import typing as typ

from dossier.processing import PollingProcessor

if typ.TYPE_CHECKING:
    from dossier.exports.config import ExportConfig
    from dossier.exports.service import ExportService


class ExportProcessor(PollingProcessor):
    """Poll for PENDING exports and reclaim stale PROCESSING ones.

    Eager exports requested when a report completes are dispatched
    straight away through :meth:`dispatch`; the poll loop picks up
    anything requeued after a failure or reclaimed as stale.
    """

    def __init__(
        self, service: ExportService, config: ExportConfig | None = None
    ) -> None:
        """Bind the processor to the export service."""
        resolved = config or service.config
        super().__init__(
            name="export-processor",
            poll_interval=resolved.poll_interval,
            max_concurrent=resolved.max_concurrent,
            stop_timeout=resolved.stop_timeout,
        )
        self._service = service

    def dispatch(self, export_id: str) -> bool:
        """Start rendering ``export_id`` now if a slot is free."""
        return self.launch(export_id, lambda: self._service.process_export(export_id))

    async def tick(self) -> None:
        """Launch pending exports up to the free slots, then reclaim stale ones."""
        slots = self.available_slots
        if slots > 0:
            for export_id in await self._service.pending_export_ids(
                slots + len(self.in_flight_ids())
            ):
                if self.available_slots <= 0:
                    break
                if not self.is_in_flight(export_id):
                    self.dispatch(export_id)
        await self._service.reset_stale(exclude=self.in_flight_ids())
