"""Background processor that sends report and podcast deliveries."""

from __future__ import annotations

import typing as typ

from dossier.processing import PollingProcessor

if typ.TYPE_CHECKING:
    from dossier.delivery.config import DeliveryConfig
    from dossier.delivery.service import DeliveryService

_REPORT = "report"
_PODCAST = "podcast"


class DeliveryProcessor(PollingProcessor):
    """Own the in-flight set for deliveries of both kinds.

    Triggers call :meth:`dispatch_report` or :meth:`dispatch_podcast` to
    send straight away; the poll loop re-attempts deliveries requeued
    after a retryable failure. In-flight keys are prefixed by kind so a
    report delivery and a podcast delivery never collide.
    """

    def __init__(
        self, service: DeliveryService, config: DeliveryConfig | None = None
    ) -> None:
        """Bind the processor to the delivery service."""
        resolved = config or service.config
        super().__init__(
            name="delivery-processor",
            poll_interval=resolved.poll_interval,
            max_concurrent=resolved.max_concurrent,
            stop_timeout=resolved.stop_timeout,
        )
        self._service = service

    def dispatch_report(self, delivery_id: str) -> bool:
        """Start sending a report delivery now if a slot is free."""
        return self.launch(
            f"{_REPORT}:{delivery_id}",
            lambda: self._service.deliver_report(delivery_id),
        )

    def dispatch_podcast(self, delivery_id: str) -> bool:
        """Start sending a podcast delivery now if a slot is free."""
        return self.launch(
            f"{_PODCAST}:{delivery_id}",
            lambda: self._service.deliver_podcast(delivery_id),
        )

    async def tick(self) -> None:
        """Launch pending report deliveries, then podcast deliveries."""
        if self.available_slots > 0:
            limit = self.available_slots + len(self.in_flight_ids())
            for delivery_id in await self._service.pending_report_delivery_ids(limit):
                if self.available_slots <= 0:
                    return
                if not self.is_in_flight(f"{_REPORT}:{delivery_id}"):
                    self.dispatch_report(delivery_id)
        if self.available_slots > 0:
            limit = self.available_slots + len(self.in_flight_ids())
            for delivery_id in await self._service.pending_podcast_delivery_ids(limit):
                if self.available_slots <= 0:
                    return
                if not self.is_in_flight(f"{_PODCAST}:{delivery_id}"):
                    self.dispatch_podcast(delivery_id)
