"""Delivery scheduling and retry resources.

Scheduling and retrying only reset the job row; the send itself is
handed to the delivery processor, which owns the in-flight set.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/reports/{report_id}/deliveries", DeliveryCollectionResource(context))
    app.add_route("/deliveries/{delivery_id}/retry", DeliveryRetryResource(context))
    app.add_route(
        "/podcast-deliveries/{delivery_id}/retry", PodcastDeliveryRetryResource(context)
    )

"""

from __future__ import annotations

import typing as typ

import falcon

from dossier.api import serializers
from dossier.api.requests import read_body, user_id
from dossier.reports import DeliveryOptions

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from dossier.context import AppContext

__all__ = [
    "DeliveryCollectionResource",
    "DeliveryRetryResource",
    "PodcastDeliveryRetryResource",
]


class DeliveryCollectionResource:
    """``GET`` lists a report's deliveries; ``POST`` schedules one."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._delivery = context.delivery
        self._processor = context.delivery_processor

    async def on_get(self, req: Request, resp: Response, *, report_id: str) -> None:
        """List the report's deliveries, newest first."""
        jobs = await self._delivery.get_deliveries(report_id, user_id(req))
        resp.media = serializers.envelope([serializers.delivery(job) for job in jobs])

    async def on_post(self, req: Request, resp: Response, *, report_id: str) -> None:
        """Create a PENDING delivery and start sending it."""
        options = await read_body(req, DeliveryOptions)
        job = await self._delivery.schedule_delivery(report_id, user_id(req), options)
        self._processor.dispatch_report(job.id)
        resp.status = falcon.HTTP_202
        resp.media = serializers.envelope(serializers.delivery(job))


class DeliveryRetryResource:
    """``POST /deliveries/{delivery_id}/retry`` resends a FAILED delivery."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._delivery = context.delivery
        self._processor = context.delivery_processor

    async def on_post(self, req: Request, resp: Response, *, delivery_id: str) -> None:
        """Reset the delivery to PENDING and dispatch it."""
        job = await self._delivery.retry_delivery(delivery_id, user_id(req))
        self._processor.dispatch_report(job.id)
        resp.status = falcon.HTTP_202
        resp.media = serializers.envelope(serializers.delivery(job))


class PodcastDeliveryRetryResource:
    """``POST /podcast-deliveries/{delivery_id}/retry`` resends a podcast."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._delivery = context.delivery
        self._processor = context.delivery_processor

    async def on_post(self, req: Request, resp: Response, *, delivery_id: str) -> None:
        """Reset the podcast delivery to PENDING and dispatch it."""
        job = await self._delivery.retry_podcast_delivery(delivery_id, user_id(req))
        self._processor.dispatch_podcast(job.id)
        resp.status = falcon.HTTP_202
        resp.media = serializers.envelope(serializers.podcast_delivery(job))
