"""Podcast request, status and audio resources.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/reports/{report_id}/podcast", PodcastResource(context))
    app.add_route("/reports/{report_id}/podcast/audio", PodcastAudioResource(context))
    app.add_route("/podcasts/queue", PodcastQueueResource(context))

"""

from __future__ import annotations

import typing as typ

import falcon

from dossier.api import serializers
from dossier.api.requests import PodcastRequestBody, read_body, user_id
from dossier.api.streaming import send_file
from dossier.storage import ExportTrigger, PodcastStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from dossier.context import AppContext

__all__ = ["PodcastAudioResource", "PodcastQueueResource", "PodcastResource"]


class PodcastResource:
    """``GET`` reports podcast progress; ``POST`` requests an episode."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._podcasts = context.podcasts
        self._processor = context.podcast_processor

    async def on_get(self, req: Request, resp: Response, *, report_id: str) -> None:
        """Return the podcast's status and progress percentage."""
        progress = await self._podcasts.get_podcast_status(report_id, user_id(req))
        resp.media = serializers.envelope(serializers.podcast_progress(progress))

    async def on_post(self, req: Request, resp: Response, *, report_id: str) -> None:
        """Request a podcast; an existing active or finished job is returned."""
        body = await read_body(req, PodcastRequestBody)
        job = await self._podcasts.request_podcast(
            report_id,
            user_id(req),
            template=body.template,
            duration=body.duration,
            triggered_by=ExportTrigger.ON_DEMAND,
            delivery_destination=body.delivery_destination,
            delivery_destination_type=body.delivery_destination_type,
        )
        if job.status is PodcastStatus.PENDING:
            self._processor.dispatch(job.id)
        resp.status = falcon.HTTP_202
        resp.media = serializers.envelope(serializers.podcast(job))


class PodcastAudioResource:
    """``GET /reports/{report_id}/podcast/audio`` streams the finished MP3."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._podcasts = context.podcasts

    async def on_get(self, req: Request, resp: Response, *, report_id: str) -> None:
        """Stream the episode as an attachment."""
        audio = await self._podcasts.get_audio(report_id, user_id(req))
        send_file(
            resp,
            audio.path,
            filename=audio.filename,
            mime_type=audio.mime_type,
            size=audio.size,
        )


class PodcastQueueResource:
    """``GET /podcasts/queue`` counts podcast jobs by state."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._podcasts = context.podcasts

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Return queue counters."""
        stats = await self._podcasts.get_queue_stats()
        resp.media = serializers.envelope(serializers.queue_stats(stats))
