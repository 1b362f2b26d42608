"""Schedule resources.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/schedules", ScheduleCollectionResource(context))
    app.add_route("/schedules/next-runs", NextRunsResource(context))
    app.add_route("/schedules/{schedule_id}", ScheduleResource(context))
    app.add_route("/schedules/{schedule_id}/activate", ScheduleActivateResource(context))
    app.add_route(
        "/schedules/{schedule_id}/deactivate", ScheduleDeactivateResource(context)
    )
    app.add_route("/schedules/{schedule_id}/trigger", ScheduleTriggerResource(context))

"""

from __future__ import annotations

import typing as typ

import falcon

from dossier.api import serializers
from dossier.api.errors import InvalidInputError
from dossier.api.requests import (
    MAX_PAGE_SIZE,
    query_bool,
    query_int,
    read_body,
    user_id,
)
from dossier.schedules import CreateScheduleInput, UpdateScheduleInput
from dossier.schedules.cron import MAX_PREVIEW_RUNS

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from dossier.context import AppContext

__all__ = [
    "NextRunsResource",
    "ScheduleActivateResource",
    "ScheduleCollectionResource",
    "ScheduleDeactivateResource",
    "ScheduleResource",
    "ScheduleTriggerResource",
]


class ScheduleCollectionResource:
    """``GET`` lists the caller's schedules; ``POST`` creates one."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._schedules = context.schedules

    async def on_get(self, req: Request, resp: Response) -> None:
        """List schedules newest first, optionally filtered by ``is_active``."""
        rows, total = await self._schedules.list_schedules(
            user_id(req),
            is_active=query_bool(req, "is_active"),
            limit=query_int(req, "limit", 20, minimum=1, maximum=MAX_PAGE_SIZE),
            offset=query_int(req, "offset", 0),
        )
        resp.media = serializers.envelope(
            {"schedules": [serializers.schedule(row) for row in rows], "total": total}
        )

    async def on_post(self, req: Request, resp: Response) -> None:
        """Create a schedule."""
        body = await read_body(req, CreateScheduleInput)
        row = await self._schedules.create_schedule(user_id(req), body)
        resp.status = falcon.HTTP_201
        resp.media = serializers.envelope(serializers.schedule(row))


class ScheduleResource:
    """``GET``, ``PATCH`` or ``DELETE`` one of the caller's schedules."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._schedules = context.schedules

    async def on_get(self, req: Request, resp: Response, *, schedule_id: str) -> None:
        """Return the schedule."""
        row = await self._schedules.get_schedule(schedule_id, user_id(req))
        resp.media = serializers.envelope(serializers.schedule(row))

    async def on_patch(self, req: Request, resp: Response, *, schedule_id: str) -> None:
        """Apply a partial update."""
        changes = await read_body(req, UpdateScheduleInput)
        row = await self._schedules.update_schedule(schedule_id, user_id(req), changes)
        resp.media = serializers.envelope(serializers.schedule(row))

    async def on_delete(self, req: Request, resp: Response, *, schedule_id: str) -> None:
        """Delete the schedule."""
        await self._schedules.delete_schedule(schedule_id, user_id(req))
        resp.media = serializers.envelope({"id": schedule_id, "deleted": True})


class ScheduleActivateResource:
    """``POST /schedules/{schedule_id}/activate``."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._schedules = context.schedules

    async def on_post(self, req: Request, resp: Response, *, schedule_id: str) -> None:
        """Activate the schedule and compute its next run."""
        row = await self._schedules.activate_schedule(schedule_id, user_id(req))
        resp.media = serializers.envelope(serializers.schedule(row))


class ScheduleDeactivateResource:
    """``POST /schedules/{schedule_id}/deactivate``."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._schedules = context.schedules

    async def on_post(self, req: Request, resp: Response, *, schedule_id: str) -> None:
        """Deactivate the schedule and clear its next run."""
        row = await self._schedules.deactivate_schedule(schedule_id, user_id(req))
        resp.media = serializers.envelope(serializers.schedule(row))


class ScheduleTriggerResource:
    """``POST /schedules/{schedule_id}/trigger`` runs a schedule now."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._schedules = context.schedules

    async def on_post(self, req: Request, resp: Response, *, schedule_id: str) -> None:
        """Create the schedule's report immediately."""
        report = await self._schedules.trigger_schedule(schedule_id, user_id(req))
        resp.status = falcon.HTTP_201
        resp.media = serializers.envelope(serializers.report_summary(report))


class NextRunsResource:
    """``GET /schedules/next-runs`` previews when an expression fires."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._schedules = context.schedules

    async def on_get(self, req: Request, resp: Response) -> None:
        """Return upcoming fire times for ``cron`` in ``timezone``."""
        expression = req.get_param("cron")
        if not expression:
            raise InvalidInputError("is required", field="cron")
        runs = self._schedules.get_next_runs(
            expression,
            req.get_param("timezone"),
            query_int(req, "count", 5, minimum=1, maximum=MAX_PREVIEW_RUNS),
        )
        resp.media = serializers.envelope(
            {"cron": expression, "next_runs": [serializers.iso(run) for run in runs]}
        )
