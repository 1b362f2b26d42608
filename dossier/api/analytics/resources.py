"""Dashboard analytics resources.

The figures cover every owner; any identified caller may read them.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/analytics/dashboard", DashboardResource(context))
    app.add_route("/analytics/trends", TrendsResource(context))
    app.add_route("/analytics/distribution", DistributionResource(context))

"""

from __future__ import annotations

import typing as typ

from dossier.api import serializers
from dossier.api.requests import query_window

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from dossier.context import AppContext

__all__ = ["DashboardResource", "DistributionResource", "TrendsResource"]


class DashboardResource:
    """``GET /analytics/dashboard`` returns headline counters."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._analytics = context.analytics

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Return the dashboard summary."""
        summary = await self._analytics.dashboard_summary()
        resp.media = serializers.envelope(serializers.dashboard_summary(summary))


class TrendsResource:
    """``GET /analytics/trends`` returns daily counters per workflow.

    ``start`` and ``end`` are optional ISO 8601 timestamps; the window
    defaults to the last 30 days.
    """

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._analytics = context.analytics

    async def on_get(self, req: Request, resp: Response) -> None:
        """Return trend points, oldest first."""
        start, end = query_window(req)
        points = await self._analytics.report_trends(start, end)
        resp.media = serializers.envelope([serializers.trend_point(p) for p in points])


class DistributionResource:
    """``GET /analytics/distribution`` counts reports per workflow."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._analytics = context.analytics

    async def on_get(self, req: Request, resp: Response) -> None:
        """Return each workflow's count and share."""
        start, end = query_window(req)
        shares = await self._analytics.workflow_distribution(start, end)
        resp.media = serializers.envelope([serializers.workflow_share(s) for s in shares])
