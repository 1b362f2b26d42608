"""Health probe resources for liveness and readiness checks.

The liveness probe never touches the database. The readiness probe
reports the background processors, when an application context is
attached, and answers 503 while any of them is stopped.

Usage
-----
Register health endpoints on the Falcon app::

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(context))

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from dossier.context import AppContext

__all__ = ["HealthResource", "ReadyResource"]


class HealthResource:
    """Liveness probe resource returning ``{"status": "ok"}``."""

    requires_user = False

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests."""
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe resource.

    Parameters
    ----------
    context
        Optional application context whose processors are reported.

    """

    requires_user = False

    def __init__(self, context: AppContext | None = None) -> None:
        """Bind the probe to an optional application context."""
        self._context = context

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests."""
        if self._context is None:
            resp.media = {"status": "ready"}
            resp.status = HTTPStatus.OK
            return
        statuses = [processor.status() for processor in self._context.processors]
        ready = all(status.is_running for status in statuses)
        resp.media = {
            "status": "ready" if ready else "starting",
            "processors": [dc.asdict(status) for status in statuses],
        }
        resp.status = HTTPStatus.OK if ready else HTTPStatus.SERVICE_UNAVAILABLE
