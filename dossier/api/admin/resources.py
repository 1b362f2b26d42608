"""Operator resources.

Only callers named in ``DOSSIER_ADMIN_USERS`` may use them.

Usage
-----
Register the resource on the Falcon app::

    app.add_route("/admin/cleanup", CleanupResource(context, config))

"""

from __future__ import annotations

import typing as typ

from dossier.api import serializers
from dossier.api.errors import ForbiddenError
from dossier.api.requests import user_id

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from dossier.api.config import ApiConfig
    from dossier.context import AppContext

__all__ = ["CleanupResource"]


class CleanupResource:
    """``POST /admin/cleanup`` runs the retention sweep now.

    Answers 403 for callers outside the admin allow-list and 409 while a
    sweep is already running.
    """

    def __init__(self, context: AppContext, config: ApiConfig) -> None:
        """Bind the resource to the application context."""
        self._cleanup = context.cleanup
        self._config = config

    async def on_post(self, req: Request, resp: Response) -> None:
        """Run the sweep and return its counters."""
        caller = user_id(req)
        if not self._config.is_admin(caller):
            raise ForbiddenError.admin_only(caller)
        stats = await self._cleanup.run_cleanup(manual=True)
        resp.media = serializers.envelope(serializers.cleanup_stats(stats))
