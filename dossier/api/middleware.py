"""Falcon ASGI middleware: processor lifespan and caller identity.

Usage
-----
Register the middleware when creating the Falcon app::

    app = falcon.asgi.App(
        middleware=[LifespanManager(context), CallerIdentity()],
    )

"""

from __future__ import annotations

import typing as typ

from dossier.api.errors import AuthenticationRequiredError
from dossier.logging import get_logger, log_info
from dossier.storage import init_storage

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response
    from sqlalchemy.ext.asyncio import AsyncEngine

    from dossier.context import AppContext

__all__ = ["USER_HEADER", "CallerIdentity", "LifespanManager"]

logger = get_logger(__name__)

USER_HEADER = "X-Dossier-User"


class LifespanManager:
    """Start the background processors with the server and stop them with it.

    Parameters
    ----------
    context
        Application context whose processors follow the ASGI lifespan.
    engine
        Optional engine; its tables are created before the processors
        start and it is disposed after they stop.

    """

    def __init__(self, context: AppContext, *, engine: AsyncEngine | None = None) -> None:
        """Bind the middleware to the application context."""
        self._context = context
        self._engine = engine

    async def process_startup(self, _scope: dict[str, typ.Any], _event: object) -> None:
        """Create tables, then start every processor."""
        if self._engine is not None:
            await init_storage(self._engine)
        self._context.start()
        log_info(logger, "Started %s background processors", len(self._context.processors))

    async def process_shutdown(self, _scope: dict[str, typ.Any], _event: object) -> None:
        """Stop processors and close network clients."""
        await self._context.stop()
        if self._engine is not None:
            await self._engine.dispose()
        log_info(logger, "Background processors stopped")


class CallerIdentity:
    """Attach the caller id from ``X-Dossier-User`` to ``req.context.user_id``.

    Resources that set ``requires_user = False`` (the health probes and
    the signed webhook) are served without the header.
    """

    async def process_resource(
        self,
        req: Request,
        _resp: Response,
        resource: object,
        _params: dict[str, typ.Any],
    ) -> None:
        """Reject requests to user-scoped resources that lack the header.

        Raises
        ------
        AuthenticationRequiredError
            If the header is missing or blank.

        """
        if resource is None or not getattr(resource, "requires_user", True):
            return
        user_id = (req.get_header(USER_HEADER) or "").strip()
        if not user_id:
            raise AuthenticationRequiredError.missing_header(USER_HEADER)
        req.context.user_id = user_id
