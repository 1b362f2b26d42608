"""Dossier runtime entrypoint.

This module provides the ASGI application factory used by Granian. It
delegates to :func:`dossier.api.app.create_app` for application
construction while keeping the ``dossier.runtime:create_app`` entrypoint
stable.

When ``DOSSIER_DATABASE_URL`` is set, the runtime creates the tables,
builds the application context and serves the domain endpoints; the
background processors start and stop with the ASGI lifespan. Otherwise
it starts in health-only mode.

Configuration is driven by environment variables:

- ``DOSSIER_HOST``: Bind address (default ``0.0.0.0``)
- ``DOSSIER_PORT``: Listen port (default ``8080``)
- ``DOSSIER_LOG_LEVEL``: Log level (default ``INFO``)
- ``DOSSIER_DATABASE_URL``: Database connection URL (optional; enables
  domain endpoints when set)
- ``DOSSIER_ADMIN_USERS``: Comma-separated caller ids allowed to use the
  operator endpoints

Run the service directly with ``python -m dossier.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from dossier.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        log_error(
            logger,
            "Invalid DOSSIER_PORT value: %r (must be %d-%d): %s",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def create_app() -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    from dossier.api.app import create_app as _create_api_app

    database_url = os.environ.get("DOSSIER_DATABASE_URL")

    if database_url is None:
        return _create_api_app()

    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from dossier.api.app import AppDependencies
    from dossier.api.config import ApiConfig
    from dossier.context import build_app_context

    engine = create_async_engine(database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    context = build_app_context(session_factory)

    return _create_api_app(
        AppDependencies(context=context, engine=engine, config=ApiConfig.from_env())
    )


def main() -> None:
    """Start the Dossier runtime server using Granian.

    Reads ``DOSSIER_HOST``, ``DOSSIER_PORT``, and ``DOSSIER_LOG_LEVEL`` from
    the environment and starts the ASGI server.
    """
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("DOSSIER_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port = _parse_port(os.environ.get("DOSSIER_PORT", "8080"))
    log_level_str = os.environ.get("DOSSIER_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid DOSSIER_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting Dossier runtime on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "dossier.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
