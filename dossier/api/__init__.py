"""Dossier HTTP API layer.

This package provides the Falcon Asynchronous Server Gateway Interface
(ASGI) application for the Dossier runtime HTTP surface.

Usage
-----
Create and run the application::

    from dossier.api import create_app

    app = create_app()              # health-only mode
    app = create_app(dependencies)  # full mode with domain endpoints

"""

from dossier.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
