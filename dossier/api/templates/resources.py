"""Report template resources.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/templates", TemplateCollectionResource(context))
    app.add_route("/templates/{template_id}", TemplateResource(context))

"""

from __future__ import annotations

import typing as typ

import falcon

from dossier.api import serializers
from dossier.api.requests import TemplateBody, query_enum, read_body, user_id
from dossier.storage import WorkflowType

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from dossier.context import AppContext

__all__ = ["TemplateCollectionResource", "TemplateResource"]


class TemplateCollectionResource:
    """``GET`` lists the caller's templates; ``POST`` saves one."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._templates = context.templates

    async def on_get(self, req: Request, resp: Response) -> None:
        """List templates, optionally filtered by ``workflow_type``."""
        rows = await self._templates.list_templates(
            user_id(req), workflow_type=query_enum(req, "workflow_type", WorkflowType)
        )
        resp.media = serializers.envelope([serializers.template(row) for row in rows])

    async def on_post(self, req: Request, resp: Response) -> None:
        """Validate and store a template."""
        body = await read_body(req, TemplateBody)
        row = await self._templates.create_template(
            user_id(req),
            name=body.name,
            workflow_type=body.workflow_type,
            configuration=body.configuration,
            description=body.description,
        )
        resp.status = falcon.HTTP_201
        resp.media = serializers.envelope(serializers.template(row))


class TemplateResource:
    """``GET`` or ``DELETE`` one of the caller's templates."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._templates = context.templates

    async def on_get(self, req: Request, resp: Response, *, template_id: str) -> None:
        """Return the template."""
        row = await self._templates.get_template(template_id, user_id(req))
        resp.media = serializers.envelope(serializers.template(row))

    async def on_delete(self, req: Request, resp: Response, *, template_id: str) -> None:
        """Delete a template no schedule uses."""
        await self._templates.delete_template(template_id, user_id(req))
        resp.media = serializers.envelope({"id": template_id, "deleted": True})
