"""Export request and download resources.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/reports/{report_id}/exports", ExportCollectionResource(context))
    app.add_route(
        "/reports/{report_id}/exports/{fmt}/download", ExportDownloadResource(context)
    )

"""

from __future__ import annotations

import typing as typ

import falcon

from dossier.api import serializers
from dossier.api.errors import InvalidInputError
from dossier.api.requests import ExportRequestBody, read_body, user_id
from dossier.api.streaming import send_file
from dossier.storage import ExportFormat, ExportStatus, ExportTrigger

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from dossier.context import AppContext

__all__ = ["ExportCollectionResource", "ExportDownloadResource"]


class ExportCollectionResource:
    """``GET`` lists a report's exports; ``POST`` requests new ones."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._exports = context.exports
        self._processor = context.export_processor

    async def on_get(self, req: Request, resp: Response, *, report_id: str) -> None:
        """List the report's export jobs, newest first."""
        jobs = await self._exports.list_exports(report_id, user_id(req))
        resp.media = serializers.envelope([serializers.export(job) for job in jobs])

    async def on_post(self, req: Request, resp: Response, *, report_id: str) -> None:
        """Request exports and start rendering those that are PENDING."""
        body = await read_body(req, ExportRequestBody)
        jobs = await self._exports.request_exports(
            report_id, user_id(req), body.requested(), ExportTrigger.ON_DEMAND
        )
        for job in jobs:
            if job.status is ExportStatus.PENDING:
                self._processor.dispatch(job.id)
        resp.status = falcon.HTTP_202
        resp.media = serializers.envelope([serializers.export(job) for job in jobs])


class ExportDownloadResource:
    """``GET /reports/{report_id}/exports/{fmt}/download`` streams the file."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._exports = context.exports

    async def on_get(
        self, req: Request, resp: Response, *, report_id: str, fmt: str
    ) -> None:
        """Stream a COMPLETED export as an attachment."""
        try:
            export_format = ExportFormat(fmt.upper())
        except ValueError as exc:
            raise InvalidInputError("unsupported export format", field="fmt") from exc
        download = await self._exports.get_download(report_id, user_id(req), export_format)
        send_file(
            resp,
            download.path,
            filename=download.filename,
            mime_type=download.mime_type,
            size=download.size,
        )
