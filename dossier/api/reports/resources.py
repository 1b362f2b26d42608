"""Report lifecycle resources.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/reports", ReportCollectionResource(context))
    app.add_route("/reports/{report_id}", ReportResource(context))
    app.add_route("/reports/{report_id}/status", ReportStatusResource(context))
    app.add_route("/reports/{report_id}/retry", ReportRetryResource(context))
    app.add_route("/workflows/{workflow}/sections", WorkflowSectionsResource(context))

"""

from __future__ import annotations

import typing as typ

import falcon
import msgspec

from dossier.api import serializers
from dossier.api.errors import InvalidInputError
from dossier.api.requests import (
    MAX_PAGE_SIZE,
    CreateReportBody,
    query_enum,
    query_int,
    read_body,
    user_id,
)
from dossier.reports import CreateReportInput
from dossier.storage import ReportStatus, WorkflowType

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from dossier.context import AppContext

__all__ = [
    "ReportCollectionResource",
    "ReportResource",
    "ReportRetryResource",
    "ReportStatusResource",
    "WorkflowSectionsResource",
]


class ReportCollectionResource:
    """``GET /reports`` lists the caller's reports; ``POST`` creates one."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._reports = context.reports

    async def on_get(self, req: Request, resp: Response) -> None:
        """List reports newest first with ``limit``/``offset`` paging."""
        page = await self._reports.list_reports(
            user_id(req),
            workflow_type=query_enum(req, "workflow_type", WorkflowType),
            status=query_enum(req, "status", ReportStatus),
            limit=query_int(req, "limit", 20, minimum=1, maximum=MAX_PAGE_SIZE),
            offset=query_int(req, "offset", 0),
        )
        resp.media = serializers.envelope(
            {
                "reports": [serializers.report_summary(r) for r in page.reports],
                "total": page.total,
            }
        )

    async def on_post(self, req: Request, resp: Response) -> None:
        """Create a report; generation continues in the background."""
        body = await read_body(req, CreateReportBody)
        report = await self._reports.create_report(
            CreateReportInput(owner_id=user_id(req), **msgspec.structs.asdict(body))
        )
        resp.status = falcon.HTTP_201
        resp.media = serializers.envelope(serializers.report_detail(report))


class ReportResource:
    """``GET`` or ``DELETE`` one of the caller's reports."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._reports = context.reports

    async def on_get(self, req: Request, resp: Response, *, report_id: str) -> None:
        """Return the report with its generated content."""
        report = await self._reports.get_report(report_id, user_id(req))
        resp.media = serializers.envelope(serializers.report_detail(report))

    async def on_delete(self, req: Request, resp: Response, *, report_id: str) -> None:
        """Delete the report and everything derived from it."""
        await self._reports.delete_report(report_id, user_id(req))
        resp.media = serializers.envelope({"id": report_id, "deleted": True})


class ReportStatusResource:
    """``GET /reports/{report_id}/status`` with section progress."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._reports = context.reports

    async def on_get(self, req: Request, resp: Response, *, report_id: str) -> None:
        """Return status and progress percentage."""
        progress = await self._reports.get_report_status(report_id, user_id(req))
        resp.media = serializers.envelope(serializers.report_progress(progress))


class ReportRetryResource:
    """``POST /reports/{report_id}/retry`` restarts a FAILED report."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._reports = context.reports

    async def on_post(self, req: Request, resp: Response, *, report_id: str) -> None:
        """Reset the report to PENDING and start generation again."""
        report = await self._reports.retry_report(report_id, user_id(req))
        resp.status = falcon.HTTP_202
        resp.media = serializers.envelope(serializers.report_summary(report))


class WorkflowSectionsResource:
    """``GET /workflows/{workflow}/sections`` describes a workflow's sections."""

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._reports = context.reports

    async def on_get(self, _req: Request, resp: Response, *, workflow: str) -> None:
        """List the sections the workflow offers, in generation order."""
        try:
            workflow_type = WorkflowType(workflow)
        except ValueError as exc:
            raise InvalidInputError("unknown workflow", field="workflow") from exc
        sections = self._reports.get_workflow_sections(workflow_type)
        resp.media = serializers.envelope(
            {
                "workflow_type": workflow_type,
                "sections": [serializers.section_info(s) for s in sections],
            }
        )
