"""Behavioural coverage for Webex report delivery."""

from __future__ import annotations

import typing as typ

import httpx
import pytest
from pytest_bdd import given, parsers, scenario, then, when
from sqlalchemy import select

from dossier.delivery import DeliveryConfig, DeliveryService, WebexClient, WebexConfig
from dossier.delivery.service import DeliveryResult
from dossier.exports import ExportConfig, ExportService
from dossier.reports import DeliveryOptions
from dossier.storage import (
    DeliveryContent,
    DeliveryStatus,
    DestinationType,
    DocumentExport,
    ExportFormat,
    ExportStatus,
    ReportDelivery,
)
from tests.helpers.builders import OWNER, insert_report

if typ.TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from tests.features.conftest import ScenarioDatabase


class DeliveryContext(typ.TypedDict, total=False):
    """Mutable state shared between steps."""

    report_id: str
    status_code: int
    requests: list[httpx.Request]
    result: DeliveryResult


@scenario(
    "../report_delivery.feature", "A report is delivered to a room as a PDF attachment"
)
def test_attachment_delivery() -> None:
    """Wrapper for pytest-bdd scenario."""


@scenario(
    "../report_delivery.feature", "A missing room fails the delivery without retrying"
)
def test_missing_room_fails() -> None:
    """Wrapper for pytest-bdd scenario."""


@pytest.fixture
def delivery_context() -> DeliveryContext:
    """Provide an empty scenario context."""
    return {"requests": []}


class _InlineExports:
    """Dispatcher that renders queued exports when the service waits."""

    def __init__(self, exports: ExportService) -> None:
        self._exports = exports
        self.queued: list[str] = []

    def dispatch(self, export_id: str) -> bool:
        self.queued.append(export_id)
        return True

    async def sleep(self, _seconds: float) -> None:
        while self.queued:
            await self._exports.process_export(self.queued.pop(0))


@given(parsers.parse('a completed report titled "{title}"'))
def given_completed_report(
    delivery_context: DeliveryContext, scenario_db: ScenarioDatabase, title: str
) -> None:
    """Store a COMPLETED report with generated sections."""
    report = scenario_db.run(lambda factory: insert_report(factory, title=title))
    delivery_context["report_id"] = report.id


@given("a Webex API that accepts messages")
def given_webex_accepts(delivery_context: DeliveryContext) -> None:
    """Webex answers every message with an id."""
    delivery_context["status_code"] = 200


@given("a Webex API that reports the room is missing")
def given_webex_missing_room(delivery_context: DeliveryContext) -> None:
    """Webex answers with 404."""
    delivery_context["status_code"] = 404


def _deliver(
    delivery_context: DeliveryContext,
    scenario_db: ScenarioDatabase,
    storage: Path,
    options: DeliveryOptions,
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        delivery_context["requests"].append(request)
        status = delivery_context["status_code"]
        if status == 200:
            return httpx.Response(200, json={"id": f"msg-{len(delivery_context['requests'])}"})
        return httpx.Response(status, json={"message": "Room not found"})

    async def _run(session_factory: async_sessionmaker[AsyncSession]) -> DeliveryResult:
        exports = ExportService(session_factory, ExportConfig(storage_path=storage))
        inline = _InlineExports(exports)
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            webex = WebexClient(
                WebexConfig(
                    bot_token="bot-token",
                    api_base_url="https://webex.test/v1/",
                    frontend_url="https://dossier.test/",
                ),
                http_client=http,
            )
            service = DeliveryService(
                session_factory,
                webex,
                exports,
                DeliveryConfig(),
                export_dispatcher=inline,
                sleep=inline.sleep,
            )
            delivery = await service.schedule_delivery(
                delivery_context["report_id"], OWNER, options
            )
            return await service.deliver_report(delivery.id)

    delivery_context["result"] = scenario_db.run(_run)


@when(parsers.parse('I deliver the report as a PDF attachment to room "{room}"'))
def when_deliver_attachment(
    delivery_context: DeliveryContext,
    scenario_db: ScenarioDatabase,
    tmp_path: Path,
    room: str,
) -> None:
    """Deliver a PDF attachment; the export is rendered on demand."""
    _deliver(
        delivery_context,
        scenario_db,
        tmp_path / "exports",
        DeliveryOptions(
            destination=room,
            destination_type=DestinationType.ROOM_ID,
            content_type=DeliveryContent.ATTACHMENT,
            format=ExportFormat.PDF,
        ),
    )


@when(parsers.parse('I deliver the report as a summary link to room "{room}"'))
def when_deliver_summary(
    delivery_context: DeliveryContext,
    scenario_db: ScenarioDatabase,
    tmp_path: Path,
    room: str,
) -> None:
    """Deliver a markdown summary with a link to the report."""
    _deliver(
        delivery_context,
        scenario_db,
        tmp_path / "exports",
        DeliveryOptions(
            destination=room,
            destination_type=DestinationType.ROOM_ID,
            content_type=DeliveryContent.SUMMARY_LINK,
        ),
    )


@then(parsers.parse('the delivery is "{status}"'))
def then_delivery_status(
    delivery_context: DeliveryContext, scenario_db: ScenarioDatabase, status: str
) -> None:
    """Assert the stored delivery status."""
    delivery_id = delivery_context["result"].delivery_id

    async def _load(session_factory: async_sessionmaker[AsyncSession]) -> ReportDelivery:
        async with session_factory() as session:
            row = await session.get(ReportDelivery, delivery_id)
        assert row is not None, "delivery should exist"
        return row

    row = scenario_db.run(_load)
    assert row.status is DeliveryStatus(status), f"expected {status}, got {row.status}"


@then("a completed PDF export exists for the report")
def then_export_completed(
    delivery_context: DeliveryContext, scenario_db: ScenarioDatabase
) -> None:
    """The attachment was rendered through the export pipeline."""

    async def _exports(
        session_factory: async_sessionmaker[AsyncSession],
    ) -> list[DocumentExport]:
        async with session_factory() as session:
            rows = await session.scalars(
                select(DocumentExport).where(
                    DocumentExport.report_id == delivery_context["report_id"]
                )
            )
            return list(rows)

    exports = scenario_db.run(_exports)
    assert [(job.format, job.status) for job in exports] == [
        (ExportFormat.PDF, ExportStatus.COMPLETED)
    ], "one completed PDF export expected"


@then(parsers.parse('Webex received a file named "{filename}" for room "{room}"'))
def then_webex_file(delivery_context: DeliveryContext, filename: str, room: str) -> None:
    """The message was a multipart upload to the room."""
    requests = delivery_context["requests"]
    assert len(requests) == 1, "exactly one Webex message expected"
    body = requests[0].content
    assert f'filename="{filename}"'.encode() in body, "attachment name missing"
    assert room.encode() in body, "room id missing"
    assert b"%PDF" in body, "attachment should be a PDF"


@then(parsers.parse('the delivery error code is "{code}"'))
def then_error_code(delivery_context: DeliveryContext, code: str) -> None:
    """The failed attempt reports its error code."""
    result = delivery_context["result"]
    assert result.code == code, f"expected {code}, got {result.code}"
    assert len(delivery_context["requests"]) == 1, "no retry expected"
