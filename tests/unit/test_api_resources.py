"""Unit tests for the Dossier domain resources.

Services are replaced with ``AsyncMock`` objects on a mock application
context; the tests check request decoding, status codes and the success
envelope.

Usage
-----
Run with pytest::

    pytest tests/unit/test_api_resources.py

"""

from __future__ import annotations

import datetime as dt
import typing as typ
from unittest import mock

import falcon
import falcon.testing
import pytest

from dossier.api.app import AppDependencies, create_app
from dossier.api.config import ApiConfig
from dossier.cleanup import CleanupAlreadyRunningError
from dossier.cleanup.processor import CleanupStats
from dossier.exports.service import ExportDownload
from dossier.reports import (
    DashboardSummary,
    ReportNotFoundError,
    TrendPoint,
    WorkflowShare,
)
from dossier.reports.service import ReportPage
from dossier.storage import (
    DeliveryStatus,
    DestinationType,
    DocumentExport,
    ExportFormat,
    ExportStatus,
    ExportTrigger,
    PodcastDuration,
    PodcastGeneration,
    PodcastStatus,
    PodcastTemplate,
    Report,
    ReportDelivery,
    ReportStatus,
    WorkflowType,
)
from dossier.webhooks import WebhookConfig, WebhookPayload, sign

if typ.TYPE_CHECKING:
    from pathlib import Path

HEADERS = {"X-Dossier-User": "user-1"}
WEBHOOK_SECRET = "s3cret"
CREATED = dt.datetime(2024, 7, 10, 12, 0, tzinfo=dt.UTC)


def _report(status: ReportStatus = ReportStatus.COMPLETED) -> Report:
    return Report(
        id="r-1",
        owner_id="user-1",
        title="Acme briefing",
        workflow_type=WorkflowType.ACCOUNT_INTELLIGENCE,
        status=status,
        configuration={"sections": ["account_overview"]},
        input_data={"company_name": "Acme"},
        requested_formats=["PDF"],
        created_at=CREATED,
        updated_at=CREATED,
    )


def _export(status: ExportStatus) -> DocumentExport:
    return DocumentExport(
        id=f"e-{status.lower()}",
        report_id="r-1",
        format=ExportFormat.PDF,
        status=status,
        triggered_by=ExportTrigger.ON_DEMAND,
        retry_count=0,
        created_at=CREATED,
        expires_at=CREATED + dt.timedelta(days=30),
    )


@pytest.fixture
def context() -> mock.MagicMock:
    """Build a mock application context with async services."""
    ctx = mock.MagicMock()
    ctx.processors = []
    ctx.reports.list_reports = mock.AsyncMock(
        return_value=ReportPage(reports=[_report()], total=7)
    )
    ctx.reports.create_report = mock.AsyncMock(
        return_value=_report(ReportStatus.PENDING)
    )
    ctx.reports.get_report = mock.AsyncMock(side_effect=ReportNotFoundError.for_id("r-9"))
    ctx.reports.retry_report = mock.AsyncMock(return_value=_report(ReportStatus.PENDING))
    ctx.exports.request_exports = mock.AsyncMock(
        return_value=[_export(ExportStatus.PENDING), _export(ExportStatus.COMPLETED)]
    )
    ctx.cleanup.run_cleanup = mock.AsyncMock(return_value=CleanupStats(reports_deleted=2))
    ctx.webhooks.config = WebhookConfig(secret=WEBHOOK_SECRET)
    ctx.analytics.dashboard_summary = mock.AsyncMock(
        return_value=DashboardSummary(
            total_reports=5,
            reports_this_week=2,
            reports_this_month=4,
            success_rate=80,
            reports_change=100,
            active_schedules=1,
            total_templates=3,
        )
    )
    ctx.analytics.report_trends = mock.AsyncMock(
        return_value=[
            TrendPoint(
                date=CREATED.date(),
                workflow_type=WorkflowType.NEWS_DIGEST,
                total=3,
                completed=2,
                failed=1,
                avg_duration_ms=None,
            )
        ]
    )
    ctx.analytics.workflow_distribution = mock.AsyncMock(
        return_value=[
            WorkflowShare(
                workflow_type=WorkflowType.NEWS_DIGEST, count=3, percentage=100
            )
        ]
    )
    return ctx


@pytest.fixture
def client(context: mock.MagicMock) -> falcon.testing.TestClient:
    """Build a test client over the mock context."""
    deps = AppDependencies(
        context=context,
        manage_lifespan=False,
        config=ApiConfig(admin_users=frozenset({"user-1"})),
    )
    return falcon.testing.TestClient(create_app(deps))


class TestReportCollection:
    """Tests for GET and POST /reports."""

    def test_list_returns_page_and_total(
        self, client: falcon.testing.TestClient, context: mock.MagicMock
    ) -> None:
        """The listing wraps one page and the unpaged total in the envelope."""
        result = client.simulate_get(
            "/reports",
            headers=HEADERS,
            params={"status": "COMPLETED", "limit": "5", "offset": "10"},
        )

        assert result.status == falcon.HTTP_200, "expected HTTP 200"
        assert result.json["success"] is True, "expected success envelope"
        assert result.json["data"]["total"] == 7, "wrong total"
        assert [r["id"] for r in result.json["data"]["reports"]] == ["r-1"]
        context.reports.list_reports.assert_awaited_once_with(
            "user-1",
            workflow_type=None,
            status=ReportStatus.COMPLETED,
            limit=5,
            offset=10,
        )

    @pytest.mark.parametrize(
        "params",
        [{"limit": "0"}, {"limit": "101"}, {"offset": "-1"}, {"status": "DONE"}],
    )
    def test_bad_query_is_400(
        self,
        client: falcon.testing.TestClient,
        context: mock.MagicMock,
        params: dict[str, str],
    ) -> None:
        """Out-of-range paging and unknown statuses are rejected."""
        result = client.simulate_get("/reports", headers=HEADERS, params=params)

        assert result.status == falcon.HTTP_400, "expected HTTP 400"
        assert result.json["error"]["code"] == "INVALID_INPUT", "wrong error code"
        context.reports.list_reports.assert_not_awaited()

    def test_create_returns_201(
        self, client: falcon.testing.TestClient, context: mock.MagicMock
    ) -> None:
        """A valid body becomes a CreateReportInput for the caller."""
        result = client.simulate_post(
            "/reports",
            headers=HEADERS,
            json={
                "title": "Acme briefing",
                "workflow_type": "ACCOUNT_INTELLIGENCE",
                "input_data": {"company_name": "Acme"},
                "requested_formats": ["PDF"],
            },
        )

        assert result.status == falcon.HTTP_201, "expected HTTP 201"
        assert result.json["data"]["status"] == "PENDING", "wrong status"
        request = context.reports.create_report.await_args.args[0]
        assert request.owner_id == "user-1", "caller id not used as owner"
        assert request.input_data.company_name == "Acme", "input not decoded"
        assert request.requested_formats == (ExportFormat.PDF,), "formats not decoded"

    def test_create_with_unknown_workflow_is_400(
        self, client: falcon.testing.TestClient, context: mock.MagicMock
    ) -> None:
        """Bodies that do not match the schema never reach the service."""
        result = client.simulate_post(
            "/reports",
            headers=HEADERS,
            json={"title": "x", "workflow_type": "HOROSCOPE"},
        )

        assert result.status == falcon.HTTP_400, "expected HTTP 400"
        context.reports.create_report.assert_not_awaited()


class TestReportItem:
    """Tests for single-report routes."""

    def test_missing_report_is_404(self, client: falcon.testing.TestClient) -> None:
        """Not-found errors from the service become 404 envelopes."""
        result = client.simulate_get("/reports/r-9", headers=HEADERS)

        assert result.status == falcon.HTTP_404, "expected HTTP 404"
        assert result.json["error"]["code"] == "NOT_FOUND", "wrong error code"

    def test_retry_returns_202(
        self, client: falcon.testing.TestClient, context: mock.MagicMock
    ) -> None:
        """Retry accepts the report back into generation."""
        result = client.simulate_post("/reports/r-1/retry", headers=HEADERS)

        assert result.status == falcon.HTTP_202, "expected HTTP 202"
        context.reports.retry_report.assert_awaited_once_with("r-1", "user-1")

    def test_unknown_workflow_sections_is_400(
        self, client: falcon.testing.TestClient
    ) -> None:
        """Only known workflow names are accepted."""
        result = client.simulate_get("/workflows/HOROSCOPE/sections", headers=HEADERS)

        assert result.status == falcon.HTTP_400, "expected HTTP 400"


class TestExports:
    """Tests for export requests and downloads."""

    def test_request_dispatches_pending_jobs(
        self, client: falcon.testing.TestClient, context: mock.MagicMock
    ) -> None:
        """Only PENDING jobs are handed to the export processor."""
        result = client.simulate_post(
            "/reports/r-1/exports", headers=HEADERS, json={"formats": ["PDF", "DOCX"]}
        )

        assert result.status == falcon.HTTP_202, "expected HTTP 202"
        assert len(result.json["data"]) == 2, "expected both jobs in response"
        context.exports.request_exports.assert_awaited_once_with(
            "r-1",
            "user-1",
            (ExportFormat.PDF, ExportFormat.DOCX),
            ExportTrigger.ON_DEMAND,
        )
        context.export_processor.dispatch.assert_called_once_with("e-pending")

    def test_empty_body_defaults_to_pdf(
        self, client: falcon.testing.TestClient, context: mock.MagicMock
    ) -> None:
        """Without a format the request is for PDF."""
        client.simulate_post("/reports/r-1/exports", headers=HEADERS)

        formats = context.exports.request_exports.await_args.args[2]
        assert formats == (ExportFormat.PDF,), "expected PDF default"

    def test_download_streams_file(
        self,
        client: falcon.testing.TestClient,
        context: mock.MagicMock,
        tmp_path: Path,
    ) -> None:
        """A completed export is streamed as an attachment."""
        path = tmp_path / "export.pdf"
        path.write_bytes(b"%PDF-1.4 body")
        context.exports.get_download = mock.AsyncMock(
            return_value=ExportDownload(
                path=path,
                filename="Acme_briefing.pdf",
                mime_type="application/pdf",
                size=path.stat().st_size,
            )
        )

        result = client.simulate_get("/reports/r-1/exports/pdf/download", headers=HEADERS)

        assert result.status == falcon.HTTP_200, "expected HTTP 200"
        assert result.content == b"%PDF-1.4 body", "wrong file body"
        assert "Acme_briefing.pdf" in result.headers["content-disposition"]
        context.exports.get_download.assert_awaited_once_with(
            "r-1", "user-1", ExportFormat.PDF
        )

    def test_unknown_download_format_is_400(
        self, client: falcon.testing.TestClient
    ) -> None:
        """Download formats are validated before the service is called."""
        result = client.simulate_get("/reports/r-1/exports/xls/download", headers=HEADERS)

        assert result.status == falcon.HTTP_400, "expected HTTP 400"


class TestCleanup:
    """Tests for POST /admin/cleanup."""

    def test_manual_run_returns_stats(
        self, client: falcon.testing.TestClient, context: mock.MagicMock
    ) -> None:
        """The sweep's counters are returned in the envelope."""
        result = client.simulate_post("/admin/cleanup", headers=HEADERS)

        assert result.status == falcon.HTTP_200, "expected HTTP 200"
        assert result.json["data"]["reports_deleted"] == 2, "wrong counters"
        context.cleanup.run_cleanup.assert_awaited_once_with(manual=True)

    def test_concurrent_run_is_409(
        self, client: falcon.testing.TestClient, context: mock.MagicMock
    ) -> None:
        """A sweep already in progress answers 409."""
        context.cleanup.run_cleanup.side_effect = CleanupAlreadyRunningError.in_progress()

        result = client.simulate_post("/admin/cleanup", headers=HEADERS)

        assert result.status == falcon.HTTP_409, "expected HTTP 409"
        assert result.json["error"]["code"] == "CLEANUP_RUNNING", "wrong error code"

    def test_non_admin_is_403(
        self, client: falcon.testing.TestClient, context: mock.MagicMock
    ) -> None:
        """Callers outside the admin allow-list cannot start a sweep."""
        result = client.simulate_post(
            "/admin/cleanup", headers={"X-Dossier-User": "user-2"}
        )

        assert result.status == falcon.HTTP_403, "expected HTTP 403"
        assert result.json["error"]["code"] == "FORBIDDEN", "wrong error code"
        context.cleanup.run_cleanup.assert_not_awaited()

    def test_empty_allow_list_admits_nobody(self, context: mock.MagicMock) -> None:
        """Without configured admins the endpoint is closed to everyone."""
        client = falcon.testing.TestClient(
            create_app(AppDependencies(context=context, manage_lifespan=False))
        )

        result = client.simulate_post("/admin/cleanup", headers=HEADERS)

        assert result.status == falcon.HTTP_403, "expected HTTP 403"
        context.cleanup.run_cleanup.assert_not_awaited()


class TestDeliveriesAndPodcasts:
    """Tests for delivery scheduling and podcast requests."""

    def test_delivery_is_scheduled_and_dispatched(
        self, client: falcon.testing.TestClient, context: mock.MagicMock
    ) -> None:
        """A new delivery is handed straight to the delivery processor."""
        context.delivery.schedule_delivery = mock.AsyncMock(
            return_value=ReportDelivery(
                id="d-1",
                report_id="r-1",
                destination="room-1",
                destination_type=DestinationType.ROOM_ID,
                status=DeliveryStatus.PENDING,
                retry_count=0,
            )
        )

        result = client.simulate_post(
            "/reports/r-1/deliveries",
            headers=HEADERS,
            json={"destination": "room-1", "destination_type": "roomId"},
        )

        assert result.status == falcon.HTTP_202, "expected HTTP 202"
        options = context.delivery.schedule_delivery.await_args.args[2]
        assert options.destination_type is DestinationType.ROOM_ID, "body not decoded"
        context.delivery_processor.dispatch_report.assert_called_once_with("d-1")

    @pytest.mark.parametrize(
        ("status", "dispatched"),
        [(PodcastStatus.PENDING, True), (PodcastStatus.COMPLETED, False)],
    )
    def test_podcast_request_dispatches_pending_only(
        self,
        client: falcon.testing.TestClient,
        context: mock.MagicMock,
        status: PodcastStatus,
        *,
        dispatched: bool,
    ) -> None:
        """An existing finished episode is returned without new work."""
        context.podcasts.request_podcast = mock.AsyncMock(
            return_value=PodcastGeneration(
                id="p-1",
                report_id="r-1",
                template=PodcastTemplate.EXECUTIVE_BRIEF,
                duration=PodcastDuration.STANDARD,
                status=status,
                retry_count=0,
                created_at=CREATED,
                expires_at=CREATED + dt.timedelta(days=30),
            )
        )

        result = client.simulate_post(
            "/reports/r-1/podcast", headers=HEADERS, json={"duration": "SHORT"}
        )

        assert result.status == falcon.HTTP_202, "expected HTTP 202"
        kwargs = context.podcasts.request_podcast.await_args.kwargs
        assert kwargs["duration"] is PodcastDuration.SHORT, "duration not decoded"
        assert kwargs["triggered_by"] is ExportTrigger.ON_DEMAND
        assert context.podcast_processor.dispatch.called is dispatched


class TestNextRuns:
    """Tests for GET /schedules/next-runs."""

    def test_preview_returns_iso_times(
        self, client: falcon.testing.TestClient, context: mock.MagicMock
    ) -> None:
        """Fire times are returned as ISO strings."""
        context.schedules.get_next_runs.return_value = [
            dt.datetime(2024, 7, 15, 9, 0, tzinfo=dt.UTC)
        ]

        result = client.simulate_get(
            "/schedules/next-runs",
            headers=HEADERS,
            params={"cron": "0 9 * * MON", "timezone": "UTC", "count": "1"},
        )

        assert result.status == falcon.HTTP_200, "expected HTTP 200"
        assert result.json["data"] == {
            "cron": "0 9 * * MON",
            "next_runs": ["2024-07-15T09:00:00+00:00"],
        }
        context.schedules.get_next_runs.assert_called_once_with("0 9 * * MON", "UTC", 1)

    @pytest.mark.parametrize(
        "params", [{}, {"cron": "0 9 * * MON", "count": "51"}]
    )
    def test_preview_validates_query(
        self, client: falcon.testing.TestClient, params: dict[str, str]
    ) -> None:
        """The expression is required and the count is bounded."""
        result = client.simulate_get("/schedules/next-runs", headers=HEADERS, params=params)

        assert result.status == falcon.HTTP_400, "expected HTTP 400"


class TestAnalytics:
    """Tests for the /analytics routes."""

    def test_dashboard_returns_counters(
        self, client: falcon.testing.TestClient
    ) -> None:
        """The summary counters are returned as-is."""
        result = client.simulate_get("/analytics/dashboard", headers=HEADERS)

        assert result.status == falcon.HTTP_200, "expected HTTP 200"
        assert result.json["data"]["total_reports"] == 5
        assert result.json["data"]["success_rate"] == 80

    def test_trends_pass_the_window(
        self, client: falcon.testing.TestClient, context: mock.MagicMock
    ) -> None:
        """Naive timestamps are read as UTC and dates are ISO strings."""
        result = client.simulate_get(
            "/analytics/trends",
            headers=HEADERS,
            params={"start": "2024-07-01T00:00:00", "end": "2024-07-10T00:00:00Z"},
        )

        assert result.status == falcon.HTTP_200, "expected HTTP 200"
        assert result.json["data"][0]["date"] == "2024-07-10"
        assert result.json["data"][0]["total"] == 3
        context.analytics.report_trends.assert_awaited_once_with(
            dt.datetime(2024, 7, 1, tzinfo=dt.UTC),
            dt.datetime(2024, 7, 10, tzinfo=dt.UTC),
        )

    def test_distribution_defaults_to_no_window(
        self, client: falcon.testing.TestClient, context: mock.MagicMock
    ) -> None:
        """Without query parameters the service picks its own window."""
        result = client.simulate_get("/analytics/distribution", headers=HEADERS)

        assert result.status == falcon.HTTP_200, "expected HTTP 200"
        assert result.json["data"] == [
            {"workflow_type": "NEWS_DIGEST", "count": 3, "percentage": 100}
        ]
        context.analytics.workflow_distribution.assert_awaited_once_with(None, None)

    @pytest.mark.parametrize(
        "params",
        [
            {"start": "last tuesday"},
            {"start": "2024-07-10T00:00:00Z", "end": "2024-07-01T00:00:00Z"},
        ],
    )
    def test_bad_window_is_400(
        self,
        client: falcon.testing.TestClient,
        context: mock.MagicMock,
        params: dict[str, str],
    ) -> None:
        """Malformed or inverted windows never reach the service."""
        result = client.simulate_get("/analytics/trends", headers=HEADERS, params=params)

        assert result.status == falcon.HTTP_400, "expected HTTP 400"
        assert result.json["error"]["code"] == "INVALID_INPUT", "wrong error code"
        context.analytics.report_trends.assert_not_awaited()


class TestWebexWebhook:
    """Tests for POST /webhooks/webex."""

    BODY = (
        b'{"resource": "messages", "event": "created",'
        b' "data": {"id": "m-1", "roomId": "room-1", "personEmail": "ana@acme.test"}}'
    )

    def test_signed_notification_is_accepted(
        self, client: falcon.testing.TestClient, context: mock.MagicMock
    ) -> None:
        """A correctly signed body is decoded and handed over without a user header."""
        result = client.simulate_post(
            "/webhooks/webex",
            body=self.BODY,
            headers={"X-Spark-Signature": sign(self.BODY, WEBHOOK_SECRET)},
        )

        assert result.status == falcon.HTTP_200, "expected HTTP 200"
        assert result.json["data"] == {"received": True}
        payload = context.webhooks.accept.call_args.args[0]
        assert isinstance(payload, WebhookPayload)
        assert payload.data.room_id == "room-1", "camel-case fields not decoded"

    @pytest.mark.parametrize(
        "headers",
        [{}, {"X-Spark-Signature": "0" * 40}],
        ids=["missing", "wrong"],
    )
    def test_unsigned_notification_is_401(
        self,
        client: falcon.testing.TestClient,
        context: mock.MagicMock,
        headers: dict[str, str],
    ) -> None:
        """Missing or mismatched signatures are refused before decoding."""
        result = client.simulate_post("/webhooks/webex", body=self.BODY, headers=headers)

        assert result.status == falcon.HTTP_401, "expected HTTP 401"
        assert result.json["error"]["code"] == "INVALID_SIGNATURE", "wrong error code"
        context.webhooks.accept.assert_not_called()

    def test_malformed_body_is_400(
        self, client: falcon.testing.TestClient, context: mock.MagicMock
    ) -> None:
        """A signed body that is not a notification is rejected."""
        body = b'{"resource": "messages"}'
        result = client.simulate_post(
            "/webhooks/webex",
            body=body,
            headers={"X-Spark-Signature": sign(body, WEBHOOK_SECRET)},
        )

        assert result.status == falcon.HTTP_400, "expected HTTP 400"
        context.webhooks.accept.assert_not_called()

    def test_missing_secret_is_500(
        self, client: falcon.testing.TestClient, context: mock.MagicMock
    ) -> None:
        """Without a shared secret no notification can be verified."""
        context.webhooks.config = WebhookConfig()

        result = client.simulate_post(
            "/webhooks/webex",
            body=self.BODY,
            headers={"X-Spark-Signature": sign(self.BODY, WEBHOOK_SECRET)},
        )

        assert result.status == falcon.HTTP_500, "expected HTTP 500"
        assert result.json["error"]["code"] == "WEBHOOK_NOT_CONFIGURED"
        context.webhooks.accept.assert_not_called()
