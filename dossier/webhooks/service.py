"""Turn chat messages sent to the Webex bot into report requests.

A notification only carries the message id, so each one is handled in
the background: the message is fetched, read by the LLM into a
:class:`~dossier.webhooks.models.ReportRequest` and passed to
:meth:`ReportService.create_report` with a delivery back to where it
came from. Direct messages are answered by email address, group rooms
by room id. Every outcome other than an ignored notification gets a
reply in the conversation.

Usage
-----
>>> service = WebexWebhookService(reports, webex, RequestParser(completion))
>>> service.accept(payload)
>>> await service.stop()

"""

from __future__ import annotations

import asyncio
import math
import re
import typing as typ

from dossier.activity import ActivityAction
from dossier.delivery.errors import DeliveryError
from dossier.logging import get_logger, log_exception, log_warning
from dossier.reports import WORKFLOW_LABELS, CreateReportInput, DeliveryOptions, ReportInput
from dossier.storage import DeliveryContent, DestinationType, ExportFormat
from dossier.webhooks.config import WebhookConfig
from dossier.webhooks.errors import MessageParseError
from dossier.webhooks.models import DIRECT_ROOM
from dossier.webhooks.observability import WebhookEventLogger, WebhookOutcome
from dossier.webhooks.ratelimit import SlidingWindowLimiter

if typ.TYPE_CHECKING:
    from dossier.activity import ActivityRecorder
    from dossier.delivery.webex import WebexClient
    from dossier.reports import ReportService
    from dossier.storage import Report
    from dossier.webhooks.models import ReportRequest, WebhookData, WebhookPayload
    from dossier.webhooks.parser import RequestParser

logger = get_logger(__name__)

HELP_COMMAND = re.compile(r"^(help|menu|options|form|show form|build report)$", re.IGNORECASE)

HELP_TEXT = (
    "**Ask me for a report in plain words.** For example:\n\n"
    "- *Account intelligence on Acme*\n"
    "- *Detailed competitive intelligence for Globex*\n"
    "- *News digest for Acme, Globex and Initech*\n\n"
    "Reports come back here as a PDF once they are ready."
)
FAILURE_TEXT = "Failed to create your report. Please try again later."


def _label(request: ReportRequest) -> str:
    return WORKFLOW_LABELS[request.workflow_type]


class WebexWebhookService:
    """Handle Webex message notifications addressed to the bot.

    Parameters
    ----------
    reports
        Report service that creates and generates the requested report.
    webex
        Client used to read messages and post replies.
    parser
        Reads report requests out of message text.
    config
        Sender, rate and shutdown settings.
    activity
        Optional audit trail recorder.
    limiter
        Per-sender rate limiter; built from ``config`` when omitted.

    """

    def __init__(  # noqa: PLR0913
        self,
        reports: ReportService,
        webex: WebexClient,
        parser: RequestParser,
        config: WebhookConfig | None = None,
        *,
        activity: ActivityRecorder | None = None,
        limiter: SlidingWindowLimiter | None = None,
    ) -> None:
        """Bind the service to its collaborators."""
        self._reports = reports
        self._webex = webex
        self._parser = parser
        self._config = config or WebhookConfig()
        self._activity = activity
        self._limiter = limiter or SlidingWindowLimiter(
            self._config.rate_limit, self._config.rate_window_s
        )
        self._events = WebhookEventLogger()
        self._tasks: set[asyncio.Task[WebhookOutcome]] = set()

    @property
    def config(self) -> WebhookConfig:
        """Active configuration."""
        return self._config

    def accept(self, payload: WebhookPayload) -> None:
        """Handle ``payload`` in the background."""
        task = asyncio.create_task(self.handle(payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for every message still being handled."""
        while self._tasks:
            await asyncio.gather(*set(self._tasks), return_exceptions=True)

    async def stop(self, timeout: float | None = None) -> bool:
        """Wait a bounded time for messages in hand, then cancel the rest.

        Returns
        -------
        bool
            ``True`` if nothing had to be cancelled.

        """
        limit = self._config.stop_timeout if timeout is None else timeout
        tasks = set(self._tasks)
        if not tasks:
            return True
        _done, pending = await asyncio.wait(tasks, timeout=limit)
        if not pending:
            return True
        log_warning(logger, "Abandoning %s webhook message(s) after %ss", len(pending), limit)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        return False

    async def handle(self, payload: WebhookPayload) -> WebhookOutcome:
        """Handle one notification and return what became of it.

        Failures are logged and answered with a generic reply; they never
        propagate.
        """
        data = payload.data
        if not payload.is_new_message:
            return WebhookOutcome.IGNORED
        self._events.log_received(message_id=data.id, room_type=data.room_type)
        sender = (data.person_email or "").strip().lower() or None
        report_id: str | None = None
        try:
            outcome, report_id = await self._handle_message(data, sender)
        except Exception as exc:  # noqa: BLE001 - the webhook has already been acknowledged
            log_exception(logger, f"Failed to handle webhook message {data.id}", exc)
            await self._reply(data, sender, FAILURE_TEXT)
            outcome = WebhookOutcome.FAILED
        self._events.log_handled(
            message_id=data.id, outcome=outcome, sender=sender, report_id=report_id
        )
        return outcome

    async def _handle_message(
        self, data: WebhookData, sender: str | None
    ) -> tuple[WebhookOutcome, str | None]:
        if sender is None or sender == await self._webex.bot_email():
            return WebhookOutcome.IGNORED, None
        if not self._config.allows(sender):
            return WebhookOutcome.DOMAIN_REJECTED, None
        if not self._limiter.hit(sender):
            wait = math.ceil(self._limiter.retry_after(sender))
            await self._reply(
                data,
                sender,
                f"Rate limit exceeded. Please wait {wait} seconds before trying again.",
            )
            return WebhookOutcome.RATE_LIMITED, None

        message = await self._webex.get_message(data.id)
        text = message.text.strip()
        if not text:
            return WebhookOutcome.IGNORED, None
        if HELP_COMMAND.match(text):
            await self._reply(data, sender, HELP_TEXT)
            return WebhookOutcome.HELP, None
        try:
            request = await self._parser.parse(text)
        except MessageParseError as exc:
            await self._reply(data, sender, str(exc))
            return WebhookOutcome.NOT_UNDERSTOOD, None

        report = await self._reports.create_report(self._create_input(request, data, sender))
        await self._acknowledge(data, sender, request)
        await self._record(sender, data, report)
        return WebhookOutcome.REPORT_CREATED, report.id

    @staticmethod
    def _create_input(
        request: ReportRequest, data: WebhookData, sender: str
    ) -> CreateReportInput:
        if data.room_type != DIRECT_ROOM and data.room_id:
            destination, destination_type = data.room_id, DestinationType.ROOM_ID
        else:
            destination, destination_type = sender, DestinationType.EMAIL
        return CreateReportInput(
            owner_id=sender,
            title=f"{request.company} - {_label(request)}",
            workflow_type=request.workflow_type,
            input_data=ReportInput(
                company_name=request.company, company_names=request.companies
            ),
            depth=request.depth,
            requested_formats=(ExportFormat.PDF,),
            delivery=DeliveryOptions(
                destination=destination,
                destination_type=destination_type,
                content_type=DeliveryContent.ATTACHMENT,
                format=ExportFormat.PDF,
            ),
        )

    async def _acknowledge(
        self, data: WebhookData, sender: str, request: ReportRequest
    ) -> None:
        others = ""
        if request.additional_companies:
            others = f" (with {', '.join(request.additional_companies)})"
        await self._reply(
            data,
            sender,
            f"Generating **{_label(request)}** for **{request.company}**{others} "
            f"at {request.depth} depth. I'll send it here when it's ready "
            "(usually 2-3 minutes).",
        )

    async def _reply(self, data: WebhookData, sender: str | None, markdown: str) -> None:
        if data.room_id:
            destination, destination_type = data.room_id, DestinationType.ROOM_ID
        elif sender:
            destination, destination_type = sender, DestinationType.EMAIL
        else:
            return
        try:
            await self._webex.send_markdown(destination, destination_type, markdown)
        except DeliveryError as exc:
            self._events.log_reply_failed(message_id=data.id, error=exc)

    async def _record(self, sender: str, data: WebhookData, report: Report) -> None:
        if self._activity is not None:
            await self._activity.record(
                sender,
                ActivityAction.WEBEX_REQUEST,
                report_id=report.id,
                message_id=data.id,
                room_type=data.room_type,
            )
