"""Inbound webhook resources.

Webex calls these without the identity header; the body signature
authenticates the call instead.

Usage
-----
Register the resource on the Falcon app::

    app.add_route("/webhooks/webex", WebexWebhookResource(context))

"""

from __future__ import annotations

import typing as typ

import msgspec

from dossier.api import serializers
from dossier.api.errors import AuthenticationRequiredError, InvalidInputError
from dossier.webhooks import (
    SIGNATURE_HEADER,
    WebhookNotConfiguredError,
    WebhookPayload,
    verify,
)

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from dossier.context import AppContext

__all__ = ["WebexWebhookResource"]


class WebexWebhookResource:
    """``POST /webhooks/webex`` accepts bot message notifications.

    The body must carry a valid ``X-Spark-Signature``; unsigned or
    mis-signed calls answer 401 and nothing is processed. Accepted
    notifications are handled in the background and answered 200 at once.
    """

    requires_user = False

    def __init__(self, context: AppContext) -> None:
        """Bind the resource to the application context."""
        self._webhooks = context.webhooks

    async def on_post(self, req: Request, resp: Response) -> None:
        """Verify, decode and hand the notification to the webhook service."""
        secret = self._webhooks.config.secret
        if secret is None:
            raise WebhookNotConfiguredError.missing_secret()
        body = await req.stream.read()
        signature = req.get_header(SIGNATURE_HEADER)
        if not signature:
            raise AuthenticationRequiredError.missing_signature(SIGNATURE_HEADER)
        if not verify(body, signature, secret):
            raise AuthenticationRequiredError.invalid_signature()
        try:
            payload = msgspec.json.decode(body, type=WebhookPayload)
        except msgspec.DecodeError as exc:
            raise InvalidInputError(str(exc)) from exc
        self._webhooks.accept(payload)
        resp.media = serializers.envelope({"received": True})
