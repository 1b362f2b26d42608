"""Minimal async client for the Webex messages and people APIs."""

from __future__ import annotations

import typing as typ

import httpx
import msgspec

from dossier.delivery.errors import DeliveryError
from dossier.storage import DestinationType

if typ.TYPE_CHECKING:
    from dossier.delivery.config import WebexConfig

_HTTP_ERROR_STATUS_THRESHOLD = 400


class _MessageResponse(msgspec.Struct):
    id: str


class WebexMessage(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """A message read back from the API."""

    id: str
    text: str = ""
    room_id: str | None = None
    room_type: str | None = None
    person_id: str | None = None
    person_email: str | None = None


class _Person(msgspec.Struct, kw_only=True):
    emails: tuple[str, ...] = ()


_decoder = msgspec.json.Decoder(_MessageResponse)
_message_decoder = msgspec.json.Decoder(WebexMessage)
_person_decoder = msgspec.json.Decoder(_Person)


def _destination_field(destination_type: DestinationType) -> str:
    if destination_type is DestinationType.EMAIL:
        return "toPersonEmail"
    return "roomId"


class WebexClient:
    """Send and read messages as the configured bot.

    Parameters
    ----------
    config
        Token and endpoint settings.
    http_client
        Optional ``httpx.AsyncClient`` for testing. If not provided, the
        instance creates and owns its own client.

    """

    def __init__(
        self,
        config: WebexConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with configuration."""
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_s)
        self._bot_email: str | None = None

    @property
    def config(self) -> WebexConfig:
        """Active configuration."""
        return self._config

    @property
    def configured(self) -> bool:
        """Whether a bot token is available."""
        return bool(self._config.bot_token)

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        if not self._config.bot_token:
            raise DeliveryError.token_missing()
        return {"Authorization": f"Bearer {self._config.bot_token}"}

    async def send_markdown(
        self,
        destination: str,
        destination_type: DestinationType,
        markdown: str,
    ) -> str:
        """Post a markdown message and return its message id.

        Raises
        ------
        DeliveryError
            Classified by HTTP status, or ``NETWORK_ERROR`` on transport
            failure.

        """
        body = {_destination_field(destination_type): destination, "markdown": markdown}
        return await self._post(json=body)

    async def send_file(  # noqa: PLR0913
        self,
        destination: str,
        destination_type: DestinationType,
        markdown: str,
        *,
        filename: str,
        content: bytes,
        mime_type: str,
    ) -> str:
        """Post a markdown message with one attached file as multipart form data."""
        data = {_destination_field(destination_type): destination, "markdown": markdown}
        files = {"files": (filename, content, mime_type)}
        return await self._post(data=data, files=files)

    async def _post(self, **kwargs: typ.Any) -> str:  # noqa: ANN401
        headers = self._headers()
        try:
            response = await self._client.post(
                self._config.messages_url, headers=headers, **kwargs
            )
        except httpx.RequestError as exc:
            raise DeliveryError.network_error(str(exc) or type(exc).__name__) from exc
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise DeliveryError.from_status(response.status_code, response.text)
        try:
            return _decoder.decode(response.content).id
        except msgspec.DecodeError as exc:
            raise DeliveryError.invalid_response(str(exc)) from exc

    async def get_message(self, message_id: str) -> WebexMessage:
        """Fetch one message, including its plain text.

        Raises
        ------
        DeliveryError
            Classified as for sends.

        """
        response = await self._get(f"{self._config.messages_url}/{message_id}")
        try:
            return _message_decoder.decode(response.content)
        except msgspec.DecodeError as exc:
            raise DeliveryError.invalid_response(str(exc)) from exc

    async def bot_email(self) -> str | None:
        """Return the bot's own address, looked up once and then cached."""
        if self._bot_email is None:
            response = await self._get(self._config.people_me_url)
            try:
                person = _person_decoder.decode(response.content)
            except msgspec.DecodeError as exc:
                raise DeliveryError.invalid_response(str(exc)) from exc
            self._bot_email = person.emails[0].lower() if person.emails else None
        return self._bot_email

    async def _get(self, url: str) -> httpx.Response:
        headers = self._headers()
        try:
            response = await self._client.get(url, headers=headers)
        except httpx.RequestError as exc:
            raise DeliveryError.network_error(str(exc) or type(exc).__name__) from exc
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise DeliveryError.from_status(response.status_code, response.text)
        return response
