"""
Transport boundary of the conversation engine.

The engine only needs four things from a transport: an async stream of decoded
server events, a synchronous ``send``, an observable :class:`ConnectionStatus`
and ``connect``/``disconnect``. :class:`WebSocketTransport` provides them over
a websocket connection.
"""

import asyncio
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, Optional, Protocol, runtime_checkable
from urllib.parse import urlencode

import backoff
from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import (
    ConnectionClosedError,
    ConnectionClosedOK,
    InvalidStatus,
    WebSocketException,
)

from src.realtime_api import config
from src.realtime_api.errors import (
    EventDecodeError,
    HandshakeError,
    InvalidCredentialError,
    NotConnectedError,
    TransportError,
)
from src.realtime_api.event_handler import RealtimeEventHandler
from src.realtime_api.events import ClientEvent, ServerEvent, decode_server_event
from src.realtime_api.session import Model
from utils.ml_logging import get_logger

logger = get_logger("realtime_api.transport")


class ConnectionStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@runtime_checkable
class Transport(Protocol):
    """What the conversation engine needs from a connection."""

    status: ConnectionStatus

    async def connect(self, **kwargs: Any) -> None: ...

    async def disconnect(self) -> None: ...

    def events(self) -> AsyncIterator[ServerEvent]: ...

    def send(self, event: ClientEvent) -> None: ...

    def on(self, event_name: str, handler: Callable[[Any], Any]) -> Any: ...


def _is_permanent(exc: Exception) -> bool:
    """Handshake rejections below 500 (bad key, bad model) are not worth retrying."""
    if isinstance(exc, InvalidStatus):
        return exc.response.status_code < 500
    return False


class WebSocketTransport(RealtimeEventHandler):
    """
    Websocket connection to the realtime endpoint.

    Outbound events are queued and written by a single writer task, so
    ``send`` never waits on the socket and events reach the wire in the order
    they were sent. Observers can subscribe to:

    - ``client.<type>`` / ``client.*``: an event was queued for sending
    - ``server.<type>`` / ``server.*``: an event was received and decoded
    - ``transport.error``: a frame could not be decoded or a write failed
    """

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tries: Optional[int] = None,
        open_timeout: Optional[float] = None,
    ) -> None:
        super().__init__()
        self.url = url or config.OPENAI_REALTIME_URL
        self.api_key = api_key if api_key is not None else config.OPENAI_API_KEY
        self.model = str(model or config.OPENAI_REALTIME_MODEL)
        self.max_tries = max_tries or config.REALTIME_CONNECT_MAX_TRIES
        self.open_timeout = open_timeout or config.REALTIME_OPEN_TIMEOUT
        self.status = ConnectionStatus.DISCONNECTED
        self.ws: Optional[ClientConnection] = None
        self._outbound: Optional["asyncio.Queue[ClientEvent]"] = None
        self._writer_task: Optional[asyncio.Task] = None

    def is_connected(self) -> bool:
        return self.ws is not None and self.status == ConnectionStatus.CONNECTED

    def connection_url(self, model: Optional[str] = None) -> str:
        return f"{self.url}?{urlencode({'model': str(model or self.model)})}"

    async def _open(self, url: str, headers: Dict[str, str]) -> ClientConnection:
        return await ws_connect(
            url,
            additional_headers=headers,
            open_timeout=self.open_timeout,
            max_size=2**24,
        )

    async def connect(
        self, api_key: Optional[str] = None, model: Optional[str] = None
    ) -> None:
        """
        Open the websocket connection.

        Transient failures (network errors, 5xx handshake responses) are retried
        with exponential backoff up to ``max_tries`` attempts.

        Raises:
            InvalidCredentialError: the server rejected the key (HTTP 401/403).
            HandshakeError: the connection could not be established.
        """
        if self.is_connected():
            raise TransportError("Already connected, use disconnect() first")

        api_key = api_key or self.api_key
        if not api_key:
            raise InvalidCredentialError(401)
        if isinstance(model, Model):
            model = model.value
        url = self.connection_url(model)
        headers = {"Authorization": f"Bearer {api_key}"}

        self.status = ConnectionStatus.CONNECTING
        logger.info(f"Connecting to Realtime API at {url}")
        opener = backoff.on_exception(
            backoff.expo,
            (OSError, asyncio.TimeoutError, InvalidStatus),
            max_tries=self.max_tries,
            giveup=_is_permanent,
            logger=logger,
        )(self._open)
        try:
            self.ws = await opener(url, headers)
        except InvalidStatus as e:
            self.status = ConnectionStatus.DISCONNECTED
            status_code = e.response.status_code
            logger.error(f"Handshake rejected with HTTP {status_code}")
            if status_code in (401, 403):
                raise InvalidCredentialError(status_code) from e
            raise HandshakeError(self.url, f"HTTP {status_code}") from e
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            self.status = ConnectionStatus.DISCONNECTED
            logger.error(f"Failed to connect to WebSocket: {e}")
            raise HandshakeError(self.url, str(e) or type(e).__name__) from e

        self._outbound = asyncio.Queue()
        self._writer_task = asyncio.create_task(self._write_messages())
        self.status = ConnectionStatus.CONNECTED
        logger.info("✅ Connected to Realtime API")

    async def events(self) -> AsyncIterator[ServerEvent]:
        """
        Decoded server events until the connection closes.

        Undecodable frames are logged, reported as ``transport.error`` and
        skipped. A graceful close ends the iteration; an abnormal one raises
        :class:`TransportError`.
        """
        if self.ws is None:
            raise NotConnectedError()
        try:
            async for message in self.ws:
                try:
                    event = decode_server_event(message)
                except EventDecodeError as e:
                    logger.error(f"Dropping undecodable frame: {e}")
                    self.dispatch("transport.error", e)
                    continue
                self.dispatch(f"server.{event.type}", event)
                self.dispatch("server.*", event)
                yield event
        except ConnectionClosedOK:
            logger.info("WebSocket closed by server")
        except ConnectionClosedError as e:
            raise TransportError(f"WebSocket closed abnormally: {e}") from e
        finally:
            self.status = ConnectionStatus.DISCONNECTED

    def send(self, event: ClientEvent) -> None:
        """
        Queue one client event for sending.

        Raises:
            NotConnectedError: the transport is not connected.
        """
        if not self.is_connected() or self._outbound is None:
            raise NotConnectedError(event.type)
        self.dispatch(f"client.{event.type}", event)
        self.dispatch("client.*", event)
        self._outbound.put_nowait(event)

    async def _write_messages(self) -> None:
        while True:
            event = await self._outbound.get()
            try:
                await self.ws.send(event.to_json())
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error sending {event.type}: {e}")
                self.dispatch("transport.error", e)

    async def disconnect(self) -> None:
        """
        Stop the writer task and close the websocket.
        """
        if self._writer_task is not None:
            self._writer_task.cancel()
            try:
                await self._writer_task
            except asyncio.CancelledError:
                pass
            self._writer_task = None
        self._outbound = None

        if self.ws is not None:
            ws, self.ws = self.ws, None
            try:
                await ws.close()
                logger.info(f"Disconnected from {self.url}")
            except WebSocketException as e:
                logger.error(f"Error during WebSocket disconnect: {e}")
        self.status = ConnectionStatus.DISCONNECTED
