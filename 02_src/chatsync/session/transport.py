"""Streaming transport over WebSockets."""

from typing import AsyncIterator, Protocol
from urllib.parse import urlencode

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

from ..errors import TransportFailure
from ..logging_config import get_logger

logger = get_logger(__name__)

MAX_FRAME_SIZE = 8192
PING_INTERVAL = 54.0  # 9/10 of the server's 60 s pong wait
PING_TIMEOUT = 10.0


class IConnection(Protocol):
    """One open streaming connection."""

    async def send(self, frame: str) -> None:
        """Send one text frame."""
        ...

    def frames(self) -> AsyncIterator[str | bytes]:
        """Iterate inbound frames until the connection closes.

        Ends normally on a clean close; raises TransportFailure otherwise.
        """
        ...

    async def close(self) -> None:
        """Close the connection; safe to call more than once."""
        ...


class ITransport(Protocol):
    """Factory of streaming connections."""

    async def connect(self, url: str) -> IConnection:
        """Perform the handshake. Raises TransportFailure."""
        ...


def build_stream_url(base_url: str, params: dict[str, str]) -> str:
    """Append connection parameters to the stream endpoint."""
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{urlencode(params)}"


class WebSocketConnection:
    """IConnection backed by a websockets client connection."""

    def __init__(self, ws):
        self._ws = ws

    async def send(self, frame: str) -> None:
        try:
            await self._ws.send(frame)
        except ConnectionClosed as e:
            raise TransportFailure(f"send on closed connection: {e}") from e

    async def frames(self) -> AsyncIterator[str | bytes]:
        while True:
            try:
                frame = await self._ws.recv()
            except ConnectionClosedOK:
                return
            except ConnectionClosed as e:
                raise TransportFailure(f"connection lost: {e}") from e
            yield frame

    async def close(self) -> None:
        await self._ws.close()


class WebSocketTransport:
    """ITransport using the websockets library."""

    def __init__(
        self,
        max_size: int = MAX_FRAME_SIZE,
        ping_interval: float | None = PING_INTERVAL,
        ping_timeout: float | None = PING_TIMEOUT,
    ):
        self._max_size = max_size
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout

    async def connect(self, url: str) -> WebSocketConnection:
        try:
            ws = await websockets.connect(
                url,
                max_size=self._max_size,
                ping_interval=self._ping_interval,
                ping_timeout=self._ping_timeout,
            )
        except (OSError, WebSocketException) as e:
            raise TransportFailure(f"handshake with {url} failed: {e}") from e
        logger.debug("WebSocket open: %s", url)
        return WebSocketConnection(ws)
