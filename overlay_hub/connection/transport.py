"""Upstream socket transport.

``Transport`` is the narrow surface the connection managers need; the default
implementation wraps a ``websockets`` client connection. Tests inject their own
factory returning an in-memory transport.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from typing import Protocol

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from ..constants import WEBSOCKET_CLOSE_NORMAL
from ..errors.relay import UpstreamConnectionError


class Transport(Protocol):
    """Minimal bidirectional text socket."""

    @property
    def closed(self) -> bool: ...

    async def send(self, text: str) -> None: ...

    async def close(self, code: int = WEBSOCKET_CLOSE_NORMAL) -> None: ...

    def messages(self) -> AsyncIterator[str]: ...


TransportFactory = Callable[[str], Awaitable[Transport]]


class WebSocketTransport:
    """``Transport`` backed by a ``websockets`` client connection.

    Attributes:
        ws (ClientConnection): The underlying connection.
        close_code (int | None): Close code once the connection has ended.
    """

    def __init__(self, ws: ClientConnection) -> None:
        self.ws = ws
        self.close_code: int | None = None
        self.close_reason: str | None = None

    @property
    def closed(self) -> bool:
        return self.close_code is not None or self.ws.close_code is not None

    async def send(self, text: str) -> None:
        try:
            await self.ws.send(text)
        except ConnectionClosed as e:
            self._record_close(e)
            raise UpstreamConnectionError(
                f"WebSocket send failed: {str(e)}", operation_type="send"
            ) from e

    async def close(self, code: int = WEBSOCKET_CLOSE_NORMAL) -> None:
        if self.closed:
            return
        try:
            await self.ws.close(code=code)
        except Exception as e:  # noqa: BLE001
            logging.warning(f"⚠️ WebSocket close error: {str(e)}")
        self.close_code = self.ws.close_code or code
        self.close_reason = self.ws.close_reason

    async def messages(self) -> AsyncIterator[str]:
        """Yield text frames until the peer closes.

        A clean close ends iteration; an abnormal close raises
        ``UpstreamConnectionError`` so the caller can log it.
        """
        try:
            async for message in self.ws:
                if isinstance(message, bytes):
                    message = message.decode("utf-8", errors="replace")
                yield message
        except ConnectionClosedOK as e:
            self._record_close(e)
        except ConnectionClosed as e:
            self._record_close(e)
            raise UpstreamConnectionError(
                f"WebSocket closed abnormally: code={self.close_code}, reason={self.close_reason}",
                operation_type="receive",
            ) from e
        else:
            self.close_code = self.ws.close_code
            self.close_reason = self.ws.close_reason

    def _record_close(self, exc: ConnectionClosed) -> None:
        frame = exc.rcvd or exc.sent
        self.close_code = frame.code if frame else self.ws.close_code
        self.close_reason = frame.reason if frame else self.ws.close_reason


async def connect_websocket(
    url: str,
    *,
    headers: Mapping[str, str] | None = None,
    subprotocols: list[str] | None = None,
) -> WebSocketTransport:
    """Open a client WebSocket and wrap it.

    Raises:
        UpstreamConnectionError: If the handshake fails.
    """
    logging.debug(f"🔌 Connecting to WebSocket at {url}")
    try:
        ws = await connect(
            url,
            additional_headers=headers,
            subprotocols=subprotocols,
            # Upstreams drive their own keepalive protocols
            ping_interval=None,
        )
    except Exception as e:  # OSError, TimeoutError and InvalidHandshake subclasses
        raise UpstreamConnectionError(
            f"WebSocket connection failed: {str(e)}", operation_type="connect"
        ) from e
    return WebSocketTransport(ws)
