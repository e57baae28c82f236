"""Local WebSocket server that fans normalized events out to subscribers.

The hub owns the subscriber set exclusively. Every broadcast serializes the
event once and queues it on each open subscriber in a snapshot of the set.
Each subscriber has its own writer task draining that queue, so a slow or dead
subscriber only ever delays itself, and events reach every subscriber in the
order they were broadcast. A subscriber that falls too far behind, or whose
write fails or times out, is dropped.
Inbound frames are a control channel: ``send`` goes to the outbound sender and
is never fanned out; any other typed object is broadcast as a simulated event.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from ..constants import (
    DEFAULT_HUB_HOST,
    DEFAULT_HUB_PORT,
    SUBSCRIBER_QUEUE_SIZE,
    SUBSCRIBER_SEND_TIMEOUT_SECONDS,
    WEBSOCKET_CLOSE_NORMAL,
)
from ..errors.handling import log_error
from ..events.models import ConnectedAck, ControlMessage, RelayEvent

if TYPE_CHECKING:
    from .outbound import OutboundSender


class SubscriberConnection(Protocol):
    async def send(self, message: str) -> None: ...

    async def close(self, code: int = WEBSOCKET_CLOSE_NORMAL, reason: str = "") -> None: ...


class SubscriberState(Enum):
    OPEN = "open"
    CLOSING = "closing"


@dataclass(eq=False)
class Subscriber:
    """One downstream connection, its send state and its pending messages."""

    connection: SubscriberConnection
    remote: str = "?"
    state: SubscriberState = field(default=SubscriberState.OPEN)
    outbox: asyncio.Queue[str] = field(default_factory=asyncio.Queue)
    writer: asyncio.Task[None] | None = None

    @property
    def is_open(self) -> bool:
        return self.state is SubscriberState.OPEN


class BroadcastHub:
    """Serving socket plus subscriber set.

    Attributes:
        host (str): Interface the server binds.
        port (int): Port the server binds; 0 picks a free one (see ``bound_port``).
        subscribers (set[Subscriber]): Live subscribers.
        outbound (OutboundSender | None): Target of ``send`` control messages.
    """

    def __init__(
        self,
        host: str = DEFAULT_HUB_HOST,
        port: int = DEFAULT_HUB_PORT,
        *,
        outbound: OutboundSender | None = None,
        push_status: Callable[[], bool] | None = None,
        send_timeout: float = SUBSCRIBER_SEND_TIMEOUT_SECONDS,
        queue_size: int = SUBSCRIBER_QUEUE_SIZE,
    ) -> None:
        self.host = host
        self.port = port
        self.outbound = outbound
        self.subscribers: set[Subscriber] = set()
        self._push_status = push_status or (lambda: False)
        self._send_timeout = send_timeout
        self._queue_size = queue_size
        self._server: Server | None = None
        self._writers: set[asyncio.Task[None]] = set()
        self._closing: set[asyncio.Task[None]] = set()

    @property
    def bound_port(self) -> int | None:
        if self._server is None:
            return None
        for sock in self._server.sockets:
            return sock.getsockname()[1]
        return None

    async def start(self) -> None:
        self._server = await serve(self._handle_connection, self.host, self.port)
        logging.info(
            f"🚀 Overlay WebSocket server running on ws://{self.host}:{self.bound_port}"
        )

    async def stop(self, code: int = WEBSOCKET_CLOSE_NORMAL) -> None:
        await self.close_subscribers(code)
        server, self._server = self._server, None
        if server is not None:
            server.close(close_connections=False)
            await server.wait_closed()
        pending = self._writers | self._closing
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logging.info("🛑 Overlay WebSocket server stopped")

    async def close_subscribers(
        self, code: int = WEBSOCKET_CLOSE_NORMAL, reason: str = "Server shutting down"
    ) -> None:
        """Close every subscriber with ``code`` and empty the set."""
        targets = list(self.subscribers)
        self.subscribers.clear()
        for sub in targets:
            sub.state = SubscriberState.CLOSING
            self._stop_writer(sub)
        results = await asyncio.gather(
            *(sub.connection.close(code, reason) for sub in targets),
            return_exceptions=True,
        )
        for sub, result in zip(targets, results, strict=True):
            if isinstance(result, Exception):
                logging.debug(f"Subscriber {sub.remote} close error: {str(result)}")
        if targets:
            logging.info(f"👋 Closed {len(targets)} subscriber(s)")

    def add_subscriber(self, connection: SubscriberConnection, remote: str = "?") -> Subscriber:
        sub = Subscriber(
            connection=connection,
            remote=remote,
            outbox=asyncio.Queue(maxsize=self._queue_size),
        )
        self.subscribers.add(sub)
        logging.info(f"🖥️ Overlay client connected ({remote}), {len(self.subscribers)} total")
        return sub

    def remove_subscriber(self, sub: Subscriber) -> bool:
        """Drop ``sub``; removing an absent subscriber is a no-op."""
        sub.state = SubscriberState.CLOSING
        self._stop_writer(sub)
        if sub not in self.subscribers:
            return False
        self.subscribers.discard(sub)
        logging.info(f"🖥️ Overlay client disconnected ({sub.remote}), {len(self.subscribers)} left")
        return True

    async def broadcast(self, event: RelayEvent | Mapping[str, Any]) -> int:
        """Queue ``event`` for every open subscriber without waiting on their writes.

        Returns:
            int: Number of subscribers it was queued for.
        """
        payload = event.to_dict() if isinstance(event, RelayEvent) else dict(event)
        text = json.dumps(payload)
        targets = [sub for sub in self.subscribers if sub.is_open]
        return sum(1 for sub in targets if self._enqueue(sub, text))

    def _enqueue(self, sub: Subscriber, text: str) -> bool:
        if not sub.is_open:
            return False
        try:
            sub.outbox.put_nowait(text)
        except asyncio.QueueFull:
            self._drop(sub, f"{sub.outbox.qsize()} messages behind")
            return False
        if sub.writer is None:
            sub.writer = asyncio.create_task(
                self._write_loop(sub), name=f"subscriber-{sub.remote}-writer"
            )
            self._writers.add(sub.writer)
            sub.writer.add_done_callback(self._writers.discard)
        return True

    async def _write_loop(self, sub: Subscriber) -> None:
        while sub.is_open:
            text = await sub.outbox.get()
            try:
                await asyncio.wait_for(sub.connection.send(text), self._send_timeout)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._drop(sub, f"{type(e).__name__} {str(e)}")
                return

    def _drop(self, sub: Subscriber, reason: str) -> None:
        logging.warning(f"⚠️ Dropping subscriber {sub.remote}: {reason}")
        if self.remove_subscriber(sub):
            self._close_in_background(sub)

    @staticmethod
    def _stop_writer(sub: Subscriber) -> None:
        writer = sub.writer
        if writer is None or writer.done():
            return
        # A writer dropping its own subscriber just returns
        if writer is not asyncio.current_task():
            writer.cancel()

    def _close_in_background(self, sub: Subscriber) -> None:
        task = asyncio.create_task(self._close_quietly(sub))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    @staticmethod
    async def _close_quietly(sub: Subscriber) -> None:
        try:
            await sub.connection.close(WEBSOCKET_CLOSE_NORMAL, "")
        except Exception as e:  # noqa: BLE001
            logging.debug(f"Subscriber {sub.remote} close error: {str(e)}")

    async def _handle_connection(self, connection: ServerConnection) -> None:
        remote = _format_remote(getattr(connection, "remote_address", None))
        sub = self.add_subscriber(connection, remote)
        try:
            ack = ConnectedAck(push_channel_connected=self._push_status())
            self._enqueue(sub, json.dumps(ack.to_dict()))
            async for message in connection:
                await self.handle_control(message, sub)
        except ConnectionClosed:
            pass
        finally:
            self.remove_subscriber(sub)

    async def handle_control(self, raw: str | bytes, sub: Subscriber | None = None) -> None:
        """Interpret one inbound subscriber frame."""
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            data = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logging.debug(f"Ignoring non-JSON subscriber message: {str(e)}")
            return

        control = ControlMessage.from_wire(data)
        if control is None:
            logging.debug("Ignoring subscriber message without a type")
            return

        try:
            if control.is_send:
                await self._relay_outbound(control)
            elif control.kind == ConnectedAck.event_type:
                return
            else:
                username = control.payload.get("username", "?")
                logging.info(f"🧪 Test event: {control.kind} - {username}")
                await self.broadcast(control.payload)
        except Exception as e:
            log_error("Error handling subscriber message", e, context={"kind": control.kind})

    async def _relay_outbound(self, control: ControlMessage) -> None:
        if self.outbound is None:
            logging.warning("⚠️ No outbound sender configured; chat message dropped")
            return
        result = await self.outbound.send(control.text or "")
        if not result.ok:
            logging.warning(f"⚠️ Chat message not sent: {result.reason}")


def _format_remote(address: Any) -> str:
    if isinstance(address, tuple) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return str(address) if address else "?"
