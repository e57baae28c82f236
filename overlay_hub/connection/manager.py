"""Base connection manager shared by the push channel and chat identities.

Each manager owns exactly one upstream socket at a time and drives it through
``ConnectionState`` using the single transition function in ``state``. Closing
for any reason other than shutdown schedules a reconnect with exponential
backoff; a server-issued redirect reconnects immediately to the new URL.
Inbound messages are dispatched in arrival order on the session task.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from ..constants import (
    RECONNECT_BASE_DELAY_SECONDS,
    RECONNECT_JITTER_FACTOR,
    RECONNECT_MAX_DELAY_SECONDS,
)
from ..errors.handling import log_error
from ..errors.relay import MessageProcessingError, UpstreamConnectionError
from ..events.models import RelayEvent
from ..rate.backoff import backoff_delay
from .state import (
    ConnectionEvent,
    ConnectionState,
    ReconnectState,
    ScheduledReconnect,
    next_state,
)
from .transport import Transport, TransportFactory

EventSink = Callable[[RelayEvent], Awaitable[Any]]
BackoffPolicy = Callable[[int], float]


def default_backoff(attempt: int) -> float:
    return backoff_delay(
        attempt,
        RECONNECT_BASE_DELAY_SECONDS,
        RECONNECT_MAX_DELAY_SECONDS,
        RECONNECT_JITTER_FACTOR,
    )


class ConnectionManager(ABC):
    """Lifecycle of one upstream connection.

    Subclasses implement ``open_transport`` (how to dial), ``on_open`` (what to
    send once the socket is up) and ``handle_message`` (how to interpret one
    inbound frame). Everything else, including reconnect scheduling, lives here.

    Attributes:
        identity (str): Log name of this upstream ('push', 'chat-reader', ...).
        url (str): Default endpoint; redirects override it for one connect.
        state (ConnectionState): Current lifecycle state.
        reconnect (ReconnectState): Attempt counter and pending timer.
        transport (Transport | None): The live socket, if any.
    """

    def __init__(
        self,
        identity: str,
        url: str,
        *,
        transport_factory: TransportFactory | None = None,
        event_sink: EventSink | None = None,
        backoff: BackoffPolicy = default_backoff,
    ) -> None:
        self.identity = identity
        self.url = url
        self.state = ConnectionState.DISCONNECTED
        self.reconnect = ReconnectState()
        self.transport: Transport | None = None
        self._transport_factory = transport_factory
        self._event_sink = event_sink
        self._backoff = backoff
        self._session_task: asyncio.Task[None] | None = None
        self._redirect_url: str | None = None
        self._stopping = False

    @property
    def is_ready(self) -> bool:
        return self.state is ConnectionState.READY

    def set_event_sink(self, sink: EventSink | None) -> None:
        self._event_sink = sink

    # --- hooks -------------------------------------------------------------

    async def open_transport(self, url: str) -> Transport:
        if self._transport_factory is None:
            raise UpstreamConnectionError(
                "No transport factory configured",
                identity=self.identity,
                operation_type="connect",
            )
        return await self._transport_factory(url)

    async def on_open(self, transport: Transport) -> None:
        """Called once per socket after it opens; may call ``mark_ready``."""

    async def on_close(self) -> None:
        """Called once per socket after it closes."""

    @abstractmethod
    async def handle_message(self, raw: str) -> None:
        """Interpret one inbound frame."""

    # --- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        """Begin connecting. No-op while a session is already running."""
        if self._session_task is not None and not self._session_task.done():
            return
        if self.reconnect.pending is not None:
            return
        self._stopping = False
        self._apply(ConnectionEvent.CONNECT)
        self._launch(self.url)

    def cancel_reconnect(self) -> bool:
        """Stop scheduling reconnects and cancel any pending timer.

        Once called, no further reconnect is ever scheduled for this manager.

        Returns:
            bool: True if a pending timer was cancelled.
        """
        self._stopping = True
        cancelled = self.reconnect.cancel_pending()
        if cancelled:
            logging.debug(f"⏹️ {self.identity} pending reconnect cancelled")
        if self.state is ConnectionState.RECONNECT_SCHEDULED:
            self._apply(ConnectionEvent.STOP)
        return cancelled

    async def close(self) -> None:
        """Close the upstream socket and wait for the session task to finish."""
        self._stopping = True
        transport = self.transport
        if transport is not None and not transport.closed:
            await transport.close()
        task = self._session_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._session_task = None
        self.state = next_state(self.state, ConnectionEvent.STOP)
        logging.info(f"🔌 {self.identity} disconnected")

    async def stop(self) -> None:
        self.cancel_reconnect()
        await self.close()

    async def redirect(self, url: str) -> None:
        """Move to ``url`` immediately: close the current socket first, no backoff."""
        logging.info(f"🔀 {self.identity} redirected to {url}")
        self._redirect_url = url
        transport = self.transport
        if transport is not None:
            await transport.close()

    def mark_ready(self) -> None:
        self._apply(ConnectionEvent.AUTHENTICATED)
        self.reconnect.attempts = 0
        logging.info(f"✅ {self.identity} ready")

    async def emit(self, event: RelayEvent) -> None:
        if self._event_sink is not None:
            await self._event_sink(event)

    # --- internals ---------------------------------------------------------

    def _apply(self, event: ConnectionEvent) -> None:
        previous = self.state
        self.state = next_state(previous, event)
        logging.debug(
            f"{self.identity}: {previous.value} --{event.value}--> {self.state.value}"
        )

    def _launch(self, url: str) -> None:
        self._session_task = asyncio.create_task(
            self._run_session(url), name=f"{self.identity}-session"
        )

    async def _run_session(self, url: str) -> None:
        try:
            transport = await self.open_transport(url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logging.warning(f"❌ {self.identity} connect to {url} failed: {str(e)}")
            self._apply(ConnectionEvent.CLOSED)
            self._after_close()
            return

        if self._stopping:
            await transport.close()
            return

        self.transport = transport
        self._apply(ConnectionEvent.OPENED)
        logging.info(f"🔌 {self.identity} connected to {url}")
        try:
            await self.on_open(transport)
            async for raw in transport.messages():
                await self._dispatch(raw)
        except UpstreamConnectionError as e:
            logging.warning(f"⚠️ {self.identity} connection lost: {str(e)}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_error(f"Unexpected error on {self.identity} connection", e)
        finally:
            self.transport = None
            if not transport.closed:
                await transport.close()
            if self.state is not ConnectionState.DISCONNECTED:
                self._apply(ConnectionEvent.CLOSED)
            await self.on_close()
        self._after_close()

    async def _dispatch(self, raw: str) -> None:
        try:
            await self.handle_message(raw)
        except MessageProcessingError as e:
            logging.warning(f"⚠️ {self.identity} dropped message: {str(e)}")
        except UpstreamConnectionError:
            raise
        except Exception as e:
            log_error(f"Error handling {self.identity} message", e)

    def _after_close(self) -> None:
        if self._stopping:
            return
        redirect_url, self._redirect_url = self._redirect_url, None
        if redirect_url:
            self._apply(ConnectionEvent.CONNECT)
            self._launch(redirect_url)
            return
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        delay = self._backoff(self.reconnect.attempts)
        self.reconnect.attempts += 1
        self._apply(ConnectionEvent.SCHEDULE_RECONNECT)
        task = asyncio.create_task(
            self._reconnect_after(delay), name=f"{self.identity}-reconnect"
        )
        self.reconnect.pending = ScheduledReconnect(
            delay=delay, target=ConnectionState.CONNECTING, task=task
        )
        logging.info(
            f"🔄 {self.identity} reconnecting in {delay:.1f}s (attempt {self.reconnect.attempts})"
        )

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self.reconnect.pending = None
        if self._stopping:
            return
        self._apply(ConnectionEvent.TIMER_FIRED)
        self._launch(self.url)
