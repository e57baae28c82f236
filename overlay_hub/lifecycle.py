"""Composes the relay components and shuts them down in a fixed order.

Shutdown order: cancel every pending reconnect timer, close subscribers with a
normal-closure code, close the three upstream sockets, then stop the servers.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import time

from .api.twitch import TwitchAPI
from .config.model import HubConfig
from .connection.chat import ChatConnectionManager
from .connection.eventsub import PushChannelManager
from .connection.subscriptions import SubscriptionRegistrar
from .connection.transport import TransportFactory
from .constants import TEST_EVENT_DELAY_SECONDS, WEBSOCKET_CLOSE_NORMAL
from .events.models import FollowEvent
from .hub.broadcast import BroadcastHub
from .hub.outbound import OutboundSender
from .static_server import StaticFileServer


class RelayApplication:
    """Owns the hub, the three upstream managers and the optional static server.

    Attributes:
        hub (BroadcastHub): Subscriber-facing server.
        push (PushChannelManager): EventSub connection.
        reader (ChatConnectionManager): Broadcaster chat identity; forwards chat.
        sender (ChatConnectionManager): Bot chat identity; outbound only.
        static (StaticFileServer | None): Companion HTTP server.
    """

    def __init__(
        self,
        hub: BroadcastHub,
        push: PushChannelManager,
        reader: ChatConnectionManager,
        sender: ChatConnectionManager,
        static: StaticFileServer | None = None,
        *,
        test_mode: bool = False,
        test_delay: float = TEST_EVENT_DELAY_SECONDS,
    ) -> None:
        self.hub = hub
        self.push = push
        self.reader = reader
        self.sender = sender
        self.static = static
        self.test_mode = test_mode
        self._test_delay = test_delay
        self._test_task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._shutdown_started = False

    @property
    def managers(self) -> tuple[PushChannelManager, ChatConnectionManager, ChatConnectionManager]:
        return (self.push, self.reader, self.sender)

    async def start(self) -> None:
        await self.hub.start()
        if self.static is not None:
            await self.static.start()
        for manager in self.managers:
            manager.start()
        if self.test_mode:
            self._test_task = asyncio.create_task(self._send_test_event())
        logging.info("✅ Relay started")

    async def _send_test_event(self) -> None:
        await asyncio.sleep(self._test_delay)
        username = f"TestFollower_{int(time.time() * 1000)}"
        logging.info(f"🧪 Sending test follow event for {username}")
        await self.hub.broadcast(FollowEvent(username=username, user_id="test"))

    def request_shutdown(self) -> None:
        if not self._stop_event.is_set():
            logging.warning("🛑 Shutdown requested")
            self._stop_event.set()

    def install_signal_handlers(self) -> None:  # pragma: no cover
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, self.request_shutdown)

    async def run_until_stopped(self) -> None:
        self.install_signal_handlers()
        try:
            await self._stop_event.wait()
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        if self._shutdown_started:
            return
        self._shutdown_started = True
        logging.info("🛑 Shutting down relay")

        for manager in self.managers:
            manager.cancel_reconnect()
        if self._test_task is not None and not self._test_task.done():
            self._test_task.cancel()

        await self.hub.close_subscribers(WEBSOCKET_CLOSE_NORMAL)

        results = await asyncio.gather(
            *(manager.close() for manager in self.managers), return_exceptions=True
        )
        for manager, result in zip(self.managers, results, strict=True):
            if isinstance(result, Exception):
                logging.warning(f"⚠️ Error closing {manager.identity}: {str(result)}")

        await self.hub.stop(WEBSOCKET_CLOSE_NORMAL)
        if self.static is not None:
            await self.static.stop()
        logging.info("🏁 Relay shutdown complete")


def build_application(
    config: HubConfig,
    *,
    broadcaster_id: str,
    api: TwitchAPI,
    transport_factory: TransportFactory | None = None,
    test_mode: bool = False,
) -> RelayApplication:
    """Wire the components for one hub process."""
    registrar = SubscriptionRegistrar(
        api,
        client_id=config.client_id,
        access_token=config.broadcaster.access_token,
        broadcaster_id=broadcaster_id,
    )
    push = PushChannelManager(registrar, transport_factory=transport_factory)
    reader = ChatConnectionManager(
        "chat-reader",
        nick=config.broadcaster.login,
        access_token=config.broadcaster.access_token,
        channel=config.channel,
        forward_events=True,
        transport_factory=transport_factory,
    )
    sender = ChatConnectionManager(
        "chat-sender",
        nick=config.bot.login,
        access_token=config.bot.access_token,
        channel=config.channel,
        forward_events=False,
        transport_factory=transport_factory,
    )
    hub = BroadcastHub(
        config.host,
        config.port,
        outbound=OutboundSender(sender=sender, reader=reader),
        push_status=lambda: push.push_connected,
    )
    push.set_event_sink(hub.broadcast)
    reader.set_event_sink(hub.broadcast)

    static: StaticFileServer | None = None
    if config.static_dir is not None:
        static = StaticFileServer(config.static_dir, config.host, config.static_port)

    return RelayApplication(hub, push, reader, sender, static, test_mode=test_mode)

