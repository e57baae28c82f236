"""
Tests for chat identity connections over the IRC WebSocket.
"""

from unittest.mock import AsyncMock

import pytest

from overlay_hub.connection.chat import ChatConnectionManager, single_line
from overlay_hub.connection.state import ConnectionState
from overlay_hub.events.models import ChatEvent
from tests.fakes import FakeTransportFactory, wait_until

PRIVMSG = "@badges=subscriber/6;color=#1E90FF;display-name=Viewer :viewer!viewer@viewer PRIVMSG #streamer :hello there"


class TestChatConnectionManager:
    def setup_method(self):
        self.factory = FakeTransportFactory()
        self.sink = AsyncMock()

    def _manager(self, forward_events: bool = True) -> ChatConnectionManager:
        return ChatConnectionManager(
            "chat-reader" if forward_events else "chat-sender",
            nick="Streamer",
            access_token="abc123",
            channel="#Streamer",
            forward_events=forward_events,
            transport_factory=self.factory,
            event_sink=self.sink,
            backoff=lambda attempt: 3600.0,
        )

    async def _ready(self, manager: ChatConnectionManager):
        manager.start()
        await wait_until(lambda: manager.is_ready)
        return self.factory.latest

    @pytest.mark.asyncio
    async def test_handshake_then_ready(self):
        manager = self._manager()
        transport = await self._ready(manager)
        assert transport.sent == [
            "CAP REQ :twitch.tv/tags twitch.tv/commands",
            "PASS oauth:abc123",
            "NICK streamer",
            "JOIN #streamer",
        ]
        assert manager.state is ConnectionState.READY
        await manager.stop()

    @pytest.mark.asyncio
    async def test_ping_answered_in_place(self):
        manager = self._manager()
        transport = await self._ready(manager)
        transport.feed("PING :tmi.twitch.tv\r\n")
        await wait_until(lambda: "PONG :tmi.twitch.tv" in transport.sent)
        self.sink.assert_not_awaited()
        await manager.stop()

    @pytest.mark.asyncio
    async def test_privmsg_forwarded_in_order(self):
        manager = self._manager()
        transport = await self._ready(manager)
        second = PRIVMSG.replace("hello there", "second")
        transport.feed(f"{PRIVMSG}\r\n{second}\r\n")
        await wait_until(lambda: self.sink.await_count == 2)

        first_event = self.sink.await_args_list[0].args[0]
        second_event = self.sink.await_args_list[1].args[0]
        assert isinstance(first_event, ChatEvent)
        assert first_event.username == "Viewer"
        assert first_event.message == "hello there"
        assert first_event.color_hex == "#1E90FF"
        assert second_event.message == "second"
        await manager.stop()

    @pytest.mark.asyncio
    async def test_sender_identity_does_not_forward(self):
        manager = self._manager(forward_events=False)
        transport = await self._ready(manager)
        transport.feed(PRIVMSG)
        transport.feed("PING :tmi.twitch.tv")
        await wait_until(lambda: "PONG :tmi.twitch.tv" in transport.sent)
        self.sink.assert_not_awaited()
        await manager.stop()

    @pytest.mark.asyncio
    async def test_malformed_line_dropped_connection_kept(self):
        manager = self._manager()
        transport = await self._ready(manager)
        transport.feed("@emotes=25:x-y :v!v@v PRIVMSG #streamer :Kappa")
        transport.feed("no-space-after-tags-@")
        transport.feed("@tagsonly")
        transport.feed(PRIVMSG)
        await wait_until(lambda: self.sink.await_count == 1)
        assert manager.is_ready
        assert len(self.factory.calls) == 1
        await manager.stop()

    @pytest.mark.asyncio
    async def test_notice_produces_no_event(self):
        manager = self._manager()
        transport = await self._ready(manager)
        transport.feed(":tmi.twitch.tv NOTICE * :Login authentication failed")
        transport.feed("PING :x")
        await wait_until(lambda: "PONG :x" in transport.sent)
        self.sink.assert_not_awaited()
        await manager.stop()

    @pytest.mark.asyncio
    async def test_server_reconnect_reopens_immediately(self):
        manager = self._manager()
        first = await self._ready(manager)
        first.feed(":tmi.twitch.tv RECONNECT")
        await wait_until(lambda: len(self.factory.calls) == 2 and manager.is_ready)
        assert first.closed
        assert manager.reconnect.attempts == 0
        assert manager.reconnect.pending is None
        await manager.stop()

    @pytest.mark.asyncio
    async def test_send_privmsg_when_ready(self):
        manager = self._manager()
        transport = await self._ready(manager)
        assert await manager.send_privmsg("hello") is True
        assert transport.sent[-1] == "PRIVMSG #streamer :hello"
        await manager.stop()

    @pytest.mark.asyncio
    async def test_send_privmsg_when_not_ready(self):
        manager = self._manager()
        assert await manager.send_privmsg("hello") is False
        assert self.factory.calls == []

    @pytest.mark.asyncio
    async def test_send_privmsg_cannot_inject_commands(self):
        manager = self._manager(forward_events=False)
        transport = await self._ready(manager)
        sent_before = len(transport.sent)
        assert await manager.send_privmsg("hi\r\nJOIN #other\nPRIVMSG #other :spam") is True
        assert transport.sent[sent_before:] == ["PRIVMSG #streamer :hi JOIN #other PRIVMSG #other :spam"]
        assert not any("\r" in line or "\n" in line for line in transport.sent)
        await manager.stop()

    @pytest.mark.asyncio
    async def test_send_privmsg_only_line_breaks(self):
        manager = self._manager(forward_events=False)
        transport = await self._ready(manager)
        sent_before = len(transport.sent)
        assert await manager.send_privmsg("\r\n\r\n") is False
        assert len(transport.sent) == sent_before
        await manager.stop()


@pytest.mark.parametrize(
    "text,expected",
    [
        ("hello", "hello"),
        ("  a\r\nb  ", "a b"),
        ("a\rb\nc", "a b c"),
        ("\n", ""),
    ],
)
def test_single_line(text, expected):
    assert single_line(text) == expected
