"""
Tests for subscriber fan-out and the inbound control channel.
"""

import asyncio
import json
from unittest.mock import AsyncMock, Mock

import pytest
from websockets.asyncio.client import connect

from overlay_hub.events.models import FollowEvent
from overlay_hub.hub.broadcast import BroadcastHub, SubscriberState
from overlay_hub.hub.outbound import SendResult
from tests.fakes import FakeSubscriberConnection, wait_until


class TestBroadcast:
    def setup_method(self):
        self.hub = BroadcastHub("127.0.0.1", 0, send_timeout=0.2)

    @pytest.mark.asyncio
    async def test_closed_subscriber_removed_others_delivered(self):
        conns = [
            FakeSubscriberConnection(),
            FakeSubscriberConnection(fail=True),
            FakeSubscriberConnection(),
        ]
        subs = [self.hub.add_subscriber(c) for c in conns]

        queued = await self.hub.broadcast(FollowEvent(username="Alice", followed_at="t"))

        assert queued == 3
        expected = json.dumps(
            {"type": "follow", "username": "Alice", "userId": None, "timestamp": "t"}
        )
        await wait_until(lambda: conns[0].sent and conns[2].sent and subs[1] not in self.hub.subscribers)
        assert conns[0].sent == [expected]
        assert conns[2].sent == [expected]
        assert self.hub.subscribers == {subs[0], subs[2]}
        assert subs[1].state is SubscriberState.CLOSING
        await wait_until(lambda: conns[1].close_calls)
        await self.hub.stop()

    @pytest.mark.asyncio
    async def test_slow_subscriber_does_not_block_others(self):
        fast = FakeSubscriberConnection()
        slow = FakeSubscriberConnection(hang=True)
        self.hub.add_subscriber(fast)
        slow_sub = self.hub.add_subscriber(slow)

        loop = asyncio.get_running_loop()
        started = loop.time()
        await self.hub.broadcast({"type": "raid", "username": "R1"})
        await self.hub.broadcast({"type": "raid", "username": "R2"})
        await wait_until(lambda: len(fast.sent) == 2)

        assert loop.time() - started < 0.1
        assert [json.loads(m)["username"] for m in fast.sent] == ["R1", "R2"]
        await wait_until(lambda: slow_sub not in self.hub.subscribers)
        await self.hub.stop()

    @pytest.mark.asyncio
    async def test_lagging_subscriber_dropped_when_queue_full(self):
        hub = BroadcastHub("127.0.0.1", 0, send_timeout=60, queue_size=2)
        fast = FakeSubscriberConnection()
        slow = FakeSubscriberConnection(hang=True)
        hub.add_subscriber(fast)
        slow_sub = hub.add_subscriber(slow)

        for n in range(4):
            await hub.broadcast({"type": "bits", "amount": n})
            await asyncio.sleep(0)

        assert slow_sub not in hub.subscribers
        await wait_until(lambda: len(fast.sent) == 4)
        await hub.stop()

    @pytest.mark.asyncio
    async def test_per_subscriber_order_preserved(self):
        conn = FakeSubscriberConnection()
        self.hub.add_subscriber(conn)
        for n in range(5):
            await self.hub.broadcast({"type": "chat", "n": n})
        await wait_until(lambda: len(conn.sent) == 5)
        assert [json.loads(m)["n"] for m in conn.sent] == [0, 1, 2, 3, 4]
        await self.hub.stop()

    @pytest.mark.asyncio
    async def test_closing_subscriber_skipped(self):
        conn = FakeSubscriberConnection()
        sub = self.hub.add_subscriber(conn)
        sub.state = SubscriberState.CLOSING
        assert await self.hub.broadcast({"type": "x"}) == 0
        assert conn.sent == []

    @pytest.mark.asyncio
    async def test_broadcast_with_no_subscribers(self):
        assert await self.hub.broadcast({"type": "x"}) == 0

    def test_remove_subscriber_idempotent(self):
        sub = self.hub.add_subscriber(FakeSubscriberConnection())
        assert self.hub.remove_subscriber(sub) is True
        assert self.hub.remove_subscriber(sub) is False
        assert self.hub.subscribers == set()

    @pytest.mark.asyncio
    async def test_close_subscribers_uses_normal_closure(self):
        conns = [FakeSubscriberConnection(), FakeSubscriberConnection()]
        for c in conns:
            self.hub.add_subscriber(c)
        await self.hub.close_subscribers()
        assert self.hub.subscribers == set()
        assert [c.close_calls[0][0] for c in conns] == [1000, 1000]


class TestControlChannel:
    def setup_method(self):
        self.outbound = Mock()
        self.outbound.send = AsyncMock(return_value=SendResult(ok=True, identity="chat-sender"))
        self.hub = BroadcastHub("127.0.0.1", 0, outbound=self.outbound)
        self.watcher = FakeSubscriberConnection()
        self.origin = FakeSubscriberConnection()
        self.hub.add_subscriber(self.watcher)
        self.origin_sub = self.hub.add_subscriber(self.origin)

    @pytest.mark.asyncio
    async def test_send_is_intercepted_not_broadcast(self):
        await self.hub.handle_control(json.dumps({"type": "send", "message": "hi"}), self.origin_sub)
        self.outbound.send.assert_awaited_once_with("hi")
        assert self.watcher.sent == []
        assert self.origin.sent == []

    @pytest.mark.asyncio
    async def test_send_failure_is_not_raised(self):
        self.outbound.send.return_value = SendResult(ok=False, reason="no chat connection available")
        await self.hub.handle_control('{"type": "send", "message": "hi"}', self.origin_sub)
        assert self.watcher.sent == []

    @pytest.mark.asyncio
    async def test_simulated_event_broadcast_verbatim(self):
        payload = {"type": "bits", "username": "Cheerer", "amount": 100}
        await self.hub.handle_control(json.dumps(payload), self.origin_sub)
        await wait_until(lambda: self.watcher.sent and self.origin.sent)
        assert [json.loads(m) for m in self.watcher.sent] == [payload]
        assert [json.loads(m) for m in self.origin.sent] == [payload]
        await self.hub.stop()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw",
        ["not json", "[]", '{"message": "no type"}', '{"type": "connected"}', b"\xff\xfe"],
    )
    async def test_ignored_messages(self, raw):
        await self.hub.handle_control(raw, self.origin_sub)
        assert self.watcher.sent == []
        self.outbound.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_send_without_outbound_configured(self):
        hub = BroadcastHub("127.0.0.1", 0)
        watcher = FakeSubscriberConnection()
        hub.add_subscriber(watcher)
        await hub.handle_control('{"type": "send", "message": "hi"}')
        assert watcher.sent == []


class TestServingSocket:
    @pytest.mark.asyncio
    async def test_end_to_end_ack_broadcast_and_shutdown(self):
        hub = BroadcastHub("127.0.0.1", 0, push_status=lambda: True)
        await hub.start()
        url = f"ws://127.0.0.1:{hub.bound_port}"
        try:
            async with connect(url) as viewer, connect(url) as tool:
                ack = json.loads(await viewer.recv())
                assert ack == {
                    "type": "connected",
                    "message": "Welcome to overlay server",
                    "twitchConnected": True,
                }
                await tool.recv()
                await wait_until(lambda: len(hub.subscribers) == 2)

                await tool.send(json.dumps({"type": "send", "message": "hi"}))
                await tool.send(json.dumps({"type": "follow", "username": "Sim"}))
                relayed = json.loads(await asyncio.wait_for(viewer.recv(), 2))
                assert relayed == {"type": "follow", "username": "Sim"}

                await hub.stop()
                await asyncio.wait_for(viewer.wait_closed(), 2)
                assert viewer.close_code == 1000
        finally:
            await hub.stop()
        assert hub.subscribers == set()
