"""
Tests for relay composition, test mode and ordered shutdown.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from overlay_hub.config.model import HubConfig
from overlay_hub.events.models import FollowEvent
from overlay_hub.lifecycle import RelayApplication, build_application
from overlay_hub.static_server import StaticFileServer
from tests.fakes import wait_until


def _recording_app(calls: list[str], static: bool = False) -> RelayApplication:
    hub = Mock()
    hub.start = AsyncMock()
    hub.broadcast = AsyncMock(return_value=0)
    hub.close_subscribers = AsyncMock(side_effect=lambda code: calls.append(f"close_subscribers:{code}"))
    hub.stop = AsyncMock(side_effect=lambda code: calls.append("hub.stop"))

    managers = []
    for name in ("push", "chat-reader", "chat-sender"):
        manager = Mock()
        manager.identity = name
        manager.cancel_reconnect = Mock(side_effect=lambda n=name: calls.append(f"cancel:{n}"))
        manager.close = AsyncMock(side_effect=lambda n=name: calls.append(f"close:{n}"))
        managers.append(manager)

    static_server = None
    if static:
        static_server = Mock()
        static_server.start = AsyncMock()
        static_server.stop = AsyncMock(side_effect=lambda: calls.append("static.stop"))
    return RelayApplication(hub, *managers, static_server, test_delay=0)


class TestShutdown:
    @pytest.mark.asyncio
    async def test_shutdown_order(self):
        calls: list[str] = []
        app = _recording_app(calls, static=True)

        await app.shutdown()

        assert calls[:3] == ["cancel:push", "cancel:chat-reader", "cancel:chat-sender"]
        assert calls[3] == "close_subscribers:1000"
        assert set(calls[4:7]) == {"close:push", "close:chat-reader", "close:chat-sender"}
        assert calls[7:] == ["hub.stop", "static.stop"]

    @pytest.mark.asyncio
    async def test_shutdown_idempotent(self):
        calls: list[str] = []
        app = _recording_app(calls)
        await app.shutdown()
        first = list(calls)
        await app.shutdown()
        assert calls == first

    @pytest.mark.asyncio
    async def test_manager_close_error_does_not_stop_shutdown(self):
        calls: list[str] = []
        app = _recording_app(calls)
        app.reader.close.side_effect = RuntimeError("already gone")
        await app.shutdown()
        assert calls[-1] == "hub.stop"

    @pytest.mark.asyncio
    async def test_run_until_stopped_returns_after_request(self):
        calls: list[str] = []
        app = _recording_app(calls)
        app.install_signal_handlers = Mock()
        app.request_shutdown()
        await app.run_until_stopped()
        assert "hub.stop" in calls


class TestStart:
    @pytest.mark.asyncio
    async def test_start_launches_every_manager(self):
        app = _recording_app([], static=True)
        await app.start()
        app.hub.start.assert_awaited_once()
        app.static.start.assert_awaited_once()
        for manager in app.managers:
            manager.start.assert_called_once()
        app.hub.broadcast.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_test_mode_broadcasts_follow(self):
        app = _recording_app([])
        app.test_mode = True
        await app.start()
        await wait_until(lambda: app.hub.broadcast.await_count == 1)
        event = app.hub.broadcast.await_args.args[0]
        assert isinstance(event, FollowEvent)
        assert event.username.startswith("TestFollower_")
        assert event.user_id == "test"
        await app.shutdown()


class TestBuildApplication:
    def _config(self, **overrides) -> HubConfig:
        data = {
            "client_id": "cid",
            "broadcaster": {"login": "Streamer", "access_token": "btoken"},
            "bot": {"login": "HelperBot", "access_token": "bottoken"},
        }
        data.update(overrides)
        return HubConfig.model_validate(data)

    def test_wiring(self, transport_factory):
        app = build_application(
            self._config(), broadcaster_id="42", api=Mock(), transport_factory=transport_factory
        )
        assert app.reader.identity == "chat-reader"
        assert app.reader.nick == "streamer"
        assert app.reader.forward_events is True
        assert app.sender.identity == "chat-sender"
        assert app.sender.nick == "helperbot"
        assert app.sender.forward_events is False
        assert app.sender.channel == app.reader.channel == "streamer"
        assert app.push.registrar.broadcaster_id == "42"
        assert app.hub.outbound.sender is app.sender
        assert app.hub.outbound.reader is app.reader
        assert app.static is None
        assert app.test_mode is False

    def test_static_server_when_directory_configured(self, tmp_path):
        app = build_application(
            self._config(static_dir=str(tmp_path), static_port=9001),
            broadcaster_id="42",
            api=Mock(),
            test_mode=True,
        )
        assert isinstance(app.static, StaticFileServer)
        assert app.static.port == 9001
        assert app.test_mode is True
