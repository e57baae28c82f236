"""Push channel connection to Twitch EventSub over WebSocket."""

from __future__ import annotations

import json
import logging
from typing import Any

from ..constants import EVENTSUB_WS_URL
from ..errors.relay import MessageProcessingError
from ..events.normalizer import normalize_notification
from .manager import BackoffPolicy, ConnectionManager, EventSink, default_backoff
from .state import ConnectionState
from .subscriptions import SubscriptionRegistrar
from .transport import TransportFactory, connect_websocket

SESSION_WELCOME = "session_welcome"
SESSION_KEEPALIVE = "session_keepalive"
SESSION_RECONNECT = "session_reconnect"
NOTIFICATION = "notification"
REVOCATION = "revocation"


class PushChannelManager(ConnectionManager):
    """EventSub session: welcome -> subscribe -> ready, then relay notifications.

    Attributes:
        session_id (str | None): Id from the latest welcome, cleared on close.
        registrar (SubscriptionRegistrar): Registers categories after welcome.
    """

    def __init__(
        self,
        registrar: SubscriptionRegistrar,
        *,
        url: str = EVENTSUB_WS_URL,
        transport_factory: TransportFactory | None = None,
        event_sink: EventSink | None = None,
        backoff: BackoffPolicy = default_backoff,
    ) -> None:
        super().__init__(
            "push",
            url,
            transport_factory=transport_factory or connect_websocket,
            event_sink=event_sink,
            backoff=backoff,
        )
        self.registrar = registrar
        self.session_id: str | None = None

    @property
    def push_connected(self) -> bool:
        """True while ready with at least one accepted category."""
        return self.is_ready and bool(self.registrar.active)

    async def on_close(self) -> None:
        self.session_id = None
        self.registrar.clear()

    async def handle_message(self, raw: str) -> None:
        data = self._decode(raw)
        metadata = data.get("metadata") or {}
        payload = data.get("payload") or {}
        message_type = metadata.get("message_type")

        if message_type == SESSION_WELCOME:
            await self._handle_welcome(payload)
        elif message_type == SESSION_KEEPALIVE:
            return
        elif message_type == NOTIFICATION:
            await self._handle_notification(payload)
        elif message_type == SESSION_RECONNECT:
            await self._handle_session_reconnect(payload)
        elif message_type == REVOCATION:
            self._handle_revocation(payload)
        else:
            logging.debug(f"push: ignoring message type {message_type!r}")

    @staticmethod
    def _decode(raw: str) -> dict[str, Any]:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MessageProcessingError(
                f"Invalid JSON in message: {str(e)}",
                identity="push",
                operation_type="parse_json",
            ) from e
        if not isinstance(data, dict):
            raise MessageProcessingError(
                "Message is not a JSON object", identity="push", operation_type="parse_json"
            )
        return data

    async def _handle_welcome(self, payload: dict[str, Any]) -> None:
        session = payload.get("session") or {}
        session_id = session.get("id")
        if not isinstance(session_id, str) or not session_id:
            raise MessageProcessingError(
                "Welcome without session id", identity="push", operation_type="welcome"
            )
        if self.state is not ConnectionState.AUTHENTICATING:
            logging.debug(f"push: duplicate welcome in state {self.state.value}")
            return
        self.session_id = session_id
        logging.info(f"🔗 Connected to Twitch EventSub (session {session_id})")
        await self.registrar.register_all(session_id)
        # The socket may have dropped while registering
        if self.state is ConnectionState.AUTHENTICATING:
            self.mark_ready()

    async def _handle_notification(self, payload: dict[str, Any]) -> None:
        subscription = payload.get("subscription") or {}
        subscription_type = subscription.get("type")
        event = payload.get("event")
        if not isinstance(subscription_type, str) or not isinstance(event, dict):
            raise MessageProcessingError(
                "Notification without subscription type or event",
                identity="push",
                operation_type="notification",
            )
        try:
            relay_event = normalize_notification(subscription_type, event)
        except (KeyError, ValueError, TypeError) as e:
            raise MessageProcessingError(
                f"Malformed {subscription_type} event: {str(e)}",
                identity="push",
                operation_type="notification",
            ) from e
        if relay_event is not None:
            await self.emit(relay_event)

    async def _handle_session_reconnect(self, payload: dict[str, Any]) -> None:
        session = payload.get("session") or {}
        reconnect_url = session.get("reconnect_url")
        if not isinstance(reconnect_url, str) or not reconnect_url:
            raise MessageProcessingError(
                "Reconnect directive without URL",
                identity="push",
                operation_type="reconnect",
            )
        logging.info("🔄 Twitch requested reconnect")
        await self.redirect(reconnect_url)

    def _handle_revocation(self, payload: dict[str, Any]) -> None:
        subscription = payload.get("subscription") or {}
        subscription_type = subscription.get("type", "unknown")
        status = subscription.get("status", "unknown")
        self.registrar.active.discard(subscription_type)
        logging.warning(f"⚠️ Subscription revoked: {subscription_type} ({status})")
