"""Upstream connection management.

Provides the shared state machine, the transport abstraction and the two
kinds of managed upstream: the EventSub push channel and chat identities.
"""

from .chat import ChatConnectionManager  # noqa: F401
from .eventsub import PushChannelManager  # noqa: F401
from .manager import ConnectionManager, default_backoff  # noqa: F401
from .state import (  # noqa: F401
    ConnectionEvent,
    ConnectionState,
    ReconnectState,
    ScheduledReconnect,
    next_state,
)
from .subscriptions import SubscriptionRegistrar  # noqa: F401
from .transport import Transport, WebSocketTransport, connect_websocket  # noqa: F401

__all__ = [
    "ChatConnectionManager",
    "ConnectionEvent",
    "ConnectionManager",
    "ConnectionState",
    "PushChannelManager",
    "ReconnectState",
    "ScheduledReconnect",
    "SubscriptionRegistrar",
    "Transport",
    "WebSocketTransport",
    "connect_websocket",
    "default_backoff",
    "next_state",
]
