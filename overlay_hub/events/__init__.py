"""Normalized event schema shared by every upstream connection and the hub."""

from .models import (  # noqa: F401
    BadgeKind,
    ChatEvent,
    ConnectedAck,
    ControlMessage,
    EmotePosition,
    FollowEvent,
    RaidEvent,
    RelayEvent,
    SubscriptionEvent,
)

__all__ = [
    "BadgeKind",
    "ChatEvent",
    "ConnectedAck",
    "ControlMessage",
    "EmotePosition",
    "FollowEvent",
    "RaidEvent",
    "RelayEvent",
    "SubscriptionEvent",
]
