"""Normalized relay events.

Every upstream payload is converted into one of these dataclasses before it is
handed to the broadcast hub. ``to_dict`` produces the JSON object sent to
subscribers: ``{"type": <kind>, ...fields}``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class BadgeKind(str, Enum):
    BROADCASTER = "broadcaster"
    MODERATOR = "moderator"
    VIP = "vip"
    SUBSCRIBER = "subscriber"

    @classmethod
    def from_token(cls, token: str) -> BadgeKind | None:
        try:
            return cls(token)
        except ValueError:
            return None


_BADGE_ORDER = {kind: index for index, kind in enumerate(BadgeKind)}


@dataclass(frozen=True, slots=True)
class EmotePosition:
    """One emote occurrence; ``end`` is inclusive."""

    id: str
    start: int
    end: int

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "start": self.start, "end": self.end}


class RelayEvent:
    """Base for every event variant that can be broadcast."""

    __slots__ = ()
    event_type: ClassVar[str] = ""

    def to_dict(self) -> dict[str, Any]:  # pragma: no cover - interface
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class FollowEvent(RelayEvent):
    event_type: ClassVar[str] = "follow"

    username: str
    user_id: str | None = None
    followed_at: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "username": self.username,
            "userId": self.user_id,
            "timestamp": self.followed_at,
        }


@dataclass(frozen=True, slots=True)
class RaidEvent(RelayEvent):
    event_type: ClassVar[str] = "raid"

    username: str
    viewer_count: int = 0
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "username": self.username,
            "viewers": self.viewer_count,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, slots=True)
class SubscriptionEvent(RelayEvent):
    event_type: ClassVar[str] = "subscribe"

    username: str
    tier: str = "1000"
    is_gift: bool = False
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "username": self.username,
            "tier": self.tier,
            "isGift": self.is_gift,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, slots=True)
class ChatEvent(RelayEvent):
    """A chat message.

    ``emotes`` is ordered by start offset descending (splice order). Renderers
    that walk the text left to right use ``emotes_ascending``.
    """

    event_type: ClassVar[str] = "chat"

    username: str
    message: str
    color_hex: str | None = None
    badges: frozenset[BadgeKind] = frozenset()
    emotes: tuple[EmotePosition, ...] = ()
    timestamp: str = field(default_factory=utc_timestamp)

    @property
    def emotes_ascending(self) -> tuple[EmotePosition, ...]:
        return tuple(sorted(self.emotes, key=lambda e: e.start))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "username": self.username,
            "message": self.message,
            "color": self.color_hex,
            "badges": [b.value for b in sorted(self.badges, key=_BADGE_ORDER.__getitem__)],
            "emotes": [e.to_dict() for e in self.emotes],
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, slots=True)
class ConnectedAck(RelayEvent):
    """Greeting sent to a subscriber right after it connects."""

    event_type: ClassVar[str] = "connected"

    welcome_message: str = "Welcome to overlay server"
    push_channel_connected: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "message": self.welcome_message,
            "twitchConnected": self.push_channel_connected,
        }


@dataclass(frozen=True, slots=True)
class ControlMessage:
    """Inbound message from a subscriber. Never broadcast as-is by type.

    ``kind == "send"`` requests an outbound chat message; any other kind is a
    simulated event whose ``payload`` is relayed verbatim.
    """

    SEND: ClassVar[str] = "send"

    kind: str
    payload: dict[str, Any]

    @classmethod
    def from_wire(cls, data: Any) -> ControlMessage | None:
        if not isinstance(data, dict):
            return None
        kind = data.get("type")
        if not isinstance(kind, str) or not kind:
            return None
        return cls(kind=kind, payload=data)

    @property
    def is_send(self) -> bool:
        return self.kind == self.SEND

    @property
    def text(self) -> str | None:
        value = self.payload.get("message")
        return value if isinstance(value, str) else None


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
    "utc_timestamp",
]
