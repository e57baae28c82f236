"""Maps push notifications and parsed chat lines into ``RelayEvent`` variants."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..irc.parser import ChatRecord, parse_chat_line
from .models import (
    ChatEvent,
    FollowEvent,
    RaidEvent,
    RelayEvent,
    SubscriptionEvent,
    utc_timestamp,
)

CHANNEL_FOLLOW = "channel.follow"
CHANNEL_RAID = "channel.raid"
CHANNEL_SUBSCRIBE = "channel.subscribe"


@dataclass(frozen=True)
class SubscriptionCategory:
    """An EventSub category this hub registers for and knows how to decode."""

    type: str
    version: str
    condition: Callable[[str], dict[str, str]]


SUBSCRIPTION_CATEGORIES: tuple[SubscriptionCategory, ...] = (
    SubscriptionCategory(
        CHANNEL_FOLLOW,
        "2",
        lambda uid: {"broadcaster_user_id": uid, "moderator_user_id": uid},
    ),
    SubscriptionCategory(
        CHANNEL_RAID,
        "1",
        lambda uid: {"to_broadcaster_user_id": uid},
    ),
    SubscriptionCategory(
        CHANNEL_SUBSCRIBE,
        "1",
        lambda uid: {"broadcaster_user_id": uid},
    ),
)


def _follow(event: dict[str, Any]) -> FollowEvent:
    return FollowEvent(
        username=str(event["user_name"]),
        user_id=event.get("user_id"),
        followed_at=event.get("followed_at") or utc_timestamp(),
    )


def _raid(event: dict[str, Any]) -> RaidEvent:
    return RaidEvent(
        username=str(event["from_broadcaster_user_name"]),
        viewer_count=int(event.get("viewers") or 0),
    )


def _subscribe(event: dict[str, Any]) -> SubscriptionEvent:
    return SubscriptionEvent(
        username=str(event["user_name"]),
        tier=str(event.get("tier") or "1000"),
        is_gift=bool(event.get("is_gift", False)),
    )


_BUILDERS: dict[str, Callable[[dict[str, Any]], RelayEvent]] = {
    CHANNEL_FOLLOW: _follow,
    CHANNEL_RAID: _raid,
    CHANNEL_SUBSCRIBE: _subscribe,
}


def normalize_notification(
    subscription_type: str, event: dict[str, Any]
) -> RelayEvent | None:
    """Build exactly one event for a known category, ``None`` otherwise.

    Raises:
        KeyError: If a known category is missing a required field.
        ValueError: If a numeric field cannot be converted.
    """
    builder = _BUILDERS.get(subscription_type)
    if builder is None:
        logging.info(f"📬 Unhandled event category {subscription_type}: {event}")
        return None
    relay_event = builder(event)
    logging.info(f"🎉 {subscription_type}: {getattr(relay_event, 'username', '?')}")
    return relay_event


def chat_event_from_record(record: ChatRecord) -> ChatEvent:
    return ChatEvent(
        username=record.username,
        message=record.message,
        color_hex=record.color_hex,
        badges=record.badges,
        emotes=record.emotes,
    )


def normalize_chat_line(raw_line: str) -> ChatEvent | None:
    """Parse and wrap one chat line; ``None`` for anything but a channel message."""
    record = parse_chat_line(raw_line)
    if record is None:
        return None
    return chat_event_from_record(record)
