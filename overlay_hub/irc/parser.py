"""IRC message parsing utilities for Twitch chat lines."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..events.models import BadgeKind, EmotePosition

KEEPALIVE_TOKEN = "PING"

_TAG_ESCAPES = {":": ";", "s": " ", "\\": "\\", "r": "\r", "n": "\n"}


@dataclass
class IRCMessage:
    raw: str
    prefix: str | None
    command: str | None
    params: str
    tags: dict[str, str]


def parse_irc_message(raw_line: str) -> IRCMessage:
    tags: dict[str, str] = {}
    prefix: str | None = None
    params = ""
    command: str | None = None

    original = raw_line

    if raw_line.startswith("@"):
        tags_part, raw_line = raw_line.split(" ", 1)
        tags = _parse_tags(tags_part[1:])

    if raw_line.startswith(":"):
        remainder = raw_line[1:]
        if " " in remainder:
            prefix, raw_line = remainder.split(" ", 1)
        else:  # malformed; treat whole remainder as prefix and leave rest empty
            prefix = remainder
            raw_line = ""

    if " :" in raw_line:
        raw_line, params = raw_line.split(" :", 1)

    parts = raw_line.split()
    if parts:
        command = parts[0]
        if len(parts) > 1:
            middle = parts[1:]
            params = (" ".join(middle) + (f" {params}" if params else "")).strip()

    return IRCMessage(
        raw=original, prefix=prefix, command=command, params=params, tags=tags
    )


def _parse_tags(raw_tags: str) -> dict[str, str]:
    tags: dict[str, str] = {}
    for tag in raw_tags.split(";"):
        if not tag:
            continue
        if "=" in tag:
            k, v = tag.split("=", 1)
        else:
            k, v = tag, ""
        tags[k] = _unescape_tag_value(v)
    return tags


def _unescape_tag_value(value: str) -> str:
    if "\\" not in value:
        return value
    out: list[str] = []
    chars = iter(value)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, "")
        out.append(_TAG_ESCAPES.get(nxt, nxt))
    return "".join(out)


@dataclass
class PrivMsg:
    author: str
    channel: str
    message: str
    tags: dict[str, str]


def build_privmsg(parsed: IRCMessage) -> PrivMsg | None:
    if parsed.command != "PRIVMSG":
        return None
    params = parsed.params.split(" ", 1)
    if len(params) < 2:
        return None
    channel_token, message = params
    channel = channel_token.lstrip("#").lower()
    # Author from prefix (nick!user@host)
    author = (parsed.prefix or "?").split("!", 1)[0]
    return PrivMsg(author=author, channel=channel, message=message, tags=parsed.tags)


@dataclass
class ChatRecord:
    """Structured chat line ready for normalization."""

    username: str
    message: str
    channel: str
    color_hex: str | None = None
    badges: frozenset[BadgeKind] = field(default_factory=frozenset)
    emotes: tuple[EmotePosition, ...] = ()


def parse_badges(raw: str | None) -> frozenset[BadgeKind]:
    """Parse a ``name/version,name/version`` badge tag into known badge kinds.

    Unknown badge names are dropped silently.
    """
    if not raw:
        return frozenset()
    kinds: set[BadgeKind] = set()
    for entry in raw.split(","):
        name = entry.split("/", 1)[0].strip().lower()
        kind = BadgeKind.from_token(name)
        if kind is not None:
            kinds.add(kind)
    return frozenset(kinds)


def parse_emotes(raw: str | None) -> tuple[EmotePosition, ...]:
    """Parse an ``id:start-end,start-end/id:start-end`` emote tag.

    Returns one position per range, sorted by start offset descending so that
    text splicing can run front to back without shifting later offsets.

    Raises:
        ValueError: If a group or range is malformed.
    """
    if not raw:
        return ()
    positions: list[EmotePosition] = []
    for group in raw.split("/"):
        if not group:
            continue
        emote_id, ranges = group.split(":", 1)
        if not emote_id:
            raise ValueError(f"emote group without id: {group!r}")
        for span in ranges.split(","):
            start_s, end_s = span.split("-", 1)
            start, end = int(start_s), int(end_s)
            if start < 0 or end < start:
                raise ValueError(f"invalid emote range {span!r}")
            positions.append(EmotePosition(id=emote_id, start=start, end=end))
    positions.sort(key=lambda p: p.start, reverse=True)
    return tuple(positions)


def parse_chat_line(raw_line: str) -> ChatRecord | None:
    """Parse one raw chat line into a ``ChatRecord``.

    Returns ``None`` for any line that is not a channel message (joins,
    notices, numerics). Keepalive lines are answered by the caller and never
    reach this function.

    Raises:
        ValueError: On malformed tag blocks or emote ranges; callers drop the line.
    """
    return chat_record_from_message(parse_irc_message(raw_line.rstrip("\r\n")))


def chat_record_from_message(parsed: IRCMessage) -> ChatRecord | None:
    privmsg = build_privmsg(parsed)
    if privmsg is None:
        return None
    tags = privmsg.tags
    username = tags.get("display-name") or privmsg.author
    return ChatRecord(
        username=username,
        message=privmsg.message,
        channel=privmsg.channel,
        color_hex=tags.get("color") or None,
        badges=parse_badges(tags.get("badges")),
        emotes=parse_emotes(tags.get("emotes")),
    )


def is_keepalive(raw_line: str) -> bool:
    return raw_line.startswith(KEEPALIVE_TOKEN)


def keepalive_reply(raw_line: str) -> str:
    """Echo the keepalive payload back as a ``PONG`` line."""
    return "PONG" + raw_line[len(KEEPALIVE_TOKEN):]
