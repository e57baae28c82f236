"""IRC line protocol package.

Parsing of Twitch chat lines (tags, prefix, command, payload) into structured
chat records, plus the keepalive helpers used by the chat connections.
"""

from .parser import (  # noqa: F401
    ChatRecord,
    IRCMessage,
    PrivMsg,
    build_privmsg,
    chat_record_from_message,
    is_keepalive,
    keepalive_reply,
    parse_badges,
    parse_chat_line,
    parse_emotes,
    parse_irc_message,
)

__all__ = [
    "ChatRecord",
    "IRCMessage",
    "PrivMsg",
    "build_privmsg",
    "chat_record_from_message",
    "is_keepalive",
    "keepalive_reply",
    "parse_badges",
    "parse_chat_line",
    "parse_emotes",
    "parse_irc_message",
]
