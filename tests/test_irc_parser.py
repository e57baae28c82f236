from __future__ import annotations

import pytest

from overlay_hub.events.models import BadgeKind, EmotePosition
from overlay_hub.irc.parser import (
    build_privmsg,
    is_keepalive,
    keepalive_reply,
    parse_badges,
    parse_chat_line,
    parse_emotes,
    parse_irc_message,
)


def test_parse_malformed_missing_spaces():  # type: ignore[no-untyped-def]
    raw = ":nick!user@hostPRIVMSG#chan:hello"  # missing space before command
    msg = parse_irc_message(raw)
    assert msg.raw == raw
    assert msg.command is None or isinstance(msg.command, str)


def test_parse_tags_and_params():  # type: ignore[no-untyped-def]
    raw = "@badge=1;color=red :nick!u@h PRIVMSG #room :Hello there"
    msg = parse_irc_message(raw)
    assert msg.tags.get("badge") == "1"
    assert msg.tags.get("color") == "red"
    assert msg.command == "PRIVMSG"
    priv = build_privmsg(msg)
    assert priv is not None
    assert priv.author == "nick"
    assert priv.channel == "room"
    assert priv.message == "Hello there"


def test_tag_values_are_unescaped():  # type: ignore[no-untyped-def]
    msg = parse_irc_message(r"@system-msg=hello\sworld\:\\ :tmi PRIVMSG #room :x")
    assert msg.tags["system-msg"] == "hello world;\\"


def test_build_privmsg_invalid_command():  # type: ignore[no-untyped-def]
    msg = parse_irc_message(":nick!u@h PING :pong")
    assert build_privmsg(msg) is None


def test_build_privmsg_missing_params():  # type: ignore[no-untyped-def]
    msg = parse_irc_message(":nick!u@h PRIVMSG #room")
    assert build_privmsg(msg) is None


def test_parse_chat_line_full_example():  # type: ignore[no-untyped-def]
    line = "@badges=moderator/1;color=#FF0000;emotes=25:0-4 :user!user@user PRIVMSG #chan :Kappa hi"
    record = parse_chat_line(line)
    assert record is not None
    assert record.username == "user"
    assert record.message == "Kappa hi"
    assert record.channel == "chan"
    assert record.color_hex == "#FF0000"
    assert record.badges == frozenset({BadgeKind.MODERATOR})
    assert record.emotes == (EmotePosition(id="25", start=0, end=4),)


def test_display_name_overrides_prefix_nick():  # type: ignore[no-untyped-def]
    line = "@display-name=CoolUser;color= :cooluser!cooluser@host PRIVMSG #chan :hey"
    record = parse_chat_line(line)
    assert record is not None
    assert record.username == "CoolUser"
    assert record.color_hex is None


def test_trailing_crlf_is_ignored():  # type: ignore[no-untyped-def]
    record = parse_chat_line(":a!a@a PRIVMSG #chan :hello\r\n")
    assert record is not None
    assert record.message == "hello"


@pytest.mark.parametrize(
    "line",
    [
        ":tmi.twitch.tv 001 bot :Welcome, GLHF!",
        ":bot!bot@bot JOIN #chan",
        "@msg-id=followers_on :tmi.twitch.tv NOTICE #chan :This room is in followers-only mode.",
        "garbage",
        "",
    ],
)
def test_non_privmsg_lines_return_none(line):  # type: ignore[no-untyped-def]
    assert parse_chat_line(line) is None


def test_multiple_emote_groups_sorted_descending():  # type: ignore[no-untyped-def]
    assert parse_emotes("1:0-3/2:10-13") == (
        EmotePosition(id="2", start=10, end=13),
        EmotePosition(id="1", start=0, end=3),
    )


def test_emote_with_several_ranges():  # type: ignore[no-untyped-def]
    result = parse_emotes("25:0-4,12-16/1902:6-10")
    assert [e.start for e in result] == [12, 6, 0]
    assert [e.id for e in result] == ["25", "1902", "25"]


@pytest.mark.parametrize("raw", ["25", "25:a-b", ":0-4", "25:5-2", "25:0"])
def test_malformed_emotes_raise(raw):  # type: ignore[no-untyped-def]
    with pytest.raises(ValueError):
        parse_emotes(raw)


def test_malformed_emote_tag_fails_whole_line():  # type: ignore[no-untyped-def]
    with pytest.raises(ValueError):
        parse_chat_line("@emotes=25:x-y :u!u@u PRIVMSG #chan :Kappa")


def test_unknown_badges_dropped():  # type: ignore[no-untyped-def]
    assert parse_badges("broadcaster/1,glhf-pledge/1,subscriber/12,vip/1") == frozenset(
        {BadgeKind.BROADCASTER, BadgeKind.SUBSCRIBER, BadgeKind.VIP}
    )
    assert parse_badges("") == frozenset()
    assert parse_badges(None) == frozenset()


def test_keepalive_helpers():  # type: ignore[no-untyped-def]
    assert is_keepalive("PING :tmi.twitch.tv")
    assert not is_keepalive(":u!u@u PRIVMSG #chan :PING")
    assert keepalive_reply("PING :tmi.twitch.tv") == "PONG :tmi.twitch.tv"
