"""Chat identity connections over Twitch IRC WebSocket."""

from __future__ import annotations

import logging

from ..constants import CHAT_WS_URL
from ..events.normalizer import chat_event_from_record
from ..irc.parser import (
    chat_record_from_message,
    is_keepalive,
    keepalive_reply,
    parse_irc_message,
)
from .manager import BackoffPolicy, ConnectionManager, EventSink, default_backoff
from .transport import Transport, TransportFactory, connect_websocket

CAPABILITIES = "twitch.tv/tags twitch.tv/commands"


def single_line(text: str) -> str:
    """Collapse CR/LF runs to one space so text cannot start a new IRC command."""
    return " ".join(text.splitlines()).strip()


class ChatConnectionManager(ConnectionManager):
    """One authenticated chat identity joined to the target channel.

    The reader identity forwards channel messages to the hub; the sender
    identity only posts outbound messages so nothing is relayed twice.

    Attributes:
        nick (str): Login name used for NICK.
        channel (str): Channel joined, without the leading '#'.
        forward_events (bool): Whether parsed chat lines are emitted.
    """

    def __init__(
        self,
        identity: str,
        *,
        nick: str,
        access_token: str,
        channel: str,
        forward_events: bool = True,
        url: str = CHAT_WS_URL,
        transport_factory: TransportFactory | None = None,
        event_sink: EventSink | None = None,
        backoff: BackoffPolicy = default_backoff,
    ) -> None:
        super().__init__(
            identity,
            url,
            transport_factory=transport_factory or connect_websocket,
            event_sink=event_sink,
            backoff=backoff,
        )
        self.nick = nick.lower()
        self.channel = channel.lstrip("#").lower()
        self.forward_events = forward_events
        self._access_token = access_token

    async def on_open(self, transport: Transport) -> None:
        await transport.send(f"CAP REQ :{CAPABILITIES}")
        await transport.send(f"PASS oauth:{self._access_token}")
        await transport.send(f"NICK {self.nick}")
        await transport.send(f"JOIN #{self.channel}")
        logging.info(f"💬 {self.identity} joined #{self.channel} as {self.nick}")
        self.mark_ready()

    async def handle_message(self, raw: str) -> None:
        # One frame may carry several CRLF-terminated lines
        for line in raw.split("\r\n"):
            if line:
                await self._handle_line(line)

    async def _handle_line(self, line: str) -> None:
        if is_keepalive(line):
            if self.transport is not None:
                await self.transport.send(keepalive_reply(line))
            return

        try:
            parsed = parse_irc_message(line)
        except ValueError as e:
            logging.warning(f"⚠️ {self.identity} unparseable line dropped: {str(e)}")
            return

        if parsed.command == "NOTICE":
            logging.warning(f"📢 {self.identity} notice: {parsed.params}")
            return
        if parsed.command == "RECONNECT":
            logging.info(f"🔄 {self.identity} server requested reconnect")
            await self.redirect(self.url)
            return
        if parsed.command != "PRIVMSG" or not self.forward_events:
            return

        try:
            record = chat_record_from_message(parsed)
        except ValueError as e:
            logging.warning(f"⚠️ {self.identity} malformed chat line dropped: {str(e)}")
            return
        if record is None:
            return
        logging.debug(f"💬 {record.username}: {record.message}")
        await self.emit(chat_event_from_record(record))

    async def send_privmsg(self, text: str) -> bool:
        """Post ``text`` to the joined channel.

        Returns:
            bool: False if this identity has no ready socket.
        """
        transport = self.transport
        if not self.is_ready or transport is None or transport.closed:
            return False
        line = single_line(text)
        if not line:
            return False
        await transport.send(f"PRIVMSG #{self.channel} :{line}")
        logging.info(f"📤 {self.identity} sent message to #{self.channel}")
        return True
