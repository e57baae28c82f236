"""Routes subscriber ``send`` requests to a ready chat identity."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..connection.chat import ChatConnectionManager, single_line


@dataclass(frozen=True)
class SendResult:
    ok: bool
    identity: str | None = None
    reason: str | None = None


class OutboundSender:
    """Prefers the sender identity, falls back to the reader identity.

    ``send`` never raises; callers get a ``SendResult``.
    """

    def __init__(
        self,
        sender: ChatConnectionManager | None,
        reader: ChatConnectionManager | None,
    ) -> None:
        self.sender = sender
        self.reader = reader

    def _candidates(self) -> list[ChatConnectionManager]:
        return [m for m in (self.sender, self.reader) if m is not None and m.is_ready]

    async def send(self, text: str) -> SendResult:
        text = single_line(text) if isinstance(text, str) else ""
        if not text:
            return SendResult(ok=False, reason="empty message")
        candidates = self._candidates()
        if not candidates:
            logging.warning("⚠️ No chat connection available to send message")
            return SendResult(ok=False, reason="no chat connection available")
        for manager in candidates:
            try:
                if await manager.send_privmsg(text):
                    if manager is not self.sender:
                        logging.info(f"↩️ Sent via fallback identity {manager.nick}")
                    return SendResult(ok=True, identity=manager.identity)
            except Exception as e:  # noqa: BLE001
                logging.warning(f"⚠️ Send via {manager.identity} failed: {str(e)}")
        return SendResult(ok=False, reason="all chat connections failed")
