"""Send simulated events to a running hub.

Usage:
    python -m overlay_hub.trigger follow "Username"
    python -m overlay_hub.trigger raid "RaidLeader" 50
    python -m overlay_hub.trigger subscribe "NewSub" 3
    python -m overlay_hub.trigger bits "Cheerer" 500
    python -m overlay_hub.trigger --loop follow
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import secrets
import sys
from collections.abc import Callable
from typing import Any

from websockets.asyncio.client import connect
from websockets.exceptions import WebSocketException

from .constants import DEFAULT_HUB_HOST, DEFAULT_HUB_PORT, TRIGGER_LOOP_INTERVAL_SECONDS
from .logging_config import LoggerConfigurator

DEFAULT_HUB_URL = f"ws://{DEFAULT_HUB_HOST}:{DEFAULT_HUB_PORT}"

# Time for the frame to flush before closing
_SEND_GRACE_SECONDS = 0.1


def _int_or(value: str | None, fallback: int) -> int:
    try:
        return int(value) if value is not None else fallback
    except ValueError:
        return fallback


def _follow(username: str | None, _extra: str | None) -> dict[str, Any]:
    return {
        "type": "follow",
        "username": username or f"TestFollower_{secrets.randbelow(1000)}",
    }


def _raid(username: str | None, extra: str | None) -> dict[str, Any]:
    return {
        "type": "raid",
        "username": username or "RaidLeader",
        "viewers": _int_or(extra, secrets.randbelow(100) + 10),
    }


def _subscribe(username: str | None, extra: str | None) -> dict[str, Any]:
    return {
        "type": "subscribe",
        "username": username or "NewSubscriber",
        "months": _int_or(extra, 1),
        "tier": "1000",
    }


def _bits(username: str | None, extra: str | None) -> dict[str, Any]:
    return {
        "type": "bits",
        "username": username or "BitsCheerer",
        "amount": _int_or(extra, 100),
    }


EVENT_BUILDERS: dict[str, Callable[[str | None, str | None], dict[str, Any]]] = {
    "follow": _follow,
    "raid": _raid,
    "subscribe": _subscribe,
    "bits": _bits,
}


def build_event(
    event_type: str, username: str | None = None, extra: str | None = None
) -> dict[str, Any]:
    """Build one simulated event payload.

    Raises:
        ValueError: If ``event_type`` is unknown.
    """
    builder = EVENT_BUILDERS.get(event_type)
    if builder is None:
        raise ValueError(
            f"Unknown event type: {event_type} (available: {', '.join(EVENT_BUILDERS)})"
        )
    return builder(username, extra)


async def send_event(url: str, event: dict[str, Any]) -> None:
    async with connect(url) as ws:
        logging.info(f"🎉 Sending {event['type']}: {event.get('username')}")
        await ws.send(json.dumps(event))
        await asyncio.sleep(_SEND_GRACE_SECONDS)


async def loop_events(
    url: str,
    event_type: str,
    username: str | None,
    extra: str | None,
    interval: float = TRIGGER_LOOP_INTERVAL_SECONDS,
) -> None:
    logging.info(f"🔄 Loop mode: sending {event_type} every {interval:g} seconds")
    while True:
        try:
            await send_event(url, build_event(event_type, username, extra))
        except (OSError, WebSocketException) as e:
            logging.debug(f"Hub not reachable, retrying: {str(e)}")
        await asyncio.sleep(interval)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="overlay-trigger", description="Send simulated events to the overlay hub"
    )
    parser.add_argument("event", choices=sorted(EVENT_BUILDERS), help="event type")
    parser.add_argument("username", nargs="?", default=None)
    parser.add_argument(
        "extra", nargs="?", default=None, help="viewers, months or bits amount"
    )
    parser.add_argument(
        "--loop", action="store_true", help="resend the event every few seconds"
    )
    parser.add_argument("--url", default=DEFAULT_HUB_URL, help="hub WebSocket URL")
    return parser.parse_args(argv)


def run(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    LoggerConfigurator().configure()
    try:
        if args.loop:
            asyncio.run(loop_events(args.url, args.event, args.username, args.extra))
            return
        asyncio.run(send_event(args.url, build_event(args.event, args.username, args.extra)))
    except KeyboardInterrupt:
        sys.exit(0)
    except (OSError, WebSocketException) as e:
        logging.error(f"❌ Could not connect to overlay hub at {args.url}: {str(e)}")
        sys.exit(1)
    logging.info("✅ Event sent!")


if __name__ == "__main__":
    run()
