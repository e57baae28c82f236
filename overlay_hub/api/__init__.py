"""Twitch HTTP API access."""

from .twitch import TwitchAPI, resolve_broadcaster_id  # noqa: F401

__all__ = ["TwitchAPI", "resolve_broadcaster_id"]
