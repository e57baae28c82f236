"""Reconnect timing toolkit."""

from .backoff import backoff_delay, base_delay  # noqa: F401

__all__ = ["backoff_delay", "base_delay"]
