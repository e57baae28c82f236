"""Downstream side of the relay: subscriber fan-out and outbound chat."""

from .broadcast import BroadcastHub, Subscriber, SubscriberState  # noqa: F401
from .outbound import OutboundSender, SendResult  # noqa: F401

__all__ = [
    "BroadcastHub",
    "OutboundSender",
    "SendResult",
    "Subscriber",
    "SubscriberState",
]
