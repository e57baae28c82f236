"""Relay error hierarchy for upstream connection and message handling.

All exceptions carry optional identity and operation context so log lines can
name which upstream connection failed and in which step.
"""


class RelayError(Exception):
    """Base exception for all relay-related errors.

    Args:
        message (str): Error message.
        identity (str | None): Upstream identity involved (e.g. 'push', 'chat-reader').
        operation_type (str | None): Operation type (e.g. 'connect', 'subscribe').

    Example:
        >>> raise RelayError("Generic error", identity="push", operation_type="connect")
    """

    def __init__(
        self,
        message: str,
        identity: str | None = None,
        operation_type: str | None = None,
    ) -> None:
        super().__init__(message)
        self.identity = identity
        self.operation_type = operation_type


class UpstreamConnectionError(RelayError):
    """Raised when an upstream socket cannot be opened, used or closed.

    Example:
        >>> raise UpstreamConnectionError("Failed to connect", identity="push", operation_type="connect")
    """

    pass


class SubscriptionError(RelayError):
    """Raised when an EventSub subscription category cannot be registered.

    Example:
        >>> raise SubscriptionError("Subscription failed", identity="push", operation_type="subscribe")
    """

    pass


class MessageProcessingError(RelayError):
    """Raised when an inbound message cannot be decoded or normalized.

    Example:
        >>> raise MessageProcessingError("Invalid JSON in message", operation_type="parse_json")
    """

    pass
