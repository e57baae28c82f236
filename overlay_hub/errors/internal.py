"""Centralized internal error hierarchy.

These exceptions provide semantic categories for startup checks, retry logic and
higher-level error handling. Only raise these inside application/network
boundaries – never surface raw aiohttp / JSON errors to retry code; wrap them instead.

Classes:
  InternalError          – Base for all internal errors.
  NetworkError           – Transient network/IO issues (safe to retry).
  OAuthError             – Authentication / authorization related failures.
  ParsingError           – Response parsing / schema validation issues.
  ConfigError            – Missing or invalid startup configuration.
  StartupError           – Startup step that could not complete (fatal).
  InvalidTransitionError – Connection state machine received an illegal event.
"""

from __future__ import annotations

from collections.abc import Mapping


class InternalError(Exception):
    """Base class for all internal application errors with metadata support.

    Attributes:
        data: Dictionary containing arbitrary structured context data.

    Args:
        message: Descriptive error message.
        data: Optional mapping of additional context data.
    """

    data: dict[str, object]

    def __init__(
        self, message: str, *, data: Mapping[str, object] | None = None
    ) -> None:
        super().__init__(message)
        # Copy into a plain dict to avoid unexpected mutations from caller.
        self.data = dict(data) if data else {}


class NetworkError(InternalError):
    """Exception raised for network or transport layer errors.

    This includes issues such as connection timeouts, resets, or other
    transient network failures that may be retried.
    """


class OAuthError(InternalError):
    """Exception raised for OAuth authentication or authorization failures.

    These errors typically indicate issues with credentials, tokens, or
    permissions that are not suitable for automatic retry.
    """


class ParsingError(InternalError):
    """Exception raised for response parsing or schema validation errors."""


class ConfigError(InternalError):
    """Exception raised when required configuration is missing or invalid.

    The ``data`` mapping carries ``missing`` and ``invalid`` variable names.
    """


class StartupError(InternalError):
    """Exception raised when a startup step fails and the hub must not serve."""


class InvalidTransitionError(InternalError):
    """Exception raised when a connection state machine receives an event
    that is not legal in its current state."""


__all__ = [
    "InternalError",
    "NetworkError",
    "OAuthError",
    "ParsingError",
    "ConfigError",
    "StartupError",
    "InvalidTransitionError",
]
