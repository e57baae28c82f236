from __future__ import annotations

import json
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

import aiohttp

from ..logging_config import log_structured_error
from .internal import (
    ConfigError,
    InternalError,
    NetworkError,
    OAuthError,
    ParsingError,
    StartupError,
)
from .relay import MessageProcessingError, RelayError

T = TypeVar("T")


def classify_error(error: BaseException) -> str:
    """Map an exception onto the category used in structured log lines."""
    if isinstance(error, NetworkError | OSError | ConnectionError | TimeoutError):
        return "network"
    if isinstance(error, OAuthError):
        return "auth"
    if isinstance(error, ParsingError | MessageProcessingError | json.JSONDecodeError):
        return "parsing"
    if isinstance(error, ConfigError | StartupError):
        return "startup"
    if isinstance(error, RelayError):
        return "relay"
    if isinstance(error, InternalError):
        return "internal"
    return "unknown"


def log_error(message: str, error: Exception, context: dict = None) -> None:
    """Logs an error message with the associated exception details.

    Args:
        message: A descriptive message about the error context.
        error: The exception instance to be logged.
        context: Optional additional context data for debugging.
    """
    log_structured_error(
        error_type=classify_error(error),
        message=f"{message}: {str(error)}",
        exception=error,
        context=context,
    )


async def handle_api_error(operation: Callable[[], Awaitable[T]], context: str) -> T:
    """Run an HTTP operation and translate transport failures.

    Args:
        operation: The async API operation to execute.
        context: Descriptive context for the operation (e.g., "Helix GET users").

    Returns:
        The result of the operation if successful.

    Raises:
        NetworkError: Connectivity problems (DNS, reset, timeout).
        OAuthError: The API answered 401.
        ParsingError: The response body could not be decoded.
        InternalError: Any other client error.
    """
    try:
        return await operation()
    except (aiohttp.ClientError, ValueError, OSError, TimeoutError) as e:
        error_context: dict[str, object] = {"operation": context, "timestamp": time.time()}
        status = getattr(e, "status", None)
        if status is not None:
            error_context["http_status"] = status

        log_error(f"API operation failed in {context}", e, context=error_context)

        if status == 401:
            raise OAuthError(
                f"Authentication failed in {context}. Token may be expired or invalid. Error: {str(e)}"
            ) from e
        if isinstance(e, ValueError):
            raise ParsingError(
                f"Malformed response in {context}. Error: {str(e)}"
            ) from e
        if isinstance(e, OSError | TimeoutError | aiohttp.ClientConnectionError):
            raise NetworkError(
                f"Network connectivity issue in {context}. Check internet connection and DNS resolution. Error: {str(e)}"
            ) from e
        raise InternalError(f"API error in {context}: {str(e)}") from e
