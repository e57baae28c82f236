"""
Configuration constants for the overlay relay hub

This module contains all tunable constants used throughout the application.
Each constant can be overridden by setting an environment variable with the same name.
"""

import os


def _get_env_int(name: str, default: int) -> int:
    """Retrieve an integer value from an environment variable.

    Attempts to parse the environment variable as an integer. If the variable
    is not set or cannot be parsed, prints a warning and returns the default value.

    Args:
        name: The name of the environment variable to read.
        default: The default integer value to return if parsing fails.

    Returns:
        The parsed integer value from the environment, or the default if unavailable.
    """
    value = os.getenv(name)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            print(
                f"Warning: Invalid integer value for {name}='{value}', using default {default}"
            )
    return default


def _get_env_float(name: str, default: float) -> float:
    """Retrieve a float value from an environment variable.

    Args:
        name: The name of the environment variable to read.
        default: The default float value to return if parsing fails.

    Returns:
        The parsed float value from the environment, or the default if unavailable.
    """
    value = os.getenv(name)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            print(
                f"Warning: Invalid float value for {name}='{value}', using default {default}"
            )
    return default


# Upstream endpoints
EVENTSUB_WS_URL = os.getenv("EVENTSUB_WS_URL", "wss://eventsub.wss.twitch.tv/ws")
CHAT_WS_URL = os.getenv("CHAT_WS_URL", "wss://irc-ws.chat.twitch.tv:443")
HELIX_BASE_URL = os.getenv("HELIX_BASE_URL", "https://api.twitch.tv/helix")

# Reconnect backoff (seconds)
RECONNECT_BASE_DELAY_SECONDS = _get_env_float(
    "RECONNECT_BASE_DELAY_SECONDS", 1.0
)  # Delay unit for attempt 0
RECONNECT_MAX_DELAY_SECONDS = _get_env_float(
    "RECONNECT_MAX_DELAY_SECONDS", 60.0
)  # Cap applied before jitter
RECONNECT_JITTER_FACTOR = _get_env_float(
    "RECONNECT_JITTER_FACTOR", 0.25
)  # Jitter drawn from [0, factor * delay)

# Startup account resolution
ACCOUNT_RESOLVE_MAX_ATTEMPTS = _get_env_int(
    "ACCOUNT_RESOLVE_MAX_ATTEMPTS", 3
)  # Attempts before startup is aborted
ACCOUNT_RESOLVE_STEP_SECONDS = _get_env_float(
    "ACCOUNT_RESOLVE_STEP_SECONDS", 1.0
)  # Linear backoff increment between attempts

# Local serving sockets
DEFAULT_HUB_HOST = "localhost"
DEFAULT_HUB_PORT = _get_env_int("DEFAULT_HUB_PORT", 8080)
DEFAULT_STATIC_PORT = _get_env_int("DEFAULT_STATIC_PORT", 8081)
SUBSCRIBER_SEND_TIMEOUT_SECONDS = _get_env_float(
    "SUBSCRIBER_SEND_TIMEOUT_SECONDS", 5.0
)  # Upper bound for one subscriber write during fan-out
SUBSCRIBER_QUEUE_SIZE = _get_env_int(
    "SUBSCRIBER_QUEUE_SIZE", 256
)  # Undelivered messages a subscriber may lag behind before it is dropped
WEBSOCKET_CLOSE_NORMAL = 1000

# HTTP
HTTP_REQUEST_TIMEOUT_SECONDS = _get_env_int(
    "HTTP_REQUEST_TIMEOUT_SECONDS", 30
)  # Default HTTP request timeout

# Test helpers
TEST_EVENT_DELAY_SECONDS = _get_env_float(
    "TEST_EVENT_DELAY_SECONDS", 2.0
)  # Delay before the --test follow is broadcast
TRIGGER_LOOP_INTERVAL_SECONDS = _get_env_float(
    "TRIGGER_LOOP_INTERVAL_SECONDS", 5.0
)  # Interval for trigger --loop mode
