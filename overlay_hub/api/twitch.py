"""Thin asynchronous Twitch Helix API client used by the hub.

Wraps only the endpoints the relay needs: login -> user id resolution at
startup and EventSub subscription registration after each push welcome.
"""

from __future__ import annotations

import logging
from typing import Any

import aiohttp
from tenacity import (
    AsyncRetrying,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from ..constants import (
    ACCOUNT_RESOLVE_MAX_ATTEMPTS,
    ACCOUNT_RESOLVE_STEP_SECONDS,
    HELIX_BASE_URL,
)
from ..errors.handling import handle_api_error
from ..errors.internal import InternalError, OAuthError, StartupError

EVENTSUB_SUBSCRIPTIONS = "eventsub/subscriptions"


class TwitchAPI:
    """Asynchronous client for Twitch Helix API endpoints.

    Attributes:
        BASE_URL (str): The base URL for Twitch Helix API.
    """

    BASE_URL = HELIX_BASE_URL

    def __init__(self, session: aiohttp.ClientSession):
        """Initialize the TwitchAPI client.

        Args:
            session (aiohttp.ClientSession): The aiohttp session to use for requests.

        Raises:
            ValueError: If session is not provided.
        """
        if not session:
            raise ValueError("aiohttp session required")
        self._session = session

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        access_token: str,
        client_id: str,
        params: dict[str, Any] | list[tuple[str, str]] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> tuple[dict[str, Any], int]:
        """Perform a raw HTTP request to the Twitch Helix API.

        Args:
            method (str): HTTP method (e.g., 'GET', 'POST').
            endpoint (str): API endpoint path (without base URL).
            access_token (str): OAuth access token for authorization.
            client_id (str): Twitch application client ID.
            params: Query parameters for the request.
            json_body (dict[str, Any] | None): JSON body for the request.

        Returns:
            tuple[dict[str, Any], int]: The JSON response body (empty for 204 or
            non-object bodies) and the HTTP status code.

        Raises:
            NetworkError: If the request could not be sent.
            ParsingError: If the response body is not JSON.
        """
        url = f"{self.BASE_URL}/{endpoint}"
        headers = self._auth_headers(access_token, client_id)

        async def operation() -> tuple[dict[str, Any], int]:
            async with self._session.request(
                method, url, headers=headers, params=params, json=json_body
            ) as resp:
                logging.debug(
                    f"Twitch API response: status={resp.status}, url={url}"
                )
                if resp.status == 204:
                    return {}, resp.status
                data = await resp.json(content_type=None)
                return (data if isinstance(data, dict) else {}), resp.status

        return await handle_api_error(operation, f"Twitch API {method} {endpoint}")

    async def get_user_id(
        self, *, login: str, access_token: str, client_id: str
    ) -> str | None:
        """Resolve a login name to its user id.

        Returns:
            str | None: The user id, or None when the login does not exist.

        Raises:
            OAuthError: If the API rejects the credentials.
        """
        data, status = await self.request(
            "GET",
            "users",
            access_token=access_token,
            client_id=client_id,
            params=[("login", login.lower())],
        )
        if status == 401:
            raise OAuthError(f"Helix rejected credentials while resolving {login}")
        rows = data.get("data")
        if status != 200 or not isinstance(rows, list):
            raise InternalError(
                f"Unexpected Helix response resolving {login}: HTTP {status}",
                data={"status": status},
            )
        for row in rows:
            if isinstance(row, dict) and isinstance(row.get("id"), str):
                return row["id"]
        return None

    async def create_eventsub_subscription(
        self,
        *,
        subscription_type: str,
        version: str,
        condition: dict[str, str],
        session_id: str,
        access_token: str,
        client_id: str,
    ) -> tuple[dict[str, Any], int]:
        """Register one EventSub subscription on a WebSocket session."""
        body = {
            "type": subscription_type,
            "version": version,
            "condition": condition,
            "transport": {"method": "websocket", "session_id": session_id},
        }
        return await self.request(
            "POST",
            EVENTSUB_SUBSCRIPTIONS,
            access_token=access_token,
            client_id=client_id,
            json_body=body,
        )

    @staticmethod
    def _auth_headers(access_token: str, client_id: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Client-Id": client_id,
            "Content-Type": "application/json",
        }


async def resolve_broadcaster_id(
    api: TwitchAPI,
    *,
    login: str,
    access_token: str,
    client_id: str,
    max_attempts: int = ACCOUNT_RESOLVE_MAX_ATTEMPTS,
    step_seconds: float = ACCOUNT_RESOLVE_STEP_SECONDS,
) -> str:
    """Resolve the target account id, retrying with linear backoff.

    Credential rejections are not retried.

    Raises:
        StartupError: If the account cannot be resolved.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_incrementing(start=step_seconds, increment=step_seconds),
        retry=retry_if_not_exception_type(OAuthError),
        reraise=True,
    )
    user_id: str | None = None
    try:
        async for attempt in retrying:
            with attempt:
                n = attempt.retry_state.attempt_number
                logging.debug(f"🔍 Resolving account {login} (attempt {n}/{max_attempts})")
                user_id = await api.get_user_id(
                    login=login, access_token=access_token, client_id=client_id
                )
                if user_id is None:
                    raise StartupError(f"Could not find user: {login}")
    except StartupError:
        raise
    except InternalError as e:
        raise StartupError(f"Could not resolve account {login}: {str(e)}") from e
    if user_id is None:
        raise StartupError(f"Could not find user: {login}")
    return user_id
