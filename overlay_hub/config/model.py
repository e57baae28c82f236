from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from ..constants import DEFAULT_HUB_HOST, DEFAULT_HUB_PORT, DEFAULT_STATIC_PORT


class IdentityCredentials(BaseModel):
    """Login and OAuth token for one Twitch account.

    Attributes:
        login: Twitch login name (lower-cased).
        access_token: OAuth access token without the ``oauth:`` prefix.
    """

    login: str = Field(min_length=3, max_length=25)
    access_token: str = Field(min_length=1)

    @field_validator("login", mode="before")
    @classmethod
    def normalize_login(cls, v: object) -> str:
        return str(v or "").strip().lstrip("#").lower()

    @field_validator("access_token", mode="before")
    @classmethod
    def strip_oauth_prefix(cls, v: object) -> str:
        token = str(v or "").strip()
        if token.lower().startswith("oauth:"):
            token = token[len("oauth:"):]
        return token


class HubConfig(BaseModel):
    """Complete runtime configuration of the hub.

    ``broadcaster`` owns the channel: its token drives the push channel and the
    chat reader. ``bot`` is the chat sender identity.
    """

    client_id: str = Field(min_length=1)
    broadcaster: IdentityCredentials
    bot: IdentityCredentials
    host: str = DEFAULT_HUB_HOST
    port: int = Field(default=DEFAULT_HUB_PORT, ge=1, le=65535)
    static_dir: Path | None = None
    static_port: int = Field(default=DEFAULT_STATIC_PORT, ge=1, le=65535)

    @field_validator("client_id", mode="before")
    @classmethod
    def strip_client_id(cls, v: object) -> str:
        return str(v or "").strip()

    @property
    def channel(self) -> str:
        return self.broadcaster.login
