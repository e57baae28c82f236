"""Builds ``HubConfig`` from the environment and an optional secrets file."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import dotenv_values
from pydantic import ValidationError

from ..errors.internal import ConfigError
from .model import HubConfig

DEFAULT_SECRETS_FILE = Path("~/twitch-secrets/.env")

REQUIRED_VARS = (
    "TWITCH_CLIENT_ID",
    "TWITCH_ACCESS_TOKEN",
    "TWITCH_USERNAME",
    "TWITCH_BOT_USERNAME",
    "TWITCH_BOT_ACCESS_TOKEN",
)

# pydantic field location -> environment variable, for error messages
_FIELD_VARS = {
    ("client_id",): "TWITCH_CLIENT_ID",
    ("broadcaster", "login"): "TWITCH_USERNAME",
    ("broadcaster", "access_token"): "TWITCH_ACCESS_TOKEN",
    ("bot", "login"): "TWITCH_BOT_USERNAME",
    ("bot", "access_token"): "TWITCH_BOT_ACCESS_TOKEN",
    ("host",): "OVERLAY_HUB_HOST",
    ("port",): "OVERLAY_HUB_PORT",
    ("static_dir",): "OVERLAY_STATIC_DIR",
    ("static_port",): "OVERLAY_STATIC_PORT",
}


def _variable_for(loc: tuple[int | str, ...]) -> str:
    key = tuple(str(part) for part in loc)
    return _FIELD_VARS.get(key, ".".join(key))


def _secrets_file(environ: Mapping[str, str], env_file: str | Path | None) -> Path:
    if env_file is not None:
        return Path(env_file).expanduser()
    override = environ.get("TWITCH_SECRETS_FILE")
    return Path(override).expanduser() if override else DEFAULT_SECRETS_FILE.expanduser()


def _merged_environment(
    environ: Mapping[str, str] | None, env_file: str | Path | None
) -> dict[str, str]:
    process_env = dict(os.environ if environ is None else environ)
    path = _secrets_file(process_env, env_file)
    merged: dict[str, str] = {}
    if path.is_file():
        logging.debug(f"🔐 Loading secrets from {path}")
        merged.update({k: v for k, v in dotenv_values(path).items() if v is not None})
    # Real environment wins over the file
    merged.update(process_env)
    return merged


def load_config(
    environ: Mapping[str, str] | None = None,
    env_file: str | Path | None = None,
) -> HubConfig:
    """Load and validate the hub configuration.

    Args:
        environ: Environment mapping; defaults to ``os.environ``.
        env_file: Secrets file path; defaults to ``TWITCH_SECRETS_FILE`` or
            ``~/twitch-secrets/.env``. A missing file is not an error.

    Returns:
        HubConfig: The validated configuration.

    Raises:
        ConfigError: Naming every missing or invalid variable.
    """
    env = _merged_environment(environ, env_file)

    missing = [name for name in REQUIRED_VARS if not env.get(name, "").strip()]
    if missing:
        raise ConfigError(
            f"Missing required environment variables: {', '.join(missing)}",
            data={"missing": missing},
        )

    raw = {
        "client_id": env["TWITCH_CLIENT_ID"],
        "broadcaster": {
            "login": env["TWITCH_USERNAME"],
            "access_token": env["TWITCH_ACCESS_TOKEN"],
        },
        "bot": {
            "login": env["TWITCH_BOT_USERNAME"],
            "access_token": env["TWITCH_BOT_ACCESS_TOKEN"],
        },
    }
    optional = {
        "host": "OVERLAY_HUB_HOST",
        "port": "OVERLAY_HUB_PORT",
        "static_dir": "OVERLAY_STATIC_DIR",
        "static_port": "OVERLAY_STATIC_PORT",
    }
    for field, name in optional.items():
        value = env.get(name, "").strip()
        if value:
            raw[field] = value

    try:
        return HubConfig.model_validate(raw)
    except ValidationError as e:
        invalid = sorted({_variable_for(err["loc"]) for err in e.errors()})
        raise ConfigError(
            f"Invalid environment variables: {', '.join(invalid)}",
            data={"invalid": invalid},
        ) from e
