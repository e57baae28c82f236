#!/usr/bin/env python3
"""
Main entry point for the overlay event hub
"""

import argparse
import asyncio
import logging
import sys

import aiohttp

from .api.twitch import TwitchAPI, resolve_broadcaster_id
from .config import load_config
from .constants import HTTP_REQUEST_TIMEOUT_SECONDS
from .errors.handling import log_error
from .errors.internal import ConfigError, StartupError
from .lifecycle import build_application
from .logging_config import LoggerConfigurator


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="overlay-hub",
        description="Relay Twitch events and chat to local overlay clients",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="broadcast a simulated follow event shortly after startup",
    )
    parser.add_argument(
        "--health-check",
        action="store_true",
        help="validate configuration and exit",
    )
    return parser.parse_args(argv)


def health_check() -> int:
    logging.info("🏥 Health check mode")
    try:
        config = load_config()
    except ConfigError as e:
        logging.error(f"❌ Health check failed: {e}")
        return 1
    logging.info(
        f"✅ Health check passed - channel {config.channel}, bot {config.bot.login}"
    )
    return 0


async def main(test_mode: bool = False) -> int:
    """Load configuration, resolve the target account and run until signalled.

    Returns:
        int: Process exit code. Startup failures return 1 before any socket opens.
    """
    logging.info("🚀 Starting overlay event hub")
    try:
        config = load_config()
    except ConfigError as e:
        log_error("Configuration error", e)
        return 1

    timeout = aiohttp.ClientTimeout(total=HTTP_REQUEST_TIMEOUT_SECONDS)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        api = TwitchAPI(session)
        try:
            broadcaster_id = await resolve_broadcaster_id(
                api,
                login=config.broadcaster.login,
                access_token=config.broadcaster.access_token,
                client_id=config.client_id,
            )
        except StartupError as e:
            log_error("Startup error", e)
            return 1
        logging.info(f"🆔 {config.broadcaster.login} resolved to id {broadcaster_id}")

        app = build_application(
            config, broadcaster_id=broadcaster_id, api=api, test_mode=test_mode
        )
        try:
            await app.start()
        except OSError as e:
            log_error("Could not start local servers", e)
            await app.shutdown()
            return 1
        await app.run_until_stopped()
    return 0


def run(argv: list[str] | None = None) -> None:
    """Synchronous entry point for the application.

    Raises:
        SystemExit: Always, carrying the process exit code.
    """
    args = parse_args(argv)
    LoggerConfigurator().configure()
    if args.health_check:
        sys.exit(health_check())
    try:
        code = asyncio.run(main(test_mode=args.test))
    except KeyboardInterrupt:
        code = 0
    except Exception as e:
        log_error("Top-level error", e)
        code = 1
    finally:
        logging.info("✅ Application shutdown complete")
    sys.exit(code)


if __name__ == "__main__":
    run()
