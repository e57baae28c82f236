r"""
Logging setup for the overlay relay hub.

All modules log through the root logger with an emoji-prefixed message. This
module installs a colorlog formatter on stderr and keeps a per-category error
tally, so a flapping upstream shows up as a rate instead of a wall of
identical lines.
"""

import atexit
import logging
import os
import sys
import threading
import time
from collections import defaultdict, deque
from typing import Any

import colorlog

ALERT_RATE_PER_HOUR = 10.0
MAX_ERRORS_PER_TYPE = 1000
RECENT_WINDOW_SECONDS = 3600

LOG_FORMAT = "%(asctime)s %(log_color)s%(levelname)-8s%(reset)s %(message_log_color)s%(message)s"
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "magenta",
}

# Libraries whose chatter would drown out relay lines
QUIET_LOGGERS = {
    "websockets": logging.INFO,
    "aiohttp.access": logging.WARNING,
}


class ErrorAggregator:
    """Counts structured errors per category.

    Each category keeps at most ``MAX_ERRORS_PER_TYPE`` recent occurrences.
    The hourly rate is measured against process uptime, floored at one hour.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._occurrences: dict[str, deque[dict[str, Any]]] = defaultdict(
            lambda: deque(maxlen=MAX_ERRORS_PER_TYPE)
        )
        self._started = time.time()

    def record_error(self, error_type: str, message: str, context: dict[str, Any] = None) -> None:
        entry = {"timestamp": time.time(), "message": message, "context": context or {}}
        with self._lock:
            self._occurrences[error_type].append(entry)

    def get_error_summary(self) -> dict[str, Any]:
        now = time.time()
        with self._lock:
            hours_up = max((now - self._started) / 3600, 1)
            return {
                error_type: {
                    "total_count": len(entries),
                    "recent_count": sum(
                        1 for e in entries if now - e["timestamp"] < RECENT_WINDOW_SECONDS
                    ),
                    "rate_per_hour": len(entries) / hours_up,
                    "last_occurrence": entries[-1] if entries else None,
                }
                for error_type, entries in self._occurrences.items()
            }

    def should_alert(self, error_type: str, threshold_rate: float = ALERT_RATE_PER_HOUR) -> bool:
        stats = self.get_error_summary().get(error_type)
        return stats is not None and stats["rate_per_hour"] > threshold_rate

    def reset(self) -> None:
        with self._lock:
            self._occurrences.clear()
            self._started = time.time()

    def log_summary_report(self) -> None:
        summary = self.get_error_summary()
        if not summary:
            logging.info("No errors recorded in current session")
            return

        logging.warning("🚨 Error summary by category")
        for error_type, stats in sorted(summary.items()):
            logging.warning(
                f"  {error_type}: {stats['total_count']} total, "
                f"{stats['recent_count']} in last hour, "
                f"{stats['rate_per_hour']:.1f}/hour"
            )
            last = stats["last_occurrence"]
            if last:
                logging.warning(f"    Last: {last['message']}")


error_aggregator = ErrorAggregator()


def log_structured_error(
    error_type: str,
    message: str,
    exception: Exception = None,
    context: dict[str, Any] = None,
    level: int = logging.ERROR,
) -> None:
    """Log one categorized error line and count it.

    The line reads ``[CATEGORY] message | Exception: Type: text | Context: k=v | ...``.
    A CRITICAL line follows when the category's hourly rate passes the alert threshold.

    Args:
        error_type: Category such as 'network', 'auth', 'parsing' or 'relay'.
        message: Human readable description.
        exception: The exception that occurred, if any.
        context: Extra key/value pairs (identity, endpoint, status, ...).
        level: Logging level, ERROR by default.
    """
    parts = [f"[{error_type.upper()}] {message}"]
    if exception:
        parts.append(f"Exception: {type(exception).__name__}: {str(exception)}")
    if context:
        parts.append("Context: " + " | ".join(f"{k}={v}" for k, v in context.items()))
    logging.log(level, " | ".join(parts))

    error_aggregator.record_error(error_type, message, context)
    if error_aggregator.should_alert(error_type):
        rate = error_aggregator.get_error_summary()[error_type]["rate_per_hour"]
        logging.critical(f"🚨 HIGH ERROR RATE ALERT: {error_type} occurring at {rate:.1f}/hour")


def _debug_enabled() -> bool:
    return os.environ.get("DEBUG", "").lower() in ("true", "1", "yes")


class LoggerConfigurator:
    """Installs the colored stderr handler on the root logger.

    ``DEBUG=true|1|yes`` switches the root level to DEBUG; otherwise INFO.
    """

    def __init__(self):
        self._summary_registered = False

    def build_formatter(self) -> colorlog.ColoredFormatter:
        return colorlog.ColoredFormatter(
            LOG_FORMAT,
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors=LOG_COLORS,
            secondary_log_colors={"message": {"ERROR": "red", "CRITICAL": "magenta"}},
            reset=True,
        )

    def configure(self):
        level = logging.DEBUG if _debug_enabled() else logging.INFO
        formatter = self.build_formatter()

        root = logging.getLogger()
        if not root.handlers:
            root.addHandler(logging.StreamHandler(sys.stderr))
        for handler in root.handlers:
            handler.setFormatter(formatter)
        root.setLevel(level)

        for name, quiet_level in QUIET_LOGGERS.items():
            logging.getLogger(name).setLevel(quiet_level)

        if not self._summary_registered:
            atexit.register(self._log_final_error_summary)
            self._summary_registered = True

    def _log_final_error_summary(self):
        try:
            logging.info("📊 Final error summary before shutdown:")
            error_aggregator.log_summary_report()
        except Exception as e:
            logging.error(f"Failed to log final error summary: {e}")
