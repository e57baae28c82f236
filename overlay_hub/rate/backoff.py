"""Exponential reconnect backoff with bounded positive jitter.

Every upstream connection manager uses the same function so a flapping
upstream spreads its retries instead of reconnecting in lock step.
"""

from __future__ import annotations

from random import Random, SystemRandom

from ..constants import (
    RECONNECT_BASE_DELAY_SECONDS,
    RECONNECT_JITTER_FACTOR,
    RECONNECT_MAX_DELAY_SECONDS,
)

_rng = SystemRandom()


def base_delay(
    attempt: int,
    base: float = RECONNECT_BASE_DELAY_SECONDS,
    cap: float = RECONNECT_MAX_DELAY_SECONDS,
) -> float:
    """Return the jitter-free delay for ``attempt``: ``min(base * 2**attempt, cap)``.

    Non-decreasing in ``attempt``. Negative attempts are treated as 0.
    """
    attempt = max(0, attempt)
    # 2**attempt overflows float for very large attempt counts; cap early.
    if attempt >= 64:
        return cap
    return min(base * (2**attempt), cap)


def backoff_delay(
    attempt: int,
    base: float = RECONNECT_BASE_DELAY_SECONDS,
    cap: float = RECONNECT_MAX_DELAY_SECONDS,
    jitter_factor: float = RECONNECT_JITTER_FACTOR,
    rng: Random | None = None,
) -> float:
    """Return the reconnect delay in seconds for the given attempt count.

    ``delay = min(base * 2**attempt, cap) + jitter`` with jitter drawn
    independently from ``[0, jitter_factor * computed)``. The result is always
    ``>= base`` and ``< cap * (1 + jitter_factor)``.

    Args:
        attempt: Number of reconnects already scheduled (0 for the first).
        base: Delay unit in seconds; must be positive.
        cap: Upper bound for the deterministic component.
        jitter_factor: Fraction of the computed delay used as jitter range.
        rng: Optional random source (tests pass a seeded ``random.Random``).

    Raises:
        ValueError: If ``base`` is not positive or ``cap`` is below ``base``.
    """
    if base <= 0:
        raise ValueError("base delay must be positive")
    if cap < base:
        raise ValueError("cap must be >= base")
    computed = base_delay(attempt, base, cap)
    source = rng or _rng
    jitter = source.random() * jitter_factor * computed
    return computed + jitter


__all__ = ["backoff_delay", "base_delay"]
