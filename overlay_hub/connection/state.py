"""Connection lifecycle states, transition table and reconnect bookkeeping."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

from ..errors.internal import InvalidTransitionError


class ConnectionState(Enum):
    """Enumeration of upstream connection states."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    READY = "ready"
    RECONNECT_SCHEDULED = "reconnect_scheduled"


class ConnectionEvent(Enum):
    """Inputs that drive ``ConnectionState`` changes."""

    CONNECT = "connect"
    OPENED = "opened"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"
    SCHEDULE_RECONNECT = "schedule_reconnect"
    TIMER_FIRED = "timer_fired"
    STOP = "stop"


_S = ConnectionState
_E = ConnectionEvent

_TRANSITIONS: dict[tuple[ConnectionState, ConnectionEvent], ConnectionState] = {
    (_S.DISCONNECTED, _E.CONNECT): _S.CONNECTING,
    (_S.CONNECTING, _E.OPENED): _S.AUTHENTICATING,
    (_S.AUTHENTICATING, _E.AUTHENTICATED): _S.READY,
    (_S.CONNECTING, _E.CLOSED): _S.DISCONNECTED,
    (_S.AUTHENTICATING, _E.CLOSED): _S.DISCONNECTED,
    (_S.READY, _E.CLOSED): _S.DISCONNECTED,
    (_S.DISCONNECTED, _E.CLOSED): _S.DISCONNECTED,
    (_S.DISCONNECTED, _E.SCHEDULE_RECONNECT): _S.RECONNECT_SCHEDULED,
    (_S.RECONNECT_SCHEDULED, _E.TIMER_FIRED): _S.CONNECTING,
}


def next_state(state: ConnectionState, event: ConnectionEvent) -> ConnectionState:
    """Single transition function for every connection manager.

    ``STOP`` is accepted from any state and always lands in ``DISCONNECTED``.

    Raises:
        InvalidTransitionError: If ``event`` is not legal in ``state``.
    """
    if event is ConnectionEvent.STOP:
        return ConnectionState.DISCONNECTED
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransitionError(
            f"Illegal transition {state.value} --{event.value}-->",
            data={"state": state.value, "event": event.value},
        ) from None


@dataclass
class ScheduledReconnect:
    """A pending reconnect: when it fires, where it goes, and its timer task."""

    delay: float
    target: ConnectionState
    task: asyncio.Task[None]

    def cancel(self) -> None:
        if not self.task.done():
            self.task.cancel()


@dataclass
class ReconnectState:
    """Reconnect counters for one upstream connection.

    ``pending`` is only set while a reconnect is scheduled. ``attempts`` resets
    to 0 on entering READY and grows by one per scheduled reconnect.
    """

    attempts: int = 0
    pending: ScheduledReconnect | None = None

    def cancel_pending(self) -> bool:
        if self.pending is None:
            return False
        self.pending.cancel()
        self.pending = None
        return True
