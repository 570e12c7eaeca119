"""
Connection state machine for the reconnecting client.

The client's lifecycle is the table below. Each state change goes through
`next_state`, so the table is the whole reconnection policy:

    CONNECTING --CONNECTED--> STREAMING
    CONNECTING --ERROR------> BACKOFF
    CONNECTING --TERMINAL---> CLOSED      (HTTP 204)
    STREAMING  --ERROR------> BACKOFF     (body ended or failed)
    BACKOFF    --RETRY------> CONNECTING
    any        --CANCEL-----> CLOSED
    CLOSED     --any--------> CLOSED
"""

from __future__ import annotations

import enum

from sse_stream._errors import InvalidTransitionError


class ConnectionState(enum.Enum):
    """Lifecycle state of a reconnecting client."""

    CONNECTING = "connecting"
    STREAMING = "streaming"
    BACKOFF = "backoff"
    CLOSED = "closed"


class Trigger(enum.Enum):
    """Outcome that moves the client between states."""

    CONNECTED = "connected"
    ERROR = "error"
    TERMINAL = "terminal"
    RETRY = "retry"
    CANCEL = "cancel"


TRANSITIONS: dict[tuple[ConnectionState, Trigger], ConnectionState] = {
    (ConnectionState.CONNECTING, Trigger.CONNECTED): ConnectionState.STREAMING,
    (ConnectionState.CONNECTING, Trigger.ERROR): ConnectionState.BACKOFF,
    (ConnectionState.CONNECTING, Trigger.TERMINAL): ConnectionState.CLOSED,
    (ConnectionState.CONNECTING, Trigger.CANCEL): ConnectionState.CLOSED,
    (ConnectionState.STREAMING, Trigger.ERROR): ConnectionState.BACKOFF,
    (ConnectionState.STREAMING, Trigger.CANCEL): ConnectionState.CLOSED,
    (ConnectionState.BACKOFF, Trigger.RETRY): ConnectionState.CONNECTING,
    (ConnectionState.BACKOFF, Trigger.CANCEL): ConnectionState.CLOSED,
}


def next_state(state: ConnectionState, trigger: Trigger) -> ConnectionState:
    """
    Look up the state that follows `state` on `trigger`.

    CLOSED absorbs every trigger.

    Raises:
        InvalidTransitionError: If the table has no entry for the pair
    """
    if state is ConnectionState.CLOSED:
        return ConnectionState.CLOSED
    try:
        return TRANSITIONS[(state, trigger)]
    except KeyError:
        raise InvalidTransitionError(state, trigger) from None
