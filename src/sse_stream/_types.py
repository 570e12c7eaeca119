"""
Core types for the SSE stream client.

This module defines the fundamental types used throughout the library.
"""

from __future__ import annotations

import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import asyncio

    import httpx

# Type for headers - can be static strings or callables
HeadersLike = dict[str, str | Callable[[], str]]

# Fake-clock hooks: wait `delay` seconds unless cancelled, return True if cancelled
SleepFn = Callable[[float, threading.Event], bool]
AsyncSleepFn = Callable[[float, "asyncio.Event"], Awaitable[bool]]


# Protocol constants
DEFAULT_RETRY_DELAY = 3.0
DEFAULT_EVENT_TYPE = "message"
EVENT_STREAM_CONTENT_TYPE = "text/event-stream"

ACCEPT_HEADER = "Accept"
CACHE_CONTROL_HEADER = "Cache-Control"
LAST_EVENT_ID_HEADER = "Last-Event-ID"


@dataclass(frozen=True, slots=True)
class Event:
    """
    A single dispatched Server-Sent Event.

    Attributes:
        id: Value of the last `id` field in the block. None if the block had
            no `id` field, "" if it reset the id explicitly.
        event_type: Value of the `event` field, "message" when absent
        data: All `data` fields joined by newlines
        retry: Reconnection delay hint in milliseconds, if the block carried
            a valid `retry` field
    """

    id: str | None = None
    event_type: str = DEFAULT_EVENT_TYPE
    data: str = ""
    retry: int | None = None

    @property
    def is_empty(self) -> bool:
        """True if the event carries no id, type, data or retry."""
        return (
            self.id is None
            and self.event_type == DEFAULT_EVENT_TYPE
            and not self.data
            and self.retry is None
        )

    def __str__(self) -> str:
        lines: list[str] = []
        if self.id is not None:
            lines.append(f"id: {self.id}")
        if self.event_type != DEFAULT_EVENT_TYPE:
            lines.append(f"event: {self.event_type}")
        if self.data:
            lines.extend(f"data: {line}" for line in self.data.split("\n"))
        if self.retry is not None:
            lines.append(f"retry: {self.retry}")
        return "".join(f"{line}\n" for line in lines)

    def encode(self) -> str:
        """Render the event as an event-stream block, blank line included."""
        return f"{self}\n"


@dataclass(frozen=True)
class ClientConfig:
    """
    Configuration for a reconnecting SSE client.

    Each client copies its resumption state out of this value, so several
    clients built from one config never share ids or delays.

    Attributes:
        initial_retry_delay: Reconnection delay in seconds until the server
            sends a `retry` field
        headers: Extra request headers (static strings or callables)
        last_event_id: Initial value sent as Last-Event-ID
        transport: Transport collaborator (None builds an httpx-backed one)
        timeout: Timeout for the default transport
        sleep: Fake-clock hook for the sync client's backoff wait
        asleep: Fake-clock hook for the async client's backoff wait
    """

    initial_retry_delay: float = DEFAULT_RETRY_DELAY
    headers: HeadersLike | None = None
    last_event_id: str = ""
    transport: Any = None
    timeout: float | httpx.Timeout | None = None
    sleep: SleepFn | None = None
    asleep: AsyncSleepFn | None = None

    def __post_init__(self) -> None:
        if self.initial_retry_delay < 0:
            raise ValueError(
                f"initial_retry_delay must be non-negative, got {self.initial_retry_delay}"
            )
