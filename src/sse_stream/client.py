"""
Synchronous reconnecting SSE client.

This is the primary API for consuming an event stream:

    with stream("https://example.com/events") as events:
        for item in events:
            if isinstance(item, SSEConnectionError):
                print("reconnecting:", item)
                continue
            print(item.event_type, item.data)
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Iterator
from dataclasses import replace
from typing import Any

import httpx

from sse_stream._errors import (
    SSEConnectionError,
    StreamConsumedError,
    StreamEndedError,
    TransportError,
    error_from_response,
)
from sse_stream._machine import ConnectionState, Trigger, next_state
from sse_stream._sse import EventStreamParser
from sse_stream._transport import (
    TRANSPORT_EXCEPTIONS,
    HttpxTransport,
    Transport,
    TransportResponse,
)
from sse_stream._types import ClientConfig, Event
from sse_stream._util import build_request_headers, resolve_headers_sync

logger = logging.getLogger(__name__)

StreamItem = Event | SSEConnectionError


def _wait_for_cancel(delay: float, cancelled: threading.Event) -> bool:
    return cancelled.wait(delay)


class ReconnectingClient:
    """
    Owns the connection to one event stream and keeps it alive.

    Items are produced one at a time by `next_item()`, which connects,
    reads, backs off and reconnects as needed. Connection errors come back
    as items; the client then waits `retry_delay` seconds and reconnects with
    the last seen event id. Only HTTP 204 or `close()` end the stream.

    No network IO is performed by the constructor.

    Args:
        url: The event stream URL
        config: Client configuration (defaults to ClientConfig())
    """

    def __init__(self, url: str, config: ClientConfig | None = None) -> None:
        self._url = url
        self._config = config or ClientConfig()

        # Transport management
        self._own_transport: HttpxTransport | None = None
        if self._config.transport is None:
            self._own_transport = HttpxTransport(timeout=self._config.timeout)
        self._transport: Transport = self._config.transport or self._own_transport
        self._sleep = self._config.sleep or _wait_for_cancel

        # Resumption state
        self._last_event_id = self._config.last_event_id
        self._retry_delay = self._config.initial_retry_delay

        self._state = ConnectionState.CONNECTING
        self._attempt = 0
        self._backoff_delay: float | None = None

        # Current connection
        self._response: TransportResponse | None = None
        self._chunks: Iterator[bytes] | None = None
        self._parser: EventStreamParser | None = None

        self._pending: deque[StreamItem] = deque()
        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self._consumed = False
        self._closed = False

    @property
    def url(self) -> str:
        """The event stream URL."""
        return self._url

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def last_event_id(self) -> str:
        """Id sent as Last-Event-ID on the next connection ("" for none)."""
        return self._last_event_id

    @property
    def retry_delay(self) -> float:
        """Reconnection delay in seconds."""
        return self._retry_delay

    @property
    def attempt(self) -> int:
        """Reconnection attempts since the last successful connection."""
        return self._attempt

    @property
    def backoff_delay(self) -> float | None:
        """Delay of the current backoff, None when not backing off."""
        if self._state is not ConnectionState.BACKOFF:
            return None
        return self._backoff_delay

    @property
    def closed(self) -> bool:
        """Whether the stream has ended."""
        return self._state is ConnectionState.CLOSED

    def stream(self) -> EventStream:
        """
        Return the iteration handle for this client.

        Raises:
            StreamConsumedError: If a handle was already handed out
        """
        if self._consumed:
            raise StreamConsumedError()
        self._consumed = True
        return EventStream(self)

    def next_item(self) -> StreamItem | None:
        """
        Produce the next event or connection error.

        Blocks while connecting, reading or backing off.

        Returns:
            The next item, or None once the stream is closed
        """
        while True:
            if self._state is ConnectionState.CLOSED:
                return None
            if self._pending:
                item = self._pending.popleft()
                if isinstance(item, Event):
                    self._apply(item)
                return item

            if self._state is ConnectionState.CONNECTING:
                self._connect()
            elif self._state is ConnectionState.STREAMING:
                self._read()
            elif self._state is ConnectionState.BACKOFF:
                self._backoff()

    def close(self) -> None:
        """
        Close the stream and release resources.

        Safe to call from another thread: a blocked read or backoff wait is
        interrupted and `next_item()` returns None.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._state = next_state(self._state, Trigger.CANCEL)
            response, self._response = self._response, None
            self._pending.clear()

        self._cancelled.set()
        if response is not None:
            response.close()
        # Close the transport if we created it internally
        if self._own_transport is not None:
            self._own_transport.close()
        logger.info("Closed event stream %s", self._url)

    def _transition(self, trigger: Trigger) -> None:
        with self._lock:
            previous = self._state
            self._state = next_state(previous, trigger)
            if self._state is ConnectionState.BACKOFF:
                self._backoff_delay = self._retry_delay
        logger.debug(
            "%s: %s -> %s on %s",
            self._url,
            previous.name,
            self._state.name,
            trigger.name,
        )

    def _connect(self) -> None:
        """Issue the GET request and check the response."""
        headers = build_request_headers(
            resolve_headers_sync(self._config.headers),
            self._last_event_id,
        )
        logger.debug("Connecting to %s (Last-Event-ID=%r)", self._url, self._last_event_id)

        try:
            response = self._transport.request("GET", self._url, headers)
        except Exception as e:
            if self._cancelled.is_set():
                return
            if not isinstance(e, TRANSPORT_EXCEPTIONS):
                raise
            self._fail(TransportError(e, url=self._url))
            return

        with self._lock:
            if self._closed:
                response.close()
                return
            self._response = response

        if response.status_code == 204:
            logger.info("Server ended event stream %s with 204 No Content", self._url)
            self._release()
            self._transition(Trigger.TERMINAL)
            return

        error = error_from_response(
            response.status_code,
            self._url,
            httpx.Headers(response.headers).get("content-type"),
        )
        if error is not None:
            self._release()
            self._fail(error)
            return

        # Fresh parser per connection; nothing carries over from the last body
        self._parser = EventStreamParser()
        self._chunks = iter(response.iter_bytes())
        self._attempt = 0
        self._transition(Trigger.CONNECTED)

    def _read(self) -> None:
        """Read one chunk and queue the events it completes."""
        assert self._chunks is not None and self._parser is not None

        try:
            chunk = next(self._chunks)
        except StopIteration:
            self._release()
            if not self._cancelled.is_set():
                self._fail(StreamEndedError(url=self._url))
            return
        except Exception as e:
            self._release()
            if self._cancelled.is_set():
                # Response was closed under us by close()
                return
            if not isinstance(e, TRANSPORT_EXCEPTIONS):
                raise
            self._fail(TransportError(e, url=self._url))
            return

        self._pending.extend(self._parser.feed(chunk))

    def _backoff(self) -> None:
        """Wait out the current delay, then move back to CONNECTING."""
        delay = self._backoff_delay or 0.0
        logger.info(
            "Reconnecting to %s in %.3fs (attempt %d)",
            self._url,
            delay,
            self._attempt + 1,
        )
        if self._sleep(delay, self._cancelled):
            self._transition(Trigger.CANCEL)
            return
        self._attempt += 1
        self._transition(Trigger.RETRY)

    def _apply(self, event: Event) -> None:
        """Update resumption state from a dispatched event."""
        if event.id is not None:
            self._last_event_id = event.id
        if event.retry is not None:
            self._retry_delay = event.retry / 1000
            logger.debug("Retry delay for %s set to %.3fs", self._url, self._retry_delay)

    def _fail(self, error: SSEConnectionError) -> None:
        logger.warning("Connection error on %s: %s", self._url, error)
        self._pending.append(error)
        self._transition(Trigger.ERROR)

    def _release(self) -> None:
        """Close the current response, if any."""
        with self._lock:
            response, self._response = self._response, None
        self._chunks = None
        self._parser = None
        if response is not None:
            response.close()


class EventStream:
    """
    Iterator over the items of a reconnecting client.

    Yields `Event` objects and, after each connection failure, the
    `SSEConnectionError` describing it. Iteration ends only after HTTP 204
    or `close()`. Not restartable.

    Usage as a context manager is recommended:

        with stream(url) as events:
            for event in events.events():
                process(event)
    """

    def __init__(self, client: ReconnectingClient) -> None:
        self._client = client

    @property
    def client(self) -> ReconnectingClient:
        """The client driving this stream."""
        return self._client

    @property
    def url(self) -> str:
        return self._client.url

    @property
    def state(self) -> ConnectionState:
        return self._client.state

    @property
    def last_event_id(self) -> str:
        return self._client.last_event_id

    @property
    def retry_delay(self) -> float:
        return self._client.retry_delay

    @property
    def attempt(self) -> int:
        return self._client.attempt

    @property
    def closed(self) -> bool:
        return self._client.closed

    def __iter__(self) -> EventStream:
        return self

    def __next__(self) -> StreamItem:
        item = self._client.next_item()
        if item is None:
            raise StopIteration
        return item

    def events(self) -> Iterator[Event]:
        """
        Iterate over events only.

        Connection errors are logged and skipped; reconnection continues.
        """
        for item in self:
            if isinstance(item, SSEConnectionError):
                logger.info("Skipping connection error on %s: %s", self.url, item)
                continue
            yield item

    def close(self) -> None:
        """Close the stream and release resources."""
        self._client.close()

    def __enter__(self) -> EventStream:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def stream(
    url: str,
    config: ClientConfig | None = None,
    **overrides: Any,
) -> EventStream:
    """
    Open a reconnecting event stream.

    The first request is made lazily, on the first pull.

    Args:
        url: The event stream URL
        config: Client configuration
        **overrides: ClientConfig fields to replace (e.g. headers=...)

    Returns:
        EventStream yielding events and connection errors

    Example:
        >>> with stream("https://example.com/events") as events:
        ...     for event in events.events():
        ...         print(event.data)
    """
    config = config or ClientConfig()
    if overrides:
        config = replace(config, **overrides)
    return ReconnectingClient(url, config).stream()
