"""
Asynchronous reconnecting SSE client.

This is the async counterpart of `sse_stream.client`:

    async with astream("https://example.com/events") as events:
        async for event in events.events():
            print(event.data)
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import replace
from typing import Any, TypeVar

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
    AsyncHttpxTransport,
    AsyncTransport,
    AsyncTransportResponse,
)
from sse_stream._types import ClientConfig, Event
from sse_stream._util import build_request_headers, resolve_headers_async

logger = logging.getLogger(__name__)

T = TypeVar("T")

StreamItem = Event | SSEConnectionError


class _Cancelled(Exception):
    """The client was closed while an operation was in flight."""


async def _wait_for_cancel(delay: float, cancelled: asyncio.Event) -> bool:
    try:
        await asyncio.wait_for(cancelled.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return False
    return True


async def _next_chunk(chunks: AsyncIterator[bytes]) -> bytes | None:
    return await anext(chunks, None)


class AsyncReconnectingClient:
    """
    Async version of ReconnectingClient.

    The body read and the backoff wait both race against `aclose()`, so a
    close from another task ends a pending `next_item()` promptly.

    Args:
        url: The event stream URL
        config: Client configuration (defaults to ClientConfig())
    """

    def __init__(self, url: str, config: ClientConfig | None = None) -> None:
        self._url = url
        self._config = config or ClientConfig()

        self._own_transport: AsyncHttpxTransport | None = None
        if self._config.transport is None:
            self._own_transport = AsyncHttpxTransport(timeout=self._config.timeout)
        self._transport: AsyncTransport = self._config.transport or self._own_transport
        self._sleep = self._config.asleep or _wait_for_cancel

        self._last_event_id = self._config.last_event_id
        self._retry_delay = self._config.initial_retry_delay

        self._state = ConnectionState.CONNECTING
        self._attempt = 0
        self._backoff_delay: float | None = None

        self._response: AsyncTransportResponse | None = None
        self._chunks: AsyncIterator[bytes] | None = None
        self._parser: EventStreamParser | None = None

        self._pending: deque[StreamItem] = deque()
        self._cancelled = asyncio.Event()
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

    def stream(self) -> AsyncEventStream:
        """
        Return the async iteration handle for this client.

        Raises:
            StreamConsumedError: If a handle was already handed out
        """
        if self._consumed:
            raise StreamConsumedError()
        self._consumed = True
        return AsyncEventStream(self)

    async def next_item(self) -> StreamItem | None:
        """
        Produce the next event or connection error.

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

            try:
                if self._state is ConnectionState.CONNECTING:
                    await self._connect()
                elif self._state is ConnectionState.STREAMING:
                    await self._read()
                elif self._state is ConnectionState.BACKOFF:
                    await self._backoff()
            except _Cancelled:
                await self._release()
                return None

    async def aclose(self) -> None:
        """Close the stream and release resources."""
        if self._closed:
            return
        self._closed = True
        self._state = next_state(self._state, Trigger.CANCEL)
        self._pending.clear()
        self._cancelled.set()

        await self._release()
        # Close the transport if we created it internally
        if self._own_transport is not None:
            await self._own_transport.aclose()
        logger.info("Closed event stream %s", self._url)

    async def _until_cancelled(
        self,
        awaitable: Awaitable[T],
        discard: Callable[[T], Awaitable[object]] | None = None,
    ) -> T:
        """
        Await `awaitable` unless the client is closed first.

        If both finish together, a result that was produced anyway is passed
        to `discard` so it can be cleaned up.

        Raises:
            _Cancelled: If aclose() was called before it finished
        """
        if self._cancelled.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise _Cancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._cancelled.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()

        if self._cancelled.is_set():
            if task.done() and not task.cancelled():
                # Retrieve the exception so it is not reported as unhandled
                if task.exception() is None and discard is not None:
                    await discard(task.result())
            raise _Cancelled()
        return task.result()

    def _transition(self, trigger: Trigger) -> None:
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

    async def _connect(self) -> None:
        """Issue the GET request and check the response."""
        headers = build_request_headers(
            await resolve_headers_async(self._config.headers),
            self._last_event_id,
        )
        logger.debug("Connecting to %s (Last-Event-ID=%r)", self._url, self._last_event_id)

        try:
            response = await self._until_cancelled(
                self._transport.request("GET", self._url, headers),
                discard=lambda late: late.aclose(),
            )
        except TRANSPORT_EXCEPTIONS as e:
            self._fail(TransportError(e, url=self._url))
            return

        self._response = response

        if response.status_code == 204:
            logger.info("Server ended event stream %s with 204 No Content", self._url)
            await self._release()
            self._transition(Trigger.TERMINAL)
            return

        error = error_from_response(
            response.status_code,
            self._url,
            httpx.Headers(response.headers).get("content-type"),
        )
        if error is not None:
            await self._release()
            self._fail(error)
            return

        self._parser = EventStreamParser()
        self._chunks = response.aiter_bytes()
        self._attempt = 0
        self._transition(Trigger.CONNECTED)

    async def _read(self) -> None:
        """Read one chunk and queue the events it completes."""
        assert self._chunks is not None and self._parser is not None

        try:
            chunk = await self._until_cancelled(_next_chunk(self._chunks))
        except TRANSPORT_EXCEPTIONS as e:
            await self._release()
            self._fail(TransportError(e, url=self._url))
            return

        if chunk is None:
            await self._release()
            self._fail(StreamEndedError(url=self._url))
            return

        self._pending.extend(self._parser.feed(chunk))

    async def _backoff(self) -> None:
        """Wait out the current delay, then move back to CONNECTING."""
        delay = self._backoff_delay or 0.0
        logger.info(
            "Reconnecting to %s in %.3fs (attempt %d)",
            self._url,
            delay,
            self._attempt + 1,
        )
        if await self._sleep(delay, self._cancelled):
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

    async def _release(self) -> None:
        """Close the current response, if any."""
        response, self._response = self._response, None
        self._chunks = None
        self._parser = None
        if response is not None:
            await response.aclose()


class AsyncEventStream:
    """
    Async iterator over the items of a reconnecting client.

    Yields `Event` objects and `SSEConnectionError` items, like EventStream.
    """

    def __init__(self, client: AsyncReconnectingClient) -> None:
        self._client = client

    @property
    def client(self) -> AsyncReconnectingClient:
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

    def __aiter__(self) -> AsyncEventStream:
        return self

    async def __anext__(self) -> StreamItem:
        item = await self._client.next_item()
        if item is None:
            raise StopAsyncIteration
        return item

    async def events(self) -> AsyncIterator[Event]:
        """
        Iterate over events only.

        Connection errors are logged and skipped; reconnection continues.
        """
        async for item in self:
            if isinstance(item, SSEConnectionError):
                logger.info("Skipping connection error on %s: %s", self.url, item)
                continue
            yield item

    async def aclose(self) -> None:
        """Close the stream and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> AsyncEventStream:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


def astream(
    url: str,
    config: ClientConfig | None = None,
    **overrides: Any,
) -> AsyncEventStream:
    """
    Open an async reconnecting event stream.

    The first request is made lazily, on the first pull.

    Args:
        url: The event stream URL
        config: Client configuration
        **overrides: ClientConfig fields to replace

    Returns:
        AsyncEventStream yielding events and connection errors
    """
    config = config or ClientConfig()
    if overrides:
        config = replace(config, **overrides)
    return AsyncReconnectingClient(url, config).stream()
