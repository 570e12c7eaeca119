"""
SSE Stream Python Client

A Python client library for Server-Sent Events (text/event-stream).

This package provides both synchronous and asynchronous APIs for reading
event streams. Connections that fail or end are re-established
automatically, resuming from the last seen event id.

Example usage:
    >>> from sse_stream import stream, astream, SSEConnectionError
    >>>
    >>> with stream("https://example.com/events") as events:
    ...     for item in events:
    ...         if isinstance(item, SSEConnectionError):
    ...             continue
    ...         print(item.event_type, item.data)
    >>>
    >>> # Events only, errors are logged and skipped
    >>> with stream("https://example.com/events") as events:
    ...     for event in events.events():
    ...         print(event.data)
"""

from importlib.metadata import PackageNotFoundError, version

from sse_stream._errors import (
    HTTPStatusError,
    InvalidContentTypeError,
    InvalidTransitionError,
    SSEConnectionError,
    SSEError,
    StreamConsumedError,
    StreamEndedError,
    TransportError,
)
from sse_stream._machine import ConnectionState, Trigger
from sse_stream._sse import EventStreamParser, parse_sse_async, parse_sse_sync
from sse_stream._transport import AsyncHttpxTransport, HttpxStreamResponse, HttpxTransport
from sse_stream._types import ClientConfig, Event, HeadersLike
from sse_stream.aclient import AsyncEventStream, AsyncReconnectingClient, astream
from sse_stream.client import EventStream, ReconnectingClient, stream

__all__ = [
    # Types
    "Event",
    "ClientConfig",
    "HeadersLike",
    "ConnectionState",
    "Trigger",
    # Errors
    "SSEError",
    "SSEConnectionError",
    "HTTPStatusError",
    "InvalidContentTypeError",
    "StreamEndedError",
    "TransportError",
    "StreamConsumedError",
    "InvalidTransitionError",
    # Parsing
    "EventStreamParser",
    "parse_sse_sync",
    "parse_sse_async",
    # Transports
    "HttpxTransport",
    "HttpxStreamResponse",
    "AsyncHttpxTransport",
    # Top-level functions
    "stream",
    "astream",
    # Client classes
    "ReconnectingClient",
    "EventStream",
    "AsyncReconnectingClient",
    "AsyncEventStream",
]

# Use importlib.metadata for version (works with installed package)
# Fall back to hard-coded version for editable installs
try:
    __version__ = version("sse-stream-client")
except PackageNotFoundError:
    __version__ = "0.1.0"
