"""
Server-Sent Events (SSE) parsing.

This module turns a `text/event-stream` body into Event records:
- lines end in LF, CRLF or a lone CR
- a blank line dispatches the event assembled so far
- lines starting with a colon are comments
- `event`, `data`, `id` and `retry` are the only fields with meaning
"""

from __future__ import annotations

import re
from collections.abc import AsyncIterator, Iterator

from sse_stream._types import DEFAULT_EVENT_TYPE, Event

_LINE_END = re.compile(rb"\r\n|\r|\n")
_BOM = b"\xef\xbb\xbf"


class EventStreamParser:
    """
    Incremental SSE parser.

    Maintains state for parsing SSE events from a byte stream. Chunks may
    split the stream anywhere; the events produced are the same as for the
    unsplit stream. Use one parser per connection.
    """

    def __init__(self) -> None:
        self._buffer = b""
        # A chunk ended in CR; an LF at the start of the next chunk is part of it
        self._skip_lf = False
        self._at_start = True
        self._reset()

    def feed(self, chunk: bytes) -> list[Event]:
        """
        Feed a chunk of data and return any complete events.

        Args:
            chunk: Bytes read from the response body

        Returns:
            List of complete events, in stream order
        """
        if not chunk:
            return []

        if self._skip_lf:
            self._skip_lf = False
            if chunk.startswith(b"\n"):
                chunk = chunk[1:]

        data = self._buffer + chunk

        if self._at_start:
            # Wait until we can tell whether the stream opens with a BOM
            if len(data) < len(_BOM) and _BOM.startswith(data):
                self._buffer = data
                return []
            self._at_start = False
            if data.startswith(_BOM):
                data = data[len(_BOM):]

        events: list[Event] = []
        pos = 0
        for match in _LINE_END.finditer(data):
            line = data[pos : match.start()]
            pos = match.end()
            if match.group() == b"\r" and pos == len(data):
                self._skip_lf = True

            event = self._process_line(line.decode("utf-8", errors="replace"))
            if event is not None:
                events.append(event)

        self._buffer = data[pos:]
        return events

    def _process_line(self, line: str) -> Event | None:
        """Apply one line to the pending event; return an Event on dispatch."""
        if line == "":
            return self._dispatch()

        if line.startswith(":"):
            return None

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._event_type = value
        elif field == "data":
            self._data.append(value)
        elif field == "id":
            if "\0" not in value:
                self._id = value
        elif field == "retry":
            if value.isascii() and value.isdigit():
                self._retry = int(value)
        # Ignore any other field

        return None

    def _dispatch(self) -> Event:
        """Build an event from the pending fields and clear them."""
        event = Event(
            id=self._id,
            event_type=self._event_type or DEFAULT_EVENT_TYPE,
            data="\n".join(self._data),
            retry=self._retry,
        )
        self._reset()
        return event

    def _reset(self) -> None:
        """Reset pending fields for the next event."""
        self._event_type = ""
        self._data: list[str] = []
        self._id: str | None = None
        self._retry: int | None = None


def parse_sse_sync(byte_iterator: Iterator[bytes]) -> Iterator[Event]:
    """
    Parse SSE events from a synchronous byte iterator.

    An event that is still unterminated when the iterator is exhausted is
    discarded.

    Args:
        byte_iterator: Iterator yielding bytes

    Yields:
        Parsed SSE events
    """
    parser = EventStreamParser()
    for chunk in byte_iterator:
        yield from parser.feed(chunk)


async def parse_sse_async(
    byte_iterator: AsyncIterator[bytes],
) -> AsyncIterator[Event]:
    """
    Parse SSE events from an asynchronous byte iterator.

    Args:
        byte_iterator: Async iterator yielding bytes

    Yields:
        Parsed SSE events
    """
    parser = EventStreamParser()
    async for chunk in byte_iterator:
        for event in parser.feed(chunk):
            yield event
