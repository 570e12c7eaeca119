"""
Exception hierarchy for the SSE stream client.

Connection errors are not raised out of iteration: the client yields them
as items and reconnects. The remaining errors signal misuse.
"""

from __future__ import annotations

from typing import Any


class SSEError(Exception):
    """
    Base exception for all SSE client errors.

    Attributes:
        message: Human-readable error message
        status: HTTP status code (if applicable)
        code: Error code for programmatic handling
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code

    def __str__(self) -> str:
        parts = [self.message]
        if self.status is not None:
            parts.append(f"(status={self.status})")
        if self.code is not None:
            parts.append(f"[{self.code}]")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"status={self.status!r}, "
            f"code={self.code!r})"
        )


class SSEConnectionError(SSEError):
    """
    A recoverable failure of one connection attempt or one open stream.

    These are yielded to the consumer as items; the client then backs off
    and reconnects.

    Attributes:
        url: The URL that was being read
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        code: str | None = None,
        url: str | None = None,
    ) -> None:
        super().__init__(message, status=status, code=code)
        self.url = url


class HTTPStatusError(SSEConnectionError):
    """The server answered with a non-2xx status."""

    def __init__(self, status: int, url: str | None = None) -> None:
        message = f"HTTP error {status}"
        if url:
            message = f"{message} at {url}"
        super().__init__(message, status=status, code="HTTP_ERROR", url=url)


class InvalidContentTypeError(SSEConnectionError):
    """
    The response is not an event stream.

    Raised for a Content-Type other than text/event-stream, or for a
    response without one.
    """

    def __init__(
        self,
        content_type: str | None,
        url: str | None = None,
        status: int | None = None,
    ) -> None:
        if content_type:
            message = f"Unexpected Content-Type: {content_type}"
            code = "INVALID_CONTENT_TYPE"
        else:
            message = "Response has no Content-Type header"
            code = "NO_CONTENT_TYPE"
        super().__init__(message, status=status, code=code, url=url)
        self.content_type = content_type


class StreamEndedError(SSEConnectionError):
    """The server closed the response body."""

    def __init__(self, url: str | None = None) -> None:
        super().__init__("Event stream ended", code="STREAM_ENDED", url=url)


class TransportError(SSEConnectionError):
    """
    Network or I/O failure while connecting or reading.

    The original exception is available as `cause` and `__cause__`.
    """

    def __init__(self, cause: BaseException, url: str | None = None) -> None:
        super().__init__(
            f"Transport error: {str(cause) or type(cause).__name__}",
            code="TRANSPORT_ERROR",
            url=url,
        )
        self.cause = cause
        self.__cause__ = cause


class StreamConsumedError(SSEError):
    """
    Exception raised when a client's events are iterated a second time.

    A client drives exactly one stream; its items can only be consumed once.
    """

    def __init__(self, message: str = "Event stream has already been consumed") -> None:
        super().__init__(message, code="ALREADY_CONSUMED")


class InvalidTransitionError(SSEError):
    """A trigger was applied to a connection state that does not accept it."""

    def __init__(self, state: Any, trigger: Any) -> None:
        super().__init__(
            f"No transition from {state.name} on {trigger.name}",
            code="INVALID_TRANSITION",
        )
        self.state = state
        self.trigger = trigger


def error_from_response(
    status: int,
    url: str,
    content_type: str | None,
) -> SSEConnectionError | None:
    """
    Check a response's status line and headers.

    204 is not an error (it ends the stream) and is not handled here.

    Args:
        status: The HTTP status code
        url: The URL that was requested
        content_type: The Content-Type header value (if any)

    Returns:
        The connection error to surface, or None if the response can be read
        as an event stream
    """
    from sse_stream._util import is_event_stream_content_type

    if not 200 <= status < 300:
        return HTTPStatusError(status, url=url)

    if not is_event_stream_content_type(content_type):
        return InvalidContentTypeError(content_type, url=url, status=status)

    return None
