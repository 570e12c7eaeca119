"""
Transport collaborators for the SSE stream client.

The client only needs to issue a GET and read the body as a byte stream. An
`httpx.Response` opened with `stream=True` already has that shape. The async
transport hands it back as is; the sync one wraps it so a close from another
thread interrupts a blocked read.
"""

from __future__ import annotations

import socket
from collections.abc import AsyncIterator, Iterator, Mapping
from typing import Protocol

import httpx

# Idle event streams may go quiet for a long time; only bound the connect phase
DEFAULT_TIMEOUT = httpx.Timeout(10.0, read=None)

# Failures the client turns into TransportError items
TRANSPORT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    httpx.HTTPError,
    httpx.StreamError,
    OSError,
)


class TransportResponse(Protocol):
    status_code: int

    @property
    def headers(self) -> Mapping[str, str]: ...

    def iter_bytes(self) -> Iterator[bytes]: ...

    def close(self) -> None: ...


class AsyncTransportResponse(Protocol):
    status_code: int

    @property
    def headers(self) -> Mapping[str, str]: ...

    def aiter_bytes(self) -> AsyncIterator[bytes]: ...

    async def aclose(self) -> None: ...


class Transport(Protocol):
    """Issues one request and returns the response with its body unread."""

    def request(
        self, method: str, url: str, headers: dict[str, str]
    ) -> TransportResponse: ...


class AsyncTransport(Protocol):
    async def request(
        self, method: str, url: str, headers: dict[str, str]
    ) -> AsyncTransportResponse: ...


def _shutdown_socket(response: httpx.Response) -> None:
    network_stream = response.extensions.get("network_stream")
    if network_stream is None:
        return
    sock = network_stream.get_extra_info("socket")
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        # Peer already gone
        pass


class HttpxStreamResponse:
    """
    A streaming httpx.Response whose close() can come from another thread.

    Closing a socket does not wake a recv() blocked in a different thread,
    so the socket is shut down first. The pending read then sees end of
    stream and returns.
    """

    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    @property
    def response(self) -> httpx.Response:
        """The wrapped httpx.Response."""
        return self._response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    def iter_bytes(self) -> Iterator[bytes]:
        return self._response.iter_bytes()

    def close(self) -> None:
        _shutdown_socket(self._response)
        self._response.close()


class HttpxTransport:
    """
    Transport backed by an httpx.Client.

    Args:
        client: Optional httpx.Client to use (will not be closed)
        timeout: Timeout for the client created when none is given
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        *,
        timeout: float | httpx.Timeout | None = None,
    ) -> None:
        self._own_client = client is None
        self._client = client or httpx.Client(timeout=timeout or DEFAULT_TIMEOUT)

    def request(
        self, method: str, url: str, headers: dict[str, str]
    ) -> HttpxStreamResponse:
        # Use streaming mode to avoid buffering the entire response
        request = self._client.build_request(method, url, headers=headers)
        return HttpxStreamResponse(self._client.send(request, stream=True))

    def close(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._own_client:
            self._client.close()


class AsyncHttpxTransport:
    """
    Transport backed by an httpx.AsyncClient.

    Args:
        client: Optional httpx.AsyncClient to use (will not be closed)
        timeout: Timeout for the client created when none is given
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float | httpx.Timeout | None = None,
    ) -> None:
        self._own_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout or DEFAULT_TIMEOUT)

    async def request(
        self, method: str, url: str, headers: dict[str, str]
    ) -> httpx.Response:
        request = self._client.build_request(method, url, headers=headers)
        return await self._client.send(request, stream=True)

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._own_client:
            await self._client.aclose()
