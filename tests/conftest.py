"""
Pytest configuration and fixtures for sse-stream-client tests.

Clients are driven by in-memory transports and a recording fake clock, so
no test touches the network or waits on real timers unless it says so.
"""

from __future__ import annotations

import asyncio
import socket
import threading
from collections.abc import AsyncIterator, Iterator

import httpx
import pytest

# ============================================================================
# Mock responses
# ============================================================================


class MockResponse:
    """Mock streaming httpx.Response for testing."""

    def __init__(
        self,
        chunks: list[bytes | str] | bytes | str = (),
        *,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
        error: BaseException | None = None,
    ):
        if isinstance(chunks, (bytes, str)):
            chunks = [chunks]
        self._chunks = [c.encode("utf-8") if isinstance(c, str) else c for c in chunks]
        self.status_code = status_code
        if headers is None:
            headers = {"content-type": "text/event-stream"}
        self.headers = httpx.Headers(headers)
        self._error = error
        self.closed = False

    def iter_bytes(self) -> Iterator[bytes]:
        yield from self._chunks
        if self._error is not None:
            raise self._error

    def close(self) -> None:
        self.closed = True

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error

    async def aclose(self) -> None:
        self.closed = True


class BlockingResponse(MockResponse):
    """Event-stream response that sends its chunks, then blocks until closed."""

    def __init__(self, chunks: list[bytes | str] | bytes | str = ()):
        super().__init__(chunks)
        self.reading = threading.Event()
        self._released = threading.Event()
        self._async_released: asyncio.Event | None = None

    def iter_bytes(self) -> Iterator[bytes]:
        yield from self._chunks
        self.reading.set()
        self._released.wait()

    def close(self) -> None:
        super().close()
        self._released.set()

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        for chunk in self._chunks:
            yield chunk
        self.reading.set()
        self._async_released = asyncio.Event()
        await self._async_released.wait()

    async def aclose(self) -> None:
        self.closed = True
        if self._async_released is not None:
            self._async_released.set()


def no_content() -> MockResponse:
    return MockResponse(status_code=204, headers={})


# ============================================================================
# Fake transports and clock
# ============================================================================


class FakeTransport:
    """
    Transport returning canned responses in order.

    An item that is an exception is raised instead of returned. Once the
    list is used up every request gets 204, which ends the stream.
    """

    def __init__(self, responses: list[MockResponse | BaseException]):
        self._responses = list(responses)
        self.requests: list[tuple[str, str, dict[str, str]]] = []

    def _next(self, method: str, url: str, headers: dict[str, str]) -> MockResponse:
        self.requests.append((method, url, dict(headers)))
        if not self._responses:
            return no_content()
        response = self._responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    def request(self, method: str, url: str, headers: dict[str, str]) -> MockResponse:
        return self._next(method, url, headers)

    @property
    def headers(self) -> list[dict[str, str]]:
        return [h for _, _, h in self.requests]


class AsyncFakeTransport(FakeTransport):
    async def request(  # type: ignore[override]
        self, method: str, url: str, headers: dict[str, str]
    ) -> MockResponse:
        return self._next(method, url, headers)


class FakeSleep:
    """Records backoff delays without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, delay: float, cancelled: threading.Event) -> bool:
        self.delays.append(delay)
        return cancelled.is_set()


class AsyncFakeSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float, cancelled: asyncio.Event) -> bool:
        self.delays.append(delay)
        return cancelled.is_set()


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def async_fake_sleep() -> AsyncFakeSleep:
    return AsyncFakeSleep()


@pytest.fixture
def anyio_backend() -> str:
    """Clients use asyncio primitives directly."""
    return "asyncio"


@pytest.fixture
def silent_sse_server() -> Iterator[str]:
    """
    Local HTTP server that sends one event and then goes quiet.

    The connection stays open until the test finishes, so a read past the
    first event blocks in the socket.
    """
    listener = socket.create_server(("127.0.0.1", 0))
    host, port = listener.getsockname()
    done = threading.Event()

    def serve() -> None:
        conn, _ = listener.accept()
        with conn:
            conn.recv(65536)
            conn.sendall(
                b"HTTP/1.1 200 OK\r\n"
                b"Content-Type: text/event-stream\r\n"
                b"Cache-Control: no-cache\r\n"
                b"\r\n"
                b"data: a\n\n"
            )
            done.wait(timeout=30)

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    try:
        yield f"http://{host}:{port}/events"
    finally:
        done.set()
        listener.close()
        thread.join(timeout=5)
