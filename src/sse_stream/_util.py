"""
Shared utility functions for the SSE stream client.

This module provides common utilities used by both sync and async implementations.
"""

from __future__ import annotations

from sse_stream._types import (
    ACCEPT_HEADER,
    CACHE_CONTROL_HEADER,
    EVENT_STREAM_CONTENT_TYPE,
    LAST_EVENT_ID_HEADER,
    HeadersLike,
)


def resolve_headers_sync(headers: HeadersLike | None) -> dict[str, str]:
    """
    Resolve headers from HeadersLike to a plain dict.

    Supports static string values or callable functions that return strings.

    Args:
        headers: Headers dict with static or callable values

    Returns:
        Resolved headers dict with all string values
    """
    if headers is None:
        return {}

    resolved: dict[str, str] = {}
    for key, value in headers.items():
        if callable(value):
            resolved[key] = value()
        else:
            resolved[key] = value
    return resolved


async def resolve_headers_async(headers: HeadersLike | None) -> dict[str, str]:
    """
    Async version of resolve_headers_sync.

    Supports static string values, sync callables, or async callables.

    Args:
        headers: Headers dict with static or callable values

    Returns:
        Resolved headers dict with all string values
    """
    if headers is None:
        return {}

    resolved: dict[str, str] = {}
    for key, value in headers.items():
        if callable(value):
            result = value()
            # Async providers return a coroutine
            if hasattr(result, "__await__"):
                resolved[key] = await result  # type: ignore[misc]
            else:
                resolved[key] = result
        else:
            resolved[key] = value
    return resolved


def build_request_headers(
    extra: dict[str, str],
    last_event_id: str,
) -> dict[str, str]:
    """
    Build the headers for one connection attempt.

    Protocol headers take precedence over extra headers with the same name
    (compared case-insensitively).

    Args:
        extra: Resolved user-supplied headers
        last_event_id: Current resumption id ("" means none)

    Returns:
        Headers for the GET request
    """
    protocol: dict[str, str] = {
        ACCEPT_HEADER: EVENT_STREAM_CONTENT_TYPE,
        CACHE_CONTROL_HEADER: "no-cache",
    }
    if last_event_id:
        protocol[LAST_EVENT_ID_HEADER] = last_event_id

    reserved = {k.lower() for k in protocol}
    # A stale Last-Event-ID from the caller must not outlive a reset to ""
    reserved.add(LAST_EVENT_ID_HEADER.lower())

    headers = {k: v for k, v in extra.items() if k.lower() not in reserved}
    headers.update(protocol)
    return headers


def normalize_content_type(content_type: str | None) -> str:
    """
    Normalize content type by extracting the media type (before any semicolon).

    Handles cases like "text/event-stream; charset=utf-8".

    Args:
        content_type: The content type string

    Returns:
        Normalized content type (lowercase, no parameters)
    """
    if not content_type:
        return ""
    return content_type.split(";")[0].strip().lower()


def is_event_stream_content_type(content_type: str | None) -> bool:
    """
    Check if a content type is text/event-stream.

    Args:
        content_type: The content type string

    Returns:
        True if the response body can be parsed as an event stream
    """
    return normalize_content_type(content_type) == EVENT_STREAM_CONTENT_TYPE
