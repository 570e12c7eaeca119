"""Tests for Event and ClientConfig."""

import dataclasses

import pytest

from sse_stream import ClientConfig, Event
from sse_stream._sse import EventStreamParser


class TestEvent:
    """Tests for Event."""

    def test_defaults(self) -> None:
        event = Event()
        assert event.id is None
        assert event.event_type == "message"
        assert event.data == ""
        assert event.retry is None
        assert event.is_empty

    def test_is_immutable(self) -> None:
        event = Event(data="x")
        with pytest.raises(dataclasses.FrozenInstanceError):
            event.data = "y"  # type: ignore[misc]

    def test_str_data_only(self) -> None:
        assert str(Event(data="hello world")) == "data: hello world\n"

    def test_str_with_id_and_type(self) -> None:
        assert str(Event(id="foo", data="hello world")) == "id: foo\ndata: hello world\n"
        assert str(Event(event_type="bar", data="hello world")) == (
            "event: bar\ndata: hello world\n"
        )

    def test_str_multiline_data(self) -> None:
        assert str(Event(data="hello\nworld")) == "data: hello\ndata: world\n"
        assert str(Event(data="hello\n\nworld")) == "data: hello\ndata: \ndata: world\n"

    def test_encode_ends_with_blank_line(self) -> None:
        event = Event(id="1", event_type="update", data="a\nb", retry=500)
        assert event.encode() == "id: 1\nevent: update\ndata: a\ndata: b\nretry: 500\n\n"

    def test_encoded_event_parses_back(self) -> None:
        event = Event(id="7", event_type="tick", data="line one\nline two", retry=10)
        assert EventStreamParser().feed(event.encode().encode()) == [event]

    def test_is_empty(self) -> None:
        assert not Event(id="").is_empty
        assert not Event(event_type="ping").is_empty
        assert not Event(retry=0).is_empty


class TestClientConfig:
    """Tests for ClientConfig."""

    def test_defaults(self) -> None:
        config = ClientConfig()
        assert config.initial_retry_delay == 3.0
        assert config.last_event_id == ""
        assert config.headers is None
        assert config.transport is None

    def test_rejects_negative_delay(self) -> None:
        with pytest.raises(ValueError):
            ClientConfig(initial_retry_delay=-1)
