import threading
import time
from unittest.mock import MagicMock, patch

import pytest
import requests

from src.sync.firebase import FirebaseCollectionStore, _Subscription, parse_sse_events
from src.sync.store import StoreError


def test_parse_sse_events():
    lines = [
        "event: put",
        'data: {"path": "/", "data": null}',
        "",
        "event: keep-alive",
        "data: null",
        "",
        "event: patch",
        'data: {"path": "/0", "data": {"title": "x"}}',
    ]
    assert parse_sse_events(lines) == [
        ("put", '{"path": "/", "data": null}'),
        ("keep-alive", "null"),
        ("patch", '{"path": "/0", "data": {"title": "x"}}'),
    ]


@patch("src.sync.firebase.requests.put")
def test_write_puts_json_with_auth_token(mock_put):
    store = FirebaseCollectionStore("https://db.example.com/", token_provider=lambda: "tok")
    store.write("users/u1/todos", [{"id": 1}])

    mock_put.assert_called_once()
    assert mock_put.call_args.args[0] == "https://db.example.com/users/u1/todos.json"
    assert mock_put.call_args.kwargs["params"] == {"auth": "tok"}
    assert mock_put.call_args.kwargs["json"] == [{"id": 1}]


@patch("src.sync.firebase.requests.get")
def test_read_once_and_failures(mock_get):
    response = MagicMock()
    response.json.return_value = {"-Nk": {"id": 1, "title": "a"}}
    mock_get.return_value = response
    store = FirebaseCollectionStore("https://db.example.com")

    assert store.read_once("users/u1/todos") == {"-Nk": {"id": 1, "title": "a"}}
    assert mock_get.call_args.kwargs["params"] == {}

    mock_get.side_effect = requests.exceptions.ConnectionError("offline")
    with pytest.raises(StoreError):
        store.read_once("users/u1/todos")


def test_stream_events_trigger_full_snapshot_reads():
    store = FirebaseCollectionStore("https://db.example.com")
    store.read_once = MagicMock(return_value=[{"id": 1, "title": "a"}])
    received = []

    stream_response = MagicMock()
    stream_response.iter_lines.return_value = iter(
        [
            "event: put",
            'data: {"path": "/", "data": [{"id": 1, "title": "a"}]}',
            "",
            "event: keep-alive",
            "data: null",
            "",
        ]
    )
    with patch("src.sync.firebase.requests.get", return_value=stream_response):
        store._stream(_Subscription("users/u1/todos", received.append))

    assert received == [[{"id": 1, "title": "a"}]]
    store.read_once.assert_called_once_with("users/u1/todos")
    stream_response.close.assert_called()


class _BlockingStream:
    """Stream that sends one event, then a second one once released."""

    def __init__(self):
        self.release = threading.Event()
        self.closed = threading.Event()

    def raise_for_status(self):
        return None

    def iter_lines(self, decode_unicode=True):
        yield from ["event: put", 'data: {"path": "/", "data": null}', ""]
        self.release.wait(2)
        yield from ["event: put", 'data: {"path": "/0", "data": null}', ""]

    def close(self):
        self.closed.set()


def _wait_for(condition, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


def test_unsubscribe_stops_stream_and_deliveries():
    store = FirebaseCollectionStore("https://db.example.com")
    store.read_once = MagicMock(return_value=[{"id": 1, "title": "a"}])
    stream = _BlockingStream()
    received = []

    with patch("src.sync.firebase.requests.get", return_value=stream):
        store.subscribe("users/u1/todos", received.append)
        subscription = store._subscriptions[0]
        assert store.listener_count("users/u1/todos") == 1
        assert _wait_for(lambda: len(received) == 1)

        store.unsubscribe("users/u1/todos", received.append)
        assert subscription.stop.is_set()
        assert stream.closed.is_set()
        assert store.listener_count("users/u1/todos") == 0

        stream.release.set()
        subscription.thread.join(2)

    assert not subscription.thread.is_alive()
    assert received == [[{"id": 1, "title": "a"}]]
    store.read_once.assert_called_once_with("users/u1/todos")


def test_unsubscribe_while_connecting_closes_late_response():
    store = FirebaseCollectionStore("https://db.example.com")
    store.read_once = MagicMock(return_value=[])
    connected = threading.Event()
    stream = _BlockingStream()

    def slow_connect(*args, **kwargs):
        connected.wait(2)
        return stream

    received = []
    with patch("src.sync.firebase.requests.get", side_effect=slow_connect):
        store.subscribe("users/u1/todos", received.append)
        subscription = store._subscriptions[0]
        store.unsubscribe("users/u1/todos", received.append)
        connected.set()
        subscription.thread.join(2)

    assert stream.closed.is_set()
    assert received == []
    store.read_once.assert_not_called()
