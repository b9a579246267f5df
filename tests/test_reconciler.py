import logging
import time
from unittest.mock import MagicMock

import pytest

from src.sync.reconciler import SyncReconciler
from src.sync.store import InMemoryCollectionStore, StoreError, todos_path
from src.todo.models import TodoItem

A = [TodoItem(id=0, title="first")]
B = [TodoItem(id=0, title="first"), TodoItem(id=1, title="second")]


@pytest.fixture
def store():
    return InMemoryCollectionStore()


def test_save_writes_whole_collection(store):
    reconciler = SyncReconciler(store)
    assert reconciler.save("u1", B) is True
    assert store.read_once(todos_path("u1")) == [
        {"id": 0, "title": "first", "isCompleted": False, "date": None, "timeSlot": None},
        {"id": 1, "title": "second", "isCompleted": False, "date": None, "timeSlot": None},
    ]


def test_rapid_pushes_coalesce_into_one_write(store):
    reconciler = SyncReconciler(store, debounce_seconds=0.5)

    reconciler.schedule_push("u1", A)
    time.sleep(0.1)
    reconciler.schedule_push("u1", B)
    assert store.write_count == 0

    time.sleep(0.9)
    assert store.write_count == 1
    assert [r["title"] for r in store.read_once(todos_path("u1"))] == ["first", "second"]
    assert reconciler.has_pending is False


def test_cancelled_push_never_writes(store):
    reconciler = SyncReconciler(store, debounce_seconds=0.05)
    reconciler.schedule_push("u1", A)
    reconciler.cancel_pending()
    time.sleep(0.2)
    assert store.write_count == 0
    assert store.read_once(todos_path("u1")) is None


def test_flush_pushes_immediately(store):
    reconciler = SyncReconciler(store, debounce_seconds=10)
    reconciler.schedule_push("u1", A)
    assert reconciler.flush() is True
    assert store.write_count == 1
    # nothing left to flush
    assert reconciler.flush() is True
    assert store.write_count == 1


def test_push_failure_is_logged_not_raised(caplog):
    failing = MagicMock()
    failing.write.side_effect = StoreError("network unavailable")
    reconciler = SyncReconciler(failing)

    with caplog.at_level(logging.ERROR):
        assert reconciler.save("u1", A) is False
    assert "network unavailable" in caplog.text


def test_listener_receives_parsed_snapshots_and_self_echo(store):
    received = []
    reconciler = SyncReconciler(store)
    store.write(todos_path("u1"), [{"id": 0, "title": "old"}, {"title": "no id"}])

    reconciler.attach("u1", received.append)
    reconciler.save("u1", B)

    assert received[0] == [TodoItem(id=0, title="old")]
    assert received[-1] == B


def test_attach_replaces_previous_listener(store):
    first, second = [], []
    reconciler = SyncReconciler(store)

    reconciler.attach("u1", first.append)
    reconciler.attach("u2", second.append)
    store.write(todos_path("u1"), [{"id": 1, "title": "stale"}])
    store.write(todos_path("u2"), [{"id": 2, "title": "fresh"}])

    assert store.listener_count(todos_path("u1")) == 0
    assert store.listener_count(todos_path("u2")) == 1
    assert all(snapshot == [] for snapshot in first)
    assert second[-1] == [TodoItem(id=2, title="fresh")]
    assert reconciler.attached_path == todos_path("u2")


def test_late_delivery_after_detach_is_ignored():
    captured = {}
    fake_store = MagicMock()
    fake_store.subscribe.side_effect = lambda path, cb: captured.setdefault("cb", cb)
    received = []
    reconciler = SyncReconciler(fake_store)

    reconciler.attach("u1", received.append)
    reconciler.detach()
    captured["cb"]([{"id": 1, "title": "late"}])

    assert received == []
    fake_store.unsubscribe.assert_called_once()
