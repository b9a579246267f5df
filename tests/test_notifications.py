from datetime import date, datetime, time

from src.todo.models import TimeSlot, TodoItem
from src.todo.notifications import (
    Reminder,
    ReminderQueue,
    notification_epoch_millis,
    notification_time,
    schedule_reminder,
)

MORNING = TimeSlot(0, "09:00", "10:00", "Morning")
EVENING = TimeSlot(1, "18:30", "19:00", "Evening")


def _local_millis(value: datetime) -> int:
    return int(value.astimezone().timestamp() * 1000)


def test_slot_start_time_is_used():
    item = TodoItem(id=5, title="Stand-up", date=date(2024, 5, 10), time_slot=EVENING)
    fire_at = notification_time(item.date, item.time_slot)
    assert (fire_at.year, fire_at.month, fire_at.day) == (2024, 5, 10)
    assert (fire_at.hour, fire_at.minute) == (18, 30)
    assert fire_at.tzinfo is not None


def test_morning_slot_and_date_only_fire_at_nine():
    with_slot = TodoItem(id=5, title="a", date=date(2024, 5, 10), time_slot=MORNING)
    date_only = TodoItem(id=6, title="b", date=date(2024, 5, 10))
    expected = _local_millis(datetime(2024, 5, 10, 9, 0))
    assert notification_epoch_millis(with_slot) == expected
    assert notification_epoch_millis(date_only) == expected


def test_custom_default_time():
    item = TodoItem(id=6, title="b", date=date(2024, 5, 10))
    assert notification_epoch_millis(item, time(7, 15)) == _local_millis(datetime(2024, 5, 10, 7, 15))


def test_undated_todo_has_no_reminder():
    assert notification_time(None, MORNING) is None
    queue = ReminderQueue()
    assert schedule_reminder(queue, TodoItem(id=1, title="x", time_slot=MORNING)) is None
    assert queue.pending() == []


def test_bad_slot_time_skips_scheduling():
    queue = ReminderQueue()
    broken = TimeSlot(9, "noon", "13:00", "Broken")
    item = TodoItem(id=1, title="x", date=date(2024, 5, 10), time_slot=broken)
    assert schedule_reminder(queue, item) is None
    assert queue.pending() == []


def test_queue_schedule_cancel_and_pop_due():
    queue = ReminderQueue()
    queue.schedule_at(2_000, Reminder(todo_id=2, title="later", fire_at_ms=2_000))
    queue.schedule_at(1_000, Reminder(todo_id=1, title="sooner", fire_at_ms=1_000))
    queue.schedule_at(3_000, Reminder(todo_id=3, title="cancelled", fire_at_ms=3_000))
    queue.cancel(3)

    assert [r.todo_id for r in queue.pending()] == [1, 2]
    assert [r.todo_id for r in queue.pop_due(now_ms=1_500)] == [1]
    assert queue.pop_due(now_ms=1_500) == []
    assert [r.title for r in queue.pop_due(now_ms=5_000)] == ["later"]
    assert queue.pending() == []


def test_rescheduling_replaces_existing_reminder():
    queue = ReminderQueue()
    queue.schedule_at(1_000, Reminder(todo_id=1, title="x", fire_at_ms=1_000))
    queue.schedule_at(9_000, Reminder(todo_id=1, title="x", fire_at_ms=9_000))
    assert [r.fire_at_ms for r in queue.pending()] == [9_000]
