from collections import Counter
from datetime import date

from src.todo.models import TimeSlot, TodoItem
from src.todo.projection import (
    DayExpansion,
    calendar_groups,
    filter_view,
    flatten,
    group_by_date,
    timetable,
)

MORNING = TimeSlot(0, "09:00", "10:00", "Morning")
LUNCH = TimeSlot(1, "12:00", "13:00", "Lunch Break")
TODAY = date(2024, 5, 10)


def _todos():
    return [
        TodoItem(id=1, title="Buy milk"),
        TodoItem(id=2, title="Pay rent", date=date(2024, 3, 1)),
        TodoItem(id=3, title="Gym", date=date(2024, 2, 1)),
        TodoItem(id=4, title="Call mum"),
        TodoItem(id=5, title="Stand-up", date=TODAY, time_slot=MORNING),
        TodoItem(id=6, title="Floating slot", time_slot=LUNCH),
    ]


def test_grouping_is_a_partition():
    todos = _todos()
    groups = group_by_date(todos)
    assert Counter(flatten(groups)) == Counter(todos)
    keys = [day for day, _ in groups]
    assert len(keys) == len(set(keys))
    assert None in keys


def test_grouping_does_not_mutate_input():
    todos = _todos()
    snapshot = list(todos)
    group_by_date(todos, calendar_view=True)
    timetable(todos, today=TODAY)
    assert todos == snapshot


def test_calendar_view_example():
    todos = [
        TodoItem(id=1, title="Buy milk"),
        TodoItem(id=2, title="Pay rent", date=date(2024, 3, 1)),
    ]
    groups = calendar_groups(todos)
    assert len(groups) == 1
    day, items = groups[0]
    assert day == date(2024, 3, 1)
    assert [item.id for item in items] == [2]


def test_calendar_view_sorted_and_undated_excluded():
    groups = group_by_date(_todos(), calendar_view=True)
    days = [day for day, _ in groups]
    assert days == sorted(days)
    assert None not in days
    assert {item.id for item in flatten(groups)} == {2, 3, 5}


def test_timetable_drops_items_without_date_or_slot():
    days = timetable(_todos(), today=TODAY)
    assert [day.date for day in days] == [TODAY]
    assert [item.id for item in days[0].items] == [5]
    assert days[0].is_today is True


def test_timetable_deduplicates_by_id():
    item = TodoItem(id=5, title="Stand-up", date=TODAY, time_slot=MORNING)
    echoed = TodoItem(id=5, title="Stand-up (edited)", date=TODAY, time_slot=MORNING)
    days = timetable([item, item, echoed], today=TODAY)
    assert [i.id for i in days[0].items] == [5]


def test_timetable_is_idempotent():
    todos = _todos() + _todos() + [
        TodoItem(id=7, title="Lunch with Sam", date=date(2024, 5, 11), time_slot=LUNCH),
        TodoItem(id=8, title="Review", date=TODAY, time_slot=LUNCH),
    ]
    first = timetable(todos, today=TODAY)
    again = timetable([item for day in first for item in day.items], today=TODAY)
    assert again == first


def test_timetable_days_sorted_and_slots_grouped_by_value():
    copy_of_morning = TimeSlot(0, "09:00", "10:00", "Morning")
    renamed = TimeSlot(0, "09:00", "10:00", "Early")
    todos = [
        TodoItem(id=1, title="b", date=date(2024, 6, 2), time_slot=MORNING),
        TodoItem(id=2, title="a", date=date(2024, 6, 1), time_slot=MORNING),
        TodoItem(id=3, title="c", date=date(2024, 6, 1), time_slot=copy_of_morning),
        TodoItem(id=4, title="d", date=date(2024, 6, 1), time_slot=renamed),
    ]
    days = timetable(todos, today=TODAY)
    assert [day.date for day in days] == [date(2024, 6, 1), date(2024, 6, 2)]
    first = days[0]
    assert [group.time_slot for group in first.slots] == [MORNING, renamed]
    assert [item.id for item in first.slots[0].items] == [2, 3]
    assert not first.is_today


def test_filter_view_sections():
    todos = _todos()
    assert [i.id for i in filter_view(todos, "simple")] == [1, 4]
    assert [i.id for i in filter_view(todos, "calendar")] == [2, 3]
    assert [i.id for i in filter_view(todos, "time")] == [5, 6]
    assert filter_view(todos, "all") == todos
    assert filter_view(todos, "bogus") == todos


def test_day_expansion_today_always_open():
    expansion = DayExpansion()
    other = date(2024, 5, 12)

    assert expansion.is_expanded(TODAY, today=TODAY)
    assert not expansion.is_expanded(other, today=TODAY)

    assert expansion.toggle(TODAY, today=TODAY) is True
    assert expansion.is_expanded(TODAY, today=TODAY)

    assert expansion.toggle(other, today=TODAY) is True
    assert expansion.is_expanded(other, today=TODAY)
    assert expansion.toggle(other, today=TODAY) is False
    assert not expansion.is_expanded(other, today=TODAY)
