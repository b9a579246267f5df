"""
フラットなTODOコレクションから3つの表示モードへの射影

どの関数も入力を変更せず、おかしなレコードがあっても例外を出さない。
コレクションが変わるたびに再計算する前提。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .models import TaskSection, TimeSlot, TodoItem, classify

VIEW_ALL = "all"

DateGroup = Tuple[Optional[date], List[TodoItem]]


@dataclass
class SlotGroup:
    time_slot: TimeSlot
    items: List[TodoItem]


@dataclass
class TimetableDay:
    date: date
    slots: List[SlotGroup]
    is_today: bool = False

    @property
    def items(self) -> List[TodoItem]:
        return [item for group in self.slots for item in group.items]


def filter_view(todos: Iterable[TodoItem], view: str = VIEW_ALL) -> List[TodoItem]:
    """セクションで絞り込む（``all`` や未知の値なら全件を返す）"""
    items = list(todos)
    try:
        section = TaskSection(view)
    except ValueError:
        return items
    return [item for item in items if classify(item) is section]


def group_by_date(todos: Iterable[TodoItem], calendar_view: bool = False) -> List[DateGroup]:
    """TODOを日付ごとにグループ化する

    通常は全件がちょうど1つのグループに入り（日付なしは ``None`` のグループ）、
    グループは出現順に並ぶ。カレンダービューでは日付なしを除外し、日付順に並べる。
    """
    groups: Dict[Optional[date], List[TodoItem]] = {}
    for item in todos:
        if calendar_view and item.date is None:
            continue
        groups.setdefault(item.date, []).append(item)

    result = list(groups.items())
    if calendar_view:
        result.sort(key=lambda entry: entry[0])
    return result


def calendar_groups(todos: Iterable[TodoItem]) -> List[DateGroup]:
    return group_by_date(todos, calendar_view=True)


def _distinct_by_id(items: Iterable[TodoItem]) -> List[TodoItem]:
    seen: Set[int] = set()
    result = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        result.append(item)
    return result


def _distinct_by_identity(items: Iterable[TodoItem]) -> List[TodoItem]:
    seen: Set[Tuple[int, str, Optional[int]]] = set()
    result = []
    for item in items:
        key = (item.id, item.title, item.time_slot.id if item.time_slot else None)
        if key in seen:
            continue
        seen.add(key)
        result.append(item)
    return result


def _group_by_slot(items: Sequence[TodoItem]) -> List[SlotGroup]:
    # スロットは値で比較するため、同じスロットのコピー同士は同じグループになる
    groups: Dict[TimeSlot, List[TodoItem]] = {}
    for item in items:
        groups.setdefault(item.time_slot, []).append(item)
    return [SlotGroup(time_slot=slot, items=members) for slot, members in groups.items()]


def timetable(todos: Iterable[TodoItem], today: Optional[date] = None) -> List[TimetableDay]:
    """TODOを 日付 -> 時間帯 のグループに射影する

    スナップショットの重複で同じTODOが複数届いた場合は2段階でまとめる:
    まずIDで、次に日ごとに (id, title, スロットID) で重複を除く。
    """
    today = today or date.today()
    candidates = [
        item for item in todos if item.time_slot is not None and item.date is not None
    ]

    by_date: Dict[date, List[TodoItem]] = {}
    for item in _distinct_by_id(candidates):
        by_date.setdefault(item.date, []).append(item)

    days = []
    for day in sorted(by_date):
        items = _distinct_by_identity(by_date[day])
        days.append(TimetableDay(date=day, slots=_group_by_slot(items), is_today=day == today))
    return days


def flatten(groups: Iterable[DateGroup]) -> List[TodoItem]:
    return [item for _, items in groups for item in items]


@dataclass
class DayExpansion:
    """時間割ビューで展開中の日付（今日は常に展開）"""

    expanded: Set[date] = field(default_factory=set)

    def is_expanded(self, day: date, today: Optional[date] = None) -> bool:
        today = today or date.today()
        return day == today or day in self.expanded

    def toggle(self, day: date, today: Optional[date] = None) -> bool:
        """日付の展開状態を切り替えて新しい状態を返す（今日は折りたためない）"""

        today = today or date.today()
        if day == today:
            return True
        if day in self.expanded:
            self.expanded.discard(day)
            return False
        self.expanded.add(day)
        return True
