from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, List, Optional


class TaskSection(str, Enum):
    """TODOが表示されるセクション（シンプル / カレンダー / 時間割）"""

    SIMPLE = "simple"
    CALENDAR = "calendar"
    TIME = "time"


@dataclass(frozen=True, slots=True)
class TimeSlot:
    """名前付きの時間帯。時刻は ``HH:MM`` 形式の文字列で保持する。"""

    id: int
    start_time: str
    end_time: str
    display_name: str


@dataclass(frozen=True, slots=True)
class TodoItem:
    """1件のTODO。``time_slot`` は登録時点のコピーで、スロット一覧への参照ではない。"""

    id: int
    title: str
    is_completed: bool = False
    date: Optional[dt.date] = None
    time_slot: Optional[TimeSlot] = None


@dataclass(slots=True)
class User:
    """サインイン中のアカウントと最新のTODOスナップショット"""

    id: str
    email: str
    password: Optional[str] = None
    todos: List[TodoItem] = field(default_factory=list)

    def with_todos(self, todos: Iterable[TodoItem]) -> "User":
        return User(id=self.id, email=self.email, password=self.password, todos=list(todos))


def create_todo(
    todo_id: int,
    title: str,
    date: Optional[dt.date] = None,
    time_slot: Optional[TimeSlot] = None,
) -> TodoItem:
    # タイトルの検証は呼び出し側で行う
    return TodoItem(id=todo_id, title=title, is_completed=False, date=date, time_slot=time_slot)


def toggle(item: TodoItem, completed: bool) -> TodoItem:
    return replace(item, is_completed=completed)


def belongs_to_timetable(item: TodoItem) -> bool:
    """時間割ビューに表示されるか（スロットと日付の両方が必要）

    スロットはあるが日付のないTODOは時間割のグループ化から外れる。
    """
    return item.time_slot is not None and item.date is not None


def classify(item: TodoItem) -> TaskSection:
    if item.time_slot is not None:
        return TaskSection.TIME
    if item.date is not None:
        return TaskSection.CALENDAR
    return TaskSection.SIMPLE


def next_todo_id(todos: Iterable[TodoItem], floor: int = 0) -> int:
    """既存のどのIDよりも大きい次のIDを返す

    Args:
        todos: 現在のTODO一覧
        floor: 永続化された採番カウンタ（これ未満のIDは払い出さない）
    """
    highest = floor - 1
    for item in todos:
        if item.id > highest:
            highest = item.id
    return highest + 1
