"""
TODOデータクラスとストア上のレコードの相互変換

レコードはWeb/モバイルクライアントと共通のフィールド名を使う:
``id, title, isCompleted, date, timeSlot{id, startTime, endTime, displayName}``
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import TimeSlot, TodoItem

logger = logging.getLogger(__name__)


def time_slot_to_record(slot: TimeSlot) -> Dict[str, Any]:
    return {
        "id": slot.id,
        "startTime": slot.start_time,
        "endTime": slot.end_time,
        "displayName": slot.display_name,
    }


def todo_to_record(item: TodoItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "title": item.title,
        "isCompleted": item.is_completed,
        "date": item.date.isoformat() if item.date else None,
        "timeSlot": time_slot_to_record(item.time_slot) if item.time_slot else None,
    }


def todos_to_records(items: Iterable[TodoItem]) -> List[Dict[str, Any]]:
    return [todo_to_record(item) for item in items]


def _as_int(value: Any) -> Optional[int]:
    # boolはintのサブクラスなので明示的に除外する
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def time_slot_from_record(record: Any) -> Optional[TimeSlot]:
    """埋め込みスロットを解析する（欠けたフィールドがあればNone）"""
    if not isinstance(record, Mapping):
        return None
    slot_id = _as_int(record.get("id"))
    start_time = record.get("startTime")
    end_time = record.get("endTime")
    display_name = record.get("displayName")
    if slot_id is None:
        return None
    if not all(isinstance(v, str) for v in (start_time, end_time, display_name)):
        return None
    return TimeSlot(
        id=slot_id,
        start_time=start_time,
        end_time=end_time,
        display_name=display_name,
    )


def todo_from_record(record: Any) -> Optional[TodoItem]:
    """1件のレコードを解析する（使えないレコードはログに残してNone）"""
    if not isinstance(record, Mapping):
        logger.warning("Dropping todo record that is not a mapping: %r", record)
        return None

    todo_id = _as_int(record.get("id"))
    if todo_id is None:
        logger.warning("Dropping todo record with invalid or missing id: %r", record)
        return None

    title = record.get("title")
    if not isinstance(title, str):
        logger.warning("Dropping todo record %s with invalid or missing title", todo_id)
        return None

    completed = record.get("isCompleted")
    if not isinstance(completed, bool):
        completed = False

    parsed_date = None
    raw_date = record.get("date")
    if isinstance(raw_date, str) and raw_date:
        try:
            parsed_date = date.fromisoformat(raw_date)
        except ValueError:
            logger.error("Error parsing date %r on todo %s", raw_date, todo_id)

    return TodoItem(
        id=todo_id,
        title=title,
        is_completed=completed,
        date=parsed_date,
        time_slot=time_slot_from_record(record.get("timeSlot")),
    )


def todos_from_snapshot(value: Any) -> List[TodoItem]:
    """コレクション全体のスナップショットを解析する

    リスト（``None`` の穴を含むことがある）か、プッシュキーをキーとする
    辞書のどちらかで届く。それ以外は空のコレクションとして扱う。
    """
    if value is None:
        return []
    if isinstance(value, Mapping):
        raw_items: Iterable[Any] = value.values()
    elif isinstance(value, list):
        raw_items = (entry for entry in value if entry is not None)
    else:
        logger.warning("Unexpected snapshot type %s; treating as empty", type(value).__name__)
        return []

    todos: List[TodoItem] = []
    for raw in raw_items:
        item = todo_from_record(raw)
        if item is not None:
            todos.append(item)
    return todos


def time_slots_from_snapshot(value: Any) -> List[TimeSlot]:
    if isinstance(value, Mapping):
        raw_items: Iterable[Any] = value.values()
    elif isinstance(value, list):
        raw_items = value
    else:
        return []
    slots = [time_slot_from_record(raw) for raw in raw_items if raw is not None]
    return [slot for slot in slots if slot is not None]
