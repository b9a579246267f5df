"""リマインダーの通知時刻計算とプロセス内のリマインダーキュー"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import date, datetime, time as dt_time
from typing import Dict, List, Optional, Protocol

from .models import TimeSlot, TodoItem

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_TIME = dt_time(9, 0)


def _parse_hhmm(value: str) -> dt_time:
    hour, minute = value.strip().split(":")[:2]
    return dt_time(int(hour), int(minute))


def notification_time(
    todo_date: Optional[date],
    time_slot: Optional[TimeSlot],
    default_time: dt_time = DEFAULT_REMINDER_TIME,
) -> Optional[datetime]:
    """TODOのリマインダーを出すローカル日時を返す

    日付のないTODOは通知なし（None）。スロットがあればその開始時刻、
    なければ ``default_time`` （09:00）を使う。

    Raises:
        ValueError: スロットの開始時刻が ``HH:MM`` 形式でない場合
    """
    if todo_date is None:
        return None
    at = _parse_hhmm(time_slot.start_time) if time_slot is not None else default_time
    # システムのローカルタイムゾーンを付与
    return datetime.combine(todo_date, at).astimezone()


def notification_epoch_millis(
    item: TodoItem, default_time: dt_time = DEFAULT_REMINDER_TIME
) -> Optional[int]:
    fire_at = notification_time(item.date, item.time_slot, default_time)
    if fire_at is None:
        return None
    return int(fire_at.timestamp() * 1000)


@dataclass(frozen=True)
class Reminder:
    todo_id: int
    title: str
    fire_at_ms: int


class NotificationScheduler(Protocol):
    def schedule_at(self, epoch_millis: int, payload: Reminder) -> None: ...

    def cancel(self, todo_id: int) -> None: ...


class ReminderQueue:
    """通知時刻が来るまでリマインダーを保持するキュー

    同じTODO IDで再登録すると既存のリマインダーを置き換える。
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Dict[int, Reminder] = {}
        self.logger = logging.getLogger(__name__)

    def schedule_at(self, epoch_millis: int, payload: Reminder) -> None:
        with self._lock:
            self._pending[payload.todo_id] = Reminder(
                todo_id=payload.todo_id, title=payload.title, fire_at_ms=epoch_millis
            )
        self.logger.debug("Reminder for todo %s scheduled at %s", payload.todo_id, epoch_millis)

    def cancel(self, todo_id: int) -> None:
        with self._lock:
            removed = self._pending.pop(todo_id, None)
        if removed is not None:
            self.logger.debug("Reminder for todo %s cancelled", todo_id)

    def pending(self) -> List[Reminder]:
        with self._lock:
            return sorted(self._pending.values(), key=lambda r: r.fire_at_ms)

    def pop_due(self, now_ms: Optional[int] = None) -> List[Reminder]:
        """通知時刻を過ぎたリマインダーをすべて取り出して返す"""
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        with self._lock:
            due = [r for r in self._pending.values() if r.fire_at_ms <= now_ms]
            for reminder in due:
                del self._pending[reminder.todo_id]
        return sorted(due, key=lambda r: r.fire_at_ms)

    def clear(self) -> None:
        with self._lock:
            self._pending.clear()


def schedule_reminder(
    scheduler: NotificationScheduler,
    item: TodoItem,
    default_time: dt_time = DEFAULT_REMINDER_TIME,
) -> Optional[int]:
    """日付のある ``item`` にリマインダーを登録し、通知時刻を返す"""

    try:
        fire_at_ms = notification_epoch_millis(item, default_time)
    except ValueError:
        logger.warning(
            "Skipping reminder for todo %s: bad slot start time %r",
            item.id,
            item.time_slot.start_time if item.time_slot else None,
        )
        return None
    if fire_at_ms is None:
        return None
    scheduler.schedule_at(fire_at_ms, Reminder(todo_id=item.id, title=item.title, fire_at_ms=fire_at_ms))
    return fire_at_ms
