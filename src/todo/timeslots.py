from __future__ import annotations

import threading
from typing import Iterable, List

from .models import TimeSlot


class TimeSlotRegistry:
    """セッションが所有する再利用可能な時間帯の一覧

    IDは増える一方のカウンタから払い出すため、削除したスロットのIDは再利用しない。
    スロットを削除しても、そのコピーを埋め込んだTODOはそのまま残る。
    """

    def __init__(self, slots: Iterable[TimeSlot] = ()):
        self._lock = threading.Lock()
        self._slots: List[TimeSlot] = []
        self._next_id = 0
        self.load(slots)

    def add(self, start_time: str, end_time: str, display_name: str) -> TimeSlot:
        with self._lock:
            slot = TimeSlot(
                id=self._next_id,
                start_time=start_time,
                end_time=end_time,
                display_name=display_name,
            )
            self._next_id += 1
            self._slots.append(slot)
            return slot

    def list(self) -> List[TimeSlot]:
        with self._lock:
            return list(self._slots)

    def get(self, slot_id: int) -> TimeSlot | None:
        with self._lock:
            for slot in self._slots:
                if slot.id == slot_id:
                    return slot
        return None

    def remove(self, slot_id: int) -> bool:
        with self._lock:
            before = len(self._slots)
            self._slots = [slot for slot in self._slots if slot.id != slot_id]
            return len(self._slots) != before

    def load(self, slots: Iterable[TimeSlot]) -> None:
        """内容を置き換える（カウンタは読み込んだ全IDより先に進める）"""
        with self._lock:
            self._slots = list(slots)
            for slot in self._slots:
                if slot.id >= self._next_id:
                    self._next_id = slot.id + 1

    def clear(self) -> None:
        with self._lock:
            self._slots = []
            self._next_id = 0

    @property
    def next_id(self) -> int:
        with self._lock:
            return self._next_id
