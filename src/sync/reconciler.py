"""
ユーザー1人分のリモートTODOコレクションとローカルのスナップショットを同期する

プッシュは一定時間編集が止まった後、リモートのコレクション全体を1回の書き込みで置き換える。
変更リスナーは（自分の書き込みのエコーも含め）スナップショットのたびにローカル全体を置き換える。

関連クラス:
  - store.CollectionStore: 書き込み先・購読元のストア
  - todolist.session.TodoSession: このクラスの利用者
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Sequence, Tuple

from src.todo.models import TodoItem
from src.todo.records import todos_from_snapshot, todos_to_records

from .store import CollectionStore, SnapshotCallback, todos_path

TodosCallback = Callable[[List[TodoItem]], None]


class SyncReconciler:
    """サインイン中ユーザーのデバウンス付きプッシュと単一の変更リスナー"""

    def __init__(self, store: CollectionStore, debounce_seconds: float = 0.5):
        self.store = store
        self.debounce_seconds = debounce_seconds
        self.logger = logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._pending: Optional[Tuple[str, List[TodoItem]]] = None

        self._listener: Optional[SnapshotCallback] = None
        self._listener_path: Optional[str] = None

    # プッシュ側

    def save(self, user_id: str, todos: Sequence[TodoItem]) -> bool:
        """コレクション全体を即座に書き込む（失敗はログに残し、例外は出さない）"""
        path = todos_path(user_id)
        try:
            self.store.write(path, todos_to_records(todos))
        except Exception as exc:
            self.logger.error("Failed to save %d todos to %s: %s", len(todos), path, exc)
            return False
        self.logger.debug("Saved %d todos to %s", len(todos), path)
        return True

    def schedule_push(self, user_id: str, todos: Sequence[TodoItem]) -> None:
        """デバウンス期間中に新しい内容が来なければ ``todos`` をプッシュする"""
        with self._lock:
            self._generation += 1
            generation = self._generation
            if self._timer is not None:
                self._timer.cancel()
            self._pending = (user_id, list(todos))
            self._timer = threading.Timer(self.debounce_seconds, self._fire, args=(generation,))
            self._timer.daemon = True
            self._timer.start()

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._pending is None:
                # 新しいプッシュに置き換えられたか、キャンセル済み
                return
            user_id, todos = self._pending
            self._pending = None
            self._timer = None
        self.save(user_id, todos)

    def flush(self) -> bool:
        """保留中のコレクションがあれば即座にプッシュする"""
        with self._lock:
            pending = self._pending
            self._pending = None
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if pending is None:
            return True
        return self.save(*pending)

    def cancel_pending(self) -> None:
        """保留中のプッシュを書き込まずに破棄する"""
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if self._pending is not None:
                self.logger.info("Abandoned pending push for %s", self._pending[0])
            self._pending = None

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    # 受信側

    def attach(self, user_id: str, on_todos: TodosCallback) -> None:
        """``user_id`` のコレクションを購読する（既存のリスナーは置き換える）"""
        self.detach()
        path = todos_path(user_id)

        def listener(value) -> None:
            with self._lock:
                if self._listener is not listener:
                    # 解除済みリスナーへの遅れて届いた通知

                    return
            todos = todos_from_snapshot(value)
            self.logger.debug("Snapshot for %s parsed into %d todos", path, len(todos))
            try:
                on_todos(todos)
            except Exception:
                self.logger.exception("Applying snapshot from %s failed", path)

        with self._lock:
            self._listener = listener
            self._listener_path = path
        self.logger.info("Attaching todos listener to %s", path)
        try:
            self.store.subscribe(path, listener)
        except Exception as exc:
            self.logger.error("Failed to attach listener to %s: %s", path, exc)

    def detach(self) -> None:
        with self._lock:
            listener, path = self._listener, self._listener_path
            self._listener = None
            self._listener_path = None
        if listener is None or path is None:
            return
        try:
            self.store.unsubscribe(path, listener)
        except Exception as exc:
            self.logger.error("Failed to detach listener from %s: %s", path, exc)
        self.logger.info("Todos listener detached from %s", path)

    @property
    def attached_path(self) -> Optional[str]:
        with self._lock:
            return self._listener_path
