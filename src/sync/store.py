"""
コレクションストア: スラッシュ区切りのパスで指定するドキュメント単位の保存

どのバックエンドも ``write`` / ``read_once`` / ``subscribe`` / ``unsubscribe``
の4操作を提供する。購読者は購読時に現在値を受け取り、以後そのパスへの
書き込みのたびに（自分自身の書き込みも含めて）全体の値を再度受け取る。
"""

from __future__ import annotations

import copy
import json
import logging
import os
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol

SnapshotCallback = Callable[[Any], None]

logger = logging.getLogger(__name__)


DB_PATH_ENV = "TODOLIST_DB_PATH"


class StoreError(Exception):
    """ストアの読み書きに失敗したときに送出される例外"""


def resolve_db_path(db_path: Optional[Path] = None, fallback: Optional[str] = None) -> Path:
    """SQLiteファイルの場所を決める

    優先順位: 明示指定 > 環境変数TODOLIST_DB_PATH > fallback > data/todolist.db
    親ディレクトリは必要に応じて作成する。
    """
    env_path = os.getenv(DB_PATH_ENV)
    if db_path:
        path = Path(db_path)
    elif env_path:
        path = Path(env_path)
    elif fallback:
        path = Path(fallback)
    else:
        path = Path(__file__).resolve().parents[2] / "data" / "todolist.db"
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def todos_path(account_id: str) -> str:
    return f"users/{account_id}/todos"


def time_slots_path(account_id: str) -> str:
    return f"users/{account_id}/timeSlots"


def next_todo_id_path(account_id: str) -> str:
    return f"users/{account_id}/nextTodoId"


class CollectionStore(Protocol):
    def write(self, path: str, value: Any) -> None: ...

    def read_once(self, path: str) -> Any: ...

    def subscribe(self, path: str, callback: SnapshotCallback) -> None: ...

    def unsubscribe(self, path: str, callback: SnapshotCallback) -> None: ...


class ListenerStore:
    """プロセス内バックエンド共通のリスナー管理"""

    def __init__(self):
        self._listeners_lock = threading.Lock()
        self._listeners: Dict[str, List[SnapshotCallback]] = {}
        self.logger = logging.getLogger(self.__class__.__module__)

    def read_once(self, path: str) -> Any:
        raise NotImplementedError

    def subscribe(self, path: str, callback: SnapshotCallback) -> None:
        with self._listeners_lock:
            self._listeners.setdefault(path, []).append(callback)
        self.logger.debug("Listener attached to %s", path)
        self._deliver(path, [callback])

    def unsubscribe(self, path: str, callback: SnapshotCallback) -> None:
        with self._listeners_lock:
            callbacks = self._listeners.get(path, [])
            if callback in callbacks:
                callbacks.remove(callback)
                self.logger.debug("Listener detached from %s", path)
            if not callbacks:
                self._listeners.pop(path, None)

    def listener_count(self, path: str) -> int:
        with self._listeners_lock:
            return len(self._listeners.get(path, []))

    def _notify(self, path: str) -> None:
        with self._listeners_lock:
            callbacks = list(self._listeners.get(path, []))
        if callbacks:
            self._deliver(path, callbacks)

    def _deliver(self, path: str, callbacks: List[SnapshotCallback]) -> None:
        value = self.read_once(path)
        for callback in callbacks:
            try:
                callback(copy.deepcopy(value))
            except Exception:
                self.logger.exception("Snapshot listener on %s failed", path)


class InMemoryCollectionStore(ListenerStore):
    """プロセス内のみのストア（テストや単一プロセスでの動作確認用）"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        super().__init__()
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self.write_count = 0

    def write(self, path: str, value: Any) -> None:
        with self._lock:
            self._data[path] = copy.deepcopy(value)
            self.write_count += 1
        self._notify(path)

    def read_once(self, path: str) -> Any:
        with self._lock:
            return copy.deepcopy(self._data.get(path))


class SqliteCollectionStore(ListenerStore):
    """ローカルファイルバックエンド: パスごとに1つのJSONドキュメントをSQLiteに保存"""


    def __init__(self, db_path: Optional[Path] = None):
        super().__init__()
        self.db_path = resolve_db_path(db_path)
        self._initialize()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS collections (
                    path TEXT PRIMARY KEY,
                    value_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.commit()

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def write(self, path: str, value: Any) -> None:
        try:
            payload = json.dumps(value, ensure_ascii=False)
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO collections (path, value_json, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(path) DO UPDATE SET
                        value_json = excluded.value_json,
                        updated_at = excluded.updated_at
                    """,
                    (path, payload, self._now()),
                )
                conn.commit()
        except (sqlite3.Error, TypeError, ValueError) as exc:
            raise StoreError(f"Failed to write {path}: {exc}") from exc
        self._notify(path)

    def read_once(self, path: str) -> Any:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT value_json FROM collections WHERE path = ?", (path,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read {path}: {exc}") from exc
        if row is None:
            return None
        try:
            return json.loads(row["value_json"])
        except ValueError:
            self.logger.error("Corrupt JSON stored at %s; treating as empty", path)
            return None
