"""
サインイン中ユーザーのTODOセッション

ローカルの編集は即座に反映し、リコンサイラ経由で遅延プッシュする。
その後リスナーが届けたスナップショットでローカルのコレクションを丸ごと置き換える。

関連クラス:
  - sync.reconciler.SyncReconciler: デバウンス付きプッシュとリスナー管理
  - factory.build_session: 設定からこのクラスを組み立てる
"""

from __future__ import annotations

import logging
import threading
from datetime import date, time as dt_time
from typing import List, Optional

from src.sync.accounts import Account, AccountService
from src.sync.preferences import FIRST_LAUNCH, REMEMBERED_EMAIL, SESSION_TOKEN, PreferenceStore
from src.sync.reconciler import SyncReconciler
from src.sync.store import CollectionStore, next_todo_id_path, time_slots_path, todos_path
from src.todo import projection
from src.todo.models import TimeSlot, TodoItem, User, create_todo, next_todo_id, toggle
from src.todo.notifications import (
    DEFAULT_REMINDER_TIME,
    NotificationScheduler,
    ReminderQueue,
    schedule_reminder,
)
from src.todo.records import time_slot_to_record, time_slots_from_snapshot, todos_from_snapshot
from src.todo.timeslots import TimeSlotRegistry

logger = logging.getLogger(__name__)


class TodoSession:
    """現在のユーザー・タイムスロット・同期リスナーを保持するクラス"""

    def __init__(
        self,
        accounts: AccountService,
        store: CollectionStore,
        preferences: Optional[PreferenceStore] = None,
        registry: Optional[TimeSlotRegistry] = None,
        notifier: Optional[NotificationScheduler] = None,
        debounce_seconds: float = 0.5,
        reminder_time: dt_time = DEFAULT_REMINDER_TIME,
    ):
        """
        初期化

        Args:
            accounts: アカウントサービス（local / firebase）
            store: TODOとタイムスロットを保存するコレクションストア
            preferences: firstLaunch等を保存する設定ストア（省略可）
            registry: タイムスロット管理（省略時は新規作成）
            notifier: リマインダー登録先（省略時はReminderQueue）
            debounce_seconds: プッシュをまとめる待機時間（秒）
            reminder_time: 日付のみのTODOの通知時刻
        """
        self.accounts = accounts
        self.store = store
        self.preferences = preferences
        self.registry = registry or TimeSlotRegistry()
        self.notifier = notifier if notifier is not None else ReminderQueue()
        self.reminder_time = reminder_time
        self.reconciler = SyncReconciler(store, debounce_seconds=debounce_seconds)

        self._lock = threading.RLock()
        self._user: Optional[User] = None
        self._next_id = 0
        # リモートの内容を一度も受け取っていない間は編集を受け付けない
        self._loaded = False

    # アカウント

    @property
    def current_user(self) -> Optional[User]:
        with self._lock:
            if self._user is None:
                return None
            return self._user.with_todos(self._user.todos)

    @property
    def todos(self) -> List[TodoItem]:
        with self._lock:
            return list(self._user.todos) if self._user else []

    @property
    def is_loaded(self) -> bool:
        """リモートのTODOを取得済みかどうか"""
        with self._lock:
            return self._user is not None and self._loaded

    def sign_up(self, email: str, password: str) -> User:
        """アカウントを作成し、空のコレクションで開始する

        Raises:
            AccountError: 入力不正・登録済みなど（メッセージはそのまま表示可能）
        """
        account = self.accounts.sign_up(email, password)
        try:
            self.store.write(todos_path(account.id), [])
        except Exception as exc:
            logger.error("Failed to initialise todos for %s: %s", account.id, exc)
        logger.info("Signed up %s", account.id)
        return self._start(account)

    def sign_in(self, email: str, password: str, remember: bool = False) -> User:
        account = self.accounts.sign_in(email, password)
        if remember and self.preferences is not None:
            self.preferences.set_str(REMEMBERED_EMAIL, account.email or email)
        logger.info("Signed in %s", account.id)
        return self._start(account)

    def resume(self) -> Optional[User]:
        """保存済みのセッショントークンから前回のサインインを復元する"""
        if self.preferences is None:
            return None
        token = self.preferences.get_str(SESSION_TOKEN)
        if not token:
            return None
        account = self.accounts.resume(token)
        if account is None:
            logger.info("Stored session could not be resumed; clearing it")
            self.preferences.remove(SESSION_TOKEN)
            return None
        return self._start(account)

    def _start(self, account: Account) -> User:
        self.reconciler.cancel_pending()
        with self._lock:
            self._user = User(id=account.id, email=account.email)
            self._next_id = 0
            self._loaded = False
        self._load_time_slots(account.id)
        self._load_todos(account.id)
        if self.preferences is not None and account.session_token:
            self.preferences.set_str(SESSION_TOKEN, account.session_token)
        self.reconciler.attach(account.id, self._apply_snapshot)
        return self.current_user

    def _load_todos(self, account_id: str) -> None:
        """リスナーの初回通知を待たずに現在のTODOと採番カウンタを読み込む"""
        try:
            value = self.store.read_once(todos_path(account_id))
        except Exception as exc:
            logger.error("Failed to load todos for %s: %s", account_id, exc)
            return
        floor = self._read_next_id(account_id)
        todos = todos_from_snapshot(value)
        with self._lock:
            if self._user is None or self._user.id != account_id:
                return
            if not self._loaded:
                self._user = self._user.with_todos(todos)
                self._loaded = True
            self._next_id = next_todo_id(self._user.todos, max(floor, self._next_id))

    def _read_next_id(self, account_id: str) -> int:
        try:
            value = self.store.read_once(next_todo_id_path(account_id))
        except Exception as exc:
            logger.error("Failed to load id counter for %s: %s", account_id, exc)
            return 0
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            return value
        return 0

    def _save_next_id(self, account_id: str, next_id: int) -> None:
        try:
            self.store.write(next_todo_id_path(account_id), next_id)
        except Exception as exc:
            logger.error("Failed to save id counter for %s: %s", account_id, exc)

    def logout(self) -> None:
        """未送信のプッシュを破棄し、リスナーを外してユーザーを忘れる"""
        self.reconciler.cancel_pending()
        self.reconciler.detach()
        with self._lock:
            todos = list(self._user.todos) if self._user else []
            self._user = None
            self._next_id = 0
            self._loaded = False
        for item in todos:
            self.notifier.cancel(item.id)
        self.registry.clear()
        try:
            self.accounts.sign_out()
        except Exception as exc:
            logger.error("Error during sign out: %s", exc)
        if self.preferences is not None:
            self.preferences.remove(REMEMBERED_EMAIL, SESSION_TOKEN)
        logger.info("User logged out and listener cleaned up")

    def close(self) -> None:
        """保留中のプッシュを送信してリスナーを外す（サインイン状態は残す）"""
        self.reconciler.flush()
        self.reconciler.detach()

    def _apply_snapshot(self, todos: List[TodoItem]) -> None:
        with self._lock:
            if self._user is None:
                return
            self._user = self._user.with_todos(todos)
            self._next_id = next_todo_id(todos, self._next_id)
            self._loaded = True

    def _propose(self, todos: List[TodoItem]) -> None:
        with self._lock:
            if self._user is None:
                return
            self._user = self._user.with_todos(todos)
            user_id = self._user.id
        self.reconciler.schedule_push(user_id, todos)

    def _editable(self) -> bool:
        if self._user is None:
            return False
        if not self._loaded:
            logger.warning("Todos for %s are not loaded yet; edit ignored", self._user.id)
            return False
        return True

    # 編集操作

    def add_todo(
        self,
        title: str,
        todo_date: Optional[date] = None,
        slot_id: Optional[int] = None,
    ) -> Optional[TodoItem]:
        """TODOを追加する（空タイトル・未知のスロットは無視してNoneを返す）"""
        if not title or not title.strip():
            return None
        time_slot: Optional[TimeSlot] = None
        if slot_id is not None:
            time_slot = self.registry.get(slot_id)
            if time_slot is None:
                logger.debug("Ignoring todo for unknown time slot %s", slot_id)
                return None

        with self._lock:
            if not self._editable():
                return None
            item = create_todo(
                next_todo_id(self._user.todos, self._next_id),
                title.strip(),
                date=todo_date,
                time_slot=time_slot,
            )
            self._next_id = item.id + 1
            user_id = self._user.id
            todos = list(self._user.todos) + [item]
        self._save_next_id(user_id, item.id + 1)
        self._propose(todos)
        schedule_reminder(self.notifier, item, self.reminder_time)
        return item

    def set_completed(self, todo_id: int, completed: bool) -> Optional[TodoItem]:
        with self._lock:
            if not self._editable():
                return None
            updated: Optional[TodoItem] = None
            todos = []
            for item in self._user.todos:
                if item.id == todo_id and updated is None:
                    updated = toggle(item, completed)
                    todos.append(updated)
                else:
                    todos.append(item)
        if updated is None:
            return None
        self._propose(todos)
        return updated

    def delete_todo(self, todo_id: int) -> bool:
        with self._lock:
            if not self._editable():
                return False
            todos = [item for item in self._user.todos if item.id != todo_id]
            if len(todos) == len(self._user.todos):
                return False
        self.notifier.cancel(todo_id)
        self._propose(todos)
        return True

    def get_todo(self, todo_id: int) -> Optional[TodoItem]:
        for item in self.todos:
            if item.id == todo_id:
                return item
        return None

    # タイムスロット

    def time_slots(self) -> List[TimeSlot]:
        return self.registry.list()

    def add_time_slot(self, start_time: str, end_time: str, display_name: str) -> TimeSlot:
        slot = self.registry.add(start_time, end_time, display_name)
        self._save_time_slots()
        return slot

    def remove_time_slot(self, slot_id: int) -> bool:
        # 各TODOが埋め込んだスロットのコピーはそのまま残る
        removed = self.registry.remove(slot_id)
        if removed:
            self._save_time_slots()
        return removed

    def _load_time_slots(self, account_id: str) -> None:
        self.registry.clear()
        try:
            value = self.store.read_once(time_slots_path(account_id))
        except Exception as exc:
            logger.error("Failed to load time slots for %s: %s", account_id, exc)
            return
        self.registry.load(time_slots_from_snapshot(value))

    def _save_time_slots(self) -> None:
        user = self.current_user
        if user is None:
            return
        records = [time_slot_to_record(slot) for slot in self.registry.list()]
        try:
            self.store.write(time_slots_path(user.id), records)
        except Exception as exc:
            logger.error("Failed to save time slots for %s: %s", user.id, exc)

    # 表示用の射影

    def view(self, view: str = projection.VIEW_ALL) -> List[TodoItem]:
        return projection.filter_view(self.todos, view)

    def date_groups(self) -> List[projection.DateGroup]:
        return projection.group_by_date(self.todos)

    def calendar_groups(self) -> List[projection.DateGroup]:
        return projection.calendar_groups(self.todos)

    def timetable(self, today: Optional[date] = None) -> List[projection.TimetableDay]:
        return projection.timetable(self.todos, today=today)

    # 設定値

    def consume_first_launch(self) -> bool:
        """初回のみTrueを返し、以降はFalse（設定ストア単位）"""
        if self.preferences is None:
            return False
        first = self.preferences.get_bool(FIRST_LAUNCH, True)
        if first:
            self.preferences.set_bool(FIRST_LAUNCH, False)
        return first

    def remembered_email(self) -> Optional[str]:
        if self.preferences is None:
            return None
        return self.preferences.get_str(REMEMBERED_EMAIL)
