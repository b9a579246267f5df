"""TODOコレクションの保存・アカウント・同期"""

from .accounts import Account, AccountError, AccountService, LocalAccountService
from .preferences import PreferenceStore
from .reconciler import SyncReconciler
from .store import (
    CollectionStore,
    InMemoryCollectionStore,
    SqliteCollectionStore,
    StoreError,
    next_todo_id_path,
    time_slots_path,
    todos_path,
)

__all__ = [
    "Account",
    "AccountError",
    "AccountService",
    "CollectionStore",
    "InMemoryCollectionStore",
    "LocalAccountService",
    "PreferenceStore",
    "SqliteCollectionStore",
    "StoreError",
    "SyncReconciler",
    "next_todo_id_path",
    "time_slots_path",
    "todos_path",
]
