"""設定されたバックエンドに応じてTodoSessionを組み立てる"""

from __future__ import annotations

import logging
from datetime import time as dt_time
from pathlib import Path
from typing import Optional

from src.sync.accounts import LocalAccountService
from src.sync.firebase import FirebaseAccountService, FirebaseCollectionStore
from src.sync.preferences import PreferenceStore
from src.sync.store import SqliteCollectionStore, resolve_db_path as store_db_path

from .config import BACKEND_FIREBASE, BACKEND_LOCAL, Config
from .session import TodoSession

logger = logging.getLogger(__name__)


def resolve_db_path(config: Config, db_path: Optional[Path] = None) -> Path:
    """明示指定 > TODOLIST_DB_PATH > 設定ファイルの順でDBパスを決める"""
    return store_db_path(db_path, fallback=config.db_path)


def build_session(config: Config, db_path: Optional[Path] = None) -> TodoSession:
    """backend設定（local | firebase）からセッションを生成する

    Raises:
        ValueError: 未知のbackend、またはfirebase設定が不足している場合
    """
    path = resolve_db_path(config, db_path)
    preferences = PreferenceStore(db_path=path)
    reminder_time = dt_time(config.notifications.default_hour, config.notifications.default_minute)

    if config.backend == BACKEND_FIREBASE:
        if not config.firebase.api_key or not config.firebase.database_url:
            raise ValueError("firebase backend needs firebase.api_key and firebase.database_url")
        accounts = FirebaseAccountService(config.firebase.api_key)
        store = FirebaseCollectionStore(config.firebase.database_url, token_provider=accounts.token)
    elif config.backend == BACKEND_LOCAL:
        accounts = LocalAccountService(db_path=path)
        store = SqliteCollectionStore(db_path=path)
    else:
        raise ValueError(f"Unknown backend: {config.backend}")

    logger.info("Using %s backend", config.backend)
    return TodoSession(
        accounts=accounts,
        store=store,
        preferences=preferences,
        debounce_seconds=config.sync.debounce_seconds,
        reminder_time=reminder_time,
    )
