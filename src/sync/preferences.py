from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

from .store import resolve_db_path

FIRST_LAUNCH = "firstLaunch"
REMEMBERED_EMAIL = "rememberedEmail"
SESSION_TOKEN = "sessionToken"


class PreferenceStore:
    """SQLiteに保存する文字列/真偽値のキーバリューストア"""


    def __init__(self, db_path: Optional[Path] = None):
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
                CREATE TABLE IF NOT EXISTS preferences (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.commit()

    def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM preferences WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else default

    def set_str(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO preferences (key, value) VALUES (?, ?)",
                (key, value),
            )
            conn.commit()

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get_str(key)
        if value is None:
            return default
        return value == "1"

    def set_bool(self, key: str, value: bool) -> None:
        self.set_str(key, "1" if value else "0")

    def remove(self, *keys: str) -> None:
        with self._connect() as conn:
            conn.executemany("DELETE FROM preferences WHERE key = ?", [(key,) for key in keys])
            conn.commit()
