"""アカウントサービス: サインアップ・サインイン・セッション復元"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from .store import resolve_db_path

logger = logging.getLogger(__name__)

_PBKDF2_ROUNDS = 200_000


class AccountError(Exception):
    """サインアップ/サインインの失敗（``str(exc)`` はそのままユーザーに表示できる）"""


@dataclass(frozen=True)
class Account:
    id: str
    email: str
    # 別プロセスからこのサインインを復元するための不透明な値
    session_token: Optional[str] = None


class AccountService(Protocol):
    def sign_up(self, email: str, password: str) -> Account: ...

    def sign_in(self, email: str, password: str) -> Account: ...

    def resume(self, session_token: str) -> Optional[Account]: ...

    def sign_out(self) -> None: ...


def _hash_password(password: str, salt: bytes) -> str:
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _PBKDF2_ROUNDS)
    return digest.hex()


class LocalAccountService:
    """ローカルのSQLiteファイルで管理するアカウント

    メールアドレスは ``@`` を含み未登録であること、パスワードは空白以外を含むこと。
    パスワードはソルト付きPBKDF2ハッシュで保存する。
    """


    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = resolve_db_path(db_path)
        self._initialize()
        self.current: Optional[Account] = None

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS accounts (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    salt TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.commit()

    def sign_up(self, email: str, password: str) -> Account:
        email = email.strip()
        if not email or "@" not in email or not password.strip():
            raise AccountError("A valid email and a non-empty password are required")

        salt = secrets.token_bytes(16)
        account_id = str(uuid.uuid4())
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO accounts (id, email, password_hash, salt, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        account_id,
                        email,
                        _hash_password(password, salt),
                        salt.hex(),
                        datetime.now(timezone.utc).isoformat(),
                    ),
                )
                conn.commit()
        except sqlite3.IntegrityError as exc:
            raise AccountError("An account with this email already exists") from exc

        self.current = Account(id=account_id, email=email, session_token=account_id)
        logger.info("Local account created: %s", account_id)
        return self.current

    def sign_in(self, email: str, password: str) -> Account:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM accounts WHERE email = ?", (email.strip(),)
            ).fetchone()
        if row is None:
            raise AccountError("Invalid email or password")
        expected = _hash_password(password, bytes.fromhex(row["salt"]))
        if not hmac.compare_digest(expected, row["password_hash"]):
            raise AccountError("Invalid email or password")

        self.current = Account(id=row["id"], email=row["email"], session_token=row["id"])
        return self.current

    def resume(self, session_token: str) -> Optional[Account]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM accounts WHERE id = ?", (session_token,)).fetchone()
        if row is None:
            return None
        self.current = Account(id=row["id"], email=row["email"], session_token=row["id"])
        return self.current

    def sign_out(self) -> None:
        self.current = None
