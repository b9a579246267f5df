"""
Firebase RESTバックエンド

  - FirebaseAccountService: Identity Toolkitによるアカウント管理
  - FirebaseCollectionStore: Realtime Databaseへの保存とストリーミング購読
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from .accounts import Account, AccountError
from .store import SnapshotCallback, StoreError

logger = logging.getLogger(__name__)

IDENTITY_URL = "https://identitytoolkit.googleapis.com/v1"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"

# Identity Toolkitのエラーコード → ログイン画面にそのまま出せるメッセージ
_AUTH_MESSAGES = {
    "EMAIL_EXISTS": "An account with this email already exists",
    "EMAIL_NOT_FOUND": "Invalid email or password",
    "INVALID_PASSWORD": "Invalid email or password",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password",
    "INVALID_EMAIL": "The email address is badly formatted",
    "USER_DISABLED": "This account has been disabled",
}


def _auth_error_message(response: requests.Response) -> str:
    try:
        code = response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return "Authentication failed"
    code = code.split(":")[0].strip()
    if code.startswith("WEAK_PASSWORD"):
        return "Password should be at least 6 characters"
    return _AUTH_MESSAGES.get(code, "Authentication failed")


class FirebaseAccountService:
    """Identity Toolkit REST APIによるメール/パスワード認証

    IDトークンは約1時間で失効するため、期限が近づいたら
    リフレッシュトークンで自動的に更新する。
    """

    def __init__(self, api_key: str, timeout: float = 10.0, refresh_margin: float = 60.0):
        """
        初期化

        Args:
            api_key: FirebaseプロジェクトのWeb APIキー
            timeout: HTTPタイムアウト（秒）
            refresh_margin: 失効の何秒前にIDトークンを更新するか
        """
        self.api_key = api_key
        self.timeout = timeout
        self.refresh_margin = refresh_margin
        self.id_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        # time.monotonic()基準の失効時刻（不明ならNone）
        self.expires_at: Optional[float] = None
        self.current: Optional[Account] = None
        self._token_lock = threading.Lock()

    def _post(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = requests.post(
                url,
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            logger.error("Auth request failed: %s", exc)
            raise AccountError("Could not reach the account service") from exc
        if response.status_code != 200:
            message = _auth_error_message(response)
            logger.error("Auth request rejected (%s): %s", response.status_code, message)
            raise AccountError(message)
        return response.json()

    def _store_tokens(
        self, id_token: Optional[str], refresh_token: Optional[str], expires_in: Any
    ) -> None:
        self.id_token = id_token
        if refresh_token:
            self.refresh_token = refresh_token
        try:
            self.expires_at = time.monotonic() + float(expires_in)
        except (TypeError, ValueError):
            self.expires_at = None

    def _remember(self, data: Dict[str, Any]) -> Account:
        self._store_tokens(data.get("idToken"), data.get("refreshToken"), data.get("expiresIn"))
        self.current = Account(
            id=data["localId"],
            email=data.get("email", ""),
            session_token=data.get("refreshToken"),
        )
        return self.current

    def sign_up(self, email: str, password: str) -> Account:
        data = self._post(
            f"{IDENTITY_URL}/accounts:signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return self._remember(data)

    def sign_in(self, email: str, password: str) -> Account:
        data = self._post(
            f"{IDENTITY_URL}/accounts:signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return self._remember(data)

    def _refresh(self, refresh_token: str) -> Optional[Dict[str, Any]]:
        """securetokenエンドポイントでIDトークンを再発行する（失敗時はNone）"""
        try:
            response = requests.post(
                SECURE_TOKEN_URL,
                params={"key": self.api_key},
                data={"grant_type": "refresh_token", "refresh_token": refresh_token},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as exc:
            logger.error("Failed to refresh session: %s", exc)
            return None
        self._store_tokens(
            data.get("id_token"),
            data.get("refresh_token", refresh_token),
            data.get("expires_in"),
        )
        return data

    def resume(self, session_token: str) -> Optional[Account]:
        data = self._refresh(session_token)
        if data is None:
            return None
        # リフレッシュAPIはメールアドレスを返さない
        self.current = Account(
            id=data["user_id"],
            email="",
            session_token=self.refresh_token,
        )
        return self.current

    def sign_out(self) -> None:
        self.id_token = None
        self.refresh_token = None
        self.expires_at = None
        self.current = None

    def token(self) -> Optional[str]:
        """有効なIDトークンを返す（失効間近なら先に更新する）"""
        with self._token_lock:
            if (
                self.id_token is not None
                and self.refresh_token
                and self.expires_at is not None
                and time.monotonic() >= self.expires_at - self.refresh_margin
            ):
                logger.info("ID token is about to expire; refreshing")
                self._refresh(self.refresh_token)
            return self.id_token


def parse_sse_events(lines: List[str]) -> List[Tuple[str, str]]:
    """Server-Sent Eventsの行を ``(event, data)`` の組に分解する"""
    events = []
    event_name: Optional[str] = None
    data_lines: List[str] = []
    for line in lines:
        if not line:
            if event_name is not None:
                events.append((event_name, "\n".join(data_lines)))
            event_name = None
            data_lines = []
        elif line.startswith("event:"):
            event_name = line[len("event:"):].strip()
        elif line.startswith("data:"):
            data_lines.append(line[len("data:"):].strip())
    if event_name is not None:
        events.append((event_name, "\n".join(data_lines)))
    return events


class _Subscription:
    def __init__(self, path: str, callback: SnapshotCallback):
        self.path = path
        self.callback = callback
        self.stop = threading.Event()
        self.response: Optional[requests.Response] = None
        self.thread: Optional[threading.Thread] = None


class FirebaseCollectionStore:
    """REST経由のRealtime Database

    ``subscribe`` はデーモンスレッドでストリーミングエンドポイントを開き、
    ``put``/``patch`` イベントのたびにドキュメント全体を読み直す。
    コールバックには常に完全なスナップショットが渡る。
    """

    def __init__(
        self,
        database_url: str,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        timeout: float = 10.0,
    ):
        self.database_url = database_url.rstrip("/")
        self.token_provider = token_provider
        self.timeout = timeout
        self._lock = threading.Lock()
        self._subscriptions: List[_Subscription] = []
        self.logger = logging.getLogger(__name__)

    def _url(self, path: str) -> str:
        return f"{self.database_url}/{path.strip('/')}.json"

    def _params(self) -> Dict[str, str]:
        token = self.token_provider() if self.token_provider else None
        return {"auth": token} if token else {}

    def write(self, path: str, value: Any) -> None:
        try:
            response = requests.put(
                self._url(path), params=self._params(), json=value, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as exc:
            raise StoreError(f"Failed to write {path}: {exc}") from exc

    def read_once(self, path: str) -> Any:
        try:
            response = requests.get(self._url(path), params=self._params(), timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.exceptions.RequestException, ValueError) as exc:
            raise StoreError(f"Failed to read {path}: {exc}") from exc

    def subscribe(self, path: str, callback: SnapshotCallback) -> None:
        subscription = _Subscription(path, callback)
        subscription.thread = threading.Thread(
            target=self._stream, args=(subscription,), daemon=True
        )
        with self._lock:
            self._subscriptions.append(subscription)
        subscription.thread.start()
        self.logger.info("Streaming listener attached to %s", path)

    def unsubscribe(self, path: str, callback: SnapshotCallback) -> None:
        with self._lock:
            matches = [s for s in self._subscriptions if s.path == path and s.callback == callback]
            self._subscriptions = [s for s in self._subscriptions if s not in matches]
        for subscription in matches:
            subscription.stop.set()
            if subscription.response is not None:
                subscription.response.close()
            self.logger.info("Streaming listener detached from %s", path)

    def listener_count(self, path: str) -> int:
        with self._lock:
            return sum(1 for s in self._subscriptions if s.path == path)

    def _stream(self, subscription: _Subscription) -> None:
        try:
            response = requests.get(
                self._url(subscription.path),
                params=self._params(),
                headers={"Accept": "text/event-stream"},
                stream=True,
                timeout=(self.timeout, None),
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as exc:
            self.logger.error("Could not open stream for %s: %s", subscription.path, exc)
            return

        subscription.response = response
        if subscription.stop.is_set():
            # 接続中にunsubscribeされた
            response.close()
            return
        buffered: List[str] = []
        try:
            for line in response.iter_lines(decode_unicode=True):
                if subscription.stop.is_set():
                    break
                if line:
                    buffered.append(line)
                    continue
                for event, data in parse_sse_events(buffered + [""]):
                    self._handle_event(subscription, event, data)
                buffered = []
        except requests.exceptions.RequestException as exc:
            if not subscription.stop.is_set():
                self.logger.error("Stream for %s failed: %s", subscription.path, exc)
        finally:
            response.close()

    def _handle_event(self, subscription: _Subscription, event: str, data: str) -> None:
        if event == "keep-alive":
            return
        if event in ("cancel", "auth_revoked"):
            self.logger.error("Stream for %s ended by server: %s", subscription.path, event)
            subscription.stop.set()
            return
        if event not in ("put", "patch"):
            return
        if subscription.stop.is_set():
            return
        try:
            value = self.read_once(subscription.path)
        except StoreError as exc:
            self.logger.error("Failed to refresh %s after %s: %s", subscription.path, event, exc)
            return
        try:
            subscription.callback(value)
        except Exception:
            self.logger.exception("Snapshot listener on %s failed", subscription.path)

