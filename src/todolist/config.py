"""
設定管理モジュール

関連クラス:
  - session.TodoSession: この設定で組み立てられるセッション
  - factory.build_session: backend設定に応じてストアとアカウントを選択
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

BACKEND_LOCAL = "local"
BACKEND_FIREBASE = "firebase"


@dataclass
class FirebaseConfig:
    """Firebase REST設定"""

    api_key: str = ""
    database_url: str = ""


@dataclass
class SyncConfig:
    """同期設定"""

    debounce_seconds: float = 0.5  # 連続編集をまとめる待機時間


@dataclass
class NotificationConfig:
    """リマインダー設定（日付のみのTODOの通知時刻）"""

    default_hour: int = 9
    default_minute: int = 0


@dataclass
class Config:
    """アプリケーション設定クラス"""

    # local | firebase
    backend: str = BACKEND_LOCAL

    firebase: FirebaseConfig = None  # type: ignore
    sync: SyncConfig = None  # type: ignore
    notifications: NotificationConfig = None  # type: ignore

    # ローカル保存先（ローカルバックエンドと設定値の保存に使用）
    db_path: Optional[str] = None

    # ログ設定
    log_level: str = "INFO"
    log_file: str = "logs/todolist.log"

    def __post_init__(self):
        """デフォルト値の初期化"""
        if self.firebase is None:
            self.firebase = FirebaseConfig()
        if self.sync is None:
            self.sync = SyncConfig()
        if self.notifications is None:
            self.notifications = NotificationConfig()

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "Config":
        """YAMLファイルから設定を読み込む

        Args:
            config_path: 設定ファイルパス（省略時はconfig/app_config.yamlを使用）

        Returns:
            Config: 設定インスタンス（ファイルが無い場合はデフォルト値）
        """
        if config_path is None:
            project_root = Path(__file__).parent.parent.parent
            config_path = project_root / "config" / "app_config.yaml"

        config_path = Path(config_path)
        if not config_path.exists():
            return cls()

        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data: Dict[str, Any] = yaml.safe_load(f) or {}

        firebase_data = yaml_data.get("firebase", {}) or {}
        sync_data = yaml_data.get("sync", {}) or {}
        notification_data = yaml_data.get("notifications", {}) or {}
        storage_data = yaml_data.get("storage", {}) or {}
        log_data = yaml_data.get("log", {}) or {}

        return cls(
            backend=yaml_data.get("backend", BACKEND_LOCAL),
            firebase=FirebaseConfig(
                api_key=firebase_data.get("api_key", ""),
                database_url=firebase_data.get("database_url", ""),
            ),
            sync=SyncConfig(
                debounce_seconds=float(sync_data.get("debounce_seconds", 0.5)),
            ),
            notifications=NotificationConfig(
                default_hour=int(notification_data.get("default_hour", 9)),
                default_minute=int(notification_data.get("default_minute", 0)),
            ),
            db_path=storage_data.get("db_path"),
            log_level=log_data.get("level", "INFO"),
            log_file=log_data.get("file", "logs/todolist.log"),
        )

    @classmethod
    def from_env(cls, base: Optional["Config"] = None) -> "Config":
        """環境変数で設定を上書きする

        Args:
            base: 上書き元の設定（省略時はデフォルト値）

        Returns:
            Config: 設定されている環境変数だけを反映した新しいインスタンス
        """
        config = base if base is not None else cls()
        return cls(
            backend=os.getenv("TODOLIST_BACKEND", config.backend),
            firebase=FirebaseConfig(
                api_key=os.getenv("FIREBASE_API_KEY", config.firebase.api_key),
                database_url=os.getenv("FIREBASE_DATABASE_URL", config.firebase.database_url),
            ),
            sync=SyncConfig(
                debounce_seconds=float(
                    os.getenv("TODOLIST_DEBOUNCE_SECONDS", config.sync.debounce_seconds)
                ),
            ),
            notifications=config.notifications,
            # TODOLIST_DB_PATHはfactory.resolve_db_pathで優先される
            db_path=config.db_path,
            log_level=os.getenv("LOG_LEVEL", config.log_level),
            log_file=os.getenv("LOG_FILE", config.log_file),
        )

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """YAMLファイルを読み込み、環境変数で上書きした設定を返す"""
        return cls.from_env(cls.from_yaml(config_path))
