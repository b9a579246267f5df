#!/usr/bin/env python3
"""
TODOリスト管理CLI

Usage:
    python -m src.todo signup --email EMAIL --password PASSWORD
    python -m src.todo login --email EMAIL --password PASSWORD [--remember]
    python -m src.todo logout
    python -m src.todo whoami
    python -m src.todo list [--view all|simple|calendar|time] [--format json|text]
    python -m src.todo add --title "タイトル" [--date YYYY-MM-DD] [--slot-id ID]
    python -m src.todo complete --id ID [--undo]
    python -m src.todo delete --id ID
    python -m src.todo get --id ID
    python -m src.todo timetable [--today YYYY-MM-DD]
    python -m src.todo slots list|add|remove ...
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.sync.accounts import AccountError
from src.todolist.config import Config
from src.todolist.factory import build_session
from src.todolist.session import TodoSession

from .models import TimeSlot, TodoItem
from .projection import TimetableDay
from .records import time_slot_to_record, todo_to_record

OUTPUT_FORMATS = ["json", "text"]
VIEWS = ["all", "simple", "calendar", "time"]


def format_todo_text(todo: TodoItem) -> str:
    """Todoアイテムをテキスト形式で整形"""
    mark = "x" if todo.is_completed else " "
    when = todo.date.isoformat() if todo.date else "日付なし"
    slot = (
        f" | {todo.time_slot.display_name} {todo.time_slot.start_time}-{todo.time_slot.end_time}"
        if todo.time_slot
        else ""
    )
    return f"[{mark}] {todo.id} | {when}{slot} | {todo.title}"


def format_slot_text(slot: TimeSlot) -> str:
    return f"{slot.id} | {slot.display_name} | {slot.start_time}-{slot.end_time}"


def format_timetable_json(days: List[TimetableDay]) -> List[Dict[str, Any]]:
    return [
        {
            "date": day.date.isoformat(),
            "is_today": day.is_today,
            "slots": [
                {
                    "timeSlot": time_slot_to_record(group.time_slot),
                    "todos": [todo_to_record(item) for item in group.items],
                }
                for group in day.slots
            ],
        }
        for day in days
    ]


def _print(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False))


def _parse_date(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"日付はYYYY-MM-DD形式で指定してください: {value}") from exc


def _require_user(session: TodoSession) -> bool:
    if session.current_user is None:
        print("Error: ログインしていません。先に login を実行してください。", file=sys.stderr)
        return False
    if not session.is_loaded:
        print("Error: TODOを読み込めませんでした。接続を確認してください。", file=sys.stderr)
        return False
    return True


def cmd_signup(session: TodoSession, email: str, password: str, output_format: str) -> int:
    """アカウントを作成してログイン"""
    try:
        user = session.sign_up(email, password)
    except AccountError as exc:
        print(f"Error: アカウント作成に失敗しました: {exc}", file=sys.stderr)
        return 1
    if output_format == "json":
        _print({"id": user.id, "email": user.email})
    else:
        print(f"登録しました: {user.email}")
    return 0


def cmd_login(
    session: TodoSession,
    email: Optional[str],
    password: str,
    remember: bool,
    output_format: str,
) -> int:
    """ログイン（--email省略時は記憶済みのメールアドレスを使用）"""
    email = email or session.remembered_email()
    if not email:
        print("Error: メールアドレスを指定してください。", file=sys.stderr)
        return 1
    try:
        user = session.sign_in(email, password, remember=remember)
    except AccountError as exc:
        print(f"Error: ログインに失敗しました: {exc}", file=sys.stderr)
        return 1
    if output_format == "json":
        _print({"id": user.id, "email": user.email, "todos": len(user.todos)})
    else:
        print(f"ログインしました: {user.email}（TODO {len(user.todos)}件）")
    return 0


def cmd_logout(session: TodoSession) -> int:
    """ログアウト"""
    session.logout()
    print("ログアウトしました。")
    return 0


def cmd_whoami(session: TodoSession, output_format: str) -> int:
    """現在のユーザーを表示"""
    if not _require_user(session):
        return 1
    user = session.current_user
    if output_format == "json":
        _print({"id": user.id, "email": user.email})
    else:
        print(f"{user.email} ({user.id})")
    return 0


def cmd_list(session: TodoSession, view: str, output_format: str) -> int:
    """TODOリストを表示"""
    if not _require_user(session):
        return 1
    items = sorted(session.view(view), key=lambda item: item.id)
    if output_format == "json":
        _print([todo_to_record(item) for item in items])
    elif not items:
        print("TODOは登録されていません。")
    else:
        for item in items:
            print(format_todo_text(item))
    return 0


def cmd_add(
    session: TodoSession,
    title: str,
    todo_date: Optional[date],
    slot_id: Optional[int],
    output_format: str,
) -> int:
    """新しいTODOを追加"""
    if not _require_user(session):
        return 1
    if not title.strip():
        print("Error: タイトルは必須です。", file=sys.stderr)
        return 1
    created = session.add_todo(title, todo_date=todo_date, slot_id=slot_id)
    if created is None:
        print(f"Error: 時間帯 {slot_id} が見つかりません。", file=sys.stderr)
        return 1
    if output_format == "json":
        _print(todo_to_record(created))
    else:
        print(f"追加しました: {format_todo_text(created)}")
    return 0


def cmd_complete(session: TodoSession, todo_id: int, undo: bool, output_format: str) -> int:
    """TODOを完了（--undoで未完了に戻す）"""
    if not _require_user(session):
        return 1
    updated = session.set_completed(todo_id, not undo)
    if updated is None:
        print(f"Error: ID {todo_id} のTODOが見つかりません。", file=sys.stderr)
        return 1
    if output_format == "json":
        _print(todo_to_record(updated))
    else:
        print(f"更新しました: {format_todo_text(updated)}")
    return 0


def cmd_delete(session: TodoSession, todo_id: int, output_format: str) -> int:
    """TODOを削除"""
    if not _require_user(session):
        return 1
    if not session.delete_todo(todo_id):
        print(f"Error: ID {todo_id} のTODOが見つかりません。", file=sys.stderr)
        return 1
    if output_format == "json":
        _print({"deleted": True, "id": todo_id})
    else:
        print(f"削除しました: ID {todo_id}")
    return 0


def cmd_get(session: TodoSession, todo_id: int, output_format: str) -> int:
    """特定のTODOを取得"""
    if not _require_user(session):
        return 1
    todo = session.get_todo(todo_id)
    if todo is None:
        print(f"Error: ID {todo_id} のTODOが見つかりません。", file=sys.stderr)
        return 1
    if output_format == "json":
        _print(todo_to_record(todo))
    else:
        print(format_todo_text(todo))
    return 0


def cmd_timetable(session: TodoSession, today: Optional[date], output_format: str) -> int:
    """日付・時間帯ごとのTODOを表示"""
    if not _require_user(session):
        return 1
    days = session.timetable(today=today)
    if output_format == "json":
        _print(format_timetable_json(days))
        return 0
    if not days:
        print("時間帯付きのTODOはありません。")
    for day in days:
        label = "今日" if day.is_today else day.date.isoformat()
        print(f"== {label}")
        for group in day.slots:
            print(f"  {group.time_slot.display_name} ({group.time_slot.start_time}-{group.time_slot.end_time})")
            for item in group.items:
                print(f"    {format_todo_text(item)}")
    return 0


def cmd_slots(session: TodoSession, args: argparse.Namespace) -> int:
    """時間帯の一覧・追加・削除"""
    if not _require_user(session):
        return 1
    if args.slots_command == "list":
        slots = session.time_slots()
        if args.format == "json":
            _print([time_slot_to_record(slot) for slot in slots])
        elif not slots:
            print("時間帯は登録されていません。")
        else:
            for slot in slots:
                print(format_slot_text(slot))
        return 0
    if args.slots_command == "add":
        slot = session.add_time_slot(args.start, args.end, args.name)
        if args.format == "json":
            _print(time_slot_to_record(slot))
        else:
            print(f"追加しました: {format_slot_text(slot)}")
        return 0
    if args.slots_command == "remove":
        if not session.remove_time_slot(args.id):
            print(f"Error: ID {args.id} の時間帯が見つかりません。", file=sys.stderr)
            return 1
        if args.format == "json":
            _print({"deleted": True, "id": args.id})
        else:
            print(f"削除しました: 時間帯 {args.id}")
        return 0
    print(f"Error: 不明なコマンド: {args.slots_command}", file=sys.stderr)
    return 1


def _add_format(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        default="text",
        help="出力フォーマット（デフォルト: text）",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="TODOリスト管理CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db-path", type=str, help="SQLiteデータベースファイルのパス")
    parser.add_argument("--config", type=str, help="設定ファイルのパス（デフォルト: config/app_config.yaml）")

    subparsers = parser.add_subparsers(dest="command", help="実行するコマンド", required=True)

    parser_signup = subparsers.add_parser("signup", help="アカウントを作成")
    parser_signup.add_argument("--email", required=True)
    parser_signup.add_argument("--password", required=True)
    _add_format(parser_signup)

    parser_login = subparsers.add_parser("login", help="ログイン")
    parser_login.add_argument("--email", help="省略時は記憶済みのメールアドレス")
    parser_login.add_argument("--password", required=True)
    parser_login.add_argument("--remember", action="store_true", help="メールアドレスを記憶")
    _add_format(parser_login)

    subparsers.add_parser("logout", help="ログアウト")

    parser_whoami = subparsers.add_parser("whoami", help="現在のユーザーを表示")
    _add_format(parser_whoami)

    parser_list = subparsers.add_parser("list", help="TODOリストを表示")
    parser_list.add_argument("--view", choices=VIEWS, default="all", help="表示区分（デフォルト: all）")
    _add_format(parser_list)

    parser_add = subparsers.add_parser("add", help="新しいTODOを追加")
    parser_add.add_argument("--title", required=True, help="TODOのタイトル")
    parser_add.add_argument("--date", type=_parse_date, help="日付（YYYY-MM-DD形式）")
    parser_add.add_argument("--slot-id", type=int, help="時間帯ID")
    _add_format(parser_add)

    parser_complete = subparsers.add_parser("complete", help="TODOを完了状態にする")
    parser_complete.add_argument("--id", type=int, required=True, help="TODOのID")
    parser_complete.add_argument("--undo", action="store_true", help="未完了に戻す")
    _add_format(parser_complete)

    parser_delete = subparsers.add_parser("delete", help="TODOを削除")
    parser_delete.add_argument("--id", type=int, required=True, help="削除するTODOのID")
    _add_format(parser_delete)

    parser_get = subparsers.add_parser("get", help="特定のTODOを取得")
    parser_get.add_argument("--id", type=int, required=True, help="取得するTODOのID")
    _add_format(parser_get)

    parser_timetable = subparsers.add_parser("timetable", help="時間割表示")
    parser_timetable.add_argument("--today", type=_parse_date, help="今日として扱う日付")
    _add_format(parser_timetable)

    parser_slots = subparsers.add_parser("slots", help="時間帯の管理")
    slots_sub = parser_slots.add_subparsers(dest="slots_command", required=True)
    slots_list = slots_sub.add_parser("list", help="時間帯一覧")
    _add_format(slots_list)
    slots_add = slots_sub.add_parser("add", help="時間帯を追加")
    slots_add.add_argument("--start", required=True, help="開始時刻（HH:MM）")
    slots_add.add_argument("--end", required=True, help="終了時刻（HH:MM）")
    slots_add.add_argument("--name", required=True, help="表示名")
    _add_format(slots_add)
    slots_remove = slots_sub.add_parser("remove", help="時間帯を削除")
    slots_remove.add_argument("--id", type=int, required=True)
    _add_format(slots_remove)

    return parser


def run(args: argparse.Namespace, session: TodoSession) -> int:
    if args.command == "signup":
        return cmd_signup(session, args.email, args.password, args.format)
    elif args.command == "login":
        return cmd_login(session, args.email, args.password, args.remember, args.format)
    elif args.command == "logout":
        return cmd_logout(session)

    # 以降のコマンドは保存済みセッションから再開
    session.resume()
    if args.command == "whoami":
        return cmd_whoami(session, args.format)
    elif args.command == "list":
        return cmd_list(session, args.view, args.format)
    elif args.command == "add":
        return cmd_add(session, args.title, args.date, args.slot_id, args.format)
    elif args.command == "complete":
        return cmd_complete(session, args.id, args.undo, args.format)
    elif args.command == "delete":
        return cmd_delete(session, args.id, args.format)
    elif args.command == "get":
        return cmd_get(session, args.id, args.format)
    elif args.command == "timetable":
        return cmd_timetable(session, args.today, args.format)
    elif args.command == "slots":
        return cmd_slots(session, args)
    else:
        print(f"Error: 不明なコマンド: {args.command}", file=sys.stderr)
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """CLIエントリポイント"""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = Config.load(Path(args.config) if args.config else None)
    session = build_session(config, db_path=Path(args.db_path) if args.db_path else None)
    try:
        return run(args, session)
    finally:
        # 保留中の書き込みをプロセス終了前に反映
        if session.current_user is not None:
            session.close()


if __name__ == "__main__":
    sys.exit(main())
