"""Dependency helpers shared across FastAPI routes."""

from __future__ import annotations

import asyncio
from datetime import date
from functools import lru_cache
from typing import List, Optional

from fastapi import HTTPException

from src.todo.models import TimeSlot, TodoItem, User
from src.todo.projection import DateGroup, DayExpansion, TimetableDay
from src.todolist.config import Config
from src.todolist.factory import build_session
from src.todolist.logger import setup_logger
from src.todolist.session import TodoSession

from .schemas import (
    DateGroupResponse,
    SlotGroupResponse,
    TimeSlotModel,
    TimetableDayResponse,
    TodoResponse,
    UserResponse,
)

config = Config.load()
setup_logger(log_level=config.log_level, log_file=config.log_file)


@lru_cache(maxsize=1)
def get_session() -> TodoSession:
    """Singleton TodoSession, resumed from the stored sign-in when possible."""
    session = build_session(config)
    session.resume()
    return session


@lru_cache(maxsize=1)
def get_day_expansion() -> DayExpansion:
    """Singleton expansion state for the timetable view."""
    return DayExpansion()


async def load_session() -> TodoSession:
    """Return the session singleton, building it off the event loop.

    The first call may refresh a stored sign-in over the network.
    """
    return await asyncio.to_thread(get_session)


def require_user(session: TodoSession) -> User:
    user = session.current_user
    if user is None:
        raise HTTPException(status_code=401, detail="Not signed in")
    return user


def require_loaded(session: TodoSession) -> User:
    """Like require_user, but also refuse edits before the todos have loaded."""
    user = require_user(session)
    if not session.is_loaded:
        raise HTTPException(status_code=503, detail="Todos are not loaded yet")
    return user


def serialize_user(user: User) -> UserResponse:
    return UserResponse(id=user.id, email=user.email, todo_count=len(user.todos))


def serialize_time_slot(slot: TimeSlot) -> TimeSlotModel:
    return TimeSlotModel(
        id=slot.id,
        start_time=slot.start_time,
        end_time=slot.end_time,
        display_name=slot.display_name,
    )


def serialize_todo(item: TodoItem) -> TodoResponse:
    """Convert domain TodoItem to API response."""
    return TodoResponse(
        id=item.id,
        title=item.title,
        is_completed=item.is_completed,
        date=item.date,
        time_slot=serialize_time_slot(item.time_slot) if item.time_slot else None,
    )


def serialize_date_groups(groups: List[DateGroup]) -> List[DateGroupResponse]:
    return [
        DateGroupResponse(date=day, todos=[serialize_todo(item) for item in items])
        for day, items in groups
    ]


def serialize_timetable(
    days: List[TimetableDay], expansion: DayExpansion, today: Optional[date] = None
) -> List[TimetableDayResponse]:
    return [
        TimetableDayResponse(
            date=day.date,
            is_today=day.is_today,
            expanded=expansion.is_expanded(day.date, today),
            slots=[
                SlotGroupResponse(
                    time_slot=serialize_time_slot(group.time_slot),
                    todos=[serialize_todo(item) for item in group.items],
                )
                for group in day.slots
            ],
        )
        for day in days
    ]
