"""Reminder endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI

from ..dependencies import load_session
from ..schemas import ReminderResponse, RemindersResponse


def register_reminder_routes(app: FastAPI) -> None:
    """Register reminder polling endpoints."""

    @app.get("/api/reminders/pending", response_model=RemindersResponse)
    async def pending_reminders(now_ms: Optional[int] = None) -> RemindersResponse:
        """Return reminders that are due (removes them from the queue)."""
        session = await load_session()
        pop_due = getattr(session.notifier, "pop_due", None)
        due = pop_due(now_ms) if pop_due is not None else []
        return RemindersResponse(
            reminders=[
                ReminderResponse(todo_id=r.todo_id, title=r.title, fire_at_ms=r.fire_at_ms)
                for r in due
            ]
        )
