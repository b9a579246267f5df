"""Grouped view endpoints: flat, calendar and timetable."""

from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import FastAPI

from ..dependencies import (
    get_day_expansion,
    load_session,
    require_user,
    serialize_date_groups,
    serialize_timetable,
)
from ..schemas import DateGroupResponse, TimetableDayResponse


def register_view_routes(app: FastAPI) -> None:
    """Register projection endpoints."""

    @app.get("/api/views/simple", response_model=List[DateGroupResponse])
    async def simple_view() -> List[DateGroupResponse]:
        """All todos grouped by date, undated ones included."""
        session = await load_session()
        require_user(session)
        return serialize_date_groups(session.date_groups())

    @app.get("/api/views/calendar", response_model=List[DateGroupResponse])
    async def calendar_view() -> List[DateGroupResponse]:
        """Dated todos grouped by date in ascending order."""
        session = await load_session()
        require_user(session)
        return serialize_date_groups(session.calendar_groups())

    @app.get("/api/views/timetable", response_model=List[TimetableDayResponse])
    async def timetable_view(today: Optional[date] = None) -> List[TimetableDayResponse]:
        """Todos with a date and a time slot, grouped by day then slot."""
        session = await load_session()
        require_user(session)
        days = session.timetable(today=today)
        return serialize_timetable(days, get_day_expansion(), today)

    @app.post("/api/views/timetable/{day}/toggle")
    async def toggle_day(day: date, today: Optional[date] = None) -> dict:
        """Expand or collapse one timetable day. Today always stays expanded."""
        require_user(await load_session())
        expanded = get_day_expansion().toggle(day, today)
        return {"date": day.isoformat(), "expanded": expanded}
