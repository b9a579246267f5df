"""Pydantic schemas for the FastAPI server."""

from __future__ import annotations

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: str


class CredentialsRequest(BaseModel):
    """Email/password pair for sign-up and login."""

    email: str = Field(..., min_length=1, max_length=320)
    password: str = Field(..., min_length=1)
    remember: bool = Field(default=False, description="Remember the email for the next login")


class UserResponse(BaseModel):
    """The signed-in account."""

    id: str
    email: str
    todo_count: int = 0


class TimeSlotModel(BaseModel):
    """Serialized time slot, using the shared record field names."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    start_time: str = Field(..., alias="startTime")
    end_time: str = Field(..., alias="endTime")
    display_name: str = Field(..., alias="displayName")


class TimeSlotCreateRequest(BaseModel):
    """Request body for adding a time slot."""

    model_config = ConfigDict(populate_by_name=True)

    start_time: str = Field(..., alias="startTime", pattern=r"^\d{1,2}:\d{2}$")
    end_time: str = Field(..., alias="endTime", pattern=r"^\d{1,2}:\d{2}$")
    display_name: str = Field(..., alias="displayName", min_length=1, max_length=100)


class TodoResponse(BaseModel):
    """Serialized todo item."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    title: str
    is_completed: bool = Field(..., alias="isCompleted")
    date: Optional[dt.date] = None
    time_slot: Optional[TimeSlotModel] = Field(default=None, alias="timeSlot")


class TodoCreateRequest(BaseModel):
    """Request body for creating a todo."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., max_length=200)
    date: Optional[dt.date] = Field(default=None, description="ISO date (YYYY-MM-DD)")
    time_slot_id: Optional[int] = Field(default=None, alias="timeSlotId")


class TodoUpdateRequest(BaseModel):
    """Request body for updating a todo; only completion can change."""

    model_config = ConfigDict(populate_by_name=True)

    is_completed: bool = Field(..., alias="isCompleted")


class DateGroupResponse(BaseModel):
    """Todos sharing one date (``None`` for undated todos)."""

    date: Optional[dt.date] = None
    todos: List[TodoResponse]


class SlotGroupResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    time_slot: TimeSlotModel = Field(..., alias="timeSlot")
    todos: List[TodoResponse]


class TimetableDayResponse(BaseModel):
    """One timetable day and its time slot groups."""

    date: dt.date
    is_today: bool
    expanded: bool
    slots: List[SlotGroupResponse]


class ReminderResponse(BaseModel):
    todo_id: int
    title: str
    fire_at_ms: int


class RemindersResponse(BaseModel):
    reminders: List[ReminderResponse]
