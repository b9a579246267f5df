"""Route registration helpers."""

from .auth import register_auth_routes
from .reminders import register_reminder_routes
from .timeslots import register_timeslot_routes
from .todo import register_todo_routes
from .views import register_view_routes

__all__ = [
    "register_auth_routes",
    "register_reminder_routes",
    "register_timeslot_routes",
    "register_todo_routes",
    "register_view_routes",
]
