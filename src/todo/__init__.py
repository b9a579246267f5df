"""CLIとサーバーで共有するTODOモデル・時間帯・ビュー射影"""

from .models import TaskSection, TimeSlot, TodoItem, User, classify, create_todo, toggle
from .timeslots import TimeSlotRegistry

__all__ = [
    "TaskSection",
    "TimeSlot",
    "TimeSlotRegistry",
    "TodoItem",
    "User",
    "classify",
    "create_todo",
    "toggle",
]
