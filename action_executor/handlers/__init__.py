from action_executor.handlers.calendar import add_calendar_event, get_calendar_events, timeblock_day
from action_executor.handlers.context import HandlerContext
from action_executor.handlers.info import get_news, get_weather
from action_executor.handlers.knowledge import remember
from action_executor.handlers.mail import send_email
from action_executor.handlers.notes import create_note, get_notes
from action_executor.handlers.tasks import create_task, get_tasks, update_task

__all__ = [
    "HandlerContext",
    "add_calendar_event",
    "create_note",
    "create_task",
    "get_calendar_events",
    "get_news",
    "get_notes",
    "get_tasks",
    "get_weather",
    "remember",
    "send_email",
    "timeblock_day",
    "update_task",
]
