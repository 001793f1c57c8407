from __future__ import annotations

import logging
from typing import Any, Callable, Dict

from action_executor import handlers
from action_executor.errors import UnknownIntentError
from action_executor.handlers.context import HandlerContext
from action_executor.models.intents import ExecutionOutcome, Intent, IntentKind
from action_executor.models.params import parse_parameters
from action_executor.util.canonical import clone_parameters

logger = logging.getLogger("action_executor.dispatcher")

Handler = Callable[[HandlerContext, str, Any], ExecutionOutcome]

HANDLERS: Dict[IntentKind, Handler] = {
    IntentKind.CREATE_TASK: handlers.create_task,
    IntentKind.GET_TASKS: handlers.get_tasks,
    IntentKind.UPDATE_TASK: handlers.update_task,
    IntentKind.SEND_EMAIL: handlers.send_email,
    IntentKind.REMEMBER: handlers.remember,
    IntentKind.GET_WEATHER: handlers.get_weather,
    IntentKind.GET_NEWS: handlers.get_news,
    IntentKind.ADD_CALENDAR_EVENT: handlers.add_calendar_event,
    IntentKind.GET_CALENDAR_EVENTS: handlers.get_calendar_events,
    IntentKind.TIMEBLOCK_DAY: handlers.timeblock_day,
    IntentKind.CREATE_NOTE: handlers.create_note,
    IntentKind.GET_NOTES: handlers.get_notes,
}

# Conversational intents are recorded by the execution flow and never dispatched.
NON_DISPATCHED = frozenset({IntentKind.OTHER})

_unrouted = set(IntentKind) - set(HANDLERS) - NON_DISPATCHED
if _unrouted:
    raise RuntimeError(f"Intent kinds without a handler: {sorted(kind.value for kind in _unrouted)}")


def dispatch(ctx: HandlerContext, user_id: str, intent: Intent) -> ExecutionOutcome:
    """Route one intent to its handler by exact kind.

    Raises ``UnknownIntentError`` for unregistered kinds and ``InvalidRequestError``
    when the parameters do not fit the handler's shape.
    """
    kind = IntentKind.parse(intent.kind)
    if kind is None or kind in NON_DISPATCHED:
        raise UnknownIntentError(intent.kind)
    params = parse_parameters(kind, clone_parameters(intent.parameters))
    logger.debug("intent_dispatch kind=%s user_id=%s", kind.value, user_id)
    return HANDLERS[kind](ctx, user_id, params)
