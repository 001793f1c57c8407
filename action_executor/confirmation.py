from __future__ import annotations

from typing import Iterable

from action_executor.models.intents import Intent, IntentKind

AUTO_EXECUTE = frozenset(
    {
        IntentKind.GET_TASKS,
        IntentKind.GET_NOTES,
        IntentKind.GET_CALENDAR_EVENTS,
        IntentKind.GET_WEATHER,
        IntentKind.GET_NEWS,
        IntentKind.REMEMBER,
        IntentKind.OTHER,
    }
)

CONFIRM_REQUIRED = frozenset(
    {
        IntentKind.CREATE_TASK,
        IntentKind.UPDATE_TASK,
        IntentKind.SEND_EMAIL,
        IntentKind.ADD_CALENDAR_EVENT,
        IntentKind.TIMEBLOCK_DAY,
        IntentKind.CREATE_NOTE,
    }
)

if AUTO_EXECUTE & CONFIRM_REQUIRED or AUTO_EXECUTE | CONFIRM_REQUIRED != set(IntentKind):
    raise RuntimeError("Every intent kind must be classified exactly once for confirmation")


def kind_requires_confirmation(kind: str) -> bool:
    parsed = IntentKind.parse(kind)
    if parsed is None:
        # Unrecognised kinds are shown to the user rather than run silently.
        return True
    return parsed in CONFIRM_REQUIRED


def requires_confirmation(intents: Iterable[Intent]) -> bool:
    """True when any intent in the batch has side effects the user must approve."""
    return any(kind_requires_confirmation(intent.kind) for intent in intents if intent.kind)
