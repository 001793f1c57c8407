"""Turn on-screen responses into text that reads naturally when spoken."""

from __future__ import annotations

import re
from datetime import date

from action_executor.models.intents import ExecutionOutcome, IntentKind

_MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
_SMALL_NUMBERS = [
    "zero", "one", "two", "three", "four", "five", "six", "seven", "eight", "nine", "ten",
    "eleven", "twelve", "thirteen", "fourteen", "fifteen", "sixteen", "seventeen",
    "eighteen", "nineteen", "twenty",
]

_TIME_RANGE = re.compile(
    r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)\s*-\s*(\d{1,2})(?::(\d{2}))?\s*(am|pm)", re.IGNORECASE
)
_TIME_WITH_MINUTES = re.compile(r"\b(\d{1,2}):(\d{2})\s*(am|pm)\b", re.IGNORECASE)
_TIME_HOUR = re.compile(r"\b(\d{1,2})\s*(am|pm)\b", re.IGNORECASE)
_ISO_DATE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
_SLASH_DATE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4})\b")
_COUNTED_NOUN = re.compile(r"\b(\d+)\s+(tasks?|events?|items?|blocks?|notes?|actions?)\b", re.IGNORECASE)


def number_to_words(value: int) -> str:
    if 0 <= value < len(_SMALL_NUMBERS):
        return _SMALL_NUMBERS[value]
    return str(value)


def _spoken_date(year: int, month: int, day: int) -> str | None:
    try:
        date(year, month, day)
    except ValueError:
        return None
    return f"{_MONTHS[month - 1]} {day}, {year}"


def _time_range(match: re.Match) -> str:
    h1, m1, p1, h2, m2, p2 = match.groups()
    first = f"{h1} {m1}" if m1 else h1
    second = f"{h2} {m2}" if m2 else h2
    p1, p2 = p1.upper(), p2.upper()
    if p1 == p2:
        return f"{first} to {second} {p2}"
    return f"{first} {p1} to {second} {p2}"


def format_for_tts(text: str) -> str:
    formatted = _TIME_RANGE.sub(_time_range, text)
    formatted = _TIME_WITH_MINUTES.sub(lambda m: f"{m.group(1)} {m.group(2)} {m.group(3).upper()}", formatted)
    formatted = _TIME_HOUR.sub(lambda m: f"{m.group(1)} {m.group(2).upper()}", formatted)
    formatted = _ISO_DATE.sub(
        lambda m: _spoken_date(int(m.group(1)), int(m.group(2)), int(m.group(3))) or m.group(0), formatted
    )
    formatted = _SLASH_DATE.sub(
        lambda m: _spoken_date(int(m.group(3)), int(m.group(2)), int(m.group(1))) or m.group(0), formatted
    )
    formatted = _COUNTED_NOUN.sub(lambda m: f"{number_to_words(int(m.group(1)))} {m.group(2)}", formatted)
    formatted = re.sub(r"(-?\d+(?:\.\d+)?)\s?°C", r"\1 degrees celsius", formatted)
    formatted = re.sub(r"(-?\d+(?:\.\d+)?)\s?°F", r"\1 degrees fahrenheit", formatted)
    formatted = re.sub(r"(\d+)%", r"\1 percent", formatted)
    formatted = re.sub(r"\n{3,}", ".\n\n", formatted)
    formatted = formatted.replace("\n\n", ". ").replace("\n", ", ")
    formatted = re.sub(r"\s{2,}", " ", formatted)
    return formatted.strip()


def spoken_summary(kind: IntentKind, outcome: ExecutionOutcome) -> str:
    """Short spoken confirmation for kinds whose on-screen text is too long to read out."""
    if kind is IntentKind.TIMEBLOCK_DAY:
        created = getattr(outcome, "created_events", None) or []
        if created:
            count = len(created)
            return f"I've added {number_to_words(count)} time block{'s' if count > 1 else ''} to your calendar."
        return "Time blocks added to your calendar."
    summaries = {
        IntentKind.ADD_CALENDAR_EVENT: "Event added to your calendar.",
        IntentKind.CREATE_TASK: "Task created.",
        IntentKind.SEND_EMAIL: "Email sent.",
        IntentKind.CREATE_NOTE: "Note created.",
        IntentKind.REMEMBER: "Got it, I'll remember that.",
    }
    return summaries.get(kind, "Done.")
