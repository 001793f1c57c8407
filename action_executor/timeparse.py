"""Natural-language time and date resolution for calendar intents."""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from action_executor.errors import InvalidRequestError

_TIME_24H = re.compile(r"^(\d{1,2}):?(\d{2})$")
_TIME_12H = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*(am|pm)$", re.IGNORECASE)


def get_zone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidRequestError(f"Unknown timezone: {name}") from exc


def parse_clock_time(value: str) -> time:
    """Parse ``14:00``, ``1400``, ``9am`` or ``2:30 pm`` into a wall-clock time."""
    text = value.strip()
    match = _TIME_24H.match(text)
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
        if hours > 23 or minutes > 59:
            raise InvalidRequestError(f"Invalid time format: {value}")
        return time(hours, minutes)
    match = _TIME_12H.match(text)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2) or 0)
        if not 1 <= hours <= 12 or minutes > 59:
            raise InvalidRequestError(f"Invalid time format: {value}")
        period = match.group(3).lower()
        if period == "pm" and hours != 12:
            hours += 12
        elif period == "am" and hours == 12:
            hours = 0
        return time(hours, minutes)
    raise InvalidRequestError(f"Invalid time format: {value}")


def parse_time(value: str, base_date: date, zone: tzinfo) -> datetime:
    return datetime.combine(base_date, parse_clock_time(value), tzinfo=zone)


def resolve_date(value: Optional[str], today: date) -> date:
    if not value:
        return today
    lowered = value.strip().lower()
    if lowered == "today":
        return today
    if lowered == "tomorrow":
        return today + timedelta(days=1)
    if lowered == "yesterday":
        return today - timedelta(days=1)
    try:
        return date.fromisoformat(lowered[:10])
    except ValueError as exc:
        raise InvalidRequestError(f"Invalid date: {value}") from exc


def start_of_day(day: date, zone: tzinfo) -> datetime:
    return datetime.combine(day, time(0, 0), tzinfo=zone)
