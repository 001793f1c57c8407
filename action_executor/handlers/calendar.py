from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from action_executor.handlers.common import failure_from_exception, plural
from action_executor.handlers.context import HandlerContext
from action_executor.integrations.tokens import CALENDAR_INTEGRATION
from action_executor.models.intents import ExecutionOutcome, IntentKind
from action_executor.models.params import AddCalendarEventParams, GetCalendarEventsParams, TimeblockDayParams
from action_executor.speech_text import spoken_summary
from action_executor.timeparse import parse_time, resolve_date, start_of_day

logger = logging.getLogger("action_executor.handlers.calendar")

TIMEFRAME_DAYS = {"day": 1, "week": 7, "month": 30}


def format_clock(value: datetime) -> str:
    hour = value.hour % 12 or 12
    suffix = "am" if value.hour < 12 else "pm"
    if value.minute:
        return f"{hour}:{value.minute:02d}{suffix}"
    return f"{hour}{suffix}"


def describe_day(day: date, today: date) -> str:
    if day == today:
        return "today"
    if day == today + timedelta(days=1):
        return "tomorrow"
    return f"on {day.strftime('%A')} {day.day} {day.strftime('%B')}"


def _event_window(
    ctx: HandlerContext,
    start_time: str,
    end_time: Optional[str],
    day: date,
) -> Tuple[datetime, datetime]:
    start = parse_time(start_time, day, ctx.zone)
    if end_time:
        end = parse_time(end_time, day, ctx.zone)
        if end <= start:
            end += timedelta(days=1)
    else:
        end = start + timedelta(minutes=ctx.settings.calendar_default_event_minutes)
    return start, end


def _event_body(
    ctx: HandlerContext,
    title: str,
    start: datetime,
    end: datetime,
    description: Optional[str] = None,
    location: Optional[str] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "summary": title,
        "start": {"dateTime": start.isoformat(), "timeZone": ctx.settings.user_timezone},
        "end": {"dateTime": end.isoformat(), "timeZone": ctx.settings.user_timezone},
    }
    if description:
        body["description"] = description
    if location:
        body["location"] = location
    return body


def add_calendar_event(ctx: HandlerContext, user_id: str, params: AddCalendarEventParams) -> ExecutionOutcome:
    try:
        today = ctx.today()
        day = resolve_date(params.date, today)
        start, end = _event_window(ctx, params.start_time, params.end_time, day)
        access_token = ctx.token_provider.get_access_token(user_id, CALENDAR_INTEGRATION)
        created = ctx.calendar.create_event(
            access_token,
            _event_body(ctx, params.title, start, end, params.description, params.location),
        )
    except Exception as exc:
        return failure_from_exception(exc, "Failed to add calendar event")

    logger.info("calendar_event_created user_id=%s event_id=%s", user_id, created.get("id"))
    display = f"Added \"{params.title}\" to your calendar {describe_day(day, today)}, {format_clock(start)}-{format_clock(end)}"
    if params.location:
        display += f" at {params.location}"
    outcome = ExecutionOutcome(
        success=True,
        display_response=display + ".",
        event_id=created.get("id"),
        event_link=created.get("htmlLink"),
    )
    outcome.spoken_response = spoken_summary(IntentKind.ADD_CALENDAR_EVENT, outcome)
    return outcome


def _parse_event_time(value: Dict[str, Any], zone) -> Tuple[Optional[datetime], bool]:
    if value.get("dateTime"):
        raw = str(value["dateTime"]).replace("Z", "+00:00")
        parsed = datetime.fromisoformat(raw)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=zone)
        return parsed, False
    if value.get("date"):
        return datetime.combine(date.fromisoformat(value["date"]), datetime.min.time(), tzinfo=zone), True
    return None, False


def has_ended(event: Dict[str, Any], now: datetime, zone) -> bool:
    end, _ = _parse_event_time(event.get("end") or {}, zone)
    if end is None:
        return False
    return end <= now


def _event_line(event: Dict[str, Any], zone, include_day: bool) -> str:
    start, all_day = _parse_event_time(event.get("start") or {}, zone)
    end, _ = _parse_event_time(event.get("end") or {}, zone)
    title = event.get("summary") or "Untitled event"
    if start is None:
        when = "Time unknown"
    elif all_day:
        when = "All day"
    else:
        local_start = start.astimezone(zone)
        when = format_clock(local_start)
        if end is not None:
            when += f"-{format_clock(end.astimezone(zone))}"
    if include_day and start is not None:
        when = f"{start.astimezone(zone).strftime('%a %d %b')} {when}"
    line = f"• {when}: {title}"
    if event.get("location"):
        line += f" ({event['location']})"
    return line


def resolve_event_window(params: GetCalendarEventsParams, today: date, zone) -> Tuple[datetime, datetime, str]:
    """Return ``[time_min, time_max)`` and a spoken label; an explicit date wins over timeframe."""
    if params.date:
        day = resolve_date(params.date, today)
        start = start_of_day(day, zone)
        return start, start_of_day(day + timedelta(days=1), zone), describe_day(day, today)
    start = start_of_day(today, zone)
    days = TIMEFRAME_DAYS[params.timeframe]
    label = {"day": "today", "week": "this week", "month": "this month"}[params.timeframe]
    return start, start_of_day(today + timedelta(days=days), zone), label


def get_calendar_events(ctx: HandlerContext, user_id: str, params: GetCalendarEventsParams) -> ExecutionOutcome:
    zone = ctx.zone
    try:
        time_min, time_max, label = resolve_event_window(params, ctx.today(), zone)
        access_token = ctx.token_provider.get_access_token(user_id, CALENDAR_INTEGRATION)
        events = ctx.calendar.list_events(
            access_token,
            time_min=time_min.astimezone(timezone.utc),
            time_max=time_max.astimezone(timezone.utc),
        )
        if not events:
            return ExecutionOutcome.ok(f"You have no events {label}.", event_count=0)
        now = ctx.clock()
        upcoming = [event for event in events if not has_ended(event, now, zone)]
    except Exception as exc:
        return failure_from_exception(exc, "Failed to fetch calendar events")

    if not upcoming:
        return ExecutionOutcome.ok(f"You have no upcoming events {label}.", event_count=0)

    multi_day = (time_max - time_min) > timedelta(days=1)
    header = f"You have {plural(len(upcoming), 'upcoming event')} {label}:"
    titles = [event.get("summary") or "Untitled event" for event in upcoming]
    return ExecutionOutcome(
        success=True,
        display_response="\n".join([header] + [_event_line(event, zone, multi_day) for event in upcoming]),
        spoken_response=f"You have {plural(len(upcoming), 'upcoming event')} {label}: {', '.join(titles[:5])}.",
        event_count=len(upcoming),
    )


def timeblock_day(ctx: HandlerContext, user_id: str, params: TimeblockDayParams) -> ExecutionOutcome:
    try:
        today = ctx.today()
        day = resolve_date(params.date, today)
        access_token = ctx.token_provider.get_access_token(user_id, CALENDAR_INTEGRATION)
    except Exception as exc:
        return failure_from_exception(exc, "Failed to create time blocks")

    created: List[str] = []
    created_lines: List[str] = []
    failed: List[str] = []
    # Blocks are created one after another; a failed block does not stop the rest.
    for block in params.blocks:
        try:
            start, end = _event_window(ctx, block.start_time, block.end_time, day)
            ctx.calendar.create_event(
                access_token,
                _event_body(ctx, block.title, start, end, block.description),
            )
        except Exception as exc:
            reason = failure_from_exception(exc, "Failed to create block").error
            logger.warning("timeblock_failed user_id=%s title=%s reason=%s", user_id, block.title, reason)
            failed.append(block.title)
            continue
        created.append(block.title)
        created_lines.append(f"✓ {format_clock(start)}-{format_clock(end)}: {block.title}")

    day_label = describe_day(day, today)
    if not created:
        return ExecutionOutcome.fail(
            f"I couldn't create any time blocks {day_label}. Failed: {', '.join(failed)}.",
            created_events=created,
            failed_events=failed,
        )

    lines = [f"Created {plural(len(created), 'time block')} {day_label}:"] + created_lines
    if failed:
        lines.append(f"⚠ Couldn't create: {', '.join(failed)}")
    outcome = ExecutionOutcome(
        success=True,
        display_response="\n".join(lines),
        created_events=created,
        failed_events=failed,
    )
    outcome.spoken_response = spoken_summary(IntentKind.TIMEBLOCK_DAY, outcome)
    return outcome
