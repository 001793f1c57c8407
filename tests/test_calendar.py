from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from action_executor.handlers.calendar import (
    add_calendar_event,
    describe_day,
    format_clock,
    get_calendar_events,
    has_ended,
    timeblock_day,
)
from action_executor.integrations.tokens import EMAIL_INTEGRATION, StaticTokenProvider
from action_executor.models.params import AddCalendarEventParams, GetCalendarEventsParams, TimeblockDayParams
from action_executor.timeparse import get_zone

LONDON = get_zone("Europe/London")


def event(summary, start, end, **extra):
    return {"summary": summary, "start": {"dateTime": start}, "end": {"dateTime": end}, **extra}


def test_event_end_defaults_to_one_hour(ctx, calendar) -> None:
    outcome = add_calendar_event(ctx, "user-1", AddCalendarEventParams(title="Dentist", start_time="9am"))

    assert outcome.success is True
    assert outcome.display_response == 'Added "Dentist" to your calendar today, 9am-10am.'
    assert outcome.spoken_response == "Event added to your calendar."
    assert outcome.event_id == "evt-1"
    created = calendar.created[0]
    assert created["token"] == "cal-token"
    assert created["start"] == {"dateTime": "2026-03-10T09:00:00+00:00", "timeZone": "Europe/London"}
    assert created["end"] == {"dateTime": "2026-03-10T10:00:00+00:00", "timeZone": "Europe/London"}


def test_event_with_explicit_end_and_location(ctx, calendar) -> None:
    params = AddCalendarEventParams(
        title="Lunch",
        date="tomorrow",
        start_time="12:30",
        end_time="13:15",
        location="Cafe Rouge",
        description="Catch up",
    )

    outcome = add_calendar_event(ctx, "user-1", params)

    assert outcome.display_response == 'Added "Lunch" to your calendar tomorrow, 12:30pm-1:15pm at Cafe Rouge.'
    assert calendar.created[0]["location"] == "Cafe Rouge"
    assert calendar.created[0]["description"] == "Catch up"


def test_event_ending_after_midnight_rolls_over(ctx, calendar) -> None:
    add_calendar_event(ctx, "user-1", AddCalendarEventParams(title="Party", start_time="11pm", end_time="1am"))

    assert calendar.created[0]["end"]["dateTime"] == "2026-03-11T01:00:00+00:00"


def test_calendar_not_connected_has_actionable_message(ctx, calendar) -> None:
    ctx.token_provider = StaticTokenProvider({EMAIL_INTEGRATION: "mail-token"})

    outcome = add_calendar_event(ctx, "user-1", AddCalendarEventParams(title="Dentist", start_time="9am"))

    assert outcome.success is False
    assert outcome.error == "Google Calendar not connected. Please connect in Settings → Integrations."
    assert outcome.error_kind == "not_connected"
    assert calendar.created == []


def test_unparseable_time_is_reported(ctx, calendar) -> None:
    outcome = add_calendar_event(ctx, "user-1", AddCalendarEventParams(title="Dentist", start_time="noonish"))

    assert outcome.success is False
    assert outcome.error == "Invalid time format: noonish"


def test_upstream_failure_is_generic(ctx, calendar) -> None:
    calendar.fail_titles = {"Dentist"}

    outcome = add_calendar_event(ctx, "user-1", AddCalendarEventParams(title="Dentist", start_time="9am"))

    assert outcome.success is False
    assert outcome.error == "Google Calendar API error: Backend Error"
    assert outcome.error_kind == "external_service"


def test_no_events_in_period(ctx, calendar) -> None:
    outcome = get_calendar_events(ctx, "user-1", GetCalendarEventsParams())

    assert outcome.success is True
    assert outcome.response == "You have no events today."


def test_only_ended_events_in_period(ctx, calendar) -> None:
    calendar.events = [event("Breakfast", "2026-03-10T07:00:00Z", "2026-03-10T08:00:00Z")]

    outcome = get_calendar_events(ctx, "user-1", GetCalendarEventsParams())

    assert outcome.success is True
    assert outcome.response == "You have no upcoming events today."


def test_ended_events_are_filtered_out(ctx, calendar) -> None:
    calendar.events = [
        event("Breakfast", "2026-03-10T07:00:00Z", "2026-03-10T08:00:00Z"),
        event("Review", "2026-03-10T14:00:00Z", "2026-03-10T15:00:00Z", location="Room 4"),
    ]

    outcome = get_calendar_events(ctx, "user-1", GetCalendarEventsParams())

    assert outcome.display_response.split("\n") == ["You have 1 upcoming event today:", "• 2pm-3pm: Review (Room 4)"]
    assert outcome.spoken_response == "You have 1 upcoming event today: Review."
    assert outcome.event_count == 1


def test_day_window_is_local_midnight_to_midnight(ctx, calendar) -> None:
    get_calendar_events(ctx, "user-1", GetCalendarEventsParams())

    call = calendar.list_calls[0]
    assert call["token"] == "cal-token"
    assert call["time_min"] == datetime(2026, 3, 10, tzinfo=timezone.utc)
    assert call["time_max"] == datetime(2026, 3, 11, tzinfo=timezone.utc)


def test_week_window(ctx, calendar) -> None:
    calendar.events = [event("Trip", "2026-03-14T10:00:00Z", "2026-03-14T18:00:00Z")]

    outcome = get_calendar_events(ctx, "user-1", GetCalendarEventsParams(timeframe="week"))

    assert calendar.list_calls[0]["time_max"] == datetime(2026, 3, 17, tzinfo=timezone.utc)
    assert outcome.display_response.split("\n")[1] == "• Sat 14 Mar 10am-6pm: Trip"


def test_explicit_date_wins_over_timeframe(ctx, calendar) -> None:
    outcome = get_calendar_events(ctx, "user-1", GetCalendarEventsParams(date="2026-03-12", timeframe="month"))

    assert calendar.list_calls[0]["time_min"] == datetime(2026, 3, 12, tzinfo=timezone.utc)
    assert calendar.list_calls[0]["time_max"] == datetime(2026, 3, 13, tzinfo=timezone.utc)
    assert outcome.response == "You have no events on Thursday 12 March."


def test_timeblock_partial_success(ctx, calendar) -> None:
    calendar.fail_titles = {"Email"}
    params = TimeblockDayParams(
        blocks=[
            {"title": "Deep work", "start_time": "9am", "end_time": "11am"},
            {"title": "Email", "start_time": "11am", "end_time": "12pm"},
            {"title": "Gym", "start_time": "13:00", "end_time": "14:00"},
        ]
    )

    outcome = timeblock_day(ctx, "user-1", params)

    assert outcome.success is True
    assert outcome.created_events == ["Deep work", "Gym"]
    assert outcome.failed_events == ["Email"]
    assert outcome.display_response.split("\n") == [
        "Created 2 time blocks today:",
        "✓ 9am-11am: Deep work",
        "✓ 1pm-2pm: Gym",
        "⚠ Couldn't create: Email",
    ]
    assert outcome.spoken_response == "I've added two time blocks to your calendar."
    assert [created["summary"] for created in calendar.created] == ["Deep work", "Gym"]


def test_timeblock_fails_only_when_nothing_created(ctx, calendar) -> None:
    calendar.fail_titles = {"A", "B"}
    params = TimeblockDayParams(
        blocks=[
            {"title": "A", "start_time": "9am", "end_time": "10am"},
            {"title": "B", "start_time": "10am", "end_time": "11am"},
        ]
    )

    outcome = timeblock_day(ctx, "user-1", params)

    assert outcome.success is False
    assert outcome.error == "I couldn't create any time blocks today. Failed: A, B."
    assert outcome.failed_events == ["A", "B"]


def test_timeblock_block_with_bad_time_does_not_stop_others(ctx, calendar) -> None:
    params = TimeblockDayParams(
        blocks=[
            {"title": "Broken", "start_time": "whenever", "end_time": "10am"},
            {"title": "Fine", "start_time": "10am", "end_time": "11am"},
        ]
    )

    outcome = timeblock_day(ctx, "user-1", params)

    assert outcome.success is True
    assert outcome.created_events == ["Fine"]
    assert outcome.failed_events == ["Broken"]


@pytest.mark.parametrize(
    ("value", "expected"),
    [(datetime(2026, 1, 1, 9, 0), "9am"), (datetime(2026, 1, 1, 14, 30), "2:30pm"), (datetime(2026, 1, 1, 0, 5), "12:05am")],
)
def test_format_clock(value, expected) -> None:
    assert format_clock(value) == expected


def test_describe_day() -> None:
    today = date(2026, 3, 10)

    assert describe_day(today, today) == "today"
    assert describe_day(date(2026, 3, 11), today) == "tomorrow"
    assert describe_day(date(2026, 3, 16), today) == "on Monday 16 March"


def test_has_ended_ignores_events_without_end(now) -> None:
    assert has_ended({"end": {"dateTime": "2026-03-10T09:00:00Z"}}, now, LONDON) is True
    assert has_ended({"end": {"dateTime": "2026-03-10T10:00:00Z"}}, now, LONDON) is False
    assert has_ended({}, now, LONDON) is False
