from __future__ import annotations

import pytest

from action_executor.models.intents import ExecutionOutcome, IntentKind
from action_executor.speech_text import format_for_tts, number_to_words, spoken_summary


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Meeting 9am-11am", "Meeting 9 to 11 AM"),
        ("Lunch 11am - 1pm", "Lunch 11 AM to 1 PM"),
        ("Call at 9:30am", "Call at 9 30 AM"),
        ("Due 2026-03-10", "Due March 10, 2026"),
        ("Added 10/03/2026", "Added March 10, 2026"),
        ("You have 3 tasks", "You have three tasks"),
        ("It's 12°C with a 60% chance", "It's 12 degrees celsius with a 60 percent chance"),
        ("First line\nSecond line", "First line, Second line"),
        ("Header\n\nBody", "Header. Body"),
    ],
)
def test_format_for_tts(text, expected) -> None:
    assert format_for_tts(text) == expected


def test_invalid_dates_are_left_alone() -> None:
    assert format_for_tts("Code 2026-13-45") == "Code 2026-13-45"


def test_number_to_words() -> None:
    assert number_to_words(2) == "two"
    assert number_to_words(20) == "twenty"
    assert number_to_words(42) == "42"


def test_spoken_summary_for_timeblocks() -> None:
    outcome = ExecutionOutcome(success=True, display_response="Created", created_events=["A", "B"])

    assert spoken_summary(IntentKind.TIMEBLOCK_DAY, outcome) == "I've added two time blocks to your calendar."


def test_spoken_summary_for_single_timeblock() -> None:
    outcome = ExecutionOutcome(success=True, display_response="Created", created_events=["A"])

    assert spoken_summary(IntentKind.TIMEBLOCK_DAY, outcome) == "I've added one time block to your calendar."


def test_spoken_summary_defaults() -> None:
    outcome = ExecutionOutcome.ok("Done")

    assert spoken_summary(IntentKind.CREATE_TASK, outcome) == "Task created."
    assert spoken_summary(IntentKind.GET_NOTES, outcome) == "Done."


def test_speech_text_falls_back_through_fields() -> None:
    assert ExecutionOutcome(success=True, display_response="Shown").speech_text() == "Shown"
    assert ExecutionOutcome(success=True, response="Said", display_response="Shown").speech_text() == "Said"
    assert ExecutionOutcome.fail("Broken").speech_text() == "Broken"
