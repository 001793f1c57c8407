from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
import sqlalchemy as sa

from action_executor.config import Settings
from action_executor.errors import ExternalServiceError
from action_executor.handlers.context import HandlerContext
from action_executor.integrations.calendar import CalendarClient
from action_executor.integrations.gmail import EmailSender
from action_executor.integrations.tokens import CALENDAR_INTEGRATION, EMAIL_INTEGRATION, StaticTokenProvider
from action_executor.integrations.weather import WeatherClient, WeatherReport
from action_executor.storage.schema import metadata

# 09:30 in London (GMT in March) so local and UTC dates agree.
FIXED_NOW = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)


class FakeCalendar(CalendarClient):
    def __init__(self, events: Optional[List[Dict[str, Any]]] = None, fail_titles: Optional[set] = None) -> None:
        self.events = events or []
        self.fail_titles = fail_titles or set()
        self.created: List[Dict[str, Any]] = []
        self.list_calls: List[Dict[str, Any]] = []

    def create_event(self, access_token: str, event: Dict[str, Any]) -> Dict[str, Any]:
        if event["summary"] in self.fail_titles:
            raise ExternalServiceError("Google Calendar API", "Backend Error", status_code=500)
        self.created.append({"token": access_token, **event})
        return {"id": f"evt-{len(self.created)}", "htmlLink": "https://calendar.example/evt"}

    def list_events(self, access_token: str, *, time_min, time_max, max_results: int = 50):
        self.list_calls.append({"token": access_token, "time_min": time_min, "time_max": time_max})
        return list(self.events)


class FakeEmailSender(EmailSender):
    def __init__(self) -> None:
        self.sent: List[Dict[str, str]] = []

    def send_raw(self, access_token: str, raw_message: str) -> Dict[str, Any]:
        self.sent.append({"token": access_token, "raw": raw_message})
        return {"id": f"msg-{len(self.sent)}"}


class FakeWeather(WeatherClient):
    def __init__(self) -> None:
        self.locations: List[str] = []

    def current(self, location: str) -> WeatherReport:
        self.locations.append(location)
        return WeatherReport(
            location=location,
            temperature=12.4,
            feels_like=10.2,
            description="light rain",
            high=14.0,
            low=7.0,
            precipitation_probability=60,
        )


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+pysqlite:///{tmp_path / 'actions.db'}"


@pytest.fixture
def engine(database_url):
    engine = sa.create_engine(database_url, future=True)
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def settings(database_url) -> Settings:
    return Settings(database_url=database_url, service_token="test-token", user_timezone="Europe/London")


@pytest.fixture
def calendar() -> FakeCalendar:
    return FakeCalendar()


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def weather() -> FakeWeather:
    return FakeWeather()


@pytest.fixture
def token_provider() -> StaticTokenProvider:
    return StaticTokenProvider({CALENDAR_INTEGRATION: "cal-token", EMAIL_INTEGRATION: "mail-token"})


@pytest.fixture
def ctx(engine, settings, token_provider, calendar, email_sender, weather) -> HandlerContext:
    return HandlerContext(
        engine=engine,
        settings=settings,
        token_provider=token_provider,
        calendar=calendar,
        email_sender=email_sender,
        weather=weather,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW
