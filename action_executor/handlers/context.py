from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from typing import Callable

from sqlalchemy import Engine

from action_executor.config import Settings
from action_executor.integrations.calendar import CalendarClient
from action_executor.integrations.gmail import EmailSender
from action_executor.integrations.tokens import TokenProvider
from action_executor.integrations.weather import WeatherClient
from action_executor.storage.db import utc_now
from action_executor.timeparse import get_zone


@dataclass
class HandlerContext:
    """Collaborators shared by every action handler for one application."""

    engine: Engine
    settings: Settings
    token_provider: TokenProvider
    calendar: CalendarClient
    email_sender: EmailSender
    weather: WeatherClient
    clock: Callable[[], datetime] = field(default=utc_now)

    @property
    def zone(self) -> tzinfo:
        return get_zone(self.settings.user_timezone)

    def local_now(self) -> datetime:
        return self.clock().astimezone(self.zone)

    def today(self) -> date:
        return self.local_now().date()
