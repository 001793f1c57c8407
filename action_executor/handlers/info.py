from __future__ import annotations

import logging
import re
from datetime import timezone
from typing import Optional

from action_executor.handlers.common import failure_from_exception
from action_executor.handlers.context import HandlerContext
from action_executor.integrations.weather import WeatherReport
from action_executor.models.intents import ExecutionOutcome, ExecutionStatus, IntentKind
from action_executor.models.params import GetNewsParams, GetWeatherParams
from action_executor.storage.db import count_actions_since, get_profile
from action_executor.timeparse import start_of_day

logger = logging.getLogger("action_executor.handlers.info")

WEATHER_LIMIT_MESSAGE = (
    "I've hit my weather lookup limit for today, so I can't check the forecast right now. "
    "Please try again tomorrow."
)
NEWS_MESSAGE = "News updates are coming soon. For now I can help with tasks, notes, email, your calendar and the weather."

_LOCATION_PATTERNS = [
    re.compile(r"\b(?:live|living|based|located|reside|residing)\s+in\s+([A-Z][\w'-]*(?:\s+[A-Z][\w'-]*)*)"),
    re.compile(r"\b(?i:location|city|home town|hometown)\s*(?:is|:|-)\s*([A-Z][\w'-]*(?:\s+[A-Z][\w'-]*)*)"),
]


def extract_location(knowledge_base: str) -> Optional[str]:
    for pattern in _LOCATION_PATTERNS:
        match = pattern.search(knowledge_base)
        if match:
            return match.group(1).strip()
    return None


def _format_report(report: WeatherReport) -> str:
    text = f"It's currently {report.temperature:.0f}°C and {report.description} in {report.location}"
    if report.feels_like is not None and round(report.feels_like) != round(report.temperature):
        text += f", feeling like {report.feels_like:.0f}°C"
    text += "."
    if report.high is not None and report.low is not None:
        text += f" Today's high is {report.high:.0f}°C with a low of {report.low:.0f}°C."
    if report.precipitation_probability:
        text += f" There's a {report.precipitation_probability:.0f}% chance of rain."
    return text


def get_weather(ctx: HandlerContext, user_id: str, params: GetWeatherParams) -> ExecutionOutcome:
    midnight = start_of_day(ctx.today(), ctx.zone).astimezone(timezone.utc)
    try:
        # Global count across users: the cap protects the shared upstream quota.
        used = count_actions_since(
            ctx.engine,
            intent=IntentKind.GET_WEATHER.value,
            since=midnight,
            exclude_status=ExecutionStatus.PENDING.value,
        )
    except Exception as exc:
        return failure_from_exception(exc, "Failed to check weather usage")
    if used >= ctx.settings.weather_daily_limit:
        logger.warning("weather_limit_reached used=%s limit=%s", used, ctx.settings.weather_daily_limit)
        return ExecutionOutcome.ok(WEATHER_LIMIT_MESSAGE, rate_limited=True)

    try:
        location = params.location
        if not location:
            profile = get_profile(ctx.engine, user_id) or {}
            location = extract_location(profile.get("knowledge_base") or "") or ctx.settings.default_weather_location
        report = ctx.weather.current(location)
    except Exception as exc:
        return failure_from_exception(exc, "Failed to get the weather")
    return ExecutionOutcome.ok(_format_report(report), location=report.location)


def get_news(ctx: HandlerContext, user_id: str, params: GetNewsParams) -> ExecutionOutcome:
    return ExecutionOutcome.ok(NEWS_MESSAGE)
