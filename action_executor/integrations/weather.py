"""Current-conditions lookup backed by Open-Meteo (no API key)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from action_executor.errors import ExternalServiceError
from action_executor.integrations.http import request_json

_WEATHER_CODE_TEXT = {
    0: "clear sky",
    1: "mainly clear",
    2: "partly cloudy",
    3: "overcast",
    45: "fog",
    48: "freezing fog",
    51: "light drizzle",
    53: "drizzle",
    55: "heavy drizzle",
    61: "light rain",
    63: "rain",
    65: "heavy rain",
    66: "freezing rain",
    67: "heavy freezing rain",
    71: "light snow",
    73: "snow",
    75: "heavy snow",
    77: "snow grains",
    80: "light showers",
    81: "showers",
    82: "heavy showers",
    85: "snow showers",
    86: "heavy snow showers",
    95: "thunderstorms",
    96: "thunderstorms with hail",
    99: "thunderstorms with heavy hail",
}


@dataclass
class WeatherReport:
    location: str
    temperature: float
    feels_like: Optional[float]
    description: str
    high: Optional[float] = None
    low: Optional[float] = None
    precipitation_probability: Optional[float] = None
    wind_speed: Optional[float] = None


class WeatherClient:
    def current(self, location: str) -> WeatherReport:
        raise NotImplementedError


class OpenMeteoWeatherClient(WeatherClient):
    def __init__(
        self,
        *,
        geocoding_url: str,
        forecast_url: str,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._geocoding_url = geocoding_url
        self._forecast_url = forecast_url
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def _geocode(self, name: str) -> Dict[str, Any]:
        data = request_json(
            "GET",
            self._geocoding_url,
            service="Weather API",
            timeout_seconds=self._timeout_seconds,
            transport=self._transport,
            params={"name": name, "count": 1, "language": "en", "format": "json"},
        )
        results = data.get("results") or []
        if not results:
            raise ExternalServiceError("Weather API", f"Could not find location '{name}'")
        return results[0]

    def current(self, location: str) -> WeatherReport:
        place = self._geocode(location)
        data = request_json(
            "GET",
            self._forecast_url,
            service="Weather API",
            timeout_seconds=self._timeout_seconds,
            transport=self._transport,
            params={
                "latitude": place.get("latitude"),
                "longitude": place.get("longitude"),
                "timezone": "auto",
                "forecast_days": 1,
                "current": "temperature_2m,apparent_temperature,weather_code,wind_speed_10m",
                "daily": "temperature_2m_max,temperature_2m_min,precipitation_probability_max",
            },
        )
        current = data.get("current") or {}
        if current.get("temperature_2m") is None:
            raise ExternalServiceError("Weather API", "No current conditions returned")
        daily = data.get("daily") or {}

        def first(key: str) -> Optional[float]:
            values = daily.get(key) or []
            return values[0] if values else None

        return WeatherReport(
            location=place.get("name") or location,
            temperature=current["temperature_2m"],
            feels_like=current.get("apparent_temperature"),
            description=_WEATHER_CODE_TEXT.get(current.get("weather_code"), "unknown conditions"),
            high=first("temperature_2m_max"),
            low=first("temperature_2m_min"),
            precipitation_probability=first("precipitation_probability_max"),
            wind_speed=current.get("wind_speed_10m"),
        )
