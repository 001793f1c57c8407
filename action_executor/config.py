from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str
    service_token: str
    user_timezone: str = "Europe/London"
    cors_origins: str = ""
    weather_daily_limit: int = 100
    default_weather_location: str = "London"
    weather_geocoding_url: str = "https://geocoding-api.open-meteo.com/v1/search"
    weather_forecast_url: str = "https://api.open-meteo.com/v1/forecast"
    google_calendar_base_url: str = "https://www.googleapis.com/calendar/v3"
    gmail_base_url: str = "https://gmail.googleapis.com/gmail/v1"
    google_token_url: str = "https://oauth2.googleapis.com/token"
    google_client_id: str | None = None
    google_client_secret: str | None = None
    token_refresh_margin_seconds: int = 300
    tts_base_url: str | None = None
    tts_bearer_token: str | None = None
    tts_speak_path: str = "/v1/speak"
    external_timeout_seconds: float = 15.0
    calendar_default_event_minutes: int = 60
    note_preview_chars: int = 100
    knowledge_append_attempts: int = 3
    pending_action_timeout_minutes: int = 15
    version: str = "0.0.0"
    git_sha: str = "unknown"

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)


def load_settings() -> Settings:
    return Settings()
