from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from action_executor.integrations.http import request_json


class CalendarClient:
    def create_event(self, access_token: str, event: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def list_events(
        self,
        access_token: str,
        *,
        time_min: datetime,
        time_max: datetime,
        max_results: int = 50,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError


class GoogleCalendarClient(CalendarClient):
    def __init__(
        self,
        *,
        base_url: str,
        calendar_id: str = "primary",
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._calendar_id = calendar_id
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def _events_url(self) -> str:
        return f"{self._base_url}/calendars/{self._calendar_id}/events"

    def create_event(self, access_token: str, event: Dict[str, Any]) -> Dict[str, Any]:
        return request_json(
            "POST",
            self._events_url(),
            service="Google Calendar API",
            timeout_seconds=self._timeout_seconds,
            transport=self._transport,
            json=event,
            headers={"Authorization": f"Bearer {access_token}"},
        )

    def list_events(
        self,
        access_token: str,
        *,
        time_min: datetime,
        time_max: datetime,
        max_results: int = 50,
    ) -> List[Dict[str, Any]]:
        data = request_json(
            "GET",
            self._events_url(),
            service="Google Calendar API",
            timeout_seconds=self._timeout_seconds,
            transport=self._transport,
            params={
                "timeMin": time_min.isoformat(),
                "timeMax": time_max.isoformat(),
                "orderBy": "startTime",
                "singleEvents": "true",
                "maxResults": str(max_results),
            },
            headers={"Authorization": f"Bearer {access_token}"},
        )
        items = data.get("items") or []
        return [item for item in items if isinstance(item, dict)]
