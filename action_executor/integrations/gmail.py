from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from action_executor.integrations.http import request_json


class EmailSender:
    def send_raw(self, access_token: str, raw_message: str) -> Dict[str, Any]:
        raise NotImplementedError


class GmailSender(EmailSender):
    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def send_raw(self, access_token: str, raw_message: str) -> Dict[str, Any]:
        return request_json(
            "POST",
            f"{self._base_url}/users/me/messages/send",
            service="Gmail API",
            timeout_seconds=self._timeout_seconds,
            transport=self._transport,
            json={"raw": raw_message},
            headers={"Authorization": f"Bearer {access_token}"},
        )
