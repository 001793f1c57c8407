from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import httpx
from sqlalchemy import Engine

from action_executor.errors import ExternalServiceError, NotConnectedError
from action_executor.integrations.http import request_json
from action_executor.storage.db import get_integration, update_integration_credentials

CALENDAR_INTEGRATION = "google_calendar"
EMAIL_INTEGRATION = "gmail"

logger = logging.getLogger("action_executor.tokens")


class TokenProvider:
    def get_access_token(self, user_id: str, integration_type: str) -> str:
        raise NotImplementedError


class StaticTokenProvider(TokenProvider):
    """Serves fixed tokens; integrations absent from the mapping are not connected."""

    def __init__(self, tokens: dict[str, str]) -> None:
        self._tokens = dict(tokens)

    def get_access_token(self, user_id: str, integration_type: str) -> str:
        token = self._tokens.get(integration_type)
        if not token:
            raise NotConnectedError(integration_type)
        return token


class DbTokenProvider(TokenProvider):
    """Reads OAuth credentials from ``user_integrations`` and refreshes them when stale."""

    def __init__(
        self,
        engine: Engine,
        *,
        token_url: str,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        refresh_margin_seconds: int = 300,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._engine = engine
        self._token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_margin_seconds = refresh_margin_seconds
        self._timeout_seconds = timeout_seconds
        self._transport = transport
        self._clock = clock

    def get_access_token(self, user_id: str, integration_type: str) -> str:
        integration = get_integration(self._engine, user_id=user_id, integration_type=integration_type)
        if not integration:
            raise NotConnectedError(integration_type)
        credentials = dict(integration.get("credentials") or {})
        access_token = credentials.get("access_token")
        if not access_token and not credentials.get("refresh_token"):
            raise NotConnectedError(integration_type)
        expires_at = float(credentials.get("expires_at") or 0)
        if access_token and expires_at > self._clock() + self._refresh_margin_seconds:
            return access_token
        return self._refresh(user_id, integration_type, credentials)

    def _refresh(self, user_id: str, integration_type: str, credentials: dict) -> str:
        refresh_token = credentials.get("refresh_token")
        if not refresh_token:
            raise NotConnectedError(integration_type)
        payload = {
            "client_id": self._client_id or "",
            "client_secret": self._client_secret or "",
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        data = request_json(
            "POST",
            self._token_url,
            service="google_oauth",
            timeout_seconds=self._timeout_seconds,
            transport=self._transport,
            data=payload,
        )
        access_token = data.get("access_token")
        if not access_token:
            raise ExternalServiceError("google_oauth", "Failed to refresh token")
        credentials["access_token"] = access_token
        credentials["expires_at"] = self._clock() + float(data.get("expires_in") or 3600)
        update_integration_credentials(
            self._engine,
            user_id=user_id,
            integration_type=integration_type,
            credentials=credentials,
        )
        logger.info("token_refreshed user_id=%s integration=%s", user_id, integration_type)
        return access_token
