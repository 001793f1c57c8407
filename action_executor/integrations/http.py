from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from action_executor.errors import ExternalServiceError, TimedOutError


def upstream_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return data.get("error_description") or error
        if data.get("reason"):
            return str(data["reason"])
    return f"HTTP {response.status_code}"


def request_json(
    method: str,
    url: str,
    *,
    service: str,
    timeout_seconds: float,
    transport: Optional[httpx.BaseTransport] = None,
    **kwargs: Any,
) -> Dict[str, Any]:
    """Perform one HTTP call, mapping transport failures onto the error taxonomy."""
    try:
        with httpx.Client(timeout=timeout_seconds, transport=transport) as client:
            response = client.request(method, url, **kwargs)
    except httpx.TimeoutException as exc:
        raise TimedOutError(service, timeout_seconds) from exc
    except httpx.RequestError as exc:
        raise ExternalServiceError(service, str(exc) or exc.__class__.__name__) from exc
    if not 200 <= response.status_code < 300:
        raise ExternalServiceError(service, upstream_message(response), status_code=response.status_code)
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError as exc:
        raise ExternalServiceError(service, "invalid JSON response", status_code=response.status_code) from exc
    if not isinstance(data, dict):
        return {"items": data}
    return data
