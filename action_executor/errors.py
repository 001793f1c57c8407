from __future__ import annotations

from typing import Any, Dict, Optional


class ActionExecutorError(Exception):
    """Base class for errors raised by the execution pipeline."""


class InvalidRequestError(ActionExecutorError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class UnknownIntentError(InvalidRequestError):
    def __init__(self, kind: str) -> None:
        super().__init__(f"Unknown intent: {kind}", details={"kind": kind})
        self.kind = kind


class NotConnectedError(ActionExecutorError):
    """The user has no active integration of the requested type."""

    def __init__(self, integration: str) -> None:
        super().__init__(f"{integration} not connected")
        self.integration = integration


class ExternalServiceError(ActionExecutorError):
    def __init__(self, service: str, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(f"{service} error: {message}")
        self.service = service
        self.message = message
        self.status_code = status_code


class TimedOutError(ExternalServiceError):
    def __init__(self, service: str, timeout_seconds: float) -> None:
        super().__init__(service, f"request timed out after {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


class AuditError(ActionExecutorError):
    """The action record could not be written."""
