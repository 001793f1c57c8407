from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from action_executor.errors import ExternalServiceError, InvalidRequestError, NotConnectedError, TimedOutError
from action_executor.integrations.tokens import CALENDAR_INTEGRATION, EMAIL_INTEGRATION
from action_executor.models.intents import ExecutionOutcome

logger = logging.getLogger("action_executor.handlers")

NOT_CONNECTED_MESSAGES = {
    CALENDAR_INTEGRATION: "Google Calendar not connected. Please connect in Settings → Integrations.",
    EMAIL_INTEGRATION: "No email account connected. Please connect your email in Settings → Integrations.",
}


def failure_from_exception(exc: Exception, default: str) -> ExecutionOutcome:
    """Convert a handler-internal exception into a displayable failed outcome."""
    if isinstance(exc, NotConnectedError):
        message = NOT_CONNECTED_MESSAGES.get(
            exc.integration,
            f"{exc.integration} not connected. Please connect it in Settings → Integrations.",
        )
        return ExecutionOutcome.fail(message, error_kind="not_connected")
    if isinstance(exc, TimedOutError):
        return ExecutionOutcome.fail(str(exc), error_kind="timed_out")
    if isinstance(exc, ExternalServiceError):
        return ExecutionOutcome.fail(str(exc), error_kind="external_service")
    if isinstance(exc, InvalidRequestError):
        return ExecutionOutcome.fail(exc.message, error_kind="validation")
    if isinstance(exc, SQLAlchemyError):
        logger.error("handler_storage_error error=%s", exc.__class__.__name__)
        return ExecutionOutcome.fail(f"Database error: {default[0].lower()}{default[1:]}", error_kind="storage")
    logger.exception("handler_unexpected_error")
    return ExecutionOutcome.fail(default, error_kind="internal")


def plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"
