from __future__ import annotations

import logging
import re
from typing import Optional

from action_executor.email_message import EMAIL_TOKEN, build_mime_message, encode_raw_message, is_email_address
from action_executor.handlers.common import failure_from_exception
from action_executor.handlers.context import HandlerContext
from action_executor.integrations.tokens import EMAIL_INTEGRATION
from action_executor.models.intents import ExecutionOutcome
from action_executor.models.params import SendEmailParams
from action_executor.storage.db import get_profile

logger = logging.getLogger("action_executor.handlers.email")


def resolve_contact(knowledge_base: str, name: str) -> Optional[str]:
    """Find the first address on a knowledge-base line that mentions ``name`` as a whole word."""
    needle = name.strip()
    if not needle:
        return None
    pattern = re.compile(rf"(?<!\w){re.escape(needle)}(?!\w)", re.IGNORECASE)
    for line in knowledge_base.splitlines():
        if not pattern.search(line):
            continue
        match = EMAIL_TOKEN.search(line)
        if match:
            return match.group(0)
    return None


def send_email(ctx: HandlerContext, user_id: str, params: SendEmailParams) -> ExecutionOutcome:
    try:
        profile = get_profile(ctx.engine, user_id) or {}
        recipient = params.to.strip()
        address = recipient
        if not is_email_address(recipient):
            address = resolve_contact(profile.get("knowledge_base") or "", recipient)
            if not address:
                return ExecutionOutcome.fail(
                    f"I don't know {recipient}'s email address yet. Teach me first by saying something like "
                    f"\"Remember that {recipient}'s email is name@example.com\", then try again.",
                    error_kind="not_found",
                )
            logger.info("email_contact_resolved user_id=%s", user_id)

        access_token = ctx.token_provider.get_access_token(user_id, EMAIL_INTEGRATION)
        message = build_mime_message(
            to=address,
            subject=params.subject,
            body=params.body,
            sender=profile.get("email"),
            signature=profile.get("email_signature") or None,
        )
        sent = ctx.email_sender.send_raw(access_token, encode_raw_message(message))
    except Exception as exc:
        return failure_from_exception(exc, "Failed to send email")

    shown = address if address == recipient else f"{recipient} ({address})"
    logger.info("email_sent user_id=%s message_id=%s", user_id, sent.get("id"))
    return ExecutionOutcome(
        success=True,
        response=f"Email sent successfully to {shown}",
        spoken_response=f"Email sent to {recipient}.",
        message_id=sent.get("id"),
        recipient=address,
    )
