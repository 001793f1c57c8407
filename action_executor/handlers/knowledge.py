from __future__ import annotations

import logging

from action_executor.handlers.common import failure_from_exception
from action_executor.handlers.context import HandlerContext
from action_executor.models.intents import ExecutionOutcome
from action_executor.models.params import RememberParams
from action_executor.storage.db import append_knowledge_entry

logger = logging.getLogger("action_executor.handlers.knowledge")


def format_entry(section: str, content: str, added_on: str) -> str:
    return f"\n\n## {section}\n[Added: {added_on}]\n{content}"


def remember(ctx: HandlerContext, user_id: str, params: RememberParams) -> ExecutionOutcome:
    entry = format_entry(params.section, params.content, ctx.today().strftime("%d/%m/%Y"))
    try:
        append_knowledge_entry(
            ctx.engine,
            user_id=user_id,
            entry=entry,
            attempts=ctx.settings.knowledge_append_attempts,
        )
    except Exception as exc:
        return failure_from_exception(exc, "Failed to save to knowledge base")
    logger.info("knowledge_appended user_id=%s section=%s", user_id, params.section)
    return ExecutionOutcome(
        success=True,
        response=f"Got it! I've added that to your knowledge base under \"{params.section}\".",
        spoken_response="Got it, I'll remember that.",
    )
