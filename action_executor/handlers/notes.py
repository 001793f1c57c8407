from __future__ import annotations

import logging
from typing import Any, Dict

from action_executor.handlers.common import failure_from_exception, plural
from action_executor.handlers.context import HandlerContext
from action_executor.models.intents import ExecutionOutcome
from action_executor.models.params import CreateNoteParams, GetNotesParams
from action_executor.storage.db import insert_note, list_notes

logger = logging.getLogger("action_executor.handlers.notes")


def create_note(ctx: HandlerContext, user_id: str, params: CreateNoteParams) -> ExecutionOutcome:
    try:
        note = insert_note(
            ctx.engine,
            user_id=user_id,
            title=params.title,
            content=params.content,
            folder=params.folder,
        )
    except Exception as exc:
        return failure_from_exception(exc, "Failed to create note")
    logger.info("note_created note_id=%s user_id=%s", note["id"], user_id)
    response = f"Note created: {params.title}"
    if params.folder:
        response += f" (in {params.folder})"
    return ExecutionOutcome.ok(response, note_id=note["id"])


def _preview(content: str, limit: int) -> str:
    content = " ".join(content.split())
    if len(content) <= limit:
        return content
    return content[:limit].rstrip() + "..."


def _note_line(note: Dict[str, Any], limit: int) -> str:
    line = f"• {note.get('title') or 'Untitled'}"
    if note.get("folder"):
        line += f" [{note['folder']}]"
    return f"{line}: {_preview(note.get('content') or '', limit)}"


def get_notes(ctx: HandlerContext, user_id: str, params: GetNotesParams) -> ExecutionOutcome:
    try:
        found = list_notes(ctx.engine, user_id=user_id, folder=params.folder)
        has_any = bool(found) or bool(list_notes(ctx.engine, user_id=user_id))
    except Exception as exc:
        return failure_from_exception(exc, "Failed to fetch notes")

    if params.query:
        query = params.query.lower()
        found = [
            note
            for note in found
            if query in (note.get("title") or "").lower() or query in (note.get("content") or "").lower()
        ]

    if not has_any:
        return ExecutionOutcome.ok("You don't have any notes yet.")
    if not found:
        filters = []
        if params.folder:
            filters.append(f"in folder \"{params.folder}\"")
        if params.query:
            filters.append(f"matching \"{params.query}\"")
        return ExecutionOutcome.ok(f"I couldn't find any notes {' '.join(filters)}.")

    limit = ctx.settings.note_preview_chars
    header = f"You have {plural(len(found), 'note')}:"
    titles = [note.get("title") or "Untitled" for note in found]
    return ExecutionOutcome(
        success=True,
        display_response="\n".join([header] + [_note_line(note, limit) for note in found]),
        spoken_response=f"You have {plural(len(found), 'note')}: {', '.join(titles[:5])}.",
        note_count=len(found),
    )
