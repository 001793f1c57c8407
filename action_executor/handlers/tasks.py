from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from action_executor.handlers.common import failure_from_exception, plural
from action_executor.handlers.context import HandlerContext
from action_executor.models.intents import ExecutionOutcome
from action_executor.models.params import CreateTaskParams, GetTasksParams, UpdateTaskParams
from action_executor.storage.db import insert_task, list_tasks, update_task_fields

logger = logging.getLogger("action_executor.handlers.tasks")

PRIORITY_MARKERS = {"high": "🔴", "medium": "🟡", "low": "🟢"}
STATUS_LABELS = {"todo": "to-do", "in_progress": "in-progress", "done": "completed"}
SUGGESTION_LIMIT = 5


def create_task(ctx: HandlerContext, user_id: str, params: CreateTaskParams) -> ExecutionOutcome:
    try:
        task = insert_task(
            ctx.engine,
            user_id=user_id,
            title=params.title,
            priority=params.priority,
            due_date=params.due_date,
        )
    except Exception as exc:
        return failure_from_exception(exc, "Failed to create task")
    logger.info("task_created task_id=%s user_id=%s", task["id"], user_id)
    response = f"Task created: {params.title}"
    if params.due_date:
        response += f" (due {params.due_date})"
    return ExecutionOutcome.ok(response, task_id=task["id"])


def _filter_label(params: GetTasksParams) -> str:
    parts = []
    if params.priority:
        parts.append(f"{params.priority} priority")
    if params.status != "all":
        parts.append(STATUS_LABELS[params.status])
    return " ".join(parts)


def _task_line(task: Dict[str, Any]) -> str:
    marker = PRIORITY_MARKERS.get(task.get("priority") or "", "⚪")
    line = f"{marker} {task['title']}"
    if task.get("due_date"):
        line += f" (due {task['due_date']})"
    return line


def get_tasks(ctx: HandlerContext, user_id: str, params: GetTasksParams) -> ExecutionOutcome:
    status = None if params.status == "all" else params.status
    try:
        found = list_tasks(ctx.engine, user_id=user_id, status=status, priority=params.priority)
        has_any = bool(found) or bool(list_tasks(ctx.engine, user_id=user_id))
    except Exception as exc:
        return failure_from_exception(exc, "Failed to fetch tasks")

    label = _filter_label(params)
    if not has_any:
        return ExecutionOutcome.ok("You don't have any tasks yet.")
    if not found:
        return ExecutionOutcome.ok(f"You don't have any {label} tasks right now.")

    noun = f"{label} task" if label else "task"
    header = f"You have {plural(len(found), noun)}:"
    titles = [task["title"] for task in found]
    spoken = f"You have {plural(len(found), noun)}: {', '.join(titles[:SUGGESTION_LIMIT])}"
    if len(titles) > SUGGESTION_LIMIT:
        spoken += f", and {len(titles) - SUGGESTION_LIMIT} more"
    return ExecutionOutcome(
        success=True,
        display_response="\n".join([header] + [_task_line(task) for task in found]),
        spoken_response=spoken + ".",
        task_count=len(found),
    )


def find_task_by_title(candidates: List[Dict[str, Any]], search: str) -> Optional[Dict[str, Any]]:
    """First task whose title contains the search term or is contained by it."""
    term = search.strip().lower()
    if not term:
        return None
    for task in candidates:
        title = (task.get("title") or "").lower()
        if not title:
            continue
        if term in title or title in term:
            return task
    return None


def update_task(ctx: HandlerContext, user_id: str, params: UpdateTaskParams) -> ExecutionOutcome:
    try:
        candidates = list_tasks(ctx.engine, user_id=user_id, exclude_status="done")
    except Exception as exc:
        return failure_from_exception(exc, "Failed to update task")

    suggestions = [task["title"] for task in candidates[:SUGGESTION_LIMIT]]
    suggestion_text = (
        f" Your current tasks are: {', '.join(suggestions)}."
        if suggestions
        else " You don't have any open tasks."
    )
    if params.status is None and params.priority is None:
        return ExecutionOutcome.fail(
            f"Tell me what to change for \"{params.title}\": its status or its priority.{suggestion_text}",
            error_kind="validation",
        )

    task = find_task_by_title(candidates, params.title)
    if task is None:
        return ExecutionOutcome.fail(
            f"I couldn't find a task matching \"{params.title}\".{suggestion_text}",
            error_kind="not_found",
            suggestions=suggestions,
        )

    try:
        updated = update_task_fields(ctx.engine, task_id=task["id"], status=params.status, priority=params.priority)
    except Exception as exc:
        return failure_from_exception(exc, "Failed to update task")

    changes = []
    if params.status is not None:
        changes.append(f"status to {STATUS_LABELS[params.status]}")
    if params.priority is not None:
        changes.append(f"priority to {params.priority}")
    logger.info("task_updated task_id=%s user_id=%s", updated["id"], user_id)
    return ExecutionOutcome.ok(
        f"Updated \"{updated['title']}\": {' and '.join(changes)}.",
        task_id=updated["id"],
    )
