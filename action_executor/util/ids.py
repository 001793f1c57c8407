from __future__ import annotations

import ulid


def new_action_id() -> str:
    return f"act_{ulid.new().str}"


def new_session_id() -> str:
    return f"ses_{ulid.new().str}"


def new_task_id() -> str:
    return f"tsk_{ulid.new().str}"


def new_note_id() -> str:
    return f"not_{ulid.new().str}"


def new_record_id() -> str:
    return ulid.new().str
