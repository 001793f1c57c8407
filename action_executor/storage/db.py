from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import Engine, create_engine, func, select, text, update
from sqlalchemy.exc import SQLAlchemyError

from action_executor.storage.schema import actions, notes, sessions, tasks, user_integrations, user_profiles
from action_executor.util.ids import new_action_id, new_note_id, new_record_id, new_session_id, new_task_id


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def create_db_engine(database_url: str) -> Engine:
    return create_engine(database_url, pool_pre_ping=True, future=True)


def check_db(engine: Engine) -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def create_session(engine: Engine, *, user_id: str, session_id: Optional[str] = None) -> Dict[str, Any]:
    stmt = (
        sessions.insert()
        .values(id=session_id or new_session_id(), user_id=user_id, created_at=utc_now())
        .returning(*sessions.c)
    )
    with engine.begin() as conn:
        row = conn.execute(stmt).mappings().first()
        if not row:
            raise SQLAlchemyError("Session insert failed")
        return dict(row)


def get_session(engine: Engine, session_id: str) -> Optional[Dict[str, Any]]:
    with engine.begin() as conn:
        row = conn.execute(select(sessions).where(sessions.c.id == session_id)).mappings().first()
        return dict(row) if row else None


def create_action(
    engine: Engine,
    *,
    user_id: str,
    session_id: str,
    transcript: str,
    intent: str,
    parameters: Dict[str, Any],
    status: str,
    result: Optional[Dict[str, Any]] = None,
    created_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    now = created_at or utc_now()
    stmt = (
        actions.insert()
        .values(
            id=new_action_id(),
            user_id=user_id,
            session_id=session_id,
            transcript=transcript,
            intent=intent,
            parameters=parameters,
            execution_status=status,
            execution_result=result,
            created_at=now,
            updated_at=now,
        )
        .returning(*actions.c)
    )
    with engine.begin() as conn:
        row = conn.execute(stmt).mappings().first()
        if not row:
            raise SQLAlchemyError("Action insert failed")
        return dict(row)


def update_action_status(
    engine: Engine,
    *,
    action_id: str,
    status: str,
    result: Optional[Dict[str, Any]],
    updated_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    stmt = (
        update(actions)
        .where(actions.c.id == action_id)
        .values(execution_status=status, execution_result=result, updated_at=updated_at or utc_now())
        .returning(*actions.c)
    )
    with engine.begin() as conn:
        row = conn.execute(stmt).mappings().first()
        if not row:
            raise SQLAlchemyError("Action not found for update")
        return dict(row)


def fail_stale_actions(
    engine: Engine,
    *,
    created_before: datetime,
    result: Dict[str, Any],
    now: Optional[datetime] = None,
) -> List[str]:
    """Move actions still ``pending`` from before ``created_before`` to ``failed``."""
    stmt = (
        update(actions)
        .where(actions.c.execution_status == "pending", actions.c.created_at < created_before)
        .values(execution_status="failed", execution_result=result, updated_at=now or utc_now())
        .returning(actions.c.id)
    )
    with engine.begin() as conn:
        return [row[0] for row in conn.execute(stmt).all()]


def get_action(engine: Engine, action_id: str) -> Optional[Dict[str, Any]]:
    with engine.begin() as conn:
        row = conn.execute(select(actions).where(actions.c.id == action_id)).mappings().first()
        return dict(row) if row else None


def list_session_actions(
    engine: Engine,
    session_id: str,
    *,
    user_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    stmt = select(actions).where(actions.c.session_id == session_id)
    if user_id:
        stmt = stmt.where(actions.c.user_id == user_id)
    stmt = stmt.order_by(actions.c.created_at.desc())
    with engine.begin() as conn:
        rows = conn.execute(stmt).mappings().all()
        return [dict(row) for row in rows]


def count_actions_since(
    engine: Engine,
    *,
    intent: str,
    since: datetime,
    user_id: Optional[str] = None,
    exclude_status: Optional[str] = None,
) -> int:
    stmt = select(func.count()).select_from(actions).where(
        actions.c.intent == intent,
        actions.c.created_at >= since,
    )
    if user_id:
        stmt = stmt.where(actions.c.user_id == user_id)
    if exclude_status:
        stmt = stmt.where(actions.c.execution_status != exclude_status)
    with engine.begin() as conn:
        return int(conn.execute(stmt).scalar_one())


def insert_task(
    engine: Engine,
    *,
    user_id: str,
    title: str,
    priority: str = "medium",
    due_date: Optional[str] = None,
    status: str = "todo",
    created_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    stmt = (
        tasks.insert()
        .values(
            id=new_task_id(),
            user_id=user_id,
            title=title,
            priority=priority,
            status=status,
            due_date=due_date,
            created_at=created_at or utc_now(),
            completed_at=utc_now() if status == "done" else None,
        )
        .returning(*tasks.c)
    )
    with engine.begin() as conn:
        row = conn.execute(stmt).mappings().first()
        if not row:
            raise SQLAlchemyError("Task insert failed")
        return dict(row)


def list_tasks(
    engine: Engine,
    *,
    user_id: str,
    status: Optional[str] = None,
    exclude_status: Optional[str] = None,
    priority: Optional[str] = None,
) -> List[Dict[str, Any]]:
    stmt = select(tasks).where(tasks.c.user_id == user_id)
    if status:
        stmt = stmt.where(tasks.c.status == status)
    if exclude_status:
        stmt = stmt.where(tasks.c.status != exclude_status)
    if priority:
        stmt = stmt.where(tasks.c.priority == priority)
    stmt = stmt.order_by(tasks.c.created_at.desc())
    with engine.begin() as conn:
        rows = conn.execute(stmt).mappings().all()
        return [dict(row) for row in rows]


def update_task_fields(
    engine: Engine,
    *,
    task_id: str,
    status: Optional[str] = None,
    priority: Optional[str] = None,
) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if status is not None:
        values["status"] = status
        values["completed_at"] = utc_now() if status == "done" else None
    if priority is not None:
        values["priority"] = priority
    if not values:
        raise ValueError("No task fields to update")
    stmt = update(tasks).where(tasks.c.id == task_id).values(**values).returning(*tasks.c)
    with engine.begin() as conn:
        row = conn.execute(stmt).mappings().first()
        if not row:
            raise SQLAlchemyError("Task not found for update")
        return dict(row)


def insert_note(
    engine: Engine,
    *,
    user_id: str,
    title: Optional[str],
    content: str,
    folder: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    now = created_at or utc_now()
    stmt = (
        notes.insert()
        .values(
            id=new_note_id(),
            user_id=user_id,
            title=title,
            content=content,
            folder=folder,
            created_at=now,
            updated_at=now,
        )
        .returning(*notes.c)
    )
    with engine.begin() as conn:
        row = conn.execute(stmt).mappings().first()
        if not row:
            raise SQLAlchemyError("Note insert failed")
        return dict(row)


def list_notes(
    engine: Engine,
    *,
    user_id: str,
    folder: Optional[str] = None,
) -> List[Dict[str, Any]]:
    stmt = select(notes).where(notes.c.user_id == user_id)
    if folder:
        stmt = stmt.where(notes.c.folder.icontains(folder, autoescape=True))
    stmt = stmt.order_by(notes.c.created_at.desc())
    with engine.begin() as conn:
        rows = conn.execute(stmt).mappings().all()
        return [dict(row) for row in rows]


def get_profile(engine: Engine, user_id: str) -> Optional[Dict[str, Any]]:
    with engine.begin() as conn:
        row = conn.execute(select(user_profiles).where(user_profiles.c.id == user_id)).mappings().first()
        return dict(row) if row else None


def save_profile(
    engine: Engine,
    *,
    user_id: str,
    name: Optional[str] = None,
    email: Optional[str] = None,
    knowledge_base: str = "",
    email_signature: str = "",
) -> Dict[str, Any]:
    now = utc_now()
    existing = get_profile(engine, user_id)
    if existing:
        stmt = (
            update(user_profiles)
            .where(user_profiles.c.id == user_id)
            .values(
                name=name,
                email=email,
                knowledge_base=knowledge_base,
                email_signature=email_signature,
                version=user_profiles.c.version + 1,
                updated_at=now,
            )
            .returning(*user_profiles.c)
        )
    else:
        stmt = (
            user_profiles.insert()
            .values(
                id=user_id,
                name=name,
                email=email,
                knowledge_base=knowledge_base,
                email_signature=email_signature,
                version=0,
                created_at=now,
                updated_at=now,
            )
            .returning(*user_profiles.c)
        )
    with engine.begin() as conn:
        row = conn.execute(stmt).mappings().first()
        if not row:
            raise SQLAlchemyError("Profile save failed")
        return dict(row)


def append_knowledge_entry(
    engine: Engine,
    *,
    user_id: str,
    entry: str,
    attempts: int = 3,
) -> Dict[str, Any]:
    """Append to the knowledge base with compare-and-swap on ``version``.

    A concurrent writer bumps the version between our read and write; the
    update then matches no row and we re-read and retry.
    """
    for _ in range(max(attempts, 1)):
        profile = get_profile(engine, user_id)
        if not profile:
            try:
                return save_profile(engine, user_id=user_id, knowledge_base=entry.lstrip("\n"))
            except SQLAlchemyError:
                continue
        current = profile.get("knowledge_base") or ""
        stmt = (
            update(user_profiles)
            .where(
                user_profiles.c.id == user_id,
                user_profiles.c.version == profile["version"],
            )
            .values(
                knowledge_base=current + entry,
                version=profile["version"] + 1,
                updated_at=utc_now(),
            )
            .returning(*user_profiles.c)
        )
        with engine.begin() as conn:
            row = conn.execute(stmt).mappings().first()
        if row:
            return dict(row)
    raise SQLAlchemyError("Knowledge base changed concurrently; append abandoned")


def get_integration(
    engine: Engine,
    *,
    user_id: str,
    integration_type: str,
) -> Optional[Dict[str, Any]]:
    stmt = select(user_integrations).where(
        user_integrations.c.user_id == user_id,
        user_integrations.c.integration_type == integration_type,
        user_integrations.c.is_active.is_(True),
    )
    with engine.begin() as conn:
        row = conn.execute(stmt).mappings().first()
        return dict(row) if row else None


def save_integration(
    engine: Engine,
    *,
    user_id: str,
    integration_type: str,
    credentials: Dict[str, Any],
    is_active: bool = True,
) -> Dict[str, Any]:
    now = utc_now()
    stmt = (
        user_integrations.insert()
        .values(
            id=new_record_id(),
            user_id=user_id,
            integration_type=integration_type,
            credentials=credentials,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )
        .returning(*user_integrations.c)
    )
    with engine.begin() as conn:
        row = conn.execute(stmt).mappings().first()
        if not row:
            raise SQLAlchemyError("Integration insert failed")
        return dict(row)


def update_integration_credentials(
    engine: Engine,
    *,
    user_id: str,
    integration_type: str,
    credentials: Dict[str, Any],
) -> Dict[str, Any]:
    stmt = (
        update(user_integrations)
        .where(
            user_integrations.c.user_id == user_id,
            user_integrations.c.integration_type == integration_type,
        )
        .values(credentials=credentials, updated_at=utc_now())
        .returning(*user_integrations.c)
    )
    with engine.begin() as conn:
        row = conn.execute(stmt).mappings().first()
        if not row:
            raise SQLAlchemyError("Integration not found for update")
        return dict(row)
