from __future__ import annotations

import pytest
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

import action_executor.storage.db as db
from action_executor.handlers.knowledge import format_entry, remember
from action_executor.models.params import RememberParams
from action_executor.storage.schema import user_profiles


def test_format_entry_is_a_dated_markdown_section() -> None:
    assert format_entry("Contacts", "Ann is my sister", "10/03/2026") == (
        "\n\n## Contacts\n[Added: 10/03/2026]\nAnn is my sister"
    )


def test_remember_creates_profile_when_missing(ctx, engine) -> None:
    outcome = remember(ctx, "user-1", RememberParams(section="Contacts", content="John's email is john@x.com"))

    assert outcome.success is True
    assert outcome.response == 'Got it! I\'ve added that to your knowledge base under "Contacts".'
    assert outcome.spoken_response == "Got it, I'll remember that."
    profile = db.get_profile(engine, "user-1")
    assert profile["knowledge_base"] == "## Contacts\n[Added: 10/03/2026]\nJohn's email is john@x.com"


def test_remember_appends_and_never_overwrites(ctx, engine) -> None:
    db.save_profile(engine, user_id="user-1", knowledge_base="I live in Leeds")

    remember(ctx, "user-1", RememberParams(content="Likes tea"))
    remember(ctx, "user-1", RememberParams(section="Work", content="Standup at 9"))

    knowledge_base = db.get_profile(engine, "user-1")["knowledge_base"]
    assert knowledge_base.startswith("I live in Leeds\n\n## General\n")
    assert knowledge_base.index("Likes tea") < knowledge_base.index("## Work")
    assert knowledge_base.endswith("Standup at 9")


def test_append_retries_after_concurrent_write(engine, monkeypatch) -> None:
    db.save_profile(engine, user_id="user-1", knowledge_base="base")
    real_get_profile = db.get_profile
    state = {"raced": False}

    def racing_get_profile(bind, user_id):
        profile = real_get_profile(bind, user_id)
        if not state["raced"]:
            state["raced"] = True
            with bind.begin() as conn:
                conn.execute(
                    update(user_profiles)
                    .where(user_profiles.c.id == user_id)
                    .values(knowledge_base=profile["knowledge_base"] + " other", version=profile["version"] + 1)
                )
        return profile

    monkeypatch.setattr(db, "get_profile", racing_get_profile)

    row = db.append_knowledge_entry(engine, user_id="user-1", entry=" mine")

    assert row["knowledge_base"] == "base other mine"
    assert row["version"] == 2


def test_append_gives_up_after_bounded_attempts(engine, monkeypatch) -> None:
    db.save_profile(engine, user_id="user-1", knowledge_base="base")
    real_get_profile = db.get_profile

    def stale_get_profile(bind, user_id):
        profile = dict(real_get_profile(bind, user_id))
        profile["version"] -= 1
        return profile

    monkeypatch.setattr(db, "get_profile", stale_get_profile)

    with pytest.raises(SQLAlchemyError):
        db.append_knowledge_entry(engine, user_id="user-1", entry=" mine", attempts=2)

    assert real_get_profile(engine, "user-1")["knowledge_base"] == "base"


def test_remember_reports_storage_failure(ctx, engine, monkeypatch) -> None:
    def always_conflicts(*args, **kwargs):
        raise SQLAlchemyError("Knowledge base changed concurrently; append abandoned")

    monkeypatch.setattr("action_executor.handlers.knowledge.append_knowledge_entry", always_conflicts)

    outcome = remember(ctx, "user-1", RememberParams(content="Likes tea"))

    assert outcome.success is False
    assert outcome.error_kind == "storage"
    assert outcome.error == "Database error: failed to save to knowledge base"
