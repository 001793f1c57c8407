from __future__ import annotations

import itertools
from datetime import timedelta
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from action_executor.integrations.speech import SpeechSynthesizer
from action_executor.main import create_app
from action_executor.storage.db import create_action, get_action


class FakeSpeech(SpeechSynthesizer):
    def __init__(self) -> None:
        self.texts: List[str] = []

    def synthesize(self, text: str) -> Optional[str]:
        self.texts.append(text)
        return f"https://audio.test/{len(self.texts)}.mp3"


@pytest.fixture
def speech() -> FakeSpeech:
    return FakeSpeech()


def ticking_clock(start):
    ticks = itertools.count()
    return lambda: start + timedelta(seconds=next(ticks))


@pytest.fixture
def client(engine, settings, token_provider, calendar, email_sender, weather, speech, now):
    app = create_app(
        settings,
        token_provider=token_provider,
        calendar=calendar,
        email_sender=email_sender,
        weather=weather,
        speech=speech,
        clock=ticking_clock(now),
    )
    with TestClient(app) as test_client:
        yield test_client


def auth_headers(user_id: str = "user-1") -> dict:
    return {"Authorization": "Bearer test-token", "X-User-Id": user_id}


def test_health_and_version(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/version").json() == {"version": "0.0.0", "git_sha": "unknown"}


def test_requires_bearer_token(client) -> None:
    response = client.post("/v1/execute", json={}, headers={"X-User-Id": "user-1"})
    assert response.status_code == 401

    response = client.post("/v1/execute", json={}, headers={"Authorization": "Bearer nope", "X-User-Id": "user-1"})
    assert response.status_code == 401


def test_requires_user_header(client) -> None:
    response = client.post("/v1/execute", json={}, headers={"Authorization": "Bearer test-token"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Missing X-User-Id header"


def test_execute_single_intent(client, speech) -> None:
    payload = {
        "session_id": "ses-1",
        "transcript": "add a task to buy milk",
        "intent": {"intent": "create_task", "response": "Adding it.", "parameters": {"title": "Buy milk"}},
    }

    response = client.post("/v1/execute", json=payload, headers=auth_headers())

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["success"] is True
    assert body["result"]["response"] == "Task created: Buy milk"
    assert body["result"]["task_id"].startswith("tsk_")
    assert body["action_id"].startswith("act_")
    assert body["audio_url"] == "https://audio.test/1.mp3"
    assert speech.texts == ["Task created: Buy milk"]


def test_execute_failure_is_a_200_with_failed_status(client) -> None:
    payload = {"session_id": "ses-1", "intent": {"kind": "update_task", "parameters": {"title": "gym", "status": "done"}}}

    response = client.post("/v1/execute", json=payload, headers=auth_headers())

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "failed"
    assert body["success"] is False
    assert body["result"]["error_kind"] == "not_found"


def test_execute_conversational_intent(client) -> None:
    payload = {"session_id": "ses-1", "intent": {"intent": "other", "response": "Hello there!"}}

    body = client.post("/v1/execute", json=payload, headers=auth_headers()).json()

    assert body["status"] == "conversational"
    assert body["result"]["response"] == "Hello there!"


def test_execute_rejects_empty_kind(client) -> None:
    payload = {"session_id": "ses-1", "intent": {"kind": "", "parameters": {}}}

    response = client.post("/v1/execute", json=payload, headers=auth_headers())

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_request"


def test_execute_rejects_bad_json(client) -> None:
    response = client.post(
        "/v1/execute",
        content=b"{not json",
        headers={**auth_headers(), "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "bad_json"


def test_execute_rejects_schema_mismatch(client) -> None:
    response = client.post("/v1/execute", json={"intent": {"kind": "get_news"}}, headers=auth_headers())

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "schema_validation_failed"
    assert error["details"]["status_code"] == 400


def test_execute_batch(client, speech) -> None:
    payload = {
        "session_id": "ses-1",
        "transcript": "add a task and a note",
        "intents": [
            {"intent": "create_task", "parameters": {"title": "Buy milk"}},
            {"intent": "create_note", "parameters": {"title": "Ideas", "content": "Podcast"}},
        ],
    }

    response = client.post("/v1/execute/batch", json=payload, headers=auth_headers())

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["result"]["display_response"] == "✓ create_task: Task created: Buy milk\n✓ create_note: Note created: Ideas"
    assert body["result"]["spoken_response"] == "All 2 actions completed."
    assert [step["kind"] for step in body["result"]["steps"]] == ["create_task", "create_note"]
    assert speech.texts == ["All two actions completed."]


def test_execute_batch_without_kinds(client) -> None:
    payload = {"session_id": "ses-1", "intents": [{"kind": ""}]}

    response = client.post("/v1/execute/batch", json=payload, headers=auth_headers())

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "No executable intents supplied"


def test_confirmation(client) -> None:
    read_only = {"intents": [{"intent": "get_tasks"}, {"intent": "get_weather"}]}
    mixed = {"intents": [{"intent": "get_tasks"}, {"intent": "send_email"}]}

    assert client.post("/v1/confirmation", json=read_only, headers=auth_headers()).json() == {
        "requires_confirmation": False
    }
    assert client.post("/v1/confirmation", json=mixed, headers=auth_headers()).json() == {
        "requires_confirmation": True
    }


def test_session_history(client) -> None:
    session = client.post("/v1/sessions", headers=auth_headers()).json()
    assert session["id"].startswith("ses_")
    assert session["user_id"] == "user-1"

    for title in ("First", "Second"):
        payload = {"session_id": session["id"], "transcript": title, "intent": {"kind": "create_task", "parameters": {"title": title}}}
        client.post("/v1/execute", json=payload, headers=auth_headers())

    history = client.get(f"/v1/sessions/{session['id']}/actions", headers=auth_headers()).json()

    assert [record["transcript"] for record in history] == ["Second", "First"]
    assert {record["status"] for record in history} == {"completed"}
    assert history[0]["intent_kind"] == "create_task"


def test_session_history_hidden_from_other_users(client) -> None:
    session = client.post("/v1/sessions", headers=auth_headers()).json()

    response = client.get(f"/v1/sessions/{session['id']}/actions", headers=auth_headers("user-2"))

    assert response.status_code == 404


def test_startup_fails_stale_pending_records(
    engine, settings, token_provider, calendar, email_sender, weather, speech, now
) -> None:
    record = create_action(
        engine,
        user_id="user-1",
        session_id="ses-1",
        transcript="",
        intent="get_news",
        parameters={},
        status="pending",
        created_at=now - timedelta(hours=1),
    )
    app = create_app(
        settings,
        token_provider=token_provider,
        calendar=calendar,
        email_sender=email_sender,
        weather=weather,
        speech=speech,
        clock=lambda: now,
    )

    with TestClient(app):
        assert get_action(engine, record["id"])["execution_status"] == "failed"
