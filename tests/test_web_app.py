# tests/test_web_app.py

from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from moltbot.tasks.task_callbacks import CALLBACK_SECRET_HEADER
from moltbot.tasks.task_models import TaskStatus
from moltbot.web.app import TELEGRAM_SECRET_HEADER, create_app

from .conftest import CALLBACK_SECRET


def _update(chat_id: int, text: str) -> dict:
    return {"update_id": 1, "message": {"message_id": 1, "chat": {"id": chat_id}, "text": text}}


@pytest.fixture()
def client(state):
    with TestClient(create_app(state, start_poller=False)) as c:
        yield c


def test_health_live(client) -> None:
    resp = client.get("/")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["service"] == "moltbot-test"


def test_health_ready_reports_counts(client, state) -> None:
    state.task_store.enqueue(1, "a")
    resp = client.get("/health/ready")
    assert resp.status_code == 200
    assert resp.json()["tasks"] == {"queued": 1}


def test_telegram_task_command_enqueues_and_replies(client, state) -> None:
    resp = client.post("/telegram", json=_update(42, "/task buy milk"))
    assert resp.status_code == 200

    tasks = state.task_store.list_recent(42, 10)
    assert [t.input_text for t in tasks] == ["buy milk"]
    assert "queued" in state.messenger.texts_for(42)[0]


def test_telegram_plain_text_goes_to_llm(client, state) -> None:
    client.post("/telegram", json=_update(7, "hello there"))
    assert state.messenger.texts_for(7) == ["llm says hi"]
    assert state.llm.calls[0][0] == [{"role": "user", "content": "hello there"}]


def test_telegram_malformed_json_is_400(client) -> None:
    resp = client.post("/telegram", content=b"{not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400


def test_telegram_non_message_update_is_ignored(client, state) -> None:
    resp = client.post("/telegram", json={"update_id": 2, "edited_message": {}})
    assert resp.status_code == 200
    assert resp.json() == {"status": "ignored"}
    assert state.messenger.sent == []


def test_telegram_secret_token_enforced(client, state) -> None:
    state.settings.telegram_webhook_secret = "tg-secret"

    resp = client.post("/telegram", json=_update(1, "/help"))
    assert resp.status_code == 403

    resp = client.post("/telegram", json=_update(1, "/help"), headers={TELEGRAM_SECRET_HEADER: "tg-secret"})
    assert resp.status_code == 200


def test_callback_requires_secret(client, state) -> None:
    task_id = state.task_store.enqueue(42, "buy milk")
    state.task_store.claim_next_queued()

    resp = client.post(
        "/tasks/callback",
        json={"task_id": task_id, "status": "done", "result_text": "bought"},
        headers={CALLBACK_SECRET_HEADER: "nope"},
    )
    assert resp.status_code == 401
    assert state.task_store.get(task_id, 42).status == TaskStatus.RUNNING

    resp = client.post("/tasks/callback", content=b"garbage")
    assert resp.status_code == 401


def test_callback_validation_errors(client) -> None:
    headers = {CALLBACK_SECRET_HEADER: CALLBACK_SECRET}
    assert client.post("/tasks/callback", json={"status": "done"}, headers=headers).status_code == 400
    assert client.post("/tasks/callback", content=b"garbage", headers=headers).status_code == 400


def test_callback_done_updates_and_notifies(client, state) -> None:
    task_id = state.task_store.enqueue(42, "buy milk")
    state.task_store.claim_next_queued()
    headers = {CALLBACK_SECRET_HEADER: CALLBACK_SECRET}
    body = {"task_id": task_id, "status": "done", "result_text": "bought"}

    resp = client.post("/tasks/callback", json=body, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["updated"] is True

    again = client.post("/tasks/callback", json=body, headers=headers)
    assert again.status_code == 200
    assert again.json() == {
        "ok": True,
        "task_id": task_id,
        "status": "done",
        "updated": False,
        "notified": False,
    }

    task = state.task_store.get(task_id, 42)
    assert task.status == TaskStatus.DONE
    assert task.result_text == "bought"
    assert len(state.messenger.texts_for(42)) == 1


def test_end_to_end_with_running_poller(state, forwarder) -> None:
    with TestClient(create_app(state)) as client:
        client.post("/telegram", json=_update(42, "/task buy milk"))

        deadline = time.monotonic() + 5.0
        while not forwarder.payloads and time.monotonic() < deadline:
            time.sleep(0.02)
        assert len(forwarder.payloads) == 1
        payload = forwarder.payloads[0]
        assert payload["chat_id"] == 42

        resp = client.post(
            "/tasks/callback",
            json={"task_id": payload["task_id"], "status": "done", "result_text": "bought"},
            headers={CALLBACK_SECRET_HEADER: CALLBACK_SECRET},
        )
        assert resp.status_code == 200

    task = state.task_store.get(payload["task_id"], 42)
    assert task.status == TaskStatus.DONE
    texts = state.messenger.texts_for(42)
    assert len(texts) == 3
    assert "queued" in texts[0]
    assert "sent" in texts[1]
    assert texts[2].endswith("bought")


def test_callback_fractional_id_is_400_and_task_unchanged(client, state) -> None:
    task_id = state.task_store.enqueue(42, "buy milk")
    state.task_store.claim_next_queued()

    resp = client.post(
        "/tasks/callback",
        json={"task_id": task_id + 0.9, "status": "done"},
        headers={CALLBACK_SECRET_HEADER: CALLBACK_SECRET},
    )

    assert resp.status_code == 400
    assert state.task_store.get(task_id, 42).status == TaskStatus.RUNNING


def test_callback_huge_ids_do_not_500(client) -> None:
    headers = {CALLBACK_SECRET_HEADER: CALLBACK_SECRET}

    resp = client.post("/tasks/callback", json={"task_id": 10**20, "status": "done"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["updated"] is False

    # Python's json module reads 1e400 as inf.
    resp = client.post(
        "/tasks/callback",
        content=b'{"task_id": 1e400, "status": "done"}',
        headers={**headers, "Content-Type": "application/json"},
    )
    assert resp.status_code == 400


def test_telegram_status_with_huge_id_replies_not_found(client, state) -> None:
    resp = client.post("/telegram", json=_update(42, "/status 99999999999999999999"))
    assert resp.status_code == 200
    assert state.messenger.texts_for(42) == ["Task #99999999999999999999 not found."]


def test_telegram_command_crash_is_not_a_5xx(client, state, monkeypatch: pytest.MonkeyPatch) -> None:
    def boom(*_args, **_kwargs):
        raise OverflowError("Python int too large to convert to SQLite INTEGER")

    monkeypatch.setattr(state.task_store, "list_recent", boom)

    resp = client.post("/telegram", json=_update(42, "/tasks"))

    assert resp.status_code == 200
    assert "something went wrong" in state.messenger.texts_for(42)[0]
