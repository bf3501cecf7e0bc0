# tests/test_task_dispatcher.py

from __future__ import annotations

import asyncio
import sqlite3

import pytest

from moltbot.connectors.worker_client import WorkerDispatchError
from moltbot.tasks.task_dispatcher import Dispatcher
from moltbot.tasks.task_models import TaskStatus
from moltbot.tasks.task_store import TaskStore

from .fakes import FakeForwarder, FakeMessenger


@pytest.mark.asyncio
async def test_run_once_on_empty_queue_is_noop(
    dispatcher: Dispatcher, forwarder: FakeForwarder, messenger: FakeMessenger
) -> None:
    assert await dispatcher.run_once() is None
    assert forwarder.payloads == []
    assert messenger.sent == []


@pytest.mark.asyncio
async def test_run_once_forwards_payload_and_notifies(
    store: TaskStore, dispatcher: Dispatcher, forwarder: FakeForwarder, messenger: FakeMessenger
) -> None:
    task_id = store.enqueue(42, "buy milk")

    outcome = await dispatcher.run_once()

    assert outcome is not None
    assert outcome.sent is True
    assert outcome.task.id == task_id

    assert len(forwarder.payloads) == 1
    payload = forwarder.payloads[0]
    assert payload["task_id"] == task_id
    assert payload["chat_id"] == 42
    assert payload["input_text"] == "buy milk"
    assert payload["callback_url"] == "http://bot.test/tasks/callback"
    assert isinstance(payload["created_at"], str) and payload["created_at"].endswith("+00:00")

    task = store.get(task_id, 42)
    assert task is not None
    assert task.status == TaskStatus.RUNNING

    texts = messenger.texts_for(42)
    assert len(texts) == 1
    assert f"#{task_id}" in texts[0] and "sent" in texts[0]


@pytest.mark.asyncio
async def test_one_task_per_invocation(
    store: TaskStore, dispatcher: Dispatcher, forwarder: FakeForwarder
) -> None:
    a = store.enqueue(1, "A")
    b = store.enqueue(1, "B")

    await dispatcher.run_once()
    assert [p["task_id"] for p in forwarder.payloads] == [a]

    await dispatcher.run_once()
    assert [p["task_id"] for p in forwarder.payloads] == [a, b]


@pytest.mark.asyncio
async def test_forward_failure_leaves_task_running(
    store: TaskStore, dispatcher: Dispatcher, forwarder: FakeForwarder, messenger: FakeMessenger
) -> None:
    forwarder.error = WorkerDispatchError("HTTP 502")
    task_id = store.enqueue(9, "do it")

    outcome = await dispatcher.run_once()

    assert outcome is not None
    assert outcome.sent is False
    assert outcome.error == "HTTP 502"

    task = store.get(task_id, 9)
    assert task is not None
    assert task.status == TaskStatus.RUNNING
    assert task.error_text is None

    # Not re-queued: the next run finds nothing.
    forwarder.error = None
    assert await dispatcher.run_once() is None

    assert any("could not be delivered" in t for t in messenger.texts_for(9))


@pytest.mark.asyncio
async def test_notify_failure_does_not_affect_dispatch(
    store: TaskStore, dispatcher: Dispatcher, messenger: FakeMessenger
) -> None:
    messenger.fail = True
    task_id = store.enqueue(9, "do it")

    outcome = await dispatcher.run_once()

    assert outcome is not None and outcome.sent is True
    task = store.get(task_id, 9)
    assert task is not None and task.status == TaskStatus.RUNNING


@pytest.mark.asyncio
async def test_claim_waiting_on_writer_does_not_block_event_loop(
    settings, store: TaskStore, dispatcher: Dispatcher, forwarder: FakeForwarder
) -> None:
    task_id = store.enqueue(1, "behind a lock")

    # Another process holding the write lock.
    blocker = sqlite3.connect(settings.tasks_db_path, isolation_level=None)
    try:
        blocker.execute("BEGIN IMMEDIATE")
        pending = asyncio.create_task(dispatcher.run_once())
        await asyncio.sleep(0.1)
        assert not pending.done()
        blocker.execute("COMMIT")
    finally:
        blocker.close()

    outcome = await asyncio.wait_for(pending, timeout=10)
    assert outcome is not None and outcome.task.id == task_id
    assert [p["task_id"] for p in forwarder.payloads] == [task_id]
