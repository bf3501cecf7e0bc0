# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from moltbot.core.state import AppState
from moltbot.tasks.task_callbacks import CallbackReceiver
from moltbot.tasks.task_dispatcher import Dispatcher
from moltbot.tasks.task_notifier import TaskNotifier
from moltbot.tasks.task_poller import TaskPoller
from moltbot.tasks.task_store import TaskStore

from .fakes import FakeForwarder, FakeLLMClient, FakeMessenger

CALLBACK_SECRET = "s3cret"


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="moltbot-test",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        telegram_webhook_secret=None,
        callback_secret=CALLBACK_SECRET,
        callback_url="http://bot.test/tasks/callback",
        llm_system_prompt="test prompt",
        poll_interval_seconds=0.01,
        running_timeout_seconds=0.0,
        recent_tasks_limit=10,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def messenger() -> FakeMessenger:
    return FakeMessenger()


@pytest.fixture()
def notifier(messenger: FakeMessenger) -> TaskNotifier:
    return TaskNotifier(messenger)


@pytest.fixture()
def forwarder() -> FakeForwarder:
    return FakeForwarder()


@pytest.fixture()
def dispatcher(
    store: TaskStore, forwarder: FakeForwarder, notifier: TaskNotifier, settings: SimpleNamespace
) -> Dispatcher:
    return Dispatcher(store, forwarder, notifier, callback_url=settings.callback_url)


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    store: TaskStore,
    messenger: FakeMessenger,
    notifier: TaskNotifier,
    dispatcher: Dispatcher,
) -> AppState:
    """
    AppState wired with deterministic fakes.

    NOTE: We keep the real SQLite TaskStore here because its correctness is
    part of what we want to test.
    """
    return AppState(
        settings=settings,
        task_store=store,
        messenger=messenger,
        notifier=notifier,
        callbacks=CallbackReceiver(store, notifier, secret=settings.callback_secret),
        llm=FakeLLMClient(next_text="llm says hi"),
        poller=TaskPoller(dispatcher, interval_seconds=settings.poll_interval_seconds),
    )
