# src/moltbot/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (store/messenger/dispatcher/poller/LLM).
"""

from __future__ import annotations

import logging

import httpx

from ..config import get_settings
from ..connectors.telegram_client import TelegramMessenger
from ..connectors.worker_client import WorkerClient
from ..core.ports import LLMClient
from ..core.state import AppState
from ..llm.client import OpenAIChatClient
from ..llm.offline import OfflineLLMClient
from ..tasks.task_callbacks import CallbackReceiver
from ..tasks.task_dispatcher import Dispatcher
from ..tasks.task_notifier import TaskNotifier
from ..tasks.task_poller import TaskPoller
from ..tasks.task_store import TaskStore
from ..tasks.task_sweeper import StaleTaskSweeper

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, http_client: httpx.AsyncClient | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    http_client is shared by the Telegram and worker connectors when given.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    task_store = TaskStore(settings.tasks_db_path)

    messenger = TelegramMessenger(
        settings.telegram_bot_token,
        api_base=settings.telegram_api_base,
        client=http_client,
    )
    if not messenger.enabled:
        logger.warning("Telegram bot token not set; outbound messages will be dropped.")

    notifier = TaskNotifier(messenger)

    llm_client: LLMClient
    try:
        llm_client = OpenAIChatClient(settings)
    except RuntimeError:
        logger.info("No LLM API key configured; using offline echo replies.")
        llm_client = OfflineLLMClient()

    worker = WorkerClient(
        settings.external_dispatch_url,
        timeout_seconds=settings.external_timeout_seconds,
        client=http_client,
    )

    poller: TaskPoller | None = None
    if worker.configured:
        dispatcher = Dispatcher(task_store, worker, notifier, callback_url=settings.callback_url)
        sweeper = StaleTaskSweeper(
            task_store, notifier, timeout_seconds=settings.running_timeout_seconds
        )
        poller = TaskPoller(
            dispatcher,
            interval_seconds=settings.poll_interval_seconds,
            sweeper=sweeper if sweeper.enabled else None,
        )
    else:
        logger.warning("External dispatch URL not set; task poller disabled (tasks stay queued).")

    if not (settings.callback_secret or "").strip():
        logger.warning("Callback secret not set; /tasks/callback accepts unauthenticated reports.")

    return AppState(
        settings=settings,
        task_store=task_store,
        messenger=messenger,
        notifier=notifier,
        callbacks=CallbackReceiver(task_store, notifier, secret=settings.callback_secret),
        llm=llm_client,
        poller=poller,
    )
