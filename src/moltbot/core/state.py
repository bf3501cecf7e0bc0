# src/moltbot/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..tasks.task_callbacks import CallbackReceiver
from ..tasks.task_notifier import TaskNotifier
from ..tasks.task_poller import TaskPoller
from .ports import LLMClient, OutboundMessenger, TaskRepo


@dataclass
class AppState:
    # Settings live on the state for easy access in other modules.
    settings: Any

    task_store: TaskRepo
    messenger: OutboundMessenger
    notifier: TaskNotifier
    callbacks: CallbackReceiver
    llm: LLMClient

    # None when no external worker is configured.
    poller: TaskPoller | None = None
