# src/moltbot/tasks/task_notifier.py

from __future__ import annotations

import logging

from ..core.ports import OutboundMessenger
from .task_models import Task

logger = logging.getLogger(__name__)

# Telegram rejects messages longer than 4096 characters.
MAX_MESSAGE_CHARS = 4000


def _clip(text: str, limit: int = MAX_MESSAGE_CHARS) -> str:
    text = text or ""
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def format_queued(task_id: int) -> str:
    return f"Task #{task_id} queued. I'll let you know when it is sent."


def format_sent(task: Task) -> str:
    return f"Task #{task.id} sent to the worker."


def format_dispatch_failed(task: Task, error: str) -> str:
    return (
        f"Task #{task.id} could not be delivered to the worker ({error}). "
        "It stays in the running state."
    )


def format_done(task: Task) -> str:
    result = (task.result_text or "").strip() or "(no result text)"
    return f"Task #{task.id} done:\n{result}"


def format_failed(task: Task) -> str:
    error = (task.error_text or "").strip() or "unknown error"
    return f"Task #{task.id} failed:\n{error}"


class TaskNotifier:
    """
    Sends short lifecycle messages to the chat that owns a task.

    Delivery is best-effort: failures are logged, never retried and never
    raised, so they cannot affect task state.
    """

    def __init__(self, messenger: OutboundMessenger) -> None:
        self._messenger = messenger

    async def notify(self, chat_id: int, text: str) -> bool:
        try:
            await self._messenger.send_text(chat_id=chat_id, text=_clip(text))
            return True
        except Exception:
            logger.exception("notify failed chat_id=%s", chat_id)
            return False

    async def sent(self, task: Task) -> bool:
        return await self.notify(task.chat_id, format_sent(task))

    async def dispatch_failed(self, task: Task, error: str) -> bool:
        return await self.notify(task.chat_id, format_dispatch_failed(task, error))

    async def done(self, task: Task) -> bool:
        return await self.notify(task.chat_id, format_done(task))

    async def failed(self, task: Task) -> bool:
        return await self.notify(task.chat_id, format_failed(task))
