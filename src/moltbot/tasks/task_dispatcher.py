# src/moltbot/tasks/task_dispatcher.py

from __future__ import annotations

"""
Task dispatcher.

One invocation moves at most one task from "queued" to "sent to the worker":
- claim the oldest queued task (store-level atomic claim),
- post it to the external automation service with a callback address,
- tell the owning chat what happened.

A failed forward is logged and reported, but the task stays "running":
there is no rollback to "queued" and no automatic "failed".
"""

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import anyio.to_thread as to_thread

from ..core.ports import TaskRepo
from .task_models import Task, ts_to_iso
from .task_notifier import TaskNotifier

logger = logging.getLogger(__name__)


class TaskForwarder(Protocol):
    async def post_task(self, payload: dict[str, Any]) -> None: ...


@dataclass(slots=True, frozen=True)
class DispatchOutcome:
    task: Task
    sent: bool
    error: str | None = None


def build_payload(task: Task, callback_url: str) -> dict[str, Any]:
    """JSON body the external worker receives."""
    return {
        "task_id": task.id,
        "chat_id": task.chat_id,
        "input_text": task.input_text,
        "created_at": ts_to_iso(task.created_at),
        "callback_url": callback_url,
    }


class Dispatcher:
    def __init__(
        self,
        task_store: TaskRepo,
        forwarder: TaskForwarder,
        notifier: TaskNotifier,
        *,
        callback_url: str,
    ) -> None:
        self._store = task_store
        self._forwarder = forwarder
        self._notifier = notifier
        self._callback_url = callback_url

    async def run_once(self) -> DispatchOutcome | None:
        """
        Claim and forward one task.

        Returns None when the queue is empty. Store errors propagate to the
        caller (the poller logs them); forwarding errors are captured in the outcome.
        """
        # Runs in a worker thread: BEGIN IMMEDIATE can wait out the busy timeout.
        task = await to_thread.run_sync(self._store.claim_next_queued)
        if task is None:
            return None

        payload = build_payload(task, self._callback_url)
        try:
            await self._forwarder.post_task(payload)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.error(
                "dispatch failed task_id=%s chat_id=%s: %s (task left running)",
                task.id,
                task.chat_id,
                error,
            )
            await self._notifier.dispatch_failed(task, error)
            return DispatchOutcome(task=task, sent=False, error=error)

        logger.info("Task %s sent to worker (chat_id=%s)", task.id, task.chat_id)
        await self._notifier.sent(task)
        return DispatchOutcome(task=task, sent=True)
