# src/moltbot/tasks/task_sweeper.py

from __future__ import annotations

import logging
import time

import anyio.to_thread as to_thread

from ..core.ports import TaskRepo
from .task_notifier import TaskNotifier

logger = logging.getLogger(__name__)

TIMEOUT_ERROR_TEXT = "timed out waiting for worker callback"


class StaleTaskSweeper:
    """
    Fails tasks that stayed "running" longer than timeout_seconds.

    A timeout of 0 (or less) disables the sweep, which leaves tasks without a
    callback running forever.
    """

    def __init__(
        self,
        task_store: TaskRepo,
        notifier: TaskNotifier,
        *,
        timeout_seconds: float,
        batch_limit: int = 32,
    ) -> None:
        self._store = task_store
        self._notifier = notifier
        self._timeout = float(timeout_seconds)
        self._batch_limit = int(batch_limit)

    @property
    def enabled(self) -> bool:
        return self._timeout > 0

    async def sweep_once(self, *, now_ts: float | None = None) -> list[int]:
        """Returns ids of tasks moved to failed by this sweep."""
        if not self.enabled:
            return []

        if now_ts is None:
            now_ts = time.time()

        cutoff = now_ts - self._timeout
        stale = await to_thread.run_sync(
            lambda: self._store.list_stale_running(older_than_ts=cutoff, limit=self._batch_limit)
        )
        failed: list[int] = []
        for task in stale:
            # A callback may land between the query and this update; fail() is then a no-op.
            updated = await to_thread.run_sync(self._store.fail, task.id, TIMEOUT_ERROR_TEXT)
            if updated is None:
                continue
            logger.warning("Task %s timed out after %.0fs without callback", task.id, self._timeout)
            failed.append(task.id)
            await self._notifier.failed(updated)
        return failed
