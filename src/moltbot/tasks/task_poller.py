# src/moltbot/tasks/task_poller.py

from __future__ import annotations

"""
Task poller.

A fixed-interval timer that fires the dispatcher. Firings do not wait for
each other; instead a reentrancy guard skips a firing while the previous one
is still in flight, so at most one dispatch runs per process.

The guard is in-process only. Several processes polling the same store may
dispatch different tasks at the same time; the store's atomic claim keeps
them from taking the same one.
"""

import asyncio
import logging

from .task_dispatcher import Dispatcher
from .task_sweeper import StaleTaskSweeper

logger = logging.getLogger(__name__)


class TaskPoller:
    def __init__(
        self,
        dispatcher: Dispatcher,
        *,
        interval_seconds: float = 5.0,
        sweeper: StaleTaskSweeper | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._sweeper = sweeper
        self._interval = max(0.01, float(interval_seconds))

        self._guard = asyncio.Lock()
        self._timer: asyncio.Task[None] | None = None
        self._inflight: set[asyncio.Task[bool]] = set()

        self.fired = 0
        self.skipped = 0

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def busy(self) -> bool:
        return self._guard.locked()

    async def fire(self) -> bool:
        """
        Run one dispatch step unless one is already in flight.

        Returns False when the firing was skipped. Never raises for task-level errors.
        """
        # locked() and the acquire below run without an await in between,
        # so no other firing can slip in on this event loop.
        if self._guard.locked():
            self.skipped += 1
            logger.debug("Poller firing skipped: previous dispatch still in flight")
            return False

        async with self._guard:
            self.fired += 1
            if self._sweeper is not None:
                try:
                    await self._sweeper.sweep_once()
                except Exception:
                    logger.exception("stale task sweep failed")
            try:
                await self._dispatcher.run_once()
            except Exception:
                logger.exception("dispatcher run_once failed")
        return True

    def _spawn(self) -> None:
        t = asyncio.create_task(self.fire())
        self._inflight.add(t)
        t.add_done_callback(self._inflight.discard)

    async def run_forever(self) -> None:
        """Timer loop. To stop it, cancel the coroutine/task (or call stop())."""
        logger.info("Task poller started (interval=%.2fs)", self._interval)
        try:
            while True:
                self._spawn()
                await asyncio.sleep(self._interval)
        finally:
            logger.info("Task poller stopped")

    def start(self) -> None:
        if self.running:
            return
        self._timer = asyncio.create_task(self.run_forever())

    async def stop(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass

        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
