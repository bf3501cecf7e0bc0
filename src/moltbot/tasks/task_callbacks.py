# src/moltbot/tasks/task_callbacks.py

from __future__ import annotations

"""
Callback receiver.

Reconciles an out-of-band report from the external worker into the task store:
- "done"   -> complete + notify with the result text
- "failed" -> fail + notify with the error text
- anything else -> progress update (result_text only, no status change, no notify)

The chat is notified only by the call that actually performed the terminal
transition, so a repeated terminal callback is acknowledged without a second message.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Any

import anyio.to_thread as to_thread

from ..core.ports import TaskRepo
from .task_models import TaskStatus, is_valid_task_id, parse_task_id
from .task_notifier import TaskNotifier

logger = logging.getLogger(__name__)

CALLBACK_SECRET_HEADER = "X-Callback-Secret"


class CallbackError(Exception):
    """Request rejected before touching the store."""

    status_code = 400


class CallbackUnauthorized(CallbackError):
    status_code = 401


@dataclass(slots=True, frozen=True)
class CallbackReport:
    task_id: int
    status: str
    result_text: str | None = None
    error_text: str | None = None


@dataclass(slots=True, frozen=True)
class CallbackResult:
    task_id: int
    status: str
    updated: bool
    notified: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": True,
            "task_id": self.task_id,
            "status": self.status,
            "updated": self.updated,
            "notified": self.notified,
        }


def check_secret(configured: str | None, presented: str | None) -> None:
    """No-op when no secret is configured; otherwise raise CallbackUnauthorized on mismatch."""
    if not configured:
        return
    if presented is None or not secrets.compare_digest(
        presented.encode("utf-8"), configured.encode("utf-8")
    ):
        raise CallbackUnauthorized("invalid callback secret")


def _opt_text(body: dict[str, Any], key: str) -> str | None:
    val = body.get(key)
    if val is None:
        return None
    return val if isinstance(val, str) else str(val)


def parse_report(body: Any) -> CallbackReport:
    if not isinstance(body, dict):
        raise CallbackError("body must be a JSON object")

    raw_id = body.get("task_id")
    if raw_id is None or raw_id == "":
        raise CallbackError("task_id is required")
    try:
        task_id = parse_task_id(raw_id)
    except ValueError:
        raise CallbackError("task_id must be an integer") from None

    status = str(body.get("status") or "").strip().lower()

    return CallbackReport(
        task_id=task_id,
        status=status,
        result_text=_opt_text(body, "result_text"),
        error_text=_opt_text(body, "error_text"),
    )


class CallbackReceiver:
    def __init__(
        self,
        task_store: TaskRepo,
        notifier: TaskNotifier,
        *,
        secret: str | None = None,
    ) -> None:
        self._store = task_store
        self._notifier = notifier
        self._secret = (secret or "").strip() or None

    @property
    def secret_required(self) -> bool:
        return self._secret is not None

    async def handle(self, body: Any, *, presented_secret: str | None) -> CallbackResult:
        """
        Authenticate, validate and apply a callback.

        Raises CallbackUnauthorized / CallbackError before any mutation.
        Store errors propagate unchanged.
        """
        try:
            check_secret(self._secret, presented_secret)
        except CallbackUnauthorized:
            logger.warning("Callback rejected: bad or missing %s", CALLBACK_SECRET_HEADER)
            raise

        report = parse_report(body)
        return await self.apply(report)

    async def apply(self, report: CallbackReport) -> CallbackResult:
        if not is_valid_task_id(report.task_id):
            # No such row can exist; same answer as an unknown id.
            logger.warning("Callback for out-of-range task_id=%s ignored", report.task_id)
            return CallbackResult(task_id=report.task_id, status=report.status, updated=False)

        if report.status == TaskStatus.DONE:
            task = await to_thread.run_sync(
                self._store.complete, report.task_id, report.result_text or ""
            )
            if task is None:
                return CallbackResult(task_id=report.task_id, status=report.status, updated=False)
            notified = await self._notifier.done(task)
            return CallbackResult(
                task_id=task.id, status=task.status.value, updated=True, notified=notified
            )

        if report.status == TaskStatus.FAILED:
            task = await to_thread.run_sync(
                self._store.fail, report.task_id, report.error_text or "unknown error"
            )
            if task is None:
                return CallbackResult(task_id=report.task_id, status=report.status, updated=False)
            notified = await self._notifier.failed(task)
            return CallbackResult(
                task_id=task.id, status=task.status.value, updated=True, notified=notified
            )

        task = await to_thread.run_sync(
            self._store.update_progress, report.task_id, report.result_text
        )
        logger.debug("Progress callback task_id=%s status=%r", report.task_id, report.status)
        if task is None:
            return CallbackResult(task_id=report.task_id, status=report.status, updated=False)
        return CallbackResult(task_id=task.id, status=task.status.value, updated=True)
