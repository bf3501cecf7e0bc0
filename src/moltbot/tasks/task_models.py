# src/moltbot/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum

DISPATCH_KIND = "dispatch-to-external"

# SQLite INTEGER PRIMARY KEY range.
MAX_TASK_ID = 2**63 - 1


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    queued -> running -> done | failed

    Transitions are monotonic: once a task is terminal it never moves again.
    """

    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.DONE, TaskStatus.FAILED)

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.QUEUED
        return cls(raw)


TERMINAL_STATUSES = (TaskStatus.DONE, TaskStatus.FAILED)


def parse_task_id(raw: object) -> int:
    """
    Strict task id coercion.

    Accepts ints, integral floats (JSON may encode 7 as 7.0) and digit-only strings.
    Anything else raises ValueError: bools, fractions, inf/nan, signs, exponents.
    The result may still be out of range; see is_valid_task_id().
    """
    if isinstance(raw, bool):
        raise ValueError(f"not a task id: {raw!r}")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if not raw.is_integer():
            raise ValueError(f"not a task id: {raw!r}")
        return int(raw)
    if isinstance(raw, str):
        s = raw.strip()
        if s.isascii() and s.isdigit():
            return int(s)
    raise ValueError(f"not a task id: {raw!r}")


def is_valid_task_id(task_id: int) -> bool:
    return 1 <= task_id <= MAX_TASK_ID


def ts_to_iso(ts: float | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


@dataclass(slots=True)
class Task:
    id: int
    chat_id: int
    kind: str
    input_text: str
    status: TaskStatus

    created_at: float
    updated_at: float
    started_at: float | None = None
    finished_at: float | None = None

    result_text: str | None = None
    error_text: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "chat_id": self.chat_id,
            "kind": self.kind,
            "input_text": self.input_text,
            "status": self.status.value,
            "result_text": self.result_text,
            "error_text": self.error_text,
            "created_at": ts_to_iso(self.created_at),
            "started_at": ts_to_iso(self.started_at),
            "finished_at": ts_to_iso(self.finished_at),
        }
