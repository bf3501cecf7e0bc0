# src/moltbot/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from pathlib import Path

from .task_models import DISPATCH_KIND, Task, TaskStatus

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite task store.

    The schema is simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection

    Claiming:
    - SQLite has no SELECT ... FOR UPDATE SKIP LOCKED, so claim_next_queued()
      is a compare-and-set on the status column inside a BEGIN IMMEDIATE
      transaction. The write lock serializes claimers across threads and
      processes; the status check makes a lost race a retry, never a double claim.
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        # Autocommit mode: transactions are opened explicitly where needed.
        conn = sqlite3.connect(str(self._db_path), timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    chat_id INTEGER NOT NULL,
                    kind TEXT NOT NULL DEFAULT 'dispatch-to-external',
                    input_text TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'queued',
                    result_text TEXT,
                    error_text TEXT,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    started_at REAL,
                    finished_at REAL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("kind", "TEXT NOT NULL DEFAULT 'dispatch-to-external'")
            add_col("result_text", "TEXT")
            add_col("error_text", "TEXT")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")
            add_col("started_at", "REAL")
            add_col("finished_at", "REAL")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status_id ON tasks(status, id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_chat ON tasks(chat_id, created_at)")
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            chat_id=int(row["chat_id"]),
            kind=str(row["kind"] or DISPATCH_KIND),
            input_text=str(row["input_text"] or ""),
            status=TaskStatus.from_db(row["status"]),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
            started_at=float(row["started_at"]) if row["started_at"] is not None else None,
            finished_at=float(row["finished_at"]) if row["finished_at"] is not None else None,
            result_text=row["result_text"],
            error_text=row["error_text"],
        )

    def _fetch_by_id(self, conn: sqlite3.Connection, task_id: int) -> Task | None:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
        return self._row_to_task(row) if row else None

    def _finish(
        self,
        task_id: int,
        status: TaskStatus,
        *,
        result_text: str | None,
        error_text: str | None,
    ) -> Task | None:
        """
        Move a non-terminal task into a terminal status.

        Returns the updated Task, or None when the task is unknown or already
        terminal (the UPDATE matches no row).
        """
        now = time.time()
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE tasks
                SET status = ?,
                    result_text = ?,
                    error_text = ?,
                    finished_at = ?,
                    updated_at = ?
                WHERE id = ?
                  AND status NOT IN ('done','failed')
                """,
                (status.value, result_text, error_text, now, now, int(task_id)),
            )
            if cur.rowcount != 1:
                existing = self._fetch_by_id(conn, task_id)
                if existing is None:
                    logger.warning("Task %s not found; %s ignored", task_id, status.value)
                else:
                    logger.warning(
                        "Task %s already %s; %s ignored", task_id, existing.status.value, status.value
                    )
                return None
            logger.info("Task %s -> %s", task_id, status.value)
            return self._fetch_by_id(conn, task_id)
        finally:
            conn.close()

    # ---- public API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def enqueue(self, chat_id: int, input_text: str, *, kind: str = DISPATCH_KIND) -> int:
        if not input_text or not input_text.strip():
            raise ValueError("input_text is required")
        if not kind or not kind.strip():
            raise ValueError("kind is required")

        now = time.time()
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO tasks(chat_id, kind, input_text, status, created_at, updated_at)
                VALUES (?, ?, ?, 'queued', ?, ?)
                """,
                (int(chat_id), kind.strip(), input_text, now, now),
            )
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
            logger.debug("Task enqueued id=%s chat_id=%s kind=%s", task_id, chat_id, kind)
            return task_id
        finally:
            conn.close()

    def claim_next_queued(self) -> Task | None:
        """
        Atomically take the oldest queued task and mark it running.

        Returns None when nothing is queued. Concurrent callers (threads or
        processes sharing the DB file) never receive the same task: BEGIN IMMEDIATE
        holds the write lock from the SELECT through the UPDATE, and other
        claimers wait on busy_timeout until it is released.
        """
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = conn.execute(
                    "SELECT id FROM tasks WHERE status = 'queued' ORDER BY id ASC LIMIT 1"
                ).fetchone()
                if row is None:
                    conn.execute("COMMIT")
                    return None

                task_id = int(row["id"])
                now = time.time()
                conn.execute(
                    """
                    UPDATE tasks
                    SET status = 'running', started_at = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (now, now, task_id),
                )
                task = self._fetch_by_id(conn, task_id)
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise

            logger.info("Task %s claimed", task_id)
            return task
        finally:
            conn.close()

    def complete(self, task_id: int, result_text: str) -> Task | None:
        return self._finish(task_id, TaskStatus.DONE, result_text=result_text, error_text=None)

    def fail(self, task_id: int, error_text: str) -> Task | None:
        return self._finish(task_id, TaskStatus.FAILED, result_text=None, error_text=error_text)

    def update_progress(self, task_id: int, result_text: str | None) -> Task | None:
        """
        Store the latest intermediate result without changing status.

        Terminal tasks are left untouched (result_text is set exactly once there).
        """
        now = time.time()
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE tasks
                SET result_text = ?, updated_at = ?
                WHERE id = ?
                  AND status NOT IN ('done','failed')
                """,
                (result_text, now, int(task_id)),
            )
            if cur.rowcount != 1:
                logger.debug("Progress for task %s ignored (unknown or terminal)", task_id)
                return None
            return self._fetch_by_id(conn, task_id)
        finally:
            conn.close()

    def get(self, task_id: int, chat_id: int) -> Task | None:
        """Scoped lookup: a task owned by another chat is reported as missing."""
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM tasks WHERE id = ? AND chat_id = ?",
                (int(task_id), int(chat_id)),
            ).fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def list_recent(self, chat_id: int, limit: int = 10) -> list[Task]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT *
                FROM tasks
                WHERE chat_id = ?
                ORDER BY created_at DESC, id DESC
                    LIMIT ?
                """,
                (int(chat_id), max(0, int(limit))),
            ).fetchall()
            return [self._row_to_task(r) for r in rows]
        finally:
            conn.close()

    def list_stale_running(self, *, older_than_ts: float, limit: int = 32) -> list[Task]:
        """Running tasks whose started_at is older than older_than_ts (oldest first)."""
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT *
                FROM tasks
                WHERE status = 'running'
                  AND started_at IS NOT NULL
                  AND started_at <= ?
                ORDER BY started_at ASC
                    LIMIT ?
                """,
                (float(older_than_ts), int(limit)),
            ).fetchall()
            return [self._row_to_task(r) for r in rows]
        finally:
            conn.close()

    def counts_by_status(self) -> dict[str, int]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT status, COUNT(*) AS n FROM tasks GROUP BY status").fetchall()
            return {str(r["status"]): int(r["n"]) for r in rows}
        finally:
            conn.close()
