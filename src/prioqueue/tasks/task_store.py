# src/prioqueue/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any

from .errors import TaskNotFoundError
from .task_models import StoreStats, Task, TaskStatus

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite task store.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
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
        """Shutdown hook (no persistent connections to close)."""
        logger.debug("TaskStore closed db=%s", self._db_path)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
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
                    name TEXT NOT NULL,
                    priority INTEGER NOT NULL DEFAULT 0,
                    status TEXT NOT NULL DEFAULT 'pending',
                    payload TEXT,
                    max_retries INTEGER NOT NULL DEFAULT 3,
                    retry_count INTEGER NOT NULL DEFAULT 0,
                    error_message TEXT,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    started_at REAL,
                    completed_at REAL
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

            add_col("max_retries", "INTEGER NOT NULL DEFAULT 3")
            add_col("retry_count", "INTEGER NOT NULL DEFAULT 0")
            add_col("error_message", "TEXT")
            add_col("started_at", "REAL")
            add_col("completed_at", "REAL")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_priority ON tasks(priority DESC)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(created_at)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _payload_to_str(payload: Any) -> str | None:
        if payload is None:
            return None
        try:
            return json.dumps(payload, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise ValueError(f"payload is not JSON-serializable: {e}") from e

    @staticmethod
    def _opt_float(value: Any) -> float | None:
        return float(value) if value is not None else None

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            name=str(row["name"] or ""),
            priority=int(row["priority"] or 0),
            status=TaskStatus.from_db(row["status"]),
            payload=row["payload"],
            max_retries=int(row["max_retries"] or 0),
            retry_count=int(row["retry_count"] or 0),
            error_message=row["error_message"],
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
            started_at=self._opt_float(row["started_at"]),
            completed_at=self._opt_float(row["completed_at"]),
        )

    def _execute(self, sql: str, params: tuple[Any, ...]) -> int:
        """Run a single write statement; returns the number of affected rows."""
        conn = self._get_conn()
        try:
            cur = conn.execute(sql, params)
            conn.commit()
            return int(cur.rowcount)
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

    def add_task(
        self,
        *,
        name: str,
        priority: int = 0,
        payload: Any = None,
        max_retries: int = 3,
    ) -> int:
        if not name or not name.strip():
            raise ValueError("name is required")
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise ValueError("priority must be an integer")
        if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 0:
            raise ValueError("max_retries must be a non-negative integer")

        now = time.time()
        payload_str = self._payload_to_str(payload)

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO tasks(
                    name, priority, status, payload,
                    max_retries, retry_count, created_at, updated_at
                )
                VALUES (?, ?, 'pending', ?, ?, 0, ?, ?)
                """,
                (name.strip(), priority, payload_str, max_retries, now, now),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
            logger.debug(
                "Task added id=%s name=%s priority=%s max_retries=%s",
                task_id,
                name,
                priority,
                max_retries,
            )
            return task_id
        finally:
            conn.close()

    def list_pending_tasks(self, limit: int = 10) -> list[Task]:
        """
        Return tasks eligible for dispatch, best first.

        Eligible: status = pending AND retry_count < max_retries.
        Order: priority DESC, then oldest first (id breaks equal timestamps).
        """
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM tasks
                WHERE status = 'pending'
                  AND retry_count < max_retries
                ORDER BY priority DESC, created_at ASC, id ASC
                    LIMIT ?
                """,
                (int(limit),),
            )
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def list_exhausted_tasks(self) -> list[Task]:
        """
        Pending tasks that already used every retry but were never marked failed.

        Rows with max_retries = 0 and no recorded attempt are not included.
        """
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM tasks
                WHERE status = 'pending'
                  AND retry_count > 0
                  AND retry_count >= max_retries
                ORDER BY id ASC
                """
            )
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def list_tasks(self, *, status: TaskStatus | None = None, limit: int | None = 50) -> list[Task]:
        """Newest first. limit=None returns every matching row."""
        limit = -1 if limit is None else int(limit)
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if status is None:
                cur.execute(
                    "SELECT * FROM tasks ORDER BY id DESC LIMIT ?",
                    (limit,),
                )
            else:
                cur.execute(
                    "SELECT * FROM tasks WHERE status = ? ORDER BY id DESC LIMIT ?",
                    (status.value, limit),
                )
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def get_task(self, task_id: int) -> Task | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def update_task_status(
        self,
        task_id: int,
        status: TaskStatus,
        error_message: str | None = None,
    ) -> None:
        self._execute(
            "UPDATE tasks SET status = ?, error_message = ?, updated_at = ? WHERE id = ?",
            (status.value, error_message, time.time(), int(task_id)),
        )

    def mark_task_started(self, task_id: int) -> bool:
        """
        Claim a pending task.

        Atomically transitions:
          status = pending -> status = processing

        started_at keeps its first value. Returns True if this call claimed the row.
        """
        now = time.time()
        changed = self._execute(
            """
            UPDATE tasks
            SET status = 'processing',
                started_at = COALESCE(started_at, ?),
                updated_at = ?
            WHERE id = ?
              AND status = 'pending'
            """,
            (now, now, int(task_id)),
        )
        return changed == 1

    def mark_task_completed(self, task_id: int) -> bool:
        now = time.time()
        changed = self._execute(
            """
            UPDATE tasks
            SET status = 'completed',
                completed_at = COALESCE(completed_at, ?),
                updated_at = ?
            WHERE id = ?
              AND status != 'completed'
            """,
            (now, now, int(task_id)),
        )
        return changed == 1

    def increment_retry_count(self, task_id: int, error_message: str | None = None) -> int:
        """
        Record a failed attempt: retry_count + 1, store the error, back to pending.

        Returns the new retry_count.
        """
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                UPDATE tasks
                SET retry_count = retry_count + 1,
                    status = 'pending',
                    error_message = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (error_message, time.time(), int(task_id)),
            )
            if cur.rowcount != 1:
                conn.rollback()
                raise TaskNotFoundError(task_id)
            cur.execute("SELECT retry_count FROM tasks WHERE id = ?", (int(task_id),))
            (count,) = cur.fetchone()
            conn.commit()
            return int(count)
        finally:
            conn.close()

    def mark_task_failed(self, task_id: int, error_message: str | None) -> bool:
        changed = self._execute(
            "UPDATE tasks SET status = 'failed', error_message = ?, updated_at = ? WHERE id = ?",
            (error_message, time.time(), int(task_id)),
        )
        return changed == 1

    def get_stats(self) -> StoreStats:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT
                    COUNT(*) AS total,
                    SUM(CASE WHEN status = 'pending' THEN 1 ELSE 0 END) AS pending,
                    SUM(CASE WHEN status = 'processing' THEN 1 ELSE 0 END) AS processing,
                    SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END) AS completed,
                    SUM(CASE WHEN status = 'failed' THEN 1 ELSE 0 END) AS failed
                FROM tasks
                """
            )
            row = cur.fetchone()
            # SUM() over an empty table is NULL.
            return StoreStats(
                total=int(row["total"] or 0),
                pending=int(row["pending"] or 0),
                processing=int(row["processing"] or 0),
                completed=int(row["completed"] or 0),
                failed=int(row["failed"] or 0),
            )
        finally:
            conn.close()

    def clear_all_tasks(self) -> int:
        removed = self._execute("DELETE FROM tasks", ())
        logger.info("TaskStore cleared: removed=%s", removed)
        return removed
