# src/prioqueue/tasks/task_api.py

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from ..core.ports import TaskRepo
from .queue_service import QueueService
from .task_models import Task

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3


def enqueue_task(
    store: TaskRepo,
    name: str,
    *,
    priority: int = 0,
    payload: Any = None,
    max_retries: int | None = None,
    settings: Any = None,
) -> int:
    """
    Convenience helper: add a task with the configured default retry limit.
    """
    if max_retries is None:
        max_retries = int(getattr(settings, "default_max_retries", DEFAULT_MAX_RETRIES))

    task_id = store.add_task(
        name=name,
        priority=int(priority),
        payload=payload,
        max_retries=max_retries,
    )
    logger.info("Task #%s enqueued (%s, priority: %s)", task_id, name, priority)
    return task_id


def queue_snapshot(store: TaskRepo, service: QueueService | None) -> dict[str, Any]:
    """Store counts plus in-memory queue stats (not transactionally consistent)."""
    out: dict[str, Any] = {"store": store.get_stats().as_dict()}
    if service is not None:
        out["queue"] = service.get_stats().as_dict()
    return out


def _fmt_ts(ts: float | None) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M:%S")


def format_task(task: Task, *, verbose: bool = False) -> str:
    line = (
        f"#{task.id} {task.name} [{task.status.value}] "
        f"priority={task.priority} retries={task.retry_count}/{task.max_retries}"
    )
    if task.error_message:
        line += f" error={task.error_message!r}"
    if not verbose:
        return line
    return "\n".join(
        [
            line,
            f"  payload:   {task.payload if task.payload is not None else '-'}",
            f"  created:   {_fmt_ts(task.created_at)}",
            f"  updated:   {_fmt_ts(task.updated_at)}",
            f"  started:   {_fmt_ts(task.started_at)}",
            f"  completed: {_fmt_ts(task.completed_at)}",
        ]
    )
