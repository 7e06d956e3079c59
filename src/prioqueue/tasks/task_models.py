# src/prioqueue/tasks/task_models.py

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import Any


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    pending -> processing -> completed
                          -> pending (retry) | failed (retries exhausted)
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


@dataclass(slots=True)
class Task:
    id: int
    name: str
    priority: int
    status: TaskStatus

    # Raw stored value (JSON text or an arbitrary string); decoded by the dispatcher.
    payload: str | None

    max_retries: int
    retry_count: int
    error_message: str | None

    created_at: float
    updated_at: float
    started_at: float | None = None
    completed_at: float | None = None


@dataclass(frozen=True, slots=True)
class StoreStats:
    total: int = 0
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class QueueStats:
    """Point-in-time snapshot of the in-memory side of the queue."""

    pending: int  # executions in flight
    size: int  # submitted, waiting for admission
    is_paused: bool
    is_running: bool

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)
