# src/prioqueue/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The ledger and dispatcher depend on Protocols instead of concrete implementations.
This keeps the storage backend swappable and makes testing easier.
"""

from typing import Any, Awaitable, Callable, Protocol

from ..tasks.task_models import StoreStats, Task, TaskStatus

TaskHandler = Callable[[Any, Task], Awaitable[None] | None]
# (payload, task) -> None. Raising means the attempt failed; any return value is ignored.


class TaskRepo(Protocol):
    """Durable task record consumed by the ledger and the dispatcher."""

    # Creation
    def add_task(
            self,
            *,
            name: str,
            priority: int = 0,
            payload: Any = None,
            max_retries: int = 3,
    ) -> int: ...

    # Polling / lookup
    def list_pending_tasks(self, limit: int = 10) -> list[Task]: ...
    def get_task(self, task_id: int) -> Task | None: ...
    def list_tasks(self, *, status: TaskStatus | None = None, limit: int | None = 50) -> list[Task]: ...
    def list_exhausted_tasks(self) -> list[Task]: ...

    # Raw field updates (status rules live in TaskLedger)
    def update_task_status(
            self,
            task_id: int,
            status: TaskStatus,
            error_message: str | None = None,
    ) -> None: ...
    def mark_task_started(self, task_id: int) -> bool: ...
    def mark_task_completed(self, task_id: int) -> bool: ...
    def increment_retry_count(self, task_id: int, error_message: str | None = None) -> int: ...
    def mark_task_failed(self, task_id: int, error_message: str | None) -> bool: ...

    # Aggregates / maintenance
    def get_stats(self) -> StoreStats: ...
    def clear_all_tasks(self) -> int: ...
    def close(self) -> None: ...
