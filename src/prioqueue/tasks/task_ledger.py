# src/prioqueue/tasks/task_ledger.py

from __future__ import annotations

"""
Retry/status ledger.

The only component that moves a task between statuses. The store exposes raw
field updates; the ledger decides which of them are legal for an outcome.

    claim               pending    -> processing
    record_success      processing -> completed
    record_failure      processing -> pending (retry_count + 1)
    exhaust_retries     pending    -> failed
    requeue_orphans     processing -> pending (startup only, no retry counted)
    finalize_exhausted  pending    -> failed  (retry_count already at max_retries)

Completed and failed tasks never transition again.
"""

import logging

from ..core.ports import TaskRepo
from .errors import ClaimConflictError, IllegalTransitionError, TaskNotFoundError
from .task_models import Task, TaskStatus

logger = logging.getLogger(__name__)


class TaskLedger:
    def __init__(self, store: TaskRepo) -> None:
        self._store = store

    def _require(self, task_id: int) -> Task:
        task = self._store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def claim(self, task_id: int) -> None:
        """
        Move a pending task to processing (started_at is set on the first claim only).

        A task that is not pending here means two executions raced for it, so the
        conflict is raised instead of ignored.
        """
        if self._store.mark_task_started(task_id):
            logger.debug("Task %s claimed", task_id)
            return

        task = self._require(task_id)
        raise ClaimConflictError(f"task {task_id} is {task.status.value}, expected pending")

    def record_success(self, task_id: int) -> bool:
        """Mark completed. Returns False (and changes nothing) if it was already completed."""
        task = self._require(task_id)
        if task.status == TaskStatus.COMPLETED:
            logger.debug("Task %s already completed; success not recorded again", task_id)
            return False
        if task.status != TaskStatus.PROCESSING:
            raise IllegalTransitionError(f"task {task_id} is {task.status.value}, cannot complete")

        changed = self._store.mark_task_completed(task_id)
        logger.debug("Task %s -> completed", task_id)
        return changed

    def record_failure(self, task_id: int, error_message: str) -> int:
        """
        Record one failed attempt and put the task back to pending.

        Counter, message and status change in a single store update.
        Returns the new retry_count.
        """
        task = self._require(task_id)
        if task.status.is_terminal:
            raise IllegalTransitionError(
                f"task {task_id} is {task.status.value}, cannot record a failure"
            )
        count = self._store.increment_retry_count(task_id, error_message)
        logger.debug("Task %s failure recorded retry_count=%s", task_id, count)
        return count

    def exhaust_retries(self, task_id: int, error_message: str) -> None:
        task = self._require(task_id)
        if task.status.is_terminal:
            raise IllegalTransitionError(f"task {task_id} is {task.status.value}, cannot fail it")
        self._store.mark_task_failed(task_id, error_message)
        logger.debug("Task %s -> failed", task_id)

    @staticmethod
    def should_exhaust(task: Task, retry_count: int) -> bool:
        return retry_count >= task.max_retries

    def requeue_orphans(self) -> int:
        """
        Put tasks left in processing by a previous run back to pending.

        Only valid while nothing is executing (before the dispatcher starts). No
        failure is counted and the last error message is kept.
        """
        orphans = self._store.list_tasks(status=TaskStatus.PROCESSING, limit=None)
        for task in orphans:
            self._store.update_task_status(task.id, TaskStatus.PENDING, task.error_message)
            logger.warning("Task %s was left in processing; requeued", task.id)
        return len(orphans)

    def finalize_exhausted(self) -> int:
        """
        Fail pending tasks whose last failure was counted but never finalized.

        This happens when exhaust_retries hit a store error after record_failure
        succeeded. The poll filter never selects such rows, so they are failed here
        with their last error message. Returns how many were finalized.
        """
        stranded = self._store.list_exhausted_tasks()
        for task in stranded:
            self.exhaust_retries(task.id, task.error_message or "retries exhausted")
            logger.warning(
                "Task %s had exhausted its retries (%s/%s); marked failed",
                task.id,
                task.retry_count,
                task.max_retries,
            )
        return len(stranded)
