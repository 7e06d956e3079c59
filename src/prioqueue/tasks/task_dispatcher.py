# src/prioqueue/tasks/task_dispatcher.py

from __future__ import annotations

"""
Task dispatcher.

Bridges durable pending work and bounded in-memory execution:
- poll_once() fetches eligible pending tasks (best priority first) and submits
  them to the admission gate without waiting for them,
- execute_task() runs one admitted task: claim, resolve handler, decode payload,
  invoke, then report the outcome to the ledger.

Handler errors never escape execute_task(); they become ledger transitions.
"""

import asyncio
import functools
import inspect
import json
import logging
from typing import Any

from ..core.ports import TaskHandler, TaskRepo
from .admission import AdmissionGate
from .errors import ClaimConflictError, HandlerTimeoutError, MissingHandlerError
from .handler_registry import HandlerRegistry
from .task_ledger import TaskLedger
from .task_models import Task, TaskStatus

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10


def decode_payload(raw: Any) -> Any:
    """
    Best-effort payload decoding.

    Empty -> None; JSON text -> decoded value; anything else is passed through as-is.
    """
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return raw


def _error_text(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class TaskDispatcher:
    def __init__(
        self,
        store: TaskRepo,
        ledger: TaskLedger,
        handlers: HandlerRegistry,
        gate: AdmissionGate,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        handler_timeout: float | None = None,
    ) -> None:
        if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
            raise ValueError(f"batch_size must be an integer >= 1, got {batch_size!r}")
        if handler_timeout is not None and not handler_timeout > 0:
            raise ValueError(f"handler_timeout must be > 0 seconds, got {handler_timeout!r}")

        self._store = store
        self._ledger = ledger
        self._handlers = handlers
        self._gate = gate
        self.batch_size = batch_size
        self.handler_timeout = handler_timeout

        # Ids submitted to the gate whose execution has not finished yet.
        self._submitted: set[int] = set()

    @property
    def submitted_ids(self) -> frozenset[int]:
        return frozenset(self._submitted)

    def forget_all(self) -> None:
        self._submitted.clear()

    # ---- polling ----

    def poll_once(self) -> int:
        """
        One poll cycle. Returns how many tasks were submitted.

        Store errors are logged and treated as an empty batch; polling never raises.
        """
        try:
            # Finish exhaustions whose failed-status write was lost earlier.
            self._ledger.finalize_exhausted()
        except Exception:
            logger.exception("Finalizing exhausted tasks failed")

        try:
            tasks = self._store.list_pending_tasks(self.batch_size)
        except Exception:
            logger.exception("Polling error")
            return 0

        submitted = 0
        for task in tasks:
            # Still queued or running from an earlier cycle.
            if task.id in self._submitted:
                continue
            self._submitted.add(task.id)
            self._gate.submit(functools.partial(self._run_submitted, task))
            submitted += 1

        if submitted:
            logger.info("Found %s pending task(s)", submitted)
        return submitted

    async def _run_submitted(self, task: Task) -> None:
        try:
            await self.execute_task(task)
        finally:
            self._submitted.discard(task.id)

    # ---- execution ----

    async def execute_task(self, task: Task) -> TaskStatus | None:
        """
        Execute one task and record its outcome.

        Returns the status the task was moved to, or None when nothing was recorded
        (claim conflict or store error; the row keeps its previous state).
        """
        try:
            self._ledger.claim(task.id)
        except ClaimConflictError as e:
            logger.error("Task #%s not executed: %s", task.id, e)
            return None
        except Exception:
            logger.exception("Claim failed task_id=%s; left for a later poll", task.id)
            return None

        logger.info("Processing task #%s (%s, priority: %s)", task.id, task.name, task.priority)

        try:
            handler = self._handlers.get(task.name)
            if handler is None:
                raise MissingHandlerError(task.name)
            await self._invoke(handler, decode_payload(task.payload), task)
        except Exception as e:
            return self._record_failure(task, _error_text(e))

        try:
            self._ledger.record_success(task.id)
        except Exception:
            logger.exception("Recording success failed task_id=%s", task.id)
            return None

        logger.info("Task #%s completed successfully", task.id)
        return TaskStatus.COMPLETED

    async def _invoke(self, handler: TaskHandler, payload: Any, task: Task) -> None:
        call = self._call_handler(handler, payload, task)
        if self.handler_timeout is None:
            await call
            return
        try:
            await asyncio.wait_for(call, timeout=self.handler_timeout)
        except TimeoutError as e:
            raise HandlerTimeoutError(self.handler_timeout) from e

    @staticmethod
    async def _call_handler(handler: TaskHandler, payload: Any, task: Task) -> None:
        if inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(
            getattr(handler, "__call__", None)
        ):
            await handler(payload, task)
            return
        # Plain functions run off the event loop so they cannot stall other workers.
        result = await asyncio.to_thread(handler, payload, task)
        if inspect.isawaitable(result):
            await result

    def _record_failure(self, task: Task, message: str) -> TaskStatus | None:
        logger.warning("Task #%s failed: %s", task.id, message)
        try:
            retry_count = self._ledger.record_failure(task.id, message)
            if self._ledger.should_exhaust(task, retry_count):
                self._ledger.exhaust_retries(task.id, message)
                logger.error(
                    "Task #%s permanently failed after %s retries", task.id, retry_count
                )
                return TaskStatus.FAILED
        except Exception:
            logger.exception("Recording failure failed task_id=%s", task.id)
            return None

        logger.info("Task #%s queued for retry (%s/%s)", task.id, retry_count, task.max_retries)
        return TaskStatus.PENDING
