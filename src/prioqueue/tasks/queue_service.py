# src/prioqueue/tasks/queue_service.py

from __future__ import annotations

"""
Queue service (lifecycle controller).

Owns the admission gate and the poll loop, and exposes start/stop/pause/resume,
wait_idle and a stats snapshot. Must be used from inside a running event loop.
"""

import asyncio
import contextlib
import logging
from typing import Any

from ..core.ports import TaskHandler, TaskRepo
from .admission import AdmissionGate
from .handler_registry import HandlerRegistry
from .task_dispatcher import DEFAULT_BATCH_SIZE, TaskDispatcher
from .task_ledger import TaskLedger
from .task_models import QueueStats

logger = logging.getLogger(__name__)


class QueueService:
    """Priority task processing with bounded concurrency and retries."""

    def __init__(
        self,
        store: TaskRepo,
        handlers: HandlerRegistry | None = None,
        *,
        concurrency: int = 5,
        polling_interval: float = 5.0,
        interval: float = 1.0,
        interval_cap: int = 10,
        batch_size: int = DEFAULT_BATCH_SIZE,
        handler_timeout: float | None = None,
        recover_orphans: bool = True,
    ) -> None:
        polling_interval = float(polling_interval)
        if not polling_interval > 0:
            raise ValueError(f"polling_interval must be > 0 seconds, got {polling_interval!r}")

        self.store = store
        self.handlers = handlers if handlers is not None else HandlerRegistry()
        self.polling_interval = polling_interval
        self.recover_orphans = recover_orphans

        self.gate = AdmissionGate(
            concurrency=concurrency,
            interval=interval,
            interval_cap=interval_cap,
        )
        self.ledger = TaskLedger(store)
        self.dispatcher = TaskDispatcher(
            store,
            self.ledger,
            self.handlers,
            self.gate,
            batch_size=batch_size,
            handler_timeout=handler_timeout,
        )

        self._running = False
        self._poll_task: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(
        cls,
        store: TaskRepo,
        handlers: HandlerRegistry | None,
        settings: Any,
    ) -> QueueService:
        return cls(
            store,
            handlers,
            concurrency=settings.concurrency,
            polling_interval=settings.polling_interval_ms / 1000.0,
            interval=settings.rate_interval_ms / 1000.0,
            interval_cap=settings.rate_interval_cap,
            batch_size=settings.batch_size,
            handler_timeout=settings.handler_timeout_s,
            recover_orphans=settings.recover_orphans,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    def register_handler(self, name: str, handler: TaskHandler) -> None:
        self.handlers.register(name, handler)

    # ---- lifecycle ----

    def start(self) -> None:
        """
        Begin polling. No-op if already running.

        Before the first poll, orphaned processing rows are requeued (if enabled) and
        pending rows that already used every retry are failed. A store that cannot
        answer here is a startup failure and is raised to the caller.
        """
        if self._running:
            logger.info("Queue service already running")
            return

        stats = self.store.get_stats()
        if self.recover_orphans and stats.processing:
            self.ledger.requeue_orphans()
        self.ledger.finalize_exhausted()

        self._running = True
        self._poll_task = asyncio.get_running_loop().create_task(
            self._poll_loop(), name="prioqueue-poll"
        )
        logger.info(
            "Queue service started (concurrency=%s, polling=%.3fs, pending in store=%s)",
            self.gate.concurrency,
            self.polling_interval,
            stats.pending,
        )

    async def stop(self) -> None:
        """
        Stop polling and admissions, then wait for running executions to finish.

        Submitted tasks that were never admitted are dropped from memory; their rows
        are still pending in the store and will be picked up by the next start().
        """
        if not self._running:
            logger.info("Queue service not running")
            return

        self._running = False
        if self._poll_task is not None:
            self._poll_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._poll_task
            self._poll_task = None

        dropped = self.gate.clear()
        if dropped:
            logger.info("Dropped %s queued task(s) that were not admitted", dropped)

        await self.gate.on_idle()
        self.dispatcher.forget_all()
        logger.info("Queue service stopped")

    def pause(self) -> None:
        """Block new admissions; running executions continue and polling goes on."""
        self.gate.pause()
        logger.info("Queue paused")

    def resume(self) -> None:
        self.gate.resume()
        logger.info("Queue resumed")

    async def wait_idle(self) -> None:
        """Wait until nothing is running and nothing waits for admission. Polling continues."""
        await self.gate.on_idle()

    def get_stats(self) -> QueueStats:
        return QueueStats(
            pending=self.gate.pending,
            size=self.gate.size,
            is_paused=self.gate.is_paused,
            is_running=self._running,
        )

    # ---- poll loop ----

    async def _poll_loop(self) -> None:
        # One cycle at a time: the next poll is scheduled only after the previous
        # cycle has submitted its batch.
        while self._running:
            self.dispatcher.poll_once()
            await asyncio.sleep(self.polling_interval)
