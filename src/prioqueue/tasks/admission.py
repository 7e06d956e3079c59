# src/prioqueue/tasks/admission.py

from __future__ import annotations

"""
Admission gate.

Bounded, rate-limited FIFO runner for coroutine jobs:
- at most `concurrency` jobs run at the same time,
- at most `interval_cap` jobs are admitted per fixed window of `interval` seconds,
- pause() stops admission only; jobs already running continue.

All state is touched from the event loop thread only.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[None]]


class AdmissionGate:
    def __init__(
        self,
        *,
        concurrency: int = 5,
        interval: float = 1.0,
        interval_cap: int = 10,
    ) -> None:
        if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
            raise ValueError(f"concurrency must be an integer >= 1, got {concurrency!r}")
        if isinstance(interval_cap, bool) or not isinstance(interval_cap, int) or interval_cap < 1:
            raise ValueError(f"interval_cap must be an integer >= 1, got {interval_cap!r}")
        interval = float(interval)
        if not interval > 0:
            raise ValueError(f"interval must be > 0 seconds, got {interval!r}")

        self.concurrency = concurrency
        self.interval = interval
        self.interval_cap = interval_cap

        self._queue: deque[Job] = deque()
        self._running: set[asyncio.Task[None]] = set()
        self._paused = False

        self._window_start: float | None = None
        self._window_count = 0
        self._wakeup: asyncio.TimerHandle | None = None

        self._idle_waiters: list[asyncio.Future[None]] = []

    # ---- introspection ----

    @property
    def pending(self) -> int:
        """Jobs currently running."""
        return len(self._running)

    @property
    def size(self) -> int:
        """Jobs waiting for admission."""
        return len(self._queue)

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def is_idle(self) -> bool:
        return not self._running and not self._queue

    # ---- control ----

    def submit(self, job: Job) -> None:
        """Enqueue a job and return immediately."""
        self._queue.append(job)
        self._drain()

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        if not self._paused:
            return
        self._paused = False
        self._drain()

    def clear(self) -> int:
        """Drop jobs that were never admitted. Returns how many were dropped."""
        dropped = len(self._queue)
        self._queue.clear()
        if self._wakeup is not None:
            self._wakeup.cancel()
            self._wakeup = None
        self._notify_if_idle()
        return dropped

    async def on_idle(self) -> None:
        """Wait until nothing is running and nothing is queued."""
        if self.is_idle:
            return
        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._idle_waiters.append(fut)
        await fut

    # ---- internals ----

    def _drain(self) -> None:
        while self._queue and not self._paused and len(self._running) < self.concurrency:
            loop = asyncio.get_running_loop()
            if not self._take_window_slot(loop.time()):
                self._schedule_wakeup(loop)
                break
            job = self._queue.popleft()
            task = loop.create_task(self._run(job))
            self._running.add(task)
            task.add_done_callback(self._on_done)
        self._notify_if_idle()

    def _take_window_slot(self, now: float) -> bool:
        if self._window_start is None or now - self._window_start >= self.interval:
            self._window_start = now
            self._window_count = 0
        if self._window_count >= self.interval_cap:
            return False
        self._window_count += 1
        return True

    def _schedule_wakeup(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._wakeup is not None or self._window_start is None:
            return
        delay = max(0.0, self._window_start + self.interval - loop.time())
        logger.debug("Rate limit reached (%s per %.3fs); next admission in %.3fs",
                     self.interval_cap, self.interval, delay)
        self._wakeup = loop.call_later(delay, self._on_wakeup)

    def _on_wakeup(self) -> None:
        self._wakeup = None
        self._drain()

    async def _run(self, job: Job) -> None:
        try:
            await job()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Admitted job raised")

    def _on_done(self, task: asyncio.Task[None]) -> None:
        self._running.discard(task)
        self._drain()

    def _notify_if_idle(self) -> None:
        if not self.is_idle or not self._idle_waiters:
            return
        waiters, self._idle_waiters = self._idle_waiters, []
        for fut in waiters:
            if not fut.done():
                fut.set_result(None)
