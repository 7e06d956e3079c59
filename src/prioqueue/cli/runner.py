# src/prioqueue/cli/runner.py

"""
Run the queue service in a background thread with its own event loop.

Why a thread:
- console REPL is blocking (input()).
- the queue service is async and wants its own event loop.

Everything that touches the service from the console goes through the loop
(run_coroutine_threadsafe), never directly.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from ..tasks.queue_service import QueueService
from ..tasks.task_models import QueueStats

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class QueueBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event
    service: QueueService

    def call(self, fn: Callable[..., T], *args: Any, timeout: float = 5.0) -> T:
        """Run a plain service method on the loop thread and return its result."""

        async def _invoke() -> T:
            return fn(*args)

        fut = asyncio.run_coroutine_threadsafe(_invoke(), self.loop)
        return fut.result(timeout=timeout)

    def pause(self) -> None:
        self.call(self.service.pause)

    def resume(self) -> None:
        self.call(self.service.resume)

    def stats(self) -> QueueStats:
        return self.call(self.service.get_stats)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Queue loop already closed.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


async def _serve(
    service: QueueService,
    stop_event: asyncio.Event,
    on_started: Callable[[BaseException | None], None],
) -> None:
    try:
        service.start()
    except Exception as e:
        on_started(e)
        raise
    on_started(None)

    try:
        await stop_event.wait()
    finally:
        await service.stop()


def start_queue_in_background(
    service: QueueService, *, startup_timeout: float = 10.0
) -> QueueBackgroundRunner:
    """
    Start the service on a dedicated loop thread.

    Raises whatever service.start() raised (e.g. the store is unavailable).
    """
    ready = threading.Event()
    holder: dict[str, Any] = {}

    def on_started(error: BaseException | None) -> None:
        holder["error"] = error
        ready.set()

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event

        try:
            loop.run_until_complete(_serve(service, stop_event, on_started))
        except Exception:
            # Startup errors are re-raised in the caller's thread instead.
            if holder.get("error") is None:
                logger.exception("Queue loop terminated with an error.")
        finally:
            with contextlib.suppress(RuntimeError):
                loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    t = threading.Thread(target=runner, name="prioqueue-loop", daemon=True)
    t.start()

    if not ready.wait(timeout=startup_timeout):
        raise RuntimeError("Queue thread did not start in time")

    error = holder.get("error")
    if error is not None:
        t.join(timeout=startup_timeout)
        raise error

    logger.info("Queue background thread started.")
    return QueueBackgroundRunner(
        thread=t,
        loop=holder["loop"],
        stop_event=holder["stop_event"],
        service=service,
    )
