# src/prioqueue/tasks/demo_handlers.py

"""
Example handlers for local runs (`PRIOQ_DEMO_HANDLERS=true`).

Each handler just sleeps to simulate work; `unreliable` and `api` fail on purpose
so the retry path can be watched in the logs.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any

from ..core.ports import TaskRepo
from .handler_registry import HandlerRegistry
from .task_models import Task

logger = logging.getLogger(__name__)


def _fields(payload: Any) -> dict[str, Any]:
    # Console users can enqueue plain-text payloads; treat those as having no fields.
    return payload if isinstance(payload, dict) else {}


class DemoHandlers:
    def __init__(self, *, speed: float = 1.0, rng: random.Random | None = None) -> None:
        # speed > 1 makes every simulated delay shorter.
        self.speed = max(0.001, float(speed))
        self.rng = rng or random.Random()

    async def _work(self, seconds: float) -> None:
        await asyncio.sleep(seconds / self.speed)

    async def email(self, payload: Any, task: Task) -> None:
        logger.info("Sending email to: %s", _fields(payload).get("email"))
        await self._work(0.5)

    async def unreliable(self, payload: Any, task: Task) -> None:
        value = self.rng.random()
        logger.info("Unreliable task #%s random value: %.2f", task.id, value)
        if value < 0.6:
            raise RuntimeError("Random failure occurred")

    async def image(self, payload: Any, task: Task) -> None:
        logger.info("Processing image: %s", _fields(payload).get("filename"))
        await self._work(5.0)

    async def api(self, payload: Any, task: Task) -> None:
        url = str(_fields(payload).get("url", ""))
        logger.info("Calling API: %s", url)
        await self._work(1.0)
        if "fail" in url:
            raise RuntimeError("API returned error status")

    async def data_import(self, payload: Any, task: Task) -> None:
        logger.info("Importing data from: %s", _fields(payload).get("source"))
        await self._work(2.0)


def register_demo_handlers(registry: HandlerRegistry, *, speed: float = 1.0) -> DemoHandlers:
    demo = DemoHandlers(speed=speed)
    registry.register("email", demo.email)
    registry.register("unreliable", demo.unreliable)
    registry.register("image", demo.image)
    registry.register("api", demo.api)
    registry.register("data-import", demo.data_import)
    return demo


DEMO_TASKS: list[tuple[str, int, dict[str, Any], int]] = [
    ("email", 100, {"email": "user1@example.com"}, 2),
    ("email", 95, {"email": "user2@example.com"}, 2),
    ("unreliable", 50, {"data": "test"}, 5),
    ("unreliable", 50, {"data": "test2"}, 5),
    ("api", 60, {"url": "https://api.example.com/data"}, 3),
    ("image", 30, {"filename": "photo.jpg"}, 2),
    ("data-import", 20, {"source": "csv-file.csv"}, 3),
    ("email", 100, {"email": "urgent@example.com"}, 2),
    ("api", 70, {"url": "https://api.example.com/fail"}, 4),
]


def seed_demo_tasks(store: TaskRepo) -> list[int]:
    return [
        store.add_task(name=name, priority=priority, payload=payload, max_retries=max_retries)
        for name, priority, payload, max_retries in DEMO_TASKS
    ]
