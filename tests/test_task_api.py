# tests/test_task_api.py

from __future__ import annotations

import random

import pytest

from prioqueue.tasks.demo_handlers import DemoHandlers
from prioqueue.tasks.queue_service import QueueService
from prioqueue.tasks.task_api import enqueue_task, format_task, queue_snapshot
from prioqueue.tasks.task_store import TaskStore


def test_enqueue_uses_settings_default(store: TaskStore, settings) -> None:
    settings.default_max_retries = 7
    task_id = enqueue_task(store, "email", priority=4, payload={"a": 1}, settings=settings)
    task = store.get_task(task_id)
    assert task.max_retries == 7
    assert task.priority == 4


def test_enqueue_without_settings(store: TaskStore) -> None:
    task_id = enqueue_task(store, "email")
    assert store.get_task(task_id).max_retries == 3

    task_id = enqueue_task(store, "email", max_retries=0)
    assert store.get_task(task_id).max_retries == 0


def test_format_task(store: TaskStore) -> None:
    task_id = store.add_task(name="api", priority=60, payload={"url": "x"}, max_retries=4)
    store.increment_retry_count(task_id, "API returned error status")
    task = store.get_task(task_id)

    line = format_task(task)
    assert line == (
        f"#{task_id} api [pending] priority=60 retries=1/4 error='API returned error status'"
    )

    verbose = format_task(task, verbose=True).splitlines()
    assert verbose[0] == line
    assert verbose[1] == '  payload:   {"url": "x"}'
    assert verbose[-1] == "  completed: -"


@pytest.mark.asyncio
async def test_queue_snapshot(store: TaskStore) -> None:
    store.add_task(name="t")
    assert queue_snapshot(store, None) == {
        "store": {"total": 1, "pending": 1, "processing": 0, "completed": 0, "failed": 0}
    }

    service = QueueService(store)
    snap = queue_snapshot(store, service)
    assert snap["queue"] == {"pending": 0, "size": 0, "is_paused": False, "is_running": False}


class _FixedRandom(random.Random):
    def __init__(self, value: float) -> None:
        super().__init__()
        self._value = value

    def random(self) -> float:
        return self._value


@pytest.mark.asyncio
async def test_demo_unreliable_handler(store: TaskStore) -> None:
    task = store.get_task(store.add_task(name="unreliable"))

    with pytest.raises(RuntimeError, match="Random failure occurred"):
        await DemoHandlers(rng=_FixedRandom(0.1)).unreliable({"data": "x"}, task)
    await DemoHandlers(rng=_FixedRandom(0.9)).unreliable({"data": "x"}, task)


@pytest.mark.asyncio
async def test_demo_api_handler_fails_on_fail_url(store: TaskStore) -> None:
    task = store.get_task(store.add_task(name="api"))
    demo = DemoHandlers(speed=1000.0)

    await demo.api({"url": "https://api.example.com/data"}, task)
    with pytest.raises(RuntimeError, match="API returned error status"):
        await demo.api({"url": "https://api.example.com/fail"}, task)


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", ["hello", [1, 2], None, 42])
async def test_demo_handlers_accept_non_dict_payloads(store: TaskStore, payload) -> None:
    task = store.get_task(store.add_task(name="email"))
    demo = DemoHandlers(speed=1000.0)

    await demo.email(payload, task)
    await demo.image(payload, task)
    await demo.api(payload, task)
    await demo.data_import(payload, task)
