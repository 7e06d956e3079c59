# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from prioqueue.core.state import AppState
from prioqueue.tasks.handler_registry import HandlerRegistry
from prioqueue.tasks.task_store import TaskStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and QueueService.from_settings.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment and any local .env.
    """
    return SimpleNamespace(
        app_name="prioqueue-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        concurrency=2,
        polling_interval_ms=10,
        rate_interval_ms=1000,
        rate_interval_cap=50,
        batch_size=10,
        default_max_retries=3,
        handler_timeout_s=None,
        recover_orphans=True,
        console_enabled=False,
        demo_handlers=False,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    # Real SQLite store: its ordering and update semantics are part of what we test.
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def handlers() -> HandlerRegistry:
    return HandlerRegistry()


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore, handlers: HandlerRegistry) -> AppState:
    return AppState(settings=settings, task_store=store, handlers=handlers)
