# src/prioqueue/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the task store, handler registry and queue service together.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..tasks.demo_handlers import register_demo_handlers, seed_demo_tasks
from ..tasks.handler_registry import HandlerRegistry
from ..tasks.queue_service import QueueService
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    handlers = HandlerRegistry()
    task_store = TaskStore(settings.tasks_db_path)

    if getattr(settings, "demo_handlers", False):
        register_demo_handlers(handlers)
        if task_store.count_tasks() == 0:
            ids = seed_demo_tasks(task_store)
            logger.info("Seeded %d demo tasks", len(ids))

    return AppState(settings=settings, task_store=task_store, handlers=handlers)


def build_queue_service(state: AppState) -> QueueService:
    return QueueService.from_settings(state.task_store, state.handlers, state.settings)
