# src/prioqueue/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..tasks.handler_registry import HandlerRegistry
from ..tasks.task_store import TaskStore

if TYPE_CHECKING:
    from ..cli.runner import QueueBackgroundRunner


@dataclass
class AppState:
    # Settings object (config.Settings or a compatible namespace in tests).
    settings: Any

    task_store: TaskStore
    handlers: HandlerRegistry

    # Set once the queue service runs in its background thread.
    runner: QueueBackgroundRunner | None = None
