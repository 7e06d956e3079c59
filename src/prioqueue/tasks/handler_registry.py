# src/prioqueue/tasks/handler_registry.py

from __future__ import annotations

import logging

from ..core.ports import TaskHandler

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Maps a task name to the handler that executes it.

    Owned by the caller and passed to the dispatcher; there is no process-wide instance.
    A missing handler is a normal lookup result (None), handled by the dispatcher.
    """

    def __init__(self, handlers: dict[str, TaskHandler] | None = None) -> None:
        self._handlers: dict[str, TaskHandler] = {}
        for name, handler in (handlers or {}).items():
            self.register(name, handler)

    def register(self, name: str, handler: TaskHandler) -> None:
        key = (name or "").strip()
        if not key:
            raise ValueError("handler name is required")
        if not callable(handler):
            raise TypeError(f"handler for {key!r} is not callable")

        if key in self._handlers:
            logger.info("Handler for task %s replaced", key)
        else:
            logger.info("Handler registered for task: %s", key)
        self._handlers[key] = handler

    def unregister(self, name: str) -> bool:
        return self._handlers.pop(name, None) is not None

    def get(self, name: str) -> TaskHandler | None:
        return self._handlers.get(name)

    def names(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
