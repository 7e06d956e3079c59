# src/prioqueue/cli/commands.py

from __future__ import annotations

import json
import logging
from collections.abc import Callable

from ..core.state import AppState
from ..tasks.task_api import enqueue_task, format_task, queue_snapshot
from ..tasks.task_models import TaskStatus

CommandHandler = Callable[[AppState, list[str]], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return handler(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _parse_int(raw: str, what: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{what} must be an integer, got {raw!r}") from None


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <name> [priority] [max_retries] [payload...]

    The payload is parsed as JSON when possible, otherwise stored as a string.
    """
    if not args:
        return "Usage: /add <name> [priority] [max_retries] [json payload]"

    name = args[0]
    try:
        priority = _parse_int(args[1], "priority") if len(args) > 1 else 0
        max_retries = _parse_int(args[2], "max_retries") if len(args) > 2 else None
    except ValueError as e:
        return str(e)

    payload = None
    raw_payload = " ".join(args[3:]).strip()
    if raw_payload:
        try:
            payload = json.loads(raw_payload)
        except ValueError:
            payload = raw_payload

    try:
        task_id = enqueue_task(
            state.task_store,
            name,
            priority=priority,
            payload=payload,
            max_retries=max_retries,
            settings=state.settings,
        )
    except ValueError as e:
        return f"Cannot add task: {e}"

    warn = "" if name in state.handlers else " (no handler registered for this name)"
    return f"Task #{task_id} added{warn}."


def cmd_stats(state: AppState, args: list[str]) -> str:
    runner = state.runner
    if runner is not None:
        # Read both sides on the loop thread so the queue numbers are not torn.
        snap = runner.call(queue_snapshot, state.task_store, runner.service)
    else:
        snap = queue_snapshot(state.task_store, None)

    s = snap["store"]
    lines = [
        "Store:",
        f"  total={s['total']} pending={s['pending']} processing={s['processing']} "
        f"completed={s['completed']} failed={s['failed']}",
    ]
    q = snap.get("queue")
    if q is not None:
        lines += [
            "Queue:",
            f"  in_flight={q['pending']} queued={q['size']} "
            f"paused={q['is_paused']} running={q['is_running']}",
        ]
    else:
        lines.append("Queue: not running")
    return "\n".join(lines)


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list            -> newest tasks
    /list <status>   -> newest tasks with that status
    """
    status = None
    if args:
        try:
            status = TaskStatus(args[0].lower())
        except ValueError:
            allowed = ", ".join(s.value for s in TaskStatus)
            return f"Unknown status: {args[0]}. Use one of: {allowed}."

    tasks = state.task_store.list_tasks(status=status, limit=20)
    if not tasks:
        return "No tasks."
    return "\n".join(format_task(t) for t in tasks)


def cmd_show(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /show <task id>"
    try:
        task_id = _parse_int(args[0], "task id")
    except ValueError as e:
        return str(e)

    task = state.task_store.get_task(task_id)
    if task is None:
        return f"Task #{task_id} not found."
    return format_task(task, verbose=True)


def cmd_pause(state: AppState, args: list[str]) -> str:
    if state.runner is None:
        return "Queue is not running."
    state.runner.pause()
    return "Queue paused. Running tasks will finish; nothing new is admitted."


def cmd_resume(state: AppState, args: list[str]) -> str:
    if state.runner is None:
        return "Queue is not running."
    state.runner.resume()
    return "Queue resumed."


def cmd_handlers(state: AppState, args: list[str]) -> str:
    names = state.handlers.names()
    if not names:
        return "No handlers registered."
    return "Handlers: " + ", ".join(names)


def cmd_clear(state: AppState, args: list[str]) -> str:
    if not args or args[0].lower() != "yes":
        return "This deletes every task. Confirm with: /clear yes"
    removed = state.task_store.clear_all_tasks()
    logger.info("Store cleared from console (removed=%s)", removed)
    return f"Removed {removed} task(s)."


registry.register("help", cmd_help, "list commands", aliases=["h", "?"])
registry.register("add", cmd_add, "add a task: /add <name> [priority] [max_retries] [payload]")
registry.register("stats", cmd_stats, "store counts and queue state")
registry.register("list", cmd_list, "recent tasks: /list [status]", aliases=["ls"])
registry.register("show", cmd_show, "task details: /show <id>")
registry.register("pause", cmd_pause, "stop admitting new tasks")
registry.register("resume", cmd_resume, "admit tasks again")
registry.register("handlers", cmd_handlers, "registered task handlers")
registry.register("clear", cmd_clear, "delete all tasks: /clear yes")
