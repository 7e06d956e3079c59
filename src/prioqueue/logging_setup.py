# src/prioqueue/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Loggers that log once per task. While the REPL owns the terminal they only
# reach the console at WARNING+; the log file always gets everything.
PER_TASK_LOGGERS = (
    "prioqueue.tasks.task_dispatcher",
    "prioqueue.tasks.task_ledger",
    "prioqueue.tasks.task_store",
    "prioqueue.tasks.admission",
)

LOG_FILE_NAME = "prioqueue.log"


def parse_level(name: str | None, default: int = logging.INFO) -> int:
    """'debug' / 'INFO' / '20' -> logging level; unknown names give `default`."""
    raw = str(name or "").strip().upper()
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else default


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console filter:
    - prioqueue records pass (per-task ones only at WARNING+ when quiet_tasks is set)
    - captured Python warnings and third-party records only at ERROR+
    """

    def __init__(self, *, quiet_tasks: bool = False) -> None:
        super().__init__()
        self.quiet_tasks = quiet_tasks

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name.startswith("prioqueue."):
            if self.quiet_tasks and name.startswith(PER_TASK_LOGGERS):
                return record.levelno >= logging.WARNING
            return True

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/prioqueue",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    quiet_tasks: bool = False,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> Path:
    """
    Configure the root logger with a filtered stderr handler and a rotating file.

    Records carry the thread name: the queue runs on "prioqueue-loop", the
    console on "MainThread". Call once at startup. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)-7s [%(threadName)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter(quiet_tasks=quiet_tasks))
    root.addHandler(console)

    # The queue is long-running; keep the file bounded.
    file_handler = RotatingFileHandler(
        str(log_file),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
