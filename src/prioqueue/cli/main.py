# src/prioqueue/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, starts the queue service in a background
thread, then runs the console REPL (optional) until exit or a signal.
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import build_queue_service, create_initial_state
from ..cli.runner import start_queue_in_background
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import parse_level, setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown: drain the queue, then close the store."""
    runner = state.runner
    if runner is not None:
        runner.stop()
        runner.join(timeout=60.0)
        if runner.thread.is_alive():
            logger.warning("Queue thread still running after 60s (a handler may be stuck).")
        state.runner = None

    try:
        state.task_store.close()
    except Exception:
        logger.debug("Task store close failed.", exc_info=True)


def _wait_for_signal() -> None:
    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    signal.signal(signal.SIGINT, _handle_signal)
    try:
        signal.signal(signal.SIGTERM, _handle_signal)
    except (ValueError, OSError):
        # Some platforms do not support SIGTERM.
        logger.debug("SIGTERM handler not installed.", exc_info=True)

    stop_main.wait()


def main() -> None:
    settings = get_settings()

    log_file = setup_logging(
        log_dir=settings.data_dir,
        console_level=parse_level(settings.log_level),
        quiet_tasks=settings.console_enabled,
    )

    logger.info("Starting %s (db=%s, log=%s)...", settings.app_name, settings.tasks_db_path, log_file)

    state = create_initial_state(settings=settings)
    service = build_queue_service(state)
    state.runner = start_queue_in_background(service)

    try:
        if settings.console_enabled:
            # Ctrl+C surfaces as KeyboardInterrupt inside the REPL.
            run_console_loop(state)
        else:
            logger.info("Console disabled. Processing tasks only. Press Ctrl+C to stop.")
            _wait_for_signal()
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
