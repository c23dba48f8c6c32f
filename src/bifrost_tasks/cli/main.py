# src/bifrost_tasks/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then:
- starts the recurrence monitor and calendar sync in a background thread,
- runs the console REPL in the main thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading
from datetime import datetime

from ..config import get_settings
from ..logging_setup import setup_logging
from .bootstrap import AppState, create_app
from .commands import registry as command_registry
from .runner import ServiceRunner, start_services_in_background

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def run_console_loop(app: AppState, runner: ServiceRunner) -> None:
    logger.info("Console started.")
    print(f"[{_ts_local()}] [CONSOLE] Use /help for commands. Use /exit to quit.\n")

    while True:
        try:
            line = input(">>> ").strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not line:
            continue

        if line.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            reply = runner.call(lambda: command_registry.handle(app, line))
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is None:
            reply = "Commands start with '/'. Use /help."
        print(f"[{_ts_local()}] {reply}")

    logger.info("Console finished.")


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    app = create_app(settings=settings)

    runner = start_services_in_background(app)
    if runner is None:
        logger.error("Could not start background services; exiting.")
        return

    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)
    except Exception:
        # Some platforms may not support SIGTERM, etc.
        pass

    try:
        if settings.console_enabled:
            run_console_loop(app, runner)
        else:
            logger.info("Console disabled. Running background services only. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        runner.stop()
        runner.join(timeout=10.0)
        app.tasks.save()
        logger.info("Bye.")


if __name__ == "__main__":
    main()
