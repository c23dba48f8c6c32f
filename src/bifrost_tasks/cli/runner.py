# src/bifrost_tasks/cli/runner.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from .bootstrap import AppState

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _run_services(app: AppState, stop_event: asyncio.Event) -> None:
    app.monitor.start()
    if app.settings.sync_enabled:
        app.scheduler.enable(app.tasks.all)

    await stop_event.wait()

    app.scheduler.disable()
    await app.monitor.stop()
    await app.scheduler.drain()
    if app.background:
        await asyncio.gather(*list(app.background), return_exceptions=True)


@dataclass
class ServiceRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def call(self, fn: Callable[[], T], timeout: float = 30.0) -> T:
        """Run fn on the services loop thread and wait for its result."""

        async def _call() -> T:
            return fn()

        return asyncio.run_coroutine_threadsafe(_call(), self.loop).result(timeout=timeout)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except Exception:
            logger.debug("Failed to signal services stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_services_in_background(app: AppState) -> ServiceRunner | None:
    """
    Start the recurrence monitor and the sync scheduler in a background thread
    with its own event loop, so the blocking console REPL can run in parallel.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_run_services(app, stop_event))
        except Exception:
            logger.exception("Services loop crashed.")
        finally:
            with contextlib.suppress(Exception):
                loop.stop()
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="bifrost-services", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Services thread did not initialize properly.")
        return None

    logger.info("Services thread started.")
    return ServiceRunner(thread=t, loop=loop, stop_event=stop_event)
