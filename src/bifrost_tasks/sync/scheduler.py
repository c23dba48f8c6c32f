# src/bifrost_tasks/sync/scheduler.py

from __future__ import annotations

"""
Periodic trigger for reconciliation passes.

enable() runs one pass right away and then fires a new pass every
interval_seconds, like a fixed-rate timer: each pass runs as its own asyncio
task, so a pass slower than the interval overlaps the next one. Keep the
interval well above the expected pass duration.

disable() stops future passes only; passes already in flight finish.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime

from ..core import events
from ..core.models import Task
from ..core.ports import Notifier, TaskAccessor
from .reconciler import SyncReconciler, SyncReport

logger = logging.getLogger(__name__)

DEFAULT_SYNC_INTERVAL_SECONDS = 5 * 60


@dataclass(slots=True, frozen=True)
class SyncStatus:
    enabled: bool
    last_sync: datetime | None
    mapped_count: int
    authenticated: bool


class SyncScheduler:
    def __init__(
        self,
        reconciler: SyncReconciler,
        notifier: Notifier | None = None,
        *,
        interval_seconds: float = DEFAULT_SYNC_INTERVAL_SECONDS,
        task_accessor: TaskAccessor | None = None,
    ) -> None:
        self._reconciler = reconciler
        self._notifier = notifier
        self._interval = max(0.01, float(interval_seconds))
        self._accessor: TaskAccessor | None = task_accessor
        self._timer: asyncio.Task[None] | None = None
        self._in_flight: set[asyncio.Task[SyncReport | None]] = set()

    @property
    def enabled(self) -> bool:
        return self._timer is not None

    async def _read_tasks(self, accessor: TaskAccessor | None = None) -> list[Task] | None:
        accessor = accessor or self._accessor
        if accessor is None:
            logger.error("No task accessor configured")
            return None
        try:
            result = accessor()
            if inspect.isawaitable(result):
                result = await result
            return list(result)
        except Exception:
            logger.exception("Task accessor failed; sync pass skipped")
            return None

    async def sync_now(self, task_accessor: TaskAccessor | None = None) -> SyncReport | None:
        """
        Run one pass now, whether or not periodic sync is enabled.

        Uses task_accessor if given, else the one from the constructor or the
        last enable(). Never raises; None when the pass could not start.
        """
        tasks = await self._read_tasks(task_accessor)
        if tasks is None:
            return None
        try:
            return await self._reconciler.run_pass(tasks)
        except Exception:
            logger.exception("Sync pass crashed")
            return None

    def trigger(self) -> asyncio.Task[SyncReport | None]:
        """Start one pass in the background; drain() waits for it."""
        pass_task = asyncio.get_running_loop().create_task(self.sync_now())
        self._in_flight.add(pass_task)
        pass_task.add_done_callback(self._in_flight.discard)
        return pass_task

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.trigger()

    def enable(self, task_accessor: TaskAccessor) -> None:
        """
        Start periodic sync (must be called from a running event loop).

        A second call while enabled has no effect.
        """
        if self._timer is not None:
            return

        self._accessor = task_accessor
        self.trigger()
        self._timer = asyncio.get_running_loop().create_task(self._tick())

        logger.info("Calendar sync enabled interval=%ss", self._interval)
        if self._notifier is not None:
            self._notifier.emit(events.SYNC_ENABLED, {"interval_seconds": self._interval})

    def disable(self) -> None:
        """Cancel the timer. Safe when never enabled."""
        timer, self._timer = self._timer, None
        if timer is None:
            return
        timer.cancel()

        logger.info("Calendar sync disabled")
        if self._notifier is not None:
            self._notifier.emit(events.SYNC_DISABLED, {})

    async def drain(self) -> None:
        """Wait for passes already in flight (used on shutdown and in tests)."""
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    def status(self) -> SyncStatus:
        return SyncStatus(
            enabled=self.enabled,
            last_sync=self._reconciler.last_sync,
            mapped_count=self._reconciler.mapped_count,
            authenticated=self._reconciler.is_authenticated(),
        )
