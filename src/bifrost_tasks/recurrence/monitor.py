# src/bifrost_tasks/recurrence/monitor.py

from __future__ import annotations

"""
Recurrence monitor.

A small polling loop that:
- finds active patterns whose next_due has passed,
- generates exactly one task instance per due pattern,
- advances the pattern by one interval and persists it,
- announces the new instance on the notifier.

Completing a generated instance chains the next one immediately, without
waiting for the next tick.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from ..core import events
from ..core.models import Task, format_date
from ..core.ports import Notifier
from .models import RecurrencePattern
from .pattern_store import PatternStore

logger = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL_SECONDS = 60 * 60


class RecurrenceMonitor:
    def __init__(
        self,
        store: PatternStore,
        notifier: Notifier | None = None,
        *,
        interval_seconds: float = DEFAULT_CHECK_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._interval = max(0.01, float(interval_seconds))
        self._clock = clock
        self._runner: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    def _emit(self, name: str, payload: object) -> None:
        if self._notifier is not None:
            self._notifier.emit(name, payload)

    # ---- generation ----

    def generate(self, pattern: RecurrencePattern) -> Task:
        """Create one instance from pattern and advance the pattern past it."""
        now = self._clock()
        due = self._store.mark_generated(pattern, now)

        task = Task(
            id=uuid.uuid4().hex,
            text=pattern.text,
            completed=False,
            source=pattern.source,
            priority=pattern.priority,
            tags=list(pattern.tags),
            due_date=format_date(due),
            created_at=now,
            recurring_pattern_id=pattern.id,
            due_time=pattern.time,
            is_recurring=True,
        )
        logger.info(
            "Generated task %s from pattern %s due=%s next_due=%s",
            task.id,
            pattern.id,
            task.due_date,
            pattern.next_due,
        )
        self._emit(events.TODO_CREATED, {"pattern": pattern, "task": task})
        return task

    def check_due(self) -> list[Task]:
        """
        One scan over active patterns. At most one instance per pattern per call:
        next_due moves forward by one interval after each generation.
        """
        now = self._clock()
        try:
            due = self._store.due(now)
        except Exception:
            logger.exception("Listing due patterns failed")
            return []

        created: list[Task] = []
        for pattern in due:
            try:
                created.append(self.generate(pattern))
            except Exception:
                logger.exception("Generation failed pattern=%s", pattern.id)

        if created:
            self._emit(events.DUE_PATTERNS, created)
        return created

    def on_task_completed(self, task: Task) -> Task | None:
        """
        Chain the next instance when a generated task is completed.

        recurring_pattern_id is only a lookup key: unknown or paused patterns
        are ignored.
        """
        if not task.recurring_pattern_id:
            return None

        pattern = self._store.get(task.recurring_pattern_id)
        if pattern is None or not pattern.active:
            return None

        try:
            next_task = self.generate(pattern)
        except Exception:
            logger.exception("Chaining failed pattern=%s", pattern.id)
            return None

        self._emit(
            events.NEXT_INSTANCE_CREATED,
            {"completed": task, "task": next_task, "pattern": pattern},
        )
        return next_task

    def pause(self, pattern_id: str) -> RecurrencePattern | None:
        return self._store.pause(pattern_id)

    def resume(self, pattern_id: str) -> RecurrencePattern | None:
        return self._store.resume(pattern_id)

    # ---- loop ----

    async def run(self) -> None:
        """
        Check immediately, then every interval_seconds.

        To stop the monitor, cancel the coroutine/task.
        """
        logger.info("Recurrence monitor started interval=%ss", self._interval)
        while True:
            created = self.check_due()
            if created:
                logger.info("Recurrence check generated %d task(s)", len(created))
            else:
                logger.debug("Recurrence check: nothing due")
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        """Schedule run() on the running event loop (no-op if already running)."""
        if self.running:
            return
        self._runner = asyncio.get_running_loop().create_task(self.run())

    async def stop(self) -> None:
        runner, self._runner = self._runner, None
        if runner is None:
            return
        runner.cancel()
        try:
            await runner
        except asyncio.CancelledError:
            pass
        logger.info("Recurrence monitor stopped")
