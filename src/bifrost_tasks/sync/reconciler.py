# src/bifrost_tasks/sync/reconciler.py

from __future__ import annotations

"""
Local task list -> remote calendar reconciliation.

One pass:
1. push every dated, open, locally-sourced task:
   - mapped   -> update the remote event (not found -> drop the mapping, no recreate)
   - unmapped -> create a remote event and record the mapping
2. delete remote events whose local task is gone, and drop their mappings
3. stamp the pass, persist the mapping table, emit a summary

A failure on one task is logged and recorded on the report; it never aborts
the rest of the pass. Creates/updates all finish before cleanup starts, so a
task being created is never mistaken for an orphan.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..core import events
from ..core.models import Task, all_day_range, format_date
from ..core.ports import CalendarClient, CalendarEvent, Notifier
from ..errors import NotFoundError, ValidationError
from .mapping_store import SyncMappingStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SyncReport:
    started_at: datetime
    finished_at: datetime | None = None
    skipped: bool = False
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    unmapped: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.skipped and not self.failed

    def summary(self) -> str:
        if self.skipped:
            return "skipped (not authenticated)"
        return (
            f"created={len(self.created)} updated={len(self.updated)} "
            f"unmapped={len(self.unmapped)} deleted={len(self.deleted)} failed={len(self.failed)}"
        )


def build_update_payload(task: Task) -> dict[str, Any]:
    start, end = all_day_range(task.due_date or "")
    return {
        "summary": task.text,
        "description": f"Updated from Bifrost todo\nPriority: {task.priority or 'normal'}",
        "start": {"date": start},
        "end": {"date": end},
    }


class SyncReconciler:
    def __init__(
        self,
        calendar: CalendarClient,
        mappings: SyncMappingStore,
        notifier: Notifier | None = None,
        *,
        remote_source: str = "calendar",
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._calendar = calendar
        self._mappings = mappings
        self._notifier = notifier
        self._remote_source = remote_source
        self._clock = clock
        self.last_sync: datetime | None = None

    @property
    def mapped_count(self) -> int:
        return len(self._mappings)

    def is_authenticated(self) -> bool:
        try:
            return bool(self._calendar.is_authenticated())
        except Exception:
            logger.exception("Calendar authentication check failed")
            return False

    def is_synced(self, task_id: str) -> bool:
        return self._mappings.has(task_id)

    def event_id_for(self, task_id: str) -> str | None:
        return self._mappings.get(task_id)

    def _emit(self, name: str, payload: object) -> None:
        if self._notifier is not None:
            self._notifier.emit(name, payload)

    def _should_push(self, task: Task) -> bool:
        # Tasks that came from the calendar are never pushed back (echo loop).
        return bool(task.due_date) and not task.completed and task.source != self._remote_source

    # ---- remote operations for one task ----

    async def _create(self, task: Task) -> str:
        event = await self._calendar.create_event_from_task(task)
        event_id = str(event["id"])
        self._mappings.set(task.id, event_id)
        logger.info("Created calendar event %s for task %s", event_id, task.id)
        self._emit(events.TODO_SYNCED, {"task": task, "event": event})
        return event_id

    async def _update(self, task: Task, event_id: str) -> bool:
        """Update the mapped event; False if it was gone (mapping dropped)."""
        try:
            await self._calendar.update_event(event_id, build_update_payload(task))
        except NotFoundError:
            # Deferred recreation: the next pass sees the task as unmapped.
            self._mappings.remove(task.id)
            logger.info("Calendar event %s for task %s is gone; mapping removed", event_id, task.id)
            return False
        logger.debug("Updated calendar event %s for task %s", event_id, task.id)
        return True

    async def _push(self, task: Task, report: SyncReport) -> None:
        event_id = self._mappings.get(task.id)
        if event_id is None:
            await self._create(task)
            report.created.append(task.id)
        elif await self._update(task, event_id):
            report.updated.append(task.id)
        else:
            report.unmapped.append(task.id)

    async def _cleanup(self, tasks: list[Task], report: SyncReport) -> None:
        current = {t.id for t in tasks}
        for task_id, event_id in self._mappings.items():
            if task_id in current:
                continue
            try:
                await self._calendar.delete_event(event_id)
                logger.info("Deleted calendar event %s for removed task %s", event_id, task_id)
            except Exception:
                logger.exception("Failed to delete calendar event %s (task %s)", event_id, task_id)
            self._mappings.remove(task_id)
            report.deleted.append(task_id)

    # ---- passes ----

    async def run_pass(self, tasks: list[Task]) -> SyncReport:
        report = SyncReport(started_at=self._clock())

        if not self.is_authenticated():
            logger.debug("Calendar not authenticated; sync pass skipped")
            report.skipped = True
            report.finished_at = self._clock()
            return report

        to_push = [t for t in tasks if self._should_push(t)]
        logger.info("Sync pass: %d of %d task(s) eligible", len(to_push), len(tasks))

        for task in to_push:
            try:
                await self._push(task, report)
            except Exception:
                logger.exception("Syncing task %s (%r) failed", task.id, task.text)
                report.failed.append(task.id)

        await self._cleanup(tasks, report)

        self.last_sync = self._clock()
        report.finished_at = self.last_sync
        self._mappings.save()

        logger.info("Sync pass complete: %s", report.summary())
        self._emit(events.SYNCED, {"timestamp": self.last_sync, "report": report})
        return report

    async def sync_task(self, task: Task) -> bool:
        """
        Push one task outside the pass cadence.

        A completed, mapped task has its event deleted right away. Raises
        ValidationError when the task has no due date; remote failures are
        logged and reported as False.
        """
        if not task.due_date:
            raise ValidationError(f"task {task.id} has no due date")

        event_id = self._mappings.get(task.id)
        try:
            if task.completed:
                if event_id is None:
                    return True
                await self._calendar.delete_event(event_id)
                self._mappings.remove(task.id)
                logger.info("Deleted calendar event %s for completed task %s", event_id, task.id)
            elif event_id is None:
                await self._create(task)
            else:
                await self._update(task, event_id)
        except Exception:
            logger.exception("Single-task sync failed task=%s", task.id)
            return False
        finally:
            self._mappings.save()
        return True

    async def unsync(self, task_id: str) -> bool:
        """Delete the remote event and the mapping now. False if the task was not mapped."""
        event_id = self._mappings.get(task_id)
        if event_id is None:
            return False
        try:
            await self._calendar.delete_event(event_id)
            logger.info("Removed calendar event %s for task %s", event_id, task_id)
        except Exception:
            logger.exception("Failed to delete calendar event %s (task %s)", event_id, task_id)
        self._mappings.remove(task_id)
        self._mappings.save()
        return True

    # ---- inbound ----

    async def fetch_new_events(self, days_ahead: int = 7) -> list[CalendarEvent]:
        """
        Upcoming remote events that are not mirrors of local tasks.

        Turning them into local tasks is left to the caller (see task_from_event).
        """
        if not self.is_authenticated():
            return []
        try:
            upcoming = await self._calendar.list_upcoming_events(days_ahead)
        except Exception:
            logger.exception("Listing upcoming calendar events failed")
            return []

        known = self._mappings.event_ids()
        fresh = [e for e in upcoming if str(e.get("id")) not in known]
        logger.info("Found %d new calendar event(s)", len(fresh))
        if fresh:
            self._emit(events.NEW_EVENTS, {"events": fresh})
        return fresh

    def task_from_event(self, event: CalendarEvent) -> Task:
        view = self._calendar.format_event(event)
        return Task(
            id=f"calendar-{view.id}",
            text=view.title,
            completed=False,
            source=self._remote_source,
            priority="normal",
            due_date=format_date(view.start),
            created_at=self._clock(),
        )
