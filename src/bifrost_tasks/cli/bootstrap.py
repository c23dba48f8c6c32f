# src/bifrost_tasks/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations (SQLite state, event bus, Google client)
  into the recurrence and sync services,
- connects the recurrence monitor to the task list.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from ..config import Settings, get_settings
from ..core import events
from ..core.events import EventBus
from ..core.ports import CalendarClient
from ..recurrence.monitor import RecurrenceMonitor
from ..recurrence.pattern_store import PatternStore
from ..storage.state_store import StateStore
from ..storage.task_list import TaskList
from ..sync.google_calendar import GoogleCalendarClient
from ..sync.mapping_store import SyncMappingStore
from ..sync.reconciler import SyncReconciler
from ..sync.scheduler import SyncScheduler

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    settings: Any

    bus: EventBus
    state_store: StateStore
    tasks: TaskList

    patterns: PatternStore
    monitor: RecurrenceMonitor

    calendar: CalendarClient
    mappings: SyncMappingStore
    reconciler: SyncReconciler
    scheduler: SyncScheduler

    # Fire-and-forget coroutines started by console commands.
    background: set[asyncio.Task[object]] = field(default_factory=set)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.state_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.tasks_path.parent.mkdir(parents=True, exist_ok=True)


def create_app(*, settings: Settings | None = None, calendar: CalendarClient | None = None) -> AppState:
    """
    Build AppState from the provided settings.

    Keeping settings (and the calendar client) injectable makes the app easier to
    test and avoids hidden global config reads. If settings is None, falls back
    to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    bus = EventBus()
    state_store = StateStore(settings.state_db_path)
    tasks = TaskList(settings.tasks_path)

    patterns = PatternStore(state_store, bus, default_source=settings.local_source)
    monitor = RecurrenceMonitor(
        patterns,
        bus,
        interval_seconds=settings.recurrence_check_interval_seconds,
    )

    if calendar is None:
        calendar = GoogleCalendarClient(
            token_path=settings.google_token_path,
            calendar_id=settings.calendar_id,
            local_source=settings.local_source,
        )
    mappings = SyncMappingStore(state_store)
    reconciler = SyncReconciler(calendar, mappings, bus, remote_source=settings.remote_source)
    scheduler = SyncScheduler(
        reconciler,
        bus,
        interval_seconds=settings.sync_interval_seconds,
        task_accessor=tasks.all,
    )

    # Generated instances land in the task list.
    bus.on(events.TODO_CREATED, lambda payload: tasks.add(payload["task"]))

    return AppState(
        settings=settings,
        bus=bus,
        state_store=state_store,
        tasks=tasks,
        patterns=patterns,
        monitor=monitor,
        calendar=calendar,
        mappings=mappings,
        reconciler=reconciler,
        scheduler=scheduler,
    )
