# tests/conftest.py

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from bifrost_tasks.core.events import WILDCARD, EventBus
from bifrost_tasks.recurrence.monitor import RecurrenceMonitor
from bifrost_tasks.recurrence.pattern_store import PatternStore
from bifrost_tasks.sync.mapping_store import SyncMappingStore
from bifrost_tasks.sync.reconciler import SyncReconciler

from .fakes import FakeCalendar, FixedClock, MemoryStateStore, Recorder

# Monday.
MONDAY = datetime(2025, 12, 1, 9, 0)


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(MONDAY)


@pytest.fixture()
def state() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture()
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture()
def bus(recorder: Recorder) -> EventBus:
    b = EventBus()
    b.on(WILDCARD, recorder)
    return b


@pytest.fixture()
def patterns(state: MemoryStateStore, bus: EventBus, clock: FixedClock) -> PatternStore:
    return PatternStore(state, bus, clock=clock)


@pytest.fixture()
def monitor(patterns: PatternStore, bus: EventBus, clock: FixedClock) -> RecurrenceMonitor:
    return RecurrenceMonitor(patterns, bus, clock=clock)


@pytest.fixture()
def calendar() -> FakeCalendar:
    return FakeCalendar()


@pytest.fixture()
def mappings(state: MemoryStateStore) -> SyncMappingStore:
    return SyncMappingStore(state)


@pytest.fixture()
def reconciler(
    calendar: FakeCalendar, mappings: SyncMappingStore, bus: EventBus, clock: FixedClock
) -> SyncReconciler:
    return SyncReconciler(calendar, mappings, bus, clock=clock)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with create_app().

    We intentionally use a SimpleNamespace rather than reading the environment,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="bifrost-test",
        log_level="DEBUG",
        console_enabled=False,
        data_dir=tmp_path,
        state_db_path=tmp_path / "state.sqlite3",
        tasks_path=tmp_path / "tasks.json",
        google_token_path=tmp_path / "google_token.json",
        recurrence_check_interval_seconds=3600.0,
        sync_enabled=False,
        sync_interval_seconds=300.0,
        sync_days_ahead=7,
        calendar_id="primary",
        local_source="bifrost",
        remote_source="calendar",
    )
