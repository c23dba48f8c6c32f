# tests/test_scheduler.py

from __future__ import annotations

import asyncio

import pytest

from bifrost_tasks.core import events
from bifrost_tasks.sync.reconciler import SyncReconciler
from bifrost_tasks.sync.scheduler import SyncScheduler

from .fakes import FakeCalendar, Recorder, make_task


@pytest.mark.asyncio
async def test_enable_runs_one_pass_immediately(
    reconciler: SyncReconciler, calendar: FakeCalendar, bus, recorder: Recorder
) -> None:
    scheduler = SyncScheduler(reconciler, bus, interval_seconds=3600)
    tasks = [make_task("t1")]

    scheduler.enable(lambda: tasks)
    await asyncio.sleep(0)
    await scheduler.drain()

    assert calendar.calls_of("create") == ["t1"]
    assert scheduler.enabled
    assert recorder.payloads(events.SYNC_ENABLED) == [{"interval_seconds": 3600.0}]

    scheduler.disable()


@pytest.mark.asyncio
async def test_enable_and_disable_are_idempotent(
    reconciler: SyncReconciler, calendar: FakeCalendar, bus, recorder: Recorder
) -> None:
    scheduler = SyncScheduler(reconciler, bus, interval_seconds=3600)
    scheduler.disable()

    scheduler.enable(lambda: [make_task("t1")])
    scheduler.enable(lambda: [make_task("t1")])
    await asyncio.sleep(0)
    await scheduler.drain()

    scheduler.disable()
    scheduler.disable()

    assert calendar.calls_of("create") == ["t1"]
    assert recorder.names().count(events.SYNC_ENABLED) == 1
    assert recorder.names().count(events.SYNC_DISABLED) == 1
    assert not scheduler.enabled


@pytest.mark.asyncio
async def test_periodic_passes_fire_until_disabled(
    reconciler: SyncReconciler, recorder: Recorder, bus
) -> None:
    scheduler = SyncScheduler(reconciler, bus, interval_seconds=0.01)
    scheduler.enable(lambda: [make_task("t1")])

    for _ in range(100):
        if len(recorder.payloads(events.SYNCED)) >= 3:
            break
        await asyncio.sleep(0.01)

    scheduler.disable()
    await scheduler.drain()
    count = len(recorder.payloads(events.SYNCED))
    assert count >= 3

    await asyncio.sleep(0.05)
    assert len(recorder.payloads(events.SYNCED)) == count


@pytest.mark.asyncio
async def test_async_accessor_is_awaited(reconciler: SyncReconciler, calendar: FakeCalendar) -> None:
    scheduler = SyncScheduler(reconciler, interval_seconds=3600)

    async def load():
        return [make_task("a1")]

    scheduler.enable(load)
    await asyncio.sleep(0)
    await scheduler.drain()
    scheduler.disable()

    assert calendar.calls_of("create") == ["a1"]


@pytest.mark.asyncio
async def test_sync_now_never_raises(reconciler: SyncReconciler, calendar: FakeCalendar) -> None:
    scheduler = SyncScheduler(reconciler, interval_seconds=3600)
    assert await scheduler.sync_now() is None

    def broken():
        raise RuntimeError("task source offline")

    scheduler.enable(broken)
    await asyncio.sleep(0)
    await scheduler.drain()
    scheduler.disable()

    assert await scheduler.sync_now() is None
    assert calendar.calls == []


@pytest.mark.asyncio
async def test_status_reflects_reconciler(reconciler: SyncReconciler, calendar: FakeCalendar) -> None:
    scheduler = SyncScheduler(reconciler, interval_seconds=3600)
    status = scheduler.status()
    assert not status.enabled
    assert status.last_sync is None
    assert status.mapped_count == 0
    assert status.authenticated

    scheduler.enable(lambda: [make_task("t1"), make_task("t2")])
    await asyncio.sleep(0)
    await scheduler.drain()

    status = scheduler.status()
    assert status.enabled
    assert status.last_sync is not None
    assert status.mapped_count == 2

    scheduler.disable()
    calendar.authenticated = False
    assert not scheduler.status().authenticated


@pytest.mark.asyncio
async def test_sync_now_works_without_enable(reconciler: SyncReconciler, calendar: FakeCalendar) -> None:
    scheduler = SyncScheduler(reconciler, interval_seconds=3600, task_accessor=lambda: [make_task("t1")])

    report = await scheduler.sync_now()
    assert report is not None and report.created == ["t1"]
    assert not scheduler.enabled

    report = await scheduler.sync_now(lambda: [make_task("t1"), make_task("t2")])
    assert report is not None and report.created == ["t2"]
    assert calendar.calls_of("create") == ["t1", "t2"]


@pytest.mark.asyncio
async def test_trigger_runs_a_tracked_pass(reconciler: SyncReconciler, calendar: FakeCalendar) -> None:
    scheduler = SyncScheduler(reconciler, interval_seconds=3600, task_accessor=lambda: [make_task("t1")])

    pass_task = scheduler.trigger()
    await scheduler.drain()

    assert pass_task.done()
    assert pass_task.result().created == ["t1"]
