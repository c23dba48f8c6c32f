# tests/test_commands.py

from __future__ import annotations

import asyncio

import pytest

from bifrost_tasks.cli.bootstrap import AppState, create_app
from bifrost_tasks.cli.commands import registry

from .fakes import FakeCalendar, make_task


@pytest.fixture()
def app(settings, calendar: FakeCalendar) -> AppState:
    return create_app(settings=settings, calendar=calendar)


def test_non_command_and_unknown_command(app: AppState) -> None:
    assert registry.handle(app, "hello") is None
    assert registry.handle(app, "/").startswith("Empty command")
    assert "Unknown command: /nope" in registry.handle(app, "/nope")


def test_help_lists_commands(app: AppState) -> None:
    reply = registry.handle(app, "/help")
    for name in ("/add", "/patterns", "/pause", "/sync", "/done"):
        assert name in reply


def test_add_and_list_patterns(app: AppState) -> None:
    reply = registry.handle(app, "/add weekly 2 days=1,3 time=08:00 tags=fit Gym class")
    assert reply.startswith("Created:")
    assert "Gym class - Every 2 weeks on Mon, Wed at 08:00" in reply

    [pattern] = app.patterns.list_all()
    assert pattern.frequency == 2
    assert pattern.days_of_week == [1, 3]
    assert pattern.tags == ["fit"]

    listing = registry.handle(app, "/patterns")
    assert pattern.id[:8] in listing
    assert "[active]" in listing


def test_add_with_invalid_input(app: AppState) -> None:
    assert registry.handle(app, "/add daily").startswith("Invalid input:")
    assert registry.handle(app, "/add daily time=25:00 Stretch").startswith("Invalid input:")
    assert registry.handle(app, "/add monthly dom=x Rent") == "days and dom must be numbers."
    assert app.patterns.list_all() == []


def test_pause_resume_delete_by_prefix(app: AppState) -> None:
    registry.handle(app, "/add daily Water plants")
    [pattern] = app.patterns.list_all()
    prefix = pattern.id[:6]

    assert "[paused]" in registry.handle(app, f"/pause {prefix}")
    assert not pattern.active
    assert "[active]" in registry.handle(app, f"/resume {prefix}")
    assert registry.handle(app, "/pause zzzz") == "No pattern matches 'zzzz'."

    assert registry.handle(app, f"/delete {prefix}").startswith("Deleted pattern")
    assert app.patterns.list_all() == []


def test_patterns_persist_across_app_restarts(settings, calendar: FakeCalendar) -> None:
    first = create_app(settings=settings, calendar=calendar)
    registry.handle(first, "/add monthly dom=31 Pay rent")

    second = create_app(settings=settings, calendar=calendar)
    [pattern] = second.patterns.list_all()
    assert pattern.text == "Pay rent"
    assert pattern.day_of_month == 31


def test_done_chains_next_recurring_instance(app: AppState) -> None:
    registry.handle(app, "/add daily Stretch")
    [pattern] = app.patterns.list_all()

    first = app.monitor.generate(pattern)
    assert app.tasks.get(first.id) is first

    reply = registry.handle(app, f"/done {first.id[:10]}")
    assert reply.startswith("Completed: Stretch")
    assert "Next instance:" in reply
    assert len(app.tasks) == 2
    assert pattern.completion_count == 2

    assert "No single open task" in registry.handle(app, f"/done {first.id[:10]}")


def test_tasks_and_status(app: AppState) -> None:
    app.tasks.add(make_task("abc123", text="Buy milk"))
    listing = registry.handle(app, "/tasks")
    assert "[ ] abc123 Buy milk (due 2025-12-01)" in listing

    status = registry.handle(app, "/status")
    assert "Tasks: 1" in status
    assert "Calendar sync: OFF" in status


@pytest.mark.asyncio
async def test_sync_on_and_off(app: AppState, calendar: FakeCalendar) -> None:
    app.tasks.add(make_task("t1"))

    assert registry.handle(app, "/sync on") == "Calendar sync enabled."
    assert registry.handle(app, "/sync on") == "Calendar sync is already ON."
    await app.scheduler.drain()

    assert calendar.calls_of("create") == ["t1"]
    assert "[cal]" in registry.handle(app, "/tasks")

    assert registry.handle(app, "/sync off") == "Calendar sync disabled."
    assert not app.scheduler.enabled
    assert registry.handle(app, "/sync bogus").startswith("Usage:")


@pytest.mark.asyncio
async def test_sync_now_runs_without_enabling(app: AppState, calendar: FakeCalendar) -> None:
    app.tasks.add(make_task("t1"))

    assert registry.handle(app, "/sync now") == "Sync pass started."
    await app.scheduler.drain()

    assert calendar.calls_of("create") == ["t1"]
    assert not app.scheduler.enabled


@pytest.mark.asyncio
async def test_background_work_is_tracked_until_done(app: AppState, calendar: FakeCalendar) -> None:
    task = make_task("t1")
    app.tasks.add(task)
    await app.reconciler.sync_task(task)
    calendar.upcoming = [{"id": "evt-new", "summary": "Offsite", "start": {"date": "2025-12-04"}}]

    registry.handle(app, "/done t1")
    registry.handle(app, "/sync inbox")
    assert len(app.background) == 2

    await asyncio.gather(*list(app.background))
    assert app.background == set()
    assert calendar.calls_of("delete") == ["evt-1"]
    assert calendar.calls_of("list") == ["7"]
