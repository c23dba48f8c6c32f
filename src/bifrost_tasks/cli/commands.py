# src/bifrost_tasks/cli/commands.py

"""
Slash commands for the console.

Handlers run on the services event loop thread (see cli.runner), so they may
touch stores directly and start coroutines on the loop (see _spawn).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from ..errors import ValidationError
from ..recurrence.calculator import describe_pattern
from ..recurrence.models import RecurrencePattern
from .bootstrap import AppState

CommandHandler = Callable[[AppState, list[str]], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry (/help, /patterns, /sync, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, app: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return handler(app, parts[1:])
        except ValidationError as e:
            return f"Invalid input: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _spawn(app: AppState, coro: Coroutine[Any, Any, object]) -> asyncio.Task[object]:
    """Run coro on the services loop, keeping a reference until it finishes."""
    task = asyncio.get_running_loop().create_task(coro)
    app.background.add(task)
    task.add_done_callback(app.background.discard)
    return task


def _resolve_pattern(app: AppState, prefix: str) -> RecurrencePattern | str:
    matches = [p for p in app.patterns.list_all() if p.id.startswith(prefix)]
    if not matches:
        return f"No pattern matches '{prefix}'."
    if len(matches) > 1:
        return f"'{prefix}' is ambiguous ({len(matches)} patterns)."
    return matches[0]


def _pattern_line(p: RecurrencePattern) -> str:
    state = "active" if p.active else "paused"
    return (
        f"  {p.id[:8]}  [{state}] {p.text} - {describe_pattern(p)} "
        f"(next: {p.next_due:%Y-%m-%d %H:%M}, done {p.completion_count}x)"
    )


def cmd_help(app: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(app: AppState, args: list[str]) -> str:
    st = app.scheduler.status()
    stats = app.patterns.stats()
    last = f"{st.last_sync:%Y-%m-%d %H:%M:%S}" if st.last_sync else "never"
    return (
        "Status:\n"
        f"  Patterns: {stats['active']} active, {stats['paused']} paused, "
        f"{stats['upcoming']} due within 7 days\n"
        f"  Tasks: {len(app.tasks)}\n"
        f"  Calendar sync: {'ON' if st.enabled else 'OFF'} "
        f"(authenticated={st.authenticated}, mapped={st.mapped_count}, last={last})"
    )


def cmd_patterns(app: AppState, args: list[str]) -> str:
    patterns = app.patterns.list_all()
    if not patterns:
        return "No recurring patterns."
    return "\n".join(["Recurring patterns:", *(_pattern_line(p) for p in patterns)])


def cmd_add(app: AppState, args: list[str]) -> str:
    """
    /add <type> [frequency] [days=1,3,5] [dom=31] [time=HH:MM] [tags=a,b] [priority=high] <text...>
    """
    if not args:
        return "Usage: /add <daily|weekly|monthly> [N] [days=..] [dom=..] [time=HH:MM] text"

    kind = args[0].lower()
    rest = args[1:]
    frequency = 1
    if rest and rest[0].isdigit():
        frequency = int(rest[0])
        rest = rest[1:]

    opts: dict[str, str] = {}
    words: list[str] = []
    for token in rest:
        key, sep, value = token.partition("=")
        if sep and key in ("days", "dom", "time", "tags", "priority") and not words:
            opts[key] = value
        else:
            words.append(token)

    try:
        days = [int(d) for d in opts["days"].split(",") if d] if "days" in opts else None
        dom = int(opts["dom"]) if "dom" in opts else 1
    except ValueError:
        return "days and dom must be numbers."

    pattern = app.patterns.create(
        text=" ".join(words),
        kind=kind,
        frequency=frequency,
        days_of_week=days,
        day_of_month=dom,
        time=opts.get("time"),
        tags=[t for t in opts.get("tags", "").split(",") if t],
        priority=opts.get("priority", "normal"),
    )
    return "Created:\n" + _pattern_line(pattern)


def _single_pattern_cmd(action: str) -> CommandHandler:
    def handler(app: AppState, args: list[str]) -> str:
        if not args:
            return f"Usage: /{action} <pattern id prefix>"
        found = _resolve_pattern(app, args[0])
        if isinstance(found, str):
            return found
        if action == "pause":
            app.monitor.pause(found.id)
        elif action == "resume":
            app.monitor.resume(found.id)
        else:
            app.patterns.delete(found.id)
            return f"Deleted pattern {found.id[:8]}."
        return _pattern_line(found)

    return handler


def cmd_check(app: AppState, args: list[str]) -> str:
    created = app.monitor.check_due()
    if not created:
        return "Nothing due."
    return "\n".join([f"Generated {len(created)} task(s):", *(f"  {t.id[:8]} {t.text} ({t.due_date})" for t in created)])


def cmd_tasks(app: AppState, args: list[str]) -> str:
    tasks = app.tasks.all()
    if not tasks:
        return "No tasks."
    lines = ["Tasks:"]
    for t in tasks:
        mark = "x" if t.completed else " "
        synced = " [cal]" if app.reconciler.is_synced(t.id) else ""
        lines.append(f"  [{mark}] {t.id[:8]} {t.text} (due {t.due_date or '-'}){synced}")
    return "\n".join(lines)


def cmd_done(app: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /done <task id prefix>"
    matches = [t for t in app.tasks.all() if t.id.startswith(args[0]) and not t.completed]
    if len(matches) != 1:
        return f"No single open task matches '{args[0]}'."

    task = app.tasks.complete(matches[0].id)
    if task is None:
        return "Task already completed."

    reply = f"Completed: {task.text}"
    next_task = app.monitor.on_task_completed(task)
    if next_task is not None:
        reply += f"\nNext instance: {next_task.id[:8]} due {next_task.due_date}"

    if task.due_date and app.reconciler.is_synced(task.id):
        _spawn(app, app.reconciler.sync_task(task))
    return reply


def cmd_sync(app: AppState, args: list[str]) -> str:
    """
    /sync        -> show status
    /sync on     -> enable periodic sync
    /sync off    -> disable periodic sync
    /sync now    -> run one pass
    /sync inbox  -> list new calendar events
    """
    if not args:
        return cmd_status(app, args)

    sub = args[0].lower()
    if sub in ("on", "1", "true", "yes"):
        if app.scheduler.enabled:
            return "Calendar sync is already ON."
        app.scheduler.enable(app.tasks.all)
        return "Calendar sync enabled."

    if sub in ("off", "0", "false", "no"):
        app.scheduler.disable()
        return "Calendar sync disabled."

    if sub == "now":
        app.scheduler.trigger()
        return "Sync pass started."

    if sub == "inbox":
        days = app.settings.sync_days_ahead
        _spawn(app, app.reconciler.fetch_new_events(days))
        return f"Looking for new calendar events in the next {days} days (see log)."

    return "Usage: /sync on | off | now | inbox"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show patterns, tasks and sync status.")
registry.register("patterns", cmd_patterns, help_text="List recurring patterns.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Create a pattern: /add weekly 1 days=1,3,5 time=08:00 Gym")
registry.register("pause", _single_pattern_cmd("pause"), help_text="Pause a pattern: /pause <id>.")
registry.register("resume", _single_pattern_cmd("resume"), help_text="Resume a pattern: /resume <id>.")
registry.register("delete", _single_pattern_cmd("delete"), help_text="Delete a pattern: /delete <id>.")
registry.register("check", cmd_check, help_text="Generate tasks for due patterns now.")
registry.register("tasks", cmd_tasks, help_text="List local tasks.")
registry.register("done", cmd_done, help_text="Complete a task: /done <id>.")
registry.register("sync", cmd_sync, help_text="Calendar sync: /sync on | off | now | inbox.")
