# src/bifrost_tasks/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The recurrence engine and the sync reconciler depend on Protocols instead of
concrete implementations. This keeps the calendar backend, the persistence
mechanism and the event dispatch swappable and makes testing easier.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

from .models import EventView, Task

CalendarEvent = dict[str, Any]
# Raw remote event payload (Google Calendar v3 "Event" resource shape).

EventHandler = Callable[[Any], None]
Unsubscribe = Callable[[], None]

TaskAccessor = Callable[[], list[Task] | Awaitable[list[Task]]]
# Caller-provided accessor returning the full current local task list.


@dataclass(slots=True, frozen=True)
class StateSchema:
    """
    Registration record for one key of the key-value store.

    validate(value) -> bool
    migrate(value, from_version) -> value  (called when the stored version is older)
    """

    version: int
    validate: Callable[[Any], bool]
    migrate: Callable[[Any, int], Any]
    default: Any = None


class KeyValueStore(Protocol):
    def register_schema(self, key: str, schema: StateSchema) -> None: ...
    def get(self, key: str, default: Any = None) -> Any: ...
    def set(self, key: str, value: Any) -> None: ...


class Notifier(Protocol):
    """Synchronous, in-process, best-effort fan-out of lifecycle events."""

    def emit(self, name: str, payload: Any = None) -> None: ...
    def on(self, name: str, handler: EventHandler) -> Unsubscribe: ...


class CalendarClient(Protocol):
    """
    Remote calendar port.

    update_event raises NotFoundError when the event no longer exists; any other
    failure is raised as NetworkError (or whatever the transport raises).
    """

    def is_authenticated(self) -> bool: ...

    def create_event_from_task(self, task: Task) -> Awaitable[CalendarEvent]: ...

    def update_event(self, event_id: str, payload: dict[str, Any]) -> Awaitable[CalendarEvent]: ...

    def delete_event(self, event_id: str) -> Awaitable[None]: ...

    def list_upcoming_events(self, days_ahead: int = 7) -> Awaitable[list[CalendarEvent]]: ...

    def format_event(self, event: CalendarEvent) -> EventView: ...
