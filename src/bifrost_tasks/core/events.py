# src/bifrost_tasks/core/events.py

"""
In-process event bus.

Synchronous fan-out with best-effort delivery: a handler that raises is logged
and the remaining handlers still run. The "*" subscription receives every
event as a (name, payload) tuple.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from .ports import EventHandler, Unsubscribe

logger = logging.getLogger(__name__)

WILDCARD = "*"

# Recurrence lifecycle
PATTERN_CREATED = "recurring:patternCreated"
PATTERN_UPDATED = "recurring:patternUpdated"
PATTERN_DELETED = "recurring:patternDeleted"
PATTERNS_CLEARED = "recurring:cleared"
TODO_CREATED = "recurring:todoCreated"
DUE_PATTERNS = "recurring:duePatterns"
NEXT_INSTANCE_CREATED = "recurring:nextInstanceCreated"

# Calendar sync lifecycle
SYNC_ENABLED = "calendar:syncEnabled"
SYNC_DISABLED = "calendar:syncDisabled"
SYNCED = "calendar:synced"
TODO_SYNCED = "calendar:todoSynced"
NEW_EVENTS = "calendar:newEvents"


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}

    def on(self, name: str, handler: EventHandler) -> Unsubscribe:
        self._handlers.setdefault(name, []).append(handler)

        def _unsubscribe() -> None:
            self.off(name, handler)

        return _unsubscribe

    def once(self, name: str, handler: EventHandler) -> Unsubscribe:
        unsubscribe: Callable[[], None]

        def _wrapper(payload: Any) -> None:
            unsubscribe()
            handler(payload)

        unsubscribe = self.on(name, _wrapper)
        return unsubscribe

    def off(self, name: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(name)
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            return
        if not handlers:
            del self._handlers[name]

    def emit(self, name: str, payload: Any = None) -> None:
        # Snapshot: handlers may unsubscribe (once) while we iterate.
        for handler in list(self._handlers.get(name, ())):
            self._dispatch(name, handler, payload)

        if name != WILDCARD:
            for handler in list(self._handlers.get(WILDCARD, ())):
                self._dispatch(name, handler, (name, payload))

    def listener_count(self, name: str) -> int:
        return len(self._handlers.get(name, ()))

    @staticmethod
    def _dispatch(name: str, handler: EventHandler, payload: Any) -> None:
        try:
            handler(payload)
        except Exception:
            logger.exception("Event handler failed event=%s handler=%r", name, handler)
