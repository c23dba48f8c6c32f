# src/bifrost_tasks/sync/mapping_store.py

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from ..core.ports import KeyValueStore, StateSchema
from ..errors import BifrostError

logger = logging.getLogger(__name__)

MAPPINGS_KEY = "calendarSyncMappings"
MAPPINGS_SCHEMA_VERSION = 1


def _is_mapping_table(value: Any) -> bool:
    return isinstance(value, dict) and all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    )


class SyncMappingStore:
    """
    Persisted local task id -> remote event id table.

    At most one remote id per local id. Mutations only touch memory; call
    save() to rewrite the persisted table (the reconciler does so once per pass).
    """

    def __init__(self, state: KeyValueStore, *, storage_key: str = MAPPINGS_KEY) -> None:
        self._state = state
        self._key = storage_key
        self._state.register_schema(
            self._key,
            StateSchema(
                version=MAPPINGS_SCHEMA_VERSION,
                validate=_is_mapping_table,
                migrate=lambda value, _from_version: value,
                default={},
            ),
        )
        self._mappings: dict[str, str] = self._load()
        logger.debug("Loaded %d sync mappings", len(self._mappings))

    def _load(self) -> dict[str, str]:
        try:
            raw = self._state.get(self._key, {})
        except Exception:
            logger.warning("Failed to read sync mappings; starting empty", exc_info=True)
            return {}
        if not _is_mapping_table(raw):
            logger.warning("Sync mapping blob has unexpected shape; starting empty")
            return {}
        return dict(raw)

    def save(self) -> None:
        try:
            self._state.set(self._key, dict(self._mappings))
        except BifrostError:
            logger.exception("Failed to persist %d sync mappings", len(self._mappings))

    def get(self, task_id: str) -> str | None:
        return self._mappings.get(task_id)

    def has(self, task_id: str) -> bool:
        return task_id in self._mappings

    def set(self, task_id: str, event_id: str) -> None:
        self._mappings[task_id] = event_id

    def remove(self, task_id: str) -> str | None:
        return self._mappings.pop(task_id, None)

    def task_ids(self) -> list[str]:
        return list(self._mappings)

    def event_ids(self) -> set[str]:
        return set(self._mappings.values())

    def items(self) -> list[tuple[str, str]]:
        return list(self._mappings.items())

    def __len__(self) -> int:
        return len(self._mappings)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._mappings))

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._mappings
