# src/bifrost_tasks/storage/state_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any

from ..core.ports import StateSchema
from ..errors import StorageError, ValidationError

logger = logging.getLogger(__name__)


class StateStore:
    """
    SQLite key-value store for typed JSON blobs.

    Each key may have a registered StateSchema:
    - set() validates and stamps the value with the schema version
    - get() migrates rows written under an older version, then re-validates;
      an invalid value falls back to the schema default

    Every write replaces the full value of a key (no partial writes).

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "state.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._schemas: dict[str, StateSchema] = {}
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._ensure_schema()
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"cannot open state store at {self._db_path}: {e}") from e
        logger.info("StateStore ready db=%s", self._db_path)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    version INTEGER NOT NULL DEFAULT 1,
                    value TEXT NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def _read_row(self, key: str) -> sqlite3.Row | None:
        try:
            conn = self._get_conn()
            try:
                cur = conn.execute("SELECT version, value FROM kv WHERE key = ?", (key,))
                return cur.fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"read failed key={key}: {e}") from e

    # ---- public API ----

    def register_schema(self, key: str, schema: StateSchema) -> None:
        self._schemas[key] = schema
        logger.debug("Schema registered key=%s version=%s", key, schema.version)

    def get(self, key: str, default: Any = None) -> Any:
        schema = self._schemas.get(key)
        fallback = default if default is not None or schema is None else schema.default

        row = self._read_row(key)
        if row is None:
            return fallback

        try:
            value = json.loads(row["value"])
        except (TypeError, ValueError) as e:
            raise StorageError(f"corrupt value key={key}: {e}") from e

        if schema is None:
            return value

        stored_version = int(row["version"] or 1)
        if stored_version < schema.version:
            try:
                value = schema.migrate(value, stored_version)
            except Exception:
                logger.exception("Migration failed key=%s from_version=%s", key, stored_version)
                return fallback
            logger.info("Migrated key=%s v%s -> v%s", key, stored_version, schema.version)

        if not schema.validate(value):
            logger.warning("Stored value failed validation key=%s; using default", key)
            return fallback

        return value

    def set(self, key: str, value: Any) -> None:
        schema = self._schemas.get(key)
        version = 1
        if schema is not None:
            if not schema.validate(value):
                raise ValidationError(f"value rejected by schema key={key}")
            version = schema.version

        try:
            raw = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StorageError(f"value not serializable key={key}: {e}") from e

        try:
            conn = self._get_conn()
            try:
                conn.execute(
                    """
                    INSERT INTO kv(key, version, value, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        version = excluded.version,
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, version, raw, time.time()),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"write failed key={key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            conn = self._get_conn()
            try:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"delete failed key={key}: {e}") from e

    def keys(self) -> list[str]:
        try:
            conn = self._get_conn()
            try:
                return [str(r["key"]) for r in conn.execute("SELECT key FROM kv ORDER BY key")]
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"list keys failed: {e}") from e
