# src/bifrost_tasks/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Settings are injectable: components receive plain values, never read env themselves.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "BIFROST"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    state_db_path: Path
    tasks_path: Path
    google_token_path: Path

    # ---- Recurrence ----
    recurrence_check_interval_seconds: float

    # ---- Calendar sync ----
    sync_enabled: bool
    sync_interval_seconds: float
    sync_days_ahead: int
    calendar_id: str

    # ---- Source tags ----
    local_source: str
    remote_source: str

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "bifrost").strip() or "bifrost"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/bifrost"))
        state_db_path = _env_path(_k("STATE_DB_PATH"), data_dir / "state.sqlite3")
        tasks_path = _env_path(_k("TASKS_PATH"), data_dir / "tasks.json")
        google_token_path = _env_path(_k("GOOGLE_TOKEN_PATH"), data_dir / "google_token.json")

        # Floors keep a misconfigured interval from turning the loops into busy-waits.
        recurrence_check_interval_seconds = max(
            1.0, _env_float(_k("RECURRENCE_CHECK_INTERVAL_SECONDS"), 3600.0)
        )

        sync_enabled = _env_bool(_k("SYNC_ENABLED"), False)
        sync_interval_seconds = max(1.0, _env_float(_k("SYNC_INTERVAL_SECONDS"), 300.0))
        sync_days_ahead = max(1, _env_int(_k("SYNC_DAYS_AHEAD"), 7))
        calendar_id = _env(_k("CALENDAR_ID"), "primary").strip() or "primary"

        local_source = _env(_k("LOCAL_SOURCE"), "bifrost").strip() or "bifrost"
        remote_source = _env(_k("REMOTE_SOURCE"), "calendar").strip() or "calendar"

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            state_db_path=state_db_path,
            tasks_path=tasks_path,
            google_token_path=google_token_path,
            recurrence_check_interval_seconds=recurrence_check_interval_seconds,
            sync_enabled=sync_enabled,
            sync_interval_seconds=sync_interval_seconds,
            sync_days_ahead=sync_days_ahead,
            calendar_id=calendar_id,
            local_source=local_source,
            remote_source=remote_source,
        )


def get_settings() -> Settings:
    return Settings.from_env()
