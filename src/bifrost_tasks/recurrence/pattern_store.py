# src/bifrost_tasks/recurrence/pattern_store.py

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any

from ..core import events
from ..core.ports import KeyValueStore, Notifier, StateSchema
from ..errors import BifrostError, ValidationError
from .calculator import CustomCalculator, next_occurrence
from .models import SCHEDULE_FIELDS, RecurrencePattern, RecurrenceType

logger = logging.getLogger(__name__)

PATTERNS_KEY = "recurringPatterns"
PATTERNS_SCHEMA_VERSION = 1

_TIME_RE = re.compile(r"^\d{1,2}:\d{2}$")

_UPDATABLE = frozenset(
    {
        "text",
        "kind",
        "frequency",
        "days_of_week",
        "day_of_month",
        "time",
        "tags",
        "priority",
        "active",
        "source",
    }
)


def _validate(p: RecurrencePattern) -> None:
    if not p.text or not p.text.strip():
        raise ValidationError("text is required")
    if not p.kind or not p.kind.strip():
        raise ValidationError("type is required")
    if not isinstance(p.frequency, int) or isinstance(p.frequency, bool) or p.frequency < 1:
        raise ValidationError(f"frequency must be an integer >= 1, got {p.frequency!r}")
    bad_days = [d for d in p.days_of_week if not isinstance(d, int) or not 0 <= d <= 6]
    if bad_days:
        raise ValidationError(f"days_of_week must be within 0..6, got {bad_days!r}")
    if not isinstance(p.day_of_month, int) or not 1 <= p.day_of_month <= 31:
        raise ValidationError(f"day_of_month must be within 1..31, got {p.day_of_month!r}")
    if p.time is not None:
        if not isinstance(p.time, str) or not _TIME_RE.match(p.time):
            raise ValidationError(f"time must be HH:MM, got {p.time!r}")
        h, m = (int(x) for x in p.time.split(":"))
        if h > 23 or m > 59:
            raise ValidationError(f"time out of range: {p.time!r}")


def _normalize_days(days: Iterable[int] | None) -> list[int]:
    if isinstance(days, str):
        raise ValidationError(f"days_of_week must be a list of integers, got {days!r}")
    try:
        days = list(days or [])
    except TypeError:
        raise ValidationError(f"days_of_week must be a list of integers, got {days!r}") from None
    bad = [d for d in days if not isinstance(d, int) or isinstance(d, bool)]
    if bad:
        raise ValidationError(f"days_of_week must be integers within 0..6, got {bad!r}")
    return sorted(set(days))


def _is_pattern_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, dict) for item in value)


class PatternStore:
    """
    CRUD + persistence for recurrence patterns.

    The whole collection lives under one key of the key-value store and every
    mutation rewrites it in full. Storage failures never escape:
    - read failure  -> empty collection + warning
    - write failure -> logged; the in-memory collection stays authoritative
    """

    def __init__(
        self,
        state: KeyValueStore,
        notifier: Notifier | None = None,
        *,
        custom_calculator: CustomCalculator | None = None,
        clock: Callable[[], datetime] = datetime.now,
        default_source: str = "bifrost",
        storage_key: str = PATTERNS_KEY,
    ) -> None:
        self._state = state
        self._notifier = notifier
        self._custom = custom_calculator
        self._clock = clock
        self._default_source = default_source
        self._key = storage_key

        self._state.register_schema(
            self._key,
            StateSchema(
                version=PATTERNS_SCHEMA_VERSION,
                validate=_is_pattern_list,
                migrate=lambda value, _from_version: value,
                default=[],
            ),
        )
        self._patterns: list[RecurrencePattern] = self._load()
        logger.info("PatternStore ready patterns=%d", len(self._patterns))

    # ---- persistence ----

    def _load(self) -> list[RecurrencePattern]:
        try:
            raw = self._state.get(self._key, [])
        except Exception:
            logger.warning("Failed to read recurring patterns; starting empty", exc_info=True)
            return []

        if not isinstance(raw, list):
            logger.warning("Recurring patterns blob is not a list; starting empty")
            return []

        try:
            return [RecurrencePattern.from_dict(item) for item in raw]
        except (KeyError, TypeError, ValueError):
            logger.warning("Corrupt recurring pattern data; starting empty", exc_info=True)
            return []

    def _save(self) -> None:
        try:
            self._state.set(self._key, [p.to_dict() for p in self._patterns])
        except BifrostError:
            logger.exception("Failed to persist %d recurring patterns", len(self._patterns))

    def _emit(self, name: str, payload: Any) -> None:
        if self._notifier is not None:
            self._notifier.emit(name, payload)

    def next_occurrence(self, pattern: RecurrencePattern, from_time: datetime | None = None) -> datetime:
        return next_occurrence(
            pattern,
            from_time if from_time is not None else self._clock(),
            custom=self._custom,
        )

    # ---- queries ----

    def get(self, pattern_id: str) -> RecurrencePattern | None:
        for p in self._patterns:
            if p.id == pattern_id:
                return p
        return None

    def list_all(self) -> list[RecurrencePattern]:
        return list(self._patterns)

    def list_active(self) -> list[RecurrencePattern]:
        return [p for p in self._patterns if p.active]

    def list_by_type(self, kind: str) -> list[RecurrencePattern]:
        return [p for p in self._patterns if p.kind == kind]

    def due(self, now: datetime | None = None) -> list[RecurrencePattern]:
        """Active patterns whose next_due is at or before now."""
        now = now if now is not None else self._clock()
        return [p for p in self._patterns if p.active and p.next_due <= now]

    def upcoming(self, days: int = 7) -> list[RecurrencePattern]:
        horizon = self._clock() + timedelta(days=days)
        found = [p for p in self._patterns if p.active and p.next_due <= horizon]
        return sorted(found, key=lambda p: p.next_due)

    def stats(self) -> dict[str, int]:
        ps = self._patterns
        return {
            "total": len(ps),
            "active": sum(1 for p in ps if p.active),
            "paused": sum(1 for p in ps if not p.active),
            "daily": sum(1 for p in ps if p.kind == RecurrenceType.DAILY),
            "weekly": sum(1 for p in ps if p.kind == RecurrenceType.WEEKLY),
            "monthly": sum(1 for p in ps if p.kind == RecurrenceType.MONTHLY),
            "custom": sum(1 for p in ps if p.kind == RecurrenceType.CUSTOM),
            "total_completions": sum(p.completion_count for p in ps),
            "upcoming": len(self.upcoming(7)),
        }

    # ---- mutations ----

    def create(
        self,
        *,
        text: str | None = None,
        kind: str | None = None,
        frequency: int = 1,
        days_of_week: Iterable[int] | None = None,
        day_of_month: int = 1,
        time: str | None = None,
        tags: Iterable[str] | None = None,
        priority: str = "normal",
        source: str | None = None,
    ) -> RecurrencePattern:
        """
        Create and persist a pattern. text and kind are required.

        Raises ValidationError on malformed input; nothing is stored in that case.
        """
        now = self._clock()
        pattern = RecurrencePattern(
            id=uuid.uuid4().hex,
            text=(text or "").strip(),
            kind=(kind or "").strip(),
            next_due=now,
            frequency=frequency,
            days_of_week=_normalize_days(days_of_week),
            day_of_month=day_of_month,
            time=time or None,
            tags=list(tags or []),
            priority=priority or "normal",
            active=True,
            created_at=now,
            source=source or self._default_source,
        )
        _validate(pattern)
        pattern.next_due = self.next_occurrence(pattern, now)

        self._patterns.append(pattern)
        self._save()
        logger.info("Pattern created id=%s type=%s next_due=%s", pattern.id, pattern.kind, pattern.next_due)
        self._emit(events.PATTERN_CREATED, pattern)
        return pattern

    def update(self, pattern_id: str, **changes: Any) -> RecurrencePattern | None:
        """
        Merge changes into a pattern. Returns None if the id is unknown.

        If a schedule field (kind/frequency/days_of_week/day_of_month) changes,
        or a paused pattern is reactivated, next_due is recomputed from now.
        An empty time clears the time of day, as in create().
        """
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValidationError(f"unknown pattern fields: {sorted(unknown)}")

        pattern = self.get(pattern_id)
        if pattern is None:
            return None

        if "days_of_week" in changes:
            changes["days_of_week"] = _normalize_days(changes["days_of_week"])
        if "tags" in changes:
            changes["tags"] = list(changes["tags"] or [])
        if "time" in changes:
            changes["time"] = changes["time"] or None

        candidate = replace(pattern, **changes)
        _validate(candidate)

        schedule_changed = any(getattr(candidate, f) != getattr(pattern, f) for f in SCHEDULE_FIELDS)
        reactivated = candidate.active and not pattern.active
        for name, value in changes.items():
            setattr(pattern, name, value)
        if schedule_changed or reactivated:
            pattern.next_due = self.next_occurrence(pattern, self._clock())

        self._save()
        logger.info("Pattern updated id=%s fields=%s", pattern.id, sorted(changes))
        self._emit(events.PATTERN_UPDATED, pattern)
        return pattern

    def delete(self, pattern_id: str) -> bool:
        pattern = self.get(pattern_id)
        if pattern is None:
            return False
        self._patterns.remove(pattern)
        self._save()
        logger.info("Pattern deleted id=%s", pattern_id)
        self._emit(events.PATTERN_DELETED, pattern)
        return True

    def pause(self, pattern_id: str) -> RecurrencePattern | None:
        """Deactivate; next_due is left as it was."""
        return self.update(pattern_id, active=False)

    def resume(self, pattern_id: str) -> RecurrencePattern | None:
        """
        Reactivate and reschedule from the resume time.

        Occurrences missed while paused are skipped, not backfilled.
        """
        pattern = self.get(pattern_id)
        if pattern is None:
            return None
        pattern.active = True
        pattern.next_due = self.next_occurrence(pattern, self._clock())
        self._save()
        logger.info("Pattern resumed id=%s next_due=%s", pattern.id, pattern.next_due)
        self._emit(events.PATTERN_UPDATED, pattern)
        return pattern

    def mark_generated(self, pattern: RecurrencePattern, now: datetime | None = None) -> datetime:
        """
        Record one generated instance and advance next_due by exactly one interval,
        counting from the previous next_due (not from now) so the schedule does not drift.

        Returns the due time of the instance that was just generated.
        """
        generated_due = pattern.next_due
        pattern.last_created = now if now is not None else self._clock()
        pattern.completion_count += 1
        pattern.next_due = self.next_occurrence(pattern, generated_due)
        self._save()
        return generated_due

    def clear_all(self) -> None:
        self._patterns = []
        self._save()
        logger.info("All recurring patterns cleared")
        self._emit(events.PATTERNS_CLEARED, None)
