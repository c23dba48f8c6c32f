# src/bifrost_tasks/core/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any


def format_date(value: datetime | date | None) -> str | None:
    """YYYY-MM-DD in local calendar terms (no time-zone arithmetic)."""
    if value is None:
        return None
    return value.strftime("%Y-%m-%d")


def all_day_range(due_date: str) -> tuple[str, str]:
    """Start and (exclusive) end date of an all-day event on due_date."""
    start = date.fromisoformat(due_date)
    return start.isoformat(), (start + timedelta(days=1)).isoformat()


def _parse_dt(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, str) and raw:
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            pass
    return datetime.now()


@dataclass(slots=True)
class Task:
    """
    A todo as exchanged with the task-list owner.

    due_date is a calendar date string ("YYYY-MM-DD"). recurring_pattern_id is a
    weak back-reference used for lookups only; the pattern does not own the task.
    """

    id: str
    text: str
    completed: bool = False
    source: str = "bifrost"
    priority: str = "normal"
    tags: list[str] = field(default_factory=list)
    due_date: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    recurring_pattern_id: str | None = None
    due_time: str | None = None
    is_recurring: bool = False

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "source": self.source,
            "priority": self.priority,
            "tags": list(self.tags),
            "dueDate": self.due_date,
            "createdAt": self.created_at.isoformat(),
        }
        if self.recurring_pattern_id is not None:
            out["recurringPatternId"] = self.recurring_pattern_id
        if self.due_time is not None:
            out["dueTime"] = self.due_time
        if self.is_recurring:
            out["isRecurring"] = True
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        tags = data.get("tags") or []
        return cls(
            id=str(data.get("id") or ""),
            text=str(data.get("text") or ""),
            completed=bool(data.get("completed", False)),
            source=str(data.get("source") or "bifrost"),
            priority=str(data.get("priority") or "normal"),
            tags=[str(t) for t in tags] if isinstance(tags, list) else [],
            due_date=data.get("dueDate") or None,
            created_at=_parse_dt(data.get("createdAt")),
            recurring_pattern_id=data.get("recurringPatternId") or None,
            due_time=data.get("dueTime") or None,
            is_recurring=bool(data.get("isRecurring", False)),
        )


@dataclass(slots=True, frozen=True)
class EventView:
    """Display-oriented view of a remote calendar event."""

    id: str
    title: str
    description: str
    start: datetime
    end: datetime
    all_day: bool
    location: str | None = None
    link: str | None = None
