# src/bifrost_tasks/recurrence/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class RecurrenceType(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, raw: str | None) -> RecurrenceType | None:
        """Known type or None (unknown strings are kept on the pattern as-is)."""
        if not raw:
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


# Fields whose change moves the schedule; update() recomputes next_due when one changes.
SCHEDULE_FIELDS = ("kind", "frequency", "days_of_week", "day_of_month")


@dataclass(slots=True)
class RecurrencePattern:
    """
    A recurrence rule for regenerating a task.

    kind is the raw type string ("daily", "weekly", "monthly", "custom"). It is
    not coerced to RecurrenceType so that an unrecognized value survives a
    load/save round trip; the calculator warns about it instead.

    days_of_week uses 0=Sunday .. 6=Saturday.
    """

    id: str
    text: str
    kind: str
    next_due: datetime
    frequency: int = 1
    days_of_week: list[int] = field(default_factory=list)
    day_of_month: int = 1
    time: str | None = None
    tags: list[str] = field(default_factory=list)
    priority: str = "normal"
    active: bool = True
    created_at: datetime = field(default_factory=datetime.now)
    last_created: datetime | None = None
    completion_count: int = 0
    source: str = "bifrost"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "type": self.kind,
            "frequency": self.frequency,
            "daysOfWeek": list(self.days_of_week),
            "dayOfMonth": self.day_of_month,
            "time": self.time,
            "tags": list(self.tags),
            "priority": self.priority,
            "active": self.active,
            "createdAt": self.created_at.isoformat(),
            "lastCreated": self.last_created.isoformat() if self.last_created else None,
            "nextDue": self.next_due.isoformat(),
            "completionCount": self.completion_count,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecurrencePattern:
        """Strict decode; raises KeyError/ValueError/TypeError on malformed data."""
        last_created = data.get("lastCreated")
        return cls(
            id=str(data["id"]),
            text=str(data["text"]),
            kind=str(data["type"]),
            next_due=datetime.fromisoformat(data["nextDue"]),
            frequency=int(data.get("frequency") or 1),
            days_of_week=[int(d) for d in data.get("daysOfWeek") or []],
            day_of_month=int(data.get("dayOfMonth") or 1),
            time=data.get("time") or None,
            tags=[str(t) for t in data.get("tags") or []],
            priority=str(data.get("priority") or "normal"),
            active=bool(data.get("active", True)),
            created_at=datetime.fromisoformat(data["createdAt"]),
            last_created=datetime.fromisoformat(last_created) if last_created else None,
            completion_count=int(data.get("completionCount") or 0),
            source=str(data.get("source") or "bifrost"),
        )
