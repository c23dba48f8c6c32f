# src/bifrost_tasks/recurrence/calculator.py

from __future__ import annotations

"""
Next-occurrence date math.

next_occurrence() is pure: it never touches storage and never raises for an
unknown pattern type (it logs a warning and hands the reference time back).

Rules:
- daily:   from + frequency days
- weekly:  without weekdays -> from + 7*frequency days
           with weekdays    -> next configured weekday later this week, else the
                               first configured weekday `frequency` weeks on
- monthly: from + frequency months, day clamped to min(day_of_month, month length)
- custom:  delegated to an injected calculator

The time-of-day is then set from pattern.time (HH:MM) or normalized to midnight.
Datetimes are naive local times.
"""

import calendar
import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from .models import RecurrencePattern, RecurrenceType

logger = logging.getLogger(__name__)

CustomCalculator = Callable[[RecurrencePattern, datetime], datetime]

_DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def js_weekday(dt: datetime) -> int:
    """Weekday with 0=Sunday .. 6=Saturday."""
    return (dt.weekday() + 1) % 7


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def parse_time_of_day(raw: str) -> tuple[int, int]:
    hours, _, minutes = raw.partition(":")
    h, m = int(hours), int(minutes)
    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise ValueError(f"time out of range: {raw!r}")
    return h, m


def next_weekday(from_time: datetime, days_of_week: list[int], weeks_interval: int = 1) -> datetime:
    targets = sorted(set(days_of_week))
    current = js_weekday(from_time)

    for target in targets:
        if target > current:
            return from_time + timedelta(days=target - current)

    offset = (7 - current) + targets[0] + 7 * (weeks_interval - 1)
    return from_time + timedelta(days=offset)


def next_occurrence(
    pattern: RecurrencePattern,
    from_time: datetime | None = None,
    *,
    custom: CustomCalculator | None = None,
) -> datetime:
    base = from_time if from_time is not None else datetime.now()
    frequency = max(1, int(pattern.frequency or 1))
    kind = RecurrenceType.parse(pattern.kind)

    if kind is RecurrenceType.DAILY:
        nxt = base + timedelta(days=frequency)

    elif kind is RecurrenceType.WEEKLY:
        if pattern.days_of_week:
            nxt = next_weekday(base, pattern.days_of_week, frequency)
        else:
            nxt = base + timedelta(days=7 * frequency)

    elif kind is RecurrenceType.MONTHLY:
        # relativedelta clamps an absolute day to the target month's length.
        nxt = base + relativedelta(months=frequency, day=pattern.day_of_month or 1)

    elif kind is RecurrenceType.CUSTOM and custom is not None:
        nxt = custom(pattern, base)

    else:
        # TODO: decide whether an unknown type should be rejected at create() instead;
        # returning the input keeps the pattern due on every check.
        logger.warning("Unknown recurrence type %r for pattern %s", pattern.kind, pattern.id)
        return base

    if pattern.time:
        try:
            h, m = parse_time_of_day(pattern.time)
        except ValueError:
            logger.warning("Bad time %r on pattern %s; using midnight", pattern.time, pattern.id)
            h, m = 0, 0
        return nxt.replace(hour=h, minute=m, second=0, microsecond=0)

    return nxt.replace(hour=0, minute=0, second=0, microsecond=0)


def describe_pattern(pattern: RecurrencePattern) -> str:
    """Human-readable summary, e.g. "Every 2 weeks on Mon, Wed at 08:00"."""
    kind = RecurrenceType.parse(pattern.kind)
    n = pattern.frequency

    if kind is RecurrenceType.DAILY:
        desc = "Every day" if n == 1 else f"Every {n} days"
    elif kind is RecurrenceType.WEEKLY:
        if pattern.days_of_week:
            days = ", ".join(_DAY_NAMES[d] for d in sorted(pattern.days_of_week) if 0 <= d <= 6)
            desc = f"Every {days}" if n == 1 else f"Every {n} weeks on {days}"
        else:
            desc = "Every week" if n == 1 else f"Every {n} weeks"
    elif kind is RecurrenceType.MONTHLY:
        what = "month" if n == 1 else f"{n} months"
        desc = f"Every {what} on day {pattern.day_of_month}"
    elif kind is RecurrenceType.CUSTOM:
        desc = "Custom pattern"
    else:
        desc = "Unknown pattern"

    if pattern.time:
        desc += f" at {pattern.time}"
    return desc
