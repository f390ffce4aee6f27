"""Next-occurrence arithmetic for recurring reminders and payments.

Every function here is pure: callers pass already-localized, timezone-aware
datetimes and get localized datetimes back. Weekdays follow the stored
convention 0 = Sunday … 6 = Saturday.

Reminders re-anchor on the dispatch instant (``next_occurrence``) while
payments anchor on their previous due date (``next_payment_date``) so a
payment series stays strictly periodic however late a tick runs.
"""

from __future__ import annotations

import calendar
import re
from datetime import datetime, timedelta
from typing import Optional, Tuple

from app.types.scheduling import Recurrence

DEFAULT_TIME: Tuple[int, int] = (9, 0)
DEFAULT_WEEKDAY = 1  # Monday
DEFAULT_MONTH_DAY = 1

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def parse_recurrence_time(value: Optional[str]) -> Tuple[int, int]:
    """Parse "HH:MM" into (hour, minute), falling back to 09:00."""
    if not value:
        return DEFAULT_TIME
    match = _TIME_RE.match(value)
    if not match:
        return DEFAULT_TIME
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return DEFAULT_TIME
    return hour, minute


def weekday_index(moment: datetime) -> int:
    """Weekday of ``moment`` with 0 = Sunday."""
    return moment.isoweekday() % 7


def _shift_month(year: int, month: int, months: int) -> Tuple[int, int]:
    total = year * 12 + (month - 1) + months
    return total // 12, total % 12 + 1


def _on_day(reference: datetime, year: int, month: int, day: int, hour: int, minute: int) -> datetime:
    # Days past the end of the month clamp to its last day (31 -> 30 Apr, 28/29 Feb).
    last_day = calendar.monthrange(year, month)[1]
    return reference.replace(
        year=year,
        month=month,
        day=min(day, last_day),
        hour=hour,
        minute=minute,
        second=0,
        microsecond=0,
    )


def _at_time(moment: datetime, hour: int, minute: int) -> datetime:
    return moment.replace(hour=hour, minute=minute, second=0, microsecond=0)


def next_occurrence(
    now: datetime,
    recurrence: Recurrence,
    recurrence_day: Optional[int] = None,
    recurrence_time: Optional[str] = None,
) -> Optional[datetime]:
    """Next time a recurring reminder should fire after ``now``.

    Returns ``None`` for non-recurring reminders.
    """
    recurrence = Recurrence(recurrence)
    hour, minute = parse_recurrence_time(recurrence_time)
    candidate = _at_time(now, hour, minute)

    if recurrence == Recurrence.DAILY:
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate

    if recurrence == Recurrence.WEEKLY:
        target = DEFAULT_WEEKDAY if recurrence_day is None else recurrence_day
        delta = (target - weekday_index(now)) % 7
        if delta == 0 and candidate <= now:
            delta = 7
        return candidate + timedelta(days=delta)

    if recurrence == Recurrence.MONTHLY:
        target = recurrence_day or DEFAULT_MONTH_DAY
        candidate = _on_day(now, now.year, now.month, target, hour, minute)
        if candidate <= now:
            year, month = _shift_month(now.year, now.month, 1)
            candidate = _on_day(now, year, month, target, hour, minute)
        return candidate

    return None


def next_payment_date(
    previous: datetime,
    recurrence: Recurrence,
    recurrence_day: Optional[int] = None,
    recurrence_time: Optional[str] = None,
) -> datetime:
    """Due date following ``previous`` for a payment series.

    DAILY adds a day, WEEKLY seven, MONTHLY one calendar month; the configured
    time of day is re-applied each step. NONE returns ``previous`` unchanged.
    """
    recurrence = Recurrence(recurrence)
    hour, minute = parse_recurrence_time(recurrence_time)

    if recurrence == Recurrence.DAILY:
        return _at_time(previous + timedelta(days=1), hour, minute)

    if recurrence == Recurrence.WEEKLY:
        return _at_time(previous + timedelta(days=7), hour, minute)

    if recurrence == Recurrence.MONTHLY:
        year, month = _shift_month(previous.year, previous.month, 1)
        # Re-target the configured day so a clamped February does not drift the series.
        target = recurrence_day or previous.day
        return _on_day(previous, year, month, target, hour, minute)

    return previous


def first_payment_date(
    now: datetime,
    recurrence: Recurrence,
    recurrence_day: Optional[int] = None,
    recurrence_time: Optional[str] = None,
) -> datetime:
    """First due date for a new payment schedule created at ``now``."""
    recurrence = Recurrence(recurrence)
    if recurrence == Recurrence.WEEKLY:
        hour, minute = parse_recurrence_time(recurrence_time)
        target = DEFAULT_WEEKDAY if recurrence_day is None else recurrence_day
        delta = (target - weekday_index(now)) % 7 or 7
        return _at_time(now, hour, minute) + timedelta(days=delta)

    if recurrence == Recurrence.NONE:
        return now + timedelta(minutes=1)

    return next_occurrence(now, recurrence, recurrence_day, recurrence_time)
