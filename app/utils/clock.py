"""Wall-clock access for the scheduler.

All instants handed to stores are UTC-aware; everything that depends on the
user's wall clock (checkpoint hours, recurrence targets, period keys) works on
``localize``-d values.
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from config import settings

UTC = timezone.utc


class Clock:
    def __init__(self, tz: tzinfo | str | None = None):
        if tz is None:
            tz = settings.DEFAULT_TIMEZONE
        self.tz = ZoneInfo(tz) if isinstance(tz, str) else tz

    def now(self) -> datetime:
        return datetime.now(tz=UTC)

    def localize(self, instant: datetime) -> datetime:
        if instant.tzinfo is None:
            raise ValueError("instant must be timezone-aware")
        return instant.astimezone(self.tz)

    def local_now(self) -> datetime:
        return self.localize(self.now())


def to_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
