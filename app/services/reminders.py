"""Reminder lifecycle: creation, sent/failed transitions, cancellation,
rescheduling and respawning of recurring reminders.

Calendar calls are best-effort everywhere in this module: a failing calendar
never prevents a reminder from being stored, cancelled or moved.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Protocol

from app.services.calendar import CalendarClient
from app.services.recurrence import next_occurrence
from app.types.scheduling import Recurrence, ReminderCreate, ReminderStatus
from app.utils.clock import Clock

_LOGGER = logging.getLogger(__name__)


class ReminderNotFoundError(LookupError):
    pass


class ReminderStoreProtocol(Protocol):
    async def create(self, data: ReminderCreate): ...

    async def find_by_id(self, rid: str): ...

    async def find_due_before(self, now: datetime) -> list: ...

    async def update_status(self, rid: str, status: ReminderStatus, sent_at: Optional[datetime] = None): ...

    async def update_scheduled_at(self, rid: str, scheduled_at: datetime): ...

    async def find_upcoming(self, chat_id: str, now: datetime) -> list: ...

    async def find_pending_between(self, chat_id: str, start: datetime, end: datetime) -> list: ...

    async def find_between(self, start: datetime, end: datetime) -> list: ...


class ReminderService:
    def __init__(
        self,
        store: ReminderStoreProtocol,
        calendar: Optional[CalendarClient] = None,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.calendar = calendar
        self.clock = clock or Clock()

    async def create_reminder(
        self,
        chat_id: str,
        reminder_text: str,
        scheduled_at: datetime,
        original_text: Optional[str] = None,
        recurrence: Recurrence = Recurrence.NONE,
        recurrence_day: Optional[int] = None,
        recurrence_time: Optional[str] = None,
    ):
        data = ReminderCreate(
            chat_id=chat_id,
            reminder_text=reminder_text,
            scheduled_at=scheduled_at,
            original_text=original_text,
            recurrence=recurrence,
            recurrence_day=recurrence_day,
            recurrence_time=recurrence_time,
        )
        _LOGGER.info("Creating reminder for %s", data.scheduled_at.isoformat())

        if self.calendar is not None:
            try:
                data.calendar_event_id = await self.calendar.create_event(
                    summary=f"Recordatorio: {reminder_text[:50]}",
                    description=original_text or reminder_text,
                    start=scheduled_at,
                )
                _LOGGER.info("Calendar event created: %s", data.calendar_event_id)
            except Exception:  # noqa: BLE001
                _LOGGER.warning("Failed to create calendar event, continuing without it", exc_info=True)

        reminder = await self.store.create(data)
        _LOGGER.info("Reminder created: %s", reminder.reminder_id)
        return reminder

    async def get_pending_reminders(self, now: datetime) -> list:
        return await self.store.find_due_before(now)

    async def get_upcoming_reminders(self, chat_id: str, now: Optional[datetime] = None) -> list:
        return await self.store.find_upcoming(chat_id, now or self.clock.now())

    async def mark_sent(self, rid: str) -> None:
        await self.store.update_status(rid, ReminderStatus.SENT, self.clock.now())
        _LOGGER.debug("Reminder %s marked as sent", rid)

    async def mark_failed(self, rid: str) -> None:
        await self.store.update_status(rid, ReminderStatus.FAILED)
        _LOGGER.warning("Reminder %s marked as failed", rid)

    async def respawn(self, reminder):
        """Store a fresh PENDING reminder for the next occurrence after now.

        The sent reminder is left untouched. Returns ``None`` for
        non-recurring reminders.
        """
        next_at = next_occurrence(
            self.clock.local_now(),
            reminder.recurrence,
            reminder.recurrence_day,
            reminder.recurrence_time,
        )
        if next_at is None:
            return None
        data = ReminderCreate(
            chat_id=reminder.chat_id,
            reminder_text=reminder.reminder_text,
            original_text=reminder.original_text,
            scheduled_at=next_at,
            recurrence=reminder.recurrence,
            recurrence_day=reminder.recurrence_day,
            recurrence_time=reminder.recurrence_time,
        )
        return await self.store.create(data)

    async def _get(self, rid: str):
        reminder = await self.store.find_by_id(rid)
        if reminder is None:
            raise ReminderNotFoundError(f"Reminder {rid} not found")
        return reminder

    async def cancel_reminder(self, rid: str) -> None:
        reminder = await self._get(rid)

        if reminder.calendar_event_id and self.calendar is not None:
            try:
                await self.calendar.delete_event(reminder.calendar_event_id)
            except Exception:  # noqa: BLE001
                _LOGGER.warning("Failed to delete calendar event %s", reminder.calendar_event_id, exc_info=True)

        await self.store.update_status(rid, ReminderStatus.CANCELLED)
        _LOGGER.info("Reminder %s cancelled", rid)

    async def modify_reminder_time(self, rid: str, new_scheduled_at: datetime):
        reminder = await self._get(rid)

        if reminder.calendar_event_id and self.calendar is not None:
            try:
                await self.calendar.update_event(reminder.calendar_event_id, start=new_scheduled_at)
            except Exception:  # noqa: BLE001
                _LOGGER.warning("Failed to update calendar event %s", reminder.calendar_event_id, exc_info=True)

        updated = await self.store.update_scheduled_at(rid, new_scheduled_at)
        _LOGGER.info("Reminder %s rescheduled to %s", rid, new_scheduled_at.isoformat())
        return updated
