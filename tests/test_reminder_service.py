from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from app.services.reminders import ReminderNotFoundError, ReminderService
from app.types.scheduling import Recurrence, ReminderStatus

BA = ZoneInfo("America/Argentina/Buenos_Aires")


@pytest.mark.asyncio
async def test_create_reminder_links_calendar_event(reminder_store, calendar, clock):
    service = ReminderService(reminder_store, calendar, clock)
    when = clock.now() + timedelta(hours=2)

    reminder = await service.create_reminder("+5491100000000", "pagar la luz", when, "recordame pagar la luz")

    assert reminder.status == ReminderStatus.PENDING
    assert reminder.calendar_event_id == "evt-1"
    assert calendar.events["evt-1"] == when


@pytest.mark.asyncio
async def test_calendar_failure_does_not_block_creation(reminder_store, calendar, clock):
    calendar.fail = True
    service = ReminderService(reminder_store, calendar, clock)

    reminder = await service.create_reminder("+549", "pagar la luz", clock.now() + timedelta(hours=1))

    assert reminder.reminder_id in reminder_store.rows
    assert reminder.calendar_event_id is None


@pytest.mark.asyncio
async def test_create_without_calendar(reminder_store, clock):
    service = ReminderService(reminder_store, None, clock)
    reminder = await service.create_reminder(
        "+549", "regar", clock.now(), recurrence=Recurrence.WEEKLY, recurrence_day=3, recurrence_time="20:00"
    )
    assert reminder.recurrence == Recurrence.WEEKLY
    assert reminder.recurrence_day == 3
    assert reminder.recurrence_time == "20:00"


@pytest.mark.asyncio
async def test_create_rejects_malformed_input(reminder_store, clock):
    service = ReminderService(reminder_store, None, clock)
    with pytest.raises(ValidationError):
        await service.create_reminder("+549", "regar", clock.now(), recurrence_time="9am")
    with pytest.raises(ValidationError):
        await service.create_reminder("+549", "regar", datetime(2024, 1, 15, 9, 0))
    assert reminder_store.rows == {}


@pytest.mark.asyncio
async def test_pending_reminders_are_due_and_ordered(reminder_store, clock):
    now = clock.now()
    late = reminder_store.add("a", "second", now - timedelta(minutes=1))
    early = reminder_store.add("a", "first", now - timedelta(hours=1))
    reminder_store.add("a", "future", now + timedelta(minutes=1))
    reminder_store.add("a", "done", now - timedelta(hours=2), status=ReminderStatus.SENT)
    service = ReminderService(reminder_store, None, clock)

    pending = await service.get_pending_reminders(now)

    assert [r.reminder_id for r in pending] == [early.reminder_id, late.reminder_id]


@pytest.mark.asyncio
async def test_mark_sent_and_failed(reminder_store, clock):
    ok = reminder_store.add("a", "x", clock.now())
    bad = reminder_store.add("a", "y", clock.now())
    service = ReminderService(reminder_store, None, clock)

    await service.mark_sent(ok.reminder_id)
    await service.mark_failed(bad.reminder_id)

    assert ok.status == ReminderStatus.SENT
    assert ok.sent_at == clock.now()
    assert bad.status == ReminderStatus.FAILED
    assert bad.sent_at is None


@pytest.mark.asyncio
async def test_cancel_deletes_calendar_event(reminder_store, calendar, clock):
    service = ReminderService(reminder_store, calendar, clock)
    reminder = await service.create_reminder("a", "x", clock.now() + timedelta(days=1))

    await service.cancel_reminder(reminder.reminder_id)

    assert reminder.status == ReminderStatus.CANCELLED
    assert calendar.events == {}


@pytest.mark.asyncio
async def test_cancel_survives_calendar_failure(reminder_store, calendar, clock):
    service = ReminderService(reminder_store, calendar, clock)
    reminder = await service.create_reminder("a", "x", clock.now() + timedelta(days=1))
    calendar.fail = True

    await service.cancel_reminder(reminder.reminder_id)

    assert reminder.status == ReminderStatus.CANCELLED


@pytest.mark.asyncio
async def test_cancel_and_modify_unknown_reminder(reminder_store, clock):
    service = ReminderService(reminder_store, None, clock)
    with pytest.raises(ReminderNotFoundError):
        await service.cancel_reminder("missing")
    with pytest.raises(ReminderNotFoundError):
        await service.modify_reminder_time("missing", clock.now())


@pytest.mark.asyncio
async def test_modify_time_moves_reminder_and_event(reminder_store, calendar, clock):
    service = ReminderService(reminder_store, calendar, clock)
    reminder = await service.create_reminder("a", "x", clock.now() + timedelta(days=1))
    new_time = clock.now() + timedelta(days=2)

    updated = await service.modify_reminder_time(reminder.reminder_id, new_time)

    assert updated.scheduled_at == new_time
    assert calendar.events[reminder.calendar_event_id] == new_time


@pytest.mark.asyncio
async def test_modify_time_survives_calendar_failure(reminder_store, calendar, clock):
    service = ReminderService(reminder_store, calendar, clock)
    reminder = await service.create_reminder("a", "x", clock.now() + timedelta(days=1))
    calendar.fail = True
    new_time = clock.now() + timedelta(days=3)

    updated = await service.modify_reminder_time(reminder.reminder_id, new_time)

    assert updated.scheduled_at == new_time


@pytest.mark.asyncio
async def test_respawn_creates_new_reminder_from_now(reminder_store, clock):
    # clock: Monday 2024-01-15 10:00 in Buenos Aires
    sent = reminder_store.add(
        "a", "tomar la pastilla", clock.now() - timedelta(minutes=5),
        original_text="todos los días a las 9",
        recurrence=Recurrence.DAILY, recurrence_time="09:00",
        status=ReminderStatus.SENT,
    )
    service = ReminderService(reminder_store, None, clock)

    nxt = await service.respawn(sent)

    assert nxt.reminder_id != sent.reminder_id
    assert nxt.status == ReminderStatus.PENDING
    assert nxt.reminder_text == sent.reminder_text
    assert nxt.original_text == sent.original_text
    assert nxt.recurrence == Recurrence.DAILY
    assert nxt.scheduled_at == datetime(2024, 1, 16, 9, 0, tzinfo=BA)
    assert nxt.scheduled_at == datetime(2024, 1, 16, 12, 0, tzinfo=timezone.utc)
    assert sent.status == ReminderStatus.SENT


@pytest.mark.asyncio
async def test_respawn_non_recurring_is_noop(reminder_store, clock):
    one_off = reminder_store.add("a", "x", clock.now())
    service = ReminderService(reminder_store, None, clock)
    assert await service.respawn(one_off) is None
    assert len(reminder_store.rows) == 1


@pytest.mark.asyncio
async def test_upcoming_reminders_for_chat(reminder_store, clock):
    now = clock.now()
    reminder_store.add("a", "past", now - timedelta(minutes=1))
    soon = reminder_store.add("a", "soon", now + timedelta(minutes=1))
    reminder_store.add("b", "other chat", now + timedelta(minutes=1))
    service = ReminderService(reminder_store, None, clock)

    assert [r.reminder_id for r in await service.get_upcoming_reminders("a")] == [soon.reminder_id]
