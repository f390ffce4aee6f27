import asyncio
from datetime import datetime, timezone
from uuid import uuid4

import pytest

from app.types.scheduling import PaymentStatus, Recurrence, ReminderStatus
from app.utils.clock import UTC, Clock
from db import DigestUser, Reminder, ScheduledPayment

BA_TZ = "America/Argentina/Buenos_Aires"


class FrozenClock(Clock):
    """Clock pinned to a fixed instant; tests move it with set() and advance()."""

    def __init__(self, instant, tz=None):
        super().__init__(tz)
        self._instant = instant.astimezone(UTC)

    def now(self):
        return self._instant

    def set(self, instant):
        self._instant = instant.astimezone(UTC)

    def advance(self, delta):
        self._instant = self._instant + delta


class FakeReminderStore:
    def __init__(self):
        self.rows: dict[str, Reminder] = {}
        self.reads = 0
        self.fail_create = False
        self.fail_reads = False

    def add(self, chat_id, text, scheduled_at, **kw) -> Reminder:
        reminder = Reminder(
            reminder_id=kw.pop("reminder_id", str(uuid4())),
            chat_id=chat_id,
            original_text=kw.pop("original_text", None),
            reminder_text=text,
            scheduled_at=scheduled_at,
            status=kw.pop("status", ReminderStatus.PENDING),
            recurrence=kw.pop("recurrence", Recurrence.NONE),
            recurrence_day=kw.pop("recurrence_day", None),
            recurrence_time=kw.pop("recurrence_time", None),
            calendar_event_id=kw.pop("calendar_event_id", None),
            sent_at=None,
        )
        self.rows[reminder.reminder_id] = reminder
        return reminder

    async def create(self, data):
        if self.fail_create:
            raise RuntimeError("insert failed")
        return self.add(
            data.chat_id,
            data.reminder_text,
            data.scheduled_at,
            original_text=data.original_text,
            recurrence=data.recurrence,
            recurrence_day=data.recurrence_day,
            recurrence_time=data.recurrence_time,
            calendar_event_id=data.calendar_event_id,
        )

    async def find_by_id(self, rid):
        return self.rows.get(rid)

    async def find_due_before(self, now):
        self.reads += 1
        if self.fail_reads:
            raise RuntimeError("database unavailable")
        due = [
            r for r in self.rows.values()
            if r.status == ReminderStatus.PENDING and r.scheduled_at <= now
        ]
        return sorted(due, key=lambda r: r.scheduled_at)

    async def update_status(self, rid, status, sent_at=None):
        reminder = self.rows[rid]
        reminder.status = status
        if sent_at is not None:
            reminder.sent_at = sent_at
        return reminder

    async def update_scheduled_at(self, rid, scheduled_at):
        reminder = self.rows[rid]
        reminder.scheduled_at = scheduled_at
        return reminder

    async def find_upcoming(self, chat_id, now):
        return sorted(
            (r for r in self.rows.values()
             if r.chat_id == chat_id and r.status == ReminderStatus.PENDING and r.scheduled_at > now),
            key=lambda r: r.scheduled_at,
        )

    async def find_pending_between(self, chat_id, start, end):
        return sorted(
            (r for r in self.rows.values()
             if r.chat_id == chat_id and r.status == ReminderStatus.PENDING
             and start <= r.scheduled_at < end),
            key=lambda r: r.scheduled_at,
        )

    async def find_between(self, start, end):
        return sorted(
            (r for r in self.rows.values() if start <= r.scheduled_at < end),
            key=lambda r: (r.chat_id, r.scheduled_at),
        )


class FakePaymentStore:
    def __init__(self):
        self.rows: dict[str, ScheduledPayment] = {}
        self.reads = 0

    async def create(self, data, next_payment_at):
        payment = ScheduledPayment(
            payment_id=str(uuid4()),
            chat_id=data.chat_id,
            recipient=data.recipient,
            amount=data.amount,
            description=data.description,
            recurrence=data.recurrence,
            recurrence_day=data.recurrence_day,
            recurrence_time=data.recurrence_time,
            next_payment_at=next_payment_at,
            paid_count=0,
            total_payments=data.total_payments,
            status=PaymentStatus.ACTIVE,
        )
        self.rows[payment.payment_id] = payment
        return payment

    async def find_due_before(self, now):
        self.reads += 1
        due = [
            p for p in self.rows.values()
            if p.status == PaymentStatus.ACTIVE and p.next_payment_at <= now
        ]
        return sorted(due, key=lambda p: p.next_payment_at)

    async def find_by_owner(self, chat_id):
        return sorted(
            (p for p in self.rows.values()
             if p.chat_id == chat_id and p.status == PaymentStatus.ACTIVE),
            key=lambda p: p.next_payment_at,
        )

    async def cancel(self, pid):
        self.rows[pid].status = PaymentStatus.CANCELLED
        return self.rows[pid]

    async def update_after_payment(self, pid, next_payment_at, paid_count):
        payment = self.rows[pid]
        payment.paid_count = paid_count
        payment.next_payment_at = next_payment_at
        if next_payment_at is None:
            payment.status = PaymentStatus.COMPLETED
        return payment


class FakeDigestUserStore:
    def __init__(self, users=()):
        self.users = list(users)

    def add(self, chat_id, hour, enabled=True):
        self.users.append(DigestUser(chat_id=chat_id, digest_hour=hour, digest_enabled=enabled))

    async def find_for_digest(self, hour):
        return [u for u in self.users if u.digest_enabled and u.digest_hour == hour]


class FakeMessenger:
    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.calls = 0
        self.fail_chats: set[str] = set()
        self.failures_left = 0
        self.gate: asyncio.Event | None = None
        self.entered = asyncio.Event()

    async def send_message(self, chat_id, text):
        self.calls += 1
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if chat_id in self.fail_chats:
            raise ConnectionError(f"cannot reach {chat_id}")
        if self.failures_left > 0:
            self.failures_left -= 1
            raise ConnectionError("transient failure")
        self.sent.append((chat_id, text))


class FakeCalendar:
    def __init__(self):
        self.events: dict[str, datetime] = {}
        self.fail = False

    async def create_event(self, summary, description, start):
        if self.fail:
            raise RuntimeError("calendar API down")
        event_id = f"evt-{len(self.events) + 1}"
        self.events[event_id] = start
        return event_id

    async def delete_event(self, event_id):
        if self.fail:
            raise RuntimeError("calendar API down")
        self.events.pop(event_id, None)

    async def update_event(self, event_id, start):
        if self.fail:
            raise RuntimeError("calendar API down")
        self.events[event_id] = start


@pytest.fixture
def clock():
    # Monday 2024-01-15 10:00 in Buenos Aires (UTC-3)
    return FrozenClock(datetime(2024, 1, 15, 13, 0, tzinfo=timezone.utc), BA_TZ)


@pytest.fixture
def reminder_store():
    return FakeReminderStore()


@pytest.fixture
def payment_store():
    return FakePaymentStore()


@pytest.fixture
def user_store():
    return FakeDigestUserStore()


@pytest.fixture
def messenger():
    return FakeMessenger()


@pytest.fixture
def calendar():
    return FakeCalendar()
