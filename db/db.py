"""
Async DB helpers for reminders, scheduled payments and digest subscribers.
Uses SQLAlchemy 2.0 + asyncpg driver – no raw SQL strings in app code.
"""

from __future__ import annotations

import os
from datetime import datetime
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

from sqlalchemy import (
    select, update, DateTime, Numeric, String, Enum as SAEnum, TypeDecorator
)
from sqlalchemy.orm import (
    DeclarativeBase, Mapped, mapped_column
)
from sqlalchemy.ext.asyncio import (
    create_async_engine, async_sessionmaker, AsyncSession
)

from app.types.scheduling import (
    PaymentScheduleCreate,
    PaymentStatus,
    Recurrence,
    ReminderCreate,
    ReminderStatus,
)
from app.utils.clock import UTC, to_utc
from config import settings

# ──────────────────────────────────────────────────────────────────────
# 1. Declarative metadata
# ──────────────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    pass


class UTCDateTime(TypeDecorator):
    """Stores instants as UTC and always hands back aware datetimes."""

    impl = DateTime
    cache_ok = True

    def __init__(self):
        super().__init__(timezone=True)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = to_utc(value)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return to_utc(value)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)

# ──────────────────────────────────────────────────────────────────────
# 2. Lazy engine / session factory
# ──────────────────────────────────────────────────────────────────────
_engine = None
_session_maker: async_sessionmaker[AsyncSession] | None = None

def _build_url() -> str:
    url = os.getenv("DATABASE_URL") or os.getenv("DATABASE_PUBLIC_URL")
    if not url:
        raise RuntimeError("DATABASE_URL not set")
    if "+asyncpg" not in url and "+aiosqlite" not in url:
        url = url.replace("postgres://", "postgresql+asyncpg://", 1).replace(
            "postgresql://", "postgresql+asyncpg://", 1
        )
    return url

def get_engine():
    global _engine
    if _engine is None:
        _engine = create_async_engine(_build_url(), pool_size=5, max_overflow=5)
    return _engine

def get_session() -> AsyncGenerator[AsyncSession, None]:
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(get_engine(), expire_on_commit=False)
    async def _session_scope():
        async with _session_maker() as session:
            yield session
    return _session_scope()

# ──────────────────────────────────────────────────────────────────────
# 3. ORM models
# ──────────────────────────────────────────────────────────────────────

_recurrence_type = SAEnum(Recurrence, native_enum=False, length=16)


class Reminder(Base):
    __tablename__ = "reminders"

    reminder_id:       Mapped[str]  = mapped_column(String(36), primary_key=True)
    chat_id:           Mapped[str]  = mapped_column(index=True)
    original_text:     Mapped[str | None]
    reminder_text:     Mapped[str]
    scheduled_at:      Mapped[datetime] = mapped_column(UTCDateTime(), index=True)
    status:            Mapped[ReminderStatus] = mapped_column(
        SAEnum(ReminderStatus, native_enum=False, length=16), default=ReminderStatus.PENDING
    )
    recurrence:        Mapped[Recurrence] = mapped_column(_recurrence_type, default=Recurrence.NONE)
    recurrence_day:    Mapped[int | None]
    recurrence_time:   Mapped[str | None] = mapped_column(String(5))
    calendar_event_id: Mapped[str | None]
    sent_at:           Mapped[datetime | None] = mapped_column(UTCDateTime())
    created_at:        Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow)
    updated_at:        Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow)


class ScheduledPayment(Base):
    __tablename__ = "scheduled_payments"

    payment_id:      Mapped[str]  = mapped_column(String(36), primary_key=True)
    chat_id:         Mapped[str]  = mapped_column(index=True)
    recipient:       Mapped[str]
    amount:          Mapped[Decimal] = mapped_column(Numeric(14, 2))
    description:     Mapped[str | None]
    recurrence:      Mapped[Recurrence] = mapped_column(_recurrence_type, default=Recurrence.NONE)
    recurrence_day:  Mapped[int | None]
    recurrence_time: Mapped[str | None] = mapped_column(String(5))
    next_payment_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), index=True)
    paid_count:      Mapped[int] = mapped_column(default=0)
    total_payments:  Mapped[int | None]
    status:          Mapped[PaymentStatus] = mapped_column(
        SAEnum(PaymentStatus, native_enum=False, length=16), default=PaymentStatus.ACTIVE
    )
    created_at:      Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow)
    updated_at:      Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow)


class DigestUser(Base):
    __tablename__ = "digest_users"

    chat_id:        Mapped[str]  = mapped_column(primary_key=True)
    digest_enabled: Mapped[bool] = mapped_column(default=False)
    digest_hour:    Mapped[int]  = mapped_column(default=8)
    created_at:     Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow)


# ──────────────────────────────────────────────────────────────────────
# 4. DDL helper (run once at startup or from Alembic)
# ──────────────────────────────────────────────────────────────────────
async def create_all():
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ──────────────────────────────────────────────────────────────────────
# 5. Stores
# ──────────────────────────────────────────────────────────────────────

# 5.1 Reminders --------------------------------------------------------
class ReminderStore:
    async def create(self, data: ReminderCreate) -> Reminder:
        now = _utcnow()
        reminder = Reminder(
            reminder_id=str(uuid4()),
            chat_id=data.chat_id,
            original_text=data.original_text,
            reminder_text=data.reminder_text,
            scheduled_at=data.scheduled_at,
            status=ReminderStatus.PENDING,
            recurrence=data.recurrence,
            recurrence_day=data.recurrence_day,
            recurrence_time=data.recurrence_time,
            calendar_event_id=data.calendar_event_id,
            created_at=now,
            updated_at=now,
        )
        async for s in get_session():
            s.add(reminder)
            await s.commit()
        return reminder

    async def find_by_id(self, rid: str) -> Reminder | None:
        async for s in get_session():
            result = await s.get(Reminder, rid)
        return result

    async def find_due_before(self, now: datetime) -> list[Reminder]:
        async for s in get_session():
            stmt = (
                select(Reminder)
                .where(
                    Reminder.status == ReminderStatus.PENDING,
                    Reminder.scheduled_at <= now,
                )
                .order_by(Reminder.scheduled_at)
            )
            res = await s.execute(stmt)
            result = list(res.scalars())
        return result

    async def update_status(
        self, rid: str, status: ReminderStatus, sent_at: datetime | None = None
    ) -> Reminder | None:
        values = {"status": status, "updated_at": _utcnow()}
        if sent_at is not None:
            values["sent_at"] = sent_at
        return await self._update(rid, values)

    async def update_scheduled_at(self, rid: str, scheduled_at: datetime) -> Reminder | None:
        return await self._update(rid, {"scheduled_at": scheduled_at, "updated_at": _utcnow()})

    async def _update(self, rid: str, values: dict) -> Reminder | None:
        async for s in get_session():
            await s.execute(
                update(Reminder)
                .where(Reminder.reminder_id == rid)
                .values(**values)
            )
            await s.commit()
            result = await s.get(Reminder, rid, populate_existing=True)
        return result

    async def find_upcoming(self, chat_id: str, now: datetime) -> list[Reminder]:
        async for s in get_session():
            stmt = (
                select(Reminder)
                .where(
                    Reminder.chat_id == chat_id,
                    Reminder.status == ReminderStatus.PENDING,
                    Reminder.scheduled_at > now,
                )
                .order_by(Reminder.scheduled_at)
            )
            res = await s.execute(stmt)
            result = list(res.scalars())
        return result

    async def find_pending_between(
        self, chat_id: str, start: datetime, end: datetime
    ) -> list[Reminder]:
        async for s in get_session():
            stmt = (
                select(Reminder)
                .where(
                    Reminder.chat_id == chat_id,
                    Reminder.status == ReminderStatus.PENDING,
                    Reminder.scheduled_at >= start,
                    Reminder.scheduled_at < end,
                )
                .order_by(Reminder.scheduled_at)
            )
            res = await s.execute(stmt)
            result = list(res.scalars())
        return result

    async def find_between(self, start: datetime, end: datetime) -> list[Reminder]:
        async for s in get_session():
            stmt = (
                select(Reminder)
                .where(
                    Reminder.scheduled_at >= start,
                    Reminder.scheduled_at < end,
                )
                .order_by(Reminder.chat_id, Reminder.scheduled_at)
            )
            res = await s.execute(stmt)
            result = list(res.scalars())
        return result


# 5.2 Scheduled payments -----------------------------------------------
class PaymentStore:
    async def create(self, data: PaymentScheduleCreate, next_payment_at: datetime) -> ScheduledPayment:
        now = _utcnow()
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
            created_at=now,
            updated_at=now,
        )
        async for s in get_session():
            s.add(payment)
            await s.commit()
        return payment

    async def find_due_before(self, now: datetime) -> list[ScheduledPayment]:
        async for s in get_session():
            stmt = (
                select(ScheduledPayment)
                .where(
                    ScheduledPayment.status == PaymentStatus.ACTIVE,
                    ScheduledPayment.next_payment_at <= now,
                )
                .order_by(ScheduledPayment.next_payment_at)
            )
            res = await s.execute(stmt)
            result = list(res.scalars())
        return result

    async def find_by_owner(self, chat_id: str) -> list[ScheduledPayment]:
        async for s in get_session():
            stmt = (
                select(ScheduledPayment)
                .where(
                    ScheduledPayment.chat_id == chat_id,
                    ScheduledPayment.status == PaymentStatus.ACTIVE,
                )
                .order_by(ScheduledPayment.next_payment_at)
            )
            res = await s.execute(stmt)
            result = list(res.scalars())
        return result

    async def cancel(self, pid: str) -> ScheduledPayment | None:
        return await self._update(pid, {"status": PaymentStatus.CANCELLED})

    async def update_after_payment(
        self, pid: str, next_payment_at: datetime | None, paid_count: int
    ) -> ScheduledPayment | None:
        if next_payment_at is None:
            values = {
                "paid_count": paid_count,
                "next_payment_at": None,
                "status": PaymentStatus.COMPLETED,
            }
        else:
            values = {"paid_count": paid_count, "next_payment_at": next_payment_at}
        return await self._update(pid, values)

    async def _update(self, pid: str, values: dict) -> ScheduledPayment | None:
        async for s in get_session():
            await s.execute(
                update(ScheduledPayment)
                .where(ScheduledPayment.payment_id == pid)
                .values(updated_at=_utcnow(), **values)
            )
            await s.commit()
            result = await s.get(ScheduledPayment, pid, populate_existing=True)
        return result


# 5.3 Digest subscribers -----------------------------------------------
class DigestUserStore:
    async def find_for_digest(self, hour: int) -> list[DigestUser]:
        async for s in get_session():
            stmt = (
                select(DigestUser)
                .where(
                    DigestUser.digest_enabled.is_(True),
                    DigestUser.digest_hour == hour,
                )
                .order_by(DigestUser.chat_id)
            )
            res = await s.execute(stmt)
            result = list(res.scalars())
        return result

    async def set_digest(self, chat_id: str, enabled: bool, hour: int | None = None) -> DigestUser:
        async for s in get_session():
            user = await s.get(DigestUser, chat_id)
            if user is None:
                user = DigestUser(chat_id=chat_id, created_at=_utcnow())
                s.add(user)
            user.digest_enabled = enabled
            if hour is not None:
                user.digest_hour = hour
            elif user.digest_hour is None:
                user.digest_hour = settings.DEFAULT_DIGEST_HOUR
            await s.commit()
            result = user
        return result


async def dispose_engine():
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
    _session_maker = None
