from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Protocol

from app.services.recurrence import first_payment_date, next_payment_date
from app.types.scheduling import PaymentScheduleCreate, Recurrence
from app.utils.clock import Clock

_LOGGER = logging.getLogger(__name__)


class PaymentStoreProtocol(Protocol):
    async def create(self, data: PaymentScheduleCreate, next_payment_at: datetime): ...

    async def find_due_before(self, now: datetime) -> list: ...

    async def find_by_owner(self, chat_id: str) -> list: ...

    async def cancel(self, pid: str): ...

    async def update_after_payment(self, pid: str, next_payment_at: Optional[datetime], paid_count: int): ...


class ScheduledPaymentService:
    def __init__(self, store: PaymentStoreProtocol, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or Clock()

    async def create_schedule(self, data: PaymentScheduleCreate):
        if data.first_payment_at is not None:
            next_payment_at = data.first_payment_at
        else:
            next_payment_at = first_payment_date(
                self.clock.local_now(),
                data.recurrence,
                data.recurrence_day,
                data.recurrence_time,
            )
        schedule = await self.store.create(data, next_payment_at)
        _LOGGER.info("Created scheduled payment %s for %s", schedule.payment_id, data.recipient)
        return schedule

    async def get_pending_payments(self, now: datetime) -> list:
        return await self.store.find_due_before(now)

    async def get_active_schedules(self, chat_id: str) -> list:
        return await self.store.find_by_owner(chat_id)

    async def cancel_by_index(self, chat_id: str, index: int):
        """Cancel the ``index``-th (1-based) active schedule of ``chat_id``."""
        schedules = await self.store.find_by_owner(chat_id)
        if index < 1 or index > len(schedules):
            return None
        return await self.store.cancel(schedules[index - 1].payment_id)

    async def process_payment(self, payment) -> None:
        """Advance or complete a payment series after its reminder went out."""
        paid_count = payment.paid_count + 1
        done = payment.total_payments is not None and paid_count >= payment.total_payments

        if done or payment.recurrence == Recurrence.NONE:
            await self.store.update_after_payment(payment.payment_id, None, paid_count)
            _LOGGER.info("Scheduled payment %s completed after %d payments", payment.payment_id, paid_count)
            return

        next_at = next_payment_date(
            self.clock.localize(payment.next_payment_at),
            payment.recurrence,
            payment.recurrence_day,
            payment.recurrence_time,
        )
        await self.store.update_after_payment(payment.payment_id, next_at, paid_count)
        _LOGGER.info("Scheduled payment %s rescheduled to %s", payment.payment_id, next_at.isoformat())
