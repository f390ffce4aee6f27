"""Dispatch loop: every interval, send what is due.

One tick runs, in order:

1. due reminders → compose, deliver, mark SENT (respawning recurring ones) or FAILED
2. local-hour checkpoints → daily digest, Monday weekly summary, 1st-of-month summary
3. due scheduled payments → deliver payment reminder, advance or complete the series

Ticks never overlap inside one process: a firing that finds the previous tick
still running is dropped. Nothing here coordinates across processes, so only
one scheduler may run against a given database.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

from app.services.digest import DigestService, PeriodSummaryService
from app.services.notifications import build_payment_notification, build_reminder_notification
from app.services.payments import ScheduledPaymentService
from app.services.reminders import ReminderService
from app.types.scheduling import Recurrence, RetryPolicy
from app.utils.clock import Clock
from app.utils.sms import Messenger, deliver
from config import settings

_LOGGER = logging.getLogger(__name__)


class SchedulerService:
    def __init__(
        self,
        reminder_service: ReminderService,
        messenger: Messenger,
        digest_service: Optional[DigestService] = None,
        summary_service: Optional[PeriodSummaryService] = None,
        payment_service: Optional[ScheduledPaymentService] = None,
        clock: Optional[Clock] = None,
        interval_seconds: Optional[float] = None,
        retry_policy: Optional[RetryPolicy] = None,
        weekly_summary_hour: Optional[int] = None,
        monthly_summary_hour: Optional[int] = None,
    ):
        self.reminder_service = reminder_service
        self.messenger = messenger
        self.digest_service = digest_service
        self.summary_service = summary_service
        self.payment_service = payment_service
        self.clock = clock or Clock()
        self.interval_seconds = interval_seconds or settings.SCHEDULER_INTERVAL_SECONDS
        self.retry_policy = retry_policy
        self.weekly_summary_hour = (
            settings.WEEKLY_SUMMARY_HOUR if weekly_summary_hour is None else weekly_summary_hour
        )
        self.monthly_summary_hour = (
            settings.MONTHLY_SUMMARY_HOUR if monthly_summary_hour is None else monthly_summary_hour
        )
        self._is_running = False
        self._timer: Optional[asyncio.Task] = None
        self._tick_tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------
    @property
    def started(self) -> bool:
        return self._timer is not None

    @property
    def tick_in_progress(self) -> bool:
        return self._is_running

    def start(self) -> None:
        """Tick now, then every ``interval_seconds``. Needs a running event loop."""
        if self._timer is not None:
            _LOGGER.warning("Scheduler already running")
            return

        _LOGGER.info("Scheduler started (checking every %ss)", self.interval_seconds)
        self._spawn_tick()
        self._timer = asyncio.create_task(self._run_timer())

    def stop(self) -> None:
        """Cancel the timer. A tick already in flight is left to finish."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            _LOGGER.info("Scheduler stopped")

    async def drain(self) -> None:
        """Wait for ticks already in flight; call after ``stop()`` before releasing resources."""
        if self._tick_tasks:
            await asyncio.gather(*self._tick_tasks, return_exceptions=True)

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self._spawn_tick()

    def _spawn_tick(self) -> None:
        task = asyncio.create_task(self.tick())
        self._tick_tasks.add(task)
        task.add_done_callback(self._tick_tasks.discard)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------
    async def tick(self) -> bool:
        """Run one pass. Returns False when skipped because a pass is running."""
        if self._is_running:
            _LOGGER.debug("Scheduler tick skipped (previous tick still running)")
            return False

        self._is_running = True
        try:
            now = self.clock.now()
            pending = await self.reminder_service.get_pending_reminders(now)
            if pending:
                _LOGGER.info("Found %d pending reminder(s)", len(pending))
            for reminder in pending:
                await self.send_reminder(reminder)

            await self._run_checkpoints(self.clock.localize(now))

            if self.payment_service is not None:
                payments = await self.payment_service.get_pending_payments(now)
                if payments:
                    _LOGGER.info("Found %d pending scheduled payment(s)", len(payments))
                for payment in payments:
                    await self.send_payment_reminder(payment)
        except Exception:  # noqa: BLE001
            _LOGGER.exception("Error in scheduler tick")
        finally:
            self._is_running = False
        return True

    async def _run_checkpoints(self, local_now) -> None:
        if self.digest_service is not None:
            try:
                await self.digest_service.send_daily_digests(local_now)
            except Exception:  # noqa: BLE001
                _LOGGER.error("Error sending daily digests", exc_info=True)

        if self.summary_service is None:
            return

        if local_now.weekday() == 0 and local_now.hour == self.weekly_summary_hour:
            try:
                await self.summary_service.send_weekly_summaries(local_now)
            except Exception:  # noqa: BLE001
                _LOGGER.error("Error sending weekly summaries", exc_info=True)

        if local_now.day == 1 and local_now.hour == self.monthly_summary_hour:
            try:
                await self.summary_service.send_monthly_summaries(local_now)
            except Exception:  # noqa: BLE001
                _LOGGER.error("Error sending monthly summaries", exc_info=True)

    # ------------------------------------------------------------------
    # Per-item dispatch
    # ------------------------------------------------------------------
    async def send_reminder(self, reminder) -> None:
        rid = reminder.reminder_id
        _LOGGER.info("Sending reminder %s to %s", rid, reminder.chat_id)

        try:
            message = build_reminder_notification(reminder.reminder_text)
            await deliver(self.messenger, reminder.chat_id, message, self.retry_policy)
            await self.reminder_service.mark_sent(rid)
        except Exception:  # noqa: BLE001
            _LOGGER.error("Failed to send reminder %s", rid, exc_info=True)
            try:
                await self.reminder_service.mark_failed(rid)
            except Exception:  # noqa: BLE001
                _LOGGER.error("Failed to mark reminder %s as failed", rid, exc_info=True)
            return

        _LOGGER.info("Reminder %s sent successfully", rid)
        if reminder.recurrence == Recurrence.NONE:
            return
        try:
            nxt = await self.reminder_service.respawn(reminder)
        except Exception:  # noqa: BLE001
            # The series stops here until someone re-arms it.
            _LOGGER.error("Failed to reschedule recurring reminder %s", rid, exc_info=True)
            return
        if nxt is not None:
            _LOGGER.info(
                "Recurring reminder rescheduled: %s for %s",
                nxt.reminder_id, nxt.scheduled_at.isoformat(),
            )

    async def send_payment_reminder(self, payment) -> None:
        pid = payment.payment_id
        _LOGGER.info("Sending payment reminder %s to %s", pid, payment.chat_id)

        try:
            message = build_payment_notification(payment)
            await deliver(self.messenger, payment.chat_id, message, self.retry_policy)
        except Exception:  # noqa: BLE001
            # next_payment_at is untouched, so the next tick tries again
            _LOGGER.error("Failed to send payment reminder %s", pid, exc_info=True)
            return

        try:
            await self.payment_service.process_payment(payment)
        except Exception:  # noqa: BLE001
            _LOGGER.error("Failed to advance scheduled payment %s", pid, exc_info=True)
            return
        _LOGGER.info("Payment reminder %s sent successfully", pid)


def build_scheduler(clock: Optional[Clock] = None) -> SchedulerService:
    """Wire the scheduler against the SQL stores, Telnyx and settings."""
    import db
    from app.services.calendar import calendar_from_settings
    from app.types.scheduling import retry_policy_from_settings
    from app.utils.sms import SmsMessenger

    clock = clock or Clock()
    messenger = SmsMessenger()
    retry_policy = retry_policy_from_settings(settings)
    reminder_store = db.ReminderStore()

    return SchedulerService(
        reminder_service=ReminderService(reminder_store, calendar_from_settings(), clock),
        messenger=messenger,
        digest_service=DigestService(
            reminder_store, db.DigestUserStore(), messenger, clock, retry_policy
        ),
        summary_service=PeriodSummaryService(reminder_store, messenger, clock, retry_policy),
        payment_service=ScheduledPaymentService(db.PaymentStore(), clock),
        clock=clock,
        retry_policy=retry_policy,
    )
