"""Daily digest and weekly/monthly reminder summaries.

Each job is guarded by a ``PeriodDedupCache`` that remembers, per chat, the
last period it was served. The cache lives in process memory only: after a
restart a chat can receive a second message for the current period.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Dict, Optional, Protocol

from app.types.scheduling import ReminderStatus, RetryPolicy
from app.utils.clock import Clock
from app.utils.sms import Messenger, deliver

_LOGGER = logging.getLogger(__name__)

CLOCK_ICONS = ["🕛", "🕐", "🕑", "🕒", "🕓", "🕔", "🕕", "🕖", "🕗", "🕘", "🕙", "🕚"]
WEEKDAYS_ES = ["lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo"]
MONTHS_ES = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]


class DigestUserStoreProtocol(Protocol):
    async def find_for_digest(self, hour: int) -> list: ...


class PeriodDedupCache:
    """chat_id → key of the last period served. Not thread-safe."""

    def __init__(self):
        self._served: Dict[str, str] = {}

    def already_served(self, chat_id: str, key: str) -> bool:
        return self._served.get(chat_id) == key

    def record(self, chat_id: str, key: str) -> None:
        self._served[chat_id] = key

    def __len__(self) -> int:
        return len(self._served)


# ──────────────────────────────
# Period keys and bounds (local time)
# ──────────────────────────────

def start_of_day(local: datetime) -> datetime:
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(local: datetime) -> datetime:
    """Midnight of the Monday on or before ``local``."""
    return start_of_day(local) - timedelta(days=local.weekday())


def daily_key(local: datetime) -> str:
    return local.strftime("%Y-%m-%d")


def weekly_key(local: datetime) -> str:
    return start_of_week(local).strftime("%Y-%m-%d")


def monthly_key(local: datetime) -> str:
    return local.strftime("%Y-%m")


def previous_month_start(local: datetime) -> datetime:
    first = start_of_day(local).replace(day=1)
    return (first - timedelta(days=1)).replace(day=1)


# ──────────────────────────────
# Formatting
# ──────────────────────────────

def format_daily_digest(reminders, local_now: datetime, clock: Clock) -> str:
    if not reminders:
        return "🌅 *Buenos días!*\n\nNo tenés recordatorios para hoy. ¡Que tengas un excelente día! ✨"

    date_str = f"{WEEKDAYS_ES[local_now.weekday()]} {local_now.day} de {MONTHS_ES[local_now.month - 1]}"
    lines = [f"🌅 *Buenos días!*\n\nTus recordatorios para hoy, {date_str}:\n"]
    for index, reminder in enumerate(reminders, start=1):
        at = clock.localize(reminder.scheduled_at)
        icon = CLOCK_ICONS[at.hour % 12]
        lines.append(f"{index}. {icon} {at:%H:%M} - {reminder.reminder_text}")

    count = len(reminders)
    plural = "s" if count > 1 else ""
    lines.append(f"\nTenés {count} recordatorio{plural} hoy. ¡A darle con todo! 💪")
    return "\n".join(lines)


def format_period_summary(title: str, reminders) -> str:
    counts = Counter(r.status for r in reminders)
    lines = [
        f"📊 *Resumen de recordatorios - {title}*",
        "",
        f"✅ Enviados: {counts[ReminderStatus.SENT]}",
        f"❌ Fallidos: {counts[ReminderStatus.FAILED]}",
        f"⏳ Pendientes: {counts[ReminderStatus.PENDING]}",
        f"🚫 Cancelados: {counts[ReminderStatus.CANCELLED]}",
        "",
        f"Total: {len(reminders)}",
    ]
    return "\n".join(lines)


# ──────────────────────────────
# Jobs
# ──────────────────────────────

class DigestService:
    """Morning digest of the day's pending reminders at each user's chosen hour."""

    def __init__(
        self,
        reminder_store,
        user_store: DigestUserStoreProtocol,
        messenger: Messenger,
        clock: Optional[Clock] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.reminder_store = reminder_store
        self.user_store = user_store
        self.messenger = messenger
        self.clock = clock or Clock()
        self.retry_policy = retry_policy
        self.sent_today = PeriodDedupCache()

    async def send_daily_digests(self, local_now: datetime) -> int:
        users = await self.user_store.find_for_digest(local_now.hour)
        if not users:
            return 0

        key = daily_key(local_now)
        start = start_of_day(local_now)
        end = start + timedelta(days=1)
        sent = 0

        for user in users:
            chat_id = user.chat_id
            if self.sent_today.already_served(chat_id, key):
                _LOGGER.debug("Digest already sent to %s today, skipping", chat_id)
                continue
            try:
                reminders = await self.reminder_store.find_pending_between(chat_id, start, end)
                message = format_daily_digest(reminders, local_now, self.clock)
                await deliver(self.messenger, chat_id, message, self.retry_policy)
            except Exception:  # noqa: BLE001
                _LOGGER.error("Failed to send digest to %s", chat_id, exc_info=True)
                continue
            self.sent_today.record(chat_id, key)
            sent += 1
            _LOGGER.info("Daily digest sent to %s (%d reminders)", chat_id, len(reminders))
        return sent


class PeriodSummaryService:
    """Weekly and monthly recaps of each chat's reminder activity."""

    def __init__(
        self,
        reminder_store,
        messenger: Messenger,
        clock: Optional[Clock] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.reminder_store = reminder_store
        self.messenger = messenger
        self.clock = clock or Clock()
        self.retry_policy = retry_policy
        self.sent_this_week = PeriodDedupCache()
        self.sent_this_month = PeriodDedupCache()

    async def send_weekly_summaries(self, local_now: datetime) -> int:
        """Recap of the Monday-Sunday week that just ended."""
        end = start_of_week(local_now)
        start = end - timedelta(days=7)
        last_day = end - timedelta(days=1)
        title = f"Semana del {start:%d/%m} al {last_day:%d/%m}"
        return await self._send(title, weekly_key(start), start, end, self.sent_this_week)

    async def send_monthly_summaries(self, local_now: datetime) -> int:
        """Recap of the previous calendar month."""
        start = previous_month_start(local_now)
        end = start_of_day(local_now).replace(day=1)
        title = f"{MONTHS_ES[start.month - 1].capitalize()} {start.year}"
        return await self._send(title, monthly_key(start), start, end, self.sent_this_month)

    async def _send(
        self, title: str, key: str, start: datetime, end: datetime, cache: PeriodDedupCache
    ) -> int:
        reminders = await self.reminder_store.find_between(start, end)
        by_chat = defaultdict(list)
        for reminder in reminders:
            by_chat[reminder.chat_id].append(reminder)

        sent = 0
        for chat_id, items in by_chat.items():
            if cache.already_served(chat_id, key):
                _LOGGER.debug("Summary %s already sent to %s", key, chat_id)
                continue
            try:
                await deliver(self.messenger, chat_id, format_period_summary(title, items), self.retry_policy)
            except Exception:  # noqa: BLE001
                _LOGGER.error("Failed to send summary %s to %s", key, chat_id, exc_info=True)
                continue
            cache.record(chat_id, key)
            sent += 1
            _LOGGER.info("Summary %s sent to %s", key, chat_id)
        return sent
