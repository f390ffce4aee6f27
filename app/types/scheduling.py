"""Pydantic models and enums shared by the scheduler, the stores and tests."""

from __future__ import annotations

import enum
import re
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional, Union
from typing_extensions import Annotated

from pydantic import BaseModel, Field, field_validator, model_validator

_HHMM = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class Recurrence(str, enum.Enum):
    NONE = "NONE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class ReminderStatus(str, enum.Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# ──────────────────────────────
# Recurrence configuration
# ──────────────────────────────


class RecurrenceConfig(BaseModel):
    """How an entity repeats.

    ``recurrence_day`` is a weekday (0 = Sunday … 6 = Saturday) for WEEKLY and
    a day of month (1-31) for MONTHLY. It is ignored for NONE and DAILY.
    """

    recurrence: Recurrence = Recurrence.NONE
    recurrence_day: Optional[int] = None
    recurrence_time: Optional[str] = None  # "HH:MM" local, defaults to 09:00

    @field_validator("recurrence_time")
    def _validate_time(cls, v):  # noqa: N805
        if v is not None and not _HHMM.match(v):
            raise ValueError(f"recurrence_time '{v}' must be HH:MM")
        return v

    @model_validator(mode="after")
    def _validate_day(self):  # noqa: N805
        day = self.recurrence_day
        if day is None:
            return self
        if self.recurrence == Recurrence.WEEKLY and not 0 <= day <= 6:
            raise ValueError("recurrence_day must be 0-6 for WEEKLY recurrence")
        if self.recurrence == Recurrence.MONTHLY and not 1 <= day <= 31:
            raise ValueError("recurrence_day must be 1-31 for MONTHLY recurrence")
        return self


class ReminderCreate(RecurrenceConfig):
    """Input accepted by ``ReminderService.create_reminder``."""

    chat_id: str
    reminder_text: str
    scheduled_at: datetime
    original_text: Optional[str] = None
    calendar_event_id: Optional[str] = None

    @field_validator("chat_id", "reminder_text")
    def _non_empty(cls, v):  # noqa: N805
        if not isinstance(v, str) or not v.strip():
            raise ValueError("must be a non-empty string")
        return v

    @field_validator("scheduled_at")
    def _aware(cls, v):  # noqa: N805
        if v.tzinfo is None:
            raise ValueError("scheduled_at must be timezone-aware")
        return v


class PaymentScheduleCreate(RecurrenceConfig):
    """Input accepted by ``ScheduledPaymentService.create_schedule``."""

    chat_id: str
    recipient: str
    amount: Decimal = Field(gt=0)
    description: Optional[str] = None
    total_payments: Optional[int] = Field(default=None, ge=1)
    first_payment_at: Optional[datetime] = None

    @field_validator("chat_id", "recipient")
    def _non_empty(cls, v):  # noqa: N805
        if not isinstance(v, str) or not v.strip():
            raise ValueError("must be a non-empty string")
        return v.strip()


# ──────────────────────────────
# Delivery retry policy
# ──────────────────────────────


class NoRetry(BaseModel):
    """Deliver once; a failure is final."""

    type: Literal["none"] = "none"


class FixedDelay(BaseModel):
    """Up to ``attempts`` tries, waiting ``delay_seconds`` between them."""

    type: Literal["fixed"] = "fixed"
    attempts: int = Field(default=3, ge=1)
    delay_seconds: float = Field(default=5.0, ge=0)


class ExponentialBackoff(BaseModel):
    """Up to ``attempts`` tries, doubling from ``base_seconds`` up to ``cap_seconds``."""

    type: Literal["exponential"] = "exponential"
    attempts: int = Field(default=3, ge=1)
    base_seconds: float = Field(default=1.0, gt=0)
    cap_seconds: float = Field(default=60.0, gt=0)


RetryPolicy = Annotated[
    Union[NoRetry, FixedDelay, ExponentialBackoff], Field(discriminator="type")
]


def retry_policy_from_settings(settings) -> Union[NoRetry, FixedDelay, ExponentialBackoff]:
    mode = (settings.DELIVERY_RETRY_MODE or "none").lower()
    if mode == "fixed":
        return FixedDelay(
            attempts=settings.DELIVERY_RETRY_ATTEMPTS,
            delay_seconds=settings.DELIVERY_RETRY_DELAY,
        )
    if mode == "exponential":
        return ExponentialBackoff(
            attempts=settings.DELIVERY_RETRY_ATTEMPTS,
            base_seconds=settings.DELIVERY_RETRY_DELAY,
            cap_seconds=settings.DELIVERY_RETRY_CAP,
        )
    if mode != "none":
        raise ValueError(f"unknown DELIVERY_RETRY_MODE '{mode}'")
    return NoRetry()
