from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

import telnyx
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
)

from app.types.scheduling import ExponentialBackoff, FixedDelay, NoRetry, RetryPolicy
from config import settings

_LOGGER = logging.getLogger(__name__)

FROM_NUM = settings.TELNYX_FROM_NUMBER
TELNYX_API_KEY = settings.TELNYX_API_KEY
if TELNYX_API_KEY:
    telnyx.api_key = TELNYX_API_KEY

def send_sms(to: str, body: str) -> None:
    if not TELNYX_API_KEY or not FROM_NUM:
        _LOGGER.info("[SMS] DEV mode: would send to %s: %s", to, body)
        return
    telnyx.Message.create(from_=FROM_NUM, to=to, text=body)


class Messenger(Protocol):
    async def send_message(self, chat_id: str, text: str) -> None: ...


class SmsMessenger:
    """Delivers notifications over Telnyx SMS; ``chat_id`` is the phone number."""

    async def send_message(self, chat_id: str, text: str) -> None:
        # telnyx is a blocking SDK
        await asyncio.to_thread(send_sms, chat_id, text)


def _retrying(policy: RetryPolicy) -> AsyncRetrying:
    if isinstance(policy, FixedDelay):
        return AsyncRetrying(
            stop=stop_after_attempt(policy.attempts),
            wait=wait_fixed(policy.delay_seconds),
            reraise=True,
        )
    if isinstance(policy, ExponentialBackoff):
        return AsyncRetrying(
            stop=stop_after_attempt(policy.attempts),
            wait=wait_exponential(multiplier=policy.base_seconds, max=policy.cap_seconds),
            reraise=True,
        )
    return AsyncRetrying(stop=stop_after_attempt(1), reraise=True)


async def deliver(
    messenger: Messenger, chat_id: str, text: str, policy: Optional[RetryPolicy] = None
) -> None:
    """Send ``text`` to ``chat_id`` applying ``policy`` around the call.

    The last error is re-raised once the policy gives up.
    """
    policy = policy or NoRetry()
    async for attempt in _retrying(policy):
        with attempt:
            if attempt.retry_state.attempt_number > 1:
                _LOGGER.info(
                    "Retrying delivery to %s (attempt %d)",
                    chat_id, attempt.retry_state.attempt_number,
                )
            await messenger.send_message(chat_id, text)
