# modules/cancellation.py

import asyncio
import logging
import random
from typing import Optional

logger = logging.getLogger(__name__)

_DELAY_POLL_SECONDS = 0.05


class OperationCancelled(Exception):
    """Raised at a suspension point after the session's token was cancelled."""
    pass


class CancellationToken:
    """
    Cooperative cancellation flag for one dispatch.

    Nothing is interrupted pre-emptively; long-running steps call
    `raise_if_cancelled()` (or `simulated_delay`) between suspension points.
    """
    def __init__(self):
        self._cancelled = False
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "pause requested"):
        if not self._cancelled:
            logger.info(f"Cancellation requested: {reason}")
        self._cancelled = True
        self.reason = reason

    def raise_if_cancelled(self):
        if self._cancelled:
            raise OperationCancelled(self.reason or "cancelled")


async def simulated_delay(min_ms: float, max_ms: float, cancel_token: Optional[CancellationToken] = None):
    """Sleeps a random duration in [min_ms, max_ms], checking the token while waiting."""
    if max_ms < min_ms:
        min_ms, max_ms = max_ms, min_ms
    remaining = random.uniform(min_ms, max_ms) / 1000.0 if max_ms > 0 else 0.0

    if cancel_token:
        cancel_token.raise_if_cancelled()
    while remaining > 0:
        step = min(_DELAY_POLL_SECONDS, remaining)
        await asyncio.sleep(step)
        remaining -= step
        if cancel_token:
            cancel_token.raise_if_cancelled()
