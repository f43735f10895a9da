"""
Provider admission control.

Caps concurrent provider calls with a semaphore and pauses new calls after
the provider reports rate limiting. The pause honours Retry-After when the
provider sends one, otherwise it doubles per consecutive 429 up to a ceiling.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Optional

from config.constants import (
    PROVIDER_MAX_CONCURRENCY,
    RATE_LIMIT_BACKOFF_SECONDS,
    RATE_LIMIT_MAX_BACKOFF_SECONDS,
)
from config.logging_config import get_logger
from providers.base import RateLimitedError

logger = get_logger(__name__)


class ProviderRateLimiter:
    """
    Semaphore-based limiter with rate-limit backoff.

    Usage:
        limiter = ProviderRateLimiter(capacity=3)
        async with limiter.slot():
            await provider.translate_text(...)
    """

    def __init__(
        self,
        capacity: int = PROVIDER_MAX_CONCURRENCY,
        backoff_seconds: float = RATE_LIMIT_BACKOFF_SECONDS,
        max_backoff_seconds: float = RATE_LIMIT_MAX_BACKOFF_SECONDS
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self.capacity = capacity
        self.backoff_seconds = backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds

        self._semaphore: Optional[asyncio.Semaphore] = None
        self._resume_at = 0.0
        self._consecutive_limits = 0
        self.in_flight = 0
        self.peak_in_flight = 0

    @property
    def semaphore(self) -> asyncio.Semaphore:
        # Created on first use, inside the running loop
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.capacity)
        return self._semaphore

    @property
    def paused_for(self) -> float:
        """Seconds until new calls are admitted again"""
        return max(0.0, self._resume_at - time.monotonic())

    def report_rate_limited(self, retry_after: Optional[float] = None) -> float:
        """Record a 429 and return the pause applied"""
        self._consecutive_limits += 1
        if retry_after is not None and retry_after > 0:
            delay = min(retry_after, self.max_backoff_seconds)
        else:
            delay = min(
                self.backoff_seconds * (2 ** (self._consecutive_limits - 1)),
                self.max_backoff_seconds,
            )
        self._resume_at = max(self._resume_at, time.monotonic() + delay)
        logger.warning(f"Provider rate limited; pausing new calls for {delay:.1f}s")
        return delay

    def report_success(self) -> None:
        self._consecutive_limits = 0

    async def _wait_until_admitted(self) -> None:
        while True:
            wait = self.paused_for
            if wait <= 0:
                return
            await asyncio.sleep(wait)

    @asynccontextmanager
    async def slot(self):
        """Hold one provider slot for the duration of a call"""
        async with self.semaphore:
            await self._wait_until_admitted()
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                yield
            except RateLimitedError as e:
                self.report_rate_limited(e.retry_after)
                raise
            else:
                self.report_success()
            finally:
                self.in_flight -= 1
