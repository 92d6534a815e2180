# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Fixed one-minute request window shared by every classification.

Over-budget callers are suspended until the window resets rather than
rejected.  The sleep happens outside the lock and the caller re-checks on
waking, so concurrent waiters never lose or double-count a slot.

Clock and sleep are injectable so tests can drive time by hand.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    """Immutable configuration for the rate limiter."""

    requests_per_minute: int = 10
    window: float = WINDOW_SECONDS

    def __post_init__(self) -> None:
        if self.requests_per_minute <= 0:
            raise ValueError(f"requests_per_minute must be > 0, got {self.requests_per_minute}")
        if self.window <= 0:
            raise ValueError(f"window must be > 0, got {self.window}")


# ---------------------------------------------------------------------------
# Window state + health snapshot
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class RateWindow:
    """Requests counted in the current window."""

    count: int = 0
    window_reset_at: float = 0.0

    def roll(self, now: float, window: float) -> None:
        """Start a fresh window once the clock passes ``window_reset_at``."""
        if now >= self.window_reset_at:
            self.count = 0
            self.window_reset_at = now + window


@dataclass(frozen=True, slots=True)
class RateLimitHealth:
    """Immutable snapshot of rate limiter state for monitoring."""

    requests_per_minute: int
    window_count: int
    seconds_until_reset: float
    total_requests: int
    total_waits: int
    total_wait_seconds: float


# ---------------------------------------------------------------------------
# RateLimiter
# ---------------------------------------------------------------------------


class RateLimiter:
    """Async fixed-window limiter.

    Usage::

        limiter = RateLimiter(RateLimitConfig(requests_per_minute=10))
        await limiter.acquire()  # may sleep until the window resets
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._config = config or RateLimitConfig()
        self._clock = clock
        self._sleep = sleep
        self._window = RateWindow()
        self._lock = asyncio.Lock()
        self._total_requests = 0
        self._total_waits = 0
        self._total_wait_seconds = 0.0

    @classmethod
    def per_minute(cls, requests_per_minute: int, **kwargs) -> RateLimiter:
        return cls(RateLimitConfig(requests_per_minute=requests_per_minute), **kwargs)

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    # -- Public API --

    async def acquire(self) -> float:
        """Take one slot, suspending until the window resets if it is full.

        Returns the total seconds spent waiting (0.0 when a slot was free).
        """
        waited = 0.0
        while True:
            async with self._lock:
                now = self._clock()
                self._window.roll(now, self._config.window)
                if self._window.count < self._config.requests_per_minute:
                    self._window.count += 1
                    self._total_requests += 1
                    return waited
                delay = max(0.0, self._window.window_reset_at - now)

            self._total_waits += 1
            self._total_wait_seconds += delay
            logger.debug("Rate limit reached (%d/min), waiting %.2fs", self._config.requests_per_minute, delay)
            await self._sleep(delay)
            waited += delay

    def health(self) -> RateLimitHealth:
        """Return an immutable snapshot of rate limiter state."""
        now = self._clock()
        active = now < self._window.window_reset_at
        return RateLimitHealth(
            requests_per_minute=self._config.requests_per_minute,
            window_count=self._window.count if active else 0,
            seconds_until_reset=max(0.0, self._window.window_reset_at - now) if active else 0.0,
            total_requests=self._total_requests,
            total_waits=self._total_waits,
            total_wait_seconds=self._total_wait_seconds,
        )
