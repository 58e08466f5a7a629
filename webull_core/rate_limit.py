"""
Rate Limiting

Provides:
- RateLimiter: async sliding-window admission control, one budget per key
- Backoff strategies (constant, linear, exponential) for callers that retry
  after RateLimitExceeded
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Optional

from loguru import logger

WINDOW_SECONDS = 60.0
DEFAULT_REQUESTS_PER_MINUTE = 60


# =============================================================================
# Backoff strategies
# =============================================================================

class BackoffStrategy(ABC):
    """Maps a zero-based retry attempt to a wait duration in seconds."""

    @abstractmethod
    def delay(self, attempt: int) -> float:
        ...


@dataclass(frozen=True)
class ConstantBackoff(BackoffStrategy):
    seconds: float = 1.0

    def delay(self, attempt: int) -> float:
        return self.seconds


@dataclass(frozen=True)
class LinearBackoff(BackoffStrategy):
    initial: float = 1.0
    increment: float = 1.0

    def delay(self, attempt: int) -> float:
        return self.initial + self.increment * attempt


@dataclass(frozen=True)
class ExponentialBackoff(BackoffStrategy):
    initial: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 60.0

    def delay(self, attempt: int) -> float:
        # Cap before the power overflows on large attempt counts
        try:
            raw = self.initial * (self.multiplier ** attempt)
        except OverflowError:
            return self.max_delay
        return min(raw, self.max_delay)


# =============================================================================
# Sliding-window limiter
# =============================================================================

class RateLimiter:
    """
    Async rate limiter using a sliding 60-second window per key.

    Each key (normally the request path) has an independent budget of
    ``requests_per_minute`` grants. Within a key, waiters are admitted in
    arrival order: the per-key lock is held across the suspension, and
    asyncio.Lock wakes waiters FIFO.

    Args:
        requests_per_minute: Grants allowed per key per trailing window.
        backoff: Strategy for handle_rate_limit_error().
        name: Optional name for logging purposes.
        clock: Monotonic time source, injectable for tests.

    Example:
        >>> limiter = RateLimiter(requests_per_minute=60)
        >>> await limiter.wait("/api/quote/tickerRealTimes")
    """

    def __init__(
        self,
        requests_per_minute: int = DEFAULT_REQUESTS_PER_MINUTE,
        backoff: Optional[BackoffStrategy] = None,
        name: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
        window: float = WINDOW_SECONDS,
    ) -> None:
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be positive")

        self._rpm = requests_per_minute
        self._backoff = backoff or ExponentialBackoff()
        self._name = name or "RateLimiter"
        self._clock = clock
        self._window = window
        self._timestamps: Dict[str, Deque[float]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        # Callers inside wait() per key, so idle keys can be dropped safely
        self._pending: Dict[str, int] = {}
        self._last_sweep = clock()
        self._total_waits: int = 0
        self._total_wait_time: float = 0.0

    @property
    def requests_per_minute(self) -> int:
        return self._rpm

    @property
    def backoff(self) -> BackoffStrategy:
        return self._backoff

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def _prune(self, window: Deque[float], now: float) -> None:
        while window and now - window[0] >= self._window:
            window.popleft()

    def _sweep(self, now: float) -> None:
        """Drop keys with no grants in the trailing window and no callers waiting."""
        if now - self._last_sweep < self._window:
            return
        self._last_sweep = now
        for key in set(self._timestamps) | set(self._locks):
            if self._pending.get(key):
                continue
            window = self._timestamps.get(key)
            if window:
                self._prune(window, now)
                if window:
                    continue
            self._timestamps.pop(key, None)
            self._locks.pop(key, None)

    async def wait(self, key: str) -> float:
        """
        Suspend until ``key`` has budget, then record the grant.

        Returns:
            Seconds spent suspended (0 if admitted immediately).
        """
        self._sweep(self._clock())
        self._pending[key] = self._pending.get(key, 0) + 1
        try:
            async with self._lock_for(key):
                window = self._timestamps.setdefault(key, deque())
                now = self._clock()
                self._prune(window, now)

                waited = 0.0
                if len(window) >= self._rpm:
                    waited = max(0.0, self._window - (now - window[0]))
                    logger.debug(f"[{self._name}] {key}: window full, waiting {waited:.2f}s")
                    await asyncio.sleep(waited)
                    self._total_waits += 1
                    self._total_wait_time += waited
                    now = self._clock()
                    self._prune(window, now)
                    # The oldest grant has aged out after the sleep
                    while len(window) >= self._rpm:
                        window.popleft()

                window.append(now)
                return waited
        finally:
            self._pending[key] -= 1
            if not self._pending[key]:
                del self._pending[key]

    def handle_rate_limit_error(self, attempt: int) -> float:
        """Backoff duration for the given zero-based retry attempt."""
        return self._backoff.delay(attempt)

    def current_usage(self, key: str) -> int:
        """Grants recorded for key within the trailing window."""
        window = self._timestamps.get(key)
        if not window:
            return 0
        self._prune(window, self._clock())
        return len(window)

    def reset(self, key: Optional[str] = None) -> None:
        """Forget recorded grants for one key, or all keys."""
        if key is None:
            self._timestamps.clear()
            for idle in [k for k in self._locks if not self._pending.get(k)]:
                del self._locks[idle]
            self._total_waits = 0
            self._total_wait_time = 0.0
        else:
            self._timestamps.pop(key, None)

    def get_stats(self) -> Dict[str, Any]:
        """
        Get rate limiter statistics.

        Returns:
            Dict with name, requests_per_minute, keys, total_waits,
            total_wait_time, avg_wait_time
        """
        avg_wait = (
            self._total_wait_time / self._total_waits
            if self._total_waits > 0
            else 0.0
        )
        return {
            'name': self._name,
            'requests_per_minute': self._rpm,
            'keys': len(self._timestamps),
            'total_waits': self._total_waits,
            'total_wait_time': round(self._total_wait_time, 3),
            'avg_wait_time': round(avg_wait, 4),
        }

    def __repr__(self) -> str:
        return f"RateLimiter(requests_per_minute={self._rpm}, name={self._name!r})"
