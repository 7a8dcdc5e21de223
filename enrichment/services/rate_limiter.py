"""
Rate limiters backed by the shared Django cache.

GenerationRateLimiter caps model calls across every worker process with
a fixed-window counter. TriggerRateLimiter caps how often one shop may
enqueue a manual batch run, using a rolling window history per shop.

Usage:
    limiter = get_generation_rate_limiter()
    limiter.acquire()  # blocks until a slot is free

    if not get_trigger_rate_limiter().allow(shop):
        ...  # reject with 429
"""

import logging
import time
from typing import Callable, Optional

from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)


class GenerationRateLimiter:
    """
    At most `limit` acquisitions per `period` seconds, shared by all workers.

    Counters live under keys like "generation_rate:28391234" where the
    suffix is the window number.
    """

    def __init__(
        self,
        limit: Optional[int] = None,
        period: Optional[int] = None,
        cache_prefix: str = "generation_rate",
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        backend=None,
    ):
        self.limit = limit if limit is not None else getattr(settings, "GENERATION_RATE_LIMIT", 10)
        self.period = period if period is not None else getattr(settings, "GENERATION_RATE_PERIOD", 60)
        self.cache_prefix = cache_prefix
        self.clock = clock
        self.sleep = sleep
        self.backend = backend or cache

    def _window(self, now: float) -> int:
        return int(now // self.period)

    def _key(self, window: int) -> str:
        return f"{self.cache_prefix}:{window}"

    def try_acquire(self) -> bool:
        """Take a slot in the current window if one is free."""
        window = self._window(self.clock())
        key = self._key(window)
        self.backend.add(key, 0, self.period * 2)
        try:
            count = self.backend.incr(key)
        except ValueError:
            # Key expired between add and incr
            self.backend.add(key, 1, self.period * 2)
            count = 1
        return count <= self.limit

    def acquire(self) -> None:
        """Block until a slot is free."""
        while not self.try_acquire():
            now = self.clock()
            wait = (self._window(now) + 1) * self.period - now
            logger.info("Generation rate limit reached, waiting %.1fs", wait)
            self.sleep(max(wait, 0.01))


class TriggerRateLimiter:
    """
    At most `limit` triggers per shop in any rolling `window` seconds.
    """

    def __init__(
        self,
        limit: Optional[int] = None,
        window: Optional[int] = None,
        cache_prefix: str = "trigger_rate",
        clock: Callable[[], float] = time.time,
        backend=None,
    ):
        self.limit = limit if limit is not None else getattr(settings, "TRIGGER_RATE_LIMIT", 3)
        self.window = window if window is not None else getattr(settings, "TRIGGER_RATE_WINDOW", 600)
        self.cache_prefix = cache_prefix
        self.clock = clock
        self.backend = backend or cache

    def _key(self, shop: str) -> str:
        return f"{self.cache_prefix}:{shop}"

    def _history(self, shop: str, now: float) -> list:
        history = self.backend.get(self._key(shop), [])
        return [stamp for stamp in history if stamp > now - self.window]

    def allow(self, shop: str) -> bool:
        """Record a trigger for the shop if it is within its budget."""
        now = self.clock()
        history = self._history(shop, now)
        if len(history) >= self.limit:
            logger.info("Trigger rate limit hit for %s (%d in %ds)", shop, len(history), self.window)
            return False

        history.append(now)
        self.backend.set(self._key(shop), history, self.window)
        return True

    def retry_after(self, shop: str) -> int:
        """Seconds until the oldest trigger leaves the window."""
        now = self.clock()
        history = self._history(shop, now)
        if len(history) < self.limit:
            return 0
        return max(1, int(history[0] + self.window - now + 0.999))


# Singleton instance management
_generation_limiter: Optional[GenerationRateLimiter] = None
_trigger_limiter: Optional[TriggerRateLimiter] = None


def get_generation_rate_limiter() -> GenerationRateLimiter:
    global _generation_limiter
    if _generation_limiter is None:
        _generation_limiter = GenerationRateLimiter()
    return _generation_limiter


def get_trigger_rate_limiter() -> TriggerRateLimiter:
    global _trigger_limiter
    if _trigger_limiter is None:
        _trigger_limiter = TriggerRateLimiter()
    return _trigger_limiter


def reset_rate_limiters() -> None:
    """Reset the singleton instances."""
    global _generation_limiter, _trigger_limiter
    _generation_limiter = None
    _trigger_limiter = None
