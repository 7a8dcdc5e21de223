"""
Circuit breaker for quota-limited providers.

When a provider answers with a quota or rate-limit status, its whole
family is disabled for a cool-down window. The "disabled until" mark
only ever moves forward, so concurrent writers cannot shorten it.
"""

import logging
import threading
import time
from typing import Callable, Dict, Optional

from django.conf import settings

logger = logging.getLogger(__name__)

# Status codes that mean "stop calling for a while"
QUOTA_STATUS_CODES = {403, 429}


class ProviderCircuitBreaker:
    """
    Per-family disable-until timestamps.

    Usage:
        breaker = ProviderCircuitBreaker()
        if not breaker.is_open("google_cse"):
            ...
            breaker.trip("google_cse")
    """

    def __init__(self, cooldown_seconds: Optional[int] = None, clock: Callable[[], float] = time.time):
        self.cooldown_seconds = (
            cooldown_seconds
            if cooldown_seconds is not None
            else getattr(settings, "PROVIDER_COOLDOWN_SECONDS", 3600)
        )
        self.clock = clock
        self._disabled_until: Dict[str, float] = {}
        self._lock = threading.Lock()

    def is_open(self, family: str) -> bool:
        """True while the family is disabled."""
        return self.clock() < self._disabled_until.get(family, 0.0)

    def disabled_until(self, family: str) -> Optional[float]:
        until = self._disabled_until.get(family)
        if until is None or until <= self.clock():
            return None
        return until

    def trip(self, family: str) -> float:
        """
        Disable a family for the cool-down window.

        Returns:
            The (possibly unchanged) disabled-until timestamp
        """
        candidate = self.clock() + self.cooldown_seconds
        with self._lock:
            until = max(self._disabled_until.get(family, 0.0), candidate)
            self._disabled_until[family] = until
        logger.warning(
            "Provider family %s disabled for %ds after quota response",
            family,
            self.cooldown_seconds,
        )
        return until


# Singleton instance management
_breaker_instance: Optional[ProviderCircuitBreaker] = None


def get_circuit_breaker() -> ProviderCircuitBreaker:
    """Get or create the process-wide circuit breaker."""
    global _breaker_instance
    if _breaker_instance is None:
        _breaker_instance = ProviderCircuitBreaker()
    return _breaker_instance


def reset_circuit_breaker() -> None:
    """Reset the singleton instance."""
    global _breaker_instance
    _breaker_instance = None
