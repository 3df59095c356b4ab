"""Exponential backoff for failed fetch cycles."""

from __future__ import annotations

from typing import Final

from trmnlscreen.constants import BASE_DELAY, DEFAULT_REFRESH_INTERVAL, MIN_DELAY

# Past this exponent the delay is far above any sensible cap
_MAX_EXPONENT: Final = 32


class BackoffPolicy:
    """Tracks consecutive failures and computes the next retry delay.

    The first failure waits ``BASE_DELAY`` and every further one doubles it
    (60, 120, 240, ...), clamped to ``[MIN_DELAY, max(max_delay, MIN_DELAY)]``.
    The failure count itself is unbounded; only the exponent used for the
    delay is saturated.
    """

    def __init__(self, max_delay: int = DEFAULT_REFRESH_INTERVAL) -> None:
        self.max_delay = max_delay
        self._count = 0

    @property
    def count(self) -> int:
        """Number of consecutive failures since the last success."""
        return self._count

    @staticmethod
    def delay_for(count: int, max_delay: int) -> int:
        """Delay in seconds after ``count`` consecutive failures."""
        exponent = min(max(count - 1, 0), _MAX_EXPONENT)
        delay = BASE_DELAY * (2**exponent)
        return min(max(delay, MIN_DELAY), max(max_delay, MIN_DELAY))

    def current_delay(self) -> int:
        """Delay for the current count, without side effects."""
        return self.delay_for(self._count, self.max_delay)

    def increment(self) -> int:
        """Record one more failure and return the new delay."""
        self._count += 1
        return self.current_delay()

    def reset(self) -> None:
        """Forget all failures after a success."""
        self._count = 0
