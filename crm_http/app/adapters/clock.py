"""
Clock capability.
"""

import time
from typing import Protocol


class Clock(Protocol):
    """Source of wall-clock time; ``monotonic`` is optional."""

    def now(self) -> float:
        """Seconds since the epoch."""
        ...


class SystemClock:
    """Clock backed by the ``time`` module."""

    def now(self) -> float:
        return time.time()

    def monotonic(self) -> float:
        return time.monotonic()


def elapsed_ms(clock: Clock, started_at: float) -> float:
    """Milliseconds since ``started_at``, rounded to two decimals.

    ``started_at`` must come from :func:`reading`, so both ends use the same
    time base.
    """
    return round((reading(clock) - started_at) * 1000.0, 2)


def reading(clock: Clock) -> float:
    """Monotonic reading when the clock offers one, else wall time."""
    monotonic = getattr(clock, "monotonic", None)
    if callable(monotonic):
        return monotonic()
    return clock.now()
