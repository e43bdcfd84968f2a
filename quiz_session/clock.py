from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Deadlines and countdowns read time through this interface so tests can
    drive it by hand.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


def deadline_after(clock: Clock, seconds: float) -> float:
    """Absolute instant ``seconds`` from now on ``clock``."""

    if seconds < 0:
        raise ValueError("seconds must be >= 0")
    return clock.now() + float(seconds)
