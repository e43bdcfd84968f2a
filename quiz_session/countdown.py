"""Countdown to a round deadline.

``CountdownTimer`` recomputes the remaining time on a fixed tick, keeps a
``MM:SS:mmm`` display string current and signals ``on_timeout`` once the
deadline has passed.  Time comes from an injected ``Clock``; the tick schedule
is an asyncio task owned by the timer, started once and cancelled by
:meth:`CountdownTimer.stop` (or by leaving an ``async with`` block).

Whether the timeout callback fires once or on every tick past the deadline is
selected with ``TimeoutMode``; ``ONCE`` is the default.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Callable
from enum import Enum

import structlog

from .clock import Clock

logger = structlog.get_logger(__name__)

EXPIRED_TEXT = "00:00:000"
DEFAULT_TICK_INTERVAL_S = 0.05


class TimeoutMode(str, Enum):
    ONCE = "once"
    REPEAT = "repeat"


def round_half_up(x: float) -> int:
    # Halves round towards +inf, matching the scoreboard's JS Math.round.
    # floor(x + 0.5) would round 0.49999999999999994 up.
    whole = math.floor(x)
    return int(whole + 1 if x - whole >= 0.5 else whole)


def format_remaining(remaining_ms: float) -> str:
    """Render remaining milliseconds as ``MM:SS:mmm``.

    Each field is rounded on its own: minutes from the whole remainder,
    seconds modulo 60, milliseconds modulo 1000.  Minutes are not capped and
    widen past two digits.  Negative input renders ``00:00:000``.
    """

    if remaining_ms < 0:
        return EXPIRED_TEXT
    minutes = round_half_up(remaining_ms / 60000.0)
    seconds = round_half_up((remaining_ms / 1000.0) % 60)
    millis = round_half_up(remaining_ms % 1000)
    return f"{minutes:02d}:{seconds:02d}:{millis:03d}"


class CountdownTimer:
    def __init__(
        self,
        *,
        deadline: float,
        score: float,
        on_timeout: Callable[[], None],
        clock: Clock,
        tick_interval_s: float = DEFAULT_TICK_INTERVAL_S,
        mode: TimeoutMode = TimeoutMode.ONCE,
    ) -> None:
        if tick_interval_s <= 0:
            raise ValueError("tick_interval_s must be > 0")

        self._deadline = float(deadline)
        self._score = score
        self._on_timeout = on_timeout
        self._clock = clock
        self._tick_interval_s = float(tick_interval_s)
        self._mode = TimeoutMode(mode)

        self._fired = False
        self._task: asyncio.Task[None] | None = None
        self._failure: BaseException | None = None
        self._text = format_remaining(self.remaining_ms())

    @property
    def deadline(self) -> float:
        return self._deadline

    @property
    def score(self) -> float:
        return self._score

    @property
    def mode(self) -> TimeoutMode:
        return self._mode

    @property
    def text(self) -> str:
        """Display string as of the last tick."""
        return self._text

    @property
    def label(self) -> str:
        return f"{self._text} | {self._score}"

    @property
    def expired(self) -> bool:
        return self.remaining_ms() < 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def failure(self) -> BaseException | None:
        """Exception that ended the tick task, if any."""
        return self._failure

    def remaining_ms(self) -> float:
        return (self._deadline - self._clock.now()) * 1000.0

    def update(
        self,
        *,
        deadline: float | None = None,
        score: float | None = None,
        on_timeout: Callable[[], None] | None = None,
    ) -> None:
        """Replace inputs without touching the tick schedule.

        A new deadline re-arms a timer that already fired in ``ONCE`` mode.
        """

        if deadline is not None and float(deadline) != self._deadline:
            self._deadline = float(deadline)
            self._fired = False
        if score is not None:
            self._score = score
        if on_timeout is not None:
            self._on_timeout = on_timeout
        self._text = format_remaining(self.remaining_ms())

    def tick(self) -> bool:
        """Refresh the display and signal a passed deadline.

        Returns True when ``on_timeout`` was invoked on this tick.
        """

        remaining = self.remaining_ms()
        self._text = format_remaining(remaining)
        if remaining >= 0:
            return False
        if self._mode is TimeoutMode.ONCE and self._fired:
            return False
        if not self._fired:
            logger.info("countdown_timeout", deadline=self._deadline, mode=self._mode.value)
        self._fired = True
        self._on_timeout()
        return True

    def start(self) -> None:
        """Schedule the periodic tick on the running loop (first call only)."""

        if self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(self._collect)

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_stopped(self) -> None:
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def __aenter__(self) -> "CountdownTimer":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        self.stop()
        await self.wait_stopped()

    async def _run(self) -> None:
        while True:
            self.tick()
            await asyncio.sleep(self._tick_interval_s)

    def _collect(self, task: asyncio.Task[None]) -> None:
        # Retrieve the outcome so a raising on_timeout is logged, not lost.
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._failure = exc
            logger.error("countdown_tick_failed", deadline=self._deadline, exc_info=exc)
