"""Stand-in for the game-play screen.

The real game-play component judges a round and reports a qualification.
``PlaceholderRound`` keeps the same contract with none of the judging: the
player marks the round passed or failed, and the round countdown running out
fails it.  A pass scores the whole seconds left on the clock.

Pure logic, no pygame; the session screen renders it.
"""

from __future__ import annotations

import json

from .clock import Clock, deadline_after
from .countdown import CountdownTimer, TimeoutMode
from .session_core import RoundContext, RoundReport


class PlaceholderRound:
    def __init__(
        self,
        context: RoundContext,
        *,
        clock: Clock,
        round_time_s: float,
        mode: TimeoutMode = TimeoutMode.ONCE,
    ) -> None:
        if round_time_s <= 0:
            raise ValueError("round_time_s must be > 0")

        self._context = context
        self._finished = False
        self._countdown = CountdownTimer(
            deadline=deadline_after(clock, round_time_s),
            score=context.accumulated_score,
            on_timeout=self.fail,
            clock=clock,
            mode=mode,
        )

    @property
    def context(self) -> RoundContext:
        return self._context

    @property
    def countdown(self) -> CountdownTimer:
        return self._countdown

    @property
    def finished(self) -> bool:
        return self._finished

    def start(self) -> None:
        self._countdown.start()

    def stop(self) -> None:
        self._countdown.stop()

    def qualify(self) -> bool:
        remaining_s = max(0, int(self._countdown.remaining_ms() // 1000))
        return self._finish(RoundReport(qualified=True, score=remaining_s))

    def fail(self) -> bool:
        return self._finish(RoundReport(qualified=False, score=0))

    def _finish(self, report: RoundReport) -> bool:
        # Timeouts can repeat and keys can be mashed; only the first outcome counts.
        if self._finished:
            return False
        self._finished = True
        self._countdown.stop()
        return self._context.finish(report)

    def summary_lines(self, limit: int = 6) -> list[str]:
        payload = self._context.instance.payload
        if isinstance(payload, dict):
            lines = [f"{k}: {json.dumps(v, ensure_ascii=False)}" for k, v in payload.items()]
        else:
            lines = [json.dumps(payload, ensure_ascii=False)]
        lines = [line if len(line) <= 70 else line[:67] + "..." for line in lines]
        if len(lines) > limit:
            lines = lines[: limit - 1] + [f"... ({len(lines) - limit + 1} more)"]
        return lines
