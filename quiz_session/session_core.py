"""Session controller: content acquisition and round bookkeeping.

A session repeatedly acquires one game instance for the current language and
hands it, with the running totals, to the game-play screen.  When a round ends
the screen reports back; a qualified round advances the round number and adds
its score, any other outcome resets both.  Then the next acquisition starts.

Acquisition is a strictly ordered async pipeline::

    fetch index -> pick random instance -> fetch instance

Each cycle is tagged with a generation number.  Starting a new cycle (language
switch, round end, retry) bumps the generation, so a slow response belonging
to an older cycle is dropped instead of overwriting the active instance.

Everything runs on one asyncio loop.  State changes only happen inside this
controller; renderers observe it via :meth:`SessionController.snapshot` or
listeners registered with :meth:`SessionController.add_listener`.
"""

from __future__ import annotations

import asyncio
import math
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

import structlog

from .content import ContentSource, GameInstance
from .errors import ContentUnavailable, InvalidIndexBounds

logger = structlog.get_logger(__name__)


class Phase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class UniformSource(Protocol):
    def random(self) -> float:
        """Return a float uniformly distributed in [0.0, 1.0)."""
        ...


class SeededRng:
    """Seeded uniform source; keeps deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def random(self) -> float:
        return self._rng.random()


def select_instance_index(instance_count: int, rng: UniformSource, *, language: str = "") -> int:
    """Pick ``floor(u * n)`` for a fresh draw ``u``; always in ``[0, n-1]``."""

    if isinstance(instance_count, bool) or not isinstance(instance_count, int) or instance_count <= 0:
        raise InvalidIndexBounds(f"cannot select from {instance_count!r} instances", language=language)
    idx = int(math.floor(rng.random() * instance_count))
    # A source returning exactly 1.0 (or a float rounding up to n) stays in range.
    return min(max(idx, 0), instance_count - 1)


@dataclass(frozen=True, slots=True)
class RoundReport:
    qualified: bool
    score: float = 0.0

    def __post_init__(self) -> None:
        if self.score < 0:
            raise ValueError("score must be >= 0")


@dataclass(frozen=True, slots=True)
class RoundFinished:
    """Message emitted by the game-play screen when a round ends."""

    generation: int
    report: RoundReport


@dataclass(slots=True)
class SessionState:
    accumulated_score: float = 0.0
    round: int = 1
    active_instance: GameInstance | None = None


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """View model for the UI (pure data)."""

    phase: Phase
    language: str
    difficulty: object
    round: int
    accumulated_score: float
    instance: GameInstance | None
    generation: int
    error: str | None = None


@dataclass(frozen=True, slots=True)
class RoundContext:
    """Everything the game-play screen needs to run one round."""

    instance: GameInstance
    difficulty: object
    language: str
    accumulated_score: float
    round: int
    generation: int
    emit: Callable[[RoundFinished], bool] = field(repr=False, compare=False)

    def finish(self, report: RoundReport) -> bool:
        """Report the round outcome. Returns False if it was not accepted."""
        return self.emit(RoundFinished(generation=self.generation, report=report))


SessionListener = Callable[[SessionSnapshot], None]


class SessionController:
    def __init__(
        self,
        content: ContentSource,
        *,
        language: str,
        difficulty: object = None,
        rng: UniformSource | None = None,
    ) -> None:
        if not language:
            raise ValueError("language must be non-empty")

        self._content = content
        self._language = language
        self._difficulty = difficulty
        self._rng: UniformSource = rng if rng is not None else random.Random()

        self._state = SessionState()
        self._phase = Phase.IDLE
        self._error: str | None = None
        self._generation = 0
        self._tasks: set[asyncio.Task[None]] = set()
        self._listeners: list[SessionListener] = []

    @property
    def language(self) -> str:
        return self._language

    @property
    def difficulty(self) -> object:
        return self._difficulty

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def state(self) -> SessionState:
        """Copy of the current state; mutate through the controller only."""
        s = self._state
        return SessionState(
            accumulated_score=s.accumulated_score,
            round=s.round,
            active_instance=s.active_instance,
        )

    @property
    def pending(self) -> int:
        return sum(1 for t in self._tasks if not t.done())

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            phase=self._phase,
            language=self._language,
            difficulty=self._difficulty,
            round=self._state.round,
            accumulated_score=self._state.accumulated_score,
            instance=self._state.active_instance,
            generation=self._generation,
            error=self._error,
        )

    def round_context(self) -> RoundContext | None:
        instance = self._state.active_instance
        if instance is None:
            return None
        return RoundContext(
            instance=instance,
            difficulty=self._difficulty,
            language=self._language,
            accumulated_score=self._state.accumulated_score,
            round=self._state.round,
            generation=self._generation,
            emit=self.dispatch,
        )

    # -- Triggers -------------------------------------------------------------
    def begin(self) -> asyncio.Task[None]:
        """Start the session: acquire the first instance for the current language."""
        return self.start_acquisition()

    def set_language(self, language: str) -> asyncio.Task[None] | None:
        if not language:
            raise ValueError("language must be non-empty")
        if language == self._language:
            return None
        logger.info("language_changed", previous=self._language, language=language)
        self._language = language
        return self.start_acquisition()

    def set_difficulty(self, difficulty: object) -> None:
        self._difficulty = difficulty

    def retry(self) -> asyncio.Task[None]:
        return self.start_acquisition()

    def start_acquisition(self) -> asyncio.Task[None]:
        loop = asyncio.get_running_loop()

        self._generation += 1
        generation = self._generation
        language = self._language

        self._state.active_instance = None
        self._phase = Phase.LOADING
        self._error = None
        logger.info("acquisition_started", generation=generation, language=language)
        self._notify()

        task = loop.create_task(self._acquire(generation, language))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # -- Round completion -------------------------------------------------------
    def on_round_complete(self, report: RoundReport) -> asyncio.Task[None]:
        self._state.active_instance = None
        if report.qualified:
            self._state.round += 1
            self._state.accumulated_score += report.score
        else:
            self._state.round = 1
            self._state.accumulated_score = 0.0
        logger.info(
            "round_completed",
            qualified=report.qualified,
            score=report.score,
            round=self._state.round,
            accumulated_score=self._state.accumulated_score,
        )
        return self.start_acquisition()

    def dispatch(self, message: RoundFinished) -> bool:
        """Deliver a round result from the game-play screen.

        Only the first result for the currently presented instance is
        accepted; late or repeated messages are dropped.
        """

        if (
            self._phase is not Phase.READY
            or self._state.active_instance is None
            or message.generation != self._generation
        ):
            logger.warning(
                "round_message_dropped",
                message_generation=message.generation,
                generation=self._generation,
                phase=self._phase.value,
            )
            return False
        self.on_round_complete(message.report)
        return True

    # -- Lifecycle --------------------------------------------------------------
    async def wait_idle(self) -> None:
        """Wait until no acquisition is in flight."""
        while True:
            tasks = [t for t in self._tasks if not t.done()]
            if not tasks:
                return
            await asyncio.wait(tasks)

    def cancel(self) -> list[asyncio.Task[None]]:
        """Cancel in-flight acquisitions at teardown; returns the cancelled tasks."""
        tasks = [t for t in self._tasks if not t.done()]
        for task in tasks:
            task.cancel()
        return tasks

    async def aclose(self) -> None:
        tasks = self.cancel()
        if tasks:
            await asyncio.wait(tasks)

    # -- Internals ----------------------------------------------------------------
    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation

    def _discard(self, generation: int, language: str, stage: str) -> None:
        logger.debug(
            "acquisition_stale_discarded",
            generation=generation,
            current_generation=self._generation,
            language=language,
            stage=stage,
        )

    async def _acquire(self, generation: int, language: str) -> None:
        try:
            index = await self._content.fetch_index(language)
            if self._is_stale(generation):
                self._discard(generation, language, "index")
                return
            idx = select_instance_index(index.instance_count, self._rng, language=language)
            instance = await self._content.fetch_instance(language, idx)
        except ContentUnavailable as exc:
            if self._is_stale(generation):
                self._discard(generation, language, "error")
                return
            self._phase = Phase.FAILED
            self._error = str(exc)
            logger.warning("content_unavailable", generation=generation, language=language, error=str(exc))
            self._notify()
            return

        if self._is_stale(generation):
            self._discard(generation, language, "instance")
            return

        self._state.active_instance = instance
        self._phase = Phase.READY
        logger.info("acquisition_succeeded", generation=generation, language=language, index=instance.index)
        self._notify()

    def _notify(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            listener(snap)
