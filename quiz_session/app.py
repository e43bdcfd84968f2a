"""Pygame UI shell for the word-round session trainer.

The root menu picks a language and opens a session.  A session keeps loading
game instances from the content host and shows one round at a time with a
countdown scoreboard.  The real game-play screen is not part of this package;
``PlaceholderRound`` stands in for it: the player marks a round passed (Y) or
failed (N), and running out of time fails it.

Acquisition, scoring and timing live in the core modules
(``session_core``, ``countdown``, ``content``); this module only renders and
routes input.  The frame loop runs on asyncio so network requests and the
countdown tick make progress between frames.
"""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import httpx
import pygame
import structlog

from .clock import Clock, RealClock
from .config import Settings, load_settings
from .content import HttpContentSource
from .logging_config import configure_logging
from .placeholder_round import PlaceholderRound
from .session_core import (
    Phase,
    SeededRng,
    SessionController,
    SessionSnapshot,
)

logger = structlog.get_logger(__name__)

WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

BG = (3, 9, 78)
PANEL_BG = (8, 18, 104)
BORDER = (226, 236, 255)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (186, 200, 224)
TEXT_ERROR = (240, 170, 170)


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    @property
    def top(self) -> Screen | None:
        return self._screens[-1] if self._screens else None

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            _close_screen(self._screens.pop())

    def quit(self) -> None:
        self._running = False

    def close_all(self) -> None:
        while self._screens:
            _close_screen(self._screens.pop())

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


def _close_screen(screen: Screen) -> None:
    close = getattr(screen, "close", None)
    if close is not None:
        close()


class MenuScreen:
    def __init__(
        self,
        app: App,
        title: str,
        items: list[MenuItem],
        *,
        is_root: bool = False,
        selected: int = 0,
    ) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = selected % len(items) if items else 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif event.key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._activate()
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._back()

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def _activate(self) -> None:
        if not self._items:
            return
        self._items[self._selected].action()

    def _back(self) -> None:
        if self._is_root:
            self._app.quit()
        else:
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)

        frame = pygame.Rect(20, 20, max(260, w - 40), max(220, h - 40))
        pygame.draw.rect(surface, PANEL_BG, frame)
        pygame.draw.rect(surface, BORDER, frame, 2)

        title = self._title_font.render(self._title, True, TEXT_MAIN)
        surface.blit(title, title.get_rect(midtop=(frame.centerx, frame.y + 16)))

        y = frame.y + 90
        for idx, item in enumerate(self._items):
            row = pygame.Rect(frame.x + 40, y, frame.w - 80, 40)
            selected = idx == self._selected
            if selected:
                pygame.draw.rect(surface, (244, 248, 255), row)
            else:
                pygame.draw.rect(surface, (62, 84, 152), row, 1)
            color = (14, 26, 74) if selected else TEXT_MAIN
            text = self._item_font.render(item.label, True, color)
            surface.blit(text, (row.x + 10, row.y + (row.h - text.get_height()) // 2))
            y += 50

        foot = self._hint_font.render("Enter/Space: Select  |  Esc/Backspace: Back", True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(frame.centerx, frame.bottom - 10)))


class SessionScreen:
    def __init__(
        self,
        app: App,
        *,
        controller: SessionController,
        clock: Clock,
        settings: Settings,
    ) -> None:
        self._app = app
        self._controller = controller
        self._clock = clock
        self._settings = settings
        self._round: PlaceholderRound | None = None
        self._small_font = pygame.font.Font(None, 26)

        controller.add_listener(self._on_session_change)
        controller.begin()

    @property
    def controller(self) -> SessionController:
        return self._controller

    @property
    def current_round(self) -> PlaceholderRound | None:
        return self._round

    def close(self) -> None:
        self._drop_round()
        self._controller.cancel()

    def _on_session_change(self, snap: SessionSnapshot) -> None:
        if snap.phase is not Phase.READY:
            self._drop_round()
            return
        context = self._controller.round_context()
        if context is None:
            return
        if self._round is not None and self._round.context.generation == context.generation:
            return
        self._drop_round()
        self._round = PlaceholderRound(
            context,
            clock=self._clock,
            round_time_s=self._settings.round_time_s,
            mode=self._settings.timeout_mode,
        )
        self._round.start()

    def _drop_round(self) -> None:
        if self._round is not None:
            self._round.stop()
            self._round = None

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._app.pop()
            return

        phase = self._controller.phase
        if phase is Phase.FAILED and event.key == pygame.K_r:
            self._controller.retry()
            return
        if phase is Phase.READY and self._round is not None:
            if event.key == pygame.K_y:
                self._round.qualify()
                return
            if event.key == pygame.K_n:
                self._round.fail()
                return

        # 1-9 switch to the Nth configured language mid-session.
        if pygame.K_1 <= event.key <= pygame.K_9:
            pos = event.key - pygame.K_1
            if pos < len(self._settings.languages):
                self._controller.set_language(self._settings.languages[pos])

    def render(self, surface: pygame.Surface) -> None:
        surface.fill(BG)
        font = self._app.font
        snap = self._controller.snapshot()

        header = (
            f"Language: {snap.language}   Difficulty: {snap.difficulty}   "
            f"Round: {snap.round}   Score: {snap.accumulated_score:g}"
        )
        surface.blit(font.render(header, True, TEXT_MAIN), (40, 30))

        y = 100
        if snap.phase in (Phase.IDLE, Phase.LOADING):
            surface.blit(font.render("Loading next round...", True, TEXT_MUTED), (40, y))
        elif snap.phase is Phase.FAILED:
            surface.blit(font.render("Content unavailable.", True, TEXT_ERROR), (40, y))
            y += 40
            detail = snap.error or ""
            if len(detail) > 80:
                detail = detail[:77] + "..."
            surface.blit(self._small_font.render(detail, True, TEXT_ERROR), (40, y))
            y += 40
            surface.blit(font.render("Press R to retry", True, TEXT_MUTED), (40, y))
        elif self._round is not None:
            # Renders from the tick-driven countdown text; the tick task refreshes it.
            board = self._round.countdown.label
            surface.blit(font.render(board, True, TEXT_MAIN), (40, y))
            y += 50
            instance = self._round.context.instance
            surface.blit(
                self._small_font.render(f"Instance {instance.language}/{instance.index}", True, TEXT_MUTED),
                (40, y),
            )
            y += 30
            for line in self._round.summary_lines():
                surface.blit(self._small_font.render(line, True, TEXT_MAIN), (60, y))
                y += 26

        hint = "Y: pass  N: fail  R: retry  1-9: language  Esc: back"
        surface.blit(self._small_font.render(hint, True, TEXT_MUTED), (40, surface.get_height() - 40))


def _new_seed() -> int:
    return random.SystemRandom().randrange(1, 2**31 - 1) ^ int(time.time())


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> int:
    settings = settings if settings is not None else load_settings()
    configure_logging(settings.log_level)
    return asyncio.run(
        _run_async(
            settings=settings,
            max_frames=max_frames,
            event_injector=event_injector,
            transport=transport,
        )
    )


async def _run_async(
    *,
    settings: Settings,
    max_frames: int | None,
    event_injector: Callable[[int], None] | None,
    transport: httpx.AsyncBaseTransport | None,
) -> int:
    pygame.init()

    pygame.display.set_caption("Word Rounds")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    app = App(surface=surface, font=font)
    real_clock = RealClock()

    content = HttpContentSource(
        base_url=settings.content_base_url,
        timeout_s=settings.http_timeout_s,
        transport=transport,
    )

    def open_session(language: str) -> None:
        controller = SessionController(
            content,
            language=language,
            difficulty=settings.difficulty,
            rng=SeededRng(_new_seed()),
        )
        app.push(SessionScreen(app, controller=controller, clock=real_clock, settings=settings))

    main_items = [MenuItem(f"Play ({lang})", lambda lang=lang: open_session(lang)) for lang in settings.languages]
    main_items.append(MenuItem("Quit", app.quit))
    # Enter on the root menu opens the configured initial language.
    app.push(MenuScreen(app, "Word Rounds", main_items, is_root=True, selected=settings.initial_menu_index))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            await asyncio.sleep(1.0 / TARGET_FPS)
    finally:
        app.close_all()
        # Cancelled acquisitions unwind before the client goes.
        await asyncio.sleep(0)
        await content.aclose()
        pygame.quit()

    logger.info("app_exit", frames=frame)
    return 0
