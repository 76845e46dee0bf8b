"""Pygame UI shell for the Math Recall trainer.

Problems are revealed one per period; five periods later each one opens for
an answer from memory. Deterministic timing/scoring/RNG/state lives in the
core modules (progression, scoring, results); this module renders snapshots
and forwards keystrokes.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Protocol

import pygame

from .clock import RealClock
from .leaderboard import LeaderboardEntry, LeaderboardStore, make_entry
from .persistence import open_leaderboard_store
from .progression import ProgressionEngine
from .quiz_core import Phase, QuizSnapshot, Report, SubmissionError
from .results import detail_line, report_lines

logger = logging.getLogger(__name__)

WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

BG = (3, 9, 78)
PANEL_BG = (8, 18, 104)
BORDER = (226, 236, 255)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (186, 200, 224)
ORANGE = (250, 146, 40)
GOOD = (150, 230, 160)
BAD = (240, 150, 150)


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

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

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


class LeaderboardClient:
    """Runs leaderboard storage calls off the frame loop.

    One worker thread serializes reads and writes; the UI polls for the
    latest list each frame and never waits on storage.
    """

    def __init__(self, store: LeaderboardStore) -> None:
        self._store = store
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="leaderboard")
        self._pending: Future[list[LeaderboardEntry]] | None = None
        self._entries: list[LeaderboardEntry] = []

    @property
    def entries(self) -> list[LeaderboardEntry]:
        return list(self._entries)

    @property
    def busy(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def refresh(self) -> None:
        self._pending = self._pool.submit(self._store.read_all)

    def submit(self, entry: LeaderboardEntry) -> None:
        self._pending = self._pool.submit(self._store.add, entry)

    def poll(self) -> None:
        fut = self._pending
        if fut is None or not fut.done():
            return
        self._pending = None
        try:
            self._entries = fut.result()
        except Exception:
            logger.exception("leaderboard call failed")

    def shutdown(self) -> None:
        self._pool.shutdown(wait=False, cancel_futures=True)


def _draw_frame(surface: pygame.Surface, title: str, font: pygame.font.Font) -> pygame.Rect:
    w, h = surface.get_size()
    surface.fill(BG)
    margin = max(10, min(26, w // 34))
    frame = pygame.Rect(margin, margin, max(260, w - margin * 2), max(220, h - margin * 2))
    pygame.draw.rect(surface, PANEL_BG, frame)
    pygame.draw.rect(surface, BORDER, frame, 2)
    text = font.render(title, True, TEXT_MAIN)
    surface.blit(text, text.get_rect(midtop=(frame.centerx, frame.y + 12)))
    return frame


def _draw_lines(
    surface: pygame.Surface,
    font: pygame.font.Font,
    lines: list[str],
    *,
    x: int,
    y: int,
    color: tuple[int, int, int] = TEXT_MAIN,
    step: int = 28,
) -> int:
    for line in lines:
        surface.blit(font.render(line, True, color), (x, y))
        y += step
    return y


def _leaderboard_lines(entries: list[LeaderboardEntry], *, limit: int) -> list[str]:
    if not entries:
        return ["No scores yet."]
    return [
        f"{i:>3}. {e.name[:16]:<16} {e.score:>3}  {e.total_time:>5}s  {e.created_at[:10]}"
        for i, e in enumerate(entries[:limit], start=1)
    ]


class MenuScreen:
    def __init__(self, app: App, title: str, items: list[MenuItem], *, is_root: bool = False) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        key = event.key
        if key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._activate()
        elif key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
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
        frame = _draw_frame(surface, self._title, self._title_font)
        row_h = 44
        y = frame.y + 90
        for idx, item in enumerate(self._items):
            row = pygame.Rect(frame.x + 40, y, frame.w - 80, row_h - 6)
            selected = idx == self._selected
            pygame.draw.rect(surface, (244, 248, 255) if selected else (9, 20, 106), row)
            pygame.draw.rect(surface, (120, 142, 196), row, 2 if selected else 1)
            color = (14, 26, 74) if selected else TEXT_MAIN
            text = self._item_font.render(item.label, True, color)
            surface.blit(text, (row.x + 10, row.y + (row.h - text.get_height()) // 2))
            y += row_h

        foot = self._hint_font.render("Enter/Space: Select  |  Esc: Back", True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(frame.centerx, frame.bottom - 10)))


class LeaderboardScreen:
    def __init__(self, app: App, *, leaderboard: LeaderboardClient) -> None:
        self._app = app
        self._leaderboard = leaderboard
        self._font = pygame.font.Font(None, 26)
        self._leaderboard.refresh()

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN and event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE, pygame.K_RETURN):
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        self._leaderboard.poll()
        frame = _draw_frame(surface, "Leaderboard", self._app.font)
        lines = ["Loading..."] if self._leaderboard.busy else _leaderboard_lines(self._leaderboard.entries, limit=14)
        _draw_lines(surface, self._font, lines, x=frame.x + 40, y=frame.y + 60, step=26)
        hint = self._font.render("Esc: Back", True, TEXT_MUTED)
        surface.blit(hint, hint.get_rect(midbottom=(frame.centerx, frame.bottom - 10)))


class QuizScreen:
    """Quiz screen: live game, then results with leaderboard submission.

    Keys while running: digits/minus to type, Enter to answer the open
    problem, Esc to abandon. On the results page: type a name and press
    Enter to post it, Tab toggles the leaderboard, F5 restarts, Esc leaves.
    """

    def __init__(
        self,
        app: App,
        *,
        engine_factory: Callable[[], ProgressionEngine],
        leaderboard: LeaderboardClient,
    ) -> None:
        self._app = app
        self._engine = engine_factory()
        self._leaderboard = leaderboard
        self._input = ""
        self._feedback = ""
        self._feedback_ok = False
        self._feedback_for: int | None = None

        self._player_name = ""
        self._name_submitted = False
        self._show_leaderboard = False
        self._detail_offset = 0

        self._small_font = pygame.font.Font(None, 26)
        self._mid_font = pygame.font.Font(None, 52)
        self._big_font = pygame.font.Font(None, 96)

        self._engine.start()

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if self._engine.phase is Phase.FINISHED:
            self._handle_results_key(event)
            return

        if event.key == pygame.K_ESCAPE:
            self._engine.reset()
            self._app.pop()
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            self._submit()
        elif event.key == pygame.K_BACKSPACE:
            self._input = self._input[:-1]
        elif event.key in (pygame.K_MINUS, pygame.K_KP_MINUS):
            if not self._input:
                self._input = "-"
        elif event.unicode and event.unicode.isdigit() and len(self._input) < 4:
            self._input += event.unicode

    def _submit(self) -> None:
        if not self._input.strip():
            return
        outcome = self._engine.submit_current(self._input)
        if outcome.accepted or outcome.message:
            self._feedback = outcome.message
            self._feedback_ok = bool(outcome.is_correct)
            self._feedback_for = outcome.problem_id
        if outcome.accepted or outcome.error is SubmissionError.ALREADY_ANSWERED:
            self._input = ""

    def _handle_results_key(self, event: pygame.event.Event) -> None:
        if event.key == pygame.K_ESCAPE:
            self._engine.reset()
            self._app.pop()
        elif event.key == pygame.K_F5:
            self._restart()
        elif event.key == pygame.K_TAB:
            self._show_leaderboard = not self._show_leaderboard
            if self._show_leaderboard:
                self._leaderboard.refresh()
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            self._post_score()
        elif event.key == pygame.K_UP:
            self._detail_offset = max(0, self._detail_offset - 1)
        elif event.key == pygame.K_DOWN:
            self._detail_offset += 1
        elif event.key == pygame.K_BACKSPACE:
            self._player_name = self._player_name[:-1]
        elif event.unicode and event.unicode.isprintable() and len(self._player_name) < 50:
            self._player_name += event.unicode

    def _post_score(self) -> None:
        name = self._player_name.strip()
        if not name or self._name_submitted or self._leaderboard.busy:
            return
        report = self._engine.report()
        self._leaderboard.submit(make_entry(name=name, score=report.score, total_time=report.total_time_s))
        self._name_submitted = True
        self._show_leaderboard = True
        self._player_name = ""

    def _restart(self) -> None:
        self._engine.restart()
        self._input = ""
        self._feedback = ""
        self._feedback_for = None
        self._player_name = ""
        self._name_submitted = False
        self._show_leaderboard = False
        self._detail_offset = 0

    def render(self, surface: pygame.Surface) -> None:
        self._engine.update()
        self._leaderboard.poll()
        snap = self._engine.snapshot()

        # Feedback belongs to the problem it answered; drop it once the window moves on.
        current = None if snap.eligible_problem is None else snap.eligible_problem.id
        if self._feedback_for is not None and current != self._feedback_for:
            self._feedback = ""
            self._feedback_for = None

        if snap.phase is Phase.FINISHED and snap.report is not None:
            self._render_results(surface, snap.report)
        else:
            self._render_quiz(surface, snap)

    def _render_quiz(self, surface: pygame.Surface, snap: QuizSnapshot) -> None:
        frame = _draw_frame(surface, "Math Recall", self._app.font)

        status = (
            f"Shown {snap.reveal_count}/{snap.total_problems}   "
            f"Answering {snap.answer_count}/{snap.total_problems}   Score {snap.score}"
        )
        surface.blit(self._small_font.render(status, True, TEXT_MUTED), (frame.x + 16, frame.y + 50))

        bar_bg = pygame.Rect(frame.x + 16, frame.y + 80, frame.w - 32, 14)
        pygame.draw.rect(surface, (40, 50, 120), bar_bg)
        ratio = 0.0 if snap.period_s <= 0 else max(0.0, min(1.0, snap.time_remaining_s / snap.period_s))
        pygame.draw.rect(surface, ORANGE, pygame.Rect(bar_bg.x, bar_bg.y, int(bar_bg.w * ratio), bar_bg.h))

        revealed = snap.revealed_problem
        if revealed is None:
            prompt = "Get ready..."
        elif snap.hide_revealed_text:
            prompt = f"#{revealed.id}: remember it!"
        else:
            prompt = f"#{revealed.id}:  {revealed.display_text}"
        text = self._big_font.render(prompt, True, TEXT_MAIN)
        surface.blit(text, text.get_rect(center=(frame.centerx, frame.y + int(frame.h * 0.38))))

        eligible = snap.eligible_problem
        label = "Waiting for the answer window..." if eligible is None else f"Answer problem #{eligible.id}:"
        lab = self._small_font.render(label, True, TEXT_MAIN)
        box = pygame.Rect(frame.centerx - 150, frame.y + int(frame.h * 0.62), 300, 60)
        surface.blit(lab, lab.get_rect(midbottom=(box.centerx, box.y - 8)))
        pygame.draw.rect(surface, (246, 250, 255), box)
        pygame.draw.rect(surface, (142, 168, 210), box, 2)
        entry = self._mid_font.render(self._input, True, (12, 26, 88))
        surface.blit(entry, (box.x + 12, box.y + (box.h - entry.get_height()) // 2))

        if self._feedback:
            color = GOOD if self._feedback_ok else BAD
            fb = self._small_font.render(self._feedback, True, color)
            surface.blit(fb, fb.get_rect(midtop=(frame.centerx, box.bottom + 12)))

    def _render_results(self, surface: pygame.Surface, report: Report) -> None:
        frame = _draw_frame(surface, "Game over!", self._app.font)
        left_x = frame.x + 24
        y = _draw_lines(surface, self._small_font, report_lines(report), x=left_x, y=frame.y + 50, step=24)

        if self._name_submitted:
            name_line = "Score posted." if not self._leaderboard.busy else "Posting..."
        else:
            name_line = f"Name: {self._player_name}_   (Enter to post)"
        _draw_lines(surface, self._small_font, [name_line], x=left_x, y=y + 8)

        right_x = frame.centerx + 10
        if self._show_leaderboard:
            lines = ["Leaderboard", ""] + _leaderboard_lines(self._leaderboard.entries, limit=12)
        else:
            lines = self._detail_lines(report, rows=max(1, (frame.bottom - frame.y - 140) // 22))
        _draw_lines(surface, self._small_font, lines, x=right_x, y=frame.y + 50, step=22)

        hint = self._small_font.render(
            "Up/Down: Scroll  |  F5: Restart  |  Tab: Leaderboard  |  Esc: Menu",
            True,
            TEXT_MUTED,
        )
        surface.blit(hint, hint.get_rect(midbottom=(frame.centerx, frame.bottom - 10)))

    def _detail_lines(self, report: Report, *, rows: int) -> list[str]:
        details = report.details
        self._detail_offset = max(0, min(self._detail_offset, len(details) - rows))
        shown = details[self._detail_offset : self._detail_offset + rows]
        first = self._detail_offset + 1
        header = f"Details {first}-{first + len(shown) - 1} of {len(details)}"
        return [header, ""] + [detail_line(d) for d in shown]


def _new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    store: LeaderboardStore | None = None,
) -> int:
    pygame.init()

    pygame.display.set_caption("Math Recall")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)
    leaderboard = LeaderboardClient(store or open_leaderboard_store())
    real_clock = RealClock()

    def open_quiz() -> None:
        seed = _new_seed()
        app.push(
            QuizScreen(
                app,
                engine_factory=lambda: ProgressionEngine(clock=real_clock, seed=seed),
                leaderboard=leaderboard,
            )
        )

    def open_leaderboard() -> None:
        app.push(LeaderboardScreen(app, leaderboard=leaderboard))

    main_items = [
        MenuItem("Start", open_quiz),
        MenuItem("Leaderboard", open_leaderboard),
        MenuItem("Quit", app.quit),
    ]

    app.push(MenuScreen(app, "Math Recall", main_items, is_root=True))

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

            clock.tick(TARGET_FPS)
    finally:
        leaderboard.shutdown()
        pygame.quit()

    return 0
