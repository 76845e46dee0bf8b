from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class Clock(Protocol):
    """Monotonic clock abstraction.

    Core logic depends on this interface rather than calling real time directly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


class PeriodicClock:
    """Fixed-tick timer that announces period boundaries.

    Remaining time starts at ``period_s`` and loses one ``tick_s`` per tick.
    The tick that would take it to zero resets it to the full period and
    fires ``on_boundary`` instead. Ticks are driven by ``pump()``, which
    drains every tick that is due according to the injected clock, so a
    stalled frame catches up one boundary at a time.

    A boundary stamped less than one tick after the last processed boundary
    is dropped; duplicate delivery would otherwise advance the game twice
    for one period.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        on_boundary: Callable[[float], None],
        period_s: float = 3.0,
        tick_s: float = 0.1,
    ) -> None:
        if tick_s <= 0.0:
            raise ValueError("tick_s must be > 0")
        if period_s < tick_s:
            raise ValueError("period_s must be >= tick_s")

        self._clock = clock
        self._on_boundary = on_boundary
        self._period_ms = int(round(period_s * 1000.0))
        self._tick_ms = int(round(tick_s * 1000.0))
        self._tick_s = float(tick_s)

        self._running = False
        self._remaining_ms = self._period_ms
        self._started_at_s = 0.0
        self._ticks_run = 0
        self._last_boundary_at_s: float | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def period_s(self) -> float:
        return self._period_ms / 1000.0

    def time_remaining_s(self) -> float:
        return self._remaining_ms / 1000.0

    def start(self, *, at: float | None = None) -> None:
        started_at = self._clock.now() if at is None else float(at)
        self._running = True
        self._remaining_ms = self._period_ms
        self._started_at_s = started_at
        self._ticks_run = 0
        self._last_boundary_at_s = None

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        logger.debug("periodic clock stopped")

    def pump(self) -> int:
        """Run every tick that is due. Returns the number of boundaries fired."""

        fired = 0
        now = self._clock.now()
        while self._running:
            at = self._started_at_s + (self._ticks_run + 1) * self._tick_ms / 1000.0
            if at > now + 1e-6:
                break
            self._ticks_run += 1
            if self.tick(at=at):
                fired += 1
        return fired

    def tick(self, *, at: float | None = None) -> bool:
        """Advance one sub-interval. Returns True if a boundary fired."""

        if not self._running:
            return False
        if self._remaining_ms > self._tick_ms:
            self._remaining_ms -= self._tick_ms
            return False
        self._remaining_ms = self._period_ms
        return self.boundary(at=at)

    def boundary(self, *, at: float | None = None) -> bool:
        """Deliver a period boundary stamped ``at``. Returns True if processed."""

        if not self._running:
            return False
        stamp = self._clock.now() if at is None else float(at)
        last = self._last_boundary_at_s
        if last is not None and stamp - last < self._tick_s - 1e-9:
            logger.debug("dropped duplicate boundary at %.3fs", stamp)
            return False
        self._last_boundary_at_s = stamp
        self._on_boundary(stamp)
        return True
