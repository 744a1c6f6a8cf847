from __future__ import annotations

"""Wall-clock countdown for a timed session.

The clock never decrements a counter. Every read derives the remaining time
from the clock source as ``max(0, total - elapsed)``, so late or skipped ticks
(throttled host, suspended laptop) cannot make it drift. ``tick()`` is only the
trigger that re-evaluates elapsed time and fires the expiry signal.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol

logger = logging.getLogger(__name__)


class ClockSource(Protocol):
    def now(self) -> float: ...


class MonotonicClock:
    """Real time, immune to wall-clock adjustments."""

    def now(self) -> float:
        return time.monotonic()


class ManualClock:
    """Clock source that only moves when told to. Used by tests and simulations."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("a clock cannot go backwards")
        self._now += float(seconds)


@dataclass(frozen=True)
class ClockState:
    total_seconds: int
    remaining_seconds: int
    running: bool
    paused: bool
    expired: bool = False


class SessionClock:
    def __init__(self, source: Optional[ClockSource] = None) -> None:
        self._source = source or MonotonicClock()
        self._total = 0
        self._started_at: Optional[float] = None
        self._paused_at: Optional[float] = None
        self._paused_total = 0.0
        self._running = False
        self._expired = False
        self._floor: Optional[int] = None
        self._on_expire: List[Callable[[], None]] = []

    def on_expire(self, handler: Callable[[], None]) -> None:
        self._on_expire.append(handler)

    def start(self, total_seconds: int) -> None:
        if self._started_at is not None:
            raise RuntimeError("clock already started")
        total = int(total_seconds)
        if total <= 0:
            raise ValueError("total_seconds must be positive")
        self._total = total
        self._started_at = self._source.now()
        self._running = True
        self._floor = total
        logger.debug("clock started: %ss", total)

    def _elapsed_raw(self) -> float:
        if self._started_at is None:
            return 0.0
        now = self._paused_at if self._paused_at is not None else self._source.now()
        return max(0.0, now - self._started_at - self._paused_total)

    def elapsed(self) -> int:
        """Whole seconds of active (unpaused) time, capped at the total."""
        return min(self._total, int(math.floor(self._elapsed_raw())))

    def remaining(self) -> int:
        if self._started_at is None:
            return self._total
        if self._expired:
            return 0
        # Ceil so that 0 is only shown once the deadline has actually passed.
        value = max(0, min(self._total, int(math.ceil(self._total - self._elapsed_raw()))))
        if self._floor is not None and value > self._floor:
            value = self._floor
        self._floor = value
        return value

    def tick(self) -> bool:
        """Re-evaluate elapsed time. Returns True on the tick that expires the clock."""
        if not self._running or self._paused_at is not None or self._expired:
            return False
        if self.remaining() > 0:
            return False
        self._expired = True
        self._running = False
        logger.info("clock expired after %ss", self._total)
        for handler in list(self._on_expire):
            handler()
        return True

    def pause(self) -> None:
        if not self._running or self._paused_at is not None:
            return
        self._paused_at = self._source.now()

    def resume(self) -> None:
        if self._paused_at is None or not self._running:
            return
        self._paused_total += self._source.now() - self._paused_at
        self._paused_at = None

    def stop(self) -> None:
        """Freeze the clock for good (submission or abandon). No expiry is emitted."""
        if self._started_at is None:
            return
        if self._paused_at is None:
            self._paused_at = self._source.now()
        self._running = False

    @property
    def expired(self) -> bool:
        return self._expired

    def state(self) -> ClockState:
        return ClockState(
            total_seconds=self._total,
            remaining_seconds=self.remaining(),
            running=self._running,
            paused=self._paused_at is not None and self._running,
            expired=self._expired,
        )
