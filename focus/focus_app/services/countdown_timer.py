from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimerState:
    total_duration_s: int
    remaining_s: int
    running: bool
    paused: bool

    @property
    def idle(self) -> bool:
        return not self.running

    @property
    def elapsed_s(self) -> int:
        return self.total_duration_s - self.remaining_s


class CountdownTimer:
    """Focus countdown measured against a monotonic clock.

    Elapsed time is ``now - started_at - paused_total``; the host only needs to
    call ``tick()`` often enough to refresh observers. A throttled host still
    reads the correct remaining time on its next tick.
    """

    def __init__(
        self,
        duration_s: int = 1500,
        monotonic_now: Callable[[], float] | None = None,
        on_tick: Callable[[int], None] | None = None,
        on_complete: Callable[[], None] | None = None,
    ) -> None:
        self._mono_now = monotonic_now or time.monotonic
        self.on_tick = on_tick
        self.on_complete = on_complete

        self.total_duration_s = max(1, int(duration_s))
        self.remaining_s = self.total_duration_s
        self.running = False
        self.paused = False

        self._started_at = 0.0
        self._paused_total = 0.0
        self._pause_started_at = 0.0
        self._completed_run = False

    @property
    def is_running(self) -> bool:
        return self.running

    @property
    def is_paused(self) -> bool:
        return self.running and self.paused

    @property
    def is_active(self) -> bool:
        return self.running and not self.paused

    @property
    def is_fresh(self) -> bool:
        return not self.running and self.remaining_s == self.total_duration_s

    def snapshot(self) -> TimerState:
        return TimerState(
            total_duration_s=self.total_duration_s,
            remaining_s=self.remaining_s,
            running=self.running,
            paused=self.paused,
        )

    def set_duration(self, duration_s: int) -> bool:
        # An in-flight run keeps its total.
        if not self.is_fresh:
            return False
        self.total_duration_s = max(1, int(duration_s))
        self.remaining_s = self.total_duration_s
        return True

    def start(self) -> None:
        now = self._mono_now()
        if self.running and not self.paused:
            return

        if self.running and self.paused:
            self._paused_total += max(0.0, now - self._pause_started_at)
            self._pause_started_at = 0.0
            self.paused = False
            LOGGER.debug("timer resumed remaining=%s", self.remaining_s)
            return

        if self.remaining_s <= 0 or self.remaining_s >= self.total_duration_s:
            self.remaining_s = self.total_duration_s
            self._started_at = now
            self._completed_run = False
        else:
            # Partially consumed but not formally paused: keep the progress.
            self._started_at = now - (self.total_duration_s - self.remaining_s)
        self._paused_total = 0.0
        self._pause_started_at = 0.0
        self.running = True
        self.paused = False
        LOGGER.debug("timer started total=%s remaining=%s", self.total_duration_s, self.remaining_s)

    def pause(self) -> None:
        if not (self.running and not self.paused):
            return
        self.tick()
        if not self.running:
            return
        self._pause_started_at = self._mono_now()
        self.paused = True
        LOGGER.debug("timer paused remaining=%s", self.remaining_s)

    def stop(self) -> None:
        """Stop ticking and keep the consumed progress (idle-but-not-fresh)."""
        if self.running and not self.paused:
            self.tick()
        self.running = False
        self.paused = False
        self._pause_started_at = 0.0

    def reset(self) -> None:
        self.running = False
        self.paused = False
        self.remaining_s = self.total_duration_s
        self._started_at = 0.0
        self._paused_total = 0.0
        self._pause_started_at = 0.0
        self._completed_run = False

    def _elapsed(self, now: float) -> int:
        return max(0, int(now - self._started_at - self._paused_total))

    def tick(self) -> int:
        if not (self.running and not self.paused):
            return self.remaining_s

        remaining = max(0, self.total_duration_s - self._elapsed(self._mono_now()))
        if remaining < self.remaining_s:
            self.remaining_s = remaining
            if self.on_tick is not None:
                self.on_tick(remaining)

        if self.remaining_s <= 0:
            self.running = False
            self.paused = False
            self._complete()
        return self.remaining_s

    def skip(self) -> None:
        self.remaining_s = 0
        self.running = False
        self.paused = False
        self._pause_started_at = 0.0
        self._complete()

    def _complete(self) -> None:
        if self._completed_run:
            LOGGER.debug("timer completion already delivered")
            return
        self._completed_run = True
        if self.on_complete is not None:
            self.on_complete()
