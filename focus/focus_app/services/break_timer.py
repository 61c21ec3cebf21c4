from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from focus_app.core.settings import BREAK_LONG, BREAK_SHORT

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class BreakTimerState:
    is_active: bool
    time_remaining: int
    total_time: int
    type: str


@dataclass(frozen=True)
class BreakResult:
    break_type: str
    duration_s: int
    ended_early: bool


class BreakTimer:
    """Rest countdown that decrements once per host tick."""

    def __init__(self, on_complete: Callable[[BreakResult], None] | None = None) -> None:
        self.on_complete = on_complete
        self.is_active = False
        self.running = False
        self.time_remaining = 0
        self.total_time = 0
        self.type = BREAK_SHORT
        self._finished = False

    def state(self) -> BreakTimerState:
        return BreakTimerState(
            is_active=self.is_active,
            time_remaining=self.time_remaining,
            total_time=self.total_time,
            type=self.type,
        )

    def begin(self, break_type: str, duration_s: int) -> None:
        if break_type not in {BREAK_SHORT, BREAK_LONG}:
            raise ValueError(f"unknown break type: {break_type}")
        self.type = break_type
        self.total_time = max(1, int(duration_s))
        self.time_remaining = self.total_time
        self.is_active = True
        self.running = False
        self._finished = False
        LOGGER.info("break begun type=%s duration_s=%s", self.type, self.total_time)

    def start(self) -> None:
        if self.is_active and not self._finished:
            self.running = True

    def pause(self) -> None:
        self.running = False

    def reset(self) -> None:
        self.running = False
        self.time_remaining = self.total_time

    def tick(self) -> None:
        if not (self.is_active and self.running):
            return
        self.time_remaining = max(0, self.time_remaining - 1)
        if self.time_remaining == 0:
            self._finish(ended_early=False)

    def end_early(self) -> None:
        if not self.is_active:
            return
        self._finish(ended_early=True)

    def clear(self) -> None:
        self.is_active = False
        self.running = False
        self.time_remaining = 0
        self.total_time = 0
        self.type = BREAK_SHORT
        self._finished = False

    def _finish(self, ended_early: bool) -> None:
        self.running = False
        if self._finished:
            return
        self._finished = True
        result = BreakResult(break_type=self.type, duration_s=self.total_time, ended_early=ended_early)
        LOGGER.info("break finished type=%s ended_early=%s", result.break_type, ended_early)
        if self.on_complete is not None:
            self.on_complete(result)
