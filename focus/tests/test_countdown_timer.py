from __future__ import annotations

from focus_app.services.countdown_timer import CountdownTimer


class _FakeClock:
    def __init__(self) -> None:
        self.mono = 1000.0

    def advance(self, seconds: float) -> None:
        self.mono += float(seconds)


def _timer(clock: _FakeClock, duration_s: int = 1500) -> tuple[CountdownTimer, list[int], list[str]]:
    ticks: list[int] = []
    completions: list[str] = []
    timer = CountdownTimer(
        duration_s=duration_s,
        monotonic_now=lambda: clock.mono,
        on_tick=ticks.append,
        on_complete=lambda: completions.append("done"),
    )
    return timer, ticks, completions


def test_pause_interval_does_not_count_towards_elapsed() -> None:
    clock = _FakeClock()
    timer, _ticks, completions = _timer(clock)

    timer.start()
    clock.advance(1200)
    assert timer.tick() == 300
    timer.pause()
    clock.advance(300)
    timer.tick()
    assert timer.remaining_s == 300

    timer.start()
    clock.advance(300)
    assert timer.tick() == 0
    assert completions == ["done"]
    assert timer.running is False
    assert timer.paused is False


def test_elapsed_follows_clock_not_tick_count() -> None:
    clock = _FakeClock()
    timer, ticks, _completions = _timer(clock)

    timer.start()
    # A throttled host only ticks once after a long gap.
    clock.advance(437.6)
    timer.tick()
    assert timer.remaining_s == 1500 - 437
    assert ticks == [1063]

    for delay in (3, 0.5, 12, 0.25):
        timer.pause()
        clock.advance(delay * 10)
        timer.start()
        clock.advance(delay)
    timer.tick()
    consumed = 1500 - timer.remaining_s
    assert abs(consumed - (437.6 + 3 + 0.5 + 12 + 0.25)) < 1


def test_tick_callback_fires_only_when_remaining_changes() -> None:
    clock = _FakeClock()
    timer, ticks, _completions = _timer(clock, duration_s=10)

    timer.start()
    clock.advance(0.4)
    timer.tick()
    clock.advance(0.4)
    timer.tick()
    assert ticks == []
    clock.advance(0.4)
    timer.tick()
    assert ticks == [9]


def test_skip_after_natural_completion_does_not_fire_again() -> None:
    clock = _FakeClock()
    timer, _ticks, completions = _timer(clock, duration_s=60)

    timer.start()
    clock.advance(61)
    timer.tick()
    timer.skip()
    timer.tick()
    assert completions == ["done"]
    assert timer.remaining_s == 0


def test_skip_completes_synchronously_from_paused() -> None:
    clock = _FakeClock()
    timer, _ticks, completions = _timer(clock, duration_s=60)

    timer.start()
    clock.advance(10)
    timer.pause()
    timer.skip()

    assert completions == ["done"]
    state = timer.snapshot()
    assert (state.remaining_s, state.running, state.paused) == (0, False, False)


def test_start_is_noop_while_running_and_pause_noop_while_idle() -> None:
    clock = _FakeClock()
    timer, _ticks, _completions = _timer(clock, duration_s=100)

    timer.pause()
    assert timer.snapshot().paused is False

    timer.start()
    clock.advance(30)
    timer.start()
    timer.tick()
    assert timer.remaining_s == 70


def test_start_after_stop_keeps_consumed_progress() -> None:
    clock = _FakeClock()
    timer, _ticks, _completions = _timer(clock, duration_s=100)

    timer.start()
    clock.advance(40)
    timer.stop()
    assert timer.remaining_s == 60
    assert timer.is_fresh is False

    clock.advance(500)
    timer.start()
    clock.advance(10)
    timer.tick()
    assert timer.remaining_s == 50


def test_reset_returns_to_fresh_idle_and_allows_new_run() -> None:
    clock = _FakeClock()
    timer, _ticks, completions = _timer(clock, duration_s=20)

    timer.start()
    clock.advance(25)
    timer.tick()
    timer.reset()
    assert timer.snapshot().remaining_s == 20
    assert timer.is_fresh is True

    timer.start()
    clock.advance(20)
    timer.tick()
    assert completions == ["done", "done"]


def test_set_duration_only_applies_to_fresh_timer() -> None:
    clock = _FakeClock()
    timer, _ticks, _completions = _timer(clock, duration_s=100)

    assert timer.set_duration(300) is True
    assert timer.remaining_s == 300
    timer.start()
    clock.advance(5)
    assert timer.set_duration(50) is False
    timer.tick()
    assert timer.total_duration_s == 300
    assert timer.remaining_s == 295
