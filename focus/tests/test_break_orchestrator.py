from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from focus_app.core.errors import PreconditionError
from focus_app.core.models import new_temporary_task
from focus_app.core.settings import BREAK_LONG, BREAK_SHORT, UserSettings
from focus_app.persistence.store_json import JsonFocusStore
from focus_app.services.break_orchestrator import (
    FLOW_BREAK,
    FLOW_BREAK_COMPLETE_PROMPT,
    FLOW_CELEBRATION,
    FLOW_COMPLETION_PROMPT,
    FLOW_IDLE,
    BreakOrchestrator,
)
from focus_app.services.break_timer import BreakTimer
from focus_app.services.countdown_timer import CountdownTimer
from focus_app.services.dispatcher import RemoteDispatcher
from focus_app.services.notifier import Notifier
from focus_app.services.session_controller import SessionController
from focus_app.services.task_sync import TaskStepSync


class _FakeClock:
    def __init__(self) -> None:
        self.mono = 1000.0
        self.wall = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def advance(self, seconds: float) -> None:
        self.mono += float(seconds)
        self.wall += timedelta(seconds=seconds)


def _rig(tmp_path, auto_start_breaks: bool):
    clock = _FakeClock()
    settings = UserSettings(
        default_session_duration=600,
        break_duration=3,
        long_break_duration=5,
        auto_start_breaks=auto_start_breaks,
    )
    store = JsonFocusStore(tmp_path / "store.json", user_id="u1", now=lambda: clock.wall)
    dispatcher = RemoteDispatcher(threaded=False)
    notifier = Notifier()
    sessions = SessionController(
        store=store,
        timer=CountdownTimer(duration_s=600, monotonic_now=lambda: clock.mono),
        dispatcher=dispatcher,
        notifier=notifier,
        settings_provider=lambda: settings,
        user_id="u1",
        wall_now=lambda: clock.wall,
    )
    task_sync = TaskStepSync(store, dispatcher, on_changed=sessions.on_steps_changed)
    orchestrator = BreakOrchestrator(
        sessions=sessions,
        break_timer=BreakTimer(),
        task_sync=task_sync,
        notifier=notifier,
        settings_provider=lambda: settings,
    )
    return clock, store, sessions, task_sync, orchestrator


def _finish_naturally(clock: _FakeClock, sessions: SessionController) -> None:
    clock.advance(sessions.timer.total_duration_s)
    sessions.tick()


def test_complete_task_always_celebrates(tmp_path) -> None:
    _clock, _store, sessions, task_sync, orchestrator = _rig(tmp_path, auto_start_breaks=True)
    orchestrator.start_focus(new_temporary_task("Email Sam", steps=["reply"]))
    task = sessions.task
    task_sync.toggle_step(task, task.steps[0].id)

    assert orchestrator.phase == FLOW_CELEBRATION
    assert orchestrator.break_timer.is_active is False
    assert orchestrator.last_summary.is_task_complete is True

    orchestrator.dismiss_completion()
    assert orchestrator.phase == FLOW_IDLE


def test_incomplete_task_with_auto_breaks_starts_short_break(tmp_path) -> None:
    clock, _store, sessions, _sync, orchestrator = _rig(tmp_path, auto_start_breaks=True)
    orchestrator.start_focus(new_temporary_task("Email Sam", steps=["reply", "archive"]))
    task = sessions.task
    _finish_naturally(clock, sessions)

    assert orchestrator.phase == FLOW_BREAK
    state = orchestrator.break_timer.state()
    assert state.is_active is True
    assert state.type == BREAK_SHORT
    assert state.total_time == 3
    assert orchestrator.resume_task is task
    assert sessions.timer.is_fresh


def test_incomplete_task_without_auto_breaks_prompts(tmp_path) -> None:
    clock, _store, sessions, _sync, orchestrator = _rig(tmp_path, auto_start_breaks=False)
    orchestrator.start_focus(new_temporary_task("Email Sam", steps=["reply", "archive"]))
    _finish_naturally(clock, sessions)

    assert orchestrator.phase == FLOW_COMPLETION_PROMPT
    assert orchestrator.break_timer.is_active is False


def test_break_then_resume_keeps_step_progress(tmp_path) -> None:
    clock, _store, sessions, task_sync, orchestrator = _rig(tmp_path, auto_start_breaks=True)
    first_session = orchestrator.start_focus(new_temporary_task("Study", steps=["a", "b", "c"]))
    task = sessions.task
    task_sync.toggle_step(task, task.ordered_steps()[0].id)
    done_before = [s.done for s in task.ordered_steps()]
    _finish_naturally(clock, sessions)

    for _ in range(3):
        orchestrator.tick()
    assert orchestrator.phase == FLOW_BREAK_COMPLETE_PROMPT
    assert orchestrator.last_break.ended_early is False

    second_session = orchestrator.resume_after_break()
    assert second_session is not None
    assert second_session.id != first_session.id
    assert second_session.task_id == task.id
    assert sessions.task is task
    assert [s.done for s in task.ordered_steps()] == done_before
    assert orchestrator.phase == FLOW_IDLE
    assert orchestrator.break_timer.is_active is False


def test_continue_without_break_resets_step_progress(tmp_path) -> None:
    clock, store, sessions, task_sync, orchestrator = _rig(tmp_path, auto_start_breaks=False)
    orchestrator.start_focus(new_temporary_task("Study", steps=["a", "b", "c"]))
    task = sessions.task
    task_sync.toggle_step(task, task.ordered_steps()[0].id)
    task_sync.toggle_step(task, task.ordered_steps()[1].id)
    _finish_naturally(clock, sessions)
    assert orchestrator.phase == FLOW_COMPLETION_PROMPT

    session = orchestrator.continue_task()

    assert session is not None
    assert sessions.task is task
    assert [s.done for s in task.steps] == [False, False, False]
    assert all(not s.done for s in store.get_task(task.id).steps)


def test_manual_long_break_end_early_then_decline(tmp_path) -> None:
    clock, _store, sessions, _sync, orchestrator = _rig(tmp_path, auto_start_breaks=False)
    orchestrator.start_focus(new_temporary_task("Study", steps=["a", "b"]))
    _finish_naturally(clock, sessions)

    orchestrator.take_break(BREAK_LONG)
    assert orchestrator.break_timer.state().total_time == 5
    orchestrator.tick()
    orchestrator.end_break_early()

    assert orchestrator.phase == FLOW_BREAK_COMPLETE_PROMPT
    assert orchestrator.last_break.ended_early is True
    orchestrator.decline_resume()
    assert orchestrator.phase == FLOW_IDLE
    assert orchestrator.resume_task is None


def test_take_break_refused_during_active_session(tmp_path) -> None:
    _clock, _store, sessions, _sync, orchestrator = _rig(tmp_path, auto_start_breaks=False)
    orchestrator.start_focus(new_temporary_task("Study", steps=["a"]))
    with pytest.raises(PreconditionError):
        orchestrator.take_break(BREAK_SHORT)
    assert sessions.active


def test_start_focus_abandons_running_break(tmp_path) -> None:
    clock, _store, sessions, _sync, orchestrator = _rig(tmp_path, auto_start_breaks=True)
    orchestrator.start_focus(new_temporary_task("Study", steps=["a", "b"]))
    _finish_naturally(clock, sessions)
    assert orchestrator.phase == FLOW_BREAK

    orchestrator.start_focus(new_temporary_task("Other", steps=["x"]))
    assert orchestrator.phase == FLOW_IDLE
    assert orchestrator.break_timer.is_active is False
    orchestrator.tick()
    assert sessions.active
