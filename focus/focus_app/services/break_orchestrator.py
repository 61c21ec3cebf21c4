from __future__ import annotations

import logging
from typing import Callable

from focus_app.core.errors import PreconditionError
from focus_app.core.models import Session, Task
from focus_app.core.settings import BREAK_SHORT, UserSettings
from focus_app.services.break_timer import BreakResult, BreakTimer
from focus_app.services.notifier import Notifier
from focus_app.services.session_controller import CompletionSummary, SessionController
from focus_app.services.task_sync import TaskStepSync

LOGGER = logging.getLogger(__name__)


FLOW_IDLE = "IDLE"
FLOW_COMPLETION_PROMPT = "COMPLETION_PROMPT"
FLOW_CELEBRATION = "CELEBRATION"
FLOW_BREAK = "BREAK"
FLOW_BREAK_COMPLETE_PROMPT = "BREAK_COMPLETE_PROMPT"


class BreakOrchestrator:
    """Decides what follows a completed session and runs the break in between.

    Resuming after a break keeps step progress; continuing straight from the
    completion prompt resets it.
    """

    def __init__(
        self,
        sessions: SessionController,
        break_timer: BreakTimer,
        task_sync: TaskStepSync,
        notifier: Notifier,
        settings_provider: Callable[[], UserSettings] | None = None,
    ) -> None:
        self.sessions = sessions
        self.break_timer = break_timer
        self.task_sync = task_sync
        self.notifier = notifier
        self.settings_provider = settings_provider or UserSettings

        self.phase = FLOW_IDLE
        self.last_summary: CompletionSummary | None = None
        self.last_break: BreakResult | None = None
        self.resume_task: Task | None = None

        self.sessions.on_session_complete = self.on_session_complete
        self.break_timer.on_complete = self._on_break_finished

    def on_session_complete(self, summary: CompletionSummary) -> None:
        self.last_summary = summary
        if summary.is_task_complete:
            self.resume_task = None
            self.phase = FLOW_CELEBRATION
        elif self.settings_provider().auto_start_breaks:
            self.take_break(BREAK_SHORT)
        else:
            self.phase = FLOW_COMPLETION_PROMPT
        LOGGER.info("session outcome session_id=%s next=%s", summary.session_id, self.phase)

    def take_break(self, break_type: str = BREAK_SHORT) -> None:
        if self.sessions.active:
            raise PreconditionError("Finish or stop the current session before taking a break")

        self.sessions.timer.reset()
        summary = self.last_summary
        self.resume_task = summary.task if summary is not None and not summary.is_task_complete else None

        duration = self.settings_provider().break_seconds(break_type)
        self.break_timer.begin(break_type, duration)
        self.break_timer.start()
        self.phase = FLOW_BREAK
        self.notifier.break_started(break_type, duration)

    def tick(self) -> None:
        if self.phase == FLOW_BREAK:
            self.break_timer.tick()

    def pause_or_resume_break(self) -> None:
        if self.phase != FLOW_BREAK:
            return
        if self.break_timer.running:
            self.break_timer.pause()
        else:
            self.break_timer.start()

    def end_break_early(self) -> None:
        if self.phase == FLOW_BREAK:
            self.break_timer.end_early()

    def _on_break_finished(self, result: BreakResult) -> None:
        self.last_break = result
        self.phase = FLOW_BREAK_COMPLETE_PROMPT
        self.notifier.break_completed(result.break_type, result.duration_s, result.ended_early)

    def resume_after_break(self, duration_s: int | None = None) -> Session | None:
        task = self.resume_task
        if self.phase != FLOW_BREAK_COMPLETE_PROMPT or task is None:
            return None
        session = self.sessions.start(task, duration_s=duration_s)
        self.break_timer.clear()
        self.resume_task = None
        self.last_summary = None
        self.phase = FLOW_IDLE
        return session

    def decline_resume(self) -> None:
        self.break_timer.clear()
        self.resume_task = None
        self.last_summary = None
        self.phase = FLOW_IDLE

    def continue_task(self, duration_s: int | None = None) -> Session | None:
        summary = self.last_summary
        if self.phase != FLOW_COMPLETION_PROMPT or summary is None:
            return None
        self.task_sync.reset_progress(summary.task)
        session = self.sessions.start(summary.task, duration_s=duration_s)
        self.last_summary = None
        self.phase = FLOW_IDLE
        return session

    def dismiss_completion(self) -> None:
        if self.phase in {FLOW_COMPLETION_PROMPT, FLOW_CELEBRATION}:
            self.last_summary = None
            self.phase = FLOW_IDLE

    def start_focus(self, task: Task | None, duration_s: int | None = None) -> Session:
        session = self.sessions.start(task, duration_s=duration_s)
        if self.break_timer.is_active:
            LOGGER.info("break abandoned for a new session")
        self.break_timer.clear()
        self.resume_task = None
        self.last_summary = None
        self.phase = FLOW_IDLE
        return session

    def view(self) -> dict:
        state = self.break_timer.state()
        summary = self.last_summary
        return {
            "phase": self.phase,
            "break_active": state.is_active,
            "break_running": self.break_timer.running,
            "break_remaining_s": state.time_remaining,
            "break_total_s": state.total_time,
            "break_type": state.type,
            "resume_task_title": self.resume_task.title if self.resume_task is not None else "",
            "summary": {
                "task_title": summary.task_title,
                "duration_s": summary.duration_s,
                "completed_steps": summary.completed_steps,
                "total_steps": summary.total_steps,
                "streak": summary.streak,
                "is_task_complete": summary.is_task_complete,
            }
            if summary is not None
            else None,
        }
