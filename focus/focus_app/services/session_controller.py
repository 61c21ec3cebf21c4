from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from focus_app.core.errors import PreconditionError
from focus_app.core.models import (
    SESSION_COMPLETED,
    SESSION_SKIPPED,
    TASK_COMPLETED,
    Distraction,
    Session,
    Task,
    new_temp_id,
)
from focus_app.core.settings import UserSettings
from focus_app.core.validation import validate_distraction, validate_task_title
from focus_app.persistence.store_base import FocusStore
from focus_app.services.countdown_timer import CountdownTimer
from focus_app.services.dispatcher import RemoteDispatcher
from focus_app.services.notifier import Notifier

LOGGER = logging.getLogger(__name__)

STOP_REASONS = (
    "Got distracted",
    "Task took longer than expected",
    "Need a break",
    "Urgent interruption",
)


@dataclass(frozen=True)
class CompletionSummary:
    session_id: str
    duration_s: int
    task_title: str
    completed_steps: int
    total_steps: int
    streak: int
    is_task_complete: bool
    task: Task


@dataclass(frozen=True)
class StopSummary:
    session_id: str
    actual_duration_s: int
    notes: str


class SessionController:
    """Owns the current session and task for one focus flow.

    Persisted rows only change on terminal transitions; pause and resume stay
    local to the countdown timer.
    """

    def __init__(
        self,
        store: FocusStore,
        timer: CountdownTimer,
        dispatcher: RemoteDispatcher,
        notifier: Notifier,
        settings_provider: Callable[[], UserSettings] | None = None,
        user_id: str = "local",
        wall_now: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.timer = timer
        self.dispatcher = dispatcher
        self.notifier = notifier
        self.settings_provider = settings_provider or UserSettings
        self.user_id = user_id
        self._wall_now = wall_now or (lambda: datetime.now(tz=timezone.utc))

        self.session: Session | None = None
        self.task: Task | None = None
        self.distractions: list[Distraction] = []
        self.stop_requested = False
        self.streak = 0
        self.last_error = ""
        self.on_session_complete: Callable[[CompletionSummary], None] | None = None

        self._persisted_terminal: set[str] = set()
        self._saved_drafts: dict[str, Task] = {}
        self.timer.on_complete = self._on_timer_complete

    @property
    def active(self) -> bool:
        return self.session is not None

    def _now_iso(self) -> str:
        return self._wall_now().isoformat()

    def _remote_failed(self, action: str) -> Callable[[Exception], None]:
        def _record(exc: Exception) -> None:
            self.last_error = f"Failed to {action}"
            LOGGER.warning("session sync failed action=%s error=%s", action, exc)

        return _record

    def is_persisted_terminal(self, session_id: str) -> bool:
        return session_id in self._persisted_terminal

    def mark_persisted_terminal(self, session_id: str) -> None:
        self._persisted_terminal.add(session_id)

    # ----- start -----
    def _persist_temporary_task(self, task: Task) -> Task:
        title = validate_task_title(task.title)
        if not title.valid:
            raise PreconditionError(title.error)
        if not task.steps:
            raise PreconditionError("Add at least one step before starting a session")

        ordered = task.ordered_steps()
        persisted = self.store.create_task(title.value, task.description, [step.content for step in ordered])
        LOGGER.info("temporary task persisted temp_id=%s task_id=%s", task.id, persisted.id)
        return persisted

    def start(self, task: Task | None, duration_s: int | None = None) -> Session:
        if task is None:
            raise PreconditionError("Cannot start a session without a task")
        if self.session is not None:
            raise PreconditionError("A focus session is already active")

        draft_id = task.id if task.is_temporary else ""
        if draft_id:
            saved = self._saved_drafts.get(draft_id)
            if saved is None:
                saved = self._persist_temporary_task(task)
                self._saved_drafts[draft_id] = saved
            else:
                LOGGER.info("reusing persisted draft temp_id=%s task_id=%s", draft_id, saved.id)
            task = saved

        planned = int(duration_s or self.settings_provider().default_session_duration)
        session = self.store.create_session(task.id, planned, total_steps=len(task.steps))
        self._saved_drafts.pop(draft_id, None)
        if session.planned_duration <= 0:
            session.planned_duration = planned

        self.timer.reset()
        self.timer.set_duration(session.planned_duration)
        self.timer.start()

        self.session = session
        self.task = task
        self.distractions = []
        self.stop_requested = False
        self.last_error = ""
        LOGGER.info("session started session_id=%s task_id=%s planned_s=%s", session.id, task.id, session.planned_duration)

        self.notifier.session_started(session.id, task.title, session.planned_duration)
        self.refresh_streak()
        return session

    # ----- pause / resume -----
    def pause(self) -> None:
        if self.session is not None:
            self.timer.pause()

    def resume(self) -> None:
        if self.session is not None:
            self.timer.start()

    def toggle_pause(self) -> None:
        if self.timer.is_paused:
            self.resume()
        else:
            self.pause()

    def tick(self) -> None:
        if self.session is not None:
            self.timer.tick()

    # ----- stop -----
    def request_stop(self) -> bool:
        if self.session is None:
            return False
        self.stop_requested = True
        return True

    def cancel_stop(self) -> None:
        self.stop_requested = False

    def confirm_stop(self, reason: str = "") -> StopSummary | None:
        session, task = self.session, self.task
        if session is None:
            return None

        self.timer.tick()
        if self.session is None:
            # The countdown ran out first; the natural completion already ran.
            return None
        actual = max(0, session.planned_duration - self.timer.remaining_s)
        reason = (reason or "").strip()
        notes = f"Stopped early: {reason}" if reason else "Stopped early"
        completed_steps = task.completed_step_count() if task is not None else 0

        if not self.is_persisted_terminal(session.id):
            self.mark_persisted_terminal(session.id)
            self.dispatcher.submit(
                "stop_session",
                self.store.update_session,
                session.id,
                status=SESSION_SKIPPED,
                ended_at=self._now_iso(),
                actual_duration=actual,
                notes=notes,
                completed_steps=completed_steps,
                on_error=self._remote_failed("save stopped session"),
            )
        session.status = SESSION_SKIPPED
        session.actual_duration = actual
        session.notes = notes

        LOGGER.info("session stopped session_id=%s actual_s=%s", session.id, actual)
        self.notifier.session_stopped(session.id, actual, notes)
        self.timer.reset()
        self._clear()
        return StopSummary(session_id=session.id, actual_duration_s=actual, notes=notes)

    # ----- completion -----
    def on_steps_changed(self, task: Task | None = None) -> None:
        current = self.task
        if self.session is None or current is None:
            return
        if task is not None and task is not current:
            return
        if current.all_steps_done():
            LOGGER.info("all steps done, completing session session_id=%s", self.session.id)
            self.timer.skip()

    def _on_timer_complete(self) -> None:
        session, task = self.session, self.task
        if session is None or task is None:
            LOGGER.debug("completion signal without an active session ignored")
            return

        planned = session.planned_duration
        completed_steps = task.completed_step_count()
        total_steps = len(task.steps)
        is_task_complete = task.all_steps_done()

        if self.is_persisted_terminal(session.id):
            LOGGER.info("session already persisted as ended session_id=%s", session.id)
        else:
            self.mark_persisted_terminal(session.id)
            self.dispatcher.submit(
                "complete_session",
                self.store.update_session,
                session.id,
                status=SESSION_COMPLETED,
                ended_at=self._now_iso(),
                actual_duration=planned,
                completed_steps=completed_steps,
                on_error=self._remote_failed("save completed session"),
            )
            self.dispatcher.submit(
                "credit_task",
                self.store.update_task,
                task.id,
                status=TASK_COMPLETED if is_task_complete else None,
                add_time_spent=planned,
                on_error=self._remote_failed("update task"),
            )

        session.status = SESSION_COMPLETED
        session.actual_duration = planned
        session.completed_steps = completed_steps
        task.total_time_spent += planned
        if is_task_complete:
            task.status = TASK_COMPLETED

        summary = CompletionSummary(
            session_id=session.id,
            duration_s=planned,
            task_title=task.title,
            completed_steps=completed_steps,
            total_steps=total_steps,
            streak=self.refresh_streak(),
            is_task_complete=is_task_complete,
            task=task,
        )
        LOGGER.info(
            "session completed session_id=%s steps=%s/%s task_complete=%s",
            session.id,
            completed_steps,
            total_steps,
            is_task_complete,
        )
        self.notifier.session_completed(session.id, task.title, planned, completed_steps, total_steps)
        self._clear()

        if self.on_session_complete is not None:
            try:
                self.on_session_complete(summary)
            except Exception as exc:
                LOGGER.error("completion handler failed session_id=%s error=%s", session.id, exc)

    def refresh_streak(self) -> int:
        try:
            self.streak = int(self.store.get_current_streak(self.user_id))
        except Exception as exc:
            LOGGER.warning("streak fetch failed error=%s", exc)
        return self.streak

    # ----- distractions -----
    def capture_distraction(self, text: str) -> Distraction | None:
        session = self.session
        if session is None:
            self.last_error = "No active session"
            return None
        result = validate_distraction(text)
        if not result.valid:
            self.last_error = result.error
            return None

        distraction = Distraction(id=new_temp_id(), session_id=session.id, content=result.value, user_id=self.user_id)
        self.distractions.append(distraction)

        def _adopt(created: Distraction) -> None:
            if created is not None and created.id:
                distraction.id = created.id

        self.dispatcher.submit(
            "create_distraction",
            self.store.create_distraction,
            session.id,
            distraction.content,
            on_success=_adopt,
            on_error=self._remote_failed("save distraction"),
        )
        self.notifier.distraction_captured(session.id, distraction.content)
        return distraction

    def _clear(self) -> None:
        self.session = None
        self.task = None
        self.distractions = []
        self.stop_requested = False

    def view(self) -> dict:
        timer = self.timer.snapshot()
        task = self.task
        return {
            "session_id": self.session.id if self.session is not None else "",
            "task_title": task.title if task is not None else "",
            "steps": [
                {"id": step.id, "content": step.content, "done": step.done} for step in (task.ordered_steps() if task else [])
            ],
            "remaining_s": timer.remaining_s,
            "total_s": timer.total_duration_s,
            "running": timer.running,
            "paused": timer.paused,
            "stop_requested": self.stop_requested,
            "distractions": len(self.distractions),
            "streak": self.streak,
            "error": self.last_error,
        }
