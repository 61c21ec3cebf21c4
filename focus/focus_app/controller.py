from __future__ import annotations

import logging
from pathlib import Path

from focus_app.config import FocusConfig
from focus_app.core.errors import FocusError, PreconditionError
from focus_app.core.models import TASK_COMPLETED, Task, new_temporary_task
from focus_app.core.settings import BREAK_LONG, BREAK_SHORT, SETTING_NAMES, UserSettings
from focus_app.core.validation import MAX_STEPS, validate_steps, validate_task_description, validate_task_title
from focus_app.persistence.event_journal import EventJournal
from focus_app.persistence.settings_store import SettingsStore
from focus_app.persistence.state_repository import JsonStateRepository
from focus_app.persistence.store_base import FocusStore
from focus_app.persistence.store_http import HttpFocusStore
from focus_app.persistence.store_json import JsonFocusStore
from focus_app.services.break_orchestrator import (
    FLOW_BREAK_COMPLETE_PROMPT,
    FLOW_CELEBRATION,
    FLOW_COMPLETION_PROMPT,
    BreakOrchestrator,
)
from focus_app.services.break_timer import BreakTimer
from focus_app.services.countdown_timer import CountdownTimer
from focus_app.services.dispatcher import RemoteDispatcher
from focus_app.services.notifier import Notifier
from focus_app.services.orphan_cleanup import cleanup_orphaned_sessions
from focus_app.services.session_controller import STOP_REASONS, SessionController
from focus_app.services.streak import resolve_timezone
from focus_app.services.task_breakdown import TaskBreakdownClient, fallback_steps
from focus_app.services.task_sync import TaskStepSync
from focus_app.services.unload_guard import UnloadGuard

LOGGER = logging.getLogger(__name__)

CHOICE_CONTINUE = "Continue task"
CHOICE_SHORT_BREAK = "Short break"
CHOICE_LONG_BREAK = "Long break"
CHOICE_RESUME = "Resume task"
CHOICE_DONE = "Done for now"
CHOICE_OTHER_REASON = "Other..."


class FocusController:
    def __init__(self, config: FocusConfig, shell=None, store: FocusStore | None = None) -> None:
        self.config = config
        self.user_id = config.user_id

        self.store = store or self._create_store()
        self.dispatcher = RemoteDispatcher(threaded=config.dispatch == "thread")
        self.journal = EventJournal(
            config.journal_dir,
            retention_days=config.journal_retention_days,
            fsync_writes=config.journal_fsync,
        )
        self.settings_store = SettingsStore(JsonStateRepository(config.settings_path))
        self.breakdown_client = TaskBreakdownClient(
            base_url=config.ai_base_url,
            api_key=config.ai_api_key,
            model=config.ai_model,
            timeout=config.ai_timeout_seconds,
            max_completion_tokens=config.ai_max_completion_tokens,
        )

        self.shell = shell if shell is not None else self._create_shell()
        self.notifier = Notifier(
            journal=self.journal,
            sink=getattr(self.shell, "notify", None),
            settings_provider=self.settings_store.load,
        )

        settings = self.settings_store.load()
        self.timer = CountdownTimer(duration_s=settings.default_session_duration)
        self.break_timer = BreakTimer()
        self.sessions = SessionController(
            store=self.store,
            timer=self.timer,
            dispatcher=self.dispatcher,
            notifier=self.notifier,
            settings_provider=self.settings_store.load,
            user_id=self.user_id,
        )
        self.task_sync = TaskStepSync(self.store, self.dispatcher, on_changed=self.sessions.on_steps_changed)
        self.orchestrator = BreakOrchestrator(
            sessions=self.sessions,
            break_timer=self.break_timer,
            task_sync=self.task_sync,
            notifier=self.notifier,
            settings_provider=self.settings_store.load,
        )
        self.unload_guard = UnloadGuard(self.sessions, self.dispatcher)

        self.draft_task: Task | None = None
        self.step_hints: list[str] = []
        self.message = ""
        self._prompted_phase = ""

    def _create_store(self) -> FocusStore:
        if self.config.store == "http":
            if not self.config.api_base_url:
                LOGGER.warning("http store selected without FOCUS_API_BASE_URL, using json store")
            else:
                return HttpFocusStore(self.config.api_base_url, token=self.config.api_token)
        return JsonFocusStore(self.config.store_path, user_id=self.user_id, tz=resolve_timezone(self.config.timezone))

    def _create_shell(self):
        from focus_app.ui.shell_qt import FocusShell

        return FocusShell(
            on_create_task=self.on_create_task,
            on_start=self.on_start,
            on_pause_resume=self.on_pause_resume,
            on_stop=self.on_stop,
            on_toggle_step=self.on_toggle_step,
            on_add_step=self.on_add_step,
            on_edit_step=self.on_edit_step,
            on_delete_step=self.on_delete_step,
            on_next_steps=self.on_generate_next_steps,
            on_open_tasks=self.on_open_tasks,
            on_open_settings=self.on_open_settings,
            on_distraction=self.on_distraction,
            on_break=self.on_take_break,
            on_end_break=self.on_end_break_early,
            on_close=self.on_close,
        )

    # ----- view -----
    def current_task(self) -> Task | None:
        return self.sessions.task or self.draft_task

    def view(self) -> dict:
        task = self.current_task()
        view = {
            **self.sessions.view(),
            **self.orchestrator.view(),
            "message": self.message or self.sessions.last_error or self.task_sync.last_error,
            "hints": list(self.step_hints),
        }
        if self.sessions.task is None and task is not None:
            view["task_title"] = task.title
            view["steps"] = [{"id": s.id, "content": s.content, "done": s.done} for s in task.ordered_steps()]
        return view

    def refresh(self) -> None:
        self.shell.update_view(self.view())
        phase = self.orchestrator.phase
        if phase != self._prompted_phase:
            self._prompted_phase = phase
            self._prompt_for_phase(phase)

    def _report(self, message: str) -> None:
        self.message = message
        LOGGER.info("user message=%s", message)

    # ----- task drafting -----
    def on_create_task(self, title: str, description: str = "", steps: list[str] | None = None, use_ai: bool = True) -> Task | None:
        checked_title = validate_task_title(title)
        if not checked_title.valid:
            self._report(checked_title.error)
            self.refresh()
            return None
        checked_steps = validate_steps(list(steps or []))
        if not checked_steps.valid:
            self._report(checked_steps.error)
            self.refresh()
            return None
        description = validate_task_description(description).value

        step_texts = list(checked_steps.value)
        self.step_hints = []
        if not step_texts and use_ai:
            step_texts = self.breakdown_client.breakdown(checked_title.value, description)
        if not step_texts:
            self.step_hints = fallback_steps(checked_title.value)
            self._report("Add at least one step to get started")
        else:
            self.message = ""

        self.draft_task = new_temporary_task(checked_title.value, description, step_texts)
        self.refresh()
        return self.draft_task

    # ----- session intents -----
    def on_start(self) -> None:
        try:
            self.orchestrator.start_focus(self.draft_task)
        except FocusError as exc:
            self._report(str(exc))
        else:
            self.draft_task = None
            self.step_hints = []
            self.message = ""
        self.refresh()

    def on_pause_resume(self) -> None:
        if self.sessions.active:
            self.sessions.toggle_pause()
        else:
            self.orchestrator.pause_or_resume_break()
        self.refresh()

    def on_stop(self) -> None:
        if not self.sessions.request_stop():
            return
        self.refresh()
        reason = self.shell.ask_choice("Stop session?", "Why are you stopping?", [*STOP_REASONS, CHOICE_OTHER_REASON])
        if reason == CHOICE_OTHER_REASON:
            reason = self.shell.ask_text("Stop session?", "Reason (optional):")
        if reason is None:
            self.sessions.cancel_stop()
        else:
            self.sessions.confirm_stop(reason)
        self.refresh()

    def on_toggle_step(self, step_id: str) -> None:
        task = self.current_task()
        if task is not None:
            self.task_sync.toggle_step(task, step_id)
        self.refresh()

    def on_add_step(self, content: str) -> None:
        task = self.current_task()
        if task is None:
            self._report("Create a task first")
        elif self.task_sync.add_step(task, content) is not None:
            self.step_hints = []
            self.message = ""
        self.refresh()

    def on_edit_step(self, step_id: str, content: str) -> None:
        task = self.current_task()
        if task is not None:
            self.task_sync.edit_step(task, step_id, content)
        self.refresh()

    def on_delete_step(self, step_id: str) -> None:
        task = self.current_task()
        if task is not None:
            self.task_sync.delete_step(task, step_id)
        self.refresh()

    def on_distraction(self, text: str) -> None:
        if self.sessions.capture_distraction(text) is not None:
            self.message = "Distraction noted"
        self.refresh()

    def on_generate_next_steps(self) -> int:
        task = self.current_task() or self.orchestrator.resume_task
        added = 0
        if task is None:
            self._report("Create a task first")
        else:
            ordered = task.ordered_steps()
            done = [s.content for s in ordered if s.done]
            room = MAX_STEPS - len(task.steps)
            if not done:
                self._report("Finish a step first to get suggestions")
            elif room <= 0:
                self._report(f"Too many steps (max {MAX_STEPS})")
            else:
                remaining = [s.content for s in ordered if not s.done]
                suggestions = self.breakdown_client.generate_next_steps(task.title, done, remaining, task.description)
                for content in suggestions[:room]:
                    if self.task_sync.add_step(task, content) is not None:
                        added += 1
                self._report(f"Added {added} suggested step(s)" if added else "No suggestions right now")
        self.refresh()
        return added

    # ----- task history -----
    def unfinished_tasks(self) -> list[Task]:
        return [task for task in self.store.list_tasks() if task.status != TASK_COMPLETED]

    def on_open_tasks(self) -> None:
        try:
            tasks = self.unfinished_tasks()
        except FocusError as exc:
            self._report(str(exc))
            self.refresh()
            return
        if not tasks:
            self._report("No unfinished tasks")
            self.refresh()
            return
        labels = {
            f"{idx}. {task.title} ({task.completed_step_count()}/{len(task.steps)})": task.id
            for idx, task in enumerate(tasks, start=1)
        }
        choice = self.shell.ask_choice("Tasks", "Continue which task?", list(labels))
        if choice in labels:
            self.on_continue_task(labels[choice])
        else:
            self.refresh()

    def on_continue_task(self, task_id: str) -> None:
        try:
            task = self.store.get_task(task_id)
            if task is None:
                raise PreconditionError("Task not found")
            if task.status == TASK_COMPLETED:
                raise PreconditionError("Task is already completed")
            self.orchestrator.start_focus(task)
        except FocusError as exc:
            self._report(str(exc))
        else:
            self.draft_task = None
            self.step_hints = []
            self.message = ""
        self.refresh()

    def on_delete_tasks(self, task_ids: list[str]) -> int:
        ids = [task_id for task_id in task_ids if task_id]
        deleted = 0
        if self.sessions.task is not None and self.sessions.task.id in ids:
            self._report("Stop the running session before deleting its task")
        else:
            try:
                deleted = self.store.delete_tasks(ids)
            except FocusError as exc:
                self._report(str(exc))
            else:
                self._report(f"Deleted {deleted} task(s)")
        self.refresh()
        return deleted

    # ----- settings -----
    def on_update_settings(self, **changes) -> UserSettings:
        unknown = sorted(set(changes) - set(SETTING_NAMES))
        if unknown:
            self._report(f"Unknown setting: {', '.join(unknown)}")
            self.refresh()
            return self.settings_store.load()
        settings = self.settings_store.update(**changes)
        if not self.sessions.active:
            self.timer.set_duration(settings.default_session_duration)
        self._report("Settings saved")
        self.refresh()
        return settings

    def on_open_settings(self) -> None:
        changes = self.shell.ask_settings(self.settings_store.load().to_dict())
        if changes:
            self.on_update_settings(**changes)

    # ----- break intents -----
    def on_take_break(self, break_type: str = BREAK_SHORT) -> None:
        try:
            self.orchestrator.take_break(break_type)
        except FocusError as exc:
            self._report(str(exc))
        self.refresh()

    def on_end_break_early(self) -> None:
        self.orchestrator.end_break_early()
        self.refresh()

    def _prompt_for_phase(self, phase: str) -> None:
        summary = self.orchestrator.last_summary
        if phase == FLOW_CELEBRATION and summary is not None:
            self.shell.ask_choice(
                "Task complete!",
                f"You finished '{summary.task_title}'. Streak: {summary.streak} day(s).",
                [CHOICE_DONE],
            )
            self.orchestrator.dismiss_completion()
        elif phase == FLOW_COMPLETION_PROMPT and summary is not None:
            choice = self.shell.ask_choice(
                "Session complete",
                f"{summary.completed_steps}/{summary.total_steps} steps done on '{summary.task_title}'.",
                [CHOICE_CONTINUE, CHOICE_SHORT_BREAK, CHOICE_LONG_BREAK, CHOICE_DONE],
            )
            self._apply_completion_choice(choice)
        elif phase == FLOW_BREAK_COMPLETE_PROMPT:
            title = self.orchestrator.resume_task.title if self.orchestrator.resume_task is not None else ""
            options = [CHOICE_RESUME, CHOICE_DONE] if title else [CHOICE_DONE]
            choice = self.shell.ask_choice("Break over", f"Back to '{title}'?" if title else "Break over.", options)
            self._apply_break_choice(choice)
        else:
            return
        self.refresh()

    def _apply_completion_choice(self, choice: str | None) -> None:
        try:
            if choice == CHOICE_CONTINUE:
                self.orchestrator.continue_task()
            elif choice == CHOICE_SHORT_BREAK:
                self.orchestrator.take_break(BREAK_SHORT)
            elif choice == CHOICE_LONG_BREAK:
                self.orchestrator.take_break(BREAK_LONG)
            else:
                self.orchestrator.dismiss_completion()
        except FocusError as exc:
            self._report(str(exc))
            self.orchestrator.dismiss_completion()

    def _apply_break_choice(self, choice: str | None) -> None:
        if choice != CHOICE_RESUME:
            self.orchestrator.decline_resume()
            return
        try:
            self.orchestrator.resume_after_break()
        except FocusError as exc:
            self._report(str(exc))
            self.orchestrator.decline_resume()

    # ----- loop -----
    def on_tick(self) -> None:
        self.sessions.tick()
        self.orchestrator.tick()
        self.refresh()

    def on_drain(self) -> None:
        if self.dispatcher.drain():
            self.refresh()

    def on_close(self) -> bool:
        """Returns True when the shell should ask before closing."""
        return self.unload_guard.on_unload().confirm

    def startup(self) -> None:
        try:
            cleaned = cleanup_orphaned_sessions(self.store, cutoff_hours=self.config.orphan_cutoff_hours)
        except FocusError as exc:
            LOGGER.warning("orphan cleanup skipped error=%s", exc)
        else:
            if cleaned:
                self.message = f"Cleaned up {len(cleaned)} abandoned session(s)"
        self.sessions.refresh_streak()

    def shutdown(self) -> None:
        self.dispatcher.close(timeout=2.0)

    def run(self) -> None:
        self.startup()
        self.refresh()
        self.shell.schedule_every(self.config.tick_seconds, self.on_tick)
        self.shell.schedule_every(1, self.on_drain)
        try:
            self.shell.run()
        finally:
            self.shutdown()


def create_default_controller() -> FocusController:
    repo_root = Path(__file__).resolve().parent.parent
    config = FocusConfig.from_env(repo_root)
    return FocusController(config=config)


def main() -> int:
    repo_root = Path(__file__).resolve().parent.parent
    config = FocusConfig.from_env(repo_root)
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    FocusController(config=config).run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
