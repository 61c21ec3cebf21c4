from __future__ import annotations

import logging
from typing import Callable

from focus_app.core.models import Task, TaskStep, is_temp_id, new_temp_id, utc_now_iso
from focus_app.core.validation import MAX_STEPS, validate_step_content
from focus_app.persistence.store_base import FocusStore
from focus_app.services.dispatcher import RemoteDispatcher

LOGGER = logging.getLogger(__name__)


class TaskStepSync:
    """Apply step edits to the in-memory task first, then reconcile remotely.

    Remote failures never roll back the local copy; they are logged and kept
    in ``last_error`` so the shell can show an inline warning.
    """

    def __init__(
        self,
        store: FocusStore,
        dispatcher: RemoteDispatcher,
        on_changed: Callable[[Task], None] | None = None,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.on_changed = on_changed
        self.last_error = ""
        self._dropped_temp_ids: set[str] = set()

    def _remote_ok(self, task: Task, step: TaskStep | None = None) -> bool:
        if task.is_temporary:
            return False
        return step is None or not is_temp_id(step.id)

    def _failed(self, action: str) -> Callable[[Exception], None]:
        def _record(exc: Exception) -> None:
            self.last_error = f"Failed to {action}"
            LOGGER.warning("step sync failed action=%s error=%s", action, exc)

        return _record

    def _changed(self, task: Task) -> None:
        if self.on_changed is not None:
            self.on_changed(task)

    def _adopt_created(self, task: Task, step: TaskStep, created: TaskStep) -> None:
        """Swap in the stored id and replay edits made while the step was temporary."""
        temp_id = step.id
        if temp_id in self._dropped_temp_ids:
            self._dropped_temp_ids.discard(temp_id)
            LOGGER.info("replaying step delete task_id=%s step_id=%s", task.id, created.id)
            self.dispatcher.submit(
                "delete_step",
                self.store.delete_step,
                task.id,
                created.id,
                on_error=self._failed("delete step"),
            )
            return

        step.id = created.id
        step.created_at = created.created_at or step.created_at
        if step.done != created.done:
            self.dispatcher.submit(
                "toggle_step",
                self.store.toggle_step,
                task.id,
                step.id,
                on_error=self._failed("update step"),
            )
        if step.content != created.content:
            self.dispatcher.submit(
                "update_step",
                self.store.update_step,
                task.id,
                step.id,
                step.content,
                on_error=self._failed("edit step"),
            )

    def toggle_step(self, task: Task, step_id: str) -> TaskStep | None:
        step = task.find_step(step_id)
        if step is None:
            return None
        step.done = not step.done
        step.updated_at = utc_now_iso()
        if self._remote_ok(task, step):
            self.dispatcher.submit(
                "toggle_step",
                self.store.toggle_step,
                task.id,
                step.id,
                on_error=self._failed("update step"),
            )
        self._changed(task)
        return step

    def add_step(self, task: Task, content: str) -> TaskStep | None:
        result = validate_step_content(content)
        if not result.valid:
            self.last_error = result.error
            return None
        if len(task.steps) >= MAX_STEPS:
            self.last_error = f"Too many steps (max {MAX_STEPS})"
            return None

        next_index = max((s.order_index for s in task.steps), default=-1) + 1
        step = TaskStep(id=new_temp_id(), task_id=task.id, content=result.value, order_index=next_index)
        task.steps.append(step)

        if self._remote_ok(task):

            def _adopt(created: TaskStep) -> None:
                if created is not None and created.id:
                    self._adopt_created(task, step, created)

            self.dispatcher.submit(
                "create_step",
                self.store.create_step,
                task.id,
                step.content,
                on_success=_adopt,
                on_error=self._failed("add step"),
            )
        self._changed(task)
        return step

    def edit_step(self, task: Task, step_id: str, content: str) -> TaskStep | None:
        step = task.find_step(step_id)
        if step is None:
            return None
        result = validate_step_content(content)
        if not result.valid:
            self.last_error = result.error
            return None
        step.content = result.value
        step.updated_at = utc_now_iso()
        if self._remote_ok(task, step):
            self.dispatcher.submit(
                "update_step",
                self.store.update_step,
                task.id,
                step.id,
                step.content,
                on_error=self._failed("edit step"),
            )
        self._changed(task)
        return step

    def delete_step(self, task: Task, step_id: str) -> bool:
        step = task.find_step(step_id)
        if step is None:
            return False
        task.steps = [s for s in task.steps if s.id != step_id]
        if self._remote_ok(task, step):
            self.dispatcher.submit(
                "delete_step",
                self.store.delete_step,
                task.id,
                step.id,
                on_error=self._failed("delete step"),
            )
        elif not task.is_temporary:
            self._dropped_temp_ids.add(step.id)
        self._changed(task)
        return True

    def reset_progress(self, task: Task) -> int:
        """Mark every step not done; done steps are toggled remotely."""
        reset = 0
        for step in task.steps:
            if not step.done:
                continue
            step.done = False
            step.updated_at = utc_now_iso()
            reset += 1
            if self._remote_ok(task, step):
                self.dispatcher.submit(
                    "reset_step",
                    self.store.toggle_step,
                    task.id,
                    step.id,
                    on_error=self._failed("reset step"),
                )
        LOGGER.info("task progress reset task_id=%s steps=%s", task.id, reset)
        return reset
