from __future__ import annotations

from abc import ABC, abstractmethod

from focus_app.core.models import Distraction, Session, Task, TaskStep


class FocusStore(ABC):
    """Persistence collaborator for tasks, steps, sessions and distractions.

    Implementations raise PersistenceError on any failure. Sessions in a
    terminal status are never mutated again.
    """

    @abstractmethod
    def create_task(self, title: str, description: str = "", steps: list[str] | None = None) -> Task:
        raise NotImplementedError

    @abstractmethod
    def get_task(self, task_id: str) -> Task | None:
        raise NotImplementedError

    @abstractmethod
    def list_tasks(self, status: str | None = None) -> list[Task]:
        raise NotImplementedError

    @abstractmethod
    def update_task(self, task_id: str, status: str | None = None, add_time_spent: int = 0) -> Task:
        raise NotImplementedError

    @abstractmethod
    def delete_tasks(self, task_ids: list[str]) -> int:
        """Delete tasks with their steps, sessions and distractions; returns the count removed."""
        raise NotImplementedError

    @abstractmethod
    def create_step(self, task_id: str, content: str) -> TaskStep:
        raise NotImplementedError

    @abstractmethod
    def update_step(self, task_id: str, step_id: str, content: str) -> TaskStep:
        raise NotImplementedError

    @abstractmethod
    def toggle_step(self, task_id: str, step_id: str) -> TaskStep | None:
        raise NotImplementedError

    @abstractmethod
    def delete_step(self, task_id: str, step_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def create_session(self, task_id: str | None, planned_duration: int, total_steps: int = 0) -> Session:
        raise NotImplementedError

    @abstractmethod
    def update_session(
        self,
        session_id: str,
        status: str | None = None,
        ended_at: str | None = None,
        actual_duration: int | None = None,
        notes: str | None = None,
        completed_steps: int | None = None,
    ) -> Session:
        raise NotImplementedError

    @abstractmethod
    def get_session(self, session_id: str) -> Session | None:
        raise NotImplementedError

    @abstractmethod
    def list_sessions(self, status: str | None = None) -> list[Session]:
        raise NotImplementedError

    @abstractmethod
    def create_distraction(self, session_id: str, content: str) -> Distraction:
        raise NotImplementedError

    @abstractmethod
    def get_current_streak(self, user_id: str) -> int:
        raise NotImplementedError

    def get_todays_stats(self, user_id: str) -> dict:
        _ = user_id
        return {"started_sessions": 0, "completed_sessions": 0, "total_focus_time": 0}
