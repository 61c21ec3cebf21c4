from __future__ import annotations

import json
import logging
import os
import threading
from contextlib import contextmanager
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Callable, Iterator
from uuid import uuid4

from focus_app.core.errors import PersistenceError
from focus_app.core.models import (
    SESSION_ACTIVE,
    TASK_PENDING,
    TERMINAL_SESSION_STATUSES,
    Distraction,
    Session,
    Task,
    TaskStep,
)
from focus_app.persistence.store_base import FocusStore
from focus_app.services.streak import active_days, current_streak, local_date, todays_stats

LOGGER = logging.getLogger(__name__)


class JsonFocusStore(FocusStore):
    def __init__(
        self,
        path: str | Path,
        user_id: str = "local",
        now: Callable[[], datetime] | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self.path = Path(path)
        self.user_id = user_id
        self.tz = tz
        self._now = now or (lambda: datetime.now(tz=timezone.utc))
        self._lock = threading.RLock()

    # ----- document I/O -----
    def _read(self) -> dict:
        if not self.path.exists():
            return {"tasks": [], "sessions": [], "distractions": []}
        try:
            doc = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            raise PersistenceError(f"store unreadable path={self.path} error={exc}") from exc
        if not isinstance(doc, dict):
            raise PersistenceError(f"store malformed path={self.path}")
        for key in ("tasks", "sessions", "distractions"):
            if not isinstance(doc.get(key), list):
                doc[key] = []
        return doc

    def _write(self, doc: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(doc, ensure_ascii=True, indent=2)
        try:
            with NamedTemporaryFile("w", delete=False, encoding="utf-8", dir=str(self.path.parent)) as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
                tmp_path = Path(handle.name)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise PersistenceError(f"store write failed path={self.path} error={exc}") from exc

    @contextmanager
    def _transaction(self) -> Iterator[dict]:
        with self._lock:
            doc = self._read()
            yield doc
            self._write(doc)

    def _stamp(self) -> str:
        return self._now().isoformat()

    def _find(self, items: list[dict], item_id: str, kind: str) -> dict:
        for item in items:
            if item.get("id") == item_id:
                return item
        raise PersistenceError(f"{kind} not found: {item_id}")

    def _find_step(self, task: dict, step_id: str) -> dict:
        return self._find(task.setdefault("steps", []), step_id, "step")

    # ----- tasks -----
    def create_task(self, title: str, description: str = "", steps: list[str] | None = None) -> Task:
        stamp = self._stamp()
        task_id = uuid4().hex
        task = Task(
            id=task_id,
            title=title,
            description=description or "",
            status=TASK_PENDING,
            user_id=self.user_id,
            steps=[
                TaskStep(id=uuid4().hex, task_id=task_id, content=content, order_index=idx, created_at=stamp, updated_at=stamp)
                for idx, content in enumerate(steps or [])
            ],
            created_at=stamp,
            updated_at=stamp,
        )
        with self._transaction() as doc:
            doc["tasks"].append(task.to_dict())
        return task

    def get_task(self, task_id: str) -> Task | None:
        with self._lock:
            doc = self._read()
        for item in doc["tasks"]:
            if item.get("id") == task_id:
                return Task.from_dict(item)
        return None

    def list_tasks(self, status: str | None = None) -> list[Task]:
        with self._lock:
            doc = self._read()
        tasks = [Task.from_dict(item) for item in doc["tasks"] if item.get("user_id", self.user_id) == self.user_id]
        if status is not None:
            tasks = [task for task in tasks if task.status == status]
        return tasks

    def delete_tasks(self, task_ids: list[str]) -> int:
        wanted = set(task_ids)
        if not wanted:
            return 0
        with self._transaction() as doc:
            owned = {
                item.get("id")
                for item in doc["tasks"]
                if item.get("id") in wanted and item.get("user_id", self.user_id) == self.user_id
            }
            doomed_sessions = {s.get("id") for s in doc["sessions"] if s.get("task_id") in owned}
            doc["distractions"] = [d for d in doc["distractions"] if d.get("session_id") not in doomed_sessions]
            doc["sessions"] = [s for s in doc["sessions"] if s.get("id") not in doomed_sessions]
            doc["tasks"] = [item for item in doc["tasks"] if item.get("id") not in owned]
        LOGGER.info("tasks deleted requested=%s deleted=%s sessions=%s", len(wanted), len(owned), len(doomed_sessions))
        return len(owned)

    def update_task(self, task_id: str, status: str | None = None, add_time_spent: int = 0) -> Task:
        with self._transaction() as doc:
            item = self._find(doc["tasks"], task_id, "task")
            if status is not None:
                item["status"] = status
            if add_time_spent:
                item["total_time_spent"] = int(item.get("total_time_spent", 0) or 0) + int(add_time_spent)
            item["updated_at"] = self._stamp()
            return Task.from_dict(item)

    # ----- steps -----
    def create_step(self, task_id: str, content: str) -> TaskStep:
        stamp = self._stamp()
        with self._transaction() as doc:
            task = self._find(doc["tasks"], task_id, "task")
            steps = task.setdefault("steps", [])
            next_index = max((int(s.get("order_index", 0)) for s in steps), default=-1) + 1
            step = TaskStep(
                id=uuid4().hex,
                task_id=task_id,
                content=content,
                order_index=next_index,
                created_at=stamp,
                updated_at=stamp,
            )
            steps.append(step.to_dict())
            return step

    def update_step(self, task_id: str, step_id: str, content: str) -> TaskStep:
        with self._transaction() as doc:
            step = self._find_step(self._find(doc["tasks"], task_id, "task"), step_id)
            step["content"] = content
            step["updated_at"] = self._stamp()
            return TaskStep.from_dict(step)

    def toggle_step(self, task_id: str, step_id: str) -> TaskStep | None:
        with self._transaction() as doc:
            step = self._find_step(self._find(doc["tasks"], task_id, "task"), step_id)
            step["done"] = not bool(step.get("done", False))
            step["updated_at"] = self._stamp()
            return TaskStep.from_dict(step)

    def delete_step(self, task_id: str, step_id: str) -> None:
        with self._transaction() as doc:
            task = self._find(doc["tasks"], task_id, "task")
            self._find_step(task, step_id)
            task["steps"] = [s for s in task["steps"] if s.get("id") != step_id]

    # ----- sessions -----
    def create_session(self, task_id: str | None, planned_duration: int, total_steps: int = 0) -> Session:
        session = Session(
            id=uuid4().hex,
            task_id=task_id,
            planned_duration=int(planned_duration),
            user_id=self.user_id,
            started_at=self._stamp(),
            status=SESSION_ACTIVE,
            total_steps=int(total_steps),
        )
        with self._transaction() as doc:
            if task_id is not None:
                self._find(doc["tasks"], task_id, "task")
            doc["sessions"].append(session.to_dict())
        return session

    def update_session(
        self,
        session_id: str,
        status: str | None = None,
        ended_at: str | None = None,
        actual_duration: int | None = None,
        notes: str | None = None,
        completed_steps: int | None = None,
    ) -> Session:
        with self._transaction() as doc:
            item = self._find(doc["sessions"], session_id, "session")
            if item.get("status") in TERMINAL_SESSION_STATUSES:
                raise PersistenceError(f"session already ended: {session_id} status={item.get('status')}")
            updates = {
                "status": status,
                "ended_at": ended_at,
                "actual_duration": actual_duration,
                "notes": notes,
                "completed_steps": completed_steps,
            }
            for key, value in updates.items():
                if value is not None:
                    item[key] = value
            return Session.from_dict(item)

    def get_session(self, session_id: str) -> Session | None:
        with self._lock:
            doc = self._read()
        for item in doc["sessions"]:
            if item.get("id") == session_id:
                return Session.from_dict(item)
        return None

    def list_sessions(self, status: str | None = None) -> list[Session]:
        with self._lock:
            doc = self._read()
        sessions = [Session.from_dict(item) for item in doc["sessions"] if item.get("user_id", self.user_id) == self.user_id]
        if status is not None:
            sessions = [s for s in sessions if s.status == status]
        sessions.sort(key=lambda s: s.started_at, reverse=True)
        return sessions

    # ----- distractions / streak -----
    def create_distraction(self, session_id: str, content: str) -> Distraction:
        distraction = Distraction(
            id=uuid4().hex,
            session_id=session_id,
            content=content,
            user_id=self.user_id,
            created_at=self._stamp(),
        )
        with self._transaction() as doc:
            self._find(doc["sessions"], session_id, "session")
            doc["distractions"].append(distraction.to_dict())
        return distraction

    def list_distractions(self, session_id: str) -> list[Distraction]:
        with self._lock:
            doc = self._read()
        return [Distraction.from_dict(d) for d in doc["distractions"] if d.get("session_id") == session_id]

    def _sessions_for(self, user_id: str) -> list[Session]:
        with self._lock:
            doc = self._read()
        return [Session.from_dict(item) for item in doc["sessions"] if item.get("user_id") == user_id]

    def get_current_streak(self, user_id: str) -> int:
        today = local_date(self._now(), self.tz)
        return current_streak(active_days(self._sessions_for(user_id), self.tz), today=today)

    def get_todays_stats(self, user_id: str) -> dict:
        return todays_stats(self._sessions_for(user_id), today=local_date(self._now(), self.tz), tz=self.tz)
