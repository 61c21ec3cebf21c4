from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4


TASK_PENDING = "pending"
TASK_IN_PROGRESS = "in_progress"
TASK_COMPLETED = "completed"
TASK_PAUSED = "paused"

SESSION_ACTIVE = "active"
SESSION_COMPLETED = "completed"
SESSION_SKIPPED = "skipped"
SESSION_PAUSED = "paused"

TERMINAL_SESSION_STATUSES = frozenset({SESSION_COMPLETED, SESSION_SKIPPED})

TEMP_ID_PREFIX = "temp-"


def utc_now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid4().hex}"


def is_temp_id(value: str) -> bool:
    return str(value or "").startswith(TEMP_ID_PREFIX)


@dataclass
class TaskStep:
    id: str
    task_id: str
    content: str
    done: bool = False
    order_index: int = 0
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskStep":
        return cls(
            id=str(data.get("id", "")),
            task_id=str(data.get("task_id", "") or ""),
            content=str(data.get("content", "")),
            done=bool(data.get("done", False)),
            order_index=int(data.get("order_index", 0) or 0),
            created_at=str(data.get("created_at", "") or ""),
            updated_at=str(data.get("updated_at", "") or ""),
        )


@dataclass
class Task:
    id: str
    title: str
    description: str = ""
    status: str = TASK_PENDING
    user_id: str = ""
    total_time_spent: int = 0
    steps: list[TaskStep] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    @property
    def is_temporary(self) -> bool:
        return is_temp_id(self.id)

    def ordered_steps(self) -> list[TaskStep]:
        return sorted(self.steps, key=lambda s: s.order_index)

    def completed_step_count(self) -> int:
        return sum(1 for step in self.steps if step.done)

    def all_steps_done(self) -> bool:
        # An empty step list never counts as done.
        return bool(self.steps) and all(step.done for step in self.steps)

    def find_step(self, step_id: str) -> TaskStep | None:
        return next((step for step in self.steps if step.id == step_id), None)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["steps"] = [step.to_dict() for step in self.ordered_steps()]
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        raw_steps = data.get("steps", [])
        steps = [TaskStep.from_dict(s) for s in raw_steps if isinstance(s, dict)] if isinstance(raw_steps, list) else []
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            description=str(data.get("description", "") or ""),
            status=str(data.get("status", TASK_PENDING) or TASK_PENDING),
            user_id=str(data.get("user_id", "") or ""),
            total_time_spent=int(data.get("total_time_spent", 0) or 0),
            steps=steps,
            created_at=str(data.get("created_at", "") or ""),
            updated_at=str(data.get("updated_at", "") or ""),
        )


def new_temporary_task(title: str, description: str = "", steps: list[str] | None = None) -> Task:
    task_id = new_temp_id()
    return Task(
        id=task_id,
        title=title,
        description=description,
        steps=[
            TaskStep(id=new_temp_id(), task_id=task_id, content=content, order_index=idx)
            for idx, content in enumerate(steps or [])
        ],
    )


@dataclass
class Session:
    id: str
    task_id: str | None
    planned_duration: int
    user_id: str = ""
    started_at: str = field(default_factory=utc_now_iso)
    ended_at: str | None = None
    actual_duration: int | None = None
    status: str = SESSION_ACTIVE
    notes: str | None = None
    completed_steps: int = 0
    total_steps: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_SESSION_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        actual = data.get("actual_duration")
        task_id = data.get("task_id")
        return cls(
            id=str(data.get("id", "")),
            task_id=str(task_id) if task_id else None,
            planned_duration=int(data.get("planned_duration", 0) or 0),
            user_id=str(data.get("user_id", "") or ""),
            started_at=str(data.get("started_at", "") or ""),
            ended_at=data.get("ended_at") or None,
            actual_duration=int(actual) if actual is not None else None,
            status=str(data.get("status", SESSION_ACTIVE) or SESSION_ACTIVE),
            notes=data.get("notes"),
            completed_steps=int(data.get("completed_steps", 0) or 0),
            total_steps=int(data.get("total_steps", 0) or 0),
        )


@dataclass
class Distraction:
    id: str
    session_id: str
    content: str
    user_id: str = ""
    handled: bool = False
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Distraction":
        return cls(
            id=str(data.get("id", "")),
            session_id=str(data.get("session_id", "")),
            content=str(data.get("content", "")),
            user_id=str(data.get("user_id", "") or ""),
            handled=bool(data.get("handled", False)),
            created_at=str(data.get("created_at", "") or ""),
        )
