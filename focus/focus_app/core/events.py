from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any
from uuid import uuid4

from focus_app.core.models import utc_now_iso


@dataclass(frozen=True)
class FocusEvent:
    event_type: str
    timestamp: str = field(default_factory=utc_now_iso)
    event_id: str = field(default_factory=lambda: uuid4().hex)
    source: str = "focus_app"
    schema_version: str = "v1"
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FocusEvent":
        payload = data.get("payload")
        return cls(
            event_type=str(data.get("event_type") or "unknown"),
            timestamp=str(data.get("timestamp") or ""),
            event_id=str(data.get("event_id") or ""),
            source=str(data.get("source") or "focus_app"),
            schema_version=str(data.get("schema_version") or "v1"),
            payload=payload if isinstance(payload, dict) else {},
        )


def session_start_event(session_id: str, task_title: str, duration_s: int, source: str = "focus_app") -> FocusEvent:
    return FocusEvent(
        event_type="session_start",
        payload={"session_id": session_id, "task_title": task_title, "duration_s": int(duration_s)},
        source=source,
    )


def session_complete_event(
    session_id: str,
    task_title: str,
    duration_s: int,
    completed_steps: int,
    total_steps: int,
    source: str = "focus_app",
) -> FocusEvent:
    return FocusEvent(
        event_type="session_complete",
        payload={
            "session_id": session_id,
            "task_title": task_title,
            "duration_s": int(duration_s),
            "completed_steps": int(completed_steps),
            "total_steps": int(total_steps),
        },
        source=source,
    )


def session_stop_event(session_id: str, actual_s: int, notes: str, source: str = "focus_app") -> FocusEvent:
    return FocusEvent(
        event_type="session_stop",
        payload={"session_id": session_id, "actual_s": int(actual_s), "notes": notes},
        source=source,
    )


def break_start_event(break_type: str, duration_s: int, source: str = "focus_app") -> FocusEvent:
    return FocusEvent(
        event_type="break_start",
        payload={"break_type": break_type, "duration_s": int(duration_s)},
        source=source,
    )


def break_complete_event(break_type: str, duration_s: int, ended_early: bool, source: str = "focus_app") -> FocusEvent:
    return FocusEvent(
        event_type="break_complete",
        payload={"break_type": break_type, "duration_s": int(duration_s), "ended_early": bool(ended_early)},
        source=source,
    )


def distraction_event(session_id: str, content: str, source: str = "focus_app") -> FocusEvent:
    return FocusEvent(
        event_type="distraction",
        payload={"session_id": session_id, "content": content},
        source=source,
    )
