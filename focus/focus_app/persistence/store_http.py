from __future__ import annotations

import json
import logging
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from focus_app.core.errors import PersistenceError
from focus_app.core.models import Distraction, Session, Task, TaskStep
from focus_app.persistence.store_base import FocusStore

LOGGER = logging.getLogger(__name__)

_TASK_FIELDS = {
    "id": "id",
    "title": "title",
    "description": "description",
    "status": "status",
    "userId": "user_id",
    "totalTimeSpent": "total_time_spent",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}
_STEP_FIELDS = {
    "id": "id",
    "taskId": "task_id",
    "content": "content",
    "done": "done",
    "orderIndex": "order_index",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}
_SESSION_FIELDS = {
    "id": "id",
    "taskId": "task_id",
    "userId": "user_id",
    "startedAt": "started_at",
    "endedAt": "ended_at",
    "plannedDuration": "planned_duration",
    "actualDuration": "actual_duration",
    "status": "status",
    "notes": "notes",
    "completedSteps": "completed_steps",
    "totalSteps": "total_steps",
}
_DISTRACTION_FIELDS = {
    "id": "id",
    "sessionId": "session_id",
    "userId": "user_id",
    "content": "content",
    "handled": "handled",
    "createdAt": "created_at",
}


def _rename(data: dict, fields: dict[str, str]) -> dict:
    # Accept either the camelCase wire form or the snake_case column names.
    out = {}
    for camel, snake in fields.items():
        if camel in data:
            out[snake] = data[camel]
        elif snake in data:
            out[snake] = data[snake]
    return out


def _task_from_wire(data: dict) -> Task:
    payload = _rename(data, _TASK_FIELDS)
    payload["steps"] = [_rename(s, _STEP_FIELDS) for s in data.get("steps") or [] if isinstance(s, dict)]
    return Task.from_dict(payload)


def _step_from_wire(data: dict) -> TaskStep:
    return TaskStep.from_dict(_rename(data, _STEP_FIELDS))


def _session_from_wire(data: dict) -> Session:
    return Session.from_dict(_rename(data, _SESSION_FIELDS))


def _distraction_from_wire(data: dict) -> Distraction:
    return Distraction.from_dict(_rename(data, _DISTRACTION_FIELDS))


class HttpFocusStore(FocusStore):
    """FocusStore backed by the hosted REST API.

    Every response is wrapped as ``{"success": bool, "data": ..., "error": str}``.
    """

    def __init__(self, base_url: str, token: str = "", timeout: float = 15.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json", "User-Agent": "focus-app/0.1"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _url(self, path: str, query: dict | None = None) -> str:
        url = f"{self.base_url}{path}"
        if query:
            url = f"{url}?{urlencode(query)}"
        return url

    def _api_request(self, method: str, url: str, body: dict | None = None) -> tuple[int, dict]:
        data = None
        headers = self._headers()
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"

        req = Request(url=url, data=data, method=method, headers=headers)
        try:
            with urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read().decode("utf-8")
                payload = json.loads(raw) if raw else {}
                return resp.status, payload if isinstance(payload, dict) else {}
        except HTTPError as exc:
            raw = exc.read().decode("utf-8") if exc.fp else ""
            try:
                payload = json.loads(raw) if raw else {}
            except json.JSONDecodeError:
                payload = {}
            return exc.code, payload if isinstance(payload, dict) else {}
        except (URLError, TimeoutError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"api request failed method={method} url={url} error={exc}") from exc

    def _call(
        self,
        method: str,
        path: str,
        body: dict | None = None,
        query: dict | None = None,
        allow_404: bool = False,
        field: str = "data",
    ):
        status, payload = self._api_request(method, self._url(path, query), body=body)
        if allow_404 and status == 404:
            return None
        if status >= 400 or not payload.get("success", False):
            message = payload.get("error") or f"http {status}"
            raise PersistenceError(f"api call failed method={method} path={path} status={status} error={message}")
        return payload.get(field)

    # ----- tasks -----
    def create_task(self, title: str, description: str = "", steps: list[str] | None = None) -> Task:
        data = self._call("POST", "/api/tasks", body={"title": title, "description": description, "steps": list(steps or [])})
        return _task_from_wire(data or {})

    def get_task(self, task_id: str) -> Task | None:
        data = self._call("GET", f"/api/tasks/{quote(task_id)}", allow_404=True)
        return _task_from_wire(data) if isinstance(data, dict) else None

    def list_tasks(self, status: str | None = None) -> list[Task]:
        data = self._call("GET", "/api/tasks/all", query={"status": status} if status else None)
        return [_task_from_wire(item) for item in data or [] if isinstance(item, dict)]

    def delete_tasks(self, task_ids: list[str]) -> int:
        if not task_ids:
            return 0
        deleted = self._call("DELETE", "/api/tasks/delete", body={"taskIds": list(task_ids)}, field="deletedCount")
        return int(deleted or 0)

    def update_task(self, task_id: str, status: str | None = None, add_time_spent: int = 0) -> Task:
        body: dict = {}
        if status is not None:
            body["status"] = status
        if add_time_spent:
            body["addTimeSpent"] = int(add_time_spent)
        data = self._call("PUT", f"/api/tasks/{quote(task_id)}", body=body)
        return _task_from_wire(data or {})

    # ----- steps -----
    def create_step(self, task_id: str, content: str) -> TaskStep:
        data = self._call("POST", f"/api/tasks/{quote(task_id)}/steps", body={"content": content})
        return _step_from_wire(data or {})

    def update_step(self, task_id: str, step_id: str, content: str) -> TaskStep:
        data = self._call("PUT", f"/api/tasks/{quote(task_id)}/steps/{quote(step_id)}", body={"content": content})
        return _step_from_wire(data or {})

    def toggle_step(self, task_id: str, step_id: str) -> TaskStep | None:
        data = self._call("PUT", f"/api/tasks/{quote(task_id)}/steps/{quote(step_id)}")
        return _step_from_wire(data) if isinstance(data, dict) else None

    def delete_step(self, task_id: str, step_id: str) -> None:
        self._call("DELETE", f"/api/tasks/{quote(task_id)}/steps/{quote(step_id)}")

    # ----- sessions -----
    def create_session(self, task_id: str | None, planned_duration: int, total_steps: int = 0) -> Session:
        body = {"taskId": task_id, "plannedDuration": int(planned_duration), "totalSteps": int(total_steps)}
        data = self._call("POST", "/api/sessions", body=body)
        return _session_from_wire(data or {})

    def update_session(
        self,
        session_id: str,
        status: str | None = None,
        ended_at: str | None = None,
        actual_duration: int | None = None,
        notes: str | None = None,
        completed_steps: int | None = None,
    ) -> Session:
        fields = {
            "status": status,
            "endedAt": ended_at,
            "actualDuration": actual_duration,
            "notes": notes,
            "completedSteps": completed_steps,
        }
        body = {key: value for key, value in fields.items() if value is not None}
        data = self._call("PUT", f"/api/sessions/{quote(session_id)}", body=body)
        return _session_from_wire(data or {})

    def get_session(self, session_id: str) -> Session | None:
        data = self._call("GET", f"/api/sessions/{quote(session_id)}", allow_404=True)
        return _session_from_wire(data) if isinstance(data, dict) else None

    def list_sessions(self, status: str | None = None) -> list[Session]:
        data = self._call("GET", "/api/sessions", query={"status": status} if status else None)
        return [_session_from_wire(item) for item in data or [] if isinstance(item, dict)]

    def create_distraction(self, session_id: str, content: str) -> Distraction:
        data = self._call("POST", "/api/distractions", body={"sessionId": session_id, "content": content})
        return _distraction_from_wire(data or {})

    # ----- streak -----
    def _streak_payload(self) -> dict:
        data = self._call("GET", "/api/streak")
        return data if isinstance(data, dict) else {}

    def get_current_streak(self, user_id: str) -> int:
        _ = user_id
        return int(self._streak_payload().get("streak", 0) or 0)

    def get_todays_stats(self, user_id: str) -> dict:
        _ = user_id
        today = self._streak_payload().get("today") or {}
        return {
            "started_sessions": int(today.get("startedSessions", 0) or 0),
            "completed_sessions": int(today.get("completedSessions", 0) or 0),
            "total_focus_time": int(today.get("totalFocusTime", 0) or 0),
        }
