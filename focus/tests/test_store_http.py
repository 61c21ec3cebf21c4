from __future__ import annotations

import pytest

from focus_app.core.errors import PersistenceError
from focus_app.persistence.store_http import HttpFocusStore


def _recording_store(monkeypatch, responses: list[tuple[int, dict]]):
    store = HttpFocusStore(base_url="https://focus.example/", token="tok")
    calls: list[tuple[str, str, dict | None]] = []

    def _fake_request(method: str, url: str, body: dict | None = None) -> tuple[int, dict]:
        calls.append((method, url, body))
        return responses.pop(0)

    monkeypatch.setattr(store, "_api_request", _fake_request)
    return store, calls


def test_create_task_maps_wire_fields(monkeypatch) -> None:
    wire_task = {
        "id": "t1",
        "title": "Write report",
        "userId": "u1",
        "totalTimeSpent": 300,
        "steps": [
            {"id": "s2", "taskId": "t1", "content": "draft", "orderIndex": 1, "done": False},
            {"id": "s1", "taskId": "t1", "content": "outline", "orderIndex": 0, "done": True},
        ],
    }
    store, calls = _recording_store(monkeypatch, [(201, {"success": True, "data": wire_task})])

    task = store.create_task("Write report", "", ["outline", "draft"])

    assert calls == [
        ("POST", "https://focus.example/api/tasks", {"title": "Write report", "description": "", "steps": ["outline", "draft"]})
    ]
    assert task.total_time_spent == 300
    assert [(s.content, s.done) for s in task.ordered_steps()] == [("outline", True), ("draft", False)]


def test_update_session_sends_only_given_fields(monkeypatch) -> None:
    store, calls = _recording_store(
        monkeypatch,
        [(200, {"success": True, "data": {"id": "x1", "status": "skipped", "actualDuration": 120, "plannedDuration": 1500}})],
    )

    session = store.update_session("x1", status="skipped", actual_duration=120, notes="Stopped early")

    method, url, body = calls[0]
    assert (method, url) == ("PUT", "https://focus.example/api/sessions/x1")
    assert body == {"status": "skipped", "actualDuration": 120, "notes": "Stopped early"}
    assert (session.status, session.actual_duration, session.planned_duration) == ("skipped", 120, 1500)


def test_toggle_step_and_credit_task_paths(monkeypatch) -> None:
    store, calls = _recording_store(
        monkeypatch,
        [
            (200, {"success": True, "data": {"id": "s1", "done": True}}),
            (200, {"success": True, "data": {"id": "t1", "status": "completed", "totalTimeSpent": 1500}}),
        ],
    )

    assert store.toggle_step("t1", "s1").done is True
    assert store.update_task("t1", status="completed", add_time_spent=1500).total_time_spent == 1500
    assert calls[0] == ("PUT", "https://focus.example/api/tasks/t1/steps/s1", None)
    assert calls[1][2] == {"status": "completed", "addTimeSpent": 1500}


def test_error_envelope_raises_persistence_error(monkeypatch) -> None:
    store, _calls = _recording_store(
        monkeypatch,
        [
            (400, {"success": False, "error": "Session already ended"}),
            (200, {"success": False, "error": "nope"}),
        ],
    )
    with pytest.raises(PersistenceError, match="Session already ended"):
        store.update_session("x1", status="completed")
    with pytest.raises(PersistenceError):
        store.create_distraction("x1", "phone")


def test_missing_rows_return_none(monkeypatch) -> None:
    store, _calls = _recording_store(monkeypatch, [(404, {"success": False}), (404, {})])
    assert store.get_task("t404") is None
    assert store.get_session("x404") is None


def test_streak_endpoint_feeds_streak_and_today(monkeypatch) -> None:
    payload = {"success": True, "data": {"streak": 4, "today": {"startedSessions": 3, "completedSessions": 2, "totalFocusTime": 3000}}}
    store, calls = _recording_store(monkeypatch, [(200, payload), (200, payload)])

    assert store.get_current_streak("u1") == 4
    assert store.get_todays_stats("u1") == {"started_sessions": 3, "completed_sessions": 2, "total_focus_time": 3000}
    assert calls[0][1] == "https://focus.example/api/streak"


def test_list_sessions_passes_status_filter(monkeypatch) -> None:
    store, calls = _recording_store(monkeypatch, [(200, {"success": True, "data": [{"id": "x1", "status": "active"}]})])
    sessions = store.list_sessions(status="active")
    assert [s.id for s in sessions] == ["x1"]
    assert calls[0][1] == "https://focus.example/api/sessions?status=active"


def test_delete_tasks_sends_ids_and_reads_count(monkeypatch) -> None:
    store, calls = _recording_store(
        monkeypatch,
        [(200, {"success": True, "message": "2 task(s) deleted successfully", "deletedCount": 2})],
    )

    assert store.delete_tasks(["t1", "t2"]) == 2
    assert store.delete_tasks([]) == 0
    assert calls == [("DELETE", "https://focus.example/api/tasks/delete", {"taskIds": ["t1", "t2"]})]
