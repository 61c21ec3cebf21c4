from __future__ import annotations

import io
import json
from urllib.error import URLError

from focus_app.services import task_breakdown
from focus_app.services.task_breakdown import TaskBreakdownClient, fallback_steps, parse_steps


class _FakeResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *_exc) -> None:
        self.close()


def test_parse_steps_prefers_json_array() -> None:
    assert parse_steps('["Open doc", "  ", "Write intro"]') == ["Open doc", "Write intro"]


def test_parse_steps_falls_back_to_numbered_lines() -> None:
    content = "1. Open doc\n2. Outline\n- Write intro\n* Edit\n\n3 Review\n4. Send\n5. Celebrate"
    steps = parse_steps(content)
    assert steps[0] == "Open doc"
    assert "Write intro" in steps and "Edit" in steps
    assert len(steps) == 5


def test_fallback_steps_match_keywords() -> None:
    assert fallback_steps("Write the quarterly report")[0] == "Open a blank document and write the title"
    assert fallback_steps("Fix login bug")[2] == "Make the smallest working change"
    assert len(fallback_steps("Water the plants")) == 3


def test_breakdown_without_key_returns_empty(monkeypatch) -> None:
    def _never(*_args, **_kwargs):
        raise AssertionError("network must not be used")

    monkeypatch.setattr(task_breakdown, "urlopen", _never)
    assert TaskBreakdownClient(api_key="").breakdown("Write report") == []


def test_breakdown_posts_chat_completion(monkeypatch) -> None:
    seen: dict = {}

    def _fake_urlopen(req, timeout):
        seen["url"] = req.full_url
        seen["body"] = json.loads(req.data.decode("utf-8"))
        seen["auth"] = req.get_header("Authorization")
        reply = {"choices": [{"message": {"content": '["Open doc", "Write intro"]'}}]}
        return _FakeResponse(json.dumps(reply).encode("utf-8"))

    monkeypatch.setattr(task_breakdown, "urlopen", _fake_urlopen)
    client = TaskBreakdownClient(base_url="https://ai.example/v1/", api_key="sk-test", model="m1")

    assert client.breakdown("Write report", "for Friday") == ["Open doc", "Write intro"]
    assert seen["url"] == "https://ai.example/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["model"] == "m1"
    assert seen["body"]["messages"][1]["content"].startswith("Task: Write report\nDescription: for Friday")


def test_breakdown_failure_is_logged_not_raised(monkeypatch, caplog) -> None:
    def _offline(*_args, **_kwargs):
        raise URLError("offline")

    monkeypatch.setattr(task_breakdown, "urlopen", _offline)
    assert TaskBreakdownClient(api_key="sk-test").breakdown("Write report") == []
    assert any("breakdown failed" in rec.message for rec in caplog.records)


def test_next_steps_prompt_lists_completed_and_remaining(monkeypatch) -> None:
    seen: dict = {}

    def _fake_urlopen(req, timeout):
        seen["body"] = json.loads(req.data.decode("utf-8"))
        content = '["Draft section two", "Add references", "Proofread", "Send to Sam", "Celebrate"]'
        return _FakeResponse(json.dumps({"choices": [{"message": {"content": content}}]}).encode("utf-8"))

    monkeypatch.setattr(task_breakdown, "urlopen", _fake_urlopen)
    client = TaskBreakdownClient(api_key="sk-test")

    steps = client.generate_next_steps("Write report", ["Outline", "Draft section one"], ["Polish"])

    assert steps == ["Draft section two", "Add references", "Proofread", "Send to Sam"]
    system, user = seen["body"]["messages"]
    assert system["content"] == task_breakdown.NEXT_STEPS_PROMPT
    assert "Completed steps:\n1. Outline\n2. Draft section one" in user["content"]
    assert "generate new ones):\n1. Polish" in user["content"]


def test_next_steps_need_a_completed_step(monkeypatch) -> None:
    def _never(*_args, **_kwargs):
        raise AssertionError("network must not be used")

    monkeypatch.setattr(task_breakdown, "urlopen", _never)
    client = TaskBreakdownClient(api_key="sk-test")
    assert client.generate_next_steps("Write report", []) == []
    assert client.generate_next_steps("Write report", ["  "]) == []
    assert TaskBreakdownClient(api_key="").generate_next_steps("Write report", ["Outline"]) == []


def test_next_steps_failure_is_logged_not_raised(monkeypatch, caplog) -> None:
    def _offline(*_args, **_kwargs):
        raise URLError("offline")

    monkeypatch.setattr(task_breakdown, "urlopen", _offline)
    assert TaskBreakdownClient(api_key="sk-test").generate_next_steps("Write report", ["Outline"]) == []
    assert any("next steps failed" in rec.message for rec in caplog.records)
