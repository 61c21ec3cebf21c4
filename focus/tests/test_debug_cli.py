import json
from argparse import Namespace

from focus_app import debug
from focus_app.core.models import SESSION_COMPLETED
from focus_app.persistence.store_json import JsonFocusStore


def test_debug_config_masks_secrets(monkeypatch, capsys, tmp_path) -> None:
    monkeypatch.setenv("FOCUS_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("FOCUS_AI_API_KEY", "sk-secret-key")
    monkeypatch.delenv("FOCUS_API_TOKEN", raising=False)
    rc = debug._cmd_config(None)
    payload = json.loads(capsys.readouterr().out)
    assert rc == 0
    assert payload["ai_api_key"] == "sk-s***"
    assert payload["api_token"] == ""
    assert payload["data_dir"] == str(tmp_path)


def test_debug_sessions_and_summary_read_local_store(monkeypatch, capsys, tmp_path) -> None:
    monkeypatch.setenv("FOCUS_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("FOCUS_STORE", "json")
    store = JsonFocusStore(tmp_path / "focus_store.json")
    task = store.create_task("Write report", steps=["outline"])
    done = store.create_session(task.id, 1500)
    store.update_session(done.id, status=SESSION_COMPLETED, actual_duration=1500)
    store.create_session(task.id, 1500)

    assert debug._cmd_sessions(Namespace(status="completed", n=10)) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 1 and done.id in lines[0]

    assert debug._cmd_summary(Namespace(today=True)) == 0
    out = capsys.readouterr().out
    assert "focus_seconds=1500" in out
    assert "started=2" in out


def test_debug_settings_defaults(monkeypatch, capsys, tmp_path) -> None:
    monkeypatch.setenv("FOCUS_DATA_DIR", str(tmp_path))
    assert debug._cmd_settings(None) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["default_session_duration"] == 1500
    assert payload["auto_start_breaks"] is True


def test_debug_breakdown_without_key_prints_hints(monkeypatch, capsys, tmp_path) -> None:
    monkeypatch.setenv("FOCUS_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("FOCUS_AI_API_KEY", raising=False)
    assert debug._cmd_breakdown(Namespace(title="Study for exam", description="")) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["steps"] == []
    assert payload["hints"][0] == "Gather your notes for one topic"


def test_debug_cleanup_orphans_dry_run(monkeypatch, capsys, tmp_path) -> None:
    monkeypatch.setenv("FOCUS_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("FOCUS_STORE", "json")
    assert debug._cmd_cleanup_orphans(Namespace(hours=0, dry_run=True)) == 0
    assert capsys.readouterr().out.startswith("dry-run: orphaned_sessions=0")


def test_debug_settings_set_persists_values(monkeypatch, capsys, tmp_path) -> None:
    monkeypatch.setenv("FOCUS_DATA_DIR", str(tmp_path))
    args = Namespace(set=["default_session_duration=900", "auto_start_breaks=false"])
    assert debug._cmd_settings(args) == 0
    capsys.readouterr()

    assert debug._cmd_settings(Namespace(set=None)) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["default_session_duration"] == 900
    assert payload["auto_start_breaks"] is False

    assert debug._cmd_settings(Namespace(set=["volume=3"])) == 2
    assert "expected key=value" in capsys.readouterr().out


def test_debug_tasks_lists_and_deletes(monkeypatch, capsys, tmp_path) -> None:
    monkeypatch.setenv("FOCUS_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("FOCUS_STORE", "json")
    store = JsonFocusStore(tmp_path / "focus_store.json")
    keep = store.create_task("Write report", steps=["outline", "draft"])
    done = store.create_task("Email Sam", steps=["reply"])
    store.update_task(done.id, status="completed")
    session = store.create_session(done.id, 1500)
    store.create_distraction(session.id, "check chat")

    assert debug._cmd_tasks(Namespace(status="unfinished", n=20, delete=None)) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 1 and keep.id in lines[0] and "steps=0/2" in lines[0]

    assert debug._cmd_tasks(Namespace(status=None, n=20, delete=[done.id])) == 0
    assert "deleted=1" in capsys.readouterr().out
    assert [t.id for t in store.list_tasks()] == [keep.id]
    assert store.list_sessions() == []
    assert store.list_distractions(session.id) == []
