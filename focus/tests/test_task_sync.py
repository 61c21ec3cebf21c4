from __future__ import annotations

from focus_app.core.errors import PersistenceError
from focus_app.core.models import Task, is_temp_id, new_temporary_task
from focus_app.core.validation import MAX_STEPS
from focus_app.persistence.store_json import JsonFocusStore
from focus_app.services.dispatcher import RemoteDispatcher
from focus_app.services.task_sync import TaskStepSync


def _sync(tmp_path) -> tuple[JsonFocusStore, TaskStepSync, list[Task]]:
    store = JsonFocusStore(tmp_path / "store.json", user_id="u1")
    changed: list[Task] = []
    return store, TaskStepSync(store, RemoteDispatcher(threaded=False), on_changed=changed.append), changed


def test_toggle_updates_local_then_remote(tmp_path) -> None:
    store, sync, changed = _sync(tmp_path)
    task = store.create_task("Write report", steps=["outline", "draft"])
    step = sync.toggle_step(task, task.steps[0].id)

    assert step.done is True
    assert changed == [task]
    assert store.get_task(task.id).steps[0].done is True
    assert sync.toggle_step(task, "missing") is None


def test_added_step_adopts_persisted_id(tmp_path) -> None:
    store, sync, _changed = _sync(tmp_path)
    task = store.create_task("Write report", steps=["outline"])
    step = sync.add_step(task, "  review  ")

    assert step.content == "review"
    assert step.order_index == 1
    assert not is_temp_id(step.id)
    assert [s.id for s in store.get_task(task.id).steps] == [s.id for s in task.steps]


def test_edit_and_delete_reach_store(tmp_path) -> None:
    store, sync, _changed = _sync(tmp_path)
    task = store.create_task("Write report", steps=["outline", "draft"])
    first, second = task.steps

    sync.edit_step(task, first.id, "detailed outline")
    assert sync.delete_step(task, second.id) is True
    assert sync.delete_step(task, second.id) is False

    assert [s.content for s in store.get_task(task.id).steps] == ["detailed outline"]


def test_temporary_task_stays_local(tmp_path) -> None:
    store, sync, _changed = _sync(tmp_path)
    task = new_temporary_task("Write report", steps=["outline"])
    sync.toggle_step(task, task.steps[0].id)
    sync.add_step(task, "draft")

    assert task.completed_step_count() == 1
    assert len(task.steps) == 2
    assert store.list_tasks() == []
    assert sync.last_error == ""


def test_invalid_or_excess_steps_are_rejected(tmp_path) -> None:
    _store, sync, changed = _sync(tmp_path)
    task = new_temporary_task("Write report", steps=[f"s{i}" for i in range(MAX_STEPS)])

    assert sync.add_step(task, "one more") is None
    assert sync.last_error == f"Too many steps (max {MAX_STEPS})"
    assert sync.add_step(task, "   ") is None
    assert sync.last_error == "Step content is required"
    assert changed == []


def test_remote_failure_keeps_local_change(tmp_path, monkeypatch) -> None:
    store, sync, _changed = _sync(tmp_path)
    task = store.create_task("Write report", steps=["outline"])

    def _boom(*_args, **_kwargs):
        raise PersistenceError("backend down")

    monkeypatch.setattr(store, "toggle_step", _boom)
    step = sync.toggle_step(task, task.steps[0].id)

    assert step.done is True
    assert sync.last_error == "Failed to update step"


def test_reset_progress_clears_done_steps_everywhere(tmp_path) -> None:
    store, sync, _changed = _sync(tmp_path)
    task = store.create_task("Write report", steps=["a", "b", "c"])
    sync.toggle_step(task, task.steps[0].id)
    sync.toggle_step(task, task.steps[2].id)

    assert sync.reset_progress(task) == 2
    assert task.completed_step_count() == 0
    assert all(not s.done for s in store.get_task(task.id).steps)


def _settle(dispatcher: RemoteDispatcher) -> None:
    for _ in range(3):
        assert dispatcher.wait_idle(5.0)
        dispatcher.drain()


def test_toggle_before_step_is_stored_reaches_store(tmp_path) -> None:
    store = JsonFocusStore(tmp_path / "store.json", user_id="u1")
    dispatcher = RemoteDispatcher(threaded=True)
    sync = TaskStepSync(store, dispatcher)
    task = store.create_task("Write report", steps=["outline"])
    try:
        step = sync.add_step(task, "new step")
        assert is_temp_id(step.id)
        sync.toggle_step(task, step.id)
        sync.edit_step(task, step.id, "renamed step")
        _settle(dispatcher)
    finally:
        dispatcher.close()

    assert not is_temp_id(step.id)
    stored = [(s.content, s.done) for s in store.get_task(task.id).ordered_steps()]
    assert stored == [("outline", False), ("renamed step", True)]
    assert sync.last_error == ""


def test_delete_before_step_is_stored_reaches_store(tmp_path) -> None:
    store = JsonFocusStore(tmp_path / "store.json", user_id="u1")
    dispatcher = RemoteDispatcher(threaded=True)
    sync = TaskStepSync(store, dispatcher)
    task = store.create_task("Write report", steps=["outline"])
    try:
        step = sync.add_step(task, "new step")
        assert sync.delete_step(task, step.id) is True
        _settle(dispatcher)
    finally:
        dispatcher.close()

    assert [s.content for s in task.steps] == ["outline"]
    assert [s.content for s in store.get_task(task.id).steps] == ["outline"]
