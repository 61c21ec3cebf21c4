from __future__ import annotations

import threading

from focus_app.services.dispatcher import RemoteDispatcher


def test_inline_dispatch_runs_and_delivers_immediately() -> None:
    dispatcher = RemoteDispatcher(threaded=False)
    results: list[int] = []
    dispatcher.submit("add", lambda a, b: a + b, 2, 3, on_success=results.append)
    assert results == [5]
    assert dispatcher.pending == 0
    assert dispatcher.close() is True


def test_threaded_dispatch_delivers_on_drain_only() -> None:
    dispatcher = RemoteDispatcher(threaded=True)
    caller_threads: list[str] = []
    results: list[str] = []

    def _work(value: str) -> str:
        caller_threads.append(threading.current_thread().name)
        return value.upper()

    dispatcher.submit("upper", _work, "ok", on_success=results.append)
    assert dispatcher.wait_idle(2.0) is True
    assert results == []

    assert dispatcher.drain() == 1
    assert results == ["OK"]
    assert caller_threads == ["focus-dispatch"]
    assert dispatcher.close(timeout=1.0) is True


def test_failure_reaches_error_callback_and_is_logged(caplog) -> None:
    dispatcher = RemoteDispatcher(threaded=False)
    errors: list[Exception] = []

    def _fail() -> None:
        raise RuntimeError("backend down")

    dispatcher.submit("save", _fail, on_error=errors.append)

    assert len(errors) == 1 and str(errors[0]) == "backend down"
    assert any("remote call failed label=save" in rec.message for rec in caplog.records)


def test_callback_exception_does_not_escape(caplog) -> None:
    dispatcher = RemoteDispatcher(threaded=False)

    def _bad_callback(_value) -> None:
        raise ValueError("ui gone")

    dispatcher.submit("noop", lambda: None, on_success=_bad_callback)
    assert any("dispatch callback failed" in rec.message for rec in caplog.records)


def test_close_reports_unfinished_work() -> None:
    dispatcher = RemoteDispatcher(threaded=True)
    release = threading.Event()
    dispatcher.submit("slow", release.wait, 5.0)

    assert dispatcher.close(timeout=0.05) is False
    release.set()
