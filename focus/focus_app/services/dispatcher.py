from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

LOGGER = logging.getLogger(__name__)


@dataclass
class _Job:
    label: str
    fn: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    on_success: Callable[[Any], None] | None = None
    on_error: Callable[[Exception], None] | None = None


class RemoteDispatcher:
    """Fire-and-forget execution of collaborator calls.

    Calls run on a daemon worker thread; their outcomes are queued and handed
    back on the host thread by ``drain()`` so callbacks never race UI state.
    With ``threaded=False`` calls run inline and callbacks fire immediately.
    """

    def __init__(self, threaded: bool = True) -> None:
        self.threaded = threaded
        self._jobs: queue.Queue[_Job | None] = queue.Queue()
        self._results: queue.Queue[tuple[_Job, Any, Exception | None]] = queue.Queue()
        self._pending = 0
        self._pending_lock = threading.Lock()
        self._idle = threading.Condition(self._pending_lock)
        self._worker: threading.Thread | None = None
        if self.threaded:
            self._worker = threading.Thread(target=self._worker_loop, name="focus-dispatch", daemon=True)
            self._worker.start()

    @property
    def pending(self) -> int:
        with self._pending_lock:
            return self._pending

    def submit(
        self,
        label: str,
        fn: Callable[..., Any],
        *args: Any,
        on_success: Callable[[Any], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
        **kwargs: Any,
    ) -> None:
        job = _Job(label=label, fn=fn, args=args, kwargs=kwargs, on_success=on_success, on_error=on_error)
        if not self.threaded:
            result, error = self._run(job)
            self._deliver(job, result, error)
            return
        with self._pending_lock:
            self._pending += 1
        self._jobs.put(job)

    def _run(self, job: _Job) -> tuple[Any, Exception | None]:
        try:
            return job.fn(*job.args, **job.kwargs), None
        except Exception as exc:
            LOGGER.warning("remote call failed label=%s error=%s", job.label, exc)
            return None, exc

    def _worker_loop(self) -> None:
        while True:
            job = self._jobs.get()
            if job is None:
                return
            result, error = self._run(job)
            self._results.put((job, result, error))
            with self._idle:
                self._pending -= 1
                self._idle.notify_all()

    def drain(self) -> int:
        delivered = 0
        while True:
            try:
                job, result, error = self._results.get_nowait()
            except queue.Empty:
                break
            self._deliver(job, result, error)
            delivered += 1
        return delivered

    def _deliver(self, job: _Job, result: Any, error: Exception | None) -> None:
        callback_name = "on_error" if error is not None else "on_success"
        callback = job.on_error if error is not None else job.on_success
        if callback is None:
            return
        try:
            callback(error if error is not None else result)
        except Exception as exc:
            LOGGER.error("dispatch callback failed label=%s callback=%s error=%s", job.label, callback_name, exc)

    def wait_idle(self, timeout: float) -> bool:
        deadline = time.monotonic() + max(0.0, timeout)
        with self._idle:
            while self._pending > 0:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._idle.wait(remaining)
        return True

    def close(self, timeout: float = 2.0) -> bool:
        if not self.threaded or self._worker is None:
            return True
        finished = self.wait_idle(timeout)
        self._jobs.put(None)
        if not finished:
            LOGGER.warning("dispatcher closed with pending calls pending=%s", self.pending)
        return finished
