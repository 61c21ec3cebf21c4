from __future__ import annotations

import argparse
import json
import random
import shutil
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from focus_app.core.errors import PersistenceError
from focus_app.core.models import SESSION_COMPLETED, SESSION_SKIPPED, new_temporary_task
from focus_app.core.settings import BREAK_SHORT, UserSettings
from focus_app.persistence.event_journal import EventJournal
from focus_app.persistence.store_json import JsonFocusStore
from focus_app.services.break_orchestrator import (
    FLOW_BREAK_COMPLETE_PROMPT,
    FLOW_CELEBRATION,
    FLOW_COMPLETION_PROMPT,
    FLOW_IDLE,
    BreakOrchestrator,
)
from focus_app.services.break_timer import BreakTimer
from focus_app.services.countdown_timer import CountdownTimer
from focus_app.services.dispatcher import RemoteDispatcher
from focus_app.services.notifier import Notifier
from focus_app.services.session_controller import SessionController
from focus_app.services.task_sync import TaskStepSync
from focus_app.services.unload_guard import UnloadGuard


class SimClock:
    def __init__(self, mono_start: float = 1000.0, wall_start: datetime | None = None) -> None:
        self.mono = mono_start
        self.wall = wall_start or datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    def monotonic(self) -> float:
        return self.mono

    def wall_time(self) -> datetime:
        return self.wall

    def advance(self, seconds: float) -> None:
        self.mono += float(seconds)
        self.wall += timedelta(seconds=seconds)


class _AuditedStore(JsonFocusStore):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.terminal_rewrites = 0

    def update_session(self, session_id: str, **changes):
        try:
            return super().update_session(session_id, **changes)
        except PersistenceError:
            self.terminal_rewrites += 1
            raise


@dataclass
class Metrics:
    sessions_started: int = 0
    sessions_completed: int = 0
    sessions_stopped: int = 0
    sessions_unloaded: int = 0
    auto_completions: int = 0
    pauses: int = 0
    resumes: int = 0
    breaks_taken: int = 0
    time_jumps: int = 0
    duplicate_completions: int = 0
    drift_violations: int = 0
    accounting_violations: int = 0
    samples: list[str] = field(default_factory=list)


@dataclass
class Rig:
    timer: CountdownTimer
    sessions: SessionController
    orchestrator: BreakOrchestrator
    guard: UnloadGuard


def _build_rig(store: _AuditedStore, clock: SimClock, journal: EventJournal, settings: UserSettings) -> Rig:
    dispatcher = RemoteDispatcher(threaded=False)
    notifier = Notifier(journal=journal, source="stress_timer")
    timer = CountdownTimer(duration_s=settings.default_session_duration, monotonic_now=clock.monotonic)
    sessions = SessionController(
        store=store,
        timer=timer,
        dispatcher=dispatcher,
        notifier=notifier,
        settings_provider=lambda: settings,
        wall_now=clock.wall_time,
    )
    task_sync = TaskStepSync(store, dispatcher, on_changed=sessions.on_steps_changed)
    orchestrator = BreakOrchestrator(
        sessions=sessions,
        break_timer=BreakTimer(),
        task_sync=task_sync,
        notifier=notifier,
        settings_provider=lambda: settings,
    )
    return Rig(timer=timer, sessions=sessions, orchestrator=orchestrator, guard=UnloadGuard(sessions, dispatcher, clock.wall_time))


def run_stress_timer(args: argparse.Namespace) -> int:
    rng = random.Random(args.seed)

    workdir = Path(args.workdir).resolve()
    if args.clean and workdir.exists():
        shutil.rmtree(workdir)
    workdir.mkdir(parents=True, exist_ok=True)
    (workdir / "logs").mkdir(parents=True, exist_ok=True)

    if args.mode == "fast":
        focus_s = int(args.focus_seconds or 20)
        break_s = int(args.break_seconds or 6)
        runtime_s = int((args.minutes or 3.0) * 60)
    else:
        focus_s = int(args.focus_seconds or 25 * 60)
        break_s = int(args.break_seconds or 5 * 60)
        runtime_s = int((args.hours or 1.0) * 3600)
    step_s = max(1, int(args.step_seconds))
    total_steps = max(1, runtime_s // step_s)

    settings = UserSettings(
        default_session_duration=focus_s,
        break_duration=break_s,
        long_break_duration=break_s * 3,
        auto_start_breaks=bool(args.auto_breaks),
    )
    clock = SimClock()
    store = _AuditedStore(workdir / "focus_store.json", user_id="stress", now=clock.wall_time)
    journal = EventJournal(workdir / "journal", retention_days=30, fsync_writes=False)
    metrics = Metrics()
    completed_ids: set[str] = set()

    def build() -> Rig:
        rig = _build_rig(store, clock, journal, settings)
        forward = rig.sessions.on_session_complete

        def _count(summary) -> None:
            if summary.session_id in completed_ids:
                metrics.duplicate_completions += 1
            completed_ids.add(summary.session_id)
            metrics.sessions_completed += 1
            if forward is not None:
                forward(summary)

        rig.sessions.on_session_complete = _count
        return rig

    rig = build()
    expected_elapsed = 0
    t0 = time.monotonic()

    for step in range(1, total_steps + 1):
        sessions, timer, orchestrator = rig.sessions, rig.timer, rig.orchestrator

        if sessions.active:
            if timer.is_active:
                roll = rng.random()
                if roll < args.pause_rate:
                    sessions.pause()
                    metrics.pauses += 1
                elif roll < args.pause_rate + args.stop_rate:
                    sessions.confirm_stop(rng.choice(["got distracted", ""]))
                    metrics.sessions_stopped += 1
                elif roll < args.pause_rate + args.stop_rate + args.finish_rate:
                    task = sessions.task
                    for item in task.steps if task is not None else []:
                        if not item.done:
                            orchestrator.task_sync.toggle_step(task, item.id)
                    metrics.auto_completions += 1
                elif roll < args.pause_rate + args.stop_rate + args.finish_rate + args.unload_rate:
                    rig.guard.on_unload()
                    metrics.sessions_unloaded += 1
                    rig = build()
                    expected_elapsed = 0
                    continue
                elif rng.random() < args.time_jump_rate:
                    clock.advance(args.time_jump_seconds)
                    expected_elapsed += args.time_jump_seconds
                    metrics.time_jumps += 1
            elif timer.is_paused and rng.random() < args.resume_rate:
                sessions.resume()
                metrics.resumes += 1
        elif orchestrator.phase == FLOW_IDLE and rng.random() < 0.45:
            task = new_temporary_task(f"stress task {step}", steps=["first", "second", "third"])
            sessions.start(task)
            metrics.sessions_started += 1
            expected_elapsed = 0
        elif orchestrator.phase == FLOW_COMPLETION_PROMPT:
            if rng.random() < 0.5:
                orchestrator.take_break(BREAK_SHORT)
                metrics.breaks_taken += 1
            else:
                orchestrator.continue_task()
                metrics.sessions_started += 1
                expected_elapsed = 0
        elif orchestrator.phase == FLOW_CELEBRATION:
            orchestrator.dismiss_completion()
        elif orchestrator.phase == FLOW_BREAK_COMPLETE_PROMPT:
            if orchestrator.resume_task is not None and rng.random() < 0.6:
                orchestrator.resume_after_break()
                metrics.sessions_started += 1
                expected_elapsed = 0
            else:
                orchestrator.decline_resume()

        was_active = sessions.active and timer.is_active
        clock.advance(step_s)
        if was_active:
            expected_elapsed += step_s
        session_id = sessions.session.id if sessions.session is not None else ""
        sessions.tick()
        orchestrator.tick()

        if sessions.active and sessions.session is not None and sessions.session.id == session_id:
            observed = timer.total_duration_s - timer.remaining_s
            if observed != min(timer.total_duration_s, expected_elapsed):
                metrics.drift_violations += 1
                if len(metrics.samples) < 8:
                    metrics.samples.append(f"step={step} observed={observed} expected={expected_elapsed}")

        if args.sleep_per_step > 0:
            time.sleep(args.sleep_per_step)

    for session in store.list_sessions():
        if session.status == SESSION_COMPLETED and session.actual_duration != session.planned_duration:
            metrics.accounting_violations += 1
        if session.status == SESSION_SKIPPED and not (0 <= int(session.actual_duration or 0) <= session.planned_duration):
            metrics.accounting_violations += 1

    fail_reasons: list[str] = []
    if metrics.duplicate_completions:
        fail_reasons.append("session completed more than once")
    if metrics.drift_violations:
        fail_reasons.append("remaining time drifted from non-paused elapsed time")
    if store.terminal_rewrites:
        fail_reasons.append("terminal session was written again")
    if metrics.accounting_violations:
        fail_reasons.append("stored durations inconsistent with status")

    status = "PASS" if not fail_reasons else "FAIL"
    summary = {
        "status": status,
        "mode": args.mode,
        "seed": args.seed,
        "runtime_simulated_seconds": runtime_s,
        "runtime_wall_seconds": round(time.monotonic() - t0, 3),
        "config": {"focus_seconds": focus_s, "break_seconds": break_s, "step_seconds": step_s},
        "metrics": {
            "sessions_started": metrics.sessions_started,
            "sessions_completed": metrics.sessions_completed,
            "sessions_stopped": metrics.sessions_stopped,
            "sessions_unloaded": metrics.sessions_unloaded,
            "auto_completions": metrics.auto_completions,
            "pauses": metrics.pauses,
            "resumes": metrics.resumes,
            "breaks_taken": metrics.breaks_taken,
            "time_jumps": metrics.time_jumps,
            "drift_violations": metrics.drift_violations,
            "terminal_rewrites": store.terminal_rewrites,
        },
        "fail_reasons": fail_reasons,
        "samples": metrics.samples,
        "workdir": str(workdir),
    }

    stamp = datetime.now(tz=timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    out_path = workdir / "logs" / f"stress_timer_{stamp}.json"
    out_path.write_text(json.dumps(summary, ensure_ascii=False, indent=2), encoding="utf-8")

    print(json.dumps(summary, ensure_ascii=False, indent=2))
    print(f"log_saved={out_path}")
    return 0 if status == "PASS" else 2


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Focus timer/session black-box stress harness")
    parser.add_argument("--mode", choices=["fast", "soak"], default="fast")
    parser.add_argument("--minutes", type=float, default=3.0, help="fast mode simulated minutes")
    parser.add_argument("--hours", type=float, default=1.0, help="soak mode simulated hours")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--workdir", default=".stress_timer")
    parser.add_argument("--clean", action="store_true")

    parser.add_argument("--focus-seconds", type=int, default=0)
    parser.add_argument("--break-seconds", type=int, default=0)
    parser.add_argument("--step-seconds", type=int, default=1)
    parser.add_argument("--sleep-per-step", type=float, default=0.0)
    parser.add_argument("--auto-breaks", action="store_true")

    parser.add_argument("--pause-rate", type=float, default=0.03)
    parser.add_argument("--resume-rate", type=float, default=0.25)
    parser.add_argument("--stop-rate", type=float, default=0.01)
    parser.add_argument("--finish-rate", type=float, default=0.01)
    parser.add_argument("--unload-rate", type=float, default=0.005)
    parser.add_argument("--time-jump-rate", type=float, default=0.02)
    parser.add_argument("--time-jump-seconds", type=int, default=5)
    return parser.parse_args()


if __name__ == "__main__":
    raise SystemExit(run_stress_timer(parse_args()))
