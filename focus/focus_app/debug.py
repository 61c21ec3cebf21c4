from __future__ import annotations

import argparse
import json
from datetime import datetime, timezone
from pathlib import Path

from focus_app.config import FocusConfig
from focus_app.core.models import TASK_COMPLETED
from focus_app.core.settings import SETTING_NAMES
from focus_app.persistence.event_journal import EventJournal
from focus_app.persistence.settings_store import SettingsStore
from focus_app.persistence.state_repository import JsonStateRepository
from focus_app.persistence.store_base import FocusStore
from focus_app.persistence.store_http import HttpFocusStore
from focus_app.persistence.store_json import JsonFocusStore
from focus_app.services.orphan_cleanup import cleanup_orphaned_sessions
from focus_app.services.streak import local_date, resolve_timezone, summarize_sessions
from focus_app.services.task_breakdown import TaskBreakdownClient, fallback_steps


def _default_repo_root() -> Path:
    return Path(__file__).resolve().parent.parent


def _config() -> FocusConfig:
    return FocusConfig.from_env(_default_repo_root())


def _store(cfg: FocusConfig) -> FocusStore:
    if cfg.store == "http" and cfg.api_base_url:
        return HttpFocusStore(cfg.api_base_url, token=cfg.api_token)
    return JsonFocusStore(cfg.store_path, user_id=cfg.user_id, tz=resolve_timezone(cfg.timezone))


def _cmd_last_events(args: argparse.Namespace) -> int:
    journal = EventJournal(_config().journal_dir)
    events = journal.load_all()
    for event in events[-args.n :]:
        print(f"{event.timestamp} | {event.event_type:16s} | {event.source:10s} | {event.event_id}")
    return 0


def _cmd_summary(args: argparse.Namespace) -> int:
    cfg = _config()
    tz = resolve_timezone(cfg.timezone)
    summary = summarize_sessions(_store(cfg).list_sessions(), tz=tz)

    if args.today:
        today = local_date(datetime.now(tz=timezone.utc), tz).isoformat()
        day = next((d for d in summary.get("days", []) if d.get("date") == today), None)
        if day is None:
            print(f"{today}: no sessions")
            return 0
        print(
            f"{today}: focus_seconds={day.get('focus_seconds', 0)} "
            f"started={day.get('started_sessions', 0)} completed={day.get('completed_sessions', 0)} "
            f"skipped={day.get('skipped_sessions', 0)}"
        )
        return 0

    print(f"generated_at={summary.get('generated_at', '')}")
    print(f"current_streak_days={summary.get('current_streak_days', 0)}")
    for day in summary.get("days", []):
        print(
            f"{day.get('date')} focus_seconds={day.get('focus_seconds', 0)} "
            f"started={day.get('started_sessions', 0)} completed={day.get('completed_sessions', 0)}"
        )
    return 0


def _cmd_sessions(args: argparse.Namespace) -> int:
    sessions = _store(_config()).list_sessions(status=getattr(args, "status", None))
    for session in sessions[: max(1, int(getattr(args, "n", 20)))]:
        actual = "-" if session.actual_duration is None else session.actual_duration
        print(
            f"{session.started_at} | {session.status:9s} | planned={session.planned_duration} "
            f"actual={actual} | {session.id}"
        )
    return 0


def _cmd_cleanup_orphans(args: argparse.Namespace) -> int:
    cfg = _config()
    hours = int(getattr(args, "hours", 0) or cfg.orphan_cutoff_hours)
    dry_run = bool(getattr(args, "dry_run", False))
    sessions = cleanup_orphaned_sessions(_store(cfg), cutoff_hours=hours, dry_run=dry_run)
    mode = "dry-run" if dry_run else "apply"
    print(f"{mode}: orphaned_sessions={len(sessions)}")
    for session in sessions:
        print(f"  {session.id} started_at={session.started_at} planned={session.planned_duration}")
    return 0


def _cmd_breakdown(args: argparse.Namespace) -> int:
    cfg = _config()
    client = TaskBreakdownClient(
        base_url=cfg.ai_base_url,
        api_key=cfg.ai_api_key,
        model=cfg.ai_model,
        timeout=cfg.ai_timeout_seconds,
        max_completion_tokens=cfg.ai_max_completion_tokens,
    )
    steps = client.breakdown(args.title, getattr(args, "description", "") or "")
    payload = {"title": args.title, "steps": steps, "hints": [] if steps else fallback_steps(args.title)}
    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def _cmd_config(_args: argparse.Namespace) -> int:
    print(json.dumps(_config().masked(), ensure_ascii=False, indent=2))
    return 0


def _cmd_tasks(args: argparse.Namespace) -> int:
    store = _store(_config())
    doomed = list(getattr(args, "delete", None) or [])
    if doomed:
        deleted = store.delete_tasks(doomed)
        print(f"deleted={deleted} requested={len(doomed)}")
        return 0 if deleted == len(doomed) else 1

    status = getattr(args, "status", None)
    tasks = store.list_tasks()
    if status == "unfinished":
        tasks = [task for task in tasks if task.status != TASK_COMPLETED]
    elif status:
        tasks = [task for task in tasks if task.status == status]
    for task in tasks[: max(1, int(getattr(args, "n", 20)))]:
        print(
            f"{task.updated_at} | {task.status:11s} | steps={task.completed_step_count()}/{len(task.steps)} "
            f"time={task.total_time_spent} | {task.id} | {task.title}"
        )
    return 0


def _parse_assignments(pairs: list[str]) -> dict[str, str]:
    changes: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or key not in SETTING_NAMES:
            raise ValueError(f"expected key=value with key in {', '.join(SETTING_NAMES)}, got {pair!r}")
        changes[key] = value.strip()
    return changes


def _cmd_settings(args: argparse.Namespace) -> int:
    store = SettingsStore(JsonStateRepository(_config().settings_path))
    pairs = list(getattr(args, "set", None) or [])
    if pairs:
        try:
            changes = _parse_assignments(pairs)
        except ValueError as exc:
            print(f"error: {exc}")
            return 2
        settings = store.update(**changes)
    else:
        settings = store.load()
    print(json.dumps(settings.to_dict(), ensure_ascii=False, indent=2))
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(prog="python -m focus_app.debug")
    subparsers = parser.add_subparsers(dest="cmd", required=True)

    p_last = subparsers.add_parser("last-events", help="Show recent activity events")
    p_last.add_argument("--n", type=int, default=20)
    p_last.set_defaults(func=_cmd_last_events)

    p_summary = subparsers.add_parser("summary", help="Show per-day session summary and streak")
    p_summary.add_argument("--today", action="store_true")
    p_summary.set_defaults(func=_cmd_summary)

    p_sessions = subparsers.add_parser("sessions", help="List stored sessions, newest first")
    p_sessions.add_argument("--status", choices=["active", "completed", "skipped", "paused"], default=None)
    p_sessions.add_argument("--n", type=int, default=20)
    p_sessions.set_defaults(func=_cmd_sessions)

    p_cleanup = subparsers.add_parser("cleanup-orphans", help="Mark abandoned active sessions as skipped")
    p_cleanup.add_argument("--hours", type=int, default=0, help="cutoff age (0 = configured default)")
    p_cleanup.add_argument("--dry-run", action="store_true")
    p_cleanup.set_defaults(func=_cmd_cleanup_orphans)

    p_breakdown = subparsers.add_parser("breakdown", help="Ask the AI for task steps")
    p_breakdown.add_argument("title")
    p_breakdown.add_argument("--description", default="")
    p_breakdown.set_defaults(func=_cmd_breakdown)

    p_config = subparsers.add_parser("config", help="Show effective config (secrets masked)")
    p_config.set_defaults(func=_cmd_config)

    p_tasks = subparsers.add_parser("tasks", help="List stored tasks or delete them")
    p_tasks.add_argument(
        "--status", choices=["unfinished", "pending", "in_progress", "paused", "completed"], default=None
    )
    p_tasks.add_argument("--n", type=int, default=20)
    p_tasks.add_argument("--delete", nargs="+", metavar="TASK_ID", default=None)
    p_tasks.set_defaults(func=_cmd_tasks)

    p_settings = subparsers.add_parser("settings", help="Show or change stored user settings")
    p_settings.add_argument("--set", action="append", metavar="KEY=VALUE", default=None)
    p_settings.set_defaults(func=_cmd_settings)

    args = parser.parse_args()
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
