from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from focus_app.core.models import SESSION_COMPLETED, Session

LOGGER = logging.getLogger(__name__)


def resolve_timezone(name: str | None) -> tzinfo:
    """IANA zone name to tzinfo; empty or unknown names fall back to UTC."""
    name = (name or "").strip()
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        LOGGER.warning("unknown timezone name=%s error=%s, using UTC", name, exc)
        return timezone.utc


def _safe_date(ts: str | None, tz: tzinfo | None = None) -> str | None:
    if not ts:
        return None
    try:
        moment = datetime.fromisoformat(ts)
    except ValueError:
        return None
    if tz is not None:
        # Naive stamps are written in UTC.
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        moment = moment.astimezone(tz)
    return moment.date().isoformat()


def local_date(moment: datetime, tz: tzinfo | None = None) -> date:
    if tz is None:
        return moment.date()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).date()


def _today(tz: tzinfo | None = None) -> date:
    return datetime.now(tz=tz or timezone.utc).date()


def active_days(sessions: list[Session], tz: tzinfo | None = None) -> set[str]:
    return {day for day in (_safe_date(session.started_at, tz) for session in sessions) if day}


def current_streak(days: set[str], today: date | None = None) -> int:
    """Consecutive active days ending today; a day without a session today breaks it."""
    day = today or _today()
    streak = 0
    while day.isoformat() in days:
        streak += 1
        day -= timedelta(days=1)
    return streak


def todays_stats(sessions: list[Session], today: date | None = None, tz: tzinfo | None = None) -> dict:
    key = (today or _today(tz)).isoformat()
    started = [s for s in sessions if _safe_date(s.started_at, tz) == key]
    ended = [s for s in sessions if _safe_date(s.ended_at, tz) == key]
    return {
        "started_sessions": len(started),
        "completed_sessions": sum(1 for s in ended if s.status == SESSION_COMPLETED),
        "total_focus_time": sum(int(s.actual_duration or 0) for s in ended),
    }


def summarize_sessions(sessions: list[Session], today: date | None = None, tz: tzinfo | None = None) -> dict:
    by_day: dict[str, dict] = defaultdict(
        lambda: {
            "started_sessions": 0,
            "completed_sessions": 0,
            "skipped_sessions": 0,
            "focus_seconds": 0,
        }
    )

    for session in sessions:
        day = _safe_date(session.started_at, tz)
        if day is None:
            continue
        bucket = by_day[day]
        bucket["started_sessions"] += 1
        if session.status == SESSION_COMPLETED:
            bucket["completed_sessions"] += 1
        elif session.is_terminal:
            bucket["skipped_sessions"] += 1
        bucket["focus_seconds"] += max(0, int(session.actual_duration or 0))

    days = [{"date": key, **by_day[key]} for key in sorted(by_day.keys())]
    return {
        "generated_at": datetime.now(tz=timezone.utc).isoformat(),
        "days": days,
        "current_streak_days": current_streak(set(by_day.keys()), today=today or _today(tz)),
    }
