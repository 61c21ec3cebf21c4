from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from focus_app.core.errors import PersistenceError
from focus_app.core.models import SESSION_ACTIVE, SESSION_SKIPPED, Session
from focus_app.persistence.store_base import FocusStore

LOGGER = logging.getLogger(__name__)

ORPHAN_NOTE = "Session automatically cleaned up - likely abandoned due to browser close"
ESTIMATED_WORK_RATIO = 0.4


def _parse(ts: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(ts)
    except (TypeError, ValueError):
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def find_orphaned_sessions(sessions: list[Session], cutoff: datetime) -> list[Session]:
    orphans = []
    for session in sessions:
        if session.status != SESSION_ACTIVE:
            continue
        started = _parse(session.started_at)
        if started is not None and started < cutoff:
            orphans.append(session)
    return orphans


def cleanup_orphaned_sessions(
    store: FocusStore,
    now: datetime | None = None,
    cutoff_hours: int = 2,
    dry_run: bool = False,
) -> list[Session]:
    """Mark sessions left ``active`` past the cutoff as skipped.

    The client never reported an end for these, so credit an estimated share
    of the planned time.
    """
    now = now or datetime.now(tz=timezone.utc)
    cutoff = now - timedelta(hours=max(0, int(cutoff_hours)))
    orphans = find_orphaned_sessions(store.list_sessions(status=SESSION_ACTIVE), cutoff)
    if dry_run:
        return orphans

    cleaned: list[Session] = []
    for session in orphans:
        estimated = int((session.planned_duration or 1500) * ESTIMATED_WORK_RATIO)
        try:
            cleaned.append(
                store.update_session(
                    session.id,
                    status=SESSION_SKIPPED,
                    ended_at=cutoff.isoformat(),
                    actual_duration=estimated,
                    notes=ORPHAN_NOTE,
                )
            )
        except PersistenceError as exc:
            LOGGER.warning("orphan cleanup failed session_id=%s error=%s", session.id, exc)
    if cleaned:
        LOGGER.info("orphaned sessions cleaned count=%s", len(cleaned))
    return cleaned
