from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from focus_app.core.models import SESSION_COMPLETED, Session
from focus_app.persistence.store_json import JsonFocusStore
from focus_app.services.streak import active_days, resolve_timezone, summarize_sessions

PACIFIC = timezone(timedelta(hours=-8))


def _session(session_id: str, started_at: str, ended_at: str = "", status: str = SESSION_COMPLETED) -> Session:
    return Session(
        id=session_id,
        task_id="t1",
        planned_duration=1500,
        user_id="u1",
        status=status,
        started_at=started_at,
        ended_at=ended_at or None,
        actual_duration=1500,
    )


def test_active_days_follow_local_calendar() -> None:
    sessions = [_session("a", "2026-03-04T02:30:00+00:00"), _session("b", "2026-03-04T02:30:00")]
    assert active_days(sessions) == {"2026-03-04"}
    assert active_days(sessions, PACIFIC) == {"2026-03-03"}


def test_summary_buckets_evening_sessions_on_local_day() -> None:
    sessions = [
        _session("a", "2026-03-03T20:00:00+00:00"),
        _session("b", "2026-03-04T02:30:00+00:00"),
    ]
    summary = summarize_sessions(sessions, today=date(2026, 3, 3), tz=PACIFIC)
    assert [day["date"] for day in summary["days"]] == ["2026-03-03"]
    assert summary["days"][0]["started_sessions"] == 2
    assert summary["current_streak_days"] == 1


def test_store_streak_rolls_over_at_local_midnight(tmp_path) -> None:
    clock = {"now": datetime(2026, 3, 3, 20, 0, tzinfo=timezone.utc)}
    utc_store = JsonFocusStore(tmp_path / "store.json", user_id="u1", now=lambda: clock["now"])
    local_store = JsonFocusStore(tmp_path / "store.json", user_id="u1", now=lambda: clock["now"], tz=PACIFIC)
    task = utc_store.create_task("Write report", steps=["outline"])
    for started in (datetime(2026, 3, 3, 20, 0, tzinfo=timezone.utc), datetime(2026, 3, 4, 2, 30, tzinfo=timezone.utc)):
        clock["now"] = started
        session = utc_store.create_session(task.id, 1500)
        ended = (started + timedelta(minutes=25)).isoformat()
        utc_store.update_session(session.id, status=SESSION_COMPLETED, ended_at=ended, actual_duration=1500)
    clock["now"] = datetime(2026, 3, 4, 3, 0, tzinfo=timezone.utc)

    assert utc_store.get_current_streak("u1") == 2
    assert local_store.get_current_streak("u1") == 1
    assert local_store.get_todays_stats("u1") == {
        "started_sessions": 2,
        "completed_sessions": 2,
        "total_focus_time": 3000,
    }


def test_unknown_timezone_falls_back_to_utc(caplog) -> None:
    assert resolve_timezone("") is timezone.utc
    assert resolve_timezone("UTC") is timezone.utc
    assert resolve_timezone("Mars/Olympus_Mons") is timezone.utc
    assert any("unknown timezone" in rec.message for rec in caplog.records)
