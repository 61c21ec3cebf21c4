from __future__ import annotations

import logging
from typing import Callable

from focus_app.core.events import (
    FocusEvent,
    break_complete_event,
    break_start_event,
    distraction_event,
    session_complete_event,
    session_start_event,
    session_stop_event,
)
from focus_app.core.settings import UserSettings
from focus_app.persistence.event_journal import EventJournal

LOGGER = logging.getLogger(__name__)


class Notifier:
    """Cosmetic announcements: journal every event, optionally ping a desktop sink."""

    def __init__(
        self,
        journal: EventJournal | None = None,
        sink: Callable[[str, str], None] | None = None,
        settings_provider: Callable[[], UserSettings] | None = None,
        source: str = "focus_app",
    ) -> None:
        self.journal = journal
        self.sink = sink
        self.settings_provider = settings_provider or UserSettings
        self.source = source

    def _emit(self, event: FocusEvent, title: str | None = None, body: str = "") -> None:
        try:
            if self.journal is not None:
                self.journal.append(event)
        except Exception as exc:
            LOGGER.warning("journal append failed event_type=%s error=%s", event.event_type, exc)

        if title is None or self.sink is None:
            return
        try:
            if not self.settings_provider().notifications_enabled:
                return
            self.sink(title, body)
        except Exception as exc:
            LOGGER.warning("notification failed title=%s error=%s", title, exc)

    def session_started(self, session_id: str, task_title: str, duration_s: int) -> None:
        self._emit(
            session_start_event(session_id, task_title, duration_s, source=self.source),
            title="Focus session started",
            body=f"{task_title} ({duration_s // 60} min)",
        )

    def session_completed(
        self,
        session_id: str,
        task_title: str,
        duration_s: int,
        completed_steps: int,
        total_steps: int,
    ) -> None:
        self._emit(
            session_complete_event(session_id, task_title, duration_s, completed_steps, total_steps, source=self.source),
            title="Focus session complete",
            body=f"{task_title}: {completed_steps}/{total_steps} steps done",
        )

    def session_stopped(self, session_id: str, actual_s: int, notes: str) -> None:
        self._emit(session_stop_event(session_id, actual_s, notes, source=self.source))

    def break_started(self, break_type: str, duration_s: int) -> None:
        self._emit(
            break_start_event(break_type, duration_s, source=self.source),
            title="Break time",
            body=f"{break_type.capitalize()} break for {max(1, duration_s // 60)} min",
        )

    def break_completed(self, break_type: str, duration_s: int, ended_early: bool) -> None:
        self._emit(
            break_complete_event(break_type, duration_s, ended_early, source=self.source),
            title="Break over",
            body="Ready to get back to it?",
        )

    def distraction_captured(self, session_id: str, content: str) -> None:
        self._emit(distraction_event(session_id, content, source=self.source))
