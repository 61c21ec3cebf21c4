from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from focus_app.core.models import SESSION_SKIPPED
from focus_app.services.dispatcher import RemoteDispatcher
from focus_app.services.session_controller import SessionController

LOGGER = logging.getLogger(__name__)

INTERRUPTED_NOTE = "Interrupted: window closed"


@dataclass(frozen=True)
class UnloadDecision:
    confirm: bool
    beacon_sent: bool
    elapsed_s: int = 0


class UnloadGuard:
    def __init__(
        self,
        sessions: SessionController,
        dispatcher: RemoteDispatcher,
        wall_now: Callable[[], datetime] | None = None,
    ) -> None:
        self.sessions = sessions
        self.dispatcher = dispatcher
        self._wall_now = wall_now or (lambda: datetime.now(tz=timezone.utc))

    def on_unload(self) -> UnloadDecision:
        """Best-effort interruption beacon; never blocks the close itself."""
        session = self.sessions.session
        if session is None:
            return UnloadDecision(confirm=False, beacon_sent=False)

        timer = self.sessions.timer
        timer.tick()
        if self.sessions.session is None:
            return UnloadDecision(confirm=False, beacon_sent=False)

        confirm = timer.is_active
        elapsed = max(0, session.planned_duration - timer.remaining_s)
        if self.sessions.is_persisted_terminal(session.id):
            return UnloadDecision(confirm=confirm, beacon_sent=False, elapsed_s=elapsed)

        task = self.sessions.task
        self.sessions.mark_persisted_terminal(session.id)
        self.dispatcher.submit(
            "unload_beacon",
            self.sessions.store.update_session,
            session.id,
            status=SESSION_SKIPPED,
            ended_at=self._wall_now().isoformat(),
            actual_duration=elapsed,
            notes=INTERRUPTED_NOTE,
            completed_steps=task.completed_step_count() if task is not None else 0,
        )
        LOGGER.info("unload beacon sent session_id=%s elapsed_s=%s confirm=%s", session.id, elapsed, confirm)
        return UnloadDecision(confirm=confirm, beacon_sent=True, elapsed_s=elapsed)
