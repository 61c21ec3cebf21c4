from __future__ import annotations

import logging
import time
from typing import Callable

from focus_app.core.settings import UserSettings
from focus_app.persistence.state_repository import StateRepository

LOGGER = logging.getLogger(__name__)

STORAGE_VERSION = "1.0"
EXPIRATION_DAYS = 30
MAX_STORED_BYTES = 5120


class SettingsStore:
    """Versioned, expiring user settings on top of a state repository."""

    def __init__(self, repository: StateRepository, wall_now: Callable[[], float] | None = None) -> None:
        self.repository = repository
        self._wall_now = wall_now or time.time
        self._current: UserSettings | None = None

    def load(self) -> UserSettings:
        if self._current is None:
            self._current = self._read()
        return self._current

    def save(self, settings: UserSettings) -> bool:
        # The in-memory copy always changes, even when the write is refused.
        self._current = settings
        now_ms = int(self._wall_now() * 1000)
        envelope = {
            "version": STORAGE_VERSION,
            "timestamp": now_ms,
            "expires_at": now_ms + EXPIRATION_DAYS * 24 * 60 * 60 * 1000,
            "data": settings.to_dict(),
        }
        if self.repository.size_of(envelope) > MAX_STORED_BYTES:
            LOGGER.warning("settings too large, not saving bytes=%s", self.repository.size_of(envelope))
            return False
        try:
            self.repository.save(envelope)
        except OSError as exc:
            LOGGER.error("settings save failed error=%s", exc)
            return False
        return True

    def update(self, **changes) -> UserSettings:
        merged = self.load().to_dict()
        merged.update(changes)
        settings = UserSettings.from_dict(merged)
        self.save(settings)
        return settings

    def reset(self) -> UserSettings:
        settings = UserSettings()
        self.save(settings)
        return settings

    def _read(self) -> UserSettings:
        envelope = self.repository.load()
        if not envelope:
            return UserSettings()

        if envelope.get("version") != STORAGE_VERSION:
            LOGGER.info("settings version mismatch found=%s, using defaults", envelope.get("version"))
            self.repository.clear()
            return UserSettings()

        expires_at = envelope.get("expires_at")
        if isinstance(expires_at, (int, float)) and expires_at < self._wall_now() * 1000:
            LOGGER.info("settings expired, using defaults")
            self.repository.clear()
            return UserSettings()

        data = envelope.get("data")
        if not isinstance(data, dict):
            LOGGER.warning("invalid settings structure, using defaults")
            self.repository.clear()
            return UserSettings()
        return UserSettings.from_dict(data)
