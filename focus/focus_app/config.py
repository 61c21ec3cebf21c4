from __future__ import annotations

import os
import platform
from dataclasses import dataclass
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        return int(default)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "yes", "on"}


def _default_data_dir(repo_root: Path) -> Path:
    override = os.getenv("FOCUS_DATA_DIR", "").strip()
    if override:
        return Path(override)

    system = platform.system().lower()
    if system == "windows":
        appdata = os.getenv("APPDATA", "").strip()
        if appdata:
            return Path(appdata) / "focus"
    home = Path.home()
    return home / ".focus"


@dataclass(frozen=True)
class FocusConfig:
    user_id: str
    data_dir: Path
    store: str
    api_base_url: str
    api_token: str
    ai_base_url: str
    ai_api_key: str
    ai_model: str
    ai_timeout_seconds: int
    ai_max_completion_tokens: int
    tick_seconds: int
    dispatch: str
    journal_retention_days: int
    journal_fsync: bool
    orphan_cutoff_hours: int
    log_level: str
    timezone: str = "UTC"

    @property
    def store_path(self) -> Path:
        return self.data_dir / "focus_store.json"

    @property
    def settings_path(self) -> Path:
        return self.data_dir / "settings.json"

    @property
    def journal_dir(self) -> Path:
        return self.data_dir / "journal"

    def masked(self) -> dict[str, str]:
        def _mask(value: str) -> str:
            return f"{value[:4]}***" if value else ""

        return {
            "user_id": self.user_id,
            "data_dir": str(self.data_dir),
            "store": self.store,
            "api_base_url": self.api_base_url,
            "api_token": _mask(self.api_token),
            "ai_base_url": self.ai_base_url,
            "ai_api_key": _mask(self.ai_api_key),
            "ai_model": self.ai_model,
            "ai_timeout_seconds": str(self.ai_timeout_seconds),
            "ai_max_completion_tokens": str(self.ai_max_completion_tokens),
            "tick_seconds": str(self.tick_seconds),
            "dispatch": self.dispatch,
            "journal_retention_days": str(self.journal_retention_days),
            "journal_fsync": str(self.journal_fsync),
            "orphan_cutoff_hours": str(self.orphan_cutoff_hours),
            "log_level": self.log_level,
            "timezone": self.timezone,
        }

    @classmethod
    def from_env(cls, repo_root: Path) -> "FocusConfig":
        data_dir = _default_data_dir(repo_root)
        store = os.getenv("FOCUS_STORE", "json").strip().lower() or "json"
        if store not in {"json", "http"}:
            store = "json"
        dispatch = os.getenv("FOCUS_DISPATCH", "thread").strip().lower() or "thread"
        if dispatch not in {"thread", "inline"}:
            dispatch = "thread"

        return cls(
            user_id=os.getenv("FOCUS_USER_ID", "local").strip() or "local",
            data_dir=data_dir,
            store=store,
            api_base_url=os.getenv("FOCUS_API_BASE_URL", "").strip(),
            api_token=os.getenv("FOCUS_API_TOKEN", "").strip(),
            ai_base_url=os.getenv("FOCUS_AI_BASE_URL", "https://api.openai.com/v1").strip() or "https://api.openai.com/v1",
            ai_api_key=os.getenv("FOCUS_AI_API_KEY", "").strip(),
            ai_model=os.getenv("FOCUS_AI_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini",
            ai_timeout_seconds=max(1, _env_int("FOCUS_AI_TIMEOUT_SECONDS", 30)),
            ai_max_completion_tokens=max(1, _env_int("FOCUS_AI_MAX_COMPLETION_TOKENS", 2000)),
            tick_seconds=max(1, _env_int("FOCUS_TICK_SECONDS", 1)),
            dispatch=dispatch,
            journal_retention_days=max(1, _env_int("FOCUS_JOURNAL_RETENTION_DAYS", 30)),
            journal_fsync=_env_bool("FOCUS_JOURNAL_FSYNC", False),
            orphan_cutoff_hours=max(1, _env_int("FOCUS_ORPHAN_CUTOFF_HOURS", 2)),
            log_level=os.getenv("FOCUS_LOG_LEVEL", "INFO").strip().upper() or "INFO",
            timezone=os.getenv("FOCUS_TIMEZONE", "UTC").strip() or "UTC",
        )
