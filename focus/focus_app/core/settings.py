from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any


BREAK_SHORT = "short"
BREAK_LONG = "long"


@dataclass(frozen=True)
class UserSettings:
    default_session_duration: int = 1500
    break_duration: int = 300
    long_break_duration: int = 900
    auto_start_breaks: bool = True
    notifications_enabled: bool = False
    sound_enabled: bool = True
    theme: str = "system"

    def break_seconds(self, break_type: str) -> int:
        if break_type == BREAK_LONG:
            return max(1, int(self.long_break_duration or 900))
        return max(1, int(self.break_duration or 300))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "UserSettings":
        """Merge stored values over defaults; unknown or mistyped keys are ignored."""
        if not isinstance(data, dict):
            return cls()
        defaults = cls()
        merged: dict[str, Any] = {}
        for item in fields(cls):
            default_value = getattr(defaults, item.name)
            raw = data.get(item.name, default_value)
            merged[item.name] = _coerce(raw, default_value)
        return cls(**merged)


def _coerce(raw: Any, default: Any) -> Any:
    if isinstance(default, bool):
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, str):
            return raw.strip().lower() in {"1", "true", "yes", "on"}
        return default
    if isinstance(default, int):
        try:
            value = int(raw)
        except (TypeError, ValueError):
            return default
        return value if value > 0 else default
    if isinstance(default, str):
        return str(raw) if raw is not None else default
    return raw


SETTING_NAMES = tuple(item.name for item in fields(UserSettings))
