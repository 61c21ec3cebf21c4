from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any


MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000
MAX_STEP_LENGTH = 500
MAX_STEPS = 20
MAX_DISTRACTION_LENGTH = 500

_CONTROL_CHARS = re.compile(r"[\x00-\x1F\x7F]")

_SUSPICIOUS_PATTERNS = [
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"SELECT.*FROM", re.IGNORECASE),
    re.compile(r"DROP.*TABLE", re.IGNORECASE),
    re.compile(r"INSERT.*INTO", re.IGNORECASE),
    re.compile(r"DELETE.*FROM", re.IGNORECASE),
    re.compile(r"UPDATE.*SET", re.IGNORECASE),
    re.compile(r"--"),
    re.compile(r"/\*"),
]


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    value: Any
    error: str = ""
    dropped: list[str] = field(default_factory=list)


def sanitize_string(raw: Any, max_length: int = 1000) -> str:
    if not isinstance(raw, str):
        return ""
    return _CONTROL_CHARS.sub("", raw).strip()[:max_length]


def validate_task_title(raw: Any) -> ValidationResult:
    value = sanitize_string(raw, MAX_TITLE_LENGTH)
    if not value:
        return ValidationResult(False, "", "Task title is required")
    if len(value) < 2:
        return ValidationResult(False, value, "Task title must be at least 2 characters")
    if any(pattern.search(value) for pattern in _SUSPICIOUS_PATTERNS):
        return ValidationResult(False, value, "Invalid characters in task title")
    return ValidationResult(True, value)


def validate_task_description(raw: Any) -> ValidationResult:
    return ValidationResult(True, sanitize_string(raw, MAX_DESCRIPTION_LENGTH))


def validate_step_content(raw: Any) -> ValidationResult:
    value = sanitize_string(raw, MAX_STEP_LENGTH)
    if not value:
        return ValidationResult(False, "", "Step content is required")
    return ValidationResult(True, value)


def validate_steps(raw: Any) -> ValidationResult:
    if not isinstance(raw, list):
        return ValidationResult(False, [], "Steps must be a list")
    if len(raw) > MAX_STEPS:
        return ValidationResult(False, [], f"Too many steps (max {MAX_STEPS})")

    steps: list[str] = []
    dropped: list[str] = []
    for item in raw:
        value = sanitize_string(item, MAX_STEP_LENGTH)
        if value:
            steps.append(value)
        else:
            dropped.append(str(item))
    return ValidationResult(True, steps, dropped=dropped)


def validate_distraction(raw: Any) -> ValidationResult:
    value = sanitize_string(raw, MAX_DISTRACTION_LENGTH)
    if not value:
        return ValidationResult(False, "", "Distraction text is required")
    return ValidationResult(True, value)
