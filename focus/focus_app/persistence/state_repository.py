from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from tempfile import NamedTemporaryFile


class StateRepository(ABC):
    @abstractmethod
    def load(self) -> dict:
        raise NotImplementedError

    @abstractmethod
    def save(self, payload: dict) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        self.save({})

    def size_of(self, payload: dict) -> int:
        return len(json.dumps(payload, ensure_ascii=True))


class JsonStateRepository(StateRepository):
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return raw if isinstance(raw, dict) else {}

    def save(self, payload: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        encoded = json.dumps(payload, ensure_ascii=True, indent=2)
        with NamedTemporaryFile("w", delete=False, encoding="utf-8", dir=str(self.path.parent)) as handle:
            handle.write(encoded)
            handle.flush()
            os.fsync(handle.fileno())
            tmp_path = Path(handle.name)
        os.replace(tmp_path, self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class InMemoryStateRepository(StateRepository):
    def __init__(self, initial: dict | None = None) -> None:
        self._payload: dict = dict(initial or {})

    def load(self) -> dict:
        return json.loads(json.dumps(self._payload))

    def save(self, payload: dict) -> None:
        self._payload = json.loads(json.dumps(payload))

    def clear(self) -> None:
        self._payload = {}
