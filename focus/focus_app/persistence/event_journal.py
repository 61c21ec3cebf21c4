from __future__ import annotations

import json
import logging
import os
import threading
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Iterator

from focus_app.core.events import FocusEvent

LOGGER = logging.getLogger(__name__)

DAY_SUFFIX = ".jsonl"


def _utc_today() -> date:
    return datetime.now(tz=timezone.utc).date()


class EventJournal:
    """Activity history for sessions, breaks and distractions.

    Each calendar day gets its own JSON-lines file named ``YYYY-MM-DD.jsonl``.
    Event ids are unique across the whole journal; files older than
    ``retention_days`` are removed whenever a new day file is opened.
    """

    def __init__(
        self,
        dir_path: str | Path,
        retention_days: int = 30,
        fsync_writes: bool = False,
        today: Callable[[], date] | None = None,
    ) -> None:
        self.dir_path = Path(dir_path)
        self.retention_days = max(1, int(retention_days))
        self.fsync_writes = bool(fsync_writes)
        self._today = today or _utc_today
        self._lock = threading.Lock()
        self._ids: set[str] | None = None
        self._bad_lines = 0

    # ----- writing -----
    def append(self, event: FocusEvent) -> bool:
        """Returns False when an event with the same id is already journaled."""
        with self._lock:
            ids = self._id_index()
            if event.event_id in ids:
                LOGGER.debug("journal duplicate skipped event_id=%s", event.event_id)
                return False

            target = self._path_for(self._day_of(event))
            opened_new_day = not target.exists()
            self._write_line(target, json.dumps(event.to_dict(), ensure_ascii=True))
            if event.event_id:
                ids.add(event.event_id)
            if opened_new_day:
                self._prune_locked()
            return True

    def _write_line(self, target: Path, line: str) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("a", encoding="utf-8") as handle:
            handle.write(f"{line}\n")
            if self.fsync_writes:
                handle.flush()
                os.fsync(handle.fileno())

    def prune(self) -> int:
        with self._lock:
            return self._prune_locked()

    def _prune_locked(self) -> int:
        oldest_kept = self._today() - timedelta(days=self.retention_days - 1)
        removed = 0
        for day, path in self._day_files():
            if day >= oldest_kept:
                break
            path.unlink(missing_ok=True)
            removed += 1
        if removed:
            LOGGER.info("journal pruned files=%s oldest_kept=%s", removed, oldest_kept.isoformat())
            self._ids = None
        return removed

    # ----- reading -----
    def load_all(self, since: date | None = None) -> list[FocusEvent]:
        self._bad_lines = 0
        seen: set[str] = set()
        events: list[FocusEvent] = []
        for day, path in self._day_files():
            if since is not None and day < since:
                continue
            for record in self._records(path):
                event = FocusEvent.from_dict(record)
                if event.event_id:
                    if event.event_id in seen:
                        continue
                    seen.add(event.event_id)
                events.append(event)
        return events

    def events_for_day(self, day: date) -> list[FocusEvent]:
        path = self._path_for(day.isoformat())
        if not path.exists():
            return []
        self._bad_lines = 0
        return [FocusEvent.from_dict(record) for record in self._records(path)]

    def last_read_stats(self) -> dict[str, int]:
        return {"bad_lines_skipped": self._bad_lines}

    def _records(self, path: Path) -> Iterator[dict]:
        try:
            with path.open("r", encoding="utf-8") as handle:
                lines = list(handle)
        except OSError as exc:
            LOGGER.warning("journal read failed file=%s error=%s", path, exc)
            return
        for line_no, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as exc:
                self._bad_lines += 1
                LOGGER.warning("journal bad line file=%s line=%s error=%s", path.name, line_no, exc.msg)
                continue
            if isinstance(record, dict):
                yield record
            else:
                self._bad_lines += 1

    # ----- layout -----
    def _id_index(self) -> set[str]:
        if self._ids is None:
            self._ids = {
                str(record.get("event_id"))
                for _day, path in self._day_files()
                for record in self._records(path)
                if record.get("event_id")
            }
        return self._ids

    def _day_files(self) -> list[tuple[date, Path]]:
        if not self.dir_path.is_dir():
            return []
        found = []
        for path in self.dir_path.glob(f"*{DAY_SUFFIX}"):
            try:
                found.append((date.fromisoformat(path.stem), path))
            except ValueError:
                continue
        return sorted(found)

    def _path_for(self, day: str) -> Path:
        return self.dir_path / f"{day}{DAY_SUFFIX}"

    def _day_of(self, event: FocusEvent) -> str:
        try:
            return datetime.fromisoformat(event.timestamp).date().isoformat()
        except ValueError:
            return self._today().isoformat()
