from __future__ import annotations

import json
import logging
import os
from datetime import UTC, date, tzinfo
from pathlib import Path
from typing import Any

from ..models.file_record import FileRecord
from ..models.session import DateRange

"""Session store adapter: persisted processing flag and date range.

The store is a small JSON document on disk that survives a process restart
(the dashboard's equivalent of a reload). Keys are fixed and carry no TTL;
they are cleared explicitly.

Besides the session flag and range it remembers the records the import
endpoint reported as newly imported today.
"""

__all__ = [
    "SessionStoreError",
    "SessionStore",
    "KEY_ACTIVE",
    "KEY_START_DATE",
    "KEY_END_DATE",
    "KEY_IMPORTED",
]

logger = logging.getLogger(__name__)

KEY_ACTIVE = "isProcessing"
KEY_START_DATE = "fs_startDate"
KEY_END_DATE = "fs_endDate"
KEY_IMPORTED = "importedFiles"


class SessionStoreError(Exception):
    pass


class SessionStore:
    """JSON-file backed key/value store for the processing session."""

    def __init__(self, path: Path, *, tz: tzinfo = UTC) -> None:
        self.path = path
        self.tz = tz

    def save(self, active: bool, date_range: DateRange) -> None:
        data = self._read()
        start, end = date_range.as_strings()
        data[KEY_ACTIVE] = bool(active)
        data[KEY_START_DATE] = start
        data[KEY_END_DATE] = end
        self._write(data)

    def load(self, today: date) -> tuple[bool, DateRange]:
        """Return (active, range). A missing or broken range falls back to [today, today]."""
        data = self._read()
        active = data.get(KEY_ACTIVE) is True
        fallback = DateRange.single_day(today)
        start = data.get(KEY_START_DATE)
        end = data.get(KEY_END_DATE)
        if not start or not end:
            return active, fallback
        try:
            return active, DateRange.parse(str(start), str(end))
        except ValueError as e:
            logger.warning("ignoring persisted date range %s..%s: %s", start, end, e)
            return active, fallback

    def clear(self) -> None:
        """Clear the active flag and the date range; imported memory is kept."""
        data = self._read()
        for key in (KEY_ACTIVE, KEY_START_DATE, KEY_END_DATE):
            data.pop(key, None)
        self._write(data)

    def imported_today(self, today: date) -> list[FileRecord]:
        """Remembered imported records, pruned to `today` (prune is persisted)."""
        data = self._read()
        kept = self._prune(data.get(KEY_IMPORTED) or [], today)
        if len(kept) != len(data.get(KEY_IMPORTED) or []):
            data[KEY_IMPORTED] = [r.to_api() for r in kept]
            self._write(data)
        return kept

    def remember_imported(self, records: list[FileRecord], today: date) -> list[FileRecord]:
        data = self._read()
        kept = self._prune(data.get(KEY_IMPORTED) or [], today)
        known = {r.id for r in kept}
        kept.extend(r for r in records if r.id not in known and r.created_date(self.tz) == today)
        data[KEY_IMPORTED] = [r.to_api() for r in kept]
        self._write(data)
        return kept

    def _prune(self, raw: list[Any], today: date) -> list[FileRecord]:
        kept: list[FileRecord] = []
        for item in raw:
            try:
                record = FileRecord.from_api(item)
            except (AttributeError, TypeError, ValueError):
                continue
            if record.created_date(self.tz) == today:
                kept.append(record)
        return kept

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("session store unreadable, starting empty: %s", e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            raise SessionStoreError(f"cannot write session store {self.path}: {e}") from e
