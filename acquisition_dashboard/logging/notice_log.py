from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.notice import Notice

"""Notice log buffering.

Notices are buffered in memory and appended to a JSON Lines file
`logs/notices-YYYYMMDD-HHMMSS.log` (UTC stamp of the first access). The file
path is fixed per process; flush appends and empties the buffer.
"""

__all__ = [
    "Notice",
    "NoticeLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class NoticeLogBuffer:
    """In-memory buffer of notices. Flush writes JSON Lines.

    Single event-loop thread only.
    """

    def __init__(self, logs_dir: Path = LOGS_DIR) -> None:
        self.logs_dir = logs_dir
        self._records: list[Notice] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self.logs_dir / f"notices-{stamp}.log"
        return self._file_path

    def append(self, notice: Notice) -> None:
        self._records.append(notice)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered notices; returns the file path, or None when nothing was buffered."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for notice in self._records:
                f.write(notice.to_json_line() + "\n")
        self._records.clear()
        return fp
