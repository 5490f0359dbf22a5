from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from enum import Enum

"""Notice model for user-facing notifications.

Notices are the short success/error messages the orchestrator surfaces to the
presentation layer. They are also written to the JSON Lines notice log with a
fixed schema: timestamp, level, message, redirect_to_login.
"""

__all__ = [
    "NoticeLevel",
    "Notice",
]


class NoticeLevel(Enum):
    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    """Structured user notice.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        level: success / info / error
        message: short human readable text
        redirect_to_login: True when the failure was an authentication failure
    """
    timestamp: str
    level: str
    message: str
    redirect_to_login: bool = False

    @staticmethod
    def create(level: NoticeLevel, message: str, *, redirect_to_login: bool = False) -> Notice:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return Notice(
            timestamp=ts,
            level=level.value,
            message=message,
            redirect_to_login=redirect_to_login,
        )

    @property
    def is_error(self) -> bool:
        return self.level == NoticeLevel.ERROR.value

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
