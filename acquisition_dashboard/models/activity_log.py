from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .file_record import STATUS_ERROR, STATUS_NOT_FOUND, STATUS_PENDING, STATUS_SUCCESS

"""Activity log entries returned by the gateway's per-day activity endpoint."""

__all__ = [
    "ActivityLogEntry",
    "status_label",
]

_LABELS = {
    STATUS_SUCCESS: "Completed",
    STATUS_PENDING: "Pending",
    STATUS_NOT_FOUND: "Not Found",
    STATUS_ERROR: "Error",
}

_FAILED = (STATUS_NOT_FOUND, STATUS_ERROR)


def status_label(status: int) -> str:
    return _LABELS.get(status, str(status))


@dataclass(frozen=True)
class ActivityLogEntry:
    id: int  # position in the day's log, the endpoint has no ids
    directory: str
    segment: str
    filename: str
    filetype: str
    sp_name: str
    sp_status: int
    dl_status: int
    last_modified: str

    @property
    def outcome(self) -> str:
        """Completed, Failed or Pending; anything else is Unknown."""
        if self.sp_status == STATUS_SUCCESS and self.dl_status == STATUS_SUCCESS:
            return "Completed"
        if self.sp_status in _FAILED or self.dl_status in _FAILED:
            return "Failed"
        if STATUS_PENDING in (self.sp_status, self.dl_status):
            return "Pending"
        return "Unknown"

    @staticmethod
    def from_api(index: int, payload: dict[str, Any]) -> ActivityLogEntry:
        return ActivityLogEntry(
            id=index + 1,
            directory=str(payload.get("dir") or ""),
            segment=str(payload.get("segment") or ""),
            filename=str(payload.get("filename") or ""),
            filetype=str(payload.get("filetype") or ""),
            sp_name=str(payload.get("spName") or ""),
            sp_status=int(payload.get("spStatus") or 0),
            dl_status=int(payload.get("dlStatus") or 0),
            last_modified=str(payload.get("lastModified") or ""),
        )
