from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import UTC, date, datetime, tzinfo
from enum import Enum
from typing import Any

"""FileRecord domain model for the acquisition pipeline dashboard.

A FileRecord is one remote file observed for the processing day. Records are
created by the remote build-task stage and mutated only by the download and
import agents; the dashboard re-reads them on every status snapshot and never
writes them back.

Classification is derived on read from the two status codes:

- PENDING: download status is not success
- AWAITING_IMPORT: downloaded, import status is the "not found" sentinel
- IMPORTED: downloaded, import status is anything else
"""

__all__ = [
    "STATUS_SUCCESS",
    "STATUS_PENDING",
    "STATUS_NOT_FOUND",
    "STATUS_ERROR",
    "FileClass",
    "FileRecord",
    "classify_record",
    "parse_timestamp",
]

STATUS_SUCCESS = 200
STATUS_PENDING = 202
STATUS_NOT_FOUND = 404
STATUS_ERROR = 500

INCREMENTAL_PREFIX = "I-"
DEFAULT_INCREMENT = "7"
PLACEHOLDER = "^"


class FileClass(Enum):
    """Derived per-record classification."""
    PENDING = "pending"
    AWAITING_IMPORT = "awaiting_import"
    IMPORTED = "imported"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an API timestamp into an aware datetime.

    Naive values are taken as UTC. Empty or unparsable values yield None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class FileRecord:
    """One remote file observed for the processing day.

    Field names follow the Python side; `from_api` maps the gateway's camelCase
    payload onto them.
    """
    id: str
    directory: str
    segment: str
    filename: str
    filetype: str
    created_time: datetime
    dl_status: int
    sp_status: int
    last_modified: datetime | None = None
    dl_time: datetime | None = None
    sp_time: datetime | None = None
    filepath: str = ""
    sp_path: str = ""
    sp_name: str = ""
    file_size: str = ""

    @property
    def is_incremental(self) -> bool:
        return self.filetype.startswith(INCREMENTAL_PREFIX)

    def created_date(self, tz: tzinfo = UTC) -> date:
        """Creation day of the record in the dashboard timezone."""
        return self.created_time.astimezone(tz).date()

    def activity_time(self) -> datetime:
        """Last-modified timestamp, falling back to creation time."""
        return self.last_modified or self.created_time

    def display(self) -> FileRecord:
        """Copy with incremental names applied, for display only.

        An incremental record (file type `I-<n>`) carries a `^` placeholder in its
        names; each name containing one loses every `^` and gains `-<n>`. Names
        without a placeholder are kept. Records sent back to the gateway must be
        the unmodified originals.
        """
        if not self.is_incremental:
            return self
        increment = self.filetype[len(INCREMENTAL_PREFIX):] or DEFAULT_INCREMENT

        def _rename(value: str) -> str:
            if PLACEHOLDER not in value:
                return value
            return value.replace(PLACEHOLDER, "") + f"-{increment}"

        return replace(
            self,
            filename=_rename(self.filename),
            filepath=_rename(self.filepath),
            sp_path=_rename(self.sp_path),
        )

    @staticmethod
    def from_api(payload: dict[str, Any]) -> FileRecord:
        """Build a FileRecord from one gateway status/import item, names untouched.

        Raises:
            ValueError: if the item has no id or no parsable creation time
        """
        if payload.get("id") in (None, ""):
            raise ValueError("file record without id")
        created = parse_timestamp(payload.get("createdTime"))
        if created is None:
            raise ValueError(f"file record {payload.get('id')} has no valid createdTime")
        return FileRecord(
            id=str(payload["id"]),
            directory=str(payload.get("dir") or ""),
            segment=str(payload.get("segment") or ""),
            filename=str(payload.get("filename") or ""),
            filetype=str(payload.get("filetype") or ""),
            created_time=created,
            dl_status=_to_int(payload.get("dlStatus")),
            sp_status=_to_int(payload.get("spStatus")),
            last_modified=parse_timestamp(payload.get("lastModified")),
            dl_time=parse_timestamp(payload.get("dlTime")),
            sp_time=parse_timestamp(payload.get("spTime")),
            filepath=str(payload.get("filepath") or ""),
            sp_path=str(payload.get("spPath") or ""),
            sp_name=str(payload.get("spName") or ""),
            file_size=str(payload.get("fileSize") or ""),
        )

    def to_api(self) -> dict[str, Any]:
        """Serialize back to the gateway's camelCase shape."""
        def _iso(value: datetime | None) -> str | None:
            return value.isoformat().replace("+00:00", "Z") if value is not None else None

        return {
            "id": self.id,
            "dir": self.directory,
            "segment": self.segment,
            "filename": self.filename,
            "filetype": self.filetype,
            "createdTime": _iso(self.created_time),
            "dlStatus": self.dl_status,
            "spStatus": self.sp_status,
            "lastModified": _iso(self.last_modified),
            "dlTime": _iso(self.dl_time),
            "spTime": _iso(self.sp_time),
            "filepath": self.filepath,
            "spPath": self.sp_path,
            "spName": self.sp_name,
            "fileSize": self.file_size,
        }


def classify_record(record: FileRecord) -> FileClass:
    if record.dl_status != STATUS_SUCCESS:
        return FileClass.PENDING
    if record.sp_status == STATUS_NOT_FOUND:
        return FileClass.AWAITING_IMPORT
    return FileClass.IMPORTED
