from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, date, tzinfo
from enum import Enum

from .file_record import FileClass, FileRecord, classify_record

"""PipelineStage derivation.

The stage is recomputed from every fetched snapshot and is never cached across
fetches. It is the single value the orchestrator switches on.
"""

__all__ = [
    "PipelineStage",
    "classify_stage",
    "filter_today",
]


class PipelineStage(Enum):
    """Derived pipeline phase for today's record set.

    - NO_FILES: nothing built yet for today
    - AWAITING_DOWNLOAD: some records pending, none awaiting import
    - AWAITING_IMPORT: nothing pending, some records awaiting import
    - MIXED_DOWNLOAD_AND_IMPORT: both pending and awaiting-import records exist
    - ALL_IMPORTED: every record imported
    """
    NO_FILES = "no_files"
    AWAITING_DOWNLOAD = "awaiting_download"
    AWAITING_IMPORT = "awaiting_import"
    MIXED_DOWNLOAD_AND_IMPORT = "mixed_download_and_import"
    ALL_IMPORTED = "all_imported"

    @property
    def has_pending(self) -> bool:
        return self in (PipelineStage.AWAITING_DOWNLOAD, PipelineStage.MIXED_DOWNLOAD_AND_IMPORT)


def filter_today(records: Iterable[FileRecord], today: date, tz: tzinfo = UTC) -> list[FileRecord]:
    """Keep only records whose creation day equals `today` in `tz`."""
    return [r for r in records if r.created_date(tz) == today]


def classify_stage(records: Iterable[FileRecord]) -> PipelineStage:
    classes = {classify_record(r) for r in records}
    if not classes:
        return PipelineStage.NO_FILES
    pending = FileClass.PENDING in classes
    awaiting = FileClass.AWAITING_IMPORT in classes
    if pending and awaiting:
        return PipelineStage.MIXED_DOWNLOAD_AND_IMPORT
    if pending:
        return PipelineStage.AWAITING_DOWNLOAD
    if awaiting:
        return PipelineStage.AWAITING_IMPORT
    return PipelineStage.ALL_IMPORTED
