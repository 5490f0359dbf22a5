from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from ..models.file_record import FileClass, FileRecord, classify_record
from ..models.stats import DerivedStats

"""Derived-stats projector.

Pure functions over a snapshot: no network, no timers, no clock reads. The
caller passes `now` so the output is deterministic for a fixed input.
"""

__all__ = [
    "THROUGHPUT_WINDOW",
    "project_stats",
    "split_by_class",
]

THROUGHPUT_WINDOW = timedelta(hours=1)


def split_by_class(records: Iterable[FileRecord]) -> dict[FileClass, list[FileRecord]]:
    """Group records by their derived classification (every class present as a key)."""
    groups: dict[FileClass, list[FileRecord]] = {cls: [] for cls in FileClass}
    for record in records:
        groups[classify_record(record)].append(record)
    return groups


def project_stats(records: Sequence[FileRecord], now: datetime) -> DerivedStats:
    """Project a day-filtered snapshot into counts and throughput.

    Throughput counts imported records whose last-modified time (creation time
    when missing) falls inside the trailing hour, divided by 60 and rounded to
    one decimal: records per minute.
    """
    groups = split_by_class(records)
    imported = groups[FileClass.IMPORTED]
    window_start = now - THROUGHPUT_WINDOW
    recent = sum(1 for r in imported if window_start < r.activity_time() <= now)

    return DerivedStats(
        total=len(records),
        pending=len(groups[FileClass.PENDING]),
        downloaded=len(groups[FileClass.AWAITING_IMPORT]) + len(imported),
        awaiting_import=len(groups[FileClass.AWAITING_IMPORT]),
        imported=len(imported),
        throughput_per_min=round(recent / 60, 1),
        last_updated=now,
    )
