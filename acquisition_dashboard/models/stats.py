from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

"""DerivedStats projection model.

Ephemeral: recomputed from every snapshot, never persisted.
"""


@dataclass(frozen=True)
class DerivedStats:
    """Counts and throughput for today's record set."""
    total: int  # today's records
    pending: int  # download not yet successful
    downloaded: int  # download successful (awaiting import + imported)
    awaiting_import: int
    imported: int
    throughput_per_min: float  # imported in trailing hour / 60, one decimal
    last_updated: datetime

    @property
    def processing_speed(self) -> str:
        return f"{self.throughput_per_min:.1f} files/min"

    @staticmethod
    def empty(now: datetime) -> DerivedStats:
        return DerivedStats(
            total=0,
            pending=0,
            downloaded=0,
            awaiting_import=0,
            imported=0,
            throughput_per_min=0.0,
            last_updated=now,
        )
