from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

"""Processing session models.

DateRange is the persisted range of a processing session (normally
[today, today]). OrchestratorState is the single mutable state object owned by
the PipelineOrchestrator; timers never hold a reference to it, only the
generation token that was current when they were armed.
"""

__all__ = [
    "DateRange",
    "Branch",
    "OrchestratorState",
]


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    @staticmethod
    def single_day(day: date) -> DateRange:
        return DateRange(start=day, end=day)

    @staticmethod
    def parse(start: str, end: str) -> DateRange:
        """Parse two ISO dates (YYYY-MM-DD).

        Raises:
            ValueError: on malformed dates or start after end
        """
        rng = DateRange(start=date.fromisoformat(start), end=date.fromisoformat(end))
        if rng.start > rng.end:
            raise ValueError(f"date range start {rng.start} is after end {rng.end}")
        return rng

    def as_strings(self) -> tuple[str, str]:
        return self.start.isoformat(), self.end.isoformat()


class Branch(Enum):
    """Stage branch the orchestrator is currently driving.

    A primary trigger (build, download, import) is issued only when its branch
    is entered, never on ticks that stay inside the same branch.
    """
    IDLE = "idle"
    BUILD = "build"
    DOWNLOAD = "download"
    IMPORT = "import"


@dataclass
class OrchestratorState:
    """Mutable orchestrator state.

    generation is bumped on every session transition (start, resume, cancel,
    finalize, failure). Anything issued under an older generation is stale.
    """
    active: bool = False
    date_range: DateRange | None = None
    generation: int = 0
    branch: Branch = Branch.IDLE
    last_import_attempt: float | None = None  # monotonic seconds
    build_attempts: int = 0
    message: str = ""

    def next_generation(self) -> int:
        self.generation += 1
        return self.generation

    def reset_cycle(self) -> None:
        self.branch = Branch.IDLE
        self.build_attempts = 0
