from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.stats import DerivedStats

"""Import progress display with tqdm (TTY only).

One tqdm bar tracks imported / total for today's records. In non-TTY
environments (CI, service managers) the bar is disabled to avoid ANSI control
sequence spam; the SUMMARY status line carries the same numbers.
"""

__all__ = [
    "ImportProgress",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """Check if TTY output is enabled.

    Returns:
        True if stdout is a TTY and progress should be displayed, False otherwise
    """
    return sys.stdout.isatty()


class ImportProgress:
    """Progress bar over today's records, advanced from published stats."""

    def __init__(self, *, description: str = "Imported") -> None:
        self.description = description
        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=0,
                desc=description,
                unit="file",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def update(self, stats: DerivedStats) -> None:
        """Move the bar to the imported count of `stats`."""
        if not self.enabled or self.pbar is None:
            return
        if self.pbar.total != stats.total:
            self.pbar.total = stats.total
        self.pbar.n = stats.imported
        self.pbar.set_postfix(
            pending=stats.pending,
            awaiting=stats.awaiting_import,
            speed=stats.processing_speed,
        )

    def set_description(self, message: str) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({message})" if message else self.description)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ImportProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
