from __future__ import annotations

from ..models.stage import PipelineStage
from ..models.stats import DerivedStats

"""Status line rendering for the SUMMARY log level.

Format:
STATUS stage={stage} total={n} pending={n} downloaded={n} awaiting_import={n}
imported={n} speed={x.y}/min updated={HH:MM:SS}
"""


def _format_speed(value: float) -> str:
    # always one decimal, never scientific notation
    return f"{value:.1f}"


def render_status_line(stage: PipelineStage | None, stats: DerivedStats) -> str:
    """Render one STATUS line from the latest stage and stats.

    Examples:
        >>> from datetime import datetime, timezone
        >>> stats = DerivedStats(
        ...     total=3, pending=1, downloaded=2, awaiting_import=1, imported=1,
        ...     throughput_per_min=0.0,
        ...     last_updated=datetime(2024, 5, 1, 9, 30, 0, tzinfo=timezone.utc),
        ... )
        >>> render_status_line(PipelineStage.MIXED_DOWNLOAD_AND_IMPORT, stats)  # doctest: +ELLIPSIS
        'STATUS stage=mixed_download_and_import total=3 pending=1 downloaded=2 ...'
    """
    stage_str = stage.value if stage is not None else "unknown"
    return (
        f"STATUS stage={stage_str} "
        f"total={stats.total} "
        f"pending={stats.pending} "
        f"downloaded={stats.downloaded} "
        f"awaiting_import={stats.awaiting_import} "
        f"imported={stats.imported} "
        f"speed={_format_speed(stats.throughput_per_min)}/min "
        f"updated={stats.last_updated.strftime('%H:%M:%S')}"
    )
