from __future__ import annotations

from typing import Protocol

from ..models.notice import Notice
from ..models.stage import PipelineStage
from ..models.stats import DerivedStats

"""Interface between the orchestrator and whatever renders its state."""

__all__ = ["Presenter"]


class Presenter(Protocol):
    """Receives everything the orchestrator publishes.

    Implementations must not raise; the orchestrator calls them from timer
    callbacks.
    """

    def publish_stats(self, stage: PipelineStage, stats: DerivedStats) -> None: ...

    def publish_message(self, message: str) -> None: ...

    def notify(self, notice: Notice) -> None: ...

    def redirect_to_login(self) -> None: ...
