"""Domain models for the acquisition pipeline dashboard.

This package contains the value types shared by the orchestrator, the
projector, the gateway client and the session store.
"""

from .activity_log import ActivityLogEntry, status_label
from .file_record import FileClass, FileRecord, classify_record
from .notice import Notice, NoticeLevel
from .session import Branch, DateRange, OrchestratorState
from .stage import PipelineStage, classify_stage, filter_today
from .stats import DerivedStats

__all__ = [
    # Records and classification
    "FileRecord",
    "FileClass",
    "classify_record",
    "PipelineStage",
    "classify_stage",
    "filter_today",
    # Projection
    "DerivedStats",
    # Session
    "Branch",
    "DateRange",
    "OrchestratorState",
    # Notifications
    "Notice",
    "NoticeLevel",
    "ActivityLogEntry",
    "status_label",
]
