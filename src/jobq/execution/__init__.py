"""
Scheduling engine: source classification, dispatch, job execution and the
queue lifecycle.
"""

from jobq.execution.engine import JobQueuer, QueueConfig
from jobq.execution.events import EventSink
from jobq.execution.models import (
    STATUS_TRANSITIONS,
    EngineEvent,
    EngineStatus,
    Job,
    SourceKind,
    validate_status_transition,
)
from jobq.execution.sources import SourceAdapter, classify

__all__ = [
    "JobQueuer",
    "QueueConfig",
    "EventSink",
    "EngineEvent",
    "EngineStatus",
    "Job",
    "SourceKind",
    "STATUS_TRANSITIONS",
    "validate_status_transition",
    "SourceAdapter",
    "classify",
]
