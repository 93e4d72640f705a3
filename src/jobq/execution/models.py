"""Engine domain models.

Defines the data structures the scheduling engine works with:
- EngineStatus: the lifecycle state machine and its transition table
- SourceKind: the tagged variant a configured source is classified into
- EngineEvent: the topics the engine publishes
- Job: one invocation of the process function over one item
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from jobq.core.errors import InvalidTransitionError
from jobq.core.timestamps import elapsed_seconds


class EngineStatus(str, Enum):
    """Lifecycle status of a queue.

    Transitions are enforced via ``STATUS_TRANSITIONS``.

    Valid transition graph::

        STOPPED  → RUNNING
        RUNNING  → PAUSED | EMPTY | ERROR | STOPPED
        PAUSED   → RUNNING | EMPTY | ERROR | STOPPED
        EMPTY    → ERROR | FINISHED | STOPPED
        ERROR    → FINISHED | STOPPED
        FINISHED → POLLING
        POLLING  → RUNNING | PAUSED | STOPPED
    """

    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"
    EMPTY = "empty"
    ERROR = "error"
    FINISHED = "finished"
    POLLING = "polling"


STATUS_TRANSITIONS: dict[EngineStatus, frozenset[EngineStatus]] = {
    EngineStatus.STOPPED: frozenset({
        EngineStatus.RUNNING,
    }),
    EngineStatus.RUNNING: frozenset({
        EngineStatus.PAUSED,
        EngineStatus.EMPTY,
        EngineStatus.ERROR,
        EngineStatus.STOPPED,
    }),
    EngineStatus.PAUSED: frozenset({
        EngineStatus.RUNNING,
        EngineStatus.EMPTY,
        EngineStatus.ERROR,
        EngineStatus.STOPPED,
    }),
    EngineStatus.EMPTY: frozenset({
        EngineStatus.ERROR,
        EngineStatus.FINISHED,
        EngineStatus.STOPPED,
    }),
    EngineStatus.ERROR: frozenset({
        EngineStatus.FINISHED,
        EngineStatus.STOPPED,
    }),
    EngineStatus.FINISHED: frozenset({
        EngineStatus.POLLING,  # restart cycle
    }),
    EngineStatus.POLLING: frozenset({
        EngineStatus.RUNNING,
        EngineStatus.PAUSED,
        EngineStatus.STOPPED,
    }),
}


def validate_status_transition(current: EngineStatus, target: EngineStatus) -> None:
    """Raise :class:`InvalidTransitionError` if *current → target* is illegal.

    Example:
        >>> validate_status_transition(EngineStatus.RUNNING, EngineStatus.PAUSED)
        >>> validate_status_transition(EngineStatus.FINISHED, EngineStatus.RUNNING)
        InvalidTransitionError: Invalid EngineStatus transition: finished → running
    """
    allowed = STATUS_TRANSITIONS.get(current, frozenset())
    if target not in allowed:
        raise InvalidTransitionError(current.value, target.value)


class SourceKind(str, Enum):
    """Classification of a configured source."""

    SEQUENCE = "sequence"
    PULL_FUNCTION = "function"
    DEFERRED = "deferred"
    STREAM = "stream"
    INVALID = "invalid"


# Only these kinds can be pulled again after a drain cycle
POLLABLE_KINDS = frozenset({SourceKind.PULL_FUNCTION, SourceKind.DEFERRED})


class EngineEvent(str, Enum):
    """Topics published by the engine, with their payload shape."""

    START = "start"                    # snapshot
    PAUSE = "pause"                    # snapshot
    RESUME = "resume"                  # snapshot
    STOP = "stop"                      # snapshot
    JOB_FETCH = "job_fetch"            # {"running": n}
    JOB_RUN = "job_run"                # job id
    JOB_FINISH = "job_finish"          # Job.to_dict() + running
    ERROR = "error"                    # error value
    POLLING = "polling"                # snapshot
    PROCESS_FINISH = "process_finish"  # snapshot + end_time


@dataclass
class Job:
    """One invocation of the process function. Not retained after it ends."""

    id: int
    start_time: datetime
    end_time: datetime | None = None
    result: Any = None

    @property
    def duration_seconds(self) -> float | None:
        """Wall-clock duration if both timestamps are set."""
        return elapsed_seconds(self.start_time, self.end_time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "result": self.result,
        }
