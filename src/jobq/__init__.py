"""
jobq - bounded-concurrency job runner for asyncio.

Pulls work items from a list, a pull function, an awaitable or an async
stream and feeds them to a processing function, at most N at a time.
"""

__version__ = "0.1.0"

from jobq.core.errors import (  # noqa: E402
    ConfigError,
    InvalidConfigError,
    JobQError,
    MissingConfigError,
    PollingRequiresPullSourceError,
    SourceInvalidError,
)
from jobq.execution import (  # noqa: E402
    EngineEvent,
    EngineStatus,
    JobQueuer,
    QueueConfig,
    SourceKind,
)
from jobq.queue import JobQ  # noqa: E402

__all__ = [
    "__version__",
    "JobQ",
    "JobQueuer",
    "QueueConfig",
    "EngineEvent",
    "EngineStatus",
    "SourceKind",
    "JobQError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "PollingRequiresPullSourceError",
    "SourceInvalidError",
]
