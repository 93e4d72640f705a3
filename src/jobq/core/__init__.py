"""
jobq core - errors, logging, settings and timestamps shared by the engine
and the CLI.
"""

from jobq.core.errors import (
    CommandFailedError,
    ConfigError,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    InvalidTransitionError,
    JobError,
    JobQError,
    MissingConfigError,
    PollingRequiresPullSourceError,
    SourceError,
    SourceInvalidError,
    categorize_error,
)
from jobq.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    log_event,
)
from jobq.core.timestamps import utc_now

__all__ = [
    # errors
    "ErrorCategory",
    "ErrorContext",
    "JobQError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "PollingRequiresPullSourceError",
    "SourceError",
    "SourceInvalidError",
    "JobError",
    "CommandFailedError",
    "InvalidTransitionError",
    "categorize_error",
    # logging
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    "LogContext",
    "log_event",
    # timestamps
    "utc_now",
]
