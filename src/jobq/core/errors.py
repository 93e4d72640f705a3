"""
Structured error types for jobq.

Two families of failure exist in a queue run:

- **Configuration errors** are detected while a queue is being constructed.
  They are always fatal and are raised immediately, so a broken queue never
  starts.
- **Runtime errors** come from source resolution, item pulls or the user's
  ``process`` function after ``start()``. They are reported through the
  ``error`` event and never raised past the engine.

Every jobq error carries a category, a structured context and an optional
chained cause, so that handlers can log them with ``error.to_dict()``.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                         JobQError                            │
        │  (category, context, cause)                                  │
        ├─────────────────────────────────────────────────────────────┤
        │  ConfigError            SourceError         JobError         │
        │  (CONFIG)               (SOURCE)            (JOB)            │
        │      │                      │                   │            │
        │  MissingConfigError     SourceInvalidError  CommandFailed    │
        │  InvalidConfigError                                          │
        │  PollingRequiresPullSourceError                              │
        │                                                              │
        │  InvalidTransitionError (INTERNAL)                           │
        └─────────────────────────────────────────────────────────────┘

Usage:
    from jobq.core.errors import ConfigError

    try:
        queue = JobQ(process=handle, source=None)
    except ConfigError as e:
        logger.error("queue.invalid", **e.to_dict())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Original wording of the construction failures
CONFIG_REQUIRED = "Configuration Object Required"
PROCESS_REQUIRED = "required parameter [process] must be a function"
SOURCE_REQUIRED = "Source is required to be a sequence, function, awaitable or stream"
TYPE_STOP_ON_ERROR = "parameter stop_on_error must be a boolean"
TYPE_EVENT_HANDLER = "Event handlers must be functions"
POLLING_REQUIRES_FUNCTION_SOURCE = "Only Function source can be used with polling"


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    CONFIG = "CONFIG"             # Missing or invalid queue configuration
    SOURCE = "SOURCE"             # Source could not be classified or resolved
    JOB = "JOB"                   # A single job failed
    INTERNAL = "INTERNAL"         # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"           # Uncategorized errors


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Typed fields cover what the engine knows about a failure (which job,
    which source kind, which engine status). Anything else goes into
    ``metadata``. ``to_dict()`` only serializes the fields that are set.

    Examples:
        >>> ctx = ErrorContext(job_id=3, source_kind="sequence")
        >>> ctx.to_dict()
        {'job_id': 3, 'source_kind': 'sequence'}
    """

    job_id: int | None = None
    source_kind: str | None = None
    status: str | None = None
    parameter: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["job_id", "source_kind", "status", "parameter"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class JobQError(Exception):
    """
    Base exception for all jobq errors.

    Subclasses set ``default_category`` so that
    callers get sensible metadata without passing it explicitly.

    Examples:
        >>> error = JobQError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(job_id=4).context.job_id
        4
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> JobQError:
        """
        Add context to this error (fluent API).

        Usage:
            raise SourceInvalidError().with_context(source_kind="invalid")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS (raised at construction)
# =============================================================================


class ConfigError(JobQError):
    """Queue configuration error, always raised at construction."""

    default_category = ErrorCategory.CONFIG


class MissingConfigError(ConfigError):
    """No configuration was supplied at all."""

    def __init__(self, message: str = CONFIG_REQUIRED, **kwargs: Any):
        super().__init__(message, **kwargs)


class InvalidConfigError(ConfigError):
    """A configuration parameter has the wrong type or value."""

    def __init__(self, message: str, *, parameter: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.parameter = parameter
        if parameter is not None:
            self.context.parameter = parameter


class PollingRequiresPullSourceError(ConfigError):
    """Polling was configured with a source that cannot be pulled again."""

    def __init__(self, message: str = POLLING_REQUIRES_FUNCTION_SOURCE, **kwargs: Any):
        super().__init__(message, **kwargs)


# =============================================================================
# SOURCE ERRORS
# =============================================================================


class SourceError(JobQError):
    """Error from the work-item source."""

    default_category = ErrorCategory.SOURCE


class SourceInvalidError(SourceError):
    """Source is not a sequence, pull function, awaitable or stream."""

    def __init__(self, message: str = SOURCE_REQUIRED, **kwargs: Any):
        super().__init__(message, **kwargs)


# =============================================================================
# JOB ERRORS
# =============================================================================


class JobError(JobQError):
    """A single job failed."""

    default_category = ErrorCategory.JOB


class CommandFailedError(JobError):
    """A shell command run by ``jobq run`` exited with a non-zero code."""

    def __init__(self, command: str, returncode: int, stderr: str = "", **kwargs: Any):
        super().__init__(f"Command exited with code {returncode}: {command}", **kwargs)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["returncode"] = self.returncode
        if self.stderr:
            result["stderr"] = self.stderr
        return result


# =============================================================================
# STATE MACHINE ERRORS
# =============================================================================


class InvalidTransitionError(JobQError):
    """
    Raised when an illegal engine status transition is attempted.

    If a legitimate transition turns out to be blocked, add it to
    ``STATUS_TRANSITIONS`` explicitly instead of bypassing the check.
    """

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid EngineStatus transition: {current} → {target}")


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def categorize_error(error: Any) -> ErrorCategory:
    """Get the category of an error value reported by a job or source."""
    if isinstance(error, JobQError):
        return error.category
    if isinstance(error, BaseException):
        return ErrorCategory.JOB
    return ErrorCategory.UNKNOWN


__all__ = [
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
    "CONFIG_REQUIRED",
    "PROCESS_REQUIRED",
    "SOURCE_REQUIRED",
    "TYPE_STOP_ON_ERROR",
    "TYPE_EVENT_HANDLER",
    "POLLING_REQUIRES_FUNCTION_SOURCE",
]
