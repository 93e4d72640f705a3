"""UTC timestamp helpers.

``utc_now`` is the default "now" provider for queues; tests inject their own
clock through ``QueueConfig(clock=...)``.
"""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Serialize a datetime for logs and CLI output."""
    return dt.isoformat() if dt is not None else None


def elapsed_seconds(start: datetime | None, end: datetime | None) -> float | None:
    """Wall-clock seconds between two timestamps, if both are set."""
    if start is None or end is None:
        return None
    return (end - start).total_seconds()
