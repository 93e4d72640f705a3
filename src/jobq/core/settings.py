"""Environment-driven defaults for jobq queues and the CLI.

``JobQSettings`` reads ``JOBQ_*`` environment variables (and a ``.env`` file)
so deployments can tune concurrency, polling and logging without code
changes.

Examples:
    >>> import os
    >>> os.environ["JOBQ_CONCURRENCY_LIMIT"] = "8"
    >>> JobQSettings().concurrency_limit
    8
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class JobQSettings(BaseSettings):
    """Default queue parameters.

    Fields
    ──────
    concurrency_limit : Max in-flight jobs (0 = unbounded)
    stop_on_error     : Stop dispatching after the first failed job
    poll_interval     : Seconds between drain cycles for pull sources (None = off)
    debug             : Forward every engine event to the debug logger
    log_level         : Structlog log level
    json_logs         : Force JSON (True) or console (False) output, None = auto
    """

    model_config = SettingsConfigDict(
        env_prefix="JOBQ_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Scheduling ───────────────────────────────────────────────
    concurrency_limit: int = Field(default=1, ge=0)
    stop_on_error: bool = False
    poll_interval: float | None = Field(default=None, ge=0)

    # ── Observability ────────────────────────────────────────────
    debug: bool = False
    log_level: str = "INFO"
    json_logs: bool | None = None


def get_settings() -> JobQSettings:
    """Load settings from the current environment."""
    return JobQSettings()
