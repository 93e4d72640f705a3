"""
Shared pytest fixtures for jobq tests.
"""

from __future__ import annotations

import pytest
import structlog

from tests._support.helpers import EventRecorder, FakeClock


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo any configure_logging() call made by a test."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep JOBQ_* variables from the host out of settings-driven tests."""
    import os

    for key in list(os.environ):
        if key.startswith("JOBQ_"):
            monkeypatch.delenv(key, raising=False)
