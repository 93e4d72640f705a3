"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from jobq.core.settings import JobQSettings, get_settings


class TestJobQSettings:
    def test_defaults(self):
        settings = JobQSettings()
        assert settings.concurrency_limit == 1
        assert settings.stop_on_error is False
        assert settings.poll_interval is None
        assert settings.debug is False
        assert settings.log_level == "INFO"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("JOBQ_CONCURRENCY_LIMIT", "8")
        monkeypatch.setenv("JOBQ_STOP_ON_ERROR", "true")
        monkeypatch.setenv("JOBQ_POLL_INTERVAL", "2.5")
        settings = get_settings()
        assert settings.concurrency_limit == 8
        assert settings.stop_on_error is True
        assert settings.poll_interval == 2.5

    def test_negative_concurrency_rejected(self, monkeypatch):
        monkeypatch.setenv("JOBQ_CONCURRENCY_LIMIT", "-1")
        with pytest.raises(ValidationError):
            JobQSettings()
