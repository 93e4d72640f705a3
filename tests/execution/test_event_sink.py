"""Tests for the single-handler-per-topic event sink."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest
from structlog.testing import capture_logs

from jobq.core.errors import InvalidConfigError
from jobq.execution.events import EventSink
from jobq.execution.models import EngineEvent


class TestRegistration:
    def test_on_returns_self(self):
        sink = EventSink()
        assert sink.on("start", lambda payload: None) is sink

    def test_last_registration_wins(self):
        sink = EventSink()
        first, second = MagicMock(), MagicMock()
        sink.on("job_run", first)
        sink.on(EngineEvent.JOB_RUN, second)
        sink.emit(EngineEvent.JOB_RUN, 1)
        first.assert_not_called()
        second.assert_called_once_with(1)
        assert sink.handler_count == 1

    def test_enum_and_string_topics_are_the_same(self):
        sink = EventSink()
        handler = MagicMock()
        sink.on(EngineEvent.ERROR, handler)
        assert sink.handler_for("error") is handler

    def test_non_callable_handler_rejected(self):
        with pytest.raises(InvalidConfigError, match="Event handlers must be functions"):
            EventSink().on("start", "not-a-function")


class TestEmit:
    def test_emit_without_handler_is_noop(self):
        EventSink().emit("start", {"status": "running"})

    def test_handler_exception_does_not_propagate(self):
        sink = EventSink()

        def broken(payload):
            raise RuntimeError("handler bug")

        sink.on("start", broken)
        sink.emit("start", {})

    def test_debug_logger_receives_every_event(self, clock):
        debug_logger = MagicMock()
        sink = EventSink(debug=True, debug_logger=debug_logger, clock=clock)
        sink.emit("job_fetch", {"running": 0})
        debug_logger.assert_called_once_with(clock.current, "job_fetch", {"running": 0})

    def test_debug_logger_failure_is_contained(self):
        handler = MagicMock()
        debug_logger = MagicMock(side_effect=RuntimeError("log sink down"))
        sink = EventSink(debug=True, debug_logger=debug_logger)
        sink.on("job_fetch", handler)

        with capture_logs() as logs:
            sink.emit("job_fetch", {"running": 0})

        handler.assert_called_once_with({"running": 0})
        assert logs[0]["event"] == "jobq.debug_logger_error"
        assert logs[0]["error"] == "log sink down"

    def test_debug_logger_silent_when_debug_off(self):
        debug_logger = MagicMock()
        sink = EventSink(debug=False, debug_logger=debug_logger)
        sink.emit("job_fetch", {"running": 0})
        debug_logger.assert_not_called()

    @pytest.mark.asyncio
    async def test_async_handler_is_scheduled(self):
        seen = []

        async def handler(payload):
            seen.append(payload)

        sink = EventSink()
        sink.on("job_run", handler)
        sink.emit("job_run", 5)
        assert seen == []
        await asyncio.sleep(0)
        assert seen == [5]
