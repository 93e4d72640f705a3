"""Shared test doubles for queue tests."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any


class Ready:
    """Minimal awaitable that resolves to *value* without suspending."""

    def __init__(self, value: Any) -> None:
        self.value = value

    def __await__(self):
        if False:  # pragma: no cover - makes this a generator
            yield
        return self.value


class FakeClock:
    """Deterministic "now" provider: advances one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2025, 1, 1, tzinfo=UTC)
        self.calls = 0

    def __call__(self) -> datetime:
        self.calls += 1
        self.current += timedelta(seconds=1)
        return self.current


class EventRecorder:
    """Records (event, payload) pairs for every topic it is attached to."""

    TOPICS = (
        "start",
        "pause",
        "resume",
        "stop",
        "job_fetch",
        "job_run",
        "job_finish",
        "error",
        "polling",
        "process_finish",
    )

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []
        self._waiters: dict[str, asyncio.Event] = {}

    def attach(self, queue: Any) -> Any:
        for topic in self.TOPICS:
            queue.on(topic, self._handler(topic))
        return queue

    def _handler(self, topic: str):
        def _record(payload: Any) -> None:
            self.events.append((topic, payload))
            waiter = self._waiters.get(topic)
            if waiter is not None:
                waiter.set()

        return _record

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def payloads(self, topic: str) -> list[Any]:
        return [payload for name, payload in self.events if name == topic]

    def count(self, topic: str) -> int:
        return len(self.payloads(topic))

    def results(self) -> list[Any]:
        return [payload["result"] for payload in self.payloads("job_finish")]

    async def wait_for(self, topic: str, timeout: float = 2.0) -> None:
        """Wait until *topic* has been emitted at least once more."""
        waiter = self._waiters.setdefault(topic, asyncio.Event())
        waiter.clear()
        await asyncio.wait_for(waiter.wait(), timeout)
