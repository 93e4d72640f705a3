"""Lifecycle tests: start, pause / resume, stop and poll restarts."""

from __future__ import annotations

import asyncio
from collections import deque

import pytest

from jobq.core.errors import JobQError
from jobq.execution.engine import JobQueuer, QueueConfig
from jobq.execution.models import EngineStatus


def _pull_from(items: deque):
    return lambda: items.popleft() if items else None


async def _slow_double(item):
    await asyncio.sleep(0.005)
    return item * 2


def _queue(recorder=None, **options) -> JobQueuer:
    options.setdefault("process", _slow_double)
    queue = JobQueuer(QueueConfig(**options))
    if recorder is not None:
        recorder.attach(queue)
    return queue


class TestStart:
    @pytest.mark.asyncio
    async def test_start_sets_running(self, recorder):
        queue = _queue(recorder, source=[1])
        queue.start()
        assert queue.status is EngineStatus.RUNNING
        assert queue.start_time is not None
        assert recorder.names() == ["start"]
        await queue.join()

    @pytest.mark.asyncio
    async def test_double_start_raises(self):
        queue = _queue(source=[1])
        queue.start()
        with pytest.raises(JobQError):
            queue.start()
        await queue.join()

    @pytest.mark.asyncio
    async def test_start_after_stop_raises(self):
        queue = _queue(source=[1])
        queue.stop()
        with pytest.raises(JobQError):
            queue.start()

    @pytest.mark.asyncio
    async def test_last_handler_wins(self):
        first, second = [], []
        queue = _queue(source=[1, 2])
        queue.on("job_finish", first.append)
        queue.on("job_finish", second.append)
        await queue.run()
        assert first == []
        assert [job["result"] for job in second] == [2, 4]


class TestPauseResume:
    @pytest.mark.asyncio
    async def test_pause_before_dispatch_holds_jobs(self, recorder):
        queue = _queue(recorder, source=[1, 2, 3])
        queue.start()
        queue.pause()
        assert queue.paused
        assert queue.status is EngineStatus.PAUSED

        await asyncio.sleep(0.02)
        assert recorder.count("job_run") == 0

        queue.resume()
        snapshot = await queue.join()
        assert snapshot["processed"] == 3
        assert recorder.count("pause") == 1
        assert recorder.count("resume") == 1

    @pytest.mark.asyncio
    async def test_pause_then_resume_is_transparent(self, recorder):
        queue = _queue(recorder, source=[1, 2, 3], concurrency_limit=2)
        queue.start().pause().resume()
        snapshot = await queue.join()
        assert snapshot["processed"] == 3
        assert sorted(recorder.results()) == [2, 4, 6]

    @pytest.mark.asyncio
    async def test_pause_mid_run_lets_in_flight_jobs_finish(self, recorder):
        queue = _queue(recorder, source=[1, 2, 3, 4, 5])
        queue.start()
        await recorder.wait_for("job_finish")
        queue.pause()

        await asyncio.sleep(0.05)
        held = queue.processed
        assert queue.running_jobs_count() == 0
        assert queue.status is EngineStatus.PAUSED
        await asyncio.sleep(0.02)
        assert queue.processed == held

        queue.resume()
        snapshot = await queue.join()
        assert snapshot["processed"] == 5

    @pytest.mark.asyncio
    async def test_resume_while_running_is_noop(self, recorder):
        queue = _queue(recorder, source=[1])
        queue.start()
        queue.resume()
        await queue.join()
        assert recorder.count("resume") == 0

    def test_pause_before_start_is_noop(self):
        queue = _queue(source=[1])
        queue.pause()
        assert queue.status is EngineStatus.STOPPED
        assert not queue.paused


class TestStop:
    @pytest.mark.asyncio
    async def test_stop_ends_an_endless_source(self, recorder):
        queue = _queue(recorder, source=lambda: 1, concurrency_limit=2)
        queue.start()
        await recorder.wait_for("job_finish")

        queue.stop()
        snapshot = await queue.join()

        assert snapshot["status"] == "stopped"
        assert snapshot["processed"] >= 1
        assert queue.running_jobs_count() == 0
        assert recorder.count("stop") == 1
        assert recorder.count("process_finish") == 0

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, recorder):
        queue = _queue(recorder, source=lambda: 1)
        queue.start()
        queue.stop().stop()
        await queue.join()
        assert recorder.count("stop") == 1


class TestPolling:
    @pytest.mark.asyncio
    @pytest.mark.slow
    async def test_restart_after_interval(self, recorder):
        items = deque([1, 2, None, 3, None])
        queue = _queue(recorder, source=_pull_from(items), poll_interval=0.05)
        loop = asyncio.get_running_loop()

        queue.start()
        await recorder.wait_for("polling")
        polled_at = loop.time()
        assert queue.status is EngineStatus.POLLING
        assert recorder.results() == [2, 4]

        await recorder.wait_for("polling")
        assert loop.time() - polled_at >= 0.04
        assert recorder.results() == [2, 4, 6]

        names = recorder.names()
        assert names.count("polling") == 2
        assert names.index("polling") < names.index("job_finish", names.index("polling"))
        assert recorder.count("process_finish") == 0

        queue.stop()
        snapshot = await queue.join()
        assert snapshot["status"] == "stopped"
        assert snapshot["processed"] == 3

    @pytest.mark.asyncio
    async def test_pause_while_polling_holds_restart(self, recorder):
        items = deque([1, None, 2, None])
        queue = _queue(recorder, source=_pull_from(items), poll_interval=0.01)

        queue.start()
        await recorder.wait_for("polling")
        queue.pause()
        assert queue.status is EngineStatus.PAUSED

        await asyncio.sleep(0.05)
        assert recorder.results() == [2]
        assert queue.status is EngineStatus.PAUSED

        queue.resume()
        await recorder.wait_for("polling")
        assert recorder.results() == [2, 4]

        queue.stop()
        await queue.join()

    @pytest.mark.asyncio
    async def test_polling_deferred_pull_function(self, recorder):
        items = deque([7, None])

        async def make_source():
            return _pull_from(items)

        queue = _queue(recorder, source=make_source(), poll_interval=0.01)
        queue.start()
        await recorder.wait_for("polling")
        assert recorder.results() == [14]
        queue.stop()
        snapshot = await queue.join()
        assert snapshot["source_kind"] == "function"

    @pytest.mark.asyncio
    async def test_source_drained_while_paused_waits_for_resume(self, recorder):
        items = deque([1])
        gate = asyncio.Event()

        async def pull():
            if items:
                return items.popleft()
            await gate.wait()
            return None

        queue = _queue(recorder, source=pull, concurrency_limit=2, poll_interval=0.05)
        queue.start()
        await recorder.wait_for("job_finish")
        queue.pause()

        gate.set()
        await recorder.wait_for("polling")
        assert queue.status is EngineStatus.PAUSED
        assert queue.paused

        fetches = recorder.count("job_fetch")
        await asyncio.sleep(0.1)
        assert queue.status is EngineStatus.PAUSED
        assert recorder.count("job_fetch") == fetches

        items.append(5)
        queue.resume()
        await recorder.wait_for("job_finish")
        assert recorder.results() == [2, 10]
        assert not queue.paused

        queue.stop()
        snapshot = await queue.join()
        assert snapshot["status"] == "stopped"

    @pytest.mark.asyncio
    @pytest.mark.slow
    async def test_pause_resume_while_polling_keeps_full_interval(self, recorder):
        items = deque([1, None, 2, None])
        loop = asyncio.get_running_loop()

        async def process(item):
            await asyncio.sleep(0.1 if item == 2 else 0)
            return item * 2

        queue = _queue(recorder, process=process, source=_pull_from(items), poll_interval=0.2)
        queue.start()
        await recorder.wait_for("polling")
        queue.pause().resume()

        await recorder.wait_for("polling")
        polled_at = loop.time()
        items.append(3)

        await recorder.wait_for("job_run")
        assert loop.time() - polled_at >= 0.19
        assert recorder.count("polling") == 2

        queue.stop()
        await queue.join()
