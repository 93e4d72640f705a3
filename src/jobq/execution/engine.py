"""Queue engine — bounded-concurrency dispatch over a SourceAdapter.

WHY
───
Pipelines often need "process everything this source yields, at most N at
a time" without knowing up front how many items exist or how the source
produces them. ``JobQueuer`` pulls one item per free slot, runs the user's
``process`` function on it, and tracks the run through an explicit
lifecycle (start / pause / resume / drain / error / finish / poll-restart).

ARCHITECTURE
────────────
::

    start()
      └── scheduler task (owns dispatch)
            ├── SourceAdapter.resolve()        ─ DEFERRED → concrete kind
            └── loop: wait(wakeup) → _fill_jobs()
                        while slots free and RUNNING:
                          emit job_fetch
                          future = source.pull()
                          _run_job(future)      ─ one task per job
                                ├── await item (None → EMPTY)
                                ├── process(item[, done])   ─ first signal wins
                                ├── job_finish / error
                                └── _next()
                                      ├── drained → _finish()
                                      └── else    → wake scheduler

    _finish()
      ├── no polling ─ process_finish, join() returns the snapshot
      └── polling    ─ POLLING, call_later(poll_interval) → RUNNING + wake

Only the scheduler task runs dispatch passes. Public calls and job
completions change flags and set the wakeup event; they never dispatch
directly.

Example::

    queue = JobQueuer(QueueConfig(process=fetch, source=urls, concurrency_limit=5))
    queue.on("job_finish", lambda job: print(job["result"]))
    snapshot = await queue.run()
    print(snapshot["processed"], snapshot["errors"])
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from jobq.core.errors import (
    PROCESS_REQUIRED,
    TYPE_STOP_ON_ERROR,
    InvalidConfigError,
    JobQError,
    MissingConfigError,
    SourceInvalidError,
)
from jobq.core.logging import get_logger, log_event
from jobq.core.settings import JobQSettings
from jobq.core.timestamps import Clock, utc_now
from jobq.execution.events import DebugLogger, EventHandler, EventSink
from jobq.execution.models import (
    EngineEvent,
    EngineStatus,
    Job,
    SourceKind,
    validate_status_transition,
)
from jobq.execution.sources import (
    SourceAdapter,
    accepts_positional,
    as_exception,
    chain_future,
)

logger = get_logger(__name__)


@dataclass
class QueueConfig:
    """Configuration of one queue.

    ``poll_interval`` is in seconds; ``None`` disables polling.
    ``concurrency_limit`` of 0 means unbounded.
    """

    process: Callable[..., Any] | None = None
    source: Any = None
    concurrency_limit: int = 1
    stop_on_error: bool = False
    poll_interval: float | None = None
    debug: bool = False
    debug_logger: DebugLogger = log_event
    clock: Clock = utc_now

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> QueueConfig:
        """Build a config from a plain mapping; unknown keys are ignored."""
        return cls(**{k: v for k, v in values.items() if k in cls.__dataclass_fields__})

    @classmethod
    def from_settings(
        cls,
        process: Callable[..., Any],
        source: Any,
        settings: JobQSettings | None = None,
        **overrides: Any,
    ) -> QueueConfig:
        """Build a config whose defaults come from ``JOBQ_*`` settings."""
        settings = settings or JobQSettings()
        values: dict[str, Any] = {
            "concurrency_limit": settings.concurrency_limit,
            "stop_on_error": settings.stop_on_error,
            "poll_interval": settings.poll_interval,
            "debug": settings.debug,
        }
        values.update(overrides)
        return cls(process=process, source=source, **values)


class JobQueuer:
    """Bounded-concurrency job runner.

    Construction validates the configuration and raises immediately on any
    problem; nothing asynchronous happens until :meth:`start`. After that,
    failures are only reported through the ``error`` event.

    Parameters
    ----------
    config : QueueConfig | Mapping
        Queue configuration. A mapping is converted with
        :meth:`QueueConfig.from_mapping`.
    """

    def __init__(self, config: QueueConfig | Mapping[str, Any] | None) -> None:
        if config is None:
            raise MissingConfigError()
        if isinstance(config, Mapping):
            config = QueueConfig.from_mapping(config)

        if config.process is None or not callable(config.process):
            raise InvalidConfigError(PROCESS_REQUIRED, parameter="process")
        if config.source is None:
            raise SourceInvalidError()
        if not isinstance(config.stop_on_error, bool):
            raise InvalidConfigError(TYPE_STOP_ON_ERROR, parameter="stop_on_error")
        if (
            not isinstance(config.concurrency_limit, int)
            or isinstance(config.concurrency_limit, bool)
            or config.concurrency_limit < 0
        ):
            raise InvalidConfigError(
                "parameter concurrency_limit must be a non-negative integer",
                parameter="concurrency_limit",
            )
        if config.poll_interval is not None and (
            not isinstance(config.poll_interval, (int, float))
            or isinstance(config.poll_interval, bool)
            or config.poll_interval < 0
        ):
            raise InvalidConfigError(
                "parameter poll_interval must be non-negative",
                parameter="poll_interval",
            )

        self._process = config.process
        self._process_takes_done = accepts_positional(config.process, 2)
        self._clock = config.clock
        self.concurrency_limit = config.concurrency_limit
        self.stop_on_error = config.stop_on_error
        self.poll_interval = config.poll_interval
        self._source = SourceAdapter(config.source, polling=config.poll_interval is not None)
        self._events = EventSink(debug=config.debug, debug_logger=config.debug_logger, clock=config.clock)

        self._status = EngineStatus.STOPPED
        self._paused = False
        self._running = 0
        self._finished = 0
        self._errors = 0
        self._last_job_id = 0
        self._pending_pulls = 0
        self._dispatching = False
        self._closed = False
        self.start_time: datetime | None = None

        self._wakeup: asyncio.Event | None = None
        self._scheduler: asyncio.Task[None] | None = None
        self._poll_timer: asyncio.TimerHandle | None = None
        self._done: asyncio.Future[dict[str, Any]] | None = None
        self._jobs: set[asyncio.Task[None]] = set()

    # ── Inspection ───────────────────────────────────────────────────

    @property
    def status(self) -> EngineStatus:
        return self._status

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def source_kind(self) -> SourceKind:
        return self._source.kind

    @property
    def processed(self) -> int:
        return self._finished

    @property
    def errors(self) -> int:
        return self._errors

    def running_jobs_count(self) -> int:
        """Number of jobs currently in flight."""
        return self._running

    def snapshot(self, **overrides: Any) -> dict[str, Any]:
        """Point-in-time view of the run, with *overrides* merged in."""
        data = {
            "start_time": self.start_time,
            "processed": self._finished,
            "errors": self._errors,
            "concurrency_limit": self.concurrency_limit,
            "stop_on_error": self.stop_on_error,
            "source_kind": self._source.kind.value,
            "status": self._status.value,
        }
        data.update(overrides)
        return data

    # ── Public lifecycle ─────────────────────────────────────────────

    def on(self, event: EngineEvent | str, handler: EventHandler) -> JobQueuer:
        """Register the single handler for *event*; later calls replace it."""
        self._events.on(event, handler)
        return self

    def start(self) -> JobQueuer:
        """Begin the run. Must be called with a running event loop."""
        loop = asyncio.get_running_loop()
        if self._scheduler is not None or self._closed:
            raise JobQError("Queue has already been started or stopped")
        self._set_status(EngineStatus.RUNNING)
        self.start_time = self._clock()
        self._wakeup = asyncio.Event()
        self._done = loop.create_future()
        self._emit(EngineEvent.START, self.snapshot())
        self._scheduler = loop.create_task(self._schedule())
        return self

    def pause(self) -> JobQueuer:
        """Stop fetching new items; in-flight jobs keep running."""
        if self._status in (EngineStatus.RUNNING, EngineStatus.POLLING):
            self._paused = True
            self._cancel_poll_timer()
            self._set_status(EngineStatus.PAUSED)
            self._emit(EngineEvent.PAUSE, self.snapshot())
        return self

    def resume(self) -> JobQueuer:
        """Continue fetching after :meth:`pause`. No-op unless paused."""
        if not self._paused or self._closed:
            return self
        self._paused = False
        self._cancel_poll_timer()
        if self._status is EngineStatus.PAUSED:
            self._set_status(EngineStatus.RUNNING)
        self._emit(EngineEvent.RESUME, self.snapshot())
        self._wake()
        return self

    def stop(self) -> JobQueuer:
        """Stop for good: no further fetches or poll restarts.

        In-flight jobs drain; :meth:`join` returns once they have.
        """
        if self._closed:
            return self
        self._closed = True
        self._cancel_poll_timer()
        if self._status is not EngineStatus.STOPPED:
            self._set_status(EngineStatus.STOPPED)
        self._emit(EngineEvent.STOP, self.snapshot())
        self._wake()
        if self._running == 0:
            self._complete()
        return self

    async def join(self) -> dict[str, Any]:
        """Wait until the run is over; returns the final snapshot."""
        if self._done is None:
            raise JobQError("Queue has not been started")
        return await asyncio.shield(self._done)

    async def run(self) -> dict[str, Any]:
        """Start the queue and wait for it to finish."""
        self.start()
        return await self.join()

    # ── Scheduler ────────────────────────────────────────────────────

    async def _schedule(self) -> None:
        assert self._wakeup is not None
        try:
            logger.debug("jobq.source.init", source_kind=self._source.kind.value)
            await self._source.resolve()
        except Exception as e:
            logger.warning("jobq.source.failed", error=str(e))
            if not self._closed:
                self._fail(e)
            return

        self._wake()
        while not self._closed:
            await self._wakeup.wait()
            self._wakeup.clear()
            if self._closed:
                break
            self._fill_jobs()

    def _wake(self) -> None:
        if self._wakeup is not None:
            self._wakeup.set()

    def _can_dispatch(self) -> bool:
        if self._paused or self._status is not EngineStatus.RUNNING:
            return False
        if self._source.drained:
            return False
        if self.concurrency_limit == 0:
            # an unbounded pass can only observe exhaustion between pulls
            return self._source.kind is SourceKind.SEQUENCE or self._pending_pulls == 0
        return self._running < self.concurrency_limit

    def _fill_jobs(self) -> None:
        """One dispatch pass: launch jobs while slots and status allow."""
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._can_dispatch():
                self._emit(EngineEvent.JOB_FETCH, {"running": self._running})
                pulled = self._source.pull()
                if self._source.drained or _resolved_to_none(pulled):
                    self._mark_empty()
                self._run_job(pulled)

            if self._source.drained and self._running == 0 and self._status is EngineStatus.RUNNING:
                # empty sequence: nothing was ever dispatched
                self._mark_empty()
                self._finish_drained()
        finally:
            self._dispatching = False

    # ── Jobs ─────────────────────────────────────────────────────────

    def _run_job(self, pulled: asyncio.Future[Any]) -> None:
        self._running += 1
        self._last_job_id += 1
        job_id = self._last_job_id
        self._pending_pulls += 1
        self._emit(EngineEvent.JOB_RUN, job_id)
        task = asyncio.get_running_loop().create_task(self._execute(job_id, pulled))
        self._jobs.add(task)
        task.add_done_callback(self._jobs.discard)

    async def _execute(self, job_id: int, pulled: asyncio.Future[Any]) -> None:
        job = Job(id=job_id, start_time=self._clock())
        try:
            try:
                item = await pulled
                if inspect.isawaitable(item):
                    item = await item
            finally:
                self._pending_pulls -= 1

            if item is None:
                self._mark_empty()
                return

            self._wake()
            job.result = await self._invoke(item)
            job.end_time = self._clock()
            self._emit(
                EngineEvent.JOB_FINISH,
                {**job.to_dict(), "running": self._running},
            )
            self._finished += 1
        except Exception as e:
            logger.debug("jobq.job.failed", job_id=job_id, error=str(e))
            self._emit(EngineEvent.ERROR, e)
            self._errors += 1
            if self.stop_on_error:
                self._mark_error()
        finally:
            self._next()

    async def _invoke(self, item: Any) -> Any:
        """Run ``process`` on one item; the first completion signal wins."""
        completion: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

        def done(err: Any = None, result: Any = None) -> None:
            if completion.done():
                return
            if err is not None:
                completion.set_exception(as_exception(err))
            else:
                completion.set_result(result)

        if self._process_takes_done:
            returned = self._process(item, done)
        else:
            returned = self._process(item)

        if inspect.isawaitable(returned):
            chain_future(asyncio.ensure_future(returned), completion)
        elif returned is not None or not self._process_takes_done:
            done(None, returned)
        return await completion

    def _next(self) -> None:
        self._running -= 1
        if self._closed:
            if self._running == 0:
                self._complete()
            return
        if self._running == 0 and self._status in (EngineStatus.EMPTY, EngineStatus.ERROR):
            self._finish_drained()
            return
        self._wake()

    # ── Status changes ───────────────────────────────────────────────

    def _set_status(self, target: EngineStatus) -> None:
        if target is self._status:
            return
        validate_status_transition(self._status, target)
        logger.debug("jobq.status", current=self._status.value, target=target.value)
        self._status = target

    def _mark_empty(self) -> None:
        if self._status in (EngineStatus.RUNNING, EngineStatus.PAUSED):
            self._set_status(EngineStatus.EMPTY)

    def _mark_error(self) -> None:
        if self._status in (EngineStatus.RUNNING, EngineStatus.PAUSED, EngineStatus.EMPTY):
            self._set_status(EngineStatus.ERROR)

    def _finish_drained(self) -> None:
        self._set_status(EngineStatus.FINISHED)
        self._finish()

    def _finish(self) -> None:
        if self.poll_interval is None:
            self._emit(EngineEvent.PROCESS_FINISH, self.snapshot(end_time=self._clock()))
            self._closed = True
            self._wake()
            self._complete()
            return

        self._set_status(EngineStatus.POLLING)
        self._emit(EngineEvent.POLLING, self.snapshot())
        self._cancel_poll_timer()
        if self._status is not EngineStatus.POLLING:
            # the polling handler paused or stopped the queue
            return
        if self._paused:
            # paused while draining: the restart waits for resume()
            self._set_status(EngineStatus.PAUSED)
            return
        loop = asyncio.get_running_loop()
        self._poll_timer = loop.call_later(self.poll_interval, self._restart)

    def _restart(self) -> None:
        self._poll_timer = None
        if self._status is not EngineStatus.POLLING:
            return
        self._set_status(EngineStatus.RUNNING)
        self._wake()

    def _cancel_poll_timer(self) -> None:
        if self._poll_timer is not None:
            self._poll_timer.cancel()
            self._poll_timer = None

    def _fail(self, error: BaseException) -> None:
        """Fatal failure before any job ran; terminal even with polling."""
        self._mark_error()
        self._emit(EngineEvent.ERROR, error)
        self._emit(EngineEvent.PROCESS_FINISH, self.snapshot(end_time=self._clock()))
        self._closed = True
        self._complete()

    def _complete(self) -> None:
        if self._done is not None and not self._done.done():
            self._done.set_result(self.snapshot(end_time=self._clock()))

    def _emit(self, event: EngineEvent, payload: Any = None) -> None:
        self._events.emit(event, payload)


def _resolved_to_none(future: asyncio.Future[Any]) -> bool:
    """True when a pull already completed synchronously with "no more items"."""
    return (
        future.done()
        and not future.cancelled()
        and future.exception() is None
        and future.result() is None
    )
