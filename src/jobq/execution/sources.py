"""Source adapter — one pull contract over four kinds of work-item source.

WHY
───
Callers hand a queue whatever produces their work: a list, a function
that returns (or calls back with) the next item, an awaitable that will
produce one of those, or an async stream. The scheduler should not care.
``SourceAdapter`` classifies the source once, resolves awaitables before
scheduling begins, and then answers one question per job: "give me a
future of the next item, or ``None`` when there are no more".

ARCHITECTURE
────────────
::

    classify(source)   precedence: sequence > awaitable > async iterable > callable

    SourceAdapter
      ├── .resolve()   ─ await DEFERRED (repeatedly) into a concrete kind
      ├── .pull()      ─ future of next item (None = exhausted)
      │     SEQUENCE      popleft, already resolved
      │     PULL_FUNCTION fn() / fn(callback) / awaitable return
      │     STREAM        anext() under a lock, StopAsyncIteration → None
      └── .drained     ─ SEQUENCE with nothing left

Related modules:
    engine.py — the dispatcher that calls pull() while under its limit
    models.py — SourceKind
"""

from __future__ import annotations

import asyncio
import inspect
from collections import deque
from collections.abc import AsyncIterable, Callable
from typing import Any

from jobq.core.errors import (
    JobError,
    PollingRequiresPullSourceError,
    SourceInvalidError,
)
from jobq.core.logging import get_logger
from jobq.execution.models import POLLABLE_KINDS, SourceKind

logger = get_logger(__name__)


def classify(source: Any) -> SourceKind:
    """Classify *source*.

    Precedence is fixed so that, for example, an awaitable that is also
    callable is treated as DEFERRED, never as a pull function.

    Example:
        >>> classify([1, 2]).value
        'sequence'
        >>> classify(None).value
        'invalid'
    """
    if source is None:
        return SourceKind.INVALID
    if isinstance(source, (list, tuple)):
        return SourceKind.SEQUENCE
    if inspect.isawaitable(source):
        return SourceKind.DEFERRED
    if isinstance(source, AsyncIterable):
        return SourceKind.STREAM
    if callable(source):
        return SourceKind.PULL_FUNCTION
    return SourceKind.INVALID


def accepts_positional(fn: Callable[..., Any], count: int) -> bool:
    """True if *fn* can be called with *count* positional arguments."""
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return False
    positional = 0
    for param in signature.parameters.values():
        if param.kind is param.VAR_POSITIONAL:
            return True
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            positional += 1
    return positional >= count


def as_exception(error: Any) -> BaseException:
    """Normalize an error value reported through a callback."""
    if isinstance(error, BaseException):
        return error
    return JobError(str(error)).with_context(error=error)


def chain_future(source: asyncio.Future[Any], target: asyncio.Future[Any]) -> None:
    """Copy the outcome of *source* into *target* unless *target* already has one."""

    def _copy(done: asyncio.Future[Any]) -> None:
        if target.done():
            if not done.cancelled():
                done.exception()  # mark retrieved
            return
        if done.cancelled():
            target.cancel()
        elif done.exception() is not None:
            target.set_exception(done.exception())
        else:
            target.set_result(done.result())

    source.add_done_callback(_copy)


class SourceAdapter:
    """Normalizes a configured source into a pull-one-item contract.

    Raises :class:`SourceInvalidError` or :class:`PollingRequiresPullSourceError`
    at construction when the source cannot be used.
    """

    def __init__(self, source: Any, *, polling: bool = False) -> None:
        self._polling = polling
        self.kind = classify(source)
        self.stream_ended = False
        self._items: deque[Any] = deque()
        self._source: Any = None
        self._iterator: Any = None
        self._stream_lock: asyncio.Lock | None = None
        self._adopt(source, self.kind)

    def _check(self, kind: SourceKind) -> None:
        if kind is SourceKind.INVALID:
            raise SourceInvalidError().with_context(source_kind=kind.value)
        if self._polling and kind not in POLLABLE_KINDS:
            raise PollingRequiresPullSourceError().with_context(source_kind=kind.value)

    def _adopt(self, source: Any, kind: SourceKind) -> None:
        self._check(kind)
        self.kind = kind
        if kind is SourceKind.SEQUENCE:
            # engine-owned copy; the caller's list is never mutated
            self._items = deque(source)
            self._source = None
        else:
            self._source = source
        self._accepts_callback = (
            kind is SourceKind.PULL_FUNCTION and accepts_positional(source, 1)
        )

    async def resolve(self) -> SourceKind:
        """Await a DEFERRED source until it yields a concrete kind."""
        while self.kind is SourceKind.DEFERRED:
            logger.debug("jobq.source.resolving", source_kind=self.kind.value)
            resolved = await self._source
            self._adopt(resolved, classify(resolved))

        if self.kind is SourceKind.STREAM and self._iterator is None:
            self._iterator = aiter(self._source)
            self._stream_lock = asyncio.Lock()
            self.stream_ended = False

        logger.debug("jobq.source.ready", source_kind=self.kind.value)
        return self.kind

    @property
    def drained(self) -> bool:
        """True for a SEQUENCE with no items left."""
        return self.kind is SourceKind.SEQUENCE and not self._items

    @property
    def remaining(self) -> int | None:
        """Items left in a SEQUENCE, ``None`` for other kinds."""
        return len(self._items) if self.kind is SourceKind.SEQUENCE else None

    def pull(self) -> asyncio.Future[Any]:
        """Start fetching one item; the future resolves to it or to ``None``."""
        loop = asyncio.get_running_loop()
        if self.kind is SourceKind.SEQUENCE:
            future = loop.create_future()
            future.set_result(self._items.popleft() if self._items else None)
            return future
        if self.kind is SourceKind.STREAM:
            return asyncio.ensure_future(self._read_stream())
        if self.kind is SourceKind.PULL_FUNCTION:
            return self._call_pull_function(loop)
        raise SourceInvalidError(f"Cannot pull from an unresolved {self.kind.value} source")

    def _call_pull_function(self, loop: asyncio.AbstractEventLoop) -> asyncio.Future[Any]:
        future = loop.create_future()

        def callback(err: Any = None, item: Any = None) -> None:
            if future.done():
                return
            if err is not None:
                future.set_exception(as_exception(err))
            else:
                future.set_result(item)

        try:
            returned = self._source(callback) if self._accepts_callback else self._source()
        except Exception as e:
            if not future.done():
                future.set_exception(e)
            return future

        if returned is None and self._accepts_callback:
            return future
        if inspect.isawaitable(returned):
            chain_future(asyncio.ensure_future(returned), future)
        elif not future.done():
            future.set_result(returned)
        return future

    async def _read_stream(self) -> Any:
        assert self._stream_lock is not None
        async with self._stream_lock:
            if self.stream_ended:
                return None
            try:
                return await anext(self._iterator)
            except StopAsyncIteration:
                self.stream_ended = True
                logger.debug("jobq.source.stream_ended")
                return None
