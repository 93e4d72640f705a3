"""Event sink — single-subscriber-per-topic notifications for a queue.

ARCHITECTURE
────────────
::

    EventSink
      ├── .on(event, handler)   ─ register; replaces any earlier handler
      ├── .emit(event, payload) ─ debug log (if enabled), then the handler
      └── .handler_for(event)   ─ inspect the current registration

    emit(event, payload)
      ├── debug? ─ logger(now(), event, payload)
      └── handler(payload)
            ├── returns awaitable ─ scheduled as a task on the running loop
            └── raises            ─ logged, delivery continues

Handlers are plain callables. A handler that returns an awaitable (an
``async def`` handler) is scheduled as a task; the engine never waits for it.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import Any

from jobq.core.errors import TYPE_EVENT_HANDLER, InvalidConfigError
from jobq.core.logging import get_logger
from jobq.core.timestamps import Clock, utc_now
from jobq.execution.models import EngineEvent

logger = get_logger(__name__)

EventHandler = Callable[[Any], Any]
DebugLogger = Callable[..., None]


class EventSink:
    """Publishes engine events to at most one handler per topic.

    Parameters
    ----------
    debug : bool
        Forward every emission to ``debug_logger`` before delivery.
    debug_logger : callable
        ``(timestamp, event, payload) -> None``.
    clock : callable
        "now" provider for the debug timestamp.
    """

    def __init__(
        self,
        *,
        debug: bool = False,
        debug_logger: DebugLogger | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._handlers: dict[str, EventHandler] = {}
        self._debug = debug
        self._debug_logger = debug_logger
        self._clock = clock
        self._pending: set[asyncio.Task[Any]] = set()

    def on(self, event: EngineEvent | str, handler: EventHandler) -> EventSink:
        """Register *handler* for *event*, replacing any earlier one."""
        if not callable(handler):
            raise InvalidConfigError(TYPE_EVENT_HANDLER, parameter="handler")
        self._handlers[_topic(event)] = handler
        return self

    def handler_for(self, event: EngineEvent | str) -> EventHandler | None:
        return self._handlers.get(_topic(event))

    def emit(self, event: EngineEvent | str, payload: Any = None) -> None:
        topic = _topic(event)
        if self._debug and self._debug_logger is not None:
            try:
                self._debug_logger(self._clock(), topic, payload)
            except Exception as e:
                logger.warning("jobq.debug_logger_error", engine_event=topic, error=str(e))

        handler = self._handlers.get(topic)
        if handler is None:
            return

        try:
            outcome = handler(payload)
        except Exception as e:
            logger.warning("jobq.event_handler_error", engine_event=topic, error=str(e))
            return

        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome)
            self._pending.add(task)
            task.add_done_callback(self._handler_done(topic))

    def _handler_done(self, topic: str) -> Callable[[asyncio.Future[Any]], None]:
        def _done(task: asyncio.Future[Any]) -> None:
            self._pending.discard(task)
            if not task.cancelled() and task.exception() is not None:
                logger.warning(
                    "jobq.event_handler_error",
                    engine_event=topic,
                    error=str(task.exception()),
                )

        return _done

    @property
    def handler_count(self) -> int:
        """Number of topics with a registered handler."""
        return len(self._handlers)


def _topic(event: EngineEvent | str) -> str:
    return event.value if isinstance(event, EngineEvent) else str(event)
