"""Public queue facade.

``JobQ`` forwards to a :class:`~jobq.execution.engine.JobQueuer` and returns
itself from every lifecycle call so calls can be chained::

    queue = (
        JobQ(process=handle, source=items, concurrency_limit=4)
        .on("job_finish", print)
        .on("error", report)
    )
    snapshot = await queue.run()
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from jobq.execution.engine import JobQueuer, QueueConfig
from jobq.execution.events import EventHandler
from jobq.execution.models import EngineEvent, EngineStatus


class JobQ:
    """Chainable wrapper around :class:`JobQueuer`.

    Accepts either a ready :class:`QueueConfig` / mapping, or the config
    fields as keyword arguments.
    """

    def __init__(
        self,
        config: QueueConfig | Mapping[str, Any] | None = None,
        **options: Any,
    ) -> None:
        if config is None and options:
            config = QueueConfig.from_mapping(options)
        self.instance = JobQueuer(config)

    def on(self, event: EngineEvent | str, handler: EventHandler) -> JobQ:
        self.instance.on(event, handler)
        return self

    def start(self) -> JobQ:
        self.instance.start()
        return self

    def pause(self) -> JobQ:
        self.instance.pause()
        return self

    def resume(self) -> JobQ:
        self.instance.resume()
        return self

    def stop(self) -> JobQ:
        self.instance.stop()
        return self

    def running_jobs_count(self) -> int:
        return self.instance.running_jobs_count()

    @property
    def status(self) -> EngineStatus:
        return self.instance.status

    def snapshot(self, **overrides: Any) -> dict[str, Any]:
        return self.instance.snapshot(**overrides)

    async def join(self) -> dict[str, Any]:
        return await self.instance.join()

    async def run(self) -> dict[str, Any]:
        return await self.instance.run()
