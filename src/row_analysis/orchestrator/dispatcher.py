"""Bounded worker pool with staggered launch of row requests."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence

from row_analysis.config import DispatchSettings
from row_analysis.orchestrator.models import AnalysisOutcome, AnalysisRequest

logger = logging.getLogger(__name__)

RowHandler = Callable[[AnalysisRequest], Awaitable[AnalysisOutcome]]


class _WorkerFailure:
    """Exception raised by a handler, carried back to the consumer."""

    __slots__ = ("error",)

    def __init__(self, error: BaseException) -> None:
        self.error = error


class Dispatcher:
    """Run every request through a handler with at most ``concurrency_limit`` in flight.

    A feeder releases request ``i`` into the ready queue no earlier than
    ``i * stagger_seconds`` after dispatch start. A fixed pool of workers takes
    ready requests and runs each handler call to completion before taking the
    next one, so staggered requests waiting in the feeder hold no slot.
    """

    def __init__(self, settings: DispatchSettings | None = None) -> None:
        self.settings = settings or DispatchSettings()
        if self.settings.concurrency_limit < 1:
            raise ValueError("concurrency_limit must be >= 1")

    async def dispatch(
        self,
        requests: Sequence[AnalysisRequest],
        handler: RowHandler,
    ) -> AsyncIterator[AnalysisOutcome]:
        """Yield outcomes in completion order; re-raise the first handler exception."""

        total = len(requests)
        if total == 0:
            return

        ready: asyncio.Queue[AnalysisRequest | None] = asyncio.Queue()
        done: asyncio.Queue[AnalysisOutcome | _WorkerFailure] = asyncio.Queue()
        pool_size = min(self.settings.concurrency_limit, total)
        logger.info(
            "Dispatching %d rows with %d workers, stagger %.3fs",
            total,
            pool_size,
            self.settings.stagger_seconds,
        )

        tasks = [asyncio.create_task(self._feed(requests, ready, pool_size), name="row-feeder")]
        tasks.extend(
            asyncio.create_task(self._work(ready, done, handler), name=f"row-worker-{slot}")
            for slot in range(pool_size)
        )
        try:
            for _ in range(total):
                item = await done.get()
                if isinstance(item, _WorkerFailure):
                    raise item.error
                yield item
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _feed(
        self,
        requests: Sequence[AnalysisRequest],
        ready: asyncio.Queue[AnalysisRequest | None],
        pool_size: int,
    ) -> None:
        loop = asyncio.get_running_loop()
        started_at = loop.time()
        for index, request in enumerate(requests):
            release_at = started_at + index * self.settings.stagger_seconds
            # the loop may wake a timer up to its clock resolution early
            while loop.time() < release_at:
                await asyncio.sleep(release_at - loop.time())
            ready.put_nowait(request)
        for _ in range(pool_size):
            ready.put_nowait(None)

    async def _work(
        self,
        ready: asyncio.Queue[AnalysisRequest | None],
        done: asyncio.Queue[AnalysisOutcome | _WorkerFailure],
        handler: RowHandler,
    ) -> None:
        while True:
            request = await ready.get()
            if request is None:
                return
            try:
                outcome = await handler(request)
            except Exception as exc:  # noqa: BLE001
                done.put_nowait(_WorkerFailure(exc))
                return
            done.put_nowait(outcome)
