"""Single entry point for running a batch of row analyses."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import AsyncIterator, Sequence

from row_analysis.config import Settings
from row_analysis.orchestrator.backend import ClassifierBackend
from row_analysis.orchestrator.confidence import ConfidenceAdjuster
from row_analysis.orchestrator.dispatcher import Dispatcher
from row_analysis.orchestrator.events import (
    CompleteEvent,
    EventCallback,
    ProgressEmitter,
    ProgressEvent,
    StatusEvent,
)
from row_analysis.orchestrator.models import AnalysisOutcome, AnalysisRequest
from row_analysis.orchestrator.parser import ResponseParser
from row_analysis.orchestrator.retry import RetryEngine
from row_analysis.orchestrator.row_processor import RowProcessor

logger = logging.getLogger(__name__)


class RowAnalysisOrchestrator:
    """Wire dispatcher, retry engine, parser and confidence adjuster for one backend.

    Orchestration-level failures after at least one row resolved are reported
    as partial success: `run_batch` returns the outcomes produced so far.
    """

    def __init__(
        self,
        *,
        backend: ClassifierBackend,
        settings: Settings | None = None,
        parser: ResponseParser | None = None,
        adjuster: ConfidenceAdjuster | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.backend = backend
        self.settings = settings or Settings()
        self.settings.validate()
        self.parser = parser or ResponseParser()
        self.adjuster = adjuster or ConfidenceAdjuster(self.settings.confidence, rng=rng)
        self.dispatcher = Dispatcher(self.settings.dispatch)

    async def run_batch(
        self,
        requests: Sequence[AnalysisRequest],
        on_event: EventCallback | None = None,
        *,
        emitter: ProgressEmitter | None = None,
    ) -> list[AnalysisOutcome]:
        """Process every included request and return outcomes in input order."""

        emitter = emitter or ProgressEmitter()
        if on_event is not None:
            emitter.subscribe(on_event)

        selected = [request for request in requests if request.included]
        order = {request.id: index for index, request in enumerate(selected)}
        processor = RowProcessor(
            retry_engine=RetryEngine(
                backend=self.backend,
                emitter=emitter,
                settings=self.settings.retry,
                parser=self.parser,
            ),
            adjuster=self.adjuster,
            emitter=emitter,
            combine=self.settings.combine,
        )

        logger.info("Starting analysis for %d of %d rows", len(selected), len(requests))
        try:
            emitter.emit(
                StatusEvent(
                    message=f"Starting analysis for {len(selected)} rows",
                    total=len(selected),
                ),
            )
            async for outcome in self.dispatcher.dispatch(selected, processor):
                logger.debug("Row %s finished with status %s", outcome.id, outcome.status.value)
            emitter.emit(
                CompleteEvent(
                    message=f"Analysis complete for {len(selected)} rows",
                    total=len(selected),
                ),
            )
        except asyncio.CancelledError:
            emitter.close()
            raise
        except Exception as exc:
            resolved = emitter.resolved_rows
            if resolved == 0:
                logger.error("Batch failed before any row resolved: %s", exc)
                emitter.close(exc)
                raise
            logger.warning(
                "Batch ended early: %d/%d rows resolved (%s)",
                resolved,
                len(selected),
                exc,
            )

        emitter.close()
        outcomes = sorted(
            processor.reported,
            key=lambda outcome: order.get(outcome.id, len(order)),
        )
        logger.info("Analysis finished: %d outcomes", len(outcomes))
        return outcomes

    async def stream(self, requests: Sequence[AnalysisRequest]) -> AsyncIterator[ProgressEvent]:
        """Run the batch in the background and yield its events as they happen."""

        emitter = ProgressEmitter()
        channel = emitter.open_channel()
        task = asyncio.create_task(self.run_batch(requests, emitter=emitter))
        try:
            async for event in channel:
                yield event
            await task
        finally:
            if not task.done():
                task.cancel()
            await asyncio.gather(task, return_exceptions=True)
