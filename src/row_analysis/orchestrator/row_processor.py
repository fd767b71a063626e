"""Per-row unit of work: combine texts, classify, adjust and report."""

from __future__ import annotations

import logging
import time

from row_analysis.config import CombineSettings
from row_analysis.orchestrator.confidence import ConfidenceAdjuster
from row_analysis.orchestrator.events import (
    EventDeliveryError,
    EventKind,
    ProgressEmitter,
    RowResultEvent,
    RowStartEvent,
)
from row_analysis.orchestrator.models import (
    AnalysisOutcome,
    AnalysisRequest,
    ClassificationResult,
    OutcomeStatus,
    completed_outcome,
    error_outcome,
)
from row_analysis.orchestrator.retry import RetryEngine

logger = logging.getLogger(__name__)

NO_INPUT_RESULT = ClassificationResult(predicted_class=0, probability0=1.0, probability1=0.0)
NO_INPUT_RAW_OUTPUT = "No input text provided"

_EVENT_KIND_BY_STATUS = {
    OutcomeStatus.COMPLETE: EventKind.ROW_COMPLETE,
    OutcomeStatus.PROCESSING: EventKind.ROW_PROCESSING,
    OutcomeStatus.ERROR: EventKind.ROW_ERROR,
}


def combine_texts(request: AnalysisRequest, labels: CombineSettings | None = None) -> str:
    """Join both texts under labeled sections, or return whichever one is present."""

    labels = labels or CombineSettings()
    primary = (request.primary_text or "").strip()
    secondary = (request.secondary_text or "").strip()
    if primary and secondary:
        return (
            f"{labels.primary_label}: {primary}\n\n"
            f"{labels.secondary_label}: {secondary}"
        )
    return primary or secondary


class RowProcessor:
    """Drive one request through the retry engine and emit its lifecycle events.

    Failures inside a row become error outcomes. Event delivery failures are
    not row failures and propagate to the dispatcher. Every outcome handed to
    the emitter is kept in `reported`.
    """

    def __init__(
        self,
        *,
        retry_engine: RetryEngine,
        adjuster: ConfidenceAdjuster,
        emitter: ProgressEmitter,
        combine: CombineSettings | None = None,
    ) -> None:
        self.retry_engine = retry_engine
        self.adjuster = adjuster
        self.emitter = emitter
        self.combine = combine or CombineSettings()
        self.reported: list[AnalysisOutcome] = []

    async def __call__(self, request: AnalysisRequest) -> AnalysisOutcome:
        return await self.process(request)

    async def process(self, request: AnalysisRequest) -> AnalysisOutcome:
        started_at = time.monotonic()
        self.emitter.emit(RowStartEvent(id=request.id))

        text = combine_texts(request, self.combine)
        if not text:
            outcome = completed_outcome(
                request_id=request.id,
                result=NO_INPUT_RESULT,
                raw_output=NO_INPUT_RAW_OUTPUT,
                processing_time=time.monotonic() - started_at,
                attempts=0,
                from_remote=False,
            )
            return self._report(outcome)

        try:
            outcome = await self.retry_engine.attempt_with_retry(
                request_id=request.id,
                text=text,
                started_at=started_at,
            )
        except EventDeliveryError:
            raise
        except Exception as exc:
            logger.exception("Row %s: unexpected processing error", request.id)
            outcome = error_outcome(
                request_id=request.id,
                message=f"Unexpected error: {exc}",
                processing_time=time.monotonic() - started_at,
                attempts=0,
            )

        if outcome.status is OutcomeStatus.COMPLETE and outcome.from_remote:
            outcome = self.adjuster.adjust(outcome)
        return self._report(outcome)

    def _report(self, outcome: AnalysisOutcome) -> AnalysisOutcome:
        # before emit, so a subscriber failure keeps the outcome
        self.reported.append(outcome)
        kind = _EVENT_KIND_BY_STATUS[outcome.status]
        self.emitter.emit(RowResultEvent(kind=kind, outcome=outcome))
        return outcome
