"""Bounded retry loop around one row's remote classification call."""

from __future__ import annotations

import asyncio
import logging
import time

from row_analysis.config import RetrySettings
from row_analysis.orchestrator.backend import (
    BackendConfigurationError,
    BackendTransportError,
    ClassifierBackend,
    ClassifyRequest,
)
from row_analysis.orchestrator.events import ProgressEmitter, RowRetryEvent
from row_analysis.orchestrator.failure_classifier import (
    ResponseKind,
    classify_http_status,
    classify_transport_error,
    configuration_failure,
)
from row_analysis.orchestrator.models import (
    AnalysisOutcome,
    completed_outcome,
    error_outcome,
    processing_outcome,
)
from row_analysis.orchestrator.parser import ResponseParser

logger = logging.getLogger(__name__)


class RetryEngine:
    """Run up to ``max_retries + 1`` attempts with linear backoff between them.

    5xx, 429 and transport failures are retried; other non-2xx statuses end the
    row at once. A 202 ends the loop with a processing outcome.
    """

    def __init__(
        self,
        *,
        backend: ClassifierBackend,
        emitter: ProgressEmitter,
        settings: RetrySettings | None = None,
        parser: ResponseParser | None = None,
    ) -> None:
        self.backend = backend
        self.emitter = emitter
        self.settings = settings or RetrySettings()
        self.parser = parser or ResponseParser()

    def backoff_delay(self, attempt: int) -> float:
        return attempt * self.settings.backoff_seconds

    async def attempt_with_retry(  # noqa: C901
        self,
        *,
        request_id: str,
        text: str,
        started_at: float,
    ) -> AnalysisOutcome:
        max_retries = self.settings.max_retries
        max_attempts = self.settings.max_attempts
        last_error = "no attempt made"

        for attempt in range(max_retries + 1):
            if attempt > 0:
                logger.info("Row %s: retry attempt %d/%d", request_id, attempt, max_retries)
                self.emitter.emit(
                    RowRetryEvent(id=request_id, attempt=attempt + 1, max_attempts=max_attempts),
                )
                await asyncio.sleep(self.backoff_delay(attempt))

            attempts = attempt + 1
            try:
                async with asyncio.timeout(self.settings.attempt_timeout_seconds):
                    response = await self.backend.classify(
                        ClassifyRequest(
                            request_id=request_id,
                            text=text,
                            attempt=attempts,
                            timeout_seconds=self.settings.attempt_timeout_seconds,
                        ),
                    )
            except BackendConfigurationError as exc:
                classification = configuration_failure()
                logger.error(
                    "Row %s: %s %s",
                    request_id,
                    exc,
                    classification.to_event_details(status_code=None),
                )
                return error_outcome(
                    request_id=request_id,
                    message=str(exc),
                    processing_time=_elapsed(started_at),
                    attempts=attempts,
                )
            except (BackendTransportError, TimeoutError) as exc:
                classification = classify_transport_error(exc)
                detail = str(exc) or "attempt timed out"
                logger.warning(
                    "Row %s: request error on attempt %d: %s (%s)",
                    request_id,
                    attempts,
                    detail,
                    classification.reason_code,
                )
                last_error = f"Request error after {max_attempts} attempts: {detail}"
                continue

            classification = classify_http_status(response.status_code)
            if classification.kind is ResponseKind.RETRYABLE:
                logger.warning(
                    "Row %s: server error %d on attempt %d, will retry",
                    request_id,
                    response.status_code,
                    attempts,
                )
                last_error = f"Server error {response.status_code} after {max_attempts} attempts"
                continue

            if classification.kind is ResponseKind.FATAL:
                logger.error(
                    "Row %s: HTTP %d (final) %s",
                    request_id,
                    response.status_code,
                    classification.to_event_details(status_code=response.status_code),
                )
                return error_outcome(
                    request_id=request_id,
                    message=f"HTTP {response.status_code}",
                    processing_time=_elapsed(started_at),
                    attempts=attempts,
                )

            if classification.kind is ResponseKind.ACCEPTED:
                logger.info("Row %s: accepted for asynchronous processing", request_id)
                return processing_outcome(
                    request_id=request_id,
                    processing_time=_elapsed(started_at),
                    attempts=attempts,
                )

            parsed = self.parser.parse_detailed(response.text)
            if parsed.used_default:
                logger.warning("Row %s: no verdict in response, using default", request_id)
            outcome = completed_outcome(
                request_id=request_id,
                result=parsed.result,
                raw_output=response.text,
                processing_time=_elapsed(started_at),
                attempts=attempts,
            )
            logger.info(
                "Row %s: class=%d p0=%.3f p1=%.3f via %s (%.2fs) after %d attempts",
                request_id,
                outcome.predicted_class,
                outcome.probability0,
                outcome.probability1,
                parsed.strategy,
                outcome.processing_time,
                attempts,
            )
            return outcome

        return error_outcome(
            request_id=request_id,
            message=last_error,
            processing_time=_elapsed(started_at),
            attempts=max_attempts,
        )


def _elapsed(started_at: float) -> float:
    return max(0.0, time.monotonic() - started_at)
