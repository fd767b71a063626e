from __future__ import annotations

import asyncio
import time

import allure
import pytest
from fakes import ScriptedBackend, transport_error

from row_analysis.config import RetrySettings
from row_analysis.orchestrator.backend import BackendConfigurationError, ClassifyResponse
from row_analysis.orchestrator.events import EventKind, ProgressEmitter, RowRetryEvent
from row_analysis.orchestrator.models import OutcomeStatus
from row_analysis.orchestrator.retry import RetryEngine

pytestmark = [
    allure.epic("Row Analysis"),
    allure.feature("Retry Policy"),
]

OK = ClassifyResponse(200, "answer #9&7![1,0.20,0.80]#9&7!")


def _run(engine: RetryEngine, request_id: str = "R1"):
    return asyncio.run(
        engine.attempt_with_retry(request_id=request_id, text="text", started_at=time.monotonic()),
    )


def _engine(backend: ScriptedBackend, **settings: float) -> tuple[RetryEngine, list]:
    events: list = []
    emitter = ProgressEmitter([events.append])
    retry = RetrySettings(
        max_retries=int(settings.get("max_retries", 3)),
        backoff_seconds=settings.get("backoff_seconds", 0.001),
        attempt_timeout_seconds=settings.get("attempt_timeout_seconds", 5.0),
    )
    return RetryEngine(backend=backend, emitter=emitter, settings=retry), events


def test_success_on_first_attempt_emits_no_retry() -> None:
    engine, events = _engine(ScriptedBackend({"R1": [OK]}))
    outcome = _run(engine)
    assert outcome.status == OutcomeStatus.COMPLETE
    assert (outcome.predicted_class, outcome.probability0, outcome.probability1) == (1, 0.2, 0.8)
    assert outcome.raw_output == OK.text
    assert outcome.attempts == 1
    assert events == []


def test_server_errors_then_success_retries_with_linear_backoff() -> None:
    backend = ScriptedBackend(
        {"R1": [ClassifyResponse(503, "busy")] * 3 + [OK]},
    )
    engine, events = _engine(backend, backoff_seconds=0.01)
    outcome = _run(engine)

    assert outcome.status == OutcomeStatus.COMPLETE
    assert outcome.attempts == 4
    assert len(backend.calls) == 4
    assert events == [
        RowRetryEvent(id="R1", attempt=2, max_attempts=4),
        RowRetryEvent(id="R1", attempt=3, max_attempts=4),
        RowRetryEvent(id="R1", attempt=4, max_attempts=4),
    ]
    # 0.01 + 0.02 + 0.03 of backoff
    assert outcome.processing_time >= 0.059
    assert engine.backoff_delay(3) == pytest.approx(0.03)


def test_retries_resend_identical_text() -> None:
    backend = ScriptedBackend({"R1": [ClassifyResponse(500, ""), OK]})
    engine, _ = _engine(backend)
    _run(engine)
    assert [call.text for call in backend.calls] == ["text", "text"]
    assert [call.attempt for call in backend.calls] == [1, 2]


def test_exhausted_server_errors_become_error_outcome() -> None:
    backend = ScriptedBackend({"R1": [ClassifyResponse(502, "bad gateway")]})
    engine, events = _engine(backend)
    outcome = _run(engine)

    assert outcome.status == OutcomeStatus.ERROR
    assert outcome.error_message == "Server error 502 after 4 attempts"
    assert outcome.raw_output == "Error: Server error 502 after 4 attempts"
    assert (outcome.predicted_class, outcome.probability0, outcome.probability1) == (0, 0.5, 0.5)
    assert len(backend.calls) == 4
    assert len(events) == 3


def test_rate_limit_is_retried() -> None:
    backend = ScriptedBackend({"R1": [ClassifyResponse(429, "slow down"), OK]})
    engine, events = _engine(backend)
    outcome = _run(engine)
    assert outcome.status == OutcomeStatus.COMPLETE
    assert len(events) == 1


def test_transport_errors_are_retried_then_reported() -> None:
    backend = ScriptedBackend({"R1": [transport_error("connection reset")]})
    engine, events = _engine(backend, max_retries=2)
    outcome = _run(engine)
    assert outcome.status == OutcomeStatus.ERROR
    assert outcome.error_message == "Request error after 3 attempts: connection reset"
    assert [event.attempt for event in events] == [2, 3]
    assert all(event.max_attempts == 3 for event in events)


def test_attempt_timeout_is_retryable() -> None:
    backend = ScriptedBackend({"R1": [OK]}, latency_seconds=0.2)
    engine, events = _engine(backend, max_retries=1, attempt_timeout_seconds=0.02)
    outcome = _run(engine)
    assert outcome.status == OutcomeStatus.ERROR
    assert outcome.error_message == "Request error after 2 attempts: attempt timed out"
    assert len(backend.calls) == 2
    assert len(events) == 1


def test_client_error_is_not_retried() -> None:
    backend = ScriptedBackend({"R1": [ClassifyResponse(404, "missing"), OK]})
    engine, events = _engine(backend)
    outcome = _run(engine)
    assert outcome.status == OutcomeStatus.ERROR
    assert outcome.error_message == "HTTP 404"
    assert len(backend.calls) == 1
    assert events == []


def test_accepted_stops_the_loop_with_processing_outcome() -> None:
    backend = ScriptedBackend({"R1": [ClassifyResponse(202, "queued"), OK]})
    engine, events = _engine(backend)
    outcome = _run(engine)
    assert outcome.status == OutcomeStatus.PROCESSING
    assert (outcome.predicted_class, outcome.probability0, outcome.probability1) == (-1, 0.0, 0.0)
    assert outcome.error_message is None
    assert len(backend.calls) == 1
    assert events == []


def test_missing_endpoint_is_configuration_error_without_retry() -> None:
    backend = ScriptedBackend(
        {"R1": [BackendConfigurationError("Classifier endpoint not configured")]},
    )
    engine, events = _engine(backend)
    outcome = _run(engine)
    assert outcome.status == OutcomeStatus.ERROR
    assert outcome.error_message == "Classifier endpoint not configured"
    assert len(backend.calls) == 1
    assert events == []


def test_zero_retries_means_single_attempt() -> None:
    backend = ScriptedBackend({"R1": [ClassifyResponse(500, "")]})
    engine, events = _engine(backend, max_retries=0)
    outcome = _run(engine)
    assert outcome.error_message == "Server error 500 after 1 attempts"
    assert len(backend.calls) == 1
    assert not any(event.kind == EventKind.ROW_RETRY for event in events)


def test_unparseable_success_is_completed_with_default() -> None:
    backend = ScriptedBackend({"R1": [ClassifyResponse(200, "I cannot decide")]})
    engine, _ = _engine(backend)
    outcome = _run(engine)
    assert outcome.status == OutcomeStatus.COMPLETE
    assert (outcome.predicted_class, outcome.probability0, outcome.probability1) == (0, 0.5, 0.5)
    assert outcome.error_message is None
