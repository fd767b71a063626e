from __future__ import annotations

import asyncio

import allure
import pytest

from row_analysis.config import DispatchSettings
from row_analysis.orchestrator.dispatcher import Dispatcher
from row_analysis.orchestrator.models import (
    AnalysisOutcome,
    AnalysisRequest,
    ClassificationResult,
    completed_outcome,
)

pytestmark = [
    allure.epic("Row Analysis"),
    allure.feature("Dispatcher"),
]


def _requests(count: int) -> list[AnalysisRequest]:
    return [AnalysisRequest(id=f"R{index}", primary_text="x") for index in range(count)]


def _outcome(request: AnalysisRequest) -> AnalysisOutcome:
    return completed_outcome(
        request_id=request.id,
        result=ClassificationResult(predicted_class=0, probability0=0.9, probability1=0.1),
        raw_output="",
        processing_time=0.0,
        attempts=1,
    )


async def _collect(dispatcher: Dispatcher, requests, handler) -> list[AnalysisOutcome]:
    return [outcome async for outcome in dispatcher.dispatch(requests, handler)]


def test_every_request_yields_one_outcome() -> None:
    dispatcher = Dispatcher(DispatchSettings(concurrency_limit=3, stagger_seconds=0.0))

    async def handler(request: AnalysisRequest) -> AnalysisOutcome:
        await asyncio.sleep(0)
        return _outcome(request)

    outcomes = asyncio.run(_collect(dispatcher, _requests(10), handler))
    assert sorted(outcome.id for outcome in outcomes) == sorted(f"R{i}" for i in range(10))


def test_in_flight_never_exceeds_concurrency_limit() -> None:
    dispatcher = Dispatcher(DispatchSettings(concurrency_limit=3, stagger_seconds=0.0))
    state = {"in_flight": 0, "peak": 0}

    async def handler(request: AnalysisRequest) -> AnalysisOutcome:
        state["in_flight"] += 1
        state["peak"] = max(state["peak"], state["in_flight"])
        await asyncio.sleep(0.01)
        state["in_flight"] -= 1
        return _outcome(request)

    outcomes = asyncio.run(_collect(dispatcher, _requests(12), handler))
    assert len(outcomes) == 12
    assert state["peak"] == 3


def test_launches_are_staggered_in_input_order() -> None:
    stagger = 0.03
    dispatcher = Dispatcher(DispatchSettings(concurrency_limit=10, stagger_seconds=stagger))
    starts: dict[str, float] = {}

    async def run() -> float:
        loop = asyncio.get_running_loop()
        began = loop.time()

        async def handler(request: AnalysisRequest) -> AnalysisOutcome:
            starts[request.id] = loop.time() - began
            return _outcome(request)

        await _collect(dispatcher, _requests(4), handler)
        return began

    asyncio.run(run())
    assert list(starts) == ["R0", "R1", "R2", "R3"]
    for index in range(4):
        assert starts[f"R{index}"] >= index * stagger


def test_completion_order_is_not_input_order() -> None:
    dispatcher = Dispatcher(DispatchSettings(concurrency_limit=2, stagger_seconds=0.0))
    delays = {"R0": 0.05, "R1": 0.0}

    async def handler(request: AnalysisRequest) -> AnalysisOutcome:
        await asyncio.sleep(delays[request.id])
        return _outcome(request)

    outcomes = asyncio.run(_collect(dispatcher, _requests(2), handler))
    assert [outcome.id for outcome in outcomes] == ["R1", "R0"]


def test_handler_exception_reaches_consumer() -> None:
    dispatcher = Dispatcher(DispatchSettings(concurrency_limit=2, stagger_seconds=0.0))

    async def handler(request: AnalysisRequest) -> AnalysisOutcome:
        if request.id == "R1":
            raise RuntimeError("subscriber broke")
        return _outcome(request)

    with pytest.raises(RuntimeError, match="subscriber broke"):
        asyncio.run(_collect(dispatcher, _requests(3), handler))


def test_empty_batch_yields_nothing() -> None:
    dispatcher = Dispatcher(DispatchSettings(concurrency_limit=2, stagger_seconds=0.0))

    async def handler(request: AnalysisRequest) -> AnalysisOutcome:
        raise AssertionError("handler must not run")

    assert asyncio.run(_collect(dispatcher, [], handler)) == []


def test_rejects_non_positive_limit() -> None:
    with pytest.raises(ValueError, match="concurrency_limit"):
        Dispatcher(DispatchSettings(concurrency_limit=0))
