"""Fake classifier backends shared by orchestrator tests."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from row_analysis.orchestrator.backend import (
    BackendTransportError,
    ClassifyRequest,
    ClassifyResponse,
)

Step = ClassifyResponse | BaseException


class ScriptedBackend:
    """Replays a per-row script of responses or errors, one entry per attempt.

    When a row's script runs out, its last entry repeats.
    """

    def __init__(
        self,
        scripts: dict[str, Sequence[Step]] | None = None,
        *,
        default: Step | None = None,
        latency_seconds: float = 0.0,
    ) -> None:
        self.scripts = {key: list(value) for key, value in (scripts or {}).items()}
        self.default = default or ClassifyResponse(200, "#9&7![0,0.9,0.1]#9&7!")
        self.latency_seconds = latency_seconds
        self.calls: list[ClassifyRequest] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def calls_for(self, request_id: str) -> list[ClassifyRequest]:
        return [call for call in self.calls if call.request_id == request_id]

    async def classify(self, request: ClassifyRequest) -> ClassifyResponse:
        self.calls.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.latency_seconds:
                await asyncio.sleep(self.latency_seconds)
            script = self.scripts.get(request.request_id)
            if script:
                step = script[min(request.attempt - 1, len(script) - 1)]
            else:
                step = self.default
            if isinstance(step, BaseException):
                raise step
            return step
        finally:
            self.in_flight -= 1


def transport_error(message: str = "connection reset") -> BackendTransportError:
    return BackendTransportError(message)
