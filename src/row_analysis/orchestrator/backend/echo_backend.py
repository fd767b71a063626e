"""Local deterministic backend for offline runs and integration tests."""

from __future__ import annotations

import asyncio
import hashlib

from row_analysis.orchestrator.backend.base import ClassifyRequest, ClassifyResponse
from row_analysis.orchestrator.parser import format_sandwich

_FLAG_KEYWORDS: tuple[str, ...] = (
    "structuring",
    "watch list",
    "high-risk",
    "unusual",
    "suspicious",
)


class EchoClassifierBackend:
    """Answer every request with a sandwiched verdict derived from the text.

    Texts containing a flag keyword are class 1, everything else class 0. The
    confidence comes from a hash of the text so repeated runs agree.
    """

    def __init__(self, *, latency_seconds: float = 0.0) -> None:
        self.latency_seconds = latency_seconds
        self.calls = 0

    async def classify(self, request: ClassifyRequest) -> ClassifyResponse:
        self.calls += 1
        if self.latency_seconds > 0:
            await asyncio.sleep(self.latency_seconds)

        digest = hashlib.sha256(request.text.encode("utf-8")).digest()
        lowered = request.text.lower()
        flagged = any(keyword in lowered for keyword in _FLAG_KEYWORDS)
        # 0.51..0.99 so some verdicts land inside the boost band
        confidence = round(0.51 + (digest[0] % 49) / 100, 2)
        if flagged:
            body = format_sandwich(1, round(1 - confidence, 2), confidence)
        else:
            body = format_sandwich(0, confidence, round(1 - confidence, 2))
        return ClassifyResponse(status_code=200, text=f"Verdict: {body}")
