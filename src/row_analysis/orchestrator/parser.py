"""Best-effort classification recovery from remote endpoint responses.

The endpoint embeds its verdict in free text as ``#9&7![class,p0,p1]#9&7!``.
Some deployments wrap the model transcript in a JSON list of chat messages,
in which case the verdict lives inside the assistant message text. Anything
else degrades to an explicit "unknown" default instead of failing the row.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from row_analysis.orchestrator.models import ClassificationResult

logger = logging.getLogger(__name__)

SANDWICH_MARKER = "#9&7!"
DEFAULT_RESULT = ClassificationResult(predicted_class=0, probability0=0.5, probability1=0.5)

_SANDWICH_PATTERN = re.compile(
    re.escape(SANDWICH_MARKER)
    + r"\[([0-9]+),([0-9]+\.?[0-9]*),([0-9]+\.?[0-9]*)\]"
    + re.escape(SANDWICH_MARKER),
)

ParseStrategy = Callable[[str], ClassificationResult | None]


@dataclass(frozen=True, slots=True)
class ParseOutcome:
    """Parsed result together with the strategy that produced it."""

    result: ClassificationResult
    strategy: str

    @property
    def used_default(self) -> bool:
        return self.strategy == "default"


def format_sandwich(predicted_class: int, probability0: float, probability1: float) -> str:
    """Render a verdict in the sandwich format understood by `parse_response`."""

    return f"{SANDWICH_MARKER}[{predicted_class},{probability0},{probability1}]{SANDWICH_MARKER}"


def sandwich_strategy(text: str) -> ClassificationResult | None:
    match = _SANDWICH_PATTERN.search(text)
    if match is None:
        return None
    return ClassificationResult(
        predicted_class=int(match.group(1)),
        probability0=float(match.group(2)),
        probability1=float(match.group(3)),
    )


def envelope_strategy(text: str) -> ClassificationResult | None:
    """Search assistant messages of a JSON chat transcript for a sandwiched verdict."""

    try:
        payload = json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        return None
    if not isinstance(payload, list):
        return None

    for message in payload:
        content_text = _assistant_text(message)
        if content_text is None:
            continue
        result = sandwich_strategy(content_text)
        if result is not None:
            return result
    return None


def _assistant_text(message: object) -> str | None:
    if not isinstance(message, dict) or message.get("role") != "assistant":
        return None
    content = message.get("content")
    if not isinstance(content, list) or not content:
        return None
    first = content[0]
    if not isinstance(first, dict):
        return None
    text = first.get("text")
    if not isinstance(text, dict):
        return None
    value = text.get("value")
    if not isinstance(value, str):
        return None
    return value


DEFAULT_STRATEGIES: tuple[tuple[str, ParseStrategy], ...] = (
    ("sandwich", sandwich_strategy),
    ("envelope", envelope_strategy),
)


class ResponseParser:
    """Ordered chain of parse strategies with a safe default at the end."""

    def __init__(
        self,
        strategies: Sequence[tuple[str, ParseStrategy]] = DEFAULT_STRATEGIES,
    ) -> None:
        self.strategies = tuple(strategies)

    def parse(self, response_text: str) -> ClassificationResult:
        return self.parse_detailed(response_text).result

    def parse_detailed(self, response_text: str) -> ParseOutcome:
        text = response_text if isinstance(response_text, str) else ""
        for name, strategy in self.strategies:
            try:
                result = strategy(text)
            except Exception:  # noqa: BLE001
                logger.debug("Parse strategy %s raised, trying next", name, exc_info=True)
                continue
            if result is not None:
                logger.debug("Parse strategy %s matched: %s", name, result)
                return ParseOutcome(result=result, strategy=name)

        logger.debug("No parse strategy matched, using default: %.200s", text)
        return ParseOutcome(result=DEFAULT_RESULT, strategy="default")


def parse_response(response_text: str) -> ClassificationResult:
    """Parse with the default strategy chain."""

    return ResponseParser().parse(response_text)
