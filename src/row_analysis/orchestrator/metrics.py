"""Batch-level metrics over analysis outcomes."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from row_analysis.orchestrator.models import AnalysisOutcome, OutcomeStatus


@dataclass(slots=True)
class BatchMetricsSnapshot:
    """Aggregate counters and averages for one batch."""

    total: int
    analyzed: int
    processing: int
    errors: int
    flagged: int
    not_flagged: int
    flagged_rate: float | None
    avg_processing_time: float | None
    avg_probability0: float | None
    avg_probability1: float | None


def build_batch_metrics(outcomes: Sequence[AnalysisOutcome]) -> BatchMetricsSnapshot:
    """Aggregate outcomes; processing rows are excluded from the analyzed averages."""

    analyzed = [outcome for outcome in outcomes if outcome.status is not OutcomeStatus.PROCESSING]
    flagged = sum(1 for outcome in analyzed if outcome.predicted_class == 1)
    not_flagged = sum(1 for outcome in analyzed if outcome.predicted_class == 0)
    errors = sum(1 for outcome in analyzed if outcome.status is OutcomeStatus.ERROR)
    return BatchMetricsSnapshot(
        total=len(outcomes),
        analyzed=len(analyzed),
        processing=len(outcomes) - len(analyzed),
        errors=errors,
        flagged=flagged,
        not_flagged=not_flagged,
        flagged_rate=_ratio(flagged, len(analyzed)),
        avg_processing_time=_mean([outcome.processing_time for outcome in analyzed]),
        avg_probability0=_mean([outcome.probability0 for outcome in analyzed]),
        avg_probability1=_mean([outcome.probability1 for outcome in analyzed]),
    )


def render_metrics_lines(snapshot: BatchMetricsSnapshot) -> list[str]:
    """Render operator-facing metrics lines for CLI output."""

    return [
        "Batch summary",
        (
            f"Rows: total={snapshot.total} analyzed={snapshot.analyzed} "
            f"processing={snapshot.processing} errors={snapshot.errors}"
        ),
        (
            f"Classes: flagged={snapshot.flagged} not_flagged={snapshot.not_flagged} "
            f"flagged_rate={_fmt_ratio(snapshot.flagged_rate)}"
        ),
        f"Average processing time: {_fmt_seconds(snapshot.avg_processing_time)}",
        (
            "Average probabilities: "
            f"p0={_fmt_ratio(snapshot.avg_probability0)} "
            f"p1={_fmt_ratio(snapshot.avg_probability1)}"
        ),
    ]


def _ratio(numerator: int, denominator: int) -> float | None:
    if denominator <= 0:
        return None
    return numerator / denominator


def _mean(values: list[float]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


def _fmt_ratio(value: float | None) -> str:
    if value is None:
        return "n/a"
    return f"{value * 100:.1f}%"


def _fmt_seconds(value: float | None) -> str:
    if value is None:
        return "n/a"
    return f"{value:.2f}s"
