"""Controllers for row analysis CLI commands."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Sequence
from contextlib import AbstractAsyncContextManager, nullcontext
from dataclasses import dataclass, replace
from pathlib import Path

from row_analysis.config import Settings
from row_analysis.ingestion.csv_source import load_requests_from_csv
from row_analysis.orchestrator.backend import (
    ClassifierBackend,
    EchoClassifierBackend,
    HttpClassifierBackend,
)
from row_analysis.orchestrator.events import (
    CompleteEvent,
    EventKind,
    ProgressEvent,
    RowResultEvent,
    RowRetryEvent,
    StatusEvent,
)
from row_analysis.orchestrator.metrics import build_batch_metrics, render_metrics_lines
from row_analysis.orchestrator.models import AnalysisOutcome, AnalysisRequest, OutcomeStatus
from row_analysis.orchestrator.services import RowAnalysisOrchestrator

LineSink = Callable[[str], None]


@dataclass(slots=True)
class AnalyzeCommand:
    """CLI input for batch analysis of a CSV file."""

    csv_path: Path
    endpoint: str | None = None
    concurrency: int | None = None
    stagger_ms: int | None = None
    max_retries: int | None = None
    backoff_seconds: float | None = None
    no_boost: bool = False
    echo_backend: bool = False
    only_ids: tuple[str, ...] = ()
    id_column: str | None = None
    primary_column: str | None = None
    secondary_column: str | None = None
    output_path: Path | None = None
    events_json: bool = False


@dataclass(slots=True)
class ClassifyCommand:
    """CLI input for a single manually entered row."""

    primary_text: str
    secondary_text: str
    endpoint: str | None = None
    no_boost: bool = False
    echo_backend: bool = False


@dataclass(slots=True)
class CommandResult:
    """Report lines to render in CLI plus overall success."""

    lines: list[str]
    success: bool


class RowAnalysisCliController:
    """Coordinates ingestion, orchestration and reporting for CLI operations."""

    def analyze(self, command: AnalyzeCommand, echo: LineSink) -> CommandResult:
        settings = _settings_for(
            endpoint=command.endpoint,
            concurrency=command.concurrency,
            stagger_ms=command.stagger_ms,
            max_retries=command.max_retries,
            backoff_seconds=command.backoff_seconds,
            no_boost=command.no_boost,
        )
        requests = load_requests_from_csv(
            command.csv_path,
            id_column=command.id_column,
            primary_column=command.primary_column,
            secondary_column=command.secondary_column,
            only_ids=command.only_ids,
        )
        renderer = _EventRenderer(echo=echo, as_json=command.events_json)
        outcomes = asyncio.run(
            _run(
                settings=settings,
                requests=requests,
                echo_backend=command.echo_backend,
                on_event=renderer,
            ),
        )

        if command.output_path is not None:
            _write_outcomes(command.output_path, outcomes)

        lines = render_metrics_lines(build_batch_metrics(outcomes))
        if command.output_path is not None:
            lines.append(f"Outcomes written: {command.output_path}")
        success = not outcomes or any(
            outcome.status is not OutcomeStatus.ERROR for outcome in outcomes
        )
        return CommandResult(lines=lines, success=success)

    def classify(self, command: ClassifyCommand) -> CommandResult:
        settings = _settings_for(endpoint=command.endpoint, no_boost=command.no_boost)
        request = AnalysisRequest(
            id="manual",
            primary_text=command.primary_text,
            secondary_text=command.secondary_text,
        )
        outcomes = asyncio.run(
            _run(settings=settings, requests=[request], echo_backend=command.echo_backend),
        )
        outcome = outcomes[0]
        if outcome.status is OutcomeStatus.ERROR:
            return CommandResult(lines=[f"Analysis failed: {outcome.error_message}"], success=False)
        if outcome.status is OutcomeStatus.PROCESSING:
            return CommandResult(
                lines=["Analysis accepted by endpoint and still processing."],
                success=True,
            )
        verdict = "flagged" if outcome.predicted_class == 1 else "not flagged"
        return CommandResult(
            lines=[
                f"Result: class={outcome.predicted_class} ({verdict}) "
                f"confidence={outcome.confidence * 100:.1f}% "
                f"time={outcome.processing_time:.2f}s",
            ],
            success=True,
        )


class _EventRenderer:
    """Turn progress events into terminal lines as they arrive."""

    def __init__(self, *, echo: LineSink, as_json: bool) -> None:
        self.echo = echo
        self.as_json = as_json
        self.total = 0
        self.resolved = 0

    def __call__(self, event: ProgressEvent) -> None:
        if self.as_json:
            self.echo(json.dumps(event.to_dict(), ensure_ascii=False))
            return
        if isinstance(event, StatusEvent):
            self.total = event.total
            self.echo(event.message)
        elif isinstance(event, RowRetryEvent):
            self.echo(f"[{event.id}] retry {event.attempt}/{event.max_attempts}")
        elif isinstance(event, RowResultEvent):
            self._render_result(event)
        elif isinstance(event, CompleteEvent):
            self.echo(event.message)

    def _render_result(self, event: RowResultEvent) -> None:
        outcome = event.outcome
        if event.kind is EventKind.ROW_PROCESSING:
            self.echo(f"[{outcome.id}] processing (accepted by endpoint)")
            return
        self.resolved += 1
        progress = f"{self.resolved}/{self.total}"
        if event.kind is EventKind.ROW_ERROR:
            self.echo(f"[{outcome.id}] error: {outcome.error_message} ({progress})")
            return
        self.echo(
            f"[{outcome.id}] class={outcome.predicted_class} "
            f"p0={outcome.probability0:.3f} p1={outcome.probability1:.3f} "
            f"time={outcome.processing_time:.2f}s ({progress})",
        )


async def _run(
    *,
    settings: Settings,
    requests: Sequence[AnalysisRequest],
    echo_backend: bool,
    on_event: Callable[[ProgressEvent], None] | None = None,
) -> list[AnalysisOutcome]:
    async with _backend(settings=settings, echo_backend=echo_backend) as backend:
        orchestrator = RowAnalysisOrchestrator(backend=backend, settings=settings)
        return await orchestrator.run_batch(requests, on_event)


def _backend(
    *,
    settings: Settings,
    echo_backend: bool,
) -> AbstractAsyncContextManager[ClassifierBackend]:
    if echo_backend:
        return nullcontext(EchoClassifierBackend())
    return HttpClassifierBackend(settings.endpoint)


def _settings_for(  # noqa: PLR0913
    *,
    endpoint: str | None = None,
    concurrency: int | None = None,
    stagger_ms: int | None = None,
    max_retries: int | None = None,
    backoff_seconds: float | None = None,
    no_boost: bool = False,
) -> Settings:
    settings = Settings.from_env()
    if endpoint is not None:
        settings.endpoint = replace(settings.endpoint, url=endpoint.strip())
    if concurrency is not None:
        settings.dispatch = replace(settings.dispatch, concurrency_limit=concurrency)
    if stagger_ms is not None:
        settings.dispatch = replace(settings.dispatch, stagger_seconds=stagger_ms / 1000)
    if max_retries is not None:
        settings.retry = replace(settings.retry, max_retries=max_retries)
    if backoff_seconds is not None:
        settings.retry = replace(settings.retry, backoff_seconds=backoff_seconds)
    if no_boost:
        settings.confidence = replace(settings.confidence, enabled=False)
    settings.validate()
    return settings


def _write_outcomes(path: Path, outcomes: Sequence[AnalysisOutcome]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        for outcome in outcomes:
            handle.write(json.dumps(outcome.to_dict(), ensure_ascii=False))
            handle.write("\n")
