"""CLI entrypoint for row-analysis."""

import logging
from pathlib import Path

import rich_click as click

from row_analysis import __version__
from row_analysis.ingestion.csv_source import IngestionError
from row_analysis.orchestrator.controllers import (
    AnalyzeCommand,
    ClassifyCommand,
    RowAnalysisCliController,
)

click.rich_click.USE_MARKDOWN = True
CONTROLLER = RowAnalysisCliController()

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@click.group()
@click.version_option(version=__version__, prog_name="row-analysis")
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity.",
)
def row_analysis(log_level: str) -> None:
    """Classify text rows against a remote analysis endpoint."""

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@row_analysis.command("analyze")
@click.argument("csv_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--endpoint", default=None, help="Classifier endpoint URL.")
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum rows awaiting the endpoint at once (default 5).",
)
@click.option(
    "--stagger-ms",
    type=click.IntRange(min=0),
    default=None,
    help="Delay between row launches in milliseconds (default 1000).",
)
@click.option(
    "--max-retries",
    type=click.IntRange(min=0),
    default=None,
    help="Retries per row after the first attempt (default 3).",
)
@click.option(
    "--backoff-seconds",
    type=click.FloatRange(min=0),
    default=None,
    help="Linear backoff step between retries (default 10).",
)
@click.option("--no-boost", is_flag=True, help="Report confidence values without boosting.")
@click.option("--echo-backend", is_flag=True, help="Use the offline deterministic backend.")
@click.option(
    "--only",
    "only_ids",
    multiple=True,
    help="Analyze only this row id. Can be repeated.",
)
@click.option("--id-column", default=None, help="Header of the id column.")
@click.option("--primary-column", default=None, help="Header of the primary text column.")
@click.option("--secondary-column", default=None, help="Header of the secondary text column.")
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write outcomes as JSON lines.",
)
@click.option("--events", "events_json", is_flag=True, help="Print progress events as JSON lines.")
def analyze(  # noqa: PLR0913
    csv_path: Path,
    endpoint: str | None,
    concurrency: int | None,
    stagger_ms: int | None,
    max_retries: int | None,
    backoff_seconds: float | None,
    no_boost: bool,
    echo_backend: bool,
    only_ids: tuple[str, ...],
    id_column: str | None,
    primary_column: str | None,
    secondary_column: str | None,
    output_path: Path | None,
    events_json: bool,
) -> None:
    """Analyze every row of a CSV file and stream per-row results."""

    try:
        result = CONTROLLER.analyze(
            AnalyzeCommand(
                csv_path=csv_path,
                endpoint=endpoint,
                concurrency=concurrency,
                stagger_ms=stagger_ms,
                max_retries=max_retries,
                backoff_seconds=backoff_seconds,
                no_boost=no_boost,
                echo_backend=echo_backend,
                only_ids=only_ids,
                id_column=id_column,
                primary_column=primary_column,
                secondary_column=secondary_column,
                output_path=output_path,
                events_json=events_json,
            ),
            click.echo,
        )
    except (IngestionError, ValueError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Every analyzed row failed.")


@row_analysis.command("classify")
@click.option("--primary", "primary_text", default="", help="Primary (maker) text.")
@click.option("--secondary", "secondary_text", default="", help="Secondary (checker) text.")
@click.option("--endpoint", default=None, help="Classifier endpoint URL.")
@click.option("--no-boost", is_flag=True, help="Report confidence values without boosting.")
@click.option("--echo-backend", is_flag=True, help="Use the offline deterministic backend.")
def classify(
    primary_text: str,
    secondary_text: str,
    endpoint: str | None,
    no_boost: bool,
    echo_backend: bool,
) -> None:
    """Classify one manually entered row."""

    if not primary_text.strip() and not secondary_text.strip():
        raise click.UsageError("Please provide --primary and/or --secondary text.")
    try:
        result = CONTROLLER.classify(
            ClassifyCommand(
                primary_text=primary_text,
                secondary_text=secondary_text,
                endpoint=endpoint,
                no_boost=no_boost,
                echo_backend=echo_backend,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Classification failed.")


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    row_analysis()
