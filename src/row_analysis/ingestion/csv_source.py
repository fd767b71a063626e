"""CSV ingestion of analysis requests with header-based column detection."""

from __future__ import annotations

import csv
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from row_analysis.orchestrator.models import AnalysisRequest

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IngestionError(Exception):
    """Input file cannot be turned into analysis requests."""

    message: str
    code: str = "ingestion_error"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class ColumnMapping:
    """Resolved column indices; ``None`` means the column is absent."""

    id_index: int | None
    primary_index: int | None
    secondary_index: int | None


def detect_columns(
    headers: Sequence[str],
    *,
    id_column: str | None = None,
    primary_column: str | None = None,
    secondary_column: str | None = None,
) -> ColumnMapping:
    """Find id / primary / secondary columns, explicit names taking precedence."""

    normalized = [header.strip().lower() for header in headers]
    mapping = ColumnMapping(
        id_index=_explicit_or_detected(
            normalized,
            id_column,
            lambda header: "id" in header,
        ),
        primary_index=_explicit_or_detected(
            normalized,
            primary_column,
            lambda header: ("maker" in header and "justification" in header)
            or "primary" in header,
        ),
        secondary_index=_explicit_or_detected(
            normalized,
            secondary_column,
            lambda header: ("checker" in header and "justification" in header)
            or "secondary" in header,
        ),
    )
    if mapping.primary_index is None and mapping.secondary_index is None:
        raise IngestionError(
            "No text column found. Expected headers like 'Maker Justification' "
            f"or 'Checker Justification', got: {list(headers)!r}",
            code="missing_text_column",
        )
    return mapping


def load_requests_from_csv(
    path: Path,
    *,
    id_column: str | None = None,
    primary_column: str | None = None,
    secondary_column: str | None = None,
    only_ids: Iterable[str] = (),
) -> list[AnalysisRequest]:
    """Read rows from CSV; rows without any text are dropped."""

    with path.open(newline="", encoding="utf-8-sig") as handle:
        rows = list(csv.reader(handle))
    if len(rows) < 2:  # noqa: PLR2004
        raise IngestionError(
            f"File appears to be empty or has no data rows: {path}",
            code="empty_file",
        )

    mapping = detect_columns(
        rows[0],
        id_column=id_column,
        primary_column=primary_column,
        secondary_column=secondary_column,
    )
    selected_ids = {value.strip() for value in only_ids if value.strip()}

    requests: list[AnalysisRequest] = []
    for position, row in enumerate(rows[1:], start=1):
        request_id = _cell(row, mapping.id_index) or f"Row-{position}"
        primary = _cell(row, mapping.primary_index)
        secondary = _cell(row, mapping.secondary_index)
        if not primary and not secondary:
            continue
        requests.append(
            AnalysisRequest(
                id=request_id,
                primary_text=primary,
                secondary_text=secondary,
                included=not selected_ids or request_id in selected_ids,
            ),
        )

    if not requests:
        raise IngestionError(
            f"No valid data found in {path}. Please check the file format.",
            code="no_rows",
        )
    logger.info("Loaded %d rows from %s", len(requests), path)
    return requests


def _explicit_or_detected(
    headers: list[str],
    explicit: str | None,
    predicate: Callable[[str], bool],
) -> int | None:
    if explicit is not None:
        wanted = explicit.strip().lower()
        if wanted not in headers:
            raise IngestionError(f"Column not found: {explicit!r}", code="unknown_column")
        return headers.index(wanted)
    for index, header in enumerate(headers):
        if header and predicate(header):
            return index
    return None


def _cell(row: list[str], index: int | None) -> str:
    if index is None or index >= len(row):
        return ""
    return row[index].strip()
