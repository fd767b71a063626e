from __future__ import annotations

from pathlib import Path

import allure
import pytest

from row_analysis.ingestion.csv_source import (
    IngestionError,
    detect_columns,
    load_requests_from_csv,
)

pytestmark = [
    allure.epic("Row Analysis"),
    allure.feature("CSV Ingestion"),
]


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "rows.csv"
    path.write_text(content, encoding="utf-8")
    return path


def test_detect_columns_by_header_keywords() -> None:
    mapping = detect_columns(["Case ID", "Maker Justification", "Checker Justification"])
    assert (mapping.id_index, mapping.primary_index, mapping.secondary_index) == (0, 1, 2)


def test_detect_columns_prefers_explicit_names() -> None:
    mapping = detect_columns(
        ["ref", "notes", "review"],
        id_column="REF",
        primary_column="notes",
        secondary_column="review",
    )
    assert (mapping.id_index, mapping.primary_index, mapping.secondary_index) == (0, 1, 2)


def test_detect_columns_rejects_unknown_explicit_name() -> None:
    with pytest.raises(IngestionError, match="Column not found") as caught:
        detect_columns(["id", "primary"], secondary_column="nope")
    assert caught.value.code == "unknown_column"


def test_detect_columns_requires_a_text_column() -> None:
    with pytest.raises(IngestionError) as caught:
        detect_columns(["id", "amount"])
    assert caught.value.code == "missing_text_column"


def test_load_requests_skips_rows_without_text(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        "ID,Maker Justification,Checker Justification\n"
        "A-1, routine payment ,\n"
        "A-2,,\n"
        ",,unusual pattern\n",
    )

    requests = load_requests_from_csv(path)

    assert [request.id for request in requests] == ["A-1", "Row-3"]
    assert requests[0].primary_text == "routine payment"
    assert requests[0].secondary_text == ""
    assert requests[1].secondary_text == "unusual pattern"
    assert all(request.included for request in requests)


def test_load_requests_marks_only_selected_ids(tmp_path: Path) -> None:
    path = _write(tmp_path, "id,primary\nA,one\nB,two\nC,three\n")

    requests = load_requests_from_csv(path, only_ids=["B", " C "])

    assert [(request.id, request.included) for request in requests] == [
        ("A", False),
        ("B", True),
        ("C", True),
    ]


def test_load_requests_handles_utf8_bom(tmp_path: Path) -> None:
    path = tmp_path / "bom.csv"
    path.write_bytes("\ufeffid,secondary\nX,text\n".encode())
    (request,) = load_requests_from_csv(path)
    assert request.id == "X"


@pytest.mark.parametrize(
    ("content", "code"),
    [
        ("", "empty_file"),
        ("id,primary\n", "empty_file"),
        ("id,primary\n1,\n2,  \n", "no_rows"),
    ],
)
def test_load_requests_rejects_files_without_rows(
    tmp_path: Path,
    content: str,
    code: str,
) -> None:
    with pytest.raises(IngestionError) as caught:
        load_requests_from_csv(_write(tmp_path, content))
    assert caught.value.code == code
