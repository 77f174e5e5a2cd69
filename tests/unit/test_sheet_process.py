from __future__ import annotations

import pytest

from sheet_import.models.sheet_process import (
    RowValidationError,
    SheetTransformationResult,
    SheetValidationReport,
    TransformedRow,
    WorkbookTransformationResult,
    WorkbookValidationReport,
    format_file_size,
)


@pytest.mark.parametrize(
    "size,expected",
    [(0, "0 B"), (1023, "1023 B"), (1024, "1.0 KB"), (12_700, "12.4 KB"), (3 * 1024 * 1024, "3.0 MB")],
)
def test_format_file_size(size, expected):
    assert format_file_size(size) == expected


def test_validation_report():
    ok = SheetValidationReport("Teams", total_rows=2, valid_rows=2, invalid_rows=0)
    bad = SheetValidationReport(
        "People",
        total_rows=3,
        valid_rows=2,
        invalid_rows=1,
        row_errors=(RowValidationError(4, "Age", "Value is required at column: Age"),),
    )
    assert ok.is_valid and not bad.is_valid
    report = WorkbookValidationReport("people.xlsx", "5.1 KB", (ok, bad))
    assert not report.is_valid
    d = report.to_dict()
    assert d["valid"] is False
    assert d["sheets"][1]["errors"] == [
        {"row": 4, "column": "Age", "message": "Value is required at column: Age"}
    ]


def test_transformation_result_to_dict():
    result = WorkbookTransformationResult(
        "people.xlsx",
        (SheetTransformationResult("People", (TransformedRow(2, {"Name": "JOHN", "Age": None}),)),),
    )
    assert result.to_dict() == {
        "filename": "people.xlsx",
        "sheets": [{"sheet": "People", "rows": [{"row": 2, "values": {"Name": "JOHN", "Age": None}}]}],
    }
