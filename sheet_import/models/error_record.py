from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from enum import Enum

"""Error models for the import pipeline.

``ImportErrorDetail`` is the in-memory error carried on sheet results.
``ErrorRecord`` is its JSON Lines form written by ``ErrorLogBuffer``; the key
set of a record is fixed (see tests/contract/test_error_log_schema_contract.py).
Row 0 marks a sheet-level error, -1 a file-level one.
"""

__all__ = [
    "ErrorType",
    "ImportErrorDetail",
    "ErrorRecord",
]


class ErrorType(str, Enum):
    VALIDATION = "VALIDATION"
    LOOKUP = "LOOKUP"
    DATABASE = "DATABASE"


@dataclass(frozen=True)
class ImportErrorDetail:
    row_number: int  # 1-based spreadsheet row, 0 = sheet level
    column_name: str | None
    message: str
    error_type: ErrorType

    @staticmethod
    def validation(row_number: int, column_name: str | None, message: str) -> ImportErrorDetail:
        return ImportErrorDetail(row_number, column_name, message, ErrorType.VALIDATION)

    @staticmethod
    def lookup(row_number: int, column_name: str | None, message: str) -> ImportErrorDetail:
        return ImportErrorDetail(row_number, column_name, message, ErrorType.LOOKUP)

    @staticmethod
    def database(row_number: int, message: str) -> ImportErrorDetail:
        return ImportErrorDetail(row_number, None, message, ErrorType.DATABASE)

    def to_dict(self) -> dict[str, object]:
        return {
            "row": self.row_number,
            "column": self.column_name,
            "message": self.message,
            "error_type": self.error_type.value,
        }


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: workbook name being processed
        sheet: sheet name within the workbook
        row: 1-based row number, 0 for sheet-level and -1 for file-level errors
        column: column name, or None when the error is not tied to a column
        error_type: VALIDATION / LOOKUP / DATABASE
        message: human readable description
    """
    timestamp: str
    file: str
    sheet: str
    row: int
    column: str | None
    error_type: str
    message: str

    @staticmethod
    def create(
        file: str,
        sheet: str,
        row: int,
        error_type: str,
        message: str,
        column: str | None = None,
    ) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            sheet=sheet,
            row=row,
            column=column,
            error_type=error_type,
            message=message,
        )

    @staticmethod
    def from_detail(file: str, sheet: str, detail: ImportErrorDetail) -> ErrorRecord:
        return ErrorRecord.create(
            file=file,
            sheet=sheet,
            row=detail.row_number,
            error_type=detail.error_type.value,
            message=detail.message,
            column=detail.column_name,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
