from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""Reports for the read-only workbook use cases (validate / transform).

These never touch the database; they describe what an import would see.
"""

__all__ = [
    "RowValidationError",
    "SheetValidationReport",
    "WorkbookValidationReport",
    "TransformedRow",
    "SheetTransformationResult",
    "WorkbookTransformationResult",
    "format_file_size",
]


@dataclass(frozen=True)
class RowValidationError:
    row_number: int
    column_name: str
    message: str


@dataclass(frozen=True)
class SheetValidationReport:
    sheet_name: str
    total_rows: int
    valid_rows: int
    invalid_rows: int
    row_errors: tuple[RowValidationError, ...] = ()  # first error of each invalid row

    @property
    def is_valid(self) -> bool:
        return self.invalid_rows == 0


@dataclass(frozen=True)
class WorkbookValidationReport:
    filename: str
    file_size: str  # human readable, e.g. "12.4 KB"
    sheets: tuple[SheetValidationReport, ...] = ()

    @property
    def is_valid(self) -> bool:
        return all(s.is_valid for s in self.sheets)

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "file_size": self.file_size,
            "valid": self.is_valid,
            "sheets": [
                {
                    "sheet": s.sheet_name,
                    "total_rows": s.total_rows,
                    "valid_rows": s.valid_rows,
                    "invalid_rows": s.invalid_rows,
                    "errors": [
                        {"row": e.row_number, "column": e.column_name, "message": e.message}
                        for e in s.row_errors
                    ],
                }
                for s in self.sheets
            ],
        }


@dataclass(frozen=True)
class TransformedRow:
    row_number: int
    values: dict[str, str | None]  # column name -> transformed text


@dataclass(frozen=True)
class SheetTransformationResult:
    sheet_name: str
    rows: tuple[TransformedRow, ...] = ()


@dataclass(frozen=True)
class WorkbookTransformationResult:
    filename: str
    sheets: tuple[SheetTransformationResult, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "sheets": [
                {
                    "sheet": s.sheet_name,
                    "rows": [{"row": r.row_number, "values": r.values} for r in s.rows],
                }
                for s in self.sheets
            ],
        }


def format_file_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"
