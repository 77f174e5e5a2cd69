from __future__ import annotations

import logging

from sheet_import.excel.reader import Sheet, Workbook
from sheet_import.models.config_models import FileConfig, SheetConfig
from sheet_import.models.sheet_process import (
    RowValidationError,
    SheetTransformationResult,
    SheetValidationReport,
    TransformedRow,
    WorkbookTransformationResult,
    WorkbookValidationReport,
    format_file_size,
)

from .cell_transformer import CellTransformer
from .cell_validator import CellValidator

"""Read-only workbook use cases: validate and transform without importing.

Both walk every configured sheet, including sheets without a target table, and
never touch the database.
"""

__all__ = [
    "SheetStructureError",
    "check_header",
    "validate_workbook",
    "transform_workbook",
]

logger = logging.getLogger(__name__)


class SheetStructureError(Exception):
    """A configured sheet is missing or its header row does not match the configured columns."""


def _require_sheet(workbook: Workbook, cfg: SheetConfig) -> Sheet:
    sheet = workbook.sheet(cfg.name)
    if sheet is None:
        raise SheetStructureError(f"Sheet not found: {cfg.name}")
    return sheet


def check_header(sheet: Sheet, cfg: SheetConfig) -> None:
    """Compare the first row with the configured column names (case-insensitive)."""
    header = sheet.header()
    for idx, column in enumerate(cfg.columns):
        actual = header[idx] if idx < len(header) else ""
        if actual.lower() != column.name.strip().lower():
            raise SheetStructureError(
                f"Header mismatch in sheet '{cfg.name}' at column {idx + 1}: "
                f"expected '{column.name}' but found '{actual}'"
            )


def validate_workbook(
    workbook: Workbook,
    file_config: FileConfig,
    validator: CellValidator | None = None,
) -> WorkbookValidationReport:
    """Validate every data row; each invalid row reports its first failing cell.

    Raises:
        SheetStructureError: a sheet is missing or its header does not match
    """
    validator = validator or CellValidator()
    reports: list[SheetValidationReport] = []
    for cfg in file_config.sheets:
        sheet = _require_sheet(workbook, cfg)
        check_header(sheet, cfg)

        total = 0
        row_errors: list[RowValidationError] = []
        for row in sheet.data_rows():
            total += 1
            for idx, column in enumerate(cfg.columns):
                message = validator.validate(row.cell(idx), column)
                if message is not None:
                    row_errors.append(RowValidationError(row.number, column.name, message))
                    break

        invalid = len(row_errors)
        logger.info("validate sheet=%s rows=%d invalid=%d", cfg.name, total, invalid)
        reports.append(
            SheetValidationReport(
                sheet_name=cfg.name,
                total_rows=total,
                valid_rows=total - invalid,
                invalid_rows=invalid,
                row_errors=tuple(row_errors),
            )
        )
    return WorkbookValidationReport(
        filename=workbook.name,
        file_size=format_file_size(workbook.size_bytes),
        sheets=tuple(reports),
    )


def transform_workbook(
    workbook: Workbook,
    file_config: FileConfig,
    transformer: CellTransformer | None = None,
) -> WorkbookTransformationResult:
    """Run every cell through its column's transformation pipeline.

    Raises:
        SheetStructureError: a configured sheet is missing
    """
    transformer = transformer or CellTransformer()
    sheets: list[SheetTransformationResult] = []
    for cfg in file_config.sheets:
        sheet = _require_sheet(workbook, cfg)
        rows = tuple(
            TransformedRow(
                row_number=row.number,
                values={
                    column.name: transformer.transform(row.cell(idx), column.transformations)
                    for idx, column in enumerate(cfg.columns)
                },
            )
            for row in sheet.data_rows()
        )
        sheets.append(SheetTransformationResult(sheet_name=cfg.name, rows=rows))
    return WorkbookTransformationResult(filename=workbook.name, sheets=tuple(sheets))
