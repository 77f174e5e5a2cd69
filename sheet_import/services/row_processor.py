from __future__ import annotations

import logging
import numbers
from typing import Any

from sheet_import.excel.reader import Row
from sheet_import.models.config_models import ColumnConfig, SheetConfig
from sheet_import.models.error_record import ImportErrorDetail
from sheet_import.models.row_data import RowProcessingResult, RowValues

from .cell_validator import CellValidator, value_text
from .constraints import ConstraintEvaluator, expression_variables
from .expressions import ExpressionEvaluator
from .lookup import LookupResolver
from .value_extractor import ValueExtractor

"""Row processing: one spreadsheet row in, one RowProcessingResult out.

Phases:
1. extract every configured column into an immutable ``RowValues``
2. sheet-level skip expressions (with ``exists`` / ``lookup`` helpers)
3. per column, in position order: skip_if / skip expressions, raw validation,
   allowed/excluded check on the extracted value, lookup, exists_in
4. row constraints, once every column is clean

A validation failure on one column does not stop the others, so an invalid row
reports all of its column errors at once.
"""

__all__ = [
    "RowProcessor",
    "values_match",
]

logger = logging.getLogger(__name__)


def values_match(value: Any, skip_value: Any) -> bool:
    """``skip_if`` comparison.

    None matches None, "null" and "None" (any case); two numbers compare
    numerically; anything else compares as case-insensitive text.
    """
    if value is None:
        return skip_value is None or str(skip_value).lower() in ("null", "none")
    if skip_value is None:
        return False
    if _is_number(value) and _is_number(skip_value):
        return float(value) == float(skip_value)
    left = value_text(value) or ""
    right = value_text(skip_value) or ""
    return left.lower() == right.lower()


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


class RowProcessor:
    def __init__(
        self,
        validator: CellValidator,
        extractor: ValueExtractor,
        lookups: LookupResolver,
        constraints: ConstraintEvaluator | None = None,
        evaluator: ExpressionEvaluator | None = None,
    ) -> None:
        self._validator = validator
        self._extractor = extractor
        self._lookups = lookups
        self._evaluator = evaluator or ExpressionEvaluator()
        self._constraints = constraints or ConstraintEvaluator(self._evaluator)
        # sheet-level expressions may query the database
        self._db_evaluator = ExpressionEvaluator({
            "exists": self._lookups.exists,
            "lookup": self._lookups.lookup,
        })

    def extract_row_values(self, row: Row, row_number: int, sheet: SheetConfig) -> RowValues:
        values = {
            column.name: self._extractor.extract(row.cell(idx), column)
            for idx, column in enumerate(sheet.columns)
        }
        return RowValues(row_number, values)

    def process_row(self, row: Row, row_number: int, sheet: SheetConfig) -> RowProcessingResult:
        lookups_before = self._lookups.performed
        values = self.extract_row_values(row, row_number, sheet)

        if self._sheet_skip(sheet, values):
            logger.debug("sheet=%s row=%d skipped by sheet expression", sheet.name, row_number)
            return RowProcessingResult.of_skipped(self._lookups.performed - lookups_before)

        errors: list[ImportErrorDetail] = []
        params: dict[str, Any] = {}

        for idx, column in enumerate(sheet.columns):
            value = values[column.name]

            if self._column_skip(column, value, values):
                logger.debug("sheet=%s row=%d skipped by column %s", sheet.name, row_number, column.name)
                return RowProcessingResult.of_skipped(self._lookups.performed - lookups_before)

            mapping = column.db_mapping
            if mapping is None:
                continue

            error = self._validator.validate(row.cell(idx), column)
            if error is not None:
                errors.append(ImportErrorDetail.validation(row_number, column.name, error))
                continue

            error = self._validator.validate_transformed_value(value, column)
            if error is not None:
                errors.append(ImportErrorDetail.validation(row_number, column.name, error))
                continue

            final_value = value
            if mapping.lookup is not None and value is not None:
                lk = mapping.lookup
                final_value = self._lookups.lookup(lk.table, lk.match_column, value, lk.return_column)
                if final_value is None:
                    errors.append(
                        ImportErrorDetail.lookup(
                            row_number,
                            column.name,
                            f"Lookup failed: no match for '{value_text(value)}' in {lk.table}.{lk.match_column}",
                        )
                    )
                    continue

            if mapping.exists_in is not None and value is not None:
                ex = mapping.exists_in
                if not self._lookups.exists(ex.table, ex.column, value):
                    message = ex.error_message or (
                        f"Value '{value_text(value)}' does not exist in {ex.table}.{ex.column}"
                    )
                    errors.append(ImportErrorDetail.lookup(row_number, column.name, message))
                    continue

            params[mapping.db_column] = final_value

        lookups = self._lookups.performed - lookups_before
        if errors:
            return RowProcessingResult.of_invalid(errors, lookups)

        failed = self._constraints.first_failure(values, sheet.row_constraints)
        if failed is not None:
            column_name = ", ".join(failed.columns) or None
            return RowProcessingResult.of_invalid(
                [ImportErrorDetail.validation(row_number, column_name, self._constraints.message(failed))],
                lookups,
            )

        return RowProcessingResult.of_valid(params, lookups)

    def _sheet_skip(self, sheet: SheetConfig, values: RowValues) -> bool:
        expressions = [e for e in sheet.all_skip_expressions if e and e.strip()]
        if not expressions:
            return False
        variables = expression_variables(values)
        return any(self._db_evaluator.test(e, variables) for e in expressions)

    def _column_skip(self, column: ColumnConfig, value: Any, values: RowValues) -> bool:
        if any(values_match(value, skip) for skip in column.skip_if):
            return True
        expressions = [e for e in column.all_skip_expressions if e and e.strip()]
        if not expressions:
            return False
        variables = expression_variables(values)
        variables["value"] = value
        return any(self._evaluator.test(e, variables) for e in expressions)
