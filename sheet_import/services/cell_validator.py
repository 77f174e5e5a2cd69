from __future__ import annotations

import math
import re
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sheet_import.models.cell import Cell, CellType
from sheet_import.models.config_models import ColumnConfig, ColumnType, ColumnValidation

"""Cell validation.

``validate`` checks a raw cell before any transformation: presence, type, then
the rules of ``ColumnValidation`` in a fixed order (regex, length, numeric
range, past/future), stopping at the first failure. ``validate_transformed_value``
checks the allowed/excluded lists against the value after transformation.
"""

__all__ = [
    "CellValidator",
    "EMAIL_PATTERN",
    "value_text",
]

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def value_text(value: Any) -> str | None:
    """Natural text of an extracted value, as used for list membership checks."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return Cell.of(value).as_text()


def _is_integer(value: float | int) -> bool:
    if isinstance(value, int):
        return True
    return math.isfinite(value) and value == math.floor(value)


_TYPE_CHECKS: dict[ColumnType, Callable[[Cell], bool]] = {
    ColumnType.STRING: lambda c: c.type == CellType.STRING,
    ColumnType.EMAIL: lambda c: c.type == CellType.STRING and EMAIL_PATTERN.match(c.value.strip()) is not None,
    ColumnType.INTEGER: lambda c: c.type == CellType.NUMERIC and _is_integer(c.value),
    ColumnType.DECIMAL: lambda c: c.type == CellType.NUMERIC,
    ColumnType.BOOLEAN: lambda c: c.type == CellType.BOOLEAN,
    ColumnType.DATE: lambda c: c.type == CellType.DATE,
}


def _describe(cell: Cell) -> str:
    if cell.type == CellType.STRING:
        return f"STRING ({cell.value})"
    if cell.type == CellType.NUMERIC:
        return f"NUMBER ({float(cell.value)})"
    if cell.type == CellType.BOOLEAN:
        return f"BOOLEAN ({'true' if cell.value else 'false'})"
    if cell.type == CellType.DATE:
        return "DATE"
    return cell.type.value


class CellValidator:
    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock

    def validate(self, cell: Cell | None, column: ColumnConfig) -> str | None:
        """Return an error message for ``cell`` or None when it is acceptable."""
        validation = column.validation
        if cell is None or cell.is_blank:
            if validation is not None and validation.not_empty:
                return f"Value is required at column: {column.name}"
            return None

        if not _TYPE_CHECKS[column.type](cell):
            return (
                f"Invalid type for column '{column.name}'. "
                f"Expected {column.type.value} but found {_describe(cell)}"
            )

        if validation is not None:
            rule_error = self._validate_rules(cell, validation)
            if rule_error is not None:
                return f"Validation failed for column '{column.name}': {rule_error}"
        return None

    def _validate_rules(self, cell: Cell, validation: ColumnValidation) -> str | None:
        text = cell.as_text() if cell.type in (CellType.STRING, CellType.NUMERIC, CellType.DATE) else None

        if validation.regex and text is not None:
            if re.fullmatch(validation.regex, text) is None:
                return f"Value '{text}' does not match regex: {validation.regex}"

        if text is not None:
            length = len(text)
            if validation.min_length is not None and length < validation.min_length:
                return f"Value length {length} is less than min length {validation.min_length}"
            if validation.max_length is not None and length > validation.max_length:
                return f"Value length {length} exceeds max length {validation.max_length}"

        if cell.is_numeric:
            number = float(cell.value)
            if validation.min is not None and number < validation.min:
                return f"Value {number} is less than min {validation.min}"
            if validation.max is not None and number > validation.max:
                return f"Value {number} exceeds max {validation.max}"

        if cell.is_date:
            now = self._clock()
            if validation.past and not cell.value < now:
                return "Date must be in the past"
            if validation.future and not cell.value > now:
                return "Date must be in the future"

        return None

    def validate_transformed_value(self, value: Any, column: ColumnConfig) -> str | None:
        validation = column.validation
        if validation is None:
            return None
        text = value_text(value)
        if text is None:
            return None

        if validation.allowed_values and text not in validation.allowed_values:
            allowed = ", ".join(validation.allowed_values)
            return (
                f"Validation failed for column '{column.name}': "
                f"Value '{text}' is not in the allowed list: [{allowed}]"
            )
        if validation.excluded_values and text in validation.excluded_values:
            return (
                f"Validation failed for column '{column.name}': "
                f"Value '{text}' is in the excluded list"
            )
        return None
