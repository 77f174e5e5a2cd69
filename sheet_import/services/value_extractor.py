from __future__ import annotations

from collections.abc import Callable
from typing import Any

from sheet_import.models.cell import Cell, CellType
from sheet_import.models.config_models import ColumnConfig, ColumnType

from .cell_transformer import CellTransformer

"""Typed value extraction: the value a column contributes to the insert.

STRING / EMAIL always go through the transformation pipeline. The other types
yield their native value, or None when the cell is of the wrong kind. A
non-text column that declares transformations yields the transformed text
instead, so e.g. a DATE column with DATE_FORMAT binds the formatted string.
"""

__all__ = [
    "ValueExtractor",
]

_TYPED: dict[ColumnType, tuple[CellType, Callable[[Any], Any]]] = {
    ColumnType.DATE: (CellType.DATE, lambda v: v),
    ColumnType.INTEGER: (CellType.NUMERIC, lambda v: int(v)),
    ColumnType.DECIMAL: (CellType.NUMERIC, lambda v: float(v)),
    ColumnType.BOOLEAN: (CellType.BOOLEAN, lambda v: bool(v)),
}


class ValueExtractor:
    def __init__(self, transformer: CellTransformer) -> None:
        self._transformer = transformer

    def extract(self, cell: Cell | None, column: ColumnConfig) -> Any:
        if cell is None or cell.is_blank:
            return None
        if column.type in (ColumnType.STRING, ColumnType.EMAIL) or column.transformations:
            return self._transformer.transform(cell, column.transformations)
        expected, convert = _TYPED[column.type]
        if cell.type != expected:
            return None
        return convert(cell.value)
