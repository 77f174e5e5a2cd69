from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Any

import numpy as np
import pandas as pd

"""Cell model: a single spreadsheet value tagged with its kind.

pandas hands back a mix of str / int / float / bool / Timestamp / NaN for an
object-typed sheet. ``Cell.of`` folds all of that into one of the tags below so
the validator and transformer never have to look at pandas types directly.
"""

__all__ = [
    "CellType",
    "Cell",
]


class CellType(str, Enum):
    STRING = "STRING"
    NUMERIC = "NUMERIC"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"
    BLANK = "BLANK"
    FORMULA = "FORMULA"


def _format_number(value: float | int) -> str:
    if isinstance(value, int):
        return str(value)
    if math.isfinite(value) and value == int(value):
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class Cell:
    type: CellType
    value: Any = None  # str / float / int / bool / datetime, formula text for FORMULA

    @staticmethod
    def of(value: Any, null_sentinels: frozenset[str] | None = None) -> Cell:
        """Build a Cell from a raw pandas/openpyxl value.

        Parameters:
            value: raw value as returned by ``DataFrame.values.tolist()``
            null_sentinels: upper-cased texts that are read as a blank cell
        """
        if value is None or value is pd.NaT:
            return Cell(CellType.BLANK)
        if isinstance(value, str):
            if value == "":
                return Cell(CellType.BLANK)
            if null_sentinels and value.strip().upper() in null_sentinels:
                return Cell(CellType.BLANK)
            return Cell(CellType.STRING, value)
        # bool before numbers: bool is an int subclass
        if isinstance(value, (bool, np.bool_)):
            return Cell(CellType.BOOLEAN, bool(value))
        if isinstance(value, pd.Timestamp):
            return Cell(CellType.DATE, value.to_pydatetime())
        if isinstance(value, datetime):
            return Cell(CellType.DATE, value)
        if isinstance(value, date):
            return Cell(CellType.DATE, datetime(value.year, value.month, value.day))
        if isinstance(value, numbers.Integral):
            return Cell(CellType.NUMERIC, int(value))
        if isinstance(value, numbers.Real):
            if math.isnan(float(value)):
                return Cell(CellType.BLANK)
            return Cell(CellType.NUMERIC, float(value))
        if isinstance(value, time):
            return Cell(CellType.STRING, value.isoformat())
        return Cell(CellType.STRING, str(value))

    # The pandas reader hands back cached formula results, so it never builds
    # a FORMULA cell. Only callers holding raw formula text construct one.
    @staticmethod
    def formula(text: str) -> Cell:
        return Cell(CellType.FORMULA, text)

    @property
    def is_blank(self) -> bool:
        return self.type == CellType.BLANK

    @property
    def is_numeric(self) -> bool:
        return self.type == CellType.NUMERIC

    @property
    def is_date(self) -> bool:
        return self.type == CellType.DATE

    def as_text(self) -> str | None:
        """Natural string form: ISO dates, whole numbers without a decimal point."""
        if self.type == CellType.BLANK:
            return None
        if self.type == CellType.NUMERIC:
            return _format_number(self.value)
        if self.type == CellType.BOOLEAN:
            return "true" if self.value else "false"
        if self.type == CellType.DATE:
            return self.value.date().isoformat()
        return str(self.value)
