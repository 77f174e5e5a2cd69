from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from .error_record import ImportErrorDetail

"""Row-level models.

``RowValues`` is the read-only view of one row (column name -> extracted value)
that skip expressions and row constraints are evaluated against. It is built
once per row and never mutated. ``RowProcessingResult`` is what the row
processor hands back to the orchestrator.
"""

__all__ = [
    "RowValues",
    "RowProcessingResult",
]


class RowValues(Mapping[str, Any]):
    """Immutable column name -> value mapping for one spreadsheet row."""

    __slots__ = ("_row_number", "_values")

    def __init__(self, row_number: int, values: Mapping[str, Any]) -> None:
        self._row_number = row_number
        self._values = MappingProxyType(dict(values))

    @property
    def row_number(self) -> int:
        return self._row_number

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"RowValues(row={self._row_number}, values={dict(self._values)!r})"


@dataclass(frozen=True)
class RowProcessingResult:
    valid: bool
    skipped: bool
    named_params: Mapping[str, Any] | None = None  # db_column -> value, valid rows only
    errors: tuple[ImportErrorDetail, ...] = ()
    lookups: int = 0  # lookup / exists queries issued while processing the row

    @staticmethod
    def of_valid(named_params: Mapping[str, Any], lookups: int = 0) -> RowProcessingResult:
        return RowProcessingResult(
            valid=True, skipped=False, named_params=MappingProxyType(dict(named_params)), lookups=lookups
        )

    @staticmethod
    def of_skipped(lookups: int = 0) -> RowProcessingResult:
        return RowProcessingResult(valid=False, skipped=True, lookups=lookups)

    @staticmethod
    def of_invalid(errors: list[ImportErrorDetail] | tuple[ImportErrorDetail, ...], lookups: int = 0) -> RowProcessingResult:
        return RowProcessingResult(valid=False, skipped=False, errors=tuple(errors), lookups=lookups)
