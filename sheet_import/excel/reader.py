from __future__ import annotations

import io
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any

import pandas as pd

from sheet_import.models.cell import Cell
from sheet_import.remote.fetcher import RemoteSourceError, UrlFetcher, is_url, url_filename

"""Workbook reader on top of pandas (openpyxl engine).

Row 1 (index 0) is the header row, data starts at row 2 (index 1). Sheets are
parsed lazily on first access with ``header=None`` and ``keep_default_na=False``
so texts like "NA" stay texts; configured null sentinels are folded to blank
cells by ``Cell.of`` instead.
"""

__all__ = [
    "WorkbookError",
    "Row",
    "Sheet",
    "Workbook",
    "open_workbook",
]


class WorkbookError(Exception):
    """Raised when a workbook cannot be opened or a sheet cannot be parsed."""


@dataclass(frozen=True)
class Row:
    index: int  # 0-based position in the sheet
    cells: tuple[Cell, ...]

    @property
    def number(self) -> int:
        """1-based spreadsheet row number."""
        return self.index + 1

    def cell(self, column_index: int) -> Cell | None:
        if 0 <= column_index < len(self.cells):
            return self.cells[column_index]
        return None

    @property
    def is_blank(self) -> bool:
        return all(c.is_blank for c in self.cells)


class Sheet:
    def __init__(self, name: str, raw_rows: list[list[Any]], null_sentinels: frozenset[str]) -> None:
        self.name = name
        self._rows: list[Row] = [
            Row(index=i, cells=tuple(Cell.of(v, null_sentinels) for v in raw))
            for i, raw in enumerate(raw_rows)
        ]

    @property
    def last_row_index(self) -> int:
        """Index of the last physical row, -1 for an empty sheet."""
        return len(self._rows) - 1

    def row(self, index: int) -> Row | None:
        """Return the row at ``index`` or None when it is out of range or entirely blank."""
        if index < 0 or index >= len(self._rows):
            return None
        r = self._rows[index]
        if r.is_blank:
            return None
        return r

    def header(self) -> list[str]:
        first = self.row(0)
        if first is None:
            return []
        return [(c.as_text() or "").strip() for c in first.cells]

    def data_rows(self) -> Iterator[Row]:
        """Yield non-blank rows from the second row onward."""
        for idx in range(1, self.last_row_index + 1):
            r = self.row(idx)
            if r is not None:
                yield r


class Workbook:
    def __init__(self, excel: pd.ExcelFile, name: str, size_bytes: int, null_sentinels: frozenset[str]) -> None:
        self._excel = excel
        self.name = name
        self.size_bytes = size_bytes
        self._null_sentinels = null_sentinels
        self._sheets: dict[str, Sheet] = {}

    @property
    def sheet_names(self) -> list[str]:
        return [str(n) for n in self._excel.sheet_names]

    def sheet(self, name: str) -> Sheet | None:
        if name in self._sheets:
            return self._sheets[name]
        if name not in self.sheet_names:
            return None
        try:
            df = self._excel.parse(name, header=None, keep_default_na=False)
        except Exception as e:
            raise WorkbookError(f"failed to parse sheet '{name}' in {self.name}: {e}") from e
        raw_rows = df.astype(object).values.tolist()
        sheet = Sheet(name, raw_rows, self._null_sentinels)
        self._sheets[name] = sheet
        return sheet

    def close(self) -> None:
        self._excel.close()

    def __enter__(self) -> Workbook:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def open_workbook(
    source: Path | str | IO[bytes],
    null_sentinels: Iterable[str] | None = None,
    name: str | None = None,
    fetcher: UrlFetcher | None = None,
) -> Workbook:
    """Open a workbook from a path, an http(s) URL or a binary stream.

    Parameters
    ----------
    source: path to an .xlsx file, an http(s) URL, or a readable binary stream
    null_sentinels: cell texts (case-insensitive, surrounding whitespace ignored) read as blank
    name: display name; defaults to the file name of ``source``
    fetcher: downloads URL sources; the default one has an empty allow-list
    """
    sentinels = frozenset(s.strip().upper() for s in (null_sentinels or ()) if isinstance(s, str))
    size_bytes = 0
    if is_url(source):
        url = str(source)
        try:
            data = (fetcher or UrlFetcher()).fetch(url)
        except RemoteSourceError as e:
            raise WorkbookError(f"cannot download workbook: {e}") from e
        source = io.BytesIO(data)
        size_bytes = len(data)
        display = name or url_filename(url)
    elif isinstance(source, (str, Path)):
        path = Path(source)
        if not path.exists():
            raise WorkbookError(f"workbook not found: {path}")
        size_bytes = path.stat().st_size
        display = name or path.name
    else:
        display = name or getattr(source, "name", "<stream>")
    try:
        excel = pd.ExcelFile(source, engine="openpyxl")
    except Exception as e:
        raise WorkbookError(f"cannot open workbook {display}: {e}") from e
    return Workbook(excel, str(display), size_bytes, sentinels)
