from __future__ import annotations

import re
from collections.abc import Callable, Sequence

from sheet_import.models.cell import Cell
from sheet_import.models.config_models import ColumnTransformation, TransformerType

"""Cell transformation pipeline.

Stages run left to right, each consuming the previous stage's text. DATE_FORMAT
and NUMBER_FORMAT are the exception: they format the original cell value, so a
preceding stage does not affect them, and they yield "" for a cell of the wrong
kind. REPLACE uses Python ``re.sub`` replacement syntax (``\\1`` for groups).
"""

__all__ = [
    "CellTransformer",
    "DEFAULT_DATE_FORMAT",
    "DEFAULT_NUMBER_FORMAT",
]

DEFAULT_PAD_CHAR = " "
DEFAULT_DATE_FORMAT = "%Y-%m-%d"
DEFAULT_NUMBER_FORMAT = ",.2f"

_WHITESPACE = re.compile(r"\s+")

# (current text, stage config, original cell) -> new text
Stage = Callable[[str, ColumnTransformation, Cell], str]


def _title_case(value: str, t: ColumnTransformation, cell: Cell) -> str:
    out = []
    capitalize_next = True
    for ch in value:
        if ch.isspace():
            capitalize_next = True
            out.append(ch)
        elif capitalize_next:
            out.append(ch.upper())
            capitalize_next = False
        else:
            out.append(ch.lower())
    return "".join(out)


def _sentence_case(value: str, t: ColumnTransformation, cell: Cell) -> str:
    if not value:
        return value
    return value[0].upper() + value[1:].lower()


def _date_format(value: str, t: ColumnTransformation, cell: Cell) -> str:
    if not cell.is_date:
        return ""
    return cell.value.date().strftime(t.format or DEFAULT_DATE_FORMAT)


def _number_format(value: str, t: ColumnTransformation, cell: Cell) -> str:
    if not cell.is_numeric:
        return ""
    return format(float(cell.value), t.format or DEFAULT_NUMBER_FORMAT)


def _replace(value: str, t: ColumnTransformation, cell: Cell) -> str:
    if t.pattern is None:
        return value
    return re.sub(t.pattern, t.replacement if t.replacement is not None else "", value)


def _pad_char(t: ColumnTransformation) -> str:
    pad = t.pad_char if t.pad_char is not None else DEFAULT_PAD_CHAR
    return pad[0] if pad else " "


def _pad_left(value: str, t: ColumnTransformation, cell: Cell) -> str:
    if t.length is None or len(value) >= t.length:
        return value
    return value.rjust(t.length, _pad_char(t))


def _pad_right(value: str, t: ColumnTransformation, cell: Cell) -> str:
    if t.length is None or len(value) >= t.length:
        return value
    return value.ljust(t.length, _pad_char(t))


def _substring(value: str, t: ColumnTransformation, cell: Cell) -> str:
    if t.start is None:
        return value
    start = min(max(t.start, 0), len(value))
    end = min(max(t.end, start), len(value)) if t.end is not None else len(value)
    return value[start:end]


def _strip_chars(value: str, t: ColumnTransformation, cell: Cell) -> str:
    if t.pattern is None:
        return value
    return re.sub(t.pattern, "", value)


_STAGES: dict[TransformerType, Stage] = {
    TransformerType.UPPERCASE: lambda v, t, c: v.upper(),
    TransformerType.LOWERCASE: lambda v, t, c: v.lower(),
    TransformerType.TRIM: lambda v, t, c: v.strip(),
    TransformerType.TITLE_CASE: _title_case,
    TransformerType.SENTENCE_CASE: _sentence_case,
    TransformerType.REMOVE_WHITESPACE: lambda v, t, c: _WHITESPACE.sub("", v),
    TransformerType.NORMALIZE_SPACES: lambda v, t, c: _WHITESPACE.sub(" ", v).strip(),
    TransformerType.DATE_FORMAT: _date_format,
    TransformerType.NUMBER_FORMAT: _number_format,
    TransformerType.REPLACE: _replace,
    TransformerType.PAD_LEFT: _pad_left,
    TransformerType.PAD_RIGHT: _pad_right,
    TransformerType.SUBSTRING: _substring,
    TransformerType.STRIP_CHARS: _strip_chars,
}


class CellTransformer:
    def transform(self, cell: Cell | None, transformations: Sequence[ColumnTransformation] = ()) -> str | None:
        """Return the transformed text of ``cell``, or None for a missing/blank cell."""
        if cell is None or cell.is_blank:
            return None
        value = cell.as_text() or ""
        for t in transformations:
            value = _STAGES[t.type](value, t, cell)
        return value
