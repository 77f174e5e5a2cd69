from __future__ import annotations

from datetime import datetime

import pytest

from sheet_import.models.cell import Cell
from sheet_import.models.config_models import ColumnTransformation, TransformerType
from sheet_import.services.cell_transformer import CellTransformer

T = TransformerType
transformer = CellTransformer()


def run(value, *stages: ColumnTransformation):
    return transformer.transform(Cell.of(value), stages)


def test_trim_then_uppercase():
    assert run("  john  ", ColumnTransformation(T.TRIM), ColumnTransformation(T.UPPERCASE)) == "JOHN"


def test_no_stages_returns_natural_text():
    assert run("abc") == "abc"
    assert run(30.0) == "30"
    assert run(True) == "true"


def test_blank_cell_is_none():
    assert transformer.transform(Cell.of(None), [ColumnTransformation(T.UPPERCASE)]) is None
    assert transformer.transform(None) is None


@pytest.mark.parametrize(
    "stage, value, expected",
    [
        (T.LOWERCASE, "MiXeD", "mixed"),
        (T.TITLE_CASE, "hello   wORLD", "Hello   World"),
        (T.SENTENCE_CASE, "hELLO World", "Hello world"),
        (T.REMOVE_WHITESPACE, " a b\tc ", "abc"),
        (T.NORMALIZE_SPACES, "  a   b  c ", "a b c"),
    ],
)
def test_text_stages(stage, value, expected):
    assert run(value, ColumnTransformation(stage)) == expected


CHAIN_STAGES = [
    ColumnTransformation(T.TRIM),
    ColumnTransformation(T.UPPERCASE),
    ColumnTransformation(T.LOWERCASE),
    ColumnTransformation(T.TITLE_CASE),
    ColumnTransformation(T.SENTENCE_CASE),
    ColumnTransformation(T.NORMALIZE_SPACES),
    ColumnTransformation(T.REMOVE_WHITESPACE),
    ColumnTransformation(T.REPLACE, pattern="o", replacement="0"),
    ColumnTransformation(T.PAD_LEFT, length=20, pad_char="*"),
    ColumnTransformation(T.PAD_RIGHT, length=24, pad_char="-"),
    ColumnTransformation(T.SUBSTRING, start=1, end=12),
    ColumnTransformation(T.STRIP_CHARS, pattern="[0-9]"),
]


@pytest.mark.parametrize("c", CHAIN_STAGES, ids=lambda t: t.type.value)
@pytest.mark.parametrize(
    "a, b",
    [
        (ColumnTransformation(T.TRIM), ColumnTransformation(T.UPPERCASE)),
        (ColumnTransformation(T.NORMALIZE_SPACES), ColumnTransformation(T.TITLE_CASE)),
        (ColumnTransformation(T.REPLACE, pattern="l", replacement="L"), ColumnTransformation(T.PAD_LEFT, length=18, pad_char="_")),
    ],
    ids=["trim-upper", "normalize-title", "replace-pad"],
)
def test_chains_compose_left_to_right(a, b, c):
    """[A, B] then C gives the same text as [A, B, C]."""
    cell = Cell.of("  hello   wOrld 42  ")
    step = transformer.transform(cell, [a, b])
    assert transformer.transform(Cell.of(step), [c]) == transformer.transform(cell, [a, b, c])


def test_date_format():
    born = datetime(2024, 3, 5)
    assert run(born, ColumnTransformation(T.DATE_FORMAT, format="%d/%m/%Y")) == "05/03/2024"
    assert run(born, ColumnTransformation(T.DATE_FORMAT)) == "2024-03-05"
    # wrong cell kind
    assert run("2024-03-05", ColumnTransformation(T.DATE_FORMAT)) == ""


def test_number_format():
    assert run(1234.5, ColumnTransformation(T.NUMBER_FORMAT)) == "1,234.50"
    assert run(2, ColumnTransformation(T.NUMBER_FORMAT, format=".1f")) == "2.0"
    assert run("12", ColumnTransformation(T.NUMBER_FORMAT)) == ""


def test_format_stages_read_the_original_cell():
    stages = (ColumnTransformation(T.PAD_LEFT, length=20, pad_char="*"), ColumnTransformation(T.NUMBER_FORMAT))
    assert run(5, *stages) == "5.00"


def test_replace():
    assert run("12-34-56", ColumnTransformation(T.REPLACE, pattern="-", replacement="")) == "123456"
    assert run("2024-03", ColumnTransformation(T.REPLACE, pattern=r"(\d+)-(\d+)", replacement=r"\2/\1")) == "03/2024"
    assert run("a-b", ColumnTransformation(T.REPLACE, pattern="-")) == "ab"
    assert run("a-b", ColumnTransformation(T.REPLACE)) == "a-b"


def test_padding():
    assert run(42, ColumnTransformation(T.PAD_LEFT, length=5, pad_char="0")) == "00042"
    assert run("ab", ColumnTransformation(T.PAD_RIGHT, length=4)) == "ab  "
    assert run("abcdef", ColumnTransformation(T.PAD_LEFT, length=3, pad_char="0")) == "abcdef"
    # only the first pad character is used
    assert run("x", ColumnTransformation(T.PAD_RIGHT, length=3, pad_char="-=")) == "x--"


def test_substring_clamps_bounds():
    assert run("abcdef", ColumnTransformation(T.SUBSTRING, start=1, end=3)) == "bc"
    assert run("abcdef", ColumnTransformation(T.SUBSTRING, start=2)) == "cdef"
    assert run("abc", ColumnTransformation(T.SUBSTRING, start=10, end=20)) == ""
    assert run("abc", ColumnTransformation(T.SUBSTRING, start=-5, end=2)) == "ab"
    assert run("abc", ColumnTransformation(T.SUBSTRING, start=2, end=1)) == ""


def test_strip_chars():
    assert run("(555) 123-4567", ColumnTransformation(T.STRIP_CHARS, pattern="[^0-9]")) == "5551234567"
