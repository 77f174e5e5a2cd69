from __future__ import annotations

from datetime import datetime

from sheet_import.models.cell import Cell
from sheet_import.models.config_models import ColumnConfig, ColumnType, ColumnValidation
from sheet_import.services.cell_validator import EMAIL_PATTERN, CellValidator, value_text


def col(name: str, type_: ColumnType = ColumnType.STRING, **rules) -> ColumnConfig:
    return ColumnConfig(name=name, type=type_, validation=ColumnValidation(**rules) if rules else None)


FIXED_NOW = datetime(2024, 6, 1, 12, 0)
validator = CellValidator(clock=lambda: FIXED_NOW)


def test_whole_float_is_a_valid_integer():
    assert validator.validate(Cell.of(30.0), col("Age", ColumnType.INTEGER)) is None


def test_fractional_number_is_not_an_integer():
    msg = validator.validate(Cell.of(30.5), col("Age", ColumnType.INTEGER))
    assert msg == "Invalid type for column 'Age'. Expected INTEGER but found NUMBER (30.5)"


def test_type_mismatch_descriptions():
    assert validator.validate(Cell.of("abc"), col("Age", ColumnType.DECIMAL)) == (
        "Invalid type for column 'Age'. Expected DECIMAL but found STRING (abc)"
    )
    assert validator.validate(Cell.of(True), col("Name")) == (
        "Invalid type for column 'Name'. Expected STRING but found BOOLEAN (true)"
    )
    assert validator.validate(Cell.of(datetime(2024, 1, 1)), col("Flag", ColumnType.BOOLEAN)) == (
        "Invalid type for column 'Flag'. Expected BOOLEAN but found DATE"
    )
    assert validator.validate(Cell.of(5), col("Name")) == (
        "Invalid type for column 'Name'. Expected STRING but found NUMBER (5.0)"
    )


def test_blank_cell_only_fails_when_required():
    assert validator.validate(Cell.of(None), col("Name", not_empty=True)) == "Value is required at column: Name"
    assert validator.validate(None, col("Name", not_empty=True)) == "Value is required at column: Name"
    assert validator.validate(Cell.of(None), col("Name")) is None
    # a blank cell skips the type check
    assert validator.validate(Cell.of(""), col("Age", ColumnType.INTEGER, min=1)) is None


def test_email():
    assert validator.validate(Cell.of("john@example.com"), col("Email", ColumnType.EMAIL)) is None
    assert validator.validate(Cell.of("bob@"), col("Email", ColumnType.EMAIL)) == (
        "Invalid type for column 'Email'. Expected EMAIL but found STRING (bob@)"
    )
    assert EMAIL_PATTERN.match("first.last+tag@sub.example.org")


def test_regex_is_a_full_match():
    c = col("Code", regex="[A-Z]{3}")
    assert validator.validate(Cell.of("ABC"), c) is None
    assert validator.validate(Cell.of("ABCD"), c) == (
        "Validation failed for column 'Code': Value 'ABCD' does not match regex: [A-Z]{3}"
    )


def test_regex_sees_natural_number_text():
    assert validator.validate(Cell.of(12345.0), col("Zip", ColumnType.INTEGER, regex=r"\d{5}")) is None


def test_length_rules():
    c = col("Code", min_length=3, max_length=4)
    assert validator.validate(Cell.of("ab"), c) == (
        "Validation failed for column 'Code': Value length 2 is less than min length 3"
    )
    assert validator.validate(Cell.of("abcde"), c) == (
        "Validation failed for column 'Code': Value length 5 exceeds max length 4"
    )
    assert validator.validate(Cell.of("abc"), c) is None


def test_numeric_range():
    c = col("Age", ColumnType.INTEGER, min=0, max=150)
    assert validator.validate(Cell.of(200), c) == "Validation failed for column 'Age': Value 200.0 exceeds max 150"
    assert validator.validate(Cell.of(-1), c) == "Validation failed for column 'Age': Value -1.0 is less than min 0"
    assert validator.validate(Cell.of(150), c) is None


def test_past_and_future_dates():
    past = col("Born", ColumnType.DATE, past=True)
    future = col("Due", ColumnType.DATE, future=True)
    assert validator.validate(Cell.of(datetime(2000, 1, 1)), past) is None
    assert validator.validate(Cell.of(datetime(2025, 1, 1)), past) == (
        "Validation failed for column 'Born': Date must be in the past"
    )
    assert validator.validate(Cell.of(datetime(2025, 1, 1)), future) is None
    assert validator.validate(Cell.of(datetime(2020, 1, 1)), future) == (
        "Validation failed for column 'Due': Date must be in the future"
    )


def test_rules_stop_at_first_failure():
    c = col("Code", regex="[0-9]+", min_length=5)
    msg = validator.validate(Cell.of("ab"), c)
    assert "does not match regex" in msg


def test_allowed_and_excluded_lists_use_transformed_value():
    c = col("Grade", allowed_values=("A", "B"))
    assert validator.validate_transformed_value("A", c) is None
    assert validator.validate_transformed_value("C", c) == (
        "Validation failed for column 'Grade': Value 'C' is not in the allowed list: [A, B]"
    )
    assert validator.validate_transformed_value(None, c) is None

    ex = col("Grade", excluded_values=("F",))
    assert validator.validate_transformed_value("F", ex) == (
        "Validation failed for column 'Grade': Value 'F' is in the excluded list"
    )
    assert validator.validate_transformed_value("A", ex) is None


def test_allowed_list_compares_number_text():
    c = col("Level", ColumnType.INTEGER, allowed_values=("1", "2"))
    assert validator.validate_transformed_value(1, c) is None
    assert validator.validate_transformed_value(3, c) is not None


def test_value_text():
    assert value_text(None) is None
    assert value_text(" x ") == " x "
    assert value_text(2.0) == "2"
    assert value_text(False) == "false"
    assert value_text(datetime(2024, 2, 3)) == "2024-02-03"
