from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Config dataclasses for the spreadsheet import pipeline.

These records are built once by ``sheet_import.config.loader`` and are read-only
for the rest of a run. Column position inside ``SheetConfig.columns`` is the
spreadsheet column index (0 = column A).
"""

__all__ = [
    "ColumnType",
    "TransformerType",
    "ErrorStrategy",
    "ImportMode",
    "ConstraintType",
    "ColumnValidation",
    "ColumnTransformation",
    "LookupConfig",
    "ExistsInConfig",
    "DbColumnMapping",
    "ColumnConfig",
    "RowConstraint",
    "SheetConfig",
    "FileConfig",
    "DatabaseConfig",
    "FilesConfig",
    "DEFAULT_BATCH_SIZE",
]

DEFAULT_BATCH_SIZE = 100


class ColumnType(str, Enum):
    STRING = "STRING"
    INTEGER = "INTEGER"
    DECIMAL = "DECIMAL"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"
    EMAIL = "EMAIL"


class TransformerType(str, Enum):
    UPPERCASE = "UPPERCASE"
    LOWERCASE = "LOWERCASE"
    TRIM = "TRIM"
    TITLE_CASE = "TITLE_CASE"
    SENTENCE_CASE = "SENTENCE_CASE"
    REMOVE_WHITESPACE = "REMOVE_WHITESPACE"
    NORMALIZE_SPACES = "NORMALIZE_SPACES"
    DATE_FORMAT = "DATE_FORMAT"
    NUMBER_FORMAT = "NUMBER_FORMAT"
    REPLACE = "REPLACE"
    PAD_LEFT = "PAD_LEFT"
    PAD_RIGHT = "PAD_RIGHT"
    SUBSTRING = "SUBSTRING"
    STRIP_CHARS = "STRIP_CHARS"


class ErrorStrategy(str, Enum):
    """What happens to the rest of the import when a row is invalid."""
    SKIP_ROW = "SKIP_ROW"  # record and continue
    FAIL_SHEET = "FAIL_SHEET"  # stop this sheet, other sheets still run
    FAIL_ALL = "FAIL_ALL"  # stop this sheet and every later sheet


class ImportMode(str, Enum):
    EXECUTE = "EXECUTE"
    DRY_RUN = "DRY_RUN"


class ConstraintType(str, Enum):
    NOT_ALL_EMPTY = "NOT_ALL_EMPTY"
    NOT_ALL_EQUAL = "NOT_ALL_EQUAL"
    AT_LEAST_ONE_PRESENT = "AT_LEAST_ONE_PRESENT"
    MUTUALLY_EXCLUSIVE = "MUTUALLY_EXCLUSIVE"
    CUSTOM = "CUSTOM"


@dataclass(frozen=True)
class ColumnValidation:
    """Per-column validation rules.

    ``allowed_values`` / ``excluded_values`` are checked against the transformed
    value. Every other rule is checked against the raw cell.
    """
    not_empty: bool = False
    regex: str | None = None  # full match
    min_length: int | None = None
    max_length: int | None = None
    min: float | None = None  # numeric cells only
    max: float | None = None
    past: bool = False  # date cells only
    future: bool = False
    allowed_values: tuple[str, ...] | None = None
    excluded_values: tuple[str, ...] | None = None


@dataclass(frozen=True)
class ColumnTransformation:
    type: TransformerType
    format: str | None = None  # DATE_FORMAT (strftime) / NUMBER_FORMAT (format spec)
    pattern: str | None = None  # REPLACE / STRIP_CHARS regex
    replacement: str | None = None
    length: int | None = None  # PAD_LEFT / PAD_RIGHT target width
    pad_char: str | None = None
    start: int | None = None  # SUBSTRING
    end: int | None = None


@dataclass(frozen=True)
class LookupConfig:
    """Replace a cell value with ``return_column`` of the row whose ``match_column`` equals it."""
    table: str
    match_column: str
    return_column: str


@dataclass(frozen=True)
class ExistsInConfig:
    """Pre-check that the value exists in ``table.column`` before import."""
    table: str
    column: str
    error_message: str | None = None


@dataclass(frozen=True)
class DbColumnMapping:
    db_column: str
    db_type: str | None = None  # optional cast target, e.g. "DATE"
    lookup: LookupConfig | None = None
    exists_in: ExistsInConfig | None = None


@dataclass(frozen=True)
class ColumnConfig:
    name: str  # expected header text
    type: ColumnType = ColumnType.STRING
    validation: ColumnValidation | None = None
    transformations: tuple[ColumnTransformation, ...] = ()
    db_mapping: DbColumnMapping | None = None  # None = read but never imported
    skip_if: tuple[object, ...] = ()  # literal values that skip the whole row
    skip_expression: str | None = None
    skip_expressions: tuple[str, ...] = ()

    @property
    def all_skip_expressions(self) -> tuple[str, ...]:
        if self.skip_expression:
            return (self.skip_expression, *self.skip_expressions)
        return self.skip_expressions


@dataclass(frozen=True)
class RowConstraint:
    type: ConstraintType | None = None  # None + expression = CUSTOM
    columns: tuple[str, ...] = ()
    expression: str | None = None
    forbidden_value: str | None = None  # NOT_ALL_EQUAL only
    error_message: str | None = None

    @property
    def effective_type(self) -> ConstraintType | None:
        if self.type is None and self.expression:
            return ConstraintType.CUSTOM
        return self.type


@dataclass(frozen=True)
class SheetConfig:
    name: str
    columns: tuple[ColumnConfig, ...] = ()
    table: str | None = None  # None = validated/transformed only, never imported
    on_error: ErrorStrategy = ErrorStrategy.SKIP_ROW
    batch_size: int | None = None
    custom_sql: str | None = None
    primary_key: tuple[str, ...] = ()  # non-empty = upsert
    row_constraints: tuple[RowConstraint, ...] = ()
    skip_expression: str | None = None
    skip_expressions: tuple[str, ...] = ()

    @property
    def effective_batch_size(self) -> int:
        if self.batch_size is None or self.batch_size <= 0:
            return DEFAULT_BATCH_SIZE
        return self.batch_size

    @property
    def has_primary_key(self) -> bool:
        return len(self.primary_key) > 0

    @property
    def all_skip_expressions(self) -> tuple[str, ...]:
        if self.skip_expression:
            return (self.skip_expression, *self.skip_expressions)
        return self.skip_expressions

    @property
    def mapped_columns(self) -> tuple[ColumnConfig, ...]:
        return tuple(c for c in self.columns if c.db_mapping is not None)


@dataclass(frozen=True)
class FileConfig:
    filename: str
    sheets: tuple[SheetConfig, ...] = ()
    null_sentinels: tuple[str, ...] = ()  # cell texts read as blank


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection fallback configuration.

    Environment variables (``DATABASE_URL``, ``PGDSN``, ``PGHOST`` ...) take
    precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None
    dialect: str = "postgresql"  # SQL flavour handed to SqlBuilder


@dataclass(frozen=True)
class FilesConfig:
    files: tuple[FileConfig, ...] = ()
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
