from __future__ import annotations

from pathlib import Path

import pytest

from sheet_import.config.loader import ConfigError, find_file_config, load_config, load_config_text
from sheet_import.remote.fetcher import UrlFetcher
from sheet_import.models.config_models import (
    DEFAULT_BATCH_SIZE,
    ColumnType,
    ConstraintType,
    ErrorStrategy,
    TransformerType,
)

MINIMAL = """files:
  - filename: f.xlsx
    sheets:
      - name: S
        table: t
        columns:
          - name: A
            db_mapping: {db_column: a}
"""


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    (people_file,) = cfg.files
    assert people_file.filename == "people.xlsx"
    assert people_file.null_sentinels == ("N/A",)
    people, notes = people_file.sheets
    assert people.table == "people"
    assert people.on_error == ErrorStrategy.SKIP_ROW
    assert people.effective_batch_size == 2
    assert [c.name for c in people.columns] == ["Name", "Email", "Age", "Country", "Status"]

    name, email, age, country, status = people.columns
    assert name.validation.not_empty
    assert [t.type for t in name.transformations] == [TransformerType.TRIM, TransformerType.UPPERCASE]
    assert email.type == ColumnType.EMAIL
    assert age.validation.min == 0 and age.validation.max == 150
    assert country.db_mapping.lookup.table == "COUNTRIES"
    assert country.db_mapping.lookup.return_column == "ID"
    assert status.db_mapping is None
    assert status.skip_if == ("IGNORE",)
    assert [c.name for c in people.mapped_columns] == ["Name", "Email", "Age", "Country"]

    assert notes.table is None
    assert cfg.database.host == "localhost"
    assert cfg.database.port == 5432
    assert cfg.database.dialect == "postgresql"


def test_defaults():
    cfg = load_config_text(MINIMAL)
    sheet = cfg.files[0].sheets[0]
    assert sheet.on_error == ErrorStrategy.SKIP_ROW
    assert sheet.batch_size is None
    assert sheet.effective_batch_size == DEFAULT_BATCH_SIZE
    assert not sheet.has_primary_key
    assert sheet.columns[0].type == ColumnType.STRING
    assert sheet.columns[0].validation is None
    assert cfg.database.dsn is None


def test_non_positive_batch_size_falls_back_to_default():
    cfg = load_config_text(MINIMAL.replace("table: t", "table: t\n        batch_size: 0"))
    assert cfg.files[0].sheets[0].effective_batch_size == DEFAULT_BATCH_SIZE


def test_constraints_and_skip_expressions():
    text = MINIMAL + """          - name: B
            skip_expression: "value == 'x'"
            skip_expressions: ["value == 'y'"]
        skip_expressions: ["A == 'TOTAL'"]
        row_constraints:
          - type: NOT_ALL_EQUAL
            columns: [A, B]
            forbidden_value: "0"
          - expression: "A != B"
            error_message: A and B must differ
"""
    sheet = load_config_text(text).files[0].sheets[0]
    assert sheet.all_skip_expressions == ("A == 'TOTAL'",)
    assert sheet.columns[1].all_skip_expressions == ("value == 'x'", "value == 'y'")
    typed, custom = sheet.row_constraints
    assert typed.effective_type == ConstraintType.NOT_ALL_EQUAL
    assert typed.forbidden_value == "0"
    assert custom.type is None
    assert custom.effective_type == ConstraintType.CUSTOM
    assert custom.error_message == "A and B must differ"


def test_primary_key_must_be_mapped():
    with pytest.raises(ConfigError, match="primary_key not mapped"):
        load_config_text(MINIMAL.replace("table: t", "table: t\n        primary_key: [id]"))
    with_sql = MINIMAL.replace(
        "table: t", "table: t\n        primary_key: [id]\n        custom_sql: \"INSERT INTO t VALUES (:a)\""
    )
    assert load_config_text(with_sql).files[0].sheets[0].has_primary_key


def test_constraint_columns_must_exist():
    text = MINIMAL.replace(
        "        columns:", "        row_constraints:\n          - type: NOT_ALL_EMPTY\n            columns: [A, Z]\n        columns:"
    )
    with pytest.raises(ConfigError, match=r"unknown columns: \['Z'\]"):
        load_config_text(text)


def test_invalid_regex():
    text = MINIMAL.replace("db_mapping: {db_column: a}", "validation: {regex: '[a-'}")
    with pytest.raises(ConfigError, match="invalid regex at files\\[0\\].sheets\\[0\\].columns\\[0\\].validation.regex"):
        load_config_text(text)


def test_invalid_transformation_pattern():
    text = MINIMAL.replace("db_mapping: {db_column: a}", "transformations: [{type: REPLACE, pattern: '(('}]")
    with pytest.raises(ConfigError, match="invalid regex"):
        load_config_text(text)


@pytest.mark.parametrize(
    "broken",
    [
        MINIMAL.replace("table: t", "table: t\n        colour: red"),
        MINIMAL.replace("db_mapping: {db_column: a}", "type: TEXT"),
        MINIMAL.replace("table: t", "table: t\n        on_error: RETRY"),
        MINIMAL.replace("{db_column: a}", "{db_column: 'a; DROP TABLE t'}"),
        MINIMAL.replace("  - filename: f.xlsx\n    sheets:", "  - sheets:"),
        "database: {host: x}\n",
    ],
)
def test_schema_violations(broken: str):
    with pytest.raises(ConfigError, match="config validation failed"):
        load_config_text(broken)


def test_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError, match="config file not found"):
        load_config(temp_workdir / "config" / "nope.yml")


def test_invalid_yaml():
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config_text("files: [unclosed")


def test_root_must_be_a_mapping():
    with pytest.raises(ConfigError, match="must be a mapping"):
        load_config_text("- a\n- b\n")


def test_find_file_config():
    cfg = load_config_text(MINIMAL)
    assert find_file_config(cfg, "f.xlsx").filename == "f.xlsx"
    assert find_file_config(cfg, "F.XLSX").filename == "f.xlsx"
    with pytest.raises(ConfigError, match="no configuration for file: other.xlsx"):
        find_file_config(cfg, "other.xlsx")


def test_load_config_from_url(http_session, http_transport):
    url = "https://config.example.com/imports/import.yml"
    http_transport.add(url, MINIMAL.encode("utf-8"))
    cfg = load_config(url, fetcher=UrlFetcher(allowed_domains=("example.com",), session=http_session))
    assert cfg.files[0].filename == "f.xlsx"


def test_load_config_from_disallowed_url(http_session, http_transport):
    with pytest.raises(ConfigError, match="cannot download config: host not allowed"):
        load_config("https://config.example.com/import.yml", fetcher=UrlFetcher(session=http_session))


def test_load_config_url_not_found(http_session, http_transport):
    fetcher = UrlFetcher(allowed_domains=("example.com",), session=http_session)
    with pytest.raises(ConfigError, match="cannot download config: .*404"):
        load_config("https://config.example.com/nope.yml", fetcher=fetcher)
