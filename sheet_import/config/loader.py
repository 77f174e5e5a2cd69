from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from sheet_import.models.config_models import (
    ColumnConfig,
    ColumnTransformation,
    ColumnType,
    ColumnValidation,
    ConstraintType,
    DatabaseConfig,
    DbColumnMapping,
    ErrorStrategy,
    ExistsInConfig,
    FileConfig,
    FilesConfig,
    LookupConfig,
    RowConstraint,
    SheetConfig,
    TransformerType,
)
from sheet_import.remote.fetcher import RemoteSourceError, UrlFetcher, is_url

"""Config loader.

Responsibilities:
- Load the YAML import config (default ``config/import.yml``) from a path or an http(s) URL
- Validate it against the bundled ``config_schema.json``
- Check what the schema cannot express (regexes compile, constraint columns exist)
- Build the frozen ``FilesConfig`` tree
"""

__all__ = [
    "ConfigError",
    "SCHEMA_PATH",
    "load_config",
    "load_config_text",
    "find_file_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate raw config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise ConfigError(f"config validation failed at {where}: {e.message}") from e


def _compile_check(pattern: str | None, where: str) -> None:
    if pattern is None:
        return
    try:
        re.compile(pattern)
    except re.error as e:
        raise ConfigError(f"invalid regex at {where}: {e}") from e


def _tuple_or_none(values: list[Any] | None) -> tuple[str, ...] | None:
    if values is None:
        return None
    return tuple(str(v) for v in values)


def _build_validation(raw: dict[str, Any] | None, where: str) -> ColumnValidation | None:
    if raw is None:
        return None
    _compile_check(raw.get("regex"), f"{where}.validation.regex")
    return ColumnValidation(
        not_empty=bool(raw.get("not_empty", False)),
        regex=raw.get("regex"),
        min_length=raw.get("min_length"),
        max_length=raw.get("max_length"),
        min=raw.get("min"),
        max=raw.get("max"),
        past=bool(raw.get("past", False)),
        future=bool(raw.get("future", False)),
        allowed_values=_tuple_or_none(raw.get("allowed_values")),
        excluded_values=_tuple_or_none(raw.get("excluded_values")),
    )


def _build_transformation(raw: dict[str, Any], where: str) -> ColumnTransformation:
    _compile_check(raw.get("pattern"), f"{where}.pattern")
    return ColumnTransformation(
        type=TransformerType(raw["type"]),
        format=raw.get("format"),
        pattern=raw.get("pattern"),
        replacement=raw.get("replacement"),
        length=raw.get("length"),
        pad_char=raw.get("pad_char"),
        start=raw.get("start"),
        end=raw.get("end"),
    )


def _build_db_mapping(raw: dict[str, Any] | None) -> DbColumnMapping | None:
    if raw is None:
        return None
    lookup = raw.get("lookup")
    exists_in = raw.get("exists_in")
    return DbColumnMapping(
        db_column=raw["db_column"],
        db_type=raw.get("db_type"),
        lookup=LookupConfig(**lookup) if lookup else None,
        exists_in=ExistsInConfig(**exists_in) if exists_in else None,
    )


def _build_column(raw: dict[str, Any], where: str) -> ColumnConfig:
    return ColumnConfig(
        name=raw["name"],
        type=ColumnType(raw.get("type", "STRING")),
        validation=_build_validation(raw.get("validation"), where),
        transformations=tuple(
            _build_transformation(t, f"{where}.transformations[{i}]")
            for i, t in enumerate(raw.get("transformations") or [])
        ),
        db_mapping=_build_db_mapping(raw.get("db_mapping")),
        skip_if=tuple(raw.get("skip_if") or ()),
        skip_expression=raw.get("skip_expression"),
        skip_expressions=tuple(raw.get("skip_expressions") or ()),
    )


def _build_sheet(raw: dict[str, Any], where: str) -> SheetConfig:
    columns = tuple(
        _build_column(c, f"{where}.columns[{i}]") for i, c in enumerate(raw.get("columns") or [])
    )
    names = {c.name for c in columns}
    constraints: list[RowConstraint] = []
    for i, rc in enumerate(raw.get("row_constraints") or []):
        cols = tuple(rc.get("columns") or ())
        unknown = [c for c in cols if c not in names]
        if unknown:
            raise ConfigError(f"{where}.row_constraints[{i}] references unknown columns: {unknown}")
        constraints.append(
            RowConstraint(
                type=ConstraintType(rc["type"]) if rc.get("type") else None,
                columns=cols,
                expression=rc.get("expression"),
                forbidden_value=rc.get("forbidden_value"),
                error_message=rc.get("error_message"),
            )
        )
    mapped = {c.db_mapping.db_column for c in columns if c.db_mapping is not None}
    primary_key = tuple(raw.get("primary_key") or ())
    missing_pk = [k for k in primary_key if k not in mapped]
    if missing_pk and not raw.get("custom_sql"):
        raise ConfigError(f"{where}.primary_key not mapped to any column: {missing_pk}")
    return SheetConfig(
        name=raw["name"],
        columns=columns,
        table=raw.get("table"),
        on_error=ErrorStrategy(raw.get("on_error", "SKIP_ROW")),
        batch_size=raw.get("batch_size"),
        custom_sql=raw.get("custom_sql"),
        primary_key=primary_key,
        row_constraints=tuple(constraints),
        skip_expression=raw.get("skip_expression"),
        skip_expressions=tuple(raw.get("skip_expressions") or ()),
    )


def _build_config(data: dict[str, Any]) -> FilesConfig:
    files: list[FileConfig] = []
    for fi, f in enumerate(data.get("files") or []):
        sheets = tuple(
            _build_sheet(s, f"files[{fi}].sheets[{si}]") for si, s in enumerate(f.get("sheets") or [])
        )
        files.append(
            FileConfig(
                filename=f["filename"],
                sheets=sheets,
                null_sentinels=tuple(f.get("null_sentinels") or ()),
            )
        )
    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
        dialect=db_raw.get("dialect", "postgresql"),
    )
    return FilesConfig(files=tuple(files), database=db)


def load_config_text(text: str) -> FilesConfig:
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)
    return _build_config(data)


def load_config(path: Path | str, fetcher: UrlFetcher | None = None) -> FilesConfig:
    """Load the config from a local path or an http(s) URL (downloaded with ``fetcher``)."""
    if is_url(path):
        url = str(path)
        try:
            data = (fetcher or UrlFetcher()).fetch(url)
        except RemoteSourceError as e:
            raise ConfigError(f"cannot download config: {e}") from e
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ConfigError(f"config at {url} is not UTF-8: {e}") from e
        return load_config_text(text)
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    return load_config_text(path.read_text(encoding="utf-8"))


def find_file_config(config: FilesConfig, filename: str) -> FileConfig:
    """Return the entry configured for ``filename`` (exact match, then case-insensitive)."""
    for f in config.files:
        if f.filename == filename:
            return f
    lowered = filename.lower()
    for f in config.files:
        if f.filename.lower() == lowered:
            return f
    raise ConfigError(f"no configuration for file: {filename}")
