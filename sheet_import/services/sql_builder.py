from __future__ import annotations

from sheet_import.models.config_models import SheetConfig

"""SQL generation for a sheet's target table.

Placeholders are ``:db_column`` named parameters. A sheet with a primary key
gets an upsert written as ``MERGE``:

    MERGE INTO t t USING (SELECT :a AS a, :b AS b FROM dual) s
    ON (t.a = s.a)
    WHEN MATCHED THEN UPDATE SET t.b = s.b
    WHEN NOT MATCHED THEN INSERT (a, b) VALUES (s.a, s.b)

The "oracle" dialect produces exactly that. "postgresql" (MERGE, PostgreSQL 15+)
drops ``FROM dual`` and leaves the UPDATE SET targets unqualified.
"""

__all__ = [
    "SqlBuilder",
    "SUPPORTED_DIALECTS",
]

SUPPORTED_DIALECTS = ("oracle", "postgresql")


class SqlBuilder:
    def __init__(self, dialect: str = "oracle") -> None:
        if dialect not in SUPPORTED_DIALECTS:
            raise ValueError(f"unsupported SQL dialect: {dialect}")
        self.dialect = dialect

    def resolve_sql(self, sheet: SheetConfig) -> str:
        """``custom_sql`` verbatim when configured, generated SQL otherwise."""
        if sheet.custom_sql:
            return sheet.custom_sql
        return self.build_insert_sql(sheet)

    def build_insert_sql(self, sheet: SheetConfig) -> str:
        if not sheet.table:
            raise ValueError(f"sheet '{sheet.name}' has no target table")
        mappings = [c.db_mapping for c in sheet.mapped_columns]
        if not mappings:
            raise ValueError(f"sheet '{sheet.name}' maps no columns")

        columns = [m.db_column for m in mappings]
        params = [f"CAST(:{m.db_column} AS {m.db_type})" if m.db_type else f":{m.db_column}" for m in mappings]

        if not sheet.has_primary_key:
            return f"INSERT INTO {sheet.table} ({', '.join(columns)}) VALUES ({', '.join(params)})"
        return self._build_merge(sheet.table, columns, params, list(sheet.primary_key))

    def _build_merge(self, table: str, columns: list[str], params: list[str], keys: list[str]) -> str:
        select_list = ", ".join(f"{p} AS {c}" for p, c in zip(params, columns, strict=True))
        source = f"SELECT {select_list} FROM dual" if self.dialect == "oracle" else f"SELECT {select_list}"
        on_clause = " AND ".join(f"t.{k} = s.{k}" for k in keys)

        parts = [f"MERGE INTO {table} t USING ({source}) s ON ({on_clause})"]
        updates = [c for c in columns if c not in keys]
        if updates:
            target = "t." if self.dialect == "oracle" else ""
            set_clause = ", ".join(f"{target}{c} = s.{c}" for c in updates)
            parts.append(f"WHEN MATCHED THEN UPDATE SET {set_clause}")
        parts.append(
            f"WHEN NOT MATCHED THEN INSERT ({', '.join(columns)}) "
            f"VALUES ({', '.join(f's.{c}' for c in columns)})"
        )
        return " ".join(parts)
