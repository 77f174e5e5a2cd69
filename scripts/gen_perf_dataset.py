#!/usr/bin/env python3
"""Dataset generation script for performance testing.

Generates a synthetic workbook plus a matching import config:
- Row 1: Header row with column names
- Row 2+: Data rows

The config maps every column to a same-named database column of table
``perf_items`` so the workbook can be fed straight into
``python -m sheet_import.cli import``.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
import yaml

# column name -> config column type
COLUMN_TYPES = {
    "name": "STRING",
    "category": "STRING",
    "email": "EMAIL",
    "id": "INTEGER",
    "amount": "DECIMAL",
    "quantity": "INTEGER",
    "active": "BOOLEAN",
    "created_date": "DATE",
}

CATEGORIES = ["Electronics", "Clothing", "Books", "Food", "Sports", "Home"]


def generate_synthetic_data(rows: int, seed: int = 42) -> pd.DataFrame:
    """Generate a DataFrame whose columns follow ``COLUMN_TYPES``.

    Args:
        rows: Number of data rows to generate
        seed: Random seed for reproducible data

    Returns:
        DataFrame with one column per entry of ``COLUMN_TYPES``
    """
    rng = np.random.default_rng(seed)
    date_range = pd.date_range(pd.Timestamp("2023-01-01"), pd.Timestamp("2024-12-31"), periods=100)

    data: dict[str, list[Any]] = {
        "name": [f"  item_{rng.integers(1000, 9999)}_{chr(65 + (j % 26))}  " for j in range(rows)],
        "category": rng.choice(CATEGORIES, rows).tolist(),
        "email": [f"user{j}@example.com" for j in range(rows)],
        "id": list(range(1, rows + 1)),
        "amount": np.round(rng.uniform(0.01, 9999.99, rows), 2).tolist(),
        "quantity": rng.integers(1, 1000, rows).tolist(),
        "active": rng.choice([True, False], rows).tolist(),
        "created_date": [date_range[i].to_pydatetime() for i in rng.integers(0, len(date_range), rows)],
    }
    return pd.DataFrame(data)


def build_config(filename: str, sheets: list[str], batch_size: int = 500) -> dict[str, Any]:
    """Import config covering every sheet of the generated workbook."""
    columns: list[dict[str, Any]] = []
    for name, col_type in COLUMN_TYPES.items():
        column: dict[str, Any] = {"name": name, "type": col_type, "db_mapping": {"db_column": name}}
        if name == "name":
            column["transformations"] = [{"type": "TRIM"}, {"type": "UPPERCASE"}]
        if name == "category":
            column["validation"] = {"allowed_values": CATEGORIES}
        columns.append(column)
    return {
        "files": [
            {
                "filename": filename,
                "sheets": [
                    {"name": s, "table": "perf_items", "batch_size": batch_size, "columns": columns}
                    for s in sheets
                ],
            }
        ]
    }


def create_excel_file(
    output_path: Path,
    rows: int,
    sheets: list[str] | None = None,
    seed: int = 42,
) -> None:
    """Create the workbook: header on row 1, data from row 2.

    Args:
        output_path: Path where the workbook will be saved
        rows: Number of data rows per sheet
        sheets: List of sheet names (default: ["Sheet1"])
        seed: Random seed for reproducible data
    """
    if sheets is None:
        sheets = ["Sheet1"]

    output_path.parent.mkdir(parents=True, exist_ok=True)

    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        for sheet_name in sheets:
            df = generate_synthetic_data(rows, seed)
            df.to_excel(writer, sheet_name=sheet_name, header=True, index=False)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate a synthetic workbook and import config for performance testing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # 50k rows, config written next to the workbook
  %(prog)s data/perf.xlsx

  # Multi-sheet dataset with an explicit config path
  %(prog)s data/multi.xlsx --rows 25000 --sheets S1 S2 --config config/import.yml
        """,
    )
    parser.add_argument("output", type=Path, help="Output workbook path")
    parser.add_argument("--rows", type=int, default=50_000, help="Data rows per sheet (default: 50,000)")
    parser.add_argument("--sheets", nargs="+", default=["Sheet1"], help="Sheet names (default: Sheet1)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--batch-size", type=int, default=500, help="batch_size written to the config")
    parser.add_argument("--config", type=Path, default=None, help="Config path (default: <output>.yml)")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1

    config_path = args.config or args.output.with_suffix(".yml")
    create_excel_file(args.output, args.rows, args.sheets, args.seed)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        yaml.safe_dump(build_config(args.output.name, args.sheets, args.batch_size), sort_keys=False),
        encoding="utf-8",
    )
    print(f"Created workbook: {args.output} ({len(args.sheets)} sheets x {args.rows:,} rows)")
    print(f"Created config:   {config_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
