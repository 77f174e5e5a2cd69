from __future__ import annotations

from pathlib import Path

from sheet_import.config.loader import find_file_config, load_config
from sheet_import.models.config_models import ImportMode
from sheet_import.services.orchestrator import ImportOrchestrator


def test_null_sentinels_become_null_parameters(write_config: Path, temp_workdir: Path, make_workbook, fake_db):
    """"N/A" (configured) reads as an empty cell; "NA" (not configured) is kept as text."""
    path = make_workbook(
        temp_workdir / "data" / "people.xlsx",
        {
            "People": [
                ["Name", "Email", "Age", "Country", "Status"],
                ["ann", "N/A", "N/A", "N/A", "ACTIVE"],
                ["NA", "na@example.com", 22, "FR", "ACTIVE"],
            ],
            "Notes": [["Text"]],
        },
    )
    file_cfg = find_file_config(load_config(write_config), "people.xlsx")
    report = ImportOrchestrator(fake_db).run(path, file_cfg, ImportMode.EXECUTE)

    assert report.is_success
    assert fake_db.rows == [
        {"name": "ANN", "email": None, "age": None, "country_id": None},
        {"name": "NA", "email": "na@example.com", "age": 22, "country_id": 1},
    ]
    # blank country values are never looked up
    assert [value for _, _, value, _ in fake_db.lookups] == ["FR"]


def test_sentinel_in_required_column_is_an_error(write_config: Path, temp_workdir: Path, make_workbook, fake_db):
    path = make_workbook(
        temp_workdir / "data" / "people.xlsx",
        {
            "People": [["Name", "Email", "Age", "Country", "Status"], ["N/A", "x@example.com", 1, "FR", "ACTIVE"]],
            "Notes": [["Text"]],
        },
    )
    file_cfg = find_file_config(load_config(write_config), "people.xlsx")
    report = ImportOrchestrator(fake_db).run(path, file_cfg, ImportMode.EXECUTE)

    (people,) = report.sheet_results
    assert people.error_rows == 1
    assert people.errors[0].message == "Value is required at column: Name"
