from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path

from sheet_import.cli.__main__ import EXIT_FATAL, EXIT_PARTIAL_FAILURE, EXIT_SUCCESS_ALL, main

"""Exit code contract: 0 success, 2 partial failure, 1 fatal."""


def test_exit_code_values():
    assert (EXIT_SUCCESS_ALL, EXIT_FATAL, EXIT_PARTIAL_FAILURE) == (0, 1, 2)


def test_exit_code_fatal_startup(temp_workdir: Path, capsys):
    # no config/import.yml -> exit 1
    code = main(["import", "data/people.xlsx"])
    assert code == 1
    assert "ERROR config:" in capsys.readouterr().out


def test_exit_code_all_success(write_config, people_workbook: Path, make_db, monkeypatch):
    db = make_db(lookup_data={("COUNTRIES", "CODE"): {"FR": 1, "DE": 2}})

    @contextmanager
    def connected(cfg):
        yield db

    monkeypatch.setattr("sheet_import.cli.__main__.connect", connected)
    assert main(["import", str(people_workbook)]) == 0


def test_exit_code_partial_failure(write_config, people_workbook: Path, make_db, monkeypatch):
    # DE is unknown -> one LOOKUP error, the other rows still import
    db = make_db(lookup_data={("COUNTRIES", "CODE"): {"FR": 1}})

    @contextmanager
    def connected(cfg):
        yield db

    monkeypatch.setattr("sheet_import.cli.__main__.connect", connected)
    assert main(["import", str(people_workbook)]) == 2
    assert len(db.rows) == 1


def test_exit_code_database_unavailable(write_config, people_workbook: Path, monkeypatch):
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    assert main(["import", str(people_workbook)]) == 1
    assert main(["import", str(people_workbook), "--dry-run"]) == 0
