# Shared pytest fixtures
from __future__ import annotations

import io
import tempfile
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import pandas as pd
import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

from sheet_import.db.port import DatabaseError
from sheet_import.logging.init import reset_logging


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("DISABLE_DB_CONNECT", raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """files:
  - filename: people.xlsx
    null_sentinels: ["N/A"]
    sheets:
      - name: People
        table: people
        on_error: SKIP_ROW
        batch_size: 2
        columns:
          - name: Name
            type: STRING
            validation: {not_empty: true}
            transformations: [{type: TRIM}, {type: UPPERCASE}]
            db_mapping: {db_column: name}
          - name: Email
            type: EMAIL
            db_mapping: {db_column: email}
          - name: Age
            type: INTEGER
            validation: {min: 0, max: 150}
            db_mapping: {db_column: age}
          - name: Country
            type: STRING
            db_mapping:
              db_column: country_id
              lookup: {table: COUNTRIES, match_column: CODE, return_column: ID}
          - name: Status
            type: STRING
            skip_if: ["IGNORE"]
      - name: Notes
        columns:
          - name: Text
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


PEOPLE_HEADER = ["Name", "Email", "Age", "Country", "Status"]


def write_workbook(path: Path, sheets: Mapping[str, Sequence[Sequence[Any]]]) -> Path:
    """Write ``sheets`` (name -> rows, header row first) as an .xlsx file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame([list(r) for r in rows]).to_excel(writer, sheet_name=name, header=False, index=False)
    return path


@pytest.fixture()
def people_workbook(temp_workdir: Path) -> Path:
    return write_workbook(
        temp_workdir / "data" / "people.xlsx",
        {
            "People": [
                PEOPLE_HEADER,
                ["  john  ", "john@example.com", 30, "FR", "ACTIVE"],
                ["  mary ", "mary@example.com", 41, "DE", "ACTIVE"],
                ["skip me", "skip@example.com", 20, "FR", "ignore"],
            ],
            "Notes": [["Text"], ["hello"]],
        },
    )


class FakeDatabase:
    """In-memory ``DatabasePort`` that records every call."""

    def __init__(
        self,
        lookup_data: Mapping[tuple[str, str], Mapping[Any, Any]] | None = None,
        fail_on_batch: int | None = None,
        fail_rollback: bool = False,
    ) -> None:
        # (table, match_column) -> {match value: return value}
        self.lookup_data = dict(lookup_data or {})
        self.fail_on_batch = fail_on_batch  # 1-based batch number that raises
        self.fail_rollback = fail_rollback
        self.batches: list[tuple[str, list[dict[str, Any]]]] = []
        self.lookups: list[tuple[str, str, Any, str]] = []
        self.events: list[str] = []

    @property
    def rows(self) -> list[dict[str, Any]]:
        return [row for _, batch in self.batches for row in batch]

    def execute_batch(self, sql: str, param_maps: Sequence[Mapping[str, Any]]) -> int:
        if self.fail_on_batch is not None and len(self.batches) + 1 == self.fail_on_batch:
            self.events.append("batch-failed")
            raise DatabaseError("duplicate key value violates unique constraint")
        self.batches.append((sql, [dict(p) for p in param_maps]))
        self.events.append(f"batch:{len(param_maps)}")
        return len(param_maps)

    def lookup(self, table: str, match_column: str, value: Any, return_column: str) -> Any | None:
        self.lookups.append((table, match_column, value, return_column))
        return self.lookup_data.get((table, match_column), {}).get(value)

    def begin_transaction(self) -> None:
        self.events.append("begin")

    def commit_transaction(self) -> None:
        self.events.append("commit")

    def rollback_transaction(self) -> None:
        self.events.append("rollback")
        if self.fail_rollback:
            raise DatabaseError("connection lost")


COUNTRIES = {("COUNTRIES", "CODE"): {"FR": 1, "DE": 2}}


@pytest.fixture()
def fake_db() -> FakeDatabase:
    return FakeDatabase(lookup_data=COUNTRIES)


@pytest.fixture()
def make_db():
    return FakeDatabase


@pytest.fixture()
def make_workbook():
    return write_workbook


class FakeTransport(BaseAdapter):
    """requests transport answering from canned routes; records every request with its timeout."""

    def __init__(self) -> None:
        super().__init__()
        # url -> (status, body, headers) or an exception to raise
        self.routes: dict[str, Any] = {}
        self.sent: list[tuple[requests.PreparedRequest, Any]] = []

    def add(self, url: str, body: bytes = b"", status: int = 200, headers: Mapping[str, str] | None = None) -> None:
        self.routes[url] = (status, body, dict(headers or {}))

    def fail(self, url: str, exc: Exception) -> None:
        self.routes[url] = exc

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        self.sent.append((request, timeout))
        route = self.routes.get(request.url, (404, b"not found", {}))
        if isinstance(route, Exception):
            raise route
        status, body, headers = route
        response = requests.Response()
        response.status_code = status
        response.reason = "OK" if status < 400 else "Not Found"
        response.headers = CaseInsensitiveDict(headers)
        response.raw = io.BytesIO(body)
        response.url = request.url
        response.request = request
        return response

    def close(self) -> None:
        pass


@pytest.fixture()
def http_transport(monkeypatch) -> FakeTransport:
    """Fake transport, also mounted on every session the fetcher opens itself."""
    for name in (
        "SHEET_IMPORT_ALLOWED_DOMAINS",
        "SHEET_IMPORT_HTTP_CONNECT_TIMEOUT",
        "SHEET_IMPORT_HTTP_READ_TIMEOUT",
        "SHEET_IMPORT_USER_AGENT",
    ):
        monkeypatch.delenv(name, raising=False)
    transport = FakeTransport()
    monkeypatch.setattr("sheet_import.remote.fetcher.HTTPAdapter", lambda **kwargs: transport)
    return transport


@pytest.fixture()
def http_session(http_transport: FakeTransport) -> requests.Session:
    session = requests.Session()
    session.trust_env = False
    session.mount("http://", http_transport)
    session.mount("https://", http_transport)
    yield session
    session.close()
