from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from sheet_import.config.loader import ConfigError, find_file_config, load_config
from sheet_import.db.dry_run import DryRunDatabase
from sheet_import.db.port import DatabaseError, DatabasePort
from sheet_import.db.postgres import connect
from sheet_import.excel.reader import WorkbookError, open_workbook
from sheet_import.logging.error_log import ErrorLogBuffer
from sheet_import.logging.init import log_summary, set_debug, setup_logging
from sheet_import.models.config_models import FilesConfig, ImportMode
from sheet_import.remote.fetcher import RemoteSourceError, UrlFetcher, source_name
from sheet_import.services.inspection import SheetStructureError, transform_workbook, validate_workbook
from sheet_import.services.orchestrator import ImportOrchestrator
from sheet_import.services.summary import render_summary_line

"""Command line entrypoint.

    python -m sheet_import.cli import    data/people.xlsx [--dry-run] [--report out.json]
    python -m sheet_import.cli validate  data/people.xlsx
    python -m sheet_import.cli transform data/people.xlsx [--report out.json]
    python -m sheet_import.cli import    https://files.example.com/people.xlsx --allowed-domain example.com

The workbook's file name selects its entry in the config (``--config``,
default ``config/import.yml``). Both the workbook and the config may be
http(s) URLs; their host must be listed with ``--allowed-domain`` or in
``SHEET_IMPORT_ALLOWED_DOMAINS``. ``.env`` in the working directory is loaded
first and overrides the process environment, so its PG* / DATABASE_URL values
win over the config's ``database`` section.

Exit codes: 0 everything succeeded, 2 some sheet failed or some row is invalid,
1 fatal (config, workbook, or database connection in EXECUTE mode).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

DEFAULT_CONFIG_PATH = Path("config/import.yml")


def _load_env_file(path: Path, override: bool = True) -> None:
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("workbook", help="Path or http(s) URL of the .xlsx workbook")
    common.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="YAML import config (path or http(s) URL)")
    common.add_argument("--debug", action="store_true", help="Enable debug logging")
    common.add_argument("--report", type=Path, default=None, help="Write the JSON report to this path")
    common.add_argument(
        "--allowed-domain",
        action="append",
        default=[],
        metavar="DOMAIN",
        help="Allow URL sources from this domain and its subdomains (repeatable)",
    )
    common.add_argument("--connect-timeout", type=float, default=None, help="HTTP connect timeout in seconds")
    common.add_argument("--read-timeout", type=float, default=None, help="HTTP read timeout in seconds")

    p = argparse.ArgumentParser(prog="sheet_import", description="Spreadsheet -> database importer")
    sub = p.add_subparsers(dest="command", required=True)
    imp = sub.add_parser("import", parents=[common], help="Validate, transform and import a workbook")
    imp.add_argument("--dry-run", action="store_true", help="Classify rows without writing anything")
    sub.add_parser("validate", parents=[common], help="Check headers and cell rules only")
    sub.add_parser("transform", parents=[common], help="Show transformed cell values")
    return p.parse_args(argv)


def _write_report(path: Path | None, payload: dict[str, Any]) -> None:
    text = json.dumps(payload, ensure_ascii=False, indent=2, default=str)
    if path is None:
        print(text)
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text + "\n", encoding="utf-8")


@contextmanager
def _database(cfg: FilesConfig, mode: ImportMode, logger: Any) -> Iterator[DatabasePort]:
    """Yield the database port for ``mode``.

    A dry run falls back to ``DryRunDatabase`` when no database is reachable
    (or ``DISABLE_DB_CONNECT=1``); EXECUTE re-raises the connection error.
    """
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        if mode == ImportMode.EXECUTE:
            raise DatabaseError("DB connect disabled via DISABLE_DB_CONNECT=1")
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> dry-run database")
        yield DryRunDatabase()
        return
    with ExitStack() as stack:
        try:
            db: DatabasePort = stack.enter_context(connect(cfg.database))
        except DatabaseError as e:
            if mode == ImportMode.EXECUTE:
                raise
            logger.info(f"DB connection failed -> dry-run database with mock lookups: {e}")
            db = DryRunDatabase()
        yield db


def _run_import(args: argparse.Namespace, cfg: FilesConfig, logger: Any, fetcher: UrlFetcher) -> int:
    mode = ImportMode.DRY_RUN if args.dry_run else ImportMode.EXECUTE
    file_cfg = find_file_config(cfg, source_name(args.workbook))
    try:
        with _database(cfg, mode, logger) as db, open_workbook(
            args.workbook, null_sentinels=file_cfg.null_sentinels, fetcher=fetcher
        ) as workbook:
            orchestrator = ImportOrchestrator(db, dialect=cfg.database.dialect, error_log=ErrorLogBuffer())
            report = orchestrator.run(workbook, file_cfg, mode, config_source=args.config)
    except DatabaseError as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL

    for r in report.sheet_results:
        for err in r.errors:
            logger.warning(
                f"sheet={r.sheet_name} row={err.row_number} column={err.column_name} "
                f"type={err.error_type.value} {err.message}"
            )
    if args.report is not None:
        _write_report(args.report, report.to_dict())

    # log_summary adds the "SUMMARY " label itself
    log_summary(render_summary_line(report)[len("SUMMARY "):])
    return EXIT_SUCCESS_ALL if report.is_success else EXIT_PARTIAL_FAILURE


def _run_validate(args: argparse.Namespace, cfg: FilesConfig, logger: Any, fetcher: UrlFetcher) -> int:
    file_cfg = find_file_config(cfg, source_name(args.workbook))
    with open_workbook(args.workbook, null_sentinels=file_cfg.null_sentinels, fetcher=fetcher) as workbook:
        report = validate_workbook(workbook, file_cfg)
    for s in report.sheets:
        for e in s.row_errors:
            logger.warning(f"sheet={s.sheet_name} row={e.row_number} column={e.column_name} {e.message}")
    if args.report is not None:
        _write_report(args.report, report.to_dict())
    total = sum(s.total_rows for s in report.sheets)
    invalid = sum(s.invalid_rows for s in report.sheets)
    log_summary(
        f"file={report.filename} size={report.file_size.replace(' ', '')} "
        f"sheets={len(report.sheets)} rows={total} invalid_rows={invalid}"
    )
    return EXIT_SUCCESS_ALL if report.is_valid else EXIT_PARTIAL_FAILURE


def _run_transform(args: argparse.Namespace, cfg: FilesConfig, logger: Any, fetcher: UrlFetcher) -> int:
    file_cfg = find_file_config(cfg, source_name(args.workbook))
    with open_workbook(args.workbook, null_sentinels=file_cfg.null_sentinels, fetcher=fetcher) as workbook:
        result = transform_workbook(workbook, file_cfg)
    _write_report(args.report, result.to_dict())
    logger.info(f"transformed sheets={len(result.sheets)} rows={sum(len(s.rows) for s in result.sheets)}")
    return EXIT_SUCCESS_ALL


_COMMANDS = {
    "import": _run_import,
    "validate": _run_validate,
    "transform": _run_transform,
}


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # Only read sys.argv when no list is given: main([]) from tests must not pick up pytest's flags
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    try:
        fetcher = UrlFetcher.from_env(args.allowed_domain, args.connect_timeout, args.read_timeout)
        cfg = load_config(args.config, fetcher=fetcher)
    except (ConfigError, RemoteSourceError) as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        return _COMMANDS[args.command](args, cfg, logger, fetcher)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    except WorkbookError as e:
        logger.error(f"workbook: {e}")
        return EXIT_FATAL
    except SheetStructureError as e:
        logger.error(f"structure: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
