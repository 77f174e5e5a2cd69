from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import IO, Any

from sheet_import.db.port import DatabasePort
from sheet_import.excel.reader import Workbook, open_workbook
from sheet_import.logging.error_log import ErrorLogBuffer
from sheet_import.models.config_models import ErrorStrategy, FileConfig, ImportMode, SheetConfig
from sheet_import.models.error_record import ImportErrorDetail
from sheet_import.models.processing_result import (
    BatchStatsAccumulator,
    ImportMetrics,
    ImportReport,
    SheetImportResult,
)

from .batch_executor import BatchExecutor
from .cell_transformer import CellTransformer
from .cell_validator import CellValidator
from .lookup import LookupResolver
from .progress import ProgressTracker, RowProgressLogger
from .row_processor import RowProcessor
from .sql_builder import SqlBuilder
from .value_extractor import ValueExtractor

"""Import orchestration.

One workbook per run, sheets in configuration order, one transaction per sheet
(EXECUTE mode). Rows are classified by ``RowProcessor``; valid ones are queued
and flushed every ``batch_size`` rows and at the end of the sheet.

Error strategies:
- SKIP_ROW: record the invalid row and continue
- FAIL_SHEET: stop the sheet at the first invalid row; rows already queued are
  flushed and committed; later sheets still run
- FAIL_ALL: as FAIL_SHEET, then no later sheet runs

An exception while a sheet is running rolls its transaction back, zeroes its
inserted count and is recorded as a DATABASE error on row 0. Only failing to
open the workbook is raised to the caller.
"""

__all__ = [
    "ImportOrchestrator",
]

logger = logging.getLogger(__name__)


class ImportOrchestrator:
    def __init__(
        self,
        db: DatabasePort,
        *,
        dialect: str = "oracle",
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self._db = db
        self._error_log = error_log
        self._sql_builder = SqlBuilder(dialect)
        self._lookups = LookupResolver(db)
        self._processor = RowProcessor(
            validator=CellValidator(),
            extractor=ValueExtractor(CellTransformer()),
            lookups=self._lookups,
        )

    def run(
        self,
        workbook_source: Workbook | Path | str | IO[bytes],
        file_config: FileConfig,
        mode: ImportMode,
        config_source: str = "",
    ) -> ImportReport:
        """Import every configured sheet of the workbook and return the report.

        Raises:
            WorkbookError: the workbook cannot be opened
        """
        start_time = datetime.now(UTC)
        if isinstance(workbook_source, Workbook):
            results = self._run_sheets(workbook_source, file_config, mode)
            source_name = workbook_source.name
        else:
            with open_workbook(workbook_source, null_sentinels=file_config.null_sentinels) as workbook:
                results = self._run_sheets(workbook, file_config, mode)
                source_name = workbook.name

        self._flush_error_log()

        end_time = datetime.now(UTC)
        metrics = ImportMetrics.empty()
        for r in results:
            metrics = metrics.combine(r.metrics)
        report = ImportReport(
            source=source_name,
            config_source=config_source,
            mode=mode,
            start_time=start_time,
            end_time=end_time,
            duration_ms=(end_time - start_time).total_seconds() * 1000,
            sheet_results=tuple(results),
            metrics=metrics,
        )
        logger.info(
            "import finished file=%s mode=%s sheets=%d inserted=%d errors=%d duration=%s",
            report.source,
            mode.value,
            len(results),
            metrics.inserted_rows,
            report.total_errors,
            report.duration_formatted,
        )
        return report

    def _run_sheets(self, workbook: Workbook, file_config: FileConfig, mode: ImportMode) -> list[SheetImportResult]:
        importable = [s for s in file_config.sheets if s.table]
        for s in file_config.sheets:
            if not s.table:
                logger.debug("sheet=%s has no target table, skipped", s.name)

        results: list[SheetImportResult] = []
        with ProgressTracker(len(importable)) as progress:
            for sheet_cfg in importable:
                progress.start_sheet(sheet_cfg.name)
                result = self._import_sheet(workbook, sheet_cfg, mode)
                results.append(result)
                self._record_errors(workbook.name, result)
                progress.set_postfix(inserted=result.inserted_rows, errors=len(result.errors))
                progress.finish_sheet(success=result.is_success)

                if not result.is_success and sheet_cfg.on_error == ErrorStrategy.FAIL_ALL:
                    logger.warning("sheet=%s failed with FAIL_ALL, remaining sheets not imported", sheet_cfg.name)
                    break
        return results

    def _import_sheet(self, workbook: Workbook, cfg: SheetConfig, mode: ImportMode) -> SheetImportResult:
        sheet = workbook.sheet(cfg.name)
        if sheet is None:
            logger.error("sheet=%s not found in %s", cfg.name, workbook.name)
            return SheetImportResult(
                sheet_name=cfg.name,
                table_name=cfg.table,
                errors=(ImportErrorDetail.validation(0, None, f"Sheet not found: {cfg.name}"),),
            )

        logger.info("sheet=%s table=%s mode=%s start", cfg.name, cfg.table, mode.value)
        stats = BatchStatsAccumulator()
        executor = BatchExecutor(self._db, metrics_callback=lambda m: stats.add_batch_time(m.elapsed_seconds))
        batch_size = cfg.effective_batch_size
        progress = RowProgressLogger(cfg.name, max(sheet.last_row_index, 0))

        total = inserted = skipped = error_rows = lookups = 0
        errors: list[ImportErrorDetail] = []
        batch: list[Any] = []
        in_transaction = False

        try:
            sql = self._sql_builder.resolve_sql(cfg)
            if mode == ImportMode.EXECUTE:
                self._db.begin_transaction()
                in_transaction = True

            for idx in range(1, sheet.last_row_index + 1):
                progress.update(idx)
                row = sheet.row(idx)
                if row is None:
                    continue
                total += 1
                outcome = self._processor.process_row(row, row.number, cfg)
                lookups += outcome.lookups

                if outcome.skipped:
                    skipped += 1
                    continue
                if not outcome.valid:
                    error_rows += 1
                    errors.extend(outcome.errors)
                    if cfg.on_error in (ErrorStrategy.FAIL_SHEET, ErrorStrategy.FAIL_ALL):
                        logger.warning(
                            "sheet=%s row=%d invalid, stopping sheet (%s)", cfg.name, row.number, cfg.on_error.value
                        )
                        break
                    continue

                batch.append(outcome.named_params)
                if len(batch) >= batch_size:
                    inserted += executor.execute_batch(sql, batch, mode)
                    batch = []

            if batch:
                inserted += executor.execute_batch(sql, batch, mode)
                batch = []

            if in_transaction:
                self._db.commit_transaction()
                in_transaction = False
        except Exception as e:
            logger.error("sheet=%s failed: %s", cfg.name, e)
            if in_transaction:
                try:
                    self._db.rollback_transaction()
                except Exception as rollback_e:
                    logger.error("sheet=%s rollback failed: %s", cfg.name, rollback_e)
                    errors.append(ImportErrorDetail.database(0, f"Rollback failed: {rollback_e}"))
                errors.append(ImportErrorDetail.database(0, f"Transaction rolled back: {e}"))
            else:
                errors.append(ImportErrorDetail.database(0, f"Sheet import failed: {e}"))
            inserted = 0

        total_batches, avg_batch, p95_batch = stats.get_stats()
        result = SheetImportResult(
            sheet_name=cfg.name,
            table_name=cfg.table,
            total_rows=total,
            inserted_rows=inserted,
            skipped_rows=skipped,
            error_rows=error_rows,
            errors=tuple(errors),
            lookups_performed=lookups,
            db_time_ms=stats.total_seconds * 1000,
            total_batches=total_batches,
            avg_batch_seconds=avg_batch,
            p95_batch_seconds=p95_batch,
        )
        logger.info(
            "sheet=%s table=%s total=%d inserted=%d skipped=%d error_rows=%d",
            cfg.name,
            cfg.table,
            total,
            inserted,
            skipped,
            error_rows,
        )
        return result

    def _record_errors(self, file_name: str, result: SheetImportResult) -> None:
        if self._error_log is None:
            return
        for detail in result.errors:
            self._error_log.append_detail(file_name, result.sheet_name, detail)

    def _flush_error_log(self) -> None:
        if self._error_log is None:
            return
        try:
            path = self._error_log.flush()
        except OSError as e:
            # rows are already committed at this point
            logger.warning("error log flush failed: %s", e)
            return
        if path is not None:
            logger.info("errors written to %s", path)
