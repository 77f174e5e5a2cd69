from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .config_models import ImportMode
from .error_record import ErrorType, ImportErrorDetail

"""Processing result models for the import pipeline.

Per-sheet results are aggregated into an ``ImportReport``. All records are built
once the sheet (or the run) is finished and are not mutated afterwards.
"""

__all__ = [
    "ImportMetrics",
    "SheetImportResult",
    "ImportReport",
    "BatchStatsAccumulator",
    "format_duration",
]


@dataclass(frozen=True)
class ImportMetrics:
    total_rows: int = 0  # data rows seen (blank rows excluded)
    inserted_rows: int = 0  # rows persisted (or would be, in dry run)
    skipped_rows: int = 0  # rows skipped by skip_if / skip expressions
    error_rows: int = 0  # invalid rows
    lookups_performed: int = 0
    db_time_ms: float = 0.0

    @staticmethod
    def empty() -> ImportMetrics:
        return ImportMetrics()

    def combine(self, other: ImportMetrics) -> ImportMetrics:
        return ImportMetrics(
            total_rows=self.total_rows + other.total_rows,
            inserted_rows=self.inserted_rows + other.inserted_rows,
            skipped_rows=self.skipped_rows + other.skipped_rows,
            error_rows=self.error_rows + other.error_rows,
            lookups_performed=self.lookups_performed + other.lookups_performed,
            db_time_ms=self.db_time_ms + other.db_time_ms,
        )


@dataclass(frozen=True)
class SheetImportResult:
    sheet_name: str
    table_name: str | None
    total_rows: int = 0
    inserted_rows: int = 0
    skipped_rows: int = 0
    error_rows: int = 0
    errors: tuple[ImportErrorDetail, ...] = ()
    lookups_performed: int = 0
    db_time_ms: float = 0.0
    # Batch timing statistics
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0

    @property
    def is_success(self) -> bool:
        return not self.errors

    @property
    def metrics(self) -> ImportMetrics:
        return ImportMetrics(
            total_rows=self.total_rows,
            inserted_rows=self.inserted_rows,
            skipped_rows=self.skipped_rows,
            error_rows=self.error_rows,
            lookups_performed=self.lookups_performed,
            db_time_ms=self.db_time_ms,
        )

    def errors_of(self, error_type: ErrorType) -> list[ImportErrorDetail]:
        return [e for e in self.errors if e.error_type == error_type]

    def to_dict(self) -> dict[str, Any]:
        return {
            "sheet": self.sheet_name,
            "table": self.table_name,
            "total_rows": self.total_rows,
            "inserted_rows": self.inserted_rows,
            "skipped_rows": self.skipped_rows,
            "error_rows": self.error_rows,
            "lookups_performed": self.lookups_performed,
            "db_time_ms": round(self.db_time_ms, 3),
            "total_batches": self.total_batches,
            "avg_batch_seconds": self.avg_batch_seconds,
            "p95_batch_seconds": self.p95_batch_seconds,
            "success": self.is_success,
            "errors": [e.to_dict() for e in self.errors],
        }


def format_duration(duration_ms: float) -> str:
    """Render a duration as ``Nms`` (<1s), ``N.NNs`` (<1min) or ``Xm Ys``."""
    if duration_ms < 1000:
        return f"{int(duration_ms)}ms"
    seconds = duration_ms / 1000
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes = int(seconds // 60)
    return f"{minutes}m {int(seconds % 60)}s"


@dataclass(frozen=True)
class ImportReport:
    """Aggregated result of one import run."""
    source: str  # workbook name
    config_source: str  # config file the sheets came from
    mode: ImportMode
    start_time: datetime
    end_time: datetime
    duration_ms: float
    sheet_results: tuple[SheetImportResult, ...] = ()
    metrics: ImportMetrics = field(default_factory=ImportMetrics)

    @property
    def duration_formatted(self) -> str:
        return format_duration(self.duration_ms)

    @property
    def is_success(self) -> bool:
        return all(r.is_success for r in self.sheet_results)

    @property
    def total_errors(self) -> int:
        return sum(len(r.errors) for r in self.sheet_results)

    @property
    def failed_sheets(self) -> int:
        return sum(1 for r in self.sheet_results if not r.is_success)

    @property
    def throughput_rows_per_sec(self) -> float:
        if self.duration_ms <= 0:
            return 0.0
        return self.metrics.inserted_rows / (self.duration_ms / 1000)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "config_source": self.config_source,
            "mode": self.mode.value,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration": self.duration_formatted,
            "success": self.is_success,
            "total_errors": self.total_errors,
            "metrics": {
                "total_rows": self.metrics.total_rows,
                "inserted_rows": self.metrics.inserted_rows,
                "skipped_rows": self.metrics.skipped_rows,
                "error_rows": self.metrics.error_rows,
                "lookups_performed": self.metrics.lookups_performed,
                "db_time_ms": round(self.metrics.db_time_ms, 3),
            },
            "sheets": [r.to_dict() for r in self.sheet_results],
        }


class BatchStatsAccumulator:
    """Collects per-batch timings and reduces them to (count, avg, p95)."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    @property
    def total_seconds(self) -> float:
        return sum(self.batch_times)

    def get_stats(self) -> tuple[int, float, float]:
        """Return ``(total_batches, avg_batch_seconds, p95_batch_seconds)``."""
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            # 19th of 20 cut points = 95th percentile
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
