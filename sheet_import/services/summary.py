from __future__ import annotations

from sheet_import.models.processing_result import ImportReport

"""SUMMARY line rendering.

Format (one line, space separated key=value pairs, order fixed):

    SUMMARY file={name} mode={EXECUTE|DRY_RUN} sheets={n} failed_sheets={n}
    rows={n} inserted={n} skipped={n} error_rows={n} lookups={n}
    elapsed_sec={x} throughput_rps={x}

tests/contract/test_summary_output_contract.py holds the regex this must match.
"""

__all__ = [
    "render_summary_line",
    "format_number",
]


def format_number(value: float) -> str:
    """Integers without a decimal point, tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if abs(value) < 0.01:
        return f"{value:.6f}".rstrip('0').rstrip('.')
    return f"{value:.3f}".rstrip('0').rstrip('.')


def render_summary_line(report: ImportReport) -> str:
    """Render the SUMMARY line for ``report``.

    Examples:
        >>> from datetime import datetime, timezone
        >>> from sheet_import.models.config_models import ImportMode
        >>> from sheet_import.models.processing_result import ImportMetrics
        >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
        >>> report = ImportReport(
        ...     source="people.xlsx", config_source="config/import.yml", mode=ImportMode.DRY_RUN,
        ...     start_time=t, end_time=t, duration_ms=2000.0,
        ...     metrics=ImportMetrics(total_rows=10, inserted_rows=10),
        ... )
        >>> render_summary_line(report)  # doctest: +ELLIPSIS
        'SUMMARY file=people.xlsx mode=DRY_RUN sheets=0 failed_sheets=0 rows=10 inserted=10 ...'
    """
    m = report.metrics
    return (
        f"SUMMARY file={report.source} "
        f"mode={report.mode.value} "
        f"sheets={len(report.sheet_results)} "
        f"failed_sheets={report.failed_sheets} "
        f"rows={m.total_rows} "
        f"inserted={m.inserted_rows} "
        f"skipped={m.skipped_rows} "
        f"error_rows={m.error_rows} "
        f"lookups={m.lookups_performed} "
        f"elapsed_sec={format_number(report.duration_ms / 1000)} "
        f"throughput_rps={format_number(report.throughput_rows_per_sec)}"
    )
