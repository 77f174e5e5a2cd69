from __future__ import annotations

import logging
import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress reporting.

- ``ProgressTracker``: one tqdm bar over the sheets of a workbook, only when
  stdout is a TTY (no ANSI control sequences in CI logs)
- ``RowProgressLogger``: an INFO line each time another 10% of a sheet's rows
  has been processed, in every environment
"""

__all__ = [
    "ProgressTracker",
    "RowProgressLogger",
    "is_tty_enabled",
]

logger = logging.getLogger(__name__)


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """tqdm bar over sheets; a no-op when stdout is not a TTY."""

    def __init__(self, total_sheets: int, *, description: str = "Importing sheets") -> None:
        self.total_sheets = total_sheets
        self.description = description
        self.current_sheet = 0
        self.failed_sheets = 0
        self._postfix: dict[str, Any] = {}

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_sheets,
                desc=description,
                unit="sheet",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def start_sheet(self, sheet_name: str) -> None:
        self.current_sheet += 1
        if self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({sheet_name})")

    def finish_sheet(self, success: bool = True) -> None:
        """Advance the bar; a failed sheet bumps the ``failed`` postfix count."""
        if not success:
            self.failed_sheets += 1
        if self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_description(self.description)
            if not success:
                self._show_postfix()

    def set_postfix(self, **kwargs: Any) -> None:
        self._postfix = dict(kwargs)
        if self.pbar is not None:
            self._show_postfix()

    def _show_postfix(self) -> None:
        postfix = dict(self._postfix)
        if self.failed_sheets:
            postfix["failed"] = self.failed_sheets
        self.pbar.set_postfix(**postfix)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class RowProgressLogger:
    """Logs ``sheet=<name> progress=<pct>% (<done>/<total>)`` at every ``step_percent``."""

    def __init__(self, sheet_name: str, total_rows: int, step_percent: int = 10) -> None:
        self.sheet_name = sheet_name
        self.total_rows = total_rows
        self.step_percent = step_percent
        self._next_percent = step_percent

    def update(self, processed_rows: int) -> None:
        if self.total_rows <= 0:
            return
        percent = processed_rows * 100 // self.total_rows
        if percent < self._next_percent:
            return
        reached = min(100, percent - percent % self.step_percent)
        logger.info(
            "sheet=%s progress=%d%% (%d/%d)", self.sheet_name, reached, processed_rows, self.total_rows
        )
        self._next_percent = reached + self.step_percent
