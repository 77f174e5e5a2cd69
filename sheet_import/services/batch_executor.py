from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from sheet_import.db.port import DatabasePort
from sheet_import.models.config_models import ImportMode

"""Batch submission.

DRY_RUN never reaches the database port: the batch is logged and reported as
if every row had been written. EXECUTE delegates to the port and reports the
timing of each batch through an optional ``metrics_callback``. Driver failures
(``DatabaseError``) propagate to the orchestrator, which owns the rollback.
"""

__all__ = [
    "BatchMetrics",
    "BatchExecutor",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single submitted batch."""
    batch_size: int  # rows in this batch
    elapsed_seconds: float  # time spent inside the database port
    start_time: float  # time.time() at submission
    end_time: float


class BatchExecutor:
    def __init__(
        self,
        db: DatabasePort | None,
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> None:
        self._db = db
        self.metrics_callback = metrics_callback

    def execute_batch(self, sql: str, batch: Sequence[Mapping[str, Any]], mode: ImportMode) -> int:
        """Submit ``batch`` and return the number of rows written (or that would be)."""
        if not batch:
            return 0

        if mode == ImportMode.DRY_RUN:
            logger.info("[DRY_RUN] Would execute %d inserts", len(batch))
            logger.debug("[DRY_RUN] %s", sql)
            return len(batch)

        if self._db is None:
            raise RuntimeError("EXECUTE mode requires a database")

        start_time = time.time()
        try:
            count = self._db.execute_batch(sql, batch)
        finally:
            end_time = time.time()
            if self.metrics_callback is not None:
                self.metrics_callback(
                    BatchMetrics(
                        batch_size=len(batch),
                        elapsed_seconds=end_time - start_time,
                        start_time=start_time,
                        end_time=end_time,
                    )
                )
        logger.debug("batch of %d submitted in %.3fs", len(batch), end_time - start_time)
        return count
