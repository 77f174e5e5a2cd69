from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

"""Database stand-in for dry runs without a reachable database.

Nothing is written; lookups answer with a recognisable placeholder so rows that
depend on them still classify as valid.
"""

__all__ = [
    "DryRunDatabase",
]

logger = logging.getLogger(__name__)


class DryRunDatabase:
    def __init__(self) -> None:
        self.lookups = 0

    def execute_batch(self, sql: str, param_maps: Sequence[Mapping[str, Any]]) -> int:
        logger.debug("[DRY_RUN] skip batch of %d: %s", len(param_maps), sql)
        return len(param_maps)

    def lookup(self, table: str, match_column: str, value: Any, return_column: str) -> Any | None:
        self.lookups += 1
        if value is None:
            return None
        return f"[MOCK_{return_column.upper()}]"

    def begin_transaction(self) -> None:
        pass

    def commit_transaction(self) -> None:
        pass

    def rollback_transaction(self) -> None:
        pass
