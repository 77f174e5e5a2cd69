from __future__ import annotations

import logging
from typing import Any

from sheet_import.db.port import DatabasePort

from .cell_validator import value_text

"""Reference resolution against the target database.

A miss is not an error here; ``RowProcessor`` turns it into a LOOKUP error.
Every query issued is counted so the sheet result can report it.

Keys are sent as text (``250``, ``2024-01-31``, ``true``), whatever the column
type, so the database coerces them to the match column's type.
"""

__all__ = [
    "LookupResolver",
]

logger = logging.getLogger(__name__)


class LookupResolver:
    def __init__(self, db: DatabasePort) -> None:
        self._db = db
        self.performed = 0

    def lookup(self, table: str, match_column: str, value: Any, return_column: str) -> Any | None:
        key = value_text(value)
        if key is None:
            return None
        self.performed += 1
        result = self._db.lookup(table, match_column, key, return_column)
        logger.debug("lookup %s.%s=%r -> %s=%r", table, match_column, key, return_column, result)
        return result

    def exists(self, table: str, column: str, value: Any) -> bool:
        if value is None:
            return False
        return self.lookup(table, column, value, column) is not None
