from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

"""Database port used by the import services.

SQL handed to ``execute_batch`` uses ``:name`` placeholders; each element of
``param_maps`` maps placeholder names to values. Adapters translate to their
driver's paramstyle.
"""

__all__ = [
    "DatabaseError",
    "DatabasePort",
]


class DatabaseError(Exception):
    """Raised by adapters when the driver reports a failure."""


@runtime_checkable
class DatabasePort(Protocol):
    def execute_batch(self, sql: str, param_maps: Sequence[Mapping[str, Any]]) -> int:
        """Execute ``sql`` once per parameter map; return the number of rows submitted."""
        ...

    def lookup(self, table: str, match_column: str, value: Any, return_column: str) -> Any | None:
        """Return ``return_column`` of the first row whose ``match_column`` equals ``value``."""
        ...

    def begin_transaction(self) -> None: ...

    def commit_transaction(self) -> None: ...

    def rollback_transaction(self) -> None: ...
