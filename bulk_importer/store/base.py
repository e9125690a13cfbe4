from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

"""Remote data store interface.

Table-oriented select / insert / update / delete with ANDed filter predicates.
Backends raise StoreError with the backend's message; callers only care whether
an error is present, never about backend-specific codes.
"""

__all__ = [
    "StoreError",
    "Filter",
    "Record",
    "DataStore",
]

Record = dict[str, Any]


class StoreError(Exception):
    """Raised when the backend rejects or fails an operation."""


@dataclass(frozen=True)
class Filter:
    """Single predicate: column <op> value.

    op is one of "eq", "neq", "is_null".
    """
    column: str
    op: str
    value: Any = None

    @staticmethod
    def eq(column: str, value: Any) -> Filter:
        return Filter(column, "eq", value)

    @staticmethod
    def neq(column: str, value: Any) -> Filter:
        return Filter(column, "neq", value)

    @staticmethod
    def is_null(column: str) -> Filter:
        return Filter(column, "is_null")

    def matches(self, record: Mapping[str, Any]) -> bool:
        current = record.get(self.column)
        if self.op == "eq":
            return current == self.value
        if self.op == "neq":
            return current != self.value
        if self.op == "is_null":
            return current is None
        raise StoreError(f"unsupported filter op: {self.op}")


class DataStore(ABC):
    """Per-table CRUD used by the import pipeline and the hierarchy service."""

    @abstractmethod
    def select(
        self,
        table: str,
        columns: str | Sequence[str] = "*",
        filters: Iterable[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Record]:
        """Fetch rows of `table`.

        Args:
            table: Table name
            columns: "*", a comma separated string or a sequence of names
            filters: Filters ANDed together
            order_by: Optional sort column
            descending: Sort direction for order_by
            limit: Maximum number of rows (None for all)

        Returns:
            Matching rows as dicts

        Raises:
            StoreError: on any backend failure
        """

    @abstractmethod
    def insert(self, table: str, records: Record | Sequence[Record]) -> list[Record]:
        """Insert one record or a list of records; returns the stored rows."""

    @abstractmethod
    def update(self, table: str, values: Record, filters: Iterable[Filter]) -> list[Record]:
        """Set `values` on every row matching `filters`; returns the updated rows."""

    @abstractmethod
    def delete(self, table: str, filters: Iterable[Filter]) -> list[Record]:
        """Remove rows matching `filters`; returns the removed rows."""

    def close(self) -> None:  # pragma: no cover (trivial)
        """Release backend resources. Default: nothing to release."""

    def __enter__(self) -> DataStore:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def column_list(columns: str | Sequence[str]) -> list[str] | None:
    """Normalize a column spec; None means all columns."""
    if isinstance(columns, str):
        if columns.strip() == "*":
            return None
        return [c.strip() for c in columns.split(",") if c.strip()]
    return list(columns)
