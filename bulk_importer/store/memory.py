from __future__ import annotations

import copy
import itertools
from collections.abc import Iterable, Sequence
from typing import Any

from .base import DataStore, Filter, Record, StoreError, column_list

"""In-process store.

Backs the CLI mock mode (DISABLE_DB_CONNECT=1 or store.backend=memory) and the
test suite. Every table is a list of dicts; inserted rows get an integer "id"
when none is given.
"""

__all__ = [
    "MemoryStore",
]


class MemoryStore(DataStore):
    def __init__(self, tables: dict[str, list[Record]] | None = None) -> None:
        self.tables: dict[str, list[Record]] = {}
        self._ids = itertools.count(1)
        # Per-table failure injection: table -> number of successful inserts before failing
        self._fail_after: dict[str, tuple[int, str]] = {}
        for table, rows in (tables or {}).items():
            self.insert(table, rows)

    def fail_inserts_after(self, table: str, successes: int, message: str = "insert rejected") -> None:
        """Make inserts into `table` fail once `successes` more inserts have gone through."""
        self._fail_after[table] = (successes, message)

    def _table(self, table: str) -> list[Record]:
        return self.tables.setdefault(table, [])

    def _check_failure(self, table: str) -> None:
        if table not in self._fail_after:
            return
        remaining, message = self._fail_after[table]
        if remaining <= 0:
            raise StoreError(message)
        self._fail_after[table] = (remaining - 1, message)

    def select(
        self,
        table: str,
        columns: str | Sequence[str] = "*",
        filters: Iterable[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Record]:
        filters = list(filters)
        rows = [r for r in self._table(table) if all(f.matches(r) for f in filters)]
        if order_by is not None:
            # None sorts first ascending, last descending
            rows.sort(key=lambda r: (r.get(order_by) is not None, r.get(order_by)), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        wanted = column_list(columns)
        if wanted is None:
            return [copy.deepcopy(r) for r in rows]
        return [{c: r.get(c) for c in wanted} for r in rows]

    def insert(self, table: str, records: Record | Sequence[Record]) -> list[Record]:
        batch = [records] if isinstance(records, dict) else list(records)
        self._check_failure(table)
        stored: list[Record] = []
        for record in batch:
            row = dict(record)
            row.setdefault("id", next(self._ids))
            stored.append(row)
        self._table(table).extend(stored)
        return [dict(r) for r in stored]

    def update(self, table: str, values: Record, filters: Iterable[Filter]) -> list[Record]:
        filters = list(filters)
        changed: list[Record] = []
        for row in self._table(table):
            if all(f.matches(row) for f in filters):
                row.update(values)
                changed.append(dict(row))
        return changed

    def delete(self, table: str, filters: Iterable[Filter]) -> list[Record]:
        filters = list(filters)
        kept: list[Record] = []
        removed: list[Record] = []
        for row in self._table(table):
            (removed if all(f.matches(row) for f in filters) else kept).append(row)
        self.tables[table] = kept
        return removed

    def count(self, table: str) -> int:
        return len(self._table(table))

    def rows(self, table: str) -> list[dict[str, Any]]:
        return [dict(r) for r in self._table(table)]
