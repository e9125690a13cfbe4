from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from supabase import Client, create_client

from .base import DataStore, Filter, Record, StoreError, column_list

"""Hosted-database backend using the supabase-py client (PostgREST).

Each call builds a query with the table builder, applies the ANDed filters
and executes it; selects repeat the query over consecutive ranges. Any
client/HTTP failure is re-raised as StoreError carrying the backend message.
Paged selects order by "id", which every imported table carries.
"""

__all__ = [
    "SupabaseStore",
]

logger = logging.getLogger(__name__)


def _apply_filters(query: Any, filters: Iterable[Filter]) -> Any:
    for f in filters:
        if f.op == "eq":
            query = query.eq(f.column, f.value)
        elif f.op == "neq":
            query = query.neq(f.column, f.value)
        elif f.op == "is_null":
            query = query.is_(f.column, "null")
        else:
            raise StoreError(f"unsupported filter op: {f.op}")
    return query


class SupabaseStore(DataStore):
    """DataStore over a supabase-py Client.

    Args:
        client: Connected supabase Client
        page_size: Rows requested per select page. PostgREST caps every
            response (db-max-rows, 1000 on hosted projects), so selects page
            with Range requests until an empty page comes back.
    """

    def __init__(self, client: Client, page_size: int = 1000) -> None:
        self.client = client
        self.page_size = page_size

    @classmethod
    def connect(cls, url: str, key: str) -> SupabaseStore:
        try:
            return cls(create_client(url, key))
        except Exception as e:
            raise StoreError(f"supabase connection failed: {e}") from e

    def _execute(self, query: Any, action: str, table: str) -> list[Record]:
        try:
            response = query.execute()
        except Exception as e:
            raise StoreError(str(e)) from e
        data = response.data or []
        logger.debug("supabase %s table=%s rows=%d", action, table, len(data))
        return list(data)

    def select(
        self,
        table: str,
        columns: str | Sequence[str] = "*",
        filters: Iterable[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Record]:
        """Fetch matching rows, following pages past the server row cap.

        Pages are ordered by `order_by` (when given) and then by id so that
        consecutive ranges neither skip nor repeat rows.

        Returns:
            At most `limit` rows (all rows when limit is None)
        """
        if limit is not None and limit <= 0:
            return []
        wanted = column_list(columns)
        filters = list(filters)
        rows: list[Record] = []
        while True:
            size = self.page_size if limit is None else min(self.page_size, limit - len(rows))
            query = self.client.table(table).select("*" if wanted is None else ",".join(wanted))
            query = _apply_filters(query, filters)
            if order_by is not None:
                query = query.order(order_by, desc=descending)
            if order_by != "id":
                query = query.order("id")
            start = len(rows)
            page = self._execute(query.range(start, start + size - 1), "select", table)
            rows.extend(page)
            if not page or (limit is not None and len(rows) >= limit):
                return rows[:limit] if limit is not None else rows

    def insert(self, table: str, records: Record | Sequence[Record]) -> list[Record]:
        """Insert one record or a list in a single request; returns the stored rows."""
        payload = records if isinstance(records, dict) else list(records)
        return self._execute(self.client.table(table).insert(payload), "insert", table)

    def update(self, table: str, values: Record, filters: Iterable[Filter]) -> list[Record]:
        """Set `values` on every row matching `filters`; returns the updated rows."""
        query = _apply_filters(self.client.table(table).update(values), filters)
        return self._execute(query, "update", table)

    def delete(self, table: str, filters: Iterable[Filter]) -> list[Record]:
        """Delete rows matching `filters`; returns the removed rows."""
        query = _apply_filters(self.client.table(table).delete(), filters)
        return self._execute(query, "delete", table)
