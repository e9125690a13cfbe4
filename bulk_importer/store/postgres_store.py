from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

import psycopg2
import psycopg2.extras
from psycopg2.extras import execute_values

from .base import DataStore, Filter, Record, StoreError, column_list

"""Direct PostgreSQL backend (psycopg2).

Multi-row inserts use psycopg2.extras.execute_values with RETURNING * so the
caller receives the stored rows (generated ids included). The connection runs
in autocommit mode: every statement is durable on its own, matching the
per-row, non-transactional insert contract of the hosted backend.

Table and column names come from entity profiles / config, never from
spreadsheet content; they are still double-quoted.
"""

__all__ = [
    "PostgresStore",
]

logger = logging.getLogger(__name__)


def _ident(name: str) -> str:
    if '"' in name:
        raise StoreError(f"invalid identifier: {name}")
    return f'"{name}"'


def _where(filters: Iterable[Filter]) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    for f in filters:
        if f.op == "eq":
            clauses.append(f"{_ident(f.column)} = %s")
            params.append(f.value)
        elif f.op == "neq":
            clauses.append(f"{_ident(f.column)} <> %s")
            params.append(f.value)
        elif f.op == "is_null":
            clauses.append(f"{_ident(f.column)} IS NULL")
        else:
            raise StoreError(f"unsupported filter op: {f.op}")
    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


class PostgresStore(DataStore):
    def __init__(self, connection: Any, page_size: int = 1000) -> None:
        self.connection = connection
        self.page_size = page_size

    @classmethod
    def connect(cls, dsn: str) -> PostgresStore:
        try:
            conn = psycopg2.connect(dsn)
        except Exception as e:
            raise StoreError(f"database connection failed: {e}") from e
        conn.autocommit = True
        return cls(conn)

    def _cursor(self) -> Any:
        return self.connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)

    def _run(self, sql: str, params: Sequence[Any]) -> list[Record]:
        logger.debug("sql=%s params=%s", sql, params)
        try:
            with self._cursor() as cur:
                cur.execute(sql, params)
                if cur.description is None:
                    return []
                return [dict(r) for r in cur.fetchall()]
        except Exception as e:
            raise StoreError(str(e)) from e

    def select(
        self,
        table: str,
        columns: str | Sequence[str] = "*",
        filters: Iterable[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Record]:
        wanted = column_list(columns)
        cols_sql = "*" if wanted is None else ",".join(_ident(c) for c in wanted)
        where, params = _where(filters)
        sql = f"SELECT {cols_sql} FROM {_ident(table)}{where}"
        if order_by is not None:
            sql += f" ORDER BY {_ident(order_by)} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            sql += " LIMIT %s"
            params.append(int(limit))
        return self._run(sql, params)

    def insert(self, table: str, records: Record | Sequence[Record]) -> list[Record]:
        rows_list = [records] if isinstance(records, dict) else list(records)
        if not rows_list:
            return []
        columns = list(rows_list[0].keys())
        cols_sql = ",".join(_ident(c) for c in columns)
        base_sql = f"INSERT INTO {_ident(table)} ({cols_sql}) VALUES %s RETURNING *"
        values = [[row.get(c) for c in columns] for row in rows_list]
        try:
            with self._cursor() as cur:
                returned = execute_values(cur, base_sql, values, page_size=self.page_size, fetch=True)
        except Exception as e:
            raise StoreError(str(e)) from e
        return [dict(r) for r in returned]

    def update(self, table: str, values: Record, filters: Iterable[Filter]) -> list[Record]:
        if not values:
            return []
        set_sql = ",".join(f"{_ident(c)} = %s" for c in values)
        where, params = _where(filters)
        sql = f"UPDATE {_ident(table)} SET {set_sql}{where} RETURNING *"
        return self._run(sql, [*values.values(), *params])

    def delete(self, table: str, filters: Iterable[Filter]) -> list[Record]:
        where, params = _where(filters)
        return self._run(f"DELETE FROM {_ident(table)}{where} RETURNING *", params)

    def close(self) -> None:
        if self.connection is not None and not self.connection.closed:
            self.connection.close()
