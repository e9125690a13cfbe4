from __future__ import annotations

import datetime as dt
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..models.session import ValidatedRow
from ..store.base import DataStore, Record
from ..validation.rules import Required, Rule

"""EntityProfile: everything the generic pipeline needs to import one entity.

A profile bundles the target table, the column documentation used for
templates, the validation rules and the mapper turning a ValidatedRow into the
record sent to the store.
"""

__all__ = [
    "INSERT_MODE_ROW",
    "INSERT_MODE_BATCH",
    "Column",
    "UploadContext",
    "EntityProfile",
    "iso_date",
    "text_or_none",
]

INSERT_MODE_ROW = "row"
INSERT_MODE_BATCH = "batch"


@dataclass(frozen=True)
class Column:
    name: str
    description: str


@dataclass
class UploadContext:
    """Per-upload state handed to mappers (store access + scratch cache)."""
    store: DataStore
    table: str
    state: dict[str, Any] = field(default_factory=dict)


Mapper = Callable[[ValidatedRow, UploadContext], Record]


@dataclass(frozen=True)
class EntityProfile:
    name: str
    title: str
    table: str
    columns: tuple[Column, ...]
    rules: tuple[Rule, ...]
    mapper: Mapper
    example_rows: tuple[dict[str, Any], ...] = ()
    on_existing: str = "error"
    insert_mode: str = INSERT_MODE_ROW
    notes: tuple[str, ...] = ()

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def required_fields(self) -> list[str]:
        return [r.field for r in self.rules if isinstance(r, Required)]

    def build_record(self, row: ValidatedRow, context: UploadContext) -> Record:
        return self.mapper(row, context)

    def build_records(self, rows: Sequence[ValidatedRow], context: UploadContext) -> list[Record]:
        return [self.mapper(r, context) for r in rows]


def text_or_none(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def iso_date(value: Any) -> str | None:
    """Dates read from Excel arrive as datetime objects; CSV gives text."""
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date().isoformat()
    if isinstance(value, dt.date):
        return value.isoformat()
    return text_or_none(value)
