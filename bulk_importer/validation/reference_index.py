from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from ..store.base import DataStore
from .rules import ExistsInStore, Reference, cell_text

"""Reference lookup index built once per validation run.

Every (table, key_column) pair named by the profile's Reference rules, and
every ExistsInStore rule, is fetched with a single select before any row is
checked. Rows then resolve natural keys against the in-memory maps instead of
issuing one query per row.

Keys are compared on their cell text (see rules.cell_text) so that a CNPJ or
code read from Excel as a number matches the text stored remotely.
"""

__all__ = [
    "ReferenceIndexError",
    "ReferenceSource",
    "ReferenceIndex",
    "collect_sources",
]

logger = logging.getLogger(__name__)


class ReferenceIndexError(Exception):
    """Raised when a lookup touches a table that was never fetched."""
    pass


@dataclass(frozen=True)
class ReferenceSource:
    """One remote lookup map: key_column text -> id_column values."""
    table: str
    key_column: str
    id_column: str = "id"


def collect_sources(rules: Iterable[Any]) -> list[ReferenceSource]:
    """Distinct lookup sources needed by the Reference rules, in rule order."""
    seen: list[ReferenceSource] = []
    for rule in rules:
        if isinstance(rule, Reference):
            source = ReferenceSource(rule.table, rule.key_column, rule.id_column)
            if source not in seen:
                seen.append(source)
    return seen


class ReferenceIndex:
    def __init__(self, store: DataStore) -> None:
        self.store = store
        self._maps: dict[ReferenceSource, dict[str, list[Any]]] = {}
        self._existing: dict[ExistsInStore, dict[tuple[str, ...], Any]] = {}
        self.queries = 0

    @classmethod
    def build(cls, store: DataStore, rules: Sequence[Any]) -> ReferenceIndex:
        """Fetch every lookup the rules need.

        Parameters
        ----------
        store: Data store to read from
        rules: Entity profile rules (non-lookup rules are ignored)

        Returns
        -------
        ReferenceIndex: populated index

        Raises
        ------
        StoreError: propagated from the store on any read failure
        """
        index = cls(store)
        for source in collect_sources(rules):
            index.load_source(source)
        for rule in rules:
            if isinstance(rule, ExistsInStore):
                index.load_existing(rule)
        return index

    def load_source(self, source: ReferenceSource) -> None:
        columns = [source.id_column] if source.id_column == source.key_column else [source.id_column, source.key_column]
        records = self.store.select(source.table, columns=columns)
        self.queries += 1
        mapping: dict[str, list[Any]] = {}
        for record in records:
            key = cell_text(record.get(source.key_column))
            if key:
                mapping.setdefault(key, []).append(record.get(source.id_column))
        self._maps[source] = mapping
        logger.debug("reference map table=%s key=%s entries=%d", source.table, source.key_column, len(mapping))

    def load_existing(self, rule: ExistsInStore) -> None:
        records = self.store.select(rule.table, columns=["id", *rule.store_columns])
        self.queries += 1
        existing: dict[tuple[str, ...], Any] = {}
        for record in records:
            key = tuple(cell_text(record.get(c)) for c in rule.store_columns)
            # first stored record wins when the store itself holds duplicates
            existing.setdefault(key, record.get("id"))
        self._existing[rule] = existing

    def lookup(self, table: str, key_column: str, key: str, id_column: str = "id") -> list[Any]:
        source = ReferenceSource(table, key_column, id_column)
        if source not in self._maps:
            raise ReferenceIndexError(f"lookup {table}.{key_column} was not prefetched")
        return list(self._maps[source].get(key, ()))

    def existing_id(self, rule: ExistsInStore, key: tuple[str, ...]) -> Any | None:
        if rule not in self._existing:
            raise ReferenceIndexError(f"existing-record lookup on {rule.table} was not prefetched")
        return self._existing[rule].get(key)
