from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from ..store.base import DataStore, Filter, Record

"""Income-statement (DRE) account hierarchy.

Accounts form a forest through the nullable `conta_pai` column. The tree is
loaded once; attach/detach write the new parent to the store and then patch
the in-memory adjacency lists instead of reloading everything.
"""

__all__ = [
    "HierarchyError",
    "Account",
    "AccountTree",
    "ACCOUNTS_TABLE",
]

logger = logging.getLogger(__name__)

ACCOUNTS_TABLE = "dre_contas"


class HierarchyError(Exception):
    pass


@dataclass
class Account:
    id: Any
    nome: str
    ordem: int = 0
    conta_pai: Any = None

    @staticmethod
    def from_record(record: Record) -> Account:
        ordem = record.get("ordem")
        return Account(
            id=record["id"],
            nome=str(record.get("nome") or ""),
            ordem=int(ordem) if ordem is not None else 0,
            conta_pai=record.get("conta_pai"),
        )


class AccountTree:
    """In-memory view of the conta_dre table keyed by account id.

    Args:
        accounts: Accounts to index
        table: Table that attach/detach write to
    """

    def __init__(self, accounts: Iterable[Account], table: str = ACCOUNTS_TABLE) -> None:
        self.table = table
        self.accounts: dict[Any, Account] = {a.id: a for a in accounts}

    @classmethod
    def load(cls, store: DataStore, table: str = ACCOUNTS_TABLE) -> AccountTree:
        """Read every account from `store`, ordered by ordem."""
        records = store.select(table, columns=["id", "nome", "ordem", "conta_pai"], order_by="ordem")
        return cls((Account.from_record(r) for r in records), table=table)

    def _get(self, account_id: Any) -> Account:
        try:
            return self.accounts[account_id]
        except KeyError as e:
            raise HierarchyError(f"account not found: {account_id}") from e

    @staticmethod
    def _sorted(accounts: Iterable[Account]) -> list[Account]:
        return sorted(accounts, key=lambda a: (a.ordem, a.nome))

    def roots(self) -> list[Account]:
        """Accounts without a parent."""
        return self._sorted(a for a in self.accounts.values() if a.conta_pai is None)

    def children(self, account_id: Any) -> list[Account]:
        return self._sorted(a for a in self.accounts.values() if a.conta_pai == account_id)

    def walk(self) -> Iterator[tuple[int, Account]]:
        """Depth-first (depth, account) pairs, roots first, siblings by ordem."""
        stack = [(0, a) for a in reversed(self.roots())]
        while stack:
            depth, account = stack.pop()
            yield depth, account
            stack.extend((depth + 1, c) for c in reversed(self.children(account.id)))

    def ancestors(self, account_id: Any) -> list[Any]:
        """Ids of every parent above account_id, nearest first.

        Raises:
            HierarchyError: when account_id is unknown
        """
        chain: list[Any] = []
        current = self._get(account_id).conta_pai
        while current is not None and current not in chain:
            chain.append(current)
            current = self.accounts[current].conta_pai if current in self.accounts else None
        return chain

    def available_for(self, parent_id: Any) -> list[Account]:
        """Accounts that can be attached under parent_id.

        Only accounts without a parent qualify, excluding the parent itself
        and its current children.
        """
        children = {c.id for c in self.children(parent_id)}
        return self._sorted(
            a for a in self.accounts.values()
            if a.conta_pai is None and a.id != parent_id and a.id not in children
        )

    def attach(self, store: DataStore, child_id: Any, parent_id: Any) -> Account:
        """Set child_id's parent to parent_id in the store and in memory.

        Args:
            store: Store that receives the update
            child_id: Account to move
            parent_id: New parent account

        Returns:
            The updated child Account

        Raises:
            HierarchyError: for unknown ids, self-parenting or a cycle
        """
        child = self._get(child_id)
        self._get(parent_id)
        if child_id == parent_id:
            raise HierarchyError("an account cannot be its own parent")
        if child_id in self.ancestors(parent_id):
            raise HierarchyError(f"attaching {child_id} under {parent_id} would create a cycle")
        store.update(self.table, {"conta_pai": parent_id}, [Filter.eq("id", child_id)])
        child.conta_pai = parent_id
        logger.info("account %s attached under %s", child_id, parent_id)
        return child

    def detach(self, store: DataStore, child_id: Any) -> Account:
        """Make child_id a root account again; returns the updated Account."""
        child = self._get(child_id)
        store.update(self.table, {"conta_pai": None}, [Filter.eq("id", child_id)])
        child.conta_pai = None
        logger.info("account %s detached", child_id)
        return child
