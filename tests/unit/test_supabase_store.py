from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from bulk_importer.entities import get_profile
from bulk_importer.entities.commercial import ClientCodeSequence
from bulk_importer.store.base import Filter, StoreError
from bulk_importer.store.supabase_store import SupabaseStore
from bulk_importer.validation.engine import validate_rows

"""SupabaseStore against an in-process stand-in for the PostgREST builder.

FakeClient answers like a hosted project: every response is capped at
max_rows, whatever range was requested.
"""


class FakeQuery:
    def __init__(self, client: FakeClient, table: str) -> None:
        self.client = client
        self.table = table
        self.action: str | None = None
        self.payload: Any = None
        self.calls: list[tuple] = []
        self.bounds: tuple[int, int] | None = None

    def select(self, columns: str) -> FakeQuery:
        self.action = "select"
        self.calls.append(("select", columns))
        return self

    def insert(self, payload: Any) -> FakeQuery:
        self.action, self.payload = "insert", payload
        return self

    def update(self, payload: Any) -> FakeQuery:
        self.action, self.payload = "update", payload
        return self

    def delete(self) -> FakeQuery:
        self.action = "delete"
        return self

    def eq(self, column: str, value: Any) -> FakeQuery:
        self.calls.append(("eq", column, value))
        return self

    def neq(self, column: str, value: Any) -> FakeQuery:
        self.calls.append(("neq", column, value))
        return self

    def is_(self, column: str, value: str) -> FakeQuery:
        self.calls.append(("is_", column, value))
        return self

    def order(self, column: str, desc: bool = False) -> FakeQuery:
        self.calls.append(("order", column, desc))
        return self

    def range(self, start: int, end: int) -> FakeQuery:
        self.bounds = (start, end)
        self.calls.append(("range", start, end))
        return self

    def _matches(self, row: dict) -> bool:
        for call in self.calls:
            if call[0] == "eq" and row.get(call[1]) != call[2]:
                return False
            if call[0] == "neq" and row.get(call[1]) == call[2]:
                return False
            if call[0] == "is_" and row.get(call[1]) is not None:
                return False
        return True

    def execute(self) -> SimpleNamespace:
        if self.client.error is not None:
            raise self.client.error
        rows = self.client.tables.setdefault(self.table, [])
        if self.action == "insert":
            batch = [self.payload] if isinstance(self.payload, dict) else list(self.payload)
            rows.extend(batch)
            return SimpleNamespace(data=batch)
        matched = [r for r in rows if self._matches(r)]
        if self.action != "select":
            return SimpleNamespace(data=matched)
        for call in reversed([c for c in self.calls if c[0] == "order"]):
            matched.sort(key=lambda r, col=call[1]: r.get(col), reverse=call[2])
        start, end = self.bounds if self.bounds is not None else (0, len(matched) - 1)
        end = min(end, start + self.client.max_rows - 1)
        return SimpleNamespace(data=matched[start : end + 1])


class FakeClient:
    def __init__(self, tables: dict[str, list[dict]] | None = None, max_rows: int = 1000) -> None:
        self.tables = tables or {}
        self.max_rows = max_rows
        self.error: Exception | None = None
        self.queries: list[FakeQuery] = []

    def table(self, name: str) -> FakeQuery:
        query = FakeQuery(self, name)
        self.queries.append(query)
        return query


def _empresas(n: int) -> list[dict]:
    return [{"id": i, "cnpj": f"{i:014d}", "razao_social": f"Empresa {i}"} for i in range(1, n + 1)]


def test_select_pages_past_server_cap():
    client = FakeClient({"empresas": _empresas(1500)})
    rows = SupabaseStore(client).select("empresas", columns=["id", "cnpj"])
    assert len(rows) == 1500
    assert rows[-1]["id"] == 1500
    ranges = [c for q in client.queries for c in q.calls if c[0] == "range"]
    assert ranges == [("range", 0, 999), ("range", 1000, 1999), ("range", 1500, 2499)]


def test_select_pages_when_cap_below_page_size():
    client = FakeClient({"empresas": _empresas(700)}, max_rows=300)
    assert len(SupabaseStore(client).select("empresas")) == 700


def test_select_respects_limit_and_order():
    client = FakeClient({"empresas": _empresas(20)})
    rows = SupabaseStore(client).select("empresas", order_by="id", descending=True, limit=3)
    assert [r["id"] for r in rows] == [20, 19, 18]
    [query] = client.queries
    assert ("order", "id", True) in query.calls
    assert ("range", 0, 2) in query.calls


def test_select_zero_limit_skips_request():
    client = FakeClient()
    assert SupabaseStore(client).select("empresas", limit=0) == []
    assert client.queries == []


def test_filters_map_to_builder_calls():
    client = FakeClient({"dre_contas": [{"id": 1, "nome": "A", "conta_pai": None}]})
    store = SupabaseStore(client)
    store.select("dre_contas", filters=[Filter.eq("nome", "A"), Filter.neq("id", 2), Filter.is_null("conta_pai")])
    calls = client.queries[0].calls
    assert ("eq", "nome", "A") in calls
    assert ("neq", "id", 2) in calls
    assert ("is_", "conta_pai", "null") in calls


def test_update_and_delete_apply_filters():
    client = FakeClient({"metas_vendas": [{"id": 1, "valor_meta": 5}, {"id": 2, "valor_meta": 6}]})
    store = SupabaseStore(client)
    updated = store.update("metas_vendas", {"valor_meta": 9}, [Filter.eq("id", 2)])
    assert [r["id"] for r in updated] == [2]
    assert client.queries[0].payload == {"valor_meta": 9}
    assert [r["id"] for r in store.delete("metas_vendas", [Filter.eq("id", 1)])] == [1]


def test_client_errors_become_store_errors():
    client = FakeClient()
    client.error = RuntimeError('duplicate key value violates unique constraint "clientes_cnpj_key"')
    store = SupabaseStore(client)
    with pytest.raises(StoreError, match="duplicate key"):
        store.insert("clientes", {"cnpj": "1"})
    with pytest.raises(StoreError):
        store.select("clientes")


def test_connect_failure_is_store_error(monkeypatch):
    import bulk_importer.store.supabase_store as module

    def refuse(url, key):
        raise ValueError("Invalid URL")

    monkeypatch.setattr(module, "create_client", refuse)
    with pytest.raises(StoreError, match="supabase connection failed"):
        SupabaseStore.connect("nope", "key")


def test_reference_found_beyond_first_page():
    client = FakeClient({"empresas": _empresas(1500), "clientes": []})
    row = {"razao_social": "Nova", "cnpj": "33333333000133", "empresa_cnpj": f"{1200:014d}", "ativo": "TRUE"}
    outcome = validate_rows([row], get_profile("cliente"), SupabaseStore(client))
    assert outcome.errors == []
    assert outcome.validated_rows[0].references == {"empresa_id": 1200}


def test_client_codes_continue_after_every_page():
    clientes = [{"id": i, "codigo": f"CLI{i:03d}"} for i in range(1, 1201)]
    seq = ClientCodeSequence.load(SupabaseStore(FakeClient({"clientes": clientes})), "clientes")
    assert seq.next() == "CLI1201"
