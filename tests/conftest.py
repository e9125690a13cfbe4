# Shared pytest fixtures
from __future__ import annotations

import io
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from bulk_importer.excel.reader import CSV_MEDIA_TYPE, XLSX_MEDIA_TYPE
from bulk_importer.logging.init import reset_logging
from bulk_importer.store.memory import MemoryStore


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _no_store_env(monkeypatch):
    for name in (
        "SUPABASE_URL",
        "SUPABASE_KEY",
        "DATABASE_URL",
        "PGDSN",
        "PGHOST",
        "PGPORT",
        "PGUSER",
        "PGPASSWORD",
        "PGDATABASE",
        "DISABLE_DB_CONNECT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """store:
  backend: memory
logs_directory: ./logs
preview_rows: 3
entities:
  categoria:
    on_existing: skip
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def seeded_store() -> MemoryStore:
    """Store holding the reference data most entity tests need."""
    return MemoryStore(
        {
            "empresas": [
                {"id": 101, "cnpj": "12345678000190", "razao_social": "Matriz"},
                {"id": 102, "cnpj": "98765432000121", "razao_social": "Filial"},
            ],
            "pessoas": [
                {"id": 201, "codigo": "VEND001", "nome": "Ana"},
                {"id": 202, "codigo": "VEND002", "nome": "Bruno"},
                {"id": 203, "codigo": "SDR001", "nome": "Carla"},
            ],
            "servicos": [{"id": 301, "codigo": "SERV001", "nome": "Consultoria"}],
            "clientes": [
                {"id": 401, "codigo": "CLI001", "cnpj": "11111111000111", "razao_social": "Cliente Um"},
                {"id": 402, "codigo": "CLI007", "cnpj": "22222222000122", "razao_social": "Cliente Dois"},
            ],
            "categorias": [{"id": 501, "codigo": "CAT001", "nome": "Vendas", "tipo": "Receita"}],
            "indicadores": [{"id": 601, "codigo": "IND001", "nome": "Conversão"}],
        }
    )


def _xlsx_bytes(rows: list[dict[str, Any]], columns: list[str] | None = None) -> bytes:
    buffer = io.BytesIO()
    frame = pd.DataFrame(rows, columns=columns)
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name="Modelo", index=False)
    return buffer.getvalue()


def _csv_bytes(rows: list[dict[str, Any]], columns: list[str] | None = None) -> bytes:
    return pd.DataFrame(rows, columns=columns).to_csv(index=False).encode("utf-8")


@pytest.fixture()
def xlsx_bytes() -> Callable[..., bytes]:
    return _xlsx_bytes


@pytest.fixture()
def csv_bytes() -> Callable[..., bytes]:
    return _csv_bytes


@pytest.fixture()
def media_types() -> dict[str, str]:
    return {"xlsx": XLSX_MEDIA_TYPE, "csv": CSV_MEDIA_TYPE}
