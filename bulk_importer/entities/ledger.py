from __future__ import annotations

from ..models.session import ValidatedRow
from ..store.base import Record
from ..validation.rules import ExactlyOne, Integer, Number, OneOf, Reference, Required
from .profile import Column, EntityProfile, UploadContext

"""Journal entries (lancamentos).

Each entry points at exactly one of a category, an indicator or a client,
always belongs to a company, and is dated by month/year.
"""

__all__ = [
    "LANCAMENTO",
]

CODE_FIELDS = ("categoria_codigo", "indicador_codigo", "cliente_codigo")


def _lancamento_record(row: ValidatedRow, context: UploadContext) -> Record:
    v = row.values
    refs = row.references
    return {
        "categoria_id": refs.get("categoria_id"),
        "indicador_id": refs.get("indicador_id"),
        "cliente_id": refs.get("cliente_id"),
        "empresa_id": refs.get("empresa_id"),
        "tipo": v.get("tipo"),
        "valor": v.get("valor"),
        "mes": v.get("mes"),
        "ano": v.get("ano"),
    }


LANCAMENTO = EntityProfile(
    name="lancamento",
    title="Lançamentos",
    table="lancamentos",
    columns=(
        Column("categoria_codigo", "Código da categoria (preencha apenas UM dos códigos)"),
        Column("indicador_codigo", "Código do indicador (preencha apenas UM dos códigos)"),
        Column("cliente_codigo", "Código do cliente (preencha apenas UM dos códigos)"),
        Column("empresa_cnpj", "CNPJ da empresa (obrigatório)"),
        Column("tipo", 'Deve ser "Receita" ou "Despesa"'),
        Column("valor", "Valor numérico do lançamento"),
        Column("mes", "Número do mês (1-12)"),
        Column("ano", "Ano com 4 dígitos"),
    ),
    rules=(
        Required("empresa_cnpj", "CNPJ da empresa é obrigatório"),
        OneOf("tipo", ("Receita", "Despesa"), 'Tipo deve ser "Receita" ou "Despesa"'),
        Number("valor", "Valor deve ser um número válido"),
        Integer("mes", minimum=1, maximum=12, message="Mês deve ser um número inteiro entre 1 e 12"),
        Integer("ano", digits=4, message="Ano deve ser um número inteiro com 4 dígitos"),
        ExactlyOne(
            CODE_FIELDS,
            "codigo",
            "É necessário preencher um código (categoria, indicador ou cliente)",
            "Apenas um código deve ser preenchido (categoria, indicador ou cliente)",
        ),
        Reference("categoria_codigo", "categorias", "codigo", "categoria_id", "Categoria não encontrada", optional=True),
        Reference("indicador_codigo", "indicadores", "codigo", "indicador_id", "Indicador não encontrado", optional=True),
        Reference("cliente_codigo", "clientes", "codigo", "cliente_id", "Cliente não encontrado", optional=True),
        Reference("empresa_cnpj", "empresas", "cnpj", "empresa_id", "Empresa não encontrada"),
    ),
    mapper=_lancamento_record,
    example_rows=(
        {"categoria_codigo": "CAT001", "indicador_codigo": "", "cliente_codigo": "",
         "empresa_cnpj": "12345678000190", "tipo": "Receita", "valor": 1500.50, "mes": 3, "ano": 2025},
        {"categoria_codigo": "", "indicador_codigo": "IND001", "cliente_codigo": "",
         "empresa_cnpj": "98765432000121", "tipo": "Despesa", "valor": 750.25, "mes": 4, "ano": 2025},
    ),
    notes=("Preencha apenas UM dos campos categoria_codigo, indicador_codigo ou cliente_codigo.",),
)
