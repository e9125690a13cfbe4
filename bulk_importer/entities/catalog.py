from __future__ import annotations

from ..models.session import ValidatedRow
from ..store.base import Record
from ..validation.rules import Boolean, ExistsInStore, Integer, OneOf, Reference, Required, UniqueInSheet
from .profile import Column, EntityProfile, UploadContext, text_or_none

"""Reference-data entities: categories, groups, indicators and DRE accounts."""

__all__ = [
    "CATEGORIA",
    "GRUPO",
    "INDICADOR",
    "CONTA_DRE",
]

TIPO_MESSAGE = 'Tipo deve ser "Receita" ou "Despesa"'
ATIVO_MESSAGE = 'Ativo deve ser "TRUE" ou "FALSE"'


def _categoria_record(row: ValidatedRow, context: UploadContext) -> Record:
    v = row.values
    return {
        "codigo": text_or_none(v.get("codigo")),
        "nome": v.get("nome"),
        "descricao": text_or_none(v.get("descricao")),
        "tipo": v.get("tipo"),
        "ativo": v.get("ativo"),
    }


CATEGORIA = EntityProfile(
    name="categoria",
    title="Categorias",
    table="categorias",
    columns=(
        Column("codigo", "Código único da categoria (ex: 001, 002, etc)"),
        Column("nome", "Nome da categoria"),
        Column("descricao", "Descrição detalhada da categoria (opcional)"),
        Column("tipo", 'Deve ser "Receita" ou "Despesa"'),
        Column("ativo", 'Deve ser "TRUE" ou "FALSE"'),
    ),
    rules=(
        Required("codigo", "Código é obrigatório"),
        Required("nome", "Nome é obrigatório"),
        OneOf("tipo", ("Receita", "Despesa"), TIPO_MESSAGE),
        Boolean("ativo", ATIVO_MESSAGE),
        UniqueInSheet(("codigo",), "codigo", "Código duplicado na planilha"),
        ExistsInStore("categorias", (("codigo", "codigo"),), "codigo", "Categoria já cadastrada"),
    ),
    mapper=_categoria_record,
    example_rows=(
        {"codigo": "001", "nome": "Exemplo Receita", "descricao": "Descrição detalhada da categoria",
         "tipo": "Receita", "ativo": "TRUE"},
        {"codigo": "002", "nome": "Exemplo Despesa", "descricao": "Outra descrição de exemplo",
         "tipo": "Despesa", "ativo": "FALSE"},
    ),
    on_existing="skip",
)


def _grupo_record(row: ValidatedRow, context: UploadContext) -> Record:
    return {
        "nome": row.values.get("nome"),
        "descricao": text_or_none(row.values.get("descricao")),
        "ativo": row.values.get("ativo"),
    }


GRUPO = EntityProfile(
    name="grupo",
    title="Grupos",
    table="grupos",
    columns=(
        Column("nome", "Nome do grupo"),
        Column("descricao", "Descrição do grupo (opcional)"),
        Column("ativo", 'Deve ser "TRUE" ou "FALSE"'),
    ),
    rules=(
        Required("nome", "Nome é obrigatório"),
        Boolean("ativo", ATIVO_MESSAGE),
    ),
    mapper=_grupo_record,
    example_rows=(
        {"nome": "Grupo Financeiro", "descricao": "Grupo para categorias financeiras", "ativo": "TRUE"},
        {"nome": "Grupo Operacional", "descricao": "", "ativo": "FALSE"},
    ),
)


def _indicador_record(row: ValidatedRow, context: UploadContext) -> Record:
    v = row.values
    return {
        "codigo": text_or_none(v.get("codigo")),
        "nome": v.get("nome"),
        "descricao": text_or_none(v.get("descricao")),
        "tipo_estrutura": v.get("tipo_estrutura"),
        "tipo_dado": v.get("tipo_dado"),
        "ativo": v.get("ativo"),
    }


INDICADOR = EntityProfile(
    name="indicador",
    title="Indicadores",
    table="indicadores",
    columns=(
        Column("codigo", "Código único do indicador"),
        Column("nome", "Nome do indicador"),
        Column("descricao", "Descrição detalhada do indicador (opcional)"),
        Column("tipo_estrutura", "Tipo de estrutura do indicador"),
        Column("tipo_dado", "Tipo de dado do indicador"),
        Column("ativo", 'Deve ser "TRUE" ou "FALSE"'),
    ),
    rules=(
        Required("codigo", "Código é obrigatório"),
        Required("nome", "Nome é obrigatório"),
        Required("tipo_estrutura", "Tipo de estrutura é obrigatório"),
        Required("tipo_dado", "Tipo de dado é obrigatório"),
        Boolean("ativo", ATIVO_MESSAGE),
        UniqueInSheet(("codigo",), "codigo", "Código duplicado na planilha"),
        ExistsInStore("indicadores", (("codigo", "codigo"),), "codigo", "Indicador já cadastrado"),
    ),
    mapper=_indicador_record,
    example_rows=(
        {"codigo": "IND001", "nome": "Taxa de Conversão", "descricao": "Mede a taxa de conversão de leads",
         "tipo_estrutura": "Percentual", "tipo_dado": "Numérico", "ativo": "TRUE"},
        {"codigo": "IND002", "nome": "Tempo de Resposta", "descricao": "Tempo médio de resposta ao cliente",
         "tipo_estrutura": "Tempo", "tipo_dado": "Numérico", "ativo": "TRUE"},
    ),
    on_existing="skip",
)


def _conta_dre_record(row: ValidatedRow, context: UploadContext) -> Record:
    v = row.values
    return {
        "nome": v.get("nome"),
        "ordem": v["ordem"],
        "simbolo": v.get("simbolo"),
        "conta_pai": row.references.get("conta_pai"),
        "ativo": v.get("ativo"),
        "visivel": v.get("visivel"),
    }


CONTA_DRE = EntityProfile(
    name="conta_dre",
    title="Contas DRE",
    table="dre_contas",
    columns=(
        Column("nome", "Nome da conta (obrigatório)"),
        Column("ordem", "Número que define a ordem de exibição (obrigatório)"),
        Column("simbolo", "Operador matemático (+, - ou =)"),
        Column("conta_pai", "ID da conta pai (opcional)"),
        Column("ativo", "Status da conta (TRUE ou FALSE)"),
        Column("visivel", "Visibilidade da conta (TRUE ou FALSE)"),
    ),
    rules=(
        Required("nome", "Nome é obrigatório"),
        Integer("ordem", message="Ordem deve ser um número inteiro válido"),
        OneOf("simbolo", ("+", "-", "="), "Símbolo deve ser +, - ou ="),
        Boolean("ativo", "Ativo deve ser TRUE ou FALSE"),
        Boolean("visivel", "Visível deve ser TRUE ou FALSE"),
        Reference("conta_pai", "dre_contas", "id", "conta_pai", "Conta pai não encontrada", optional=True),
    ),
    mapper=_conta_dre_record,
    example_rows=(
        {"nome": "Receita Bruta", "ordem": 1, "simbolo": "+", "conta_pai": None, "ativo": "TRUE", "visivel": "TRUE"},
        {"nome": "Deduções", "ordem": 2, "simbolo": "-", "conta_pai": None, "ativo": "TRUE", "visivel": "TRUE"},
    ),
)
