from __future__ import annotations

import logging
import re

from ..models.session import ValidatedRow
from ..store.base import DataStore, Record
from ..validation.rules import Boolean, ExistsInStore, Integer, Number, Reference, Required, UniqueInSheet
from .profile import Column, EntityProfile, UploadContext, iso_date, text_or_none

"""Commercial entities: clients, sales, seller expenses and sales targets."""

__all__ = [
    "CLIENTE",
    "VENDA",
    "DESPESA_VENDEDOR",
    "META_VENDA",
    "ClientCodeSequence",
]

logger = logging.getLogger(__name__)

CLIENT_CODE_PREFIX = "CLI"
_CLIENT_CODE_RE = re.compile(rf"^{CLIENT_CODE_PREFIX}(\d+)$")

MES_MESSAGE = "Mês deve ser um número inteiro entre 1 e 12"
ANO_MESSAGE = "Ano deve ser um número inteiro entre 1900 e 9999"
EXPENSE_FIELDS = ("combustivel", "alimentacao", "hospedagem", "comissao", "salario", "outras_despesas")


class ClientCodeSequence:
    """Generates CLI### client codes.

    The highest numeric suffix among existing codes is read once per upload;
    each call to next() hands out the following number, zero padded to three
    digits (CLI001 when the table has no codes yet).
    """

    def __init__(self, last_number: int = 0) -> None:
        self.last_number = last_number

    @classmethod
    def load(cls, store: DataStore, table: str) -> ClientCodeSequence:
        highest = 0
        for record in store.select(table, columns=["codigo"]):
            match = _CLIENT_CODE_RE.match(str(record.get("codigo") or ""))
            if match:
                highest = max(highest, int(match.group(1)))
        logger.debug("client code sequence starts after %s%03d", CLIENT_CODE_PREFIX, highest)
        return cls(highest)

    def next(self) -> str:
        self.last_number += 1
        return f"{CLIENT_CODE_PREFIX}{self.last_number:03d}"


def _cliente_record(row: ValidatedRow, context: UploadContext) -> Record:
    sequence = context.state.get("client_codes")
    if sequence is None:
        sequence = context.state["client_codes"] = ClientCodeSequence.load(context.store, context.table)
    v = row.values
    return {
        "codigo": sequence.next(),
        "razao_social": v.get("razao_social"),
        "nome_fantasia": text_or_none(v.get("nome_fantasia")),
        "cnpj": text_or_none(v.get("cnpj")),
        "empresa_id": row.references.get("empresa_id"),
        "ativo": v.get("ativo"),
    }


CLIENTE = EntityProfile(
    name="cliente",
    title="Clientes",
    table="clientes",
    columns=(
        Column("razao_social", "Razão social do cliente"),
        Column("nome_fantasia", "Nome fantasia do cliente (opcional)"),
        Column("cnpj", "CNPJ do cliente"),
        Column("empresa_cnpj", "CNPJ da empresa relacionada"),
        Column("ativo", 'Deve ser "TRUE" ou "FALSE"'),
    ),
    rules=(
        Required("razao_social", "Razão social é obrigatória"),
        Required("cnpj", "CNPJ do cliente é obrigatório"),
        Required("empresa_cnpj", "CNPJ da empresa é obrigatório"),
        Boolean("ativo", 'Ativo deve ser "TRUE" ou "FALSE"'),
        Reference("empresa_cnpj", "empresas", "cnpj", "empresa_id", "Empresa não encontrada"),
        UniqueInSheet(("cnpj",), "cnpj", "CNPJ duplicado na planilha"),
        ExistsInStore("clientes", (("cnpj", "cnpj"),), "cnpj", "CNPJ já cadastrado"),
    ),
    mapper=_cliente_record,
    example_rows=(
        {"razao_social": "Empresa Exemplo LTDA", "nome_fantasia": "Empresa Exemplo",
         "cnpj": "12345678000190", "empresa_cnpj": "98765432000121", "ativo": "TRUE"},
    ),
    notes=("O código do cliente (CLI###) é gerado automaticamente.",),
)


def _venda_record(row: ValidatedRow, context: UploadContext) -> Record:
    v = row.values
    refs = row.references
    return {
        "empresa_id": refs.get("empresa_id"),
        "cliente_id": refs.get("cliente_id"),
        "vendedor_id": refs.get("vendedor_id"),
        "sdr_id": refs.get("sdr_id"),
        "servico_id": refs.get("servico_id"),
        "valor": v.get("valor"),
        "origem": v.get("origem"),
        "nome_cliente": None,
        "registro_venda": v.get("registro_venda"),
        "data_venda": iso_date(v.get("data_venda")),
    }


VENDA = EntityProfile(
    name="venda",
    title="Registro de vendas",
    table="registro_de_vendas",
    columns=(
        Column("empresa_cnpj", "CNPJ da empresa"),
        Column("cliente_cnpj", "CNPJ do cliente"),
        Column("vendedor_codigo", "Código do vendedor"),
        Column("sdr_codigo", "Código do SDR (opcional)"),
        Column("servico_codigo", "Código do serviço"),
        Column("valor", "Valor da venda"),
        Column("origem", "País de origem da venda"),
        Column("registro_venda", "Descrição da venda"),
        Column("data_venda", "Data da venda (YYYY-MM-DD)"),
    ),
    rules=(
        Required("empresa_cnpj", "CNPJ da empresa é obrigatório"),
        Required("cliente_cnpj", "CNPJ do cliente é obrigatório"),
        Required("vendedor_codigo", "Código do vendedor é obrigatório"),
        Required("servico_codigo", "Código do serviço é obrigatório"),
        Number("valor", "Valor deve ser um número válido"),
        Required("origem", "Origem é obrigatória"),
        Required("registro_venda", "Registro da venda é obrigatório"),
        Required("data_venda", "Data da venda é obrigatória"),
        Reference("empresa_cnpj", "empresas", "cnpj", "empresa_id", "Empresa não encontrada"),
        Reference("cliente_cnpj", "clientes", "cnpj", "cliente_id", "Cliente não encontrado"),
        Reference("vendedor_codigo", "pessoas", "codigo", "vendedor_id", "Vendedor não encontrado"),
        Reference("sdr_codigo", "pessoas", "codigo", "sdr_id", "SDR não encontrado", optional=True),
        Reference("servico_codigo", "servicos", "codigo", "servico_id", "Serviço não encontrado"),
    ),
    mapper=_venda_record,
    example_rows=(
        {"empresa_cnpj": "12345678000190", "cliente_cnpj": "98765432000121", "vendedor_codigo": "VEND001",
         "sdr_codigo": "SDR001", "servico_codigo": "SERV001", "valor": 1500.50, "origem": "Brasil",
         "registro_venda": "Venda de serviço de consultoria", "data_venda": "2025-01-15"},
    ),
)


def _despesa_record(row: ValidatedRow, context: UploadContext) -> Record:
    v = row.values
    record: Record = {
        "pessoa_id": row.references.get("pessoa_id"),
        "mes": v.get("mes"),
        "ano": v.get("ano"),
    }
    for name in EXPENSE_FIELDS:
        record[name] = v.get(name) or 0
    return record


DESPESA_VENDEDOR = EntityProfile(
    name="despesa_vendedor",
    title="Despesas de vendedores",
    table="despesas_vendedor",
    columns=(
        Column("codigo", "Código do vendedor (deve existir na tabela pessoas)"),
        Column("mes", "Mês de referência (1-12)"),
        Column("ano", "Ano de referência (4 dígitos)"),
        Column("combustivel", "Valor gasto com combustível"),
        Column("alimentacao", "Valor gasto com alimentação"),
        Column("hospedagem", "Valor gasto com hospedagem"),
        Column("comissao", "Valor da comissão do vendedor"),
        Column("salario", "Valor do salário do vendedor"),
        Column("outras_despesas", "Outras despesas diversas"),
    ),
    rules=(
        Required("codigo", "Código do vendedor é obrigatório"),
        Integer("mes", minimum=1, maximum=12, message=MES_MESSAGE),
        Integer("ano", minimum=1900, maximum=9999, message=ANO_MESSAGE),
        *(
            Number(name, f"{name} deve ser um valor numérico positivo", required=False, minimum=0)
            for name in EXPENSE_FIELDS
        ),
        Reference("codigo", "pessoas", "codigo", "pessoa_id", "Vendedor não encontrado"),
        UniqueInSheet(
            ("codigo", "mes", "ano"),
            "duplicata",
            "Registro duplicado na planilha para o mesmo vendedor/mês/ano",
        ),
        ExistsInStore(
            "despesas_vendedor",
            (("pessoa_id", "pessoa_id"), ("mes", "mes"), ("ano", "ano")),
            "existente",
            "Já existe registro para este vendedor/mês/ano no banco de dados",
        ),
    ),
    mapper=_despesa_record,
    example_rows=(
        {"codigo": "VEND001", "mes": 1, "ano": 2025, "combustivel": 500.00, "alimentacao": 800.00,
         "hospedagem": 1200.00, "comissao": 2500.00, "salario": 5000.00, "outras_despesas": 300.00},
        {"codigo": "VEND002", "mes": 1, "ano": 2025, "combustivel": 450.00, "alimentacao": 750.00,
         "hospedagem": 1100.00, "comissao": 2200.00, "salario": 4800.00, "outras_despesas": 250.00},
    ),
    notes=(
        "Todos os valores devem ser numéricos.",
        "O código do vendedor deve existir na base de dados.",
        "Não pode haver duplicatas para o mesmo vendedor/mês/ano.",
    ),
)


def _meta_record(row: ValidatedRow, context: UploadContext) -> Record:
    v = row.values
    return {
        "pessoa_id": row.references.get("pessoa_id"),
        "mes": v.get("mes"),
        "ano": v.get("ano"),
        "valor_meta": v.get("valor_meta"),
        "observacao": text_or_none(v.get("observacao")),
        "ativo": v.get("ativo"),
    }


META_VENDA = EntityProfile(
    name="meta_venda",
    title="Metas de vendas",
    table="metas_vendas",
    columns=(
        Column("vendedor_codigo", "Código do vendedor (deve existir na tabela pessoas)"),
        Column("mes", "Mês da meta (1-12)"),
        Column("ano", "Ano da meta (4 dígitos)"),
        Column("valor_meta", "Valor da meta (maior ou igual a zero)"),
        Column("observacao", "Observação (opcional)"),
        Column("ativo", 'TRUE ou FALSE (opcional, padrão TRUE)'),
    ),
    rules=(
        Required("vendedor_codigo", "Código do vendedor é obrigatório"),
        Integer("mes", minimum=1, maximum=12, message=MES_MESSAGE),
        Integer("ano", minimum=1900, maximum=9999, message=ANO_MESSAGE),
        Number("valor_meta", "Por favor, insira um valor válido para a meta", minimum=0),
        Boolean("ativo", 'Ativo deve ser "TRUE" ou "FALSE"', optional=True, default=True),
        Reference("vendedor_codigo", "pessoas", "codigo", "pessoa_id", "Vendedor não encontrado"),
        UniqueInSheet(
            ("vendedor_codigo", "mes", "ano"),
            "vendedor_codigo",
            "Meta duplicada na planilha para o mesmo vendedor/mês/ano",
        ),
        ExistsInStore(
            "metas_vendas",
            (("pessoa_id", "pessoa_id"), ("mes", "mes"), ("ano", "ano")),
            "vendedor_codigo",
            "Meta já cadastrada para este vendedor/mês/ano",
        ),
    ),
    mapper=_meta_record,
    example_rows=(
        {"vendedor_codigo": "VEND001", "mes": 1, "ano": 2025, "valor_meta": 50000.00,
         "observacao": "Meta do trimestre", "ativo": "TRUE"},
    ),
    on_existing="update",
    notes=("Metas já cadastradas para o mesmo vendedor/mês/ano são atualizadas.",),
)
