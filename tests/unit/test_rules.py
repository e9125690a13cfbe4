from __future__ import annotations

import pytest

from bulk_importer.models.validation_error import ErrorKind
from bulk_importer.validation.rules import (
    Boolean,
    ExactlyOne,
    Integer,
    Number,
    OneOf,
    Required,
    RowContext,
    UniqueInSheet,
    cell_text,
)


def _ctx(**raw):
    return RowContext.for_row(2, raw)


@pytest.mark.parametrize(
    "value,expected",
    [(None, ""), ("  abc ", "abc"), (7.0, "7"), (7.5, "7.5"), (12345678000190, "12345678000190")],
)
def test_cell_text(value, expected):
    assert cell_text(value) == expected


def test_required_missing_and_blank():
    rule = Required("codigo", "Código é obrigatório")
    for raw in ({}, {"codigo": None}, {"codigo": "   "}):
        ctx = _ctx(**raw)
        rule.check(ctx)
        assert len(ctx.errors) == 1
        err = ctx.errors[0]
        assert (err.row, err.field, err.value, err.message) == (2, "codigo", "", "Código é obrigatório")


def test_required_present():
    ctx = _ctx(codigo="001")
    Required("codigo").check(ctx)
    assert ctx.errors == []


@pytest.mark.parametrize("value", ["Receita", "receita", "  RECEITA  "])
def test_one_of_canonical_value(value):
    ctx = _ctx(tipo=value)
    OneOf("tipo", ("Receita", "Despesa")).check(ctx)
    assert ctx.errors == []
    assert ctx.values["tipo"] == "Receita"


def test_one_of_rejects_and_cites_allowed_set():
    ctx = _ctx(tipo="Lucro")
    OneOf("tipo", ("Receita", "Despesa")).check(ctx)
    assert len(ctx.errors) == 1
    assert ctx.errors[0].value == "Lucro"
    assert '"Receita"' in ctx.errors[0].message and '"Despesa"' in ctx.errors[0].message


@pytest.mark.parametrize("value,expected", [("TRUE", True), (" true ", True), ("True", True), ("false", False)])
def test_boolean_case_insensitive(value, expected):
    ctx = _ctx(ativo=value)
    Boolean("ativo").check(ctx)
    assert ctx.errors == []
    assert ctx.values["ativo"] is expected


@pytest.mark.parametrize("value", ["yes", "1", None, ""])
def test_boolean_rejects(value):
    ctx = _ctx(ativo=value)
    Boolean("ativo", "Ativo deve ser \"TRUE\" ou \"FALSE\"").check(ctx)
    assert len(ctx.errors) == 1
    assert ctx.errors[0].field == "ativo"


def test_boolean_optional_default():
    ctx = _ctx(ativo=None)
    Boolean("ativo", optional=True, default=True).check(ctx)
    assert ctx.errors == []
    assert ctx.values["ativo"] is True


@pytest.mark.parametrize("value,expected", [(1500.5, 1500.5), ("1500.50", 1500.5), ("1500,50", 1500.5), (0, 0.0)])
def test_number_parses(value, expected):
    ctx = _ctx(valor=value)
    Number("valor").check(ctx)
    assert ctx.errors == []
    assert ctx.values["valor"] == expected


@pytest.mark.parametrize("value", ["abc", None, "nan"])
def test_number_rejects(value):
    ctx = _ctx(valor=value)
    Number("valor", "Valor deve ser um número válido").check(ctx)
    assert [e.message for e in ctx.errors] == ["Valor deve ser um número válido"]


def test_number_optional_minimum():
    rule = Number("combustivel", required=False, minimum=0)
    blank = _ctx(combustivel=None)
    rule.check(blank)
    assert blank.errors == []
    negative = _ctx(combustivel=-1)
    rule.check(negative)
    assert len(negative.errors) == 1


@pytest.mark.parametrize("value,ok", [(1, True), ("12", True), (12.0, True), (0, False), (13, False), (1.5, False), ("x", False)])
def test_integer_range(value, ok):
    ctx = _ctx(mes=value)
    Integer("mes", minimum=1, maximum=12).check(ctx)
    assert (ctx.errors == []) is ok
    if ok:
        assert isinstance(ctx.values["mes"], int)


@pytest.mark.parametrize("value,ok", [(2025, True), ("2025", True), (999, False), (20250, False)])
def test_integer_digits(value, ok):
    ctx = _ctx(ano=value)
    Integer("ano", digits=4).check(ctx)
    assert (ctx.errors == []) is ok


EXACTLY_ONE = ExactlyOne(
    ("categoria_codigo", "indicador_codigo", "cliente_codigo"),
    "codigo",
    "none filled",
    "more than one filled",
)


def test_exactly_one_none_filled():
    ctx = _ctx(categoria_codigo=None, indicador_codigo="", cliente_codigo=None)
    EXACTLY_ONE.check(ctx)
    assert [(e.field, e.message) for e in ctx.errors] == [("codigo", "none filled")]


def test_exactly_one_two_filled_is_one_error():
    ctx = _ctx(categoria_codigo="CAT001", indicador_codigo="IND001", cliente_codigo="CLI001")
    EXACTLY_ONE.check(ctx)
    assert len(ctx.errors) == 1
    assert ctx.errors[0].message == "more than one filled"


def test_exactly_one_single_filled():
    ctx = _ctx(categoria_codigo=None, indicador_codigo="IND001", cliente_codigo=None)
    EXACTLY_ONE.check(ctx)
    assert ctx.errors == []


def test_unique_in_sheet_key_skips_blank_parts():
    rule = UniqueInSheet(("codigo", "mes"), "duplicata", "dup")
    assert rule.key({"codigo": "V1", "mes": 1.0}) == ("V1", "1")
    assert rule.key({"codigo": "V1", "mes": None}) is None


def test_errors_are_field_kind_by_default():
    ctx = _ctx()
    Required("nome").check(ctx)
    assert ctx.errors[0].kind is ErrorKind.FIELD
