from __future__ import annotations

from pathlib import Path

import pandas as pd

from bulk_importer.entities import get_profile
from bulk_importer.excel.reader import XLSX_MEDIA_TYPE, decode
from bulk_importer.excel.template import INSTRUCTIONS_SHEET, MODEL_SHEET, instruction_lines, write_template


def test_instruction_lines_number_columns():
    lines = instruction_lines(get_profile("grupo"))
    assert lines[0] == "Instruções para preenchimento:"
    assert lines[2] == "1. nome: Nome do grupo"
    assert lines[4] == '3. ativo: Deve ser "TRUE" ou "FALSE"'


def test_instruction_lines_include_notes():
    lines = instruction_lines(get_profile("despesa_vendedor"))
    assert "Observações:" in lines
    assert "- Não pode haver duplicatas para o mesmo vendedor/mês/ano." in lines


def test_write_template_sheets(tmp_path: Path):
    out = write_template(get_profile("categoria"), tmp_path / "out" / "modelo.xlsx")
    book = pd.read_excel(out, sheet_name=None, dtype=object)
    assert list(book) == [MODEL_SHEET, INSTRUCTIONS_SHEET]
    assert list(book[MODEL_SHEET].columns) == ["codigo", "nome", "descricao", "tipo", "ativo"]
    assert len(book[MODEL_SHEET]) == 2


def test_template_decodes_as_import_file(tmp_path: Path):
    out = write_template(get_profile("categoria"), tmp_path / "modelo.xlsx")
    rows = decode(out.read_bytes(), XLSX_MEDIA_TYPE)
    assert [r["codigo"] for r in rows] == ["001", "002"]
