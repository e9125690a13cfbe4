from __future__ import annotations

import dataclasses

import pytest

from bulk_importer.entities import get_profile
from bulk_importer.excel.reader import XLSX_MEDIA_TYPE
from bulk_importer.models.session import ImportStatus
from bulk_importer.models.validation_error import ErrorKind
from bulk_importer.services.pipeline import InvalidTransitionError, ImportPipeline


def _categorias(n: int) -> list[dict]:
    return [
        {"codigo": f"{i:03d}", "nome": f"Cat {i}", "tipo": "Receita", "ativo": "TRUE"}
        for i in range(1, n + 1)
    ]


def _pipeline(store, entity="categoria", **overrides):
    profile = get_profile(entity)
    if overrides:
        profile = dataclasses.replace(profile, **overrides)
    return ImportPipeline(profile, store, show_progress=False)


def test_start_import_moves_to_preview(seeded_store, xlsx_bytes):
    p = _pipeline(seeded_store)
    session = p.start_import(xlsx_bytes(_categorias(3)), XLSX_MEDIA_TYPE, "cats.xlsx")
    assert session.status is ImportStatus.PREVIEW
    assert len(session.raw_rows) == 3
    assert session.file_name == "cats.xlsx"
    assert p.preview(2) == session.raw_rows[:2]


def test_invalid_format_error(seeded_store):
    p = _pipeline(seeded_store)
    session = p.start_import(b"%PDF", "application/pdf")
    assert session.status is ImportStatus.ERROR
    [err] = session.errors
    assert (err.row, err.field, err.value, err.message) == (0, "file", "application/pdf", "invalid format")
    assert err.kind is ErrorKind.FILE_FORMAT


def test_empty_sheet_error(seeded_store, xlsx_bytes):
    p = _pipeline(seeded_store)
    session = p.start_import(xlsx_bytes([], columns=["codigo", "nome"]), XLSX_MEDIA_TYPE)
    assert session.status is ImportStatus.ERROR
    assert [(e.row, e.field, e.message) for e in session.errors] == [(0, "file", "empty sheet")]


def test_corrupt_file_reports_decoder_message(seeded_store):
    p = _pipeline(seeded_store)
    session = p.start_import(b"garbage", XLSX_MEDIA_TYPE)
    assert session.status is ImportStatus.ERROR
    assert session.errors[0].field == "file"
    assert session.errors[0].message


def test_operations_rejected_out_of_order(seeded_store, xlsx_bytes):
    p = _pipeline(seeded_store)
    with pytest.raises(InvalidTransitionError):
        p.confirm_preview()
    with pytest.raises(InvalidTransitionError):
        p.confirm_upload()
    p.start_import(xlsx_bytes(_categorias(1)), XLSX_MEDIA_TYPE)
    with pytest.raises(InvalidTransitionError):
        p.start_import(b"", XLSX_MEDIA_TYPE)
    with pytest.raises(InvalidTransitionError):
        p.confirm_upload()
    assert p.status is ImportStatus.PREVIEW


def test_upload_success_sets_progress(seeded_store, xlsx_bytes):
    p = _pipeline(seeded_store)
    p.start_import(xlsx_bytes(_categorias(4)), XLSX_MEDIA_TYPE)
    p.confirm_preview()
    session = p.confirm_upload()
    assert session.status is ImportStatus.SUCCESS
    assert (session.progress.completed, session.progress.total) == (4, 4)
    assert seeded_store.count("categorias") == 1 + 4


def test_upload_refused_with_errors(seeded_store, xlsx_bytes):
    rows = _categorias(2)
    rows[1]["tipo"] = "Lucro"
    p = _pipeline(seeded_store)
    p.start_import(xlsx_bytes(rows), XLSX_MEDIA_TYPE)
    session = p.confirm_preview()
    assert session.status is ImportStatus.VALIDATED
    with pytest.raises(InvalidTransitionError):
        p.confirm_upload()
    assert session.status is ImportStatus.VALIDATED
    p.reset()
    assert p.status is ImportStatus.IDLE
    assert p.session.raw_rows == [] and p.session.errors == []


def test_upload_aborts_on_kth_failure(seeded_store, xlsx_bytes):
    seeded_store.fail_inserts_after("categorias", 2, "duplicate key")
    p = _pipeline(seeded_store)
    p.start_import(xlsx_bytes(_categorias(5)), XLSX_MEDIA_TYPE)
    p.confirm_preview()
    session = p.confirm_upload()
    assert session.status is ImportStatus.ERROR
    assert (session.progress.completed, session.progress.total) == (2, 5)
    [err] = session.errors
    assert (err.row, err.field, err.kind) == (0, "upload", ErrorKind.UPLOAD)
    assert "duplicate key" in err.message
    # no rollback: the first two rows stay stored
    codes = [r["codigo"] for r in seeded_store.rows("categorias")]
    assert codes == ["CAT001", "001", "002"]


def test_batch_mode_single_insert(seeded_store, xlsx_bytes):
    p = _pipeline(seeded_store, insert_mode="batch")
    p.start_import(xlsx_bytes(_categorias(3)), XLSX_MEDIA_TYPE)
    p.confirm_preview()
    seeded_store.fail_inserts_after("categorias", 1)
    session = p.confirm_upload()
    assert session.status is ImportStatus.SUCCESS
    assert session.progress.completed == 3


def test_batch_mode_failure_leaves_zero_completed(seeded_store, xlsx_bytes):
    p = _pipeline(seeded_store, insert_mode="batch")
    p.start_import(xlsx_bytes(_categorias(3)), XLSX_MEDIA_TYPE)
    p.confirm_preview()
    seeded_store.fail_inserts_after("categorias", 0)
    session = p.confirm_upload()
    assert session.status is ImportStatus.ERROR
    assert (session.progress.completed, session.progress.total) == (0, 3)


def test_run_validation_twice_same_errors(seeded_store, xlsx_bytes):
    rows = _categorias(3)
    rows[0]["tipo"] = "x"
    rows[2]["nome"] = None
    p = _pipeline(seeded_store)
    p.start_import(xlsx_bytes(rows), XLSX_MEDIA_TYPE)
    first = list(p.confirm_preview().errors)
    second = list(p.run_validation().errors)
    assert first == second
    assert len(first) == 2


def test_progress_callback_receives_updates(seeded_store, xlsx_bytes):
    seen = []
    profile = get_profile("categoria")
    p = ImportPipeline(profile, seeded_store, show_progress=False, on_progress=lambda pr: seen.append(pr.completed))
    p.start_import(xlsx_bytes(_categorias(3)), XLSX_MEDIA_TYPE)
    p.confirm_preview()
    p.confirm_upload()
    assert seen == [0, 1, 2, 3]


def test_skipped_store_duplicates_not_uploaded(seeded_store, xlsx_bytes):
    rows = _categorias(2)
    rows[0]["codigo"] = "CAT001"
    p = _pipeline(seeded_store)
    p.start_import(xlsx_bytes(rows), XLSX_MEDIA_TYPE)
    session = p.confirm_preview()
    assert session.errors == []
    assert len(session.store_duplicates) == 1
    session = p.confirm_upload()
    assert session.status is ImportStatus.SUCCESS
    assert (session.progress.completed, session.progress.total) == (1, 1)


def test_update_rows_use_existing_id(seeded_store, xlsx_bytes):
    seeded_store.insert("metas_vendas", {"id": 900, "pessoa_id": 201, "mes": 1, "ano": 2025, "valor_meta": 10.0})
    rows = [
        {"vendedor_codigo": "VEND001", "mes": 1, "ano": 2025, "valor_meta": 500, "ativo": "TRUE"},
        {"vendedor_codigo": "VEND002", "mes": 1, "ano": 2025, "valor_meta": 700, "ativo": "TRUE"},
    ]
    p = _pipeline(seeded_store, entity="meta_venda")
    p.start_import(xlsx_bytes(rows), XLSX_MEDIA_TYPE)
    p.confirm_preview()
    session = p.confirm_upload()
    assert session.status is ImportStatus.SUCCESS
    metas = {r["pessoa_id"]: r for r in seeded_store.rows("metas_vendas")}
    assert metas[201]["id"] == 900 and metas[201]["valor_meta"] == 500.0
    assert metas[202]["valor_meta"] == 700.0
    assert seeded_store.count("metas_vendas") == 2
