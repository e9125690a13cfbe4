from __future__ import annotations

from bulk_importer.models.session import ImportSession, ImportStatus, UploadProgress
from bulk_importer.models.validation_error import ValidationError
from bulk_importer.services.summary import render_summary_line


def test_render_success():
    session = ImportSession(
        status=ImportStatus.SUCCESS,
        raw_rows=[{}, {}, {}],
        progress=UploadProgress(completed=2, total=2),
        store_duplicates=[ValidationError(row=2, field="codigo", value="001", message="dup")],
    )
    assert render_summary_line("categoria", session) == (
        "SUMMARY entity=categoria status=success rows=3 errors=0 uploaded=2/2 skipped=1"
    )


def test_render_upload_failure():
    session = ImportSession(
        status=ImportStatus.ERROR,
        raw_rows=[{}] * 5,
        errors=[ValidationError.upload_error("boom")],
        progress=UploadProgress(completed=2, total=5),
    )
    line = render_summary_line("cliente", session)
    assert line == "SUMMARY entity=cliente status=error rows=5 errors=1 uploaded=2/5 skipped=0"


def test_render_idle_session():
    line = render_summary_line("grupo", ImportSession())
    assert line == "SUMMARY entity=grupo status=idle rows=0 errors=0 uploaded=0/0 skipped=0"
