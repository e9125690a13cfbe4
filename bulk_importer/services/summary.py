from __future__ import annotations

from ..models.session import ImportSession

"""SUMMARY line rendering.

Format:
SUMMARY entity={name} status={status} rows={raw rows} errors={errors}
uploaded={completed}/{total} skipped={store duplicates skipped}

Everything is printed on one line; the CLI emits it once per run at the
SUMMARY log level.
"""

__all__ = [
    "render_summary_line",
]


def render_summary_line(entity: str, session: ImportSession) -> str:
    """Render the SUMMARY line for one import session.

    Examples:
        >>> from bulk_importer.models.session import ImportSession, ImportStatus, UploadProgress
        >>> s = ImportSession(status=ImportStatus.SUCCESS, raw_rows=[{}, {}],
        ...                   progress=UploadProgress(completed=2, total=2))
        >>> render_summary_line("categoria", s)
        'SUMMARY entity=categoria status=success rows=2 errors=0 uploaded=2/2 skipped=0'
    """
    return (
        f"SUMMARY entity={entity} "
        f"status={session.status.value} "
        f"rows={len(session.raw_rows)} "
        f"errors={len(session.errors)} "
        f"uploaded={session.progress.completed}/{session.progress.total} "
        f"skipped={len(session.store_duplicates)}"
    )
