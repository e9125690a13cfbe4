from __future__ import annotations

import io
import mimetypes
from pathlib import Path
from typing import Any

import pandas as pd

"""Spreadsheet decoder.

The first sheet's first row is the header; every following row becomes a dict
keyed by header text, in spreadsheet order. Data row i (0-based) is reported
as spreadsheet row i + 2 everywhere else in the tool.

Only blank cells are treated as missing: pandas' default NA spellings ("NA",
"N/A", "null" ...) are kept as text because codes such as "NA" are valid keys.
"""

__all__ = [
    "XLSX_MEDIA_TYPE",
    "XLS_MEDIA_TYPE",
    "CSV_MEDIA_TYPE",
    "ACCEPTED_MEDIA_TYPES",
    "SheetDecodeError",
    "FileFormatError",
    "EmptySheetError",
    "DecodeError",
    "decode",
    "guess_media_type",
]

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLS_MEDIA_TYPE = "application/vnd.ms-excel"
CSV_MEDIA_TYPE = "text/csv"

ACCEPTED_MEDIA_TYPES = frozenset({XLSX_MEDIA_TYPE, XLS_MEDIA_TYPE, CSV_MEDIA_TYPE})

_EXTENSION_MEDIA_TYPES = {
    ".xlsx": XLSX_MEDIA_TYPE,
    ".xls": XLS_MEDIA_TYPE,
    ".csv": CSV_MEDIA_TYPE,
}


class SheetDecodeError(Exception):
    """Base class for decode failures (always reported as a file-level error)."""


class FileFormatError(SheetDecodeError):
    """Raised when the declared media type is not an accepted spreadsheet type."""


class EmptySheetError(SheetDecodeError):
    """Raised when the first sheet has a header but no data rows."""


class DecodeError(SheetDecodeError):
    """Raised when the bytes cannot be parsed as the declared type."""


def guess_media_type(path: Path) -> str:
    """Media type for a local file, from its extension."""
    known = _EXTENSION_MEDIA_TYPES.get(path.suffix.lower())
    if known:
        return known
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or "application/octet-stream"


def _read_frame(content: bytes, media_type: str) -> pd.DataFrame:
    buffer = io.BytesIO(content)
    if media_type == CSV_MEDIA_TYPE:
        return pd.read_csv(
            buffer,
            dtype=str,
            keep_default_na=False,
            na_values=[""],
            skip_blank_lines=True,
        )
    # xlsx -> openpyxl, xls -> xlrd (pandas picks the engine from the content)
    return pd.read_excel(
        buffer,
        sheet_name=0,
        header=0,
        dtype=object,
        keep_default_na=False,
        na_values=[""],
    )


def _normalize_cell(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        return value if value.strip() else None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):  # list-like cells
        return value
    if hasattr(value, "item") and not isinstance(value, pd.Timestamp):
        # numpy scalar -> python scalar
        return value.item()
    return value


def decode(content: bytes, media_type: str) -> list[dict[str, Any]]:
    """Decode spreadsheet bytes into an ordered list of row dicts.

    Parameters
    ----------
    content: raw file bytes
    media_type: declared media type (must be one of ACCEPTED_MEDIA_TYPES)

    Raises
    ------
    FileFormatError: media type not accepted
    DecodeError: bytes could not be parsed
    EmptySheetError: no data rows after the header
    """
    if media_type not in ACCEPTED_MEDIA_TYPES:
        raise FileFormatError(f"unsupported media type: {media_type}")

    try:
        df = _read_frame(content, media_type)
    except pd.errors.EmptyDataError as e:
        raise EmptySheetError("sheet has no rows") from e
    except Exception as e:
        raise DecodeError(str(e)) from e

    # Header-less filler columns (pandas names them "Unnamed: N")
    columns = [str(c).strip() for c in df.columns]
    keep = [i for i, c in enumerate(columns) if c and not c.startswith("Unnamed:")]

    rows: list[dict[str, Any]] = []
    for raw in df.itertuples(index=False, name=None):
        row = {columns[i]: _normalize_cell(raw[i]) for i in keep}
        if all(v is None for v in row.values()):
            continue
        rows.append(row)

    if not rows:
        raise EmptySheetError("sheet has no data rows")
    return rows
