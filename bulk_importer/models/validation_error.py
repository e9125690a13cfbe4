from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

"""ValidationError model shared by every import phase.

Decode failures, row-level rule violations and upload failures all use the same
record shape so that a single rendering path (CLI table, JSON-lines error
report) covers every terminal error.

Row numbering is spreadsheet-relative: the header is row 1, so data starts at
row 2. Row 0 is reserved for whole-file errors (field="file") and for
upload-phase failures (field="upload").
"""

__all__ = [
    "ErrorKind",
    "ValidationError",
    "FILE_LEVEL_ROW",
    "FIRST_DATA_ROW",
]

FILE_LEVEL_ROW = 0
FIRST_DATA_ROW = 2


class ErrorKind(Enum):
    """Error taxonomy.

    - FILE_FORMAT: unsupported media type or undecodable bytes
    - EMPTY_SHEET: the first sheet has no data rows
    - FIELD: presence / enumeration / format / cross-field violation
    - REFERENTIAL: natural key does not resolve to a store record
    - DUPLICATE: natural key collision (in the sheet or against the store)
    - UPLOAD: store write failure mid-sequence
    """
    FILE_FORMAT = "FILE_FORMAT"
    EMPTY_SHEET = "EMPTY_SHEET"
    FIELD = "FIELD"
    REFERENTIAL = "REFERENTIAL"
    DUPLICATE = "DUPLICATE"
    UPLOAD = "UPLOAD"


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def display_value(value: Any) -> str:
    """Render a cell value the way it is shown in error tables."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class ValidationError:
    """One problem found while importing a spreadsheet.

    Attributes:
        row: Spreadsheet row number (data starts at 2). 0 for file/upload errors
        field: Column name the error refers to ("file" / "upload" for row 0)
        value: Offending cell value rendered as text ("" when missing)
        message: Human readable description
        kind: ErrorKind classification
        timestamp: UTC ISO-8601 time the error was recorded (ignored by ==)
    """
    row: int
    field: str
    value: str
    message: str
    kind: ErrorKind = ErrorKind.FIELD
    timestamp: str = dataclasses.field(default_factory=utc_timestamp, compare=False, repr=False)

    @staticmethod
    def file_error(message: str, value: Any = "", kind: ErrorKind = ErrorKind.FILE_FORMAT) -> ValidationError:
        return ValidationError(
            row=FILE_LEVEL_ROW,
            field="file",
            value=display_value(value),
            message=message,
            kind=kind,
        )

    @staticmethod
    def upload_error(message: str) -> ValidationError:
        return ValidationError(
            row=FILE_LEVEL_ROW,
            field="upload",
            value="",
            message=message,
            kind=ErrorKind.UPLOAD,
        )

    @property
    def is_file_level(self) -> bool:
        return self.row == FILE_LEVEL_ROW

    def to_json_line(self, entity: str) -> str:
        """Serialize to one JSON line for the error report.

        Keys are fixed: timestamp, entity, row, field, value, message, kind.
        """
        payload = {
            "timestamp": self.timestamp,
            "entity": entity,
            "row": self.row,
            "field": self.field,
            "value": self.value,
            "message": self.message,
            "kind": self.kind.value,
        }
        return json.dumps(payload, ensure_ascii=False)
