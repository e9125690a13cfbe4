from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .validation_error import ValidationError

"""ImportSession domain model and ImportStatus enum.

The session is the in-memory working state of one import attempt. It is
created when a file is accepted, mutated in place by the pipeline as it moves
through the state machine, and discarded on reset. Nothing here is persisted.
"""

__all__ = [
    "ImportStatus",
    "UploadProgress",
    "ValidatedRow",
    "ImportSession",
]


class ImportStatus(Enum):
    """Lifecycle of one import attempt.

    IDLE -> PREVIEW -> VALIDATING -> VALIDATED -> UPLOADING -> (SUCCESS | ERROR)

    VALIDATING and UPLOADING are transient; only IDLE is reachable by an
    explicit reset.
    """
    IDLE = "idle"
    PREVIEW = "preview"
    VALIDATING = "validating"
    VALIDATED = "validated"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class UploadProgress:
    """Rows sent so far; meaningful only while uploading and after."""
    completed: int = 0
    total: int = 0

    @property
    def fraction(self) -> float:
        if self.total == 0:
            return 0.0
        return self.completed / self.total


@dataclass(frozen=True)
class ValidatedRow:
    """A row that passed validation.

    values: normalized cell values (canonical enum spellings, parsed numbers)
    references: resolved foreign-key ids keyed by the target column
        (e.g. {"empresa_id": 7})
    existing_id: id of the store record this row updates, when the entity
        updates existing records instead of inserting
    """
    row_number: int
    values: dict[str, Any]
    references: dict[str, Any] = field(default_factory=dict)
    existing_id: Any = None


@dataclass
class ImportSession:
    status: ImportStatus = ImportStatus.IDLE
    raw_rows: list[dict[str, Any]] = field(default_factory=list)
    validated_rows: list[ValidatedRow] = field(default_factory=list)
    errors: list[ValidationError] = field(default_factory=list)
    store_duplicates: list[ValidationError] = field(default_factory=list)
    progress: UploadProgress = field(default_factory=UploadProgress)
    file_name: str | None = None
    media_type: str | None = None

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def first_error(self) -> ValidationError | None:
        return self.errors[0] if self.errors else None

    def clear(self) -> None:
        """Return to IDLE with no rows, errors or progress."""
        self.status = ImportStatus.IDLE
        self.raw_rows = []
        self.validated_rows = []
        self.errors = []
        self.store_duplicates = []
        self.progress = UploadProgress()
        self.file_name = None
        self.media_type = None
