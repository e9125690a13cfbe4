from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from ..models.validation_error import ValidationError

"""Error report buffering.

- JSON Lines with a fixed key set (see ValidationError.to_json_line)
- One `errors-YYYYMMDD-HHMMSS.log` file (UTC) per run, created on first flush
- Records are buffered and written in one go when an import ends with errors
"""

__all__ = [
    "ErrorLogBuffer",
    "DEFAULT_LOGS_DIR",
]

DEFAULT_LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer of ValidationError records for one entity.

    Single-threaded use only (imports run sequentially).
    """

    def __init__(self, entity: str, logs_dir: Path | str = DEFAULT_LOGS_DIR) -> None:
        self.entity = entity
        self.logs_dir = Path(logs_dir)
        self._records: list[ValidationError] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self.logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ValidationError) -> None:
        self._records.append(record)

    def extend(self, records: Iterable[ValidationError]) -> None:
        self._records.extend(records)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the report; None when nothing was buffered."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line(self.entity) + "\n")
        self._records.clear()
        return fp
