from __future__ import annotations

import logging
from collections.abc import Callable

from ..entities.profile import INSERT_MODE_BATCH, EntityProfile, UploadContext
from ..excel.reader import DecodeError, EmptySheetError, FileFormatError, decode
from ..models.session import ImportSession, ImportStatus, UploadProgress, ValidatedRow
from ..models.validation_error import ErrorKind, ValidationError
from ..store.base import DataStore, Filter, StoreError
from ..validation.engine import validate_rows
from .progress import RowProgressBar

"""Import pipeline: one state machine shared by every entity.

    IDLE --start_import--> PREVIEW            (decode ok)
    IDLE --start_import--> ERROR              (decode failed, row 0 / field "file")
    PREVIEW --confirm_preview--> VALIDATING --> VALIDATED
    VALIDATED (no errors) --confirm_upload--> UPLOADING --> SUCCESS | ERROR
    PREVIEW | VALIDATED | SUCCESS | ERROR --reset--> IDLE

The entity-specific parts (rules, record mapping, target table) come from an
EntityProfile. Uploads are sequential and not transactional: the first store
failure stops the loop, rows already stored stay stored.
"""

__all__ = [
    "InvalidTransitionError",
    "ImportPipeline",
    "INVALID_FORMAT_MESSAGE",
    "EMPTY_SHEET_MESSAGE",
]

logger = logging.getLogger(__name__)

INVALID_FORMAT_MESSAGE = "invalid format"
EMPTY_SHEET_MESSAGE = "empty sheet"

ProgressCallback = Callable[[UploadProgress], None]


class InvalidTransitionError(Exception):
    """Raised when an operation is not allowed from the current status."""
    pass


class ImportPipeline:
    """Drives one ImportSession through decode, validation and upload.

    Args:
        profile: Entity rules, record mapper and target table
        store: Data store used for reference lookups and the upload
        show_progress: Show a tqdm bar while uploading (TTY only)
        on_progress: Called with the UploadProgress after every change
    """

    def __init__(
        self,
        profile: EntityProfile,
        store: DataStore,
        *,
        show_progress: bool = True,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.profile = profile
        self.store = store
        self.show_progress = show_progress
        self.on_progress = on_progress
        self._session = ImportSession()

    @property
    def session(self) -> ImportSession:
        return self._session

    @property
    def status(self) -> ImportStatus:
        return self._session.status

    def _require(self, operation: str, *allowed: ImportStatus) -> None:
        if self._session.status not in allowed:
            names = ", ".join(s.name for s in allowed)
            raise InvalidTransitionError(
                f"{operation}() not allowed in status {self._session.status.name} (expected {names})"
            )

    # --- decode -------------------------------------------------------------

    def start_import(self, content: bytes, media_type: str, file_name: str | None = None) -> ImportSession:
        """Decode a spreadsheet and move to PREVIEW (or ERROR on decode failure).

        Args:
            content: Raw file bytes
            media_type: Declared media type (xlsx, xls or csv)
            file_name: Optional name kept on the session for reporting

        Returns:
            The session; on a decode failure it holds one row-0 "file" error

        Raises:
            InvalidTransitionError: when the pipeline is not IDLE
        """
        self._require("start_import", ImportStatus.IDLE)
        session = self._session
        session.file_name = file_name
        session.media_type = media_type

        try:
            rows = decode(content, media_type)
        except FileFormatError:
            self._fail(ValidationError.file_error(INVALID_FORMAT_MESSAGE, value=media_type))
            return session
        except EmptySheetError:
            self._fail(ValidationError.file_error(EMPTY_SHEET_MESSAGE, kind=ErrorKind.EMPTY_SHEET))
            return session
        except DecodeError as e:
            self._fail(ValidationError.file_error(str(e)))
            return session

        session.raw_rows = rows
        session.status = ImportStatus.PREVIEW
        logger.info("decoded %d rows entity=%s file=%s", len(rows), self.profile.name, file_name or "-")
        return session

    def preview(self, limit: int = 5) -> list[dict]:
        """First `limit` decoded rows, untouched by validation."""
        self._require("preview", ImportStatus.PREVIEW, ImportStatus.VALIDATED)
        return self._session.raw_rows[:limit]

    # --- validate -----------------------------------------------------------

    def confirm_preview(self) -> ImportSession:
        """Accept the preview and validate every row (PREVIEW -> VALIDATED)."""
        self._require("confirm_preview", ImportStatus.PREVIEW)
        return self.run_validation()

    def run_validation(self) -> ImportSession:
        """Validate every raw row; callable again from VALIDATED (idempotent).

        Each run rebuilds the reference index, so store changes between runs
        are picked up.
        """
        self._require("run_validation", ImportStatus.PREVIEW, ImportStatus.VALIDATED)
        session = self._session
        session.status = ImportStatus.VALIDATING

        outcome = validate_rows(session.raw_rows, self.profile, self.store)
        session.errors = outcome.errors
        session.validated_rows = outcome.validated_rows
        session.store_duplicates = outcome.store_duplicates
        session.progress = UploadProgress(total=len(outcome.validated_rows))
        session.status = ImportStatus.VALIDATED

        if outcome.errors:
            logger.warning("validation found %d errors in %d rows", len(outcome.errors), len(session.raw_rows))
        else:
            logger.info("validation passed: %d rows ready", len(outcome.validated_rows))
        if outcome.store_duplicates:
            logger.info("%d rows already in %s will be skipped", len(outcome.store_duplicates), self.profile.table)
        return session

    # --- upload -------------------------------------------------------------

    def confirm_upload(self) -> ImportSession:
        """Upload the validated rows (VALIDATED -> SUCCESS or ERROR).

        Rows go in spreadsheet order. Progress is reported once before the
        first row and after each stored row (or batch). The first StoreError
        stops the upload; rows already stored stay stored.

        Returns:
            The session with status SUCCESS, or ERROR and one row-0 "upload" error

        Raises:
            InvalidTransitionError: when not VALIDATED or validation found errors
        """
        self._require("confirm_upload", ImportStatus.VALIDATED)
        session = self._session
        if session.errors:
            raise InvalidTransitionError(f"upload refused: {len(session.errors)} validation errors")

        rows = session.validated_rows
        session.status = ImportStatus.UPLOADING
        session.progress = UploadProgress(completed=0, total=len(rows))
        self._notify()
        context = UploadContext(store=self.store, table=self.profile.table)

        bar = RowProgressBar(len(rows), description=f"Uploading {self.profile.name}") if self.show_progress else None
        try:
            if self.profile.insert_mode == INSERT_MODE_BATCH:
                self._upload_batch(rows, context, bar)
            else:
                self._upload_rows(rows, context, bar)
        except StoreError as e:
            self._fail(ValidationError.upload_error(str(e)))
            logger.error(
                "upload aborted after %d/%d rows: %s", session.progress.completed, session.progress.total, e
            )
            return session
        finally:
            if bar is not None:
                bar.close()

        session.status = ImportStatus.SUCCESS
        logger.info("uploaded %d rows into %s", session.progress.completed, self.profile.table)
        return session

    def _store_row(self, row: ValidatedRow, context: UploadContext) -> None:
        record = self.profile.build_record(row, context)
        if row.existing_id is not None:
            self.store.update(self.profile.table, record, [Filter.eq("id", row.existing_id)])
        else:
            self.store.insert(self.profile.table, record)

    def _upload_rows(self, rows: list[ValidatedRow], context: UploadContext, bar: RowProgressBar | None) -> None:
        for row in rows:
            try:
                self._store_row(row, context)
            except StoreError as e:
                raise StoreError(f"row {row.row_number}: {e}") from e
            self._advance(1, bar)

    def _upload_batch(self, rows: list[ValidatedRow], context: UploadContext, bar: RowProgressBar | None) -> None:
        """One multi-row insert for new rows; updates still go one by one."""
        inserts = [r for r in rows if r.existing_id is None]
        if inserts:
            self.store.insert(self.profile.table, self.profile.build_records(inserts, context))
            self._advance(len(inserts), bar)
        for row in rows:
            if row.existing_id is not None:
                self._store_row(row, context)
                self._advance(1, bar)

    def _advance(self, count: int, bar: RowProgressBar | None) -> None:
        self._session.progress.completed += count
        if bar is not None:
            bar.advance(count)
        self._notify()

    def _notify(self) -> None:
        if self.on_progress is not None:
            self.on_progress(self._session.progress)

    # --- reset / failure ----------------------------------------------------

    def reset(self) -> ImportSession:
        """Discard rows, errors and progress and return to IDLE.

        Raises:
            InvalidTransitionError: while validating or uploading
        """
        self._require(
            "reset",
            ImportStatus.IDLE,
            ImportStatus.PREVIEW,
            ImportStatus.VALIDATED,
            ImportStatus.SUCCESS,
            ImportStatus.ERROR,
        )
        self._session.clear()
        return self._session

    def _fail(self, error: ValidationError) -> None:
        self._session.errors.append(error)
        self._session.status = ImportStatus.ERROR
        if error.field == "file":
            logger.error("cannot read file: %s", error.message)
