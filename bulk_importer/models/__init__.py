"""Domain models for the spreadsheet import pipeline.

This package contains the session state and error records shared by the
decoder, the validation engine and the pipeline.
"""

from .session import ImportSession, ImportStatus, UploadProgress, ValidatedRow
from .validation_error import ErrorKind, ValidationError

__all__ = [
    # Session state
    "ImportSession",
    "ImportStatus",
    "UploadProgress",
    "ValidatedRow",
    # Errors
    "ErrorKind",
    "ValidationError",
]
