"""Row validation."""

from .engine import ValidationOutcome, validate_rows
from .reference_index import ReferenceIndex

__all__ = [
    "ValidationOutcome",
    "validate_rows",
    "ReferenceIndex",
]
