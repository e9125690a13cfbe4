"""Remote data store backends."""

from .base import DataStore, Filter, StoreError
from .memory import MemoryStore

__all__ = [
    "DataStore",
    "Filter",
    "StoreError",
    "MemoryStore",
]
