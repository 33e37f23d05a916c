"""Storage backends for generation records.

Available backends:
- SQLiteRecordStore: File-based (or in-memory) SQLite database
"""

from .protocol import RecordStore
from .sqlite import SQLiteRecordStore

__all__ = [
    "RecordStore",
    "SQLiteRecordStore",
]
