"""Record store construction helpers."""

import logging
from pathlib import Path

from ..config import get_db_path
from .storage import RecordStore, SQLiteRecordStore

logger = logging.getLogger(__name__)


def open_record_store(db_path: Path | str | None = None) -> RecordStore:
    """Create and initialize the record store.

    Args:
        db_path: Database path or ":memory:". Defaults to VIBE_DB_PATH.

    Returns:
        Initialized RecordStore.
    """
    path = db_path if db_path is not None else get_db_path()
    store = SQLiteRecordStore(path)
    store.initialize()
    return store


__all__ = ["open_record_store"]
