"""Generation records: sessions, plans, variants and iterations.

Example:
    >>> from vibe.records import Session, open_record_store
    >>> store = open_record_store(":memory:")
    >>> session = store.create_session(Session.create("<html>...</html>"))
"""

from .lib import open_record_store
from .models import (
    Iteration,
    Session,
    SessionSnapshot,
    SessionStatus,
    Variant,
    VariantPlan,
    VariantStatus,
)
from .storage import RecordStore, SQLiteRecordStore

__all__ = [
    # Models
    "Session",
    "SessionStatus",
    "SessionSnapshot",
    "VariantPlan",
    "Variant",
    "VariantStatus",
    "Iteration",
    # Storage
    "RecordStore",
    "SQLiteRecordStore",
    "open_record_store",
]
