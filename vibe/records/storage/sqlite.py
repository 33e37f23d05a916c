"""SQLite storage backend for generation records.

Variant writes are single statements keyed by (session_id, variant_index),
so they are atomic without read-modify-write. Multi-statement writes
(iteration append) run in one transaction guarded by a conditional UPDATE.
"""

import json
import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from uuid import uuid4

from ...core.errors import PersistenceError
from ..models import (
    Iteration,
    Session,
    SessionStatus,
    Variant,
    VariantPlan,
    VariantStatus,
)

logger = logging.getLogger(__name__)

# SQL Schema
SCHEMA_SQL = """
-- Sessions table
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    user_id TEXT,
    source_html TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'draft',
    variant_count INTEGER NOT NULL DEFAULT 4,
    selected_variant_index INTEGER,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Variant plans table
CREATE TABLE IF NOT EXISTS variant_plans (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    variant_index INTEGER NOT NULL CHECK (variant_index >= 1),
    title TEXT NOT NULL,
    description TEXT,
    key_changes TEXT,  -- JSON array
    style_notes TEXT,
    created_at TEXT NOT NULL,
    UNIQUE (session_id, variant_index),
    FOREIGN KEY (session_id) REFERENCES sessions(id) ON DELETE CASCADE
);

-- Variants table
CREATE TABLE IF NOT EXISTS variants (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    variant_index INTEGER NOT NULL CHECK (variant_index >= 1),
    plan_id TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    html_path TEXT,
    html_url TEXT,
    error_message TEXT,
    generation_model TEXT,
    generation_duration_ms INTEGER,
    iteration_count INTEGER NOT NULL DEFAULT 0,
    attempt_id TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (session_id, variant_index),
    FOREIGN KEY (session_id) REFERENCES sessions(id) ON DELETE CASCADE
);

-- Iterations table (append-only)
CREATE TABLE IF NOT EXISTS iterations (
    id TEXT PRIMARY KEY,
    variant_id TEXT NOT NULL,
    session_id TEXT NOT NULL,
    variant_index INTEGER NOT NULL,
    iteration_number INTEGER NOT NULL CHECK (iteration_number >= 1),
    prompt TEXT NOT NULL,
    html_before TEXT NOT NULL,
    html_after TEXT NOT NULL,
    html_path TEXT,
    html_url TEXT,
    generation_model TEXT,
    generation_duration_ms INTEGER,
    created_at TEXT NOT NULL,
    UNIQUE (variant_id, iteration_number),
    FOREIGN KEY (variant_id) REFERENCES variants(id) ON DELETE CASCADE
);

-- Per-user provider credentials
CREATE TABLE IF NOT EXISTS api_keys (
    user_id TEXT NOT NULL,
    provider TEXT NOT NULL,
    api_key TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (user_id, provider)
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id);
CREATE INDEX IF NOT EXISTS idx_sessions_updated ON sessions(updated_at);
CREATE INDEX IF NOT EXISTS idx_variants_session ON variants(session_id);
CREATE INDEX IF NOT EXISTS idx_iterations_variant ON iterations(variant_id);
CREATE INDEX IF NOT EXISTS idx_iterations_session ON iterations(session_id);
"""


def _now() -> str:
    return datetime.now(UTC).isoformat()


class SQLiteRecordStore:
    """SQLite-based record store.

    Features:
    - Atomic variant upsert keyed by (session_id, variant_index)
    - Attempt-guarded completion and failure writes
    - Transactional iteration append with gapless numbering
    - Thread-safe: one connection serialized by a re-entrant lock

    Args:
        db_path: Path to SQLite database file, or ":memory:".
    """

    def __init__(self, db_path: Path | str):
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def _get_conn(self) -> sqlite3.Connection:
        """Get database connection, raising if not initialized."""
        if self._conn is None:
            raise RuntimeError("Storage not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Initialize storage (create database file and tables)."""
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.execute("PRAGMA journal_mode = WAL")

        self._conn.executescript(SCHEMA_SQL)
        self._conn.commit()

        logger.info(f"Initialized SQLite record store at {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run statements in one transaction; translate sqlite errors."""
        with self._lock:
            conn = self._get_conn()
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise PersistenceError(f"Record store write failed: {e}") from e
            except BaseException:
                conn.rollback()
                raise

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._get_conn().execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise PersistenceError(f"Record store read failed: {e}") from e

    # =========================================================================
    # Session Operations
    # =========================================================================

    def create_session(self, session: Session) -> Session:
        """Create a new session."""
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO sessions (
                    id, user_id, source_html, status, variant_count,
                    selected_variant_index, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session.id,
                    session.user_id,
                    session.source_html,
                    session.status.value,
                    session.variant_count,
                    session.selected_variant_index,
                    session.created_at.isoformat(),
                    session.updated_at.isoformat(),
                ),
            )
        return session

    def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        rows = self._query("SELECT * FROM sessions WHERE id = ?", (session_id,))
        return self._row_to_session(rows[0]) if rows else None

    def list_sessions(
        self, user_id: str | None = None, limit: int = 20
    ) -> list[Session]:
        """List sessions, most recently updated first."""
        if user_id is None:
            rows = self._query(
                "SELECT * FROM sessions ORDER BY updated_at DESC LIMIT ?", (limit,)
            )
        else:
            rows = self._query(
                "SELECT * FROM sessions WHERE user_id = ? "
                "ORDER BY updated_at DESC LIMIT ?",
                (user_id, limit),
            )
        return [self._row_to_session(row) for row in rows]

    def transition_session(
        self,
        session_id: str,
        status: SessionStatus,
        allowed_from: set[SessionStatus],
    ) -> bool:
        """Set session status iff its current status is in allowed_from."""
        if not allowed_from:
            return False
        placeholders = ", ".join("?" for _ in allowed_from)
        with self._transaction() as conn:
            cursor = conn.execute(
                f"""
                UPDATE sessions SET status = ?, updated_at = ?
                WHERE id = ? AND status IN ({placeholders})
                """,
                (status.value, _now(), session_id, *[s.value for s in allowed_from]),
            )
        return cursor.rowcount > 0

    def complete_session_if_ready(self, session_id: str) -> bool:
        """Atomically count complete variants and mark the session complete."""
        with self._transaction() as conn:
            conn.execute(
                """
                UPDATE sessions SET status = ?, updated_at = ?
                WHERE id = ? AND status != ?
                  AND variant_count = (
                      SELECT COUNT(*) FROM variants
                      WHERE session_id = ? AND status = ?
                  )
                """,
                (
                    SessionStatus.COMPLETE.value,
                    _now(),
                    session_id,
                    SessionStatus.COMPLETE.value,
                    session_id,
                    VariantStatus.COMPLETE.value,
                ),
            )
            row = conn.execute(
                """
                SELECT s.variant_count AS n,
                       (SELECT COUNT(*) FROM variants v
                        WHERE v.session_id = s.id AND v.status = ?) AS done
                FROM sessions s WHERE s.id = ?
                """,
                (VariantStatus.COMPLETE.value, session_id),
            ).fetchone()
        if row is None:
            return False
        return row["done"] == row["n"]

    def set_selected_variant(self, session_id: str, variant_index: int) -> None:
        """Record the variant the user picked."""
        with self._transaction() as conn:
            conn.execute(
                """
                UPDATE sessions SET selected_variant_index = ?, updated_at = ?
                WHERE id = ?
                """,
                (variant_index, _now(), session_id),
            )

    # =========================================================================
    # Plan Operations
    # =========================================================================

    def create_plans(self, plans: list[VariantPlan]) -> list[VariantPlan]:
        """Insert plans in one transaction."""
        with self._transaction() as conn:
            conn.executemany(
                """
                INSERT INTO variant_plans (
                    id, session_id, variant_index, title, description,
                    key_changes, style_notes, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        p.id,
                        p.session_id,
                        p.variant_index,
                        p.title,
                        p.description,
                        json.dumps(p.key_changes),
                        p.style_notes,
                        p.created_at.isoformat(),
                    )
                    for p in plans
                ],
            )
        return plans

    def get_plan(self, plan_id: str) -> VariantPlan | None:
        """Get a plan by ID."""
        rows = self._query("SELECT * FROM variant_plans WHERE id = ?", (plan_id,))
        return self._row_to_plan(rows[0]) if rows else None

    def list_plans(self, session_id: str) -> list[VariantPlan]:
        """List a session's plans ordered by variant_index."""
        rows = self._query(
            "SELECT * FROM variant_plans WHERE session_id = ? ORDER BY variant_index",
            (session_id,),
        )
        return [self._row_to_plan(row) for row in rows]

    # =========================================================================
    # Variant Operations
    # =========================================================================

    def start_variant(
        self,
        session_id: str,
        variant_index: int,
        plan_id: str | None,
        attempt_id: str,
    ) -> Variant:
        """Upsert the variant to generating and stamp a new attempt."""
        now = _now()
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO variants (
                    id, session_id, variant_index, plan_id, status,
                    attempt_id, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (session_id, variant_index) DO UPDATE SET
                    plan_id = COALESCE(excluded.plan_id, variants.plan_id),
                    status = excluded.status,
                    html_path = NULL,
                    html_url = NULL,
                    error_message = NULL,
                    attempt_id = excluded.attempt_id,
                    updated_at = excluded.updated_at
                """,
                (
                    str(uuid4()),
                    session_id,
                    variant_index,
                    plan_id,
                    VariantStatus.GENERATING.value,
                    attempt_id,
                    now,
                    now,
                ),
            )
            row = conn.execute(
                "SELECT * FROM variants WHERE session_id = ? AND variant_index = ?",
                (session_id, variant_index),
            ).fetchone()
        return self._row_to_variant(row)

    def complete_variant(
        self,
        session_id: str,
        variant_index: int,
        attempt_id: str,
        html_path: str,
        html_url: str,
        generation_model: str,
        generation_duration_ms: int,
    ) -> bool:
        """Mark a generating variant complete iff attempt_id still owns it."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE variants SET status = ?, html_path = ?, html_url = ?,
                                    error_message = NULL, generation_model = ?,
                                    generation_duration_ms = ?, updated_at = ?
                WHERE session_id = ? AND variant_index = ?
                  AND attempt_id = ? AND status = ?
                """,
                (
                    VariantStatus.COMPLETE.value,
                    html_path,
                    html_url,
                    generation_model,
                    generation_duration_ms,
                    _now(),
                    session_id,
                    variant_index,
                    attempt_id,
                    VariantStatus.GENERATING.value,
                ),
            )
        return cursor.rowcount > 0

    def fail_variant(
        self,
        session_id: str,
        variant_index: int,
        attempt_id: str,
        error_message: str,
    ) -> bool:
        """Mark a generating variant failed iff attempt_id still owns it."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE variants SET status = ?, error_message = ?,
                                    html_path = NULL, html_url = NULL,
                                    updated_at = ?
                WHERE session_id = ? AND variant_index = ?
                  AND attempt_id = ? AND status = ?
                """,
                (
                    VariantStatus.FAILED.value,
                    error_message,
                    _now(),
                    session_id,
                    variant_index,
                    attempt_id,
                    VariantStatus.GENERATING.value,
                ),
            )
        return cursor.rowcount > 0

    def get_variant(self, variant_id: str) -> Variant | None:
        """Get a variant by ID."""
        rows = self._query("SELECT * FROM variants WHERE id = ?", (variant_id,))
        return self._row_to_variant(rows[0]) if rows else None

    def get_variant_by_index(
        self, session_id: str, variant_index: int
    ) -> Variant | None:
        """Get a variant by its unique (session_id, variant_index) key."""
        rows = self._query(
            "SELECT * FROM variants WHERE session_id = ? AND variant_index = ?",
            (session_id, variant_index),
        )
        return self._row_to_variant(rows[0]) if rows else None

    def list_variants(self, session_id: str) -> list[Variant]:
        """List a session's variants ordered by variant_index."""
        rows = self._query(
            "SELECT * FROM variants WHERE session_id = ? ORDER BY variant_index",
            (session_id,),
        )
        return [self._row_to_variant(row) for row in rows]

    def set_variant_pointer(
        self, variant_id: str, html_path: str, html_url: str
    ) -> bool:
        """Repoint a complete variant at another artifact."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE variants SET html_path = ?, html_url = ?, updated_at = ?
                WHERE id = ? AND status = ?
                """,
                (html_path, html_url, _now(), variant_id, VariantStatus.COMPLETE.value),
            )
        return cursor.rowcount > 0

    # =========================================================================
    # Iteration Operations
    # =========================================================================

    def append_iteration(self, iteration: Iteration) -> Variant:
        """Insert an iteration and advance the variant in one transaction."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE variants SET html_path = ?, html_url = ?,
                                    iteration_count = ?, updated_at = ?
                WHERE id = ? AND status = ? AND iteration_count = ?
                """,
                (
                    iteration.html_path,
                    iteration.html_url,
                    iteration.iteration_number,
                    _now(),
                    iteration.variant_id,
                    VariantStatus.COMPLETE.value,
                    iteration.iteration_number - 1,
                ),
            )
            if cursor.rowcount == 0:
                raise PersistenceError(
                    f"Variant {iteration.variant_id} changed while iteration "
                    f"{iteration.iteration_number} was being applied",
                    variant_id=iteration.variant_id,
                )
            conn.execute(
                """
                INSERT INTO iterations (
                    id, variant_id, session_id, variant_index, iteration_number,
                    prompt, html_before, html_after, html_path, html_url,
                    generation_model, generation_duration_ms, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    iteration.id,
                    iteration.variant_id,
                    iteration.session_id,
                    iteration.variant_index,
                    iteration.iteration_number,
                    iteration.prompt,
                    iteration.html_before,
                    iteration.html_after,
                    iteration.html_path,
                    iteration.html_url,
                    iteration.generation_model,
                    iteration.generation_duration_ms,
                    iteration.created_at.isoformat(),
                ),
            )
            row = conn.execute(
                "SELECT * FROM variants WHERE id = ?", (iteration.variant_id,)
            ).fetchone()
        return self._row_to_variant(row)

    def get_iteration(self, iteration_id: str) -> Iteration | None:
        """Get an iteration by ID."""
        rows = self._query("SELECT * FROM iterations WHERE id = ?", (iteration_id,))
        return self._row_to_iteration(rows[0]) if rows else None

    def list_iterations(self, variant_id: str) -> list[Iteration]:
        """List a variant's iterations ordered by iteration_number."""
        rows = self._query(
            "SELECT * FROM iterations WHERE variant_id = ? ORDER BY iteration_number",
            (variant_id,),
        )
        return [self._row_to_iteration(row) for row in rows]

    def list_session_iterations(self, session_id: str) -> list[Iteration]:
        """List all iterations in a session ordered by created_at."""
        rows = self._query(
            """
            SELECT * FROM iterations WHERE session_id = ?
            ORDER BY created_at, variant_index, iteration_number
            """,
            (session_id,),
        )
        return [self._row_to_iteration(row) for row in rows]

    # =========================================================================
    # Provider Credentials
    # =========================================================================

    def store_api_key(self, user_id: str, provider: str, api_key: str) -> None:
        """Store or replace a user's API key for a provider."""
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO api_keys (user_id, provider, api_key, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (user_id, provider) DO UPDATE SET
                    api_key = excluded.api_key,
                    updated_at = excluded.updated_at
                """,
                (user_id, provider, api_key, _now()),
            )

    def get_api_key(self, user_id: str, provider: str) -> str | None:
        """Get a user's API key for a provider."""
        rows = self._query(
            "SELECT api_key FROM api_keys WHERE user_id = ? AND provider = ?",
            (user_id, provider),
        )
        return rows[0]["api_key"] if rows else None

    def delete_api_key(self, user_id: str, provider: str) -> bool:
        """Delete a user's API key."""
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM api_keys WHERE user_id = ? AND provider = ?",
                (user_id, provider),
            )
        return cursor.rowcount > 0

    # =========================================================================
    # Row Conversion
    # =========================================================================

    def _row_to_session(self, row: sqlite3.Row) -> Session:
        """Convert database row to Session object."""
        return Session(
            id=row["id"],
            user_id=row["user_id"],
            source_html=row["source_html"],
            status=SessionStatus(row["status"]),
            variant_count=row["variant_count"],
            selected_variant_index=row["selected_variant_index"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _row_to_plan(self, row: sqlite3.Row) -> VariantPlan:
        """Convert database row to VariantPlan object."""
        return VariantPlan(
            id=row["id"],
            session_id=row["session_id"],
            variant_index=row["variant_index"],
            title=row["title"],
            description=row["description"] or "",
            key_changes=json.loads(row["key_changes"]) if row["key_changes"] else [],
            style_notes=row["style_notes"] or "",
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def _row_to_variant(self, row: sqlite3.Row) -> Variant:
        """Convert database row to Variant object."""
        return Variant(
            id=row["id"],
            session_id=row["session_id"],
            variant_index=row["variant_index"],
            plan_id=row["plan_id"],
            status=VariantStatus(row["status"]),
            html_path=row["html_path"],
            html_url=row["html_url"],
            error_message=row["error_message"],
            generation_model=row["generation_model"],
            generation_duration_ms=row["generation_duration_ms"],
            iteration_count=row["iteration_count"],
            attempt_id=row["attempt_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _row_to_iteration(self, row: sqlite3.Row) -> Iteration:
        """Convert database row to Iteration object."""
        return Iteration(
            id=row["id"],
            variant_id=row["variant_id"],
            session_id=row["session_id"],
            variant_index=row["variant_index"],
            iteration_number=row["iteration_number"],
            prompt=row["prompt"],
            html_before=row["html_before"],
            html_after=row["html_after"],
            html_path=row["html_path"] or "",
            html_url=row["html_url"] or "",
            generation_model=row["generation_model"] or "",
            generation_duration_ms=row["generation_duration_ms"] or 0,
            created_at=datetime.fromisoformat(row["created_at"]),
        )


__all__ = ["SQLiteRecordStore", "SCHEMA_SQL"]
