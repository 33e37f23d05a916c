"""Storage protocol for generation records.

Defines the interface that all record store backends must implement. Every
write to a variant row is keyed by (session_id, variant_index) and must be
atomic; conditional writes return False instead of raising when their
guard does not hold.
"""

from typing import Protocol

from ..models import (
    Iteration,
    Session,
    SessionStatus,
    Variant,
    VariantPlan,
)


class RecordStore(Protocol):
    """Protocol defining the record store interface.

    All backends (SQLite, PostgreSQL, in-memory) must implement this
    interface to be usable by the orchestrator, aggregator and iteration
    manager.
    """

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def initialize(self) -> None:
        """Initialize storage (create tables, indexes, etc.)."""
        ...

    def close(self) -> None:
        """Close storage connections and clean up resources."""
        ...

    # =========================================================================
    # Session Operations
    # =========================================================================

    def create_session(self, session: Session) -> Session:
        """Create a new session."""
        ...

    def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        ...

    def list_sessions(
        self, user_id: str | None = None, limit: int = 20
    ) -> list[Session]:
        """List sessions, most recently updated first."""
        ...

    def transition_session(
        self,
        session_id: str,
        status: SessionStatus,
        allowed_from: set[SessionStatus],
    ) -> bool:
        """Set session status iff its current status is in allowed_from.

        Returns:
            True if the status was changed.
        """
        ...

    def complete_session_if_ready(self, session_id: str) -> bool:
        """Atomically count complete variants and mark the session complete.

        Returns:
            True iff every one of the session's N variants is complete.
        """
        ...

    def set_selected_variant(self, session_id: str, variant_index: int) -> None:
        """Record the variant the user picked."""
        ...

    # =========================================================================
    # Plan Operations
    # =========================================================================

    def create_plans(self, plans: list[VariantPlan]) -> list[VariantPlan]:
        """Insert plans; fails if any (session_id, variant_index) exists."""
        ...

    def get_plan(self, plan_id: str) -> VariantPlan | None:
        """Get a plan by ID."""
        ...

    def list_plans(self, session_id: str) -> list[VariantPlan]:
        """List a session's plans ordered by variant_index."""
        ...

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
        """Upsert the variant to generating and stamp a new attempt.

        Clears error_message, html_path and html_url.
        """
        ...

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
        ...

    def fail_variant(
        self,
        session_id: str,
        variant_index: int,
        attempt_id: str,
        error_message: str,
    ) -> bool:
        """Mark a generating variant failed iff attempt_id still owns it."""
        ...

    def get_variant(self, variant_id: str) -> Variant | None:
        """Get a variant by ID."""
        ...

    def get_variant_by_index(
        self, session_id: str, variant_index: int
    ) -> Variant | None:
        """Get a variant by its unique (session_id, variant_index) key."""
        ...

    def list_variants(self, session_id: str) -> list[Variant]:
        """List a session's variants ordered by variant_index (fresh read)."""
        ...

    def set_variant_pointer(
        self, variant_id: str, html_path: str, html_url: str
    ) -> bool:
        """Repoint a complete variant at another artifact."""
        ...

    # =========================================================================
    # Iteration Operations
    # =========================================================================

    def append_iteration(self, iteration: Iteration) -> Variant:
        """Insert an iteration and advance the variant in one transaction.

        The write only succeeds when the variant is complete and its
        iteration_count equals iteration.iteration_number - 1.

        Returns:
            The updated variant.

        Raises:
            PersistenceError: If the guard fails or the write is rejected.
        """
        ...

    def get_iteration(self, iteration_id: str) -> Iteration | None:
        """Get an iteration by ID."""
        ...

    def list_iterations(self, variant_id: str) -> list[Iteration]:
        """List a variant's iterations ordered by iteration_number."""
        ...

    def list_session_iterations(self, session_id: str) -> list[Iteration]:
        """List all iterations in a session ordered by created_at."""
        ...

    # =========================================================================
    # Provider Credentials
    # =========================================================================

    def store_api_key(self, user_id: str, provider: str, api_key: str) -> None:
        """Store or replace a user's API key for a provider."""
        ...

    def get_api_key(self, user_id: str, provider: str) -> str | None:
        """Get a user's API key for a provider."""
        ...

    def delete_api_key(self, user_id: str, provider: str) -> bool:
        """Delete a user's API key. Returns True if one existed."""
        ...
