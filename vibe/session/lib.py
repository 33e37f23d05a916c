"""Session lifecycle and completion aggregation.

A session moves forward through its planning statuses as collaborators
finish, enters `generating` when the first variant generation starts, and
reaches `complete` only through the CompletionAggregator once every one of
its N variants is complete.
"""

import logging

from ..config import EnvVar, get_environment
from ..core.errors import InvalidTransitionError, NotFoundError, ValidationError
from ..records import (
    RecordStore,
    Session,
    SessionSnapshot,
    SessionStatus,
    VariantPlan,
    VariantStatus,
)

logger = logging.getLogger(__name__)

# Statuses a session may be advanced to by collaborators
MANUAL_STATUSES = (
    SessionStatus.UNDERSTANDING_READY,
    SessionStatus.PLAN_READY,
    SessionStatus.WIREFRAME_READY,
    SessionStatus.GENERATING,
)


class CompletionAggregator:
    """Recomputes session completion from variant statuses.

    Every call re-reads the record store; no counter is cached, so
    concurrent callers always agree with the stored rows.

    Args:
        store: Record store holding sessions and variants.
    """

    def __init__(self, store: RecordStore):
        self._store = store

    def recompute(self, session_id: str) -> bool:
        """Mark the session complete iff all N variants are complete.

        Never moves a session backward: a failed or in-flight variant keeps
        the session where it is.

        Args:
            session_id: Session to recompute.

        Returns:
            True iff every variant of the session is complete.
        """
        done = self._store.complete_session_if_ready(session_id)
        if done:
            logger.info(f"Session {session_id} complete")
        else:
            logger.debug(f"Session {session_id} not complete yet")
        return done


class SessionLifecycle:
    """Owns session creation, plan storage and status movement.

    Example:
        >>> lifecycle = SessionLifecycle(store)
        >>> session = lifecycle.create_session("<html>...</html>")
        >>> lifecycle.advance(session.id, SessionStatus.UNDERSTANDING_READY)
        >>> lifecycle.create_plans(session.id, plans)

    Args:
        store: Record store.
        default_variant_count: N for new sessions. Defaults to
            VIBE_VARIANT_COUNT.
    """

    def __init__(self, store: RecordStore, default_variant_count: int | None = None):
        self._store = store
        self.default_variant_count = default_variant_count or get_environment(
            EnvVar.VIBE_VARIANT_COUNT
        )

    # =========================================================================
    # Sessions
    # =========================================================================

    def create_session(
        self,
        source_html: str,
        user_id: str | None = None,
        variant_count: int | None = None,
    ) -> Session:
        """Create a draft session for a source screen.

        Raises:
            ValidationError: If source_html is empty or variant_count < 1.
        """
        if not source_html or not source_html.strip():
            raise ValidationError("source_html must not be empty")
        count = variant_count or self.default_variant_count
        if count < 1:
            raise ValidationError(f"variant_count must be at least 1, got {count}")

        session = self._store.create_session(
            Session.create(source_html, variant_count=count, user_id=user_id)
        )
        logger.info(f"Created session {session.id} with {count} variants")
        return session

    def get_session(self, session_id: str) -> Session:
        """Get a session or raise NotFoundError."""
        session = self._store.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session not found: {session_id}")
        return session

    def get_full_session(self, session_id: str) -> SessionSnapshot:
        """Read a session together with its plans and variants."""
        session = self.get_session(session_id)
        return SessionSnapshot(
            session=session,
            plans=self._store.list_plans(session_id),
            variants=self._store.list_variants(session_id),
        )

    # =========================================================================
    # Status Movement
    # =========================================================================

    def advance(self, session_id: str, status: SessionStatus) -> Session:
        """Move a session forward to status.

        Advancing to the current status is a no-op.

        Raises:
            InvalidTransitionError: If status is `complete` (aggregator only)
                or the move would go backward.
            NotFoundError: If the session does not exist.
        """
        if status not in MANUAL_STATUSES:
            raise InvalidTransitionError(
                f"Session status {status.value} is set by completion aggregation only"
            )

        session = self.get_session(session_id)
        if session.status == status:
            return session

        earlier = {s for s in SessionStatus if s.rank < status.rank}
        if not self._store.transition_session(session_id, status, earlier):
            current = self.get_session(session_id).status
            raise InvalidTransitionError(
                f"Cannot move session {session_id} from {current.value} "
                f"to {status.value}",
                session_id=session_id,
            )

        logger.info(f"Session {session_id}: {session.status.value} -> {status.value}")
        return self.get_session(session_id)

    def mark_generating(self, session_id: str) -> bool:
        """Enter `generating` as a variant generation starts.

        A complete session re-enters `generating` when one of its variants
        is regenerated.

        Returns:
            True if the status changed.
        """
        allowed = {s for s in SessionStatus if s != SessionStatus.GENERATING}
        changed = self._store.transition_session(
            session_id, SessionStatus.GENERATING, allowed
        )
        if changed:
            logger.info(f"Session {session_id} generating")
        return changed

    # =========================================================================
    # Plans and Selection
    # =========================================================================

    def create_plans(
        self, session_id: str, plans: list[VariantPlan]
    ) -> list[VariantPlan]:
        """Store a session's plan set and advance it to `plan_ready`.

        Raises:
            ValidationError: If an index is outside 1..N, repeated, or a plan
                belongs to another session.
            NotFoundError: If the session does not exist.
        """
        session = self.get_session(session_id)
        n = session.variant_count

        seen: set[int] = set()
        for plan in plans:
            if plan.session_id != session_id:
                raise ValidationError(
                    f"Plan {plan.id} belongs to session {plan.session_id}"
                )
            if not 1 <= plan.variant_index <= n:
                raise ValidationError(
                    f"variant_index {plan.variant_index} outside 1..{n}"
                )
            if plan.variant_index in seen:
                raise ValidationError(f"Duplicate variant_index {plan.variant_index}")
            seen.add(plan.variant_index)

        stored = self._store.create_plans(plans)
        if session.status.rank < SessionStatus.PLAN_READY.rank:
            self.advance(session_id, SessionStatus.PLAN_READY)
        return stored

    def select_variant(self, session_id: str, variant_index: int) -> Session:
        """Record the user's chosen variant.

        Raises:
            NotFoundError: If the session or variant does not exist.
            InvalidTransitionError: If the variant is not complete.
        """
        self.get_session(session_id)
        variant = self._store.get_variant_by_index(session_id, variant_index)
        if variant is None:
            raise NotFoundError(f"Variant {variant_index} not found in {session_id}")
        if variant.status != VariantStatus.COMPLETE:
            raise InvalidTransitionError(
                f"Variant {variant_index} is {variant.status.value}; "
                f"only complete variants can be selected"
            )
        self._store.set_selected_variant(session_id, variant_index)
        return self.get_session(session_id)


__all__ = [
    "CompletionAggregator",
    "SessionLifecycle",
    "MANUAL_STATUSES",
]
