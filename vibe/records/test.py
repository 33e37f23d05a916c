"""Tests for generation records and the SQLite record store.

Tests cover:
- Data models and serialization
- Idempotent variant upsert keyed by (session_id, variant_index)
- Attempt-guarded completion and failure writes
- Atomic session completion
- Gapless iteration append
- Provider credential storage
"""

import tempfile
from pathlib import Path

import pytest

from vibe.core.errors import PersistenceError

from .models import (
    Iteration,
    Session,
    SessionStatus,
    Variant,
    VariantPlan,
    VariantStatus,
)
from .storage import SQLiteRecordStore

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test storage."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store(temp_dir):
    """Create an initialized SQLite record store."""
    s = SQLiteRecordStore(temp_dir / "records.db")
    s.initialize()
    yield s
    s.close()


@pytest.fixture
def session(store):
    """Create a stored session with N=4."""
    return store.create_session(Session.create("<html><body>src</body></html>"))


def _complete(store, session_id, index, attempt="a1"):
    store.start_variant(session_id, index, None, attempt)
    assert store.complete_variant(
        session_id, index, attempt, f"p/{index}.html", f"u/{index}", "m", 10
    )


# =============================================================================
# Model Tests
# =============================================================================


class TestModels:
    """Tests for record dataclasses."""

    @pytest.mark.unit
    def test_session_create(self):
        s = Session.create("<p/>", variant_count=3, user_id="u1")
        assert s.status == SessionStatus.DRAFT
        assert s.variant_count == 3
        assert s.user_id == "u1"
        assert len(s.id) == 36

    @pytest.mark.unit
    def test_session_status_rank_is_lifecycle_order(self):
        ranks = [s.rank for s in SessionStatus]
        assert ranks == sorted(ranks)
        assert SessionStatus.GENERATING.rank < SessionStatus.COMPLETE.rank
        assert SessionStatus.DRAFT.rank == 0

    @pytest.mark.unit
    def test_variant_to_dict(self):
        v = Variant(id="v1", session_id="s1", variant_index=2)
        data = v.to_dict()
        assert data["variantIndex"] == 2
        assert data["status"] == "pending"
        assert data["htmlUrl"] is None
        assert not v.is_terminal

    @pytest.mark.unit
    def test_iteration_is_frozen(self):
        it = Iteration.create("v1", "s1", 1, 1, "p", "<a/>", "<b/>")
        with pytest.raises(AttributeError):
            it.prompt = "changed"  # type: ignore[misc]

    @pytest.mark.unit
    def test_iteration_to_dict_html_optional(self):
        it = Iteration.create("v1", "s1", 1, 1, "p", "<a/>", "<b/>")
        assert "htmlBefore" not in it.to_dict()
        assert it.to_dict(include_html=True)["htmlAfter"] == "<b/>"


# =============================================================================
# Session Tests
# =============================================================================


class TestSessions:
    """Tests for session persistence."""

    @pytest.mark.unit
    def test_roundtrip(self, store, session):
        loaded = store.get_session(session.id)
        assert loaded is not None
        assert loaded.source_html == session.source_html
        assert loaded.status == SessionStatus.DRAFT

    @pytest.mark.unit
    def test_missing_session(self, store):
        assert store.get_session("nope") is None

    @pytest.mark.unit
    def test_transition_guard(self, store, session):
        assert store.transition_session(
            session.id, SessionStatus.PLAN_READY, {SessionStatus.DRAFT}
        )
        # Current status is no longer DRAFT
        assert not store.transition_session(
            session.id, SessionStatus.UNDERSTANDING_READY, {SessionStatus.DRAFT}
        )
        assert store.get_session(session.id).status == SessionStatus.PLAN_READY

    @pytest.mark.unit
    def test_list_sessions_by_user(self, store):
        store.create_session(Session.create("<a/>", user_id="alice"))
        store.create_session(Session.create("<b/>", user_id="bob"))
        assert [s.user_id for s in store.list_sessions(user_id="alice")] == ["alice"]
        assert len(store.list_sessions()) == 2


# =============================================================================
# Plan Tests
# =============================================================================


class TestPlans:
    """Tests for plan persistence."""

    @pytest.mark.unit
    def test_create_and_list(self, store, session):
        plans = [
            VariantPlan.create(session.id, i, f"Plan {i}", key_changes=[f"c{i}"])
            for i in (2, 1)
        ]
        store.create_plans(plans)
        listed = store.list_plans(session.id)
        assert [p.variant_index for p in listed] == [1, 2]
        assert listed[0].key_changes == ["c1"]
        assert store.get_plan(plans[0].id).title == "Plan 2"

    @pytest.mark.unit
    def test_duplicate_index_rejected(self, store, session):
        store.create_plans([VariantPlan.create(session.id, 1, "A")])
        with pytest.raises(PersistenceError):
            store.create_plans([VariantPlan.create(session.id, 1, "B")])


# =============================================================================
# Variant Tests
# =============================================================================


class TestVariants:
    """Tests for variant upsert and guarded writes."""

    @pytest.mark.unit
    def test_start_is_idempotent_per_key(self, store, session):
        first = store.start_variant(session.id, 1, None, "a1")
        second = store.start_variant(session.id, 1, None, "a2")

        assert first.id == second.id
        assert second.attempt_id == "a2"
        assert len(store.list_variants(session.id)) == 1

    @pytest.mark.unit
    def test_start_resets_error_and_pointer(self, store, session):
        store.start_variant(session.id, 1, None, "a1")
        store.fail_variant(session.id, 1, "a1", "boom")
        assert store.get_variant_by_index(session.id, 1).error_message == "boom"

        restarted = store.start_variant(session.id, 1, None, "a2")
        assert restarted.status == VariantStatus.GENERATING
        assert restarted.error_message is None
        assert restarted.html_url is None

    @pytest.mark.unit
    def test_complete_sets_pointer(self, store, session):
        store.start_variant(session.id, 1, "plan-1", "a1")
        assert store.complete_variant(session.id, 1, "a1", "p", "u", "model-x", 42)

        v = store.get_variant_by_index(session.id, 1)
        assert v.status == VariantStatus.COMPLETE
        assert (v.html_path, v.html_url) == ("p", "u")
        assert v.generation_model == "model-x"
        assert v.generation_duration_ms == 42
        assert v.plan_id == "plan-1"

    @pytest.mark.unit
    def test_stale_attempt_cannot_write(self, store, session):
        store.start_variant(session.id, 1, None, "old")
        store.start_variant(session.id, 1, None, "new")

        assert not store.complete_variant(session.id, 1, "old", "p", "u", "m", 1)
        assert not store.fail_variant(session.id, 1, "old", "late failure")
        assert store.get_variant_by_index(session.id, 1).status == (
            VariantStatus.GENERATING
        )

    @pytest.mark.unit
    def test_terminal_variant_not_rewritten(self, store, session):
        _complete(store, session.id, 1)
        assert not store.fail_variant(session.id, 1, "a1", "late")
        assert store.get_variant_by_index(session.id, 1).status == (
            VariantStatus.COMPLETE
        )

    @pytest.mark.unit
    def test_unknown_session_rejected(self, store):
        with pytest.raises(PersistenceError):
            store.start_variant("missing", 1, None, "a1")

    @pytest.mark.unit
    def test_set_pointer_requires_complete(self, store, session):
        v = store.start_variant(session.id, 1, None, "a1")
        assert not store.set_variant_pointer(v.id, "p2", "u2")
        store.complete_variant(session.id, 1, "a1", "p", "u", "m", 1)
        assert store.set_variant_pointer(v.id, "p2", "u2")
        assert store.get_variant(v.id).html_url == "u2"


# =============================================================================
# Session Completion Tests
# =============================================================================


class TestCompleteSessionIfReady:
    """Tests for atomic session completion."""

    @pytest.mark.unit
    def test_incomplete_until_all_n(self, store, session):
        for i in (1, 2, 3):
            _complete(store, session.id, i)
            assert store.complete_session_if_ready(session.id) is False
        assert store.get_session(session.id).status != SessionStatus.COMPLETE

        _complete(store, session.id, 4)
        assert store.complete_session_if_ready(session.id) is True
        assert store.get_session(session.id).status == SessionStatus.COMPLETE

    @pytest.mark.unit
    def test_failed_variant_blocks(self, store, session):
        for i in (1, 2, 4):
            _complete(store, session.id, i)
        store.start_variant(session.id, 3, None, "a1")
        store.fail_variant(session.id, 3, "a1", "timeout")
        assert store.complete_session_if_ready(session.id) is False

    @pytest.mark.unit
    def test_respects_session_variant_count(self, store):
        s = store.create_session(Session.create("<p/>", variant_count=2))
        _complete(store, s.id, 1)
        _complete(store, s.id, 2)
        assert store.complete_session_if_ready(s.id) is True

    @pytest.mark.unit
    def test_idempotent(self, store, session):
        for i in range(1, 5):
            _complete(store, session.id, i)
        assert store.complete_session_if_ready(session.id)
        assert store.complete_session_if_ready(session.id)

    @pytest.mark.unit
    def test_missing_session(self, store):
        assert store.complete_session_if_ready("nope") is False


# =============================================================================
# Iteration Tests
# =============================================================================


class TestIterations:
    """Tests for the append-only iteration log."""

    @pytest.fixture
    def variant(self, store, session):
        _complete(store, session.id, 1)
        return store.get_variant_by_index(session.id, 1)

    def _iteration(self, variant, number, before="<a/>", after="<b/>"):
        return Iteration.create(
            variant.id,
            variant.session_id,
            variant.variant_index,
            number,
            f"prompt {number}",
            before,
            after,
            html_path=f"iter_{number}.html",
            html_url=f"url/iter_{number}",
        )

    @pytest.mark.unit
    def test_append_advances_variant(self, store, variant):
        updated = store.append_iteration(self._iteration(variant, 1))
        assert updated.iteration_count == 1
        assert updated.html_url == "url/iter_1"
        assert updated.status == VariantStatus.COMPLETE

    @pytest.mark.unit
    def test_numbers_are_gapless(self, store, variant):
        store.append_iteration(self._iteration(variant, 1))
        store.append_iteration(self._iteration(variant, 2))
        assert [i.iteration_number for i in store.list_iterations(variant.id)] == [
            1,
            2,
        ]

    @pytest.mark.unit
    def test_gap_rejected(self, store, variant):
        with pytest.raises(PersistenceError):
            store.append_iteration(self._iteration(variant, 2))
        assert store.list_iterations(variant.id) == []
        assert store.get_variant(variant.id).iteration_count == 0

    @pytest.mark.unit
    def test_duplicate_rejected_without_side_effects(self, store, variant):
        store.append_iteration(self._iteration(variant, 1))
        with pytest.raises(PersistenceError):
            store.append_iteration(self._iteration(variant, 1))
        assert len(store.list_iterations(variant.id)) == 1
        assert store.get_variant(variant.id).html_url == "url/iter_1"

    @pytest.mark.unit
    def test_requires_complete_variant(self, store, session):
        v = store.start_variant(session.id, 2, None, "a1")
        with pytest.raises(PersistenceError):
            store.append_iteration(self._iteration(v, 1))

    @pytest.mark.unit
    def test_get_and_session_listing(self, store, variant):
        updated = store.append_iteration(self._iteration(variant, 1, before="<x/>"))
        assert updated.iteration_count == 1
        loaded = store.list_session_iterations(variant.session_id)
        assert len(loaded) == 1
        assert store.get_iteration(loaded[0].id).html_before == "<x/>"


# =============================================================================
# Credential Tests
# =============================================================================


class TestApiKeys:
    """Tests for per-user provider credentials."""

    @pytest.mark.unit
    def test_store_replace_delete(self, store):
        assert store.get_api_key("u1", "openai") is None
        store.store_api_key("u1", "openai", "sk-1")
        store.store_api_key("u1", "openai", "sk-2")
        assert store.get_api_key("u1", "openai") == "sk-2"
        assert store.delete_api_key("u1", "openai") is True
        assert store.delete_api_key("u1", "openai") is False


class TestInMemory:
    """The store also runs on an in-memory database."""

    @pytest.mark.unit
    def test_memory_database(self):
        s = SQLiteRecordStore(":memory:")
        s.initialize()
        created = s.create_session(Session.create("<p/>"))
        assert s.get_session(created.id) is not None
        s.close()
