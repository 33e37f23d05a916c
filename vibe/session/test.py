"""Tests for session lifecycle and completion aggregation."""

from uuid import uuid4

import pytest

from vibe.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from vibe.records import SessionStatus, VariantPlan, VariantStatus

from .lib import CompletionAggregator, SessionLifecycle


def _complete(store, session_id, index):
    attempt = str(uuid4())
    store.start_variant(session_id, index, None, attempt)
    store.complete_variant(
        session_id, index, attempt, f"p/{index}.html", f"u/{index}", "m", 10
    )


def _fail(store, session_id, index):
    attempt = str(uuid4())
    store.start_variant(session_id, index, None, attempt)
    store.fail_variant(session_id, index, attempt, "boom")


@pytest.fixture
def lifecycle(record_store) -> SessionLifecycle:
    return SessionLifecycle(record_store, default_variant_count=4)


# =============================================================================
# Lifecycle
# =============================================================================


class TestCreateSession:
    """Tests for session creation."""

    @pytest.mark.unit
    def test_defaults(self, lifecycle, source_html):
        session = lifecycle.create_session(source_html, user_id="u1")
        assert session.status == SessionStatus.DRAFT
        assert session.variant_count == 4
        assert session.user_id == "u1"

    @pytest.mark.unit
    def test_count_from_env(self, record_store, monkeypatch, source_html):
        monkeypatch.setenv("VIBE_VARIANT_COUNT", "2")
        session = SessionLifecycle(record_store).create_session(source_html)
        assert session.variant_count == 2

    @pytest.mark.unit
    def test_rejects_empty_source(self, lifecycle):
        with pytest.raises(ValidationError):
            lifecycle.create_session("   ")

    @pytest.mark.unit
    def test_missing_session(self, lifecycle):
        with pytest.raises(NotFoundError):
            lifecycle.get_session("nope")


class TestAdvance:
    """Tests for forward-only status movement."""

    @pytest.mark.unit
    def test_forward(self, lifecycle, source_html):
        session = lifecycle.create_session(source_html)
        session = lifecycle.advance(session.id, SessionStatus.UNDERSTANDING_READY)
        assert session.status == SessionStatus.UNDERSTANDING_READY
        session = lifecycle.advance(session.id, SessionStatus.WIREFRAME_READY)
        assert session.status == SessionStatus.WIREFRAME_READY

    @pytest.mark.unit
    def test_same_status_is_noop(self, lifecycle, source_html):
        session = lifecycle.create_session(source_html)
        lifecycle.advance(session.id, SessionStatus.PLAN_READY)
        again = lifecycle.advance(session.id, SessionStatus.PLAN_READY)
        assert again.status == SessionStatus.PLAN_READY

    @pytest.mark.unit
    def test_backward_rejected(self, lifecycle, source_html):
        session = lifecycle.create_session(source_html)
        lifecycle.advance(session.id, SessionStatus.WIREFRAME_READY)
        with pytest.raises(InvalidTransitionError):
            lifecycle.advance(session.id, SessionStatus.UNDERSTANDING_READY)

    @pytest.mark.unit
    def test_complete_only_via_aggregator(self, lifecycle, source_html):
        session = lifecycle.create_session(source_html)
        with pytest.raises(InvalidTransitionError):
            lifecycle.advance(session.id, SessionStatus.COMPLETE)

    @pytest.mark.unit
    def test_mark_generating_reenters_from_complete(
        self, lifecycle, record_store, source_html
    ):
        session = lifecycle.create_session(source_html, variant_count=1)
        assert lifecycle.mark_generating(session.id)
        assert not lifecycle.mark_generating(session.id)

        _complete(record_store, session.id, 1)
        assert CompletionAggregator(record_store).recompute(session.id)

        assert lifecycle.mark_generating(session.id)
        assert lifecycle.get_session(session.id).status == SessionStatus.GENERATING


class TestPlans:
    """Tests for plan storage."""

    @pytest.mark.unit
    def test_create_plans_advances(self, lifecycle, record_store, source_html):
        session = lifecycle.create_session(source_html, variant_count=2)
        plans = [
            VariantPlan.create(session.id, 2, "Bold", key_changes=["big type"]),
            VariantPlan.create(session.id, 1, "Minimal"),
        ]

        lifecycle.create_plans(session.id, plans)

        stored = record_store.list_plans(session.id)
        assert [p.variant_index for p in stored] == [1, 2]
        assert stored[1].key_changes == ["big type"]
        assert lifecycle.get_session(session.id).status == SessionStatus.PLAN_READY

    @pytest.mark.unit
    def test_plans_after_wireframes_keep_status(self, lifecycle, source_html):
        session = lifecycle.create_session(source_html, variant_count=1)
        lifecycle.advance(session.id, SessionStatus.WIREFRAME_READY)
        lifecycle.create_plans(session.id, [VariantPlan.create(session.id, 1, "A")])
        assert lifecycle.get_session(session.id).status == SessionStatus.WIREFRAME_READY

    @pytest.mark.unit
    @pytest.mark.parametrize("indices", [[0], [5], [1, 1]])
    def test_index_validation(self, lifecycle, source_html, indices):
        session = lifecycle.create_session(source_html, variant_count=4)
        plans = [VariantPlan.create(session.id, i, f"P{i}") for i in indices]
        with pytest.raises(ValidationError):
            lifecycle.create_plans(session.id, plans)

    @pytest.mark.unit
    def test_foreign_plan_rejected(self, lifecycle, source_html):
        session = lifecycle.create_session(source_html)
        with pytest.raises(ValidationError):
            lifecycle.create_plans(session.id, [VariantPlan.create("other", 1, "A")])


class TestSelectVariant:
    """Tests for variant selection."""

    @pytest.mark.unit
    def test_select_complete(self, lifecycle, record_store, planned_session):
        session, _ = planned_session
        _complete(record_store, session.id, 2)
        updated = lifecycle.select_variant(session.id, 2)
        assert updated.selected_variant_index == 2

    @pytest.mark.unit
    def test_select_failed_rejected(self, lifecycle, record_store, planned_session):
        session, _ = planned_session
        _fail(record_store, session.id, 2)
        with pytest.raises(InvalidTransitionError):
            lifecycle.select_variant(session.id, 2)

    @pytest.mark.unit
    def test_select_missing(self, lifecycle, planned_session):
        session, _ = planned_session
        with pytest.raises(NotFoundError):
            lifecycle.select_variant(session.id, 3)


class TestFullSession:
    """Tests for the combined session read."""

    @pytest.mark.unit
    def test_snapshot(self, lifecycle, record_store, planned_session):
        session, plans = planned_session
        _complete(record_store, session.id, 1)

        snapshot = lifecycle.get_full_session(session.id)

        assert snapshot.session.id == session.id
        assert len(snapshot.plans) == 4
        assert [v.variant_index for v in snapshot.variants] == [1]
        data = snapshot.to_dict()
        assert data["plans"][0]["title"] == plans[0].title
        assert data["variants"][0]["status"] == "complete"


# =============================================================================
# Aggregator
# =============================================================================


class TestCompletionAggregator:
    """Tests for completion recomputation."""

    @pytest.mark.unit
    def test_complete_only_on_last(self, record_store, planned_session):
        session, _ = planned_session
        aggregator = CompletionAggregator(record_store)

        for index in (1, 2, 3):
            _complete(record_store, session.id, index)
            assert not aggregator.recompute(session.id)
            assert record_store.get_session(session.id).status != SessionStatus.COMPLETE

        _complete(record_store, session.id, 4)
        assert aggregator.recompute(session.id)
        assert record_store.get_session(session.id).status == SessionStatus.COMPLETE

    @pytest.mark.unit
    def test_failed_variant_blocks(self, record_store, planned_session):
        session, _ = planned_session
        aggregator = CompletionAggregator(record_store)
        for index in (1, 2, 4):
            _complete(record_store, session.id, index)
        _fail(record_store, session.id, 3)

        assert not aggregator.recompute(session.id)
        assert record_store.get_session(session.id).status == SessionStatus.PLAN_READY

    @pytest.mark.unit
    def test_idempotent(self, record_store, planned_session):
        session, _ = planned_session
        aggregator = CompletionAggregator(record_store)
        for index in range(1, 5):
            _complete(record_store, session.id, index)

        assert aggregator.recompute(session.id)
        assert aggregator.recompute(session.id)
        assert record_store.get_session(session.id).status == SessionStatus.COMPLETE

    @pytest.mark.unit
    def test_fresh_read_each_call(self, record_store, planned_session):
        session, _ = planned_session
        aggregator = CompletionAggregator(record_store)
        for index in range(1, 5):
            _complete(record_store, session.id, index)
        assert aggregator.recompute(session.id)

        # A regeneration puts one variant back in flight
        record_store.start_variant(session.id, 2, None, str(uuid4()))
        assert not aggregator.recompute(session.id)
        assert (
            record_store.get_variant_by_index(session.id, 2).status
            == VariantStatus.GENERATING
        )

    @pytest.mark.unit
    def test_unknown_session(self, record_store):
        assert not CompletionAggregator(record_store).recompute("missing")
