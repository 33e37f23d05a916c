"""Tests for the iteration manager."""

import asyncio

import pytest
import pytest_asyncio

from vibe.core.errors import (
    InvalidTransitionError,
    NotFoundError,
    ProviderError,
    ProviderTimeoutError,
    ValidationError,
)
from vibe.generation import CompleteEvent, Orchestrator
from vibe.llm.conftest import MOCK_ITERATED_HTML, MOCK_VARIANT_HTML, MockLLMBackend
from vibe.records import VariantStatus

from .lib import IterationManager


@pytest.fixture
def manager(record_store, artifact_store) -> IterationManager:
    return IterationManager(
        record_store, artifact_store, min_html_length=100, timeout=5.0
    )


@pytest_asyncio.fixture
async def complete_variant(record_store, artifact_store, planned_session):
    """Variant 1 of the planned session, generated to complete."""
    session, plans = planned_session
    orchestrator = Orchestrator(record_store, artifact_store, min_html_length=100)
    result = await orchestrator.run_to_end(session, plans[0], MockLLMBackend())
    assert isinstance(result, CompleteEvent)
    return record_store.get_variant(result.variant_id)


# =============================================================================
# Iterate
# =============================================================================


class TestIterate:
    """Tests for IterationManager.iterate."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_make_the_button_blue(
        self, manager, record_store, artifact_store, complete_variant
    ):
        variant = complete_variant
        assert variant.iteration_count == 0
        backend = MockLLMBackend(response=f"```html\n{MOCK_ITERATED_HTML}\n```")

        result = await manager.iterate(variant.id, "make the button blue", backend)

        assert result.iteration_number == 1
        assert result.iteration.html_before == MOCK_VARIANT_HTML
        assert result.iteration.html_after == MOCK_ITERATED_HTML
        assert result.html_path.endswith("/variant_1_iter_1.html")

        updated = record_store.get_variant(variant.id)
        assert updated.iteration_count == 1
        assert updated.status == VariantStatus.COMPLETE
        assert updated.html_url == result.html_url
        assert updated.html_url != variant.html_url

        stored = await artifact_store.get(updated.html_url)
        assert stored.decode("utf-8") == MOCK_ITERATED_HTML
        # The generation artifact is untouched
        original = await artifact_store.get(variant.html_url)
        assert original.decode("utf-8") == MOCK_VARIANT_HTML

        system, user = backend.calls[0]
        assert "make the button blue" in user
        assert MOCK_VARIANT_HTML in user

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_response_dict(self, manager, complete_variant):
        result = await manager.iterate(
            complete_variant.id, "tighten spacing", MockLLMBackend()
        )
        data = result.to_dict()
        assert data["success"] is True
        assert data["iterationNumber"] == 1
        assert data["htmlUrl"] == result.html_url
        assert data["model"] == "mock-model-v1"
        assert data["iteration"]["prompt"] == "tighten spacing"
        assert "htmlBefore" not in data["iteration"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_numbers_are_gapless_and_chain(
        self, manager, record_store, complete_variant
    ):
        responses = [
            MOCK_VARIANT_HTML.replace("Welcome", f"Welcome v{i}") for i in (1, 2, 3)
        ]
        backend = MockLLMBackend(responses=list(responses))

        for prompt in ("one", "two", "three"):
            await manager.iterate(complete_variant.id, prompt, backend)

        history = manager.history(complete_variant.id)
        assert [it.iteration_number for it in history] == [1, 2, 3]
        assert history[0].html_before == MOCK_VARIANT_HTML
        for prev, cur in zip(history, history[1:]):
            assert cur.html_before == prev.html_after
        assert [it.html_after for it in history] == responses
        assert len({it.html_path for it in history}) == 3
        assert record_store.get_variant(complete_variant.id).iteration_count == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_client_html_is_html_before(self, manager, complete_variant):
        client_html = MOCK_VARIANT_HTML.replace("Redesigned", "Edited locally")
        result = await manager.iterate(
            complete_variant.id,
            "add a footer",
            MockLLMBackend(),
            current_html=client_html,
        )
        assert result.iteration.html_before == client_html

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concurrent_iterations_serialize(
        self, manager, record_store, complete_variant
    ):
        backend = MockLLMBackend(delay=0.01)
        results = await asyncio.gather(
            manager.iterate(complete_variant.id, "a", backend),
            manager.iterate(complete_variant.id, "b", backend),
        )
        assert sorted(r.iteration_number for r in results) == [1, 2]
        assert record_store.get_variant(complete_variant.id).iteration_count == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_idle_variant_locks_are_dropped(self, manager, complete_variant):
        await manager.iterate(complete_variant.id, "a", MockLLMBackend())
        assert complete_variant.id not in manager._locks

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_too_short_changes_nothing(
        self, manager, record_store, artifact_store, complete_variant
    ):
        with pytest.raises(ValidationError, match="too short"):
            await manager.iterate(
                complete_variant.id, "shrink", MockLLMBackend(response="```<p/>```")
            )

        variant = record_store.get_variant(complete_variant.id)
        assert variant.iteration_count == 0
        assert variant.html_url == complete_variant.html_url
        assert manager.history(variant.id) == []
        iter_file = artifact_store.root / complete_variant.html_path.replace(
            ".html", "_iter_1.html"
        )
        assert not iter_file.exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_provider_error_changes_nothing(
        self, manager, record_store, complete_variant
    ):
        backend = MockLLMBackend(error=ProviderError("upstream 529"))
        with pytest.raises(ProviderError):
            await manager.iterate(complete_variant.id, "x", backend)
        assert record_store.get_variant(complete_variant.id).iteration_count == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout(self, record_store, artifact_store, complete_variant):
        manager = IterationManager(
            record_store, artifact_store, min_html_length=100, timeout=0.05
        )
        with pytest.raises(ProviderTimeoutError, match="timeout"):
            await manager.iterate(
                complete_variant.id, "x", MockLLMBackend(delay=1.0)
            )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_prompt(self, manager, complete_variant):
        with pytest.raises(ValidationError):
            await manager.iterate(complete_variant.id, "  ", MockLLMBackend())

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_variant(self, manager):
        with pytest.raises(NotFoundError):
            await manager.iterate("missing", "x", MockLLMBackend())

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_session_mismatch(self, manager, complete_variant):
        with pytest.raises(ValidationError):
            await manager.iterate(
                complete_variant.id, "x", MockLLMBackend(), session_id="other"
            )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_requires_complete(
        self, manager, record_store, planned_session
    ):
        session, plans = planned_session
        variant = record_store.start_variant(session.id, 2, plans[1].id, "attempt")
        with pytest.raises(InvalidTransitionError):
            await manager.iterate(variant.id, "x", MockLLMBackend())


# =============================================================================
# Revert
# =============================================================================


class TestRevert:
    """Tests for IterationManager.revert."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_revert_to_before_first_iteration(
        self, manager, record_store, artifact_store, complete_variant
    ):
        first = await manager.iterate(complete_variant.id, "blue", MockLLMBackend())
        await manager.iterate(complete_variant.id, "bigger", MockLLMBackend())
        before = manager.history(complete_variant.id)

        result = await manager.revert(complete_variant.id, first.iteration.id)

        variant = record_store.get_variant(complete_variant.id)
        assert variant.html_url == result.html_url
        assert variant.iteration_count == 2
        assert variant.status == VariantStatus.COMPLETE
        assert result.html_path not in {it.html_path for it in before}
        assert result.html_path != complete_variant.html_path
        assert "_reverted_" in result.html_path

        stored = await artifact_store.get(result.html_url)
        assert stored.decode("utf-8") == first.iteration.html_before

        after = manager.history(complete_variant.id)
        assert [it.id for it in after] == [it.id for it in before]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_revert_twice_same_content(
        self, manager, artifact_store, complete_variant
    ):
        first = await manager.iterate(complete_variant.id, "blue", MockLLMBackend())

        a = await manager.revert(complete_variant.id, first.iteration.id)
        b = await manager.revert(complete_variant.id, first.iteration.id)

        assert a.html_path != b.html_path
        assert await artifact_store.get(a.html_url) == await artifact_store.get(
            b.html_url
        )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_iterate_after_revert_continues_numbering(
        self, manager, complete_variant
    ):
        first = await manager.iterate(complete_variant.id, "blue", MockLLMBackend())
        await manager.revert(complete_variant.id, first.iteration.id)

        second = await manager.iterate(complete_variant.id, "red", MockLLMBackend())

        assert second.iteration_number == 2
        assert second.iteration.html_before == MOCK_VARIANT_HTML

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_revert_foreign_iteration(
        self, manager, record_store, artifact_store, planned_session, complete_variant
    ):
        session, plans = planned_session
        orchestrator = Orchestrator(record_store, artifact_store, min_html_length=100)
        other = await orchestrator.run_to_end(session, plans[1], MockLLMBackend())
        foreign = await manager.iterate(other.variant_id, "x", MockLLMBackend())

        with pytest.raises(ValidationError):
            await manager.revert(complete_variant.id, foreign.iteration.id)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_revert_unknown_iteration(self, manager, complete_variant):
        with pytest.raises(NotFoundError):
            await manager.revert(complete_variant.id, "missing")


# =============================================================================
# History
# =============================================================================


class TestHistory:
    """Tests for history reads."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_session_history(self, manager, complete_variant):
        await manager.iterate(complete_variant.id, "one", MockLLMBackend())
        await manager.iterate(complete_variant.id, "two", MockLLMBackend())

        items = manager.session_history(complete_variant.session_id)
        assert [it.prompt for it in items] == ["one", "two"]

    @pytest.mark.unit
    def test_unknown_ids(self, manager):
        with pytest.raises(NotFoundError):
            manager.history("missing")
        with pytest.raises(NotFoundError):
            manager.session_history("missing")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_current_html(self, manager, complete_variant):
        assert await manager.current_html(complete_variant.id) == MOCK_VARIANT_HTML
