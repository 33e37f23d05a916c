"""Tests for streaming variant generation."""

import asyncio
import json

import httpx
import pytest

from vibe.core.errors import (
    ArtifactStoreError,
    InvalidTransitionError,
    PersistenceError,
    ValidationError,
)
from vibe.llm.backend.base import RateLimitError, translate_error
from vibe.llm.conftest import MOCK_VARIANT_HTML, MockLLMBackend, split_chunks
from vibe.records import SessionStatus, VariantStatus

from .lib import CANCELLED_MESSAGE, SUPERSEDED_MESSAGE, Orchestrator, validate_html
from .models import ChunkEvent, CompleteEvent, ErrorEvent, encode_sse
from .state import VariantStateMachine

# =============================================================================
# Helpers
# =============================================================================


async def collect(stream) -> list:
    return [event async for event in stream]


class FailingArtifactStore:
    """Artifact store whose uploads always fail."""

    def __init__(self):
        self.puts = 0

    async def put(self, path, data, content_type="text/html"):
        self.puts += 1
        raise ArtifactStoreError(f"Upload of {path} failed: bucket unavailable")

    async def get(self, url):
        raise ArtifactStoreError("not found")

    async def close(self):
        pass


class CompleteFailsStore:
    """Record store proxy whose completion write fails."""

    def __init__(self, inner):
        self._inner = inner

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def complete_variant(self, *args, **kwargs):
        raise PersistenceError("Record store write failed: database is locked")


class GatedArtifactStore:
    """Artifact store proxy that holds the first upload until released."""

    def __init__(self, inner):
        self._inner = inner
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self._held = False

    def __getattr__(self, name):
        return getattr(self._inner, name)

    async def put(self, path, data, content_type="text/html"):
        if not self._held:
            self._held = True
            self.entered.set()
            await self.release.wait()
        return await self._inner.put(path, data, content_type)


@pytest.fixture
def orchestrator(record_store, artifact_store) -> Orchestrator:
    return Orchestrator(
        record_store, artifact_store, min_html_length=100, stream_timeout=5.0
    )


# =============================================================================
# Events
# =============================================================================


class TestEvents:
    """Tests for event payloads and SSE framing."""

    @pytest.mark.unit
    def test_chunk_dict(self):
        assert ChunkEvent("<h1>").to_dict() == {"type": "chunk", "content": "<h1>"}

    @pytest.mark.unit
    def test_complete_dict(self):
        event = CompleteEvent(
            html_url="file:///a.html",
            html_path="a.html",
            html_length=120,
            duration_ms=42,
            model="mock-model-v1",
            provider="mock",
        )
        data = event.to_dict()
        assert data["type"] == "complete"
        assert data["htmlUrl"] == "file:///a.html"
        assert data["htmlLength"] == 120
        assert data["durationMs"] == 42

    @pytest.mark.unit
    def test_encode_sse(self):
        frame = encode_sse(ErrorEvent("Provider stream timeout", "provider_timeout"))
        lines = frame.split("\n")
        assert lines[0] == "event: error"
        assert lines[1].startswith("data: ")
        assert json.loads(lines[1][len("data: ") :]) == {
            "type": "error",
            "error": "Provider stream timeout",
            "errorType": "provider_timeout",
        }
        assert frame.endswith("\n\n")


# =============================================================================
# State Machine
# =============================================================================


class TestVariantStateMachine:
    """Tests for variant transition rules."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (VariantStatus.PENDING, VariantStatus.GENERATING),
            (VariantStatus.GENERATING, VariantStatus.COMPLETE),
            (VariantStatus.GENERATING, VariantStatus.FAILED),
            (VariantStatus.FAILED, VariantStatus.GENERATING),
            (VariantStatus.COMPLETE, VariantStatus.GENERATING),
            (VariantStatus.GENERATING, VariantStatus.GENERATING),
        ],
    )
    def test_allowed(self, current, target):
        VariantStateMachine.check(current, target)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (VariantStatus.PENDING, VariantStatus.COMPLETE),
            (VariantStatus.FAILED, VariantStatus.COMPLETE),
            (VariantStatus.COMPLETE, VariantStatus.FAILED),
            (VariantStatus.COMPLETE, VariantStatus.PENDING),
        ],
    )
    def test_rejected(self, current, target):
        with pytest.raises(InvalidTransitionError):
            VariantStateMachine.check(current, target)

    @pytest.mark.unit
    def test_validate_html(self):
        validate_html("x" * 100, 100)
        with pytest.raises(ValidationError, match="too short or empty"):
            validate_html("   " + "x" * 20 + "   ", 100)


# =============================================================================
# Single Variant Generation
# =============================================================================


class TestGenerate:
    """Tests for Orchestrator.generate."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_chunks_then_complete(
        self, orchestrator, record_store, artifact_store, planned_session
    ):
        session, plans = planned_session
        backend = MockLLMBackend()

        events = await collect(
            orchestrator.generate(session, plans[0], None, backend)
        )

        chunks = [e for e in events if isinstance(e, ChunkEvent)]
        assert [c.content for c in chunks] == split_chunks(MOCK_VARIANT_HTML)
        assert isinstance(events[-1], CompleteEvent)
        assert all(isinstance(e, ChunkEvent) for e in events[:-1])

        done = events[-1]
        assert done.html_path == f"user-1/{session.id}/variant_1.html"
        assert done.html_length == len(MOCK_VARIANT_HTML)
        assert done.model == "mock-model-v1"
        assert done.provider == "mock"

        # Bytes behind the URL are exactly the streamed chunks
        stored = await artifact_store.get(done.html_url)
        assert stored.decode("utf-8") == "".join(c.content for c in chunks)

        variant = record_store.get_variant_by_index(session.id, 1)
        assert variant.status == VariantStatus.COMPLETE
        assert variant.html_url == done.html_url
        assert variant.error_message is None
        assert variant.generation_model == "mock-model-v1"
        assert variant.plan_id == plans[0].id
        assert variant.id == done.variant_id

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_prompt_built_from_plan(self, orchestrator, planned_session):
        session, plans = planned_session
        backend = MockLLMBackend()

        await collect(orchestrator.generate(session, plans[1], None, backend))

        system, user = backend.calls[0]
        assert system
        assert "Bold" in user
        assert "Pricing" in user

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_session_enters_generating(
        self, orchestrator, record_store, planned_session
    ):
        session, plans = planned_session
        assert session.status == SessionStatus.PLAN_READY

        await collect(orchestrator.generate(session, plans[0], None, MockLLMBackend()))

        assert record_store.get_session(session.id).status == SessionStatus.GENERATING

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_too_short_fails(
        self, orchestrator, record_store, artifact_store, planned_session
    ):
        session, plans = planned_session
        backend = MockLLMBackend(["<div>", "hi", "</div>"])

        events = await collect(orchestrator.generate(session, plans[0], None, backend))

        assert len([e for e in events if isinstance(e, ChunkEvent)]) == 3
        assert isinstance(events[-1], ErrorEvent)
        assert events[-1].error_type == "validation_error"

        variant = record_store.get_variant_by_index(session.id, 1)
        assert variant.status == VariantStatus.FAILED
        assert "too short" in variant.error_message
        assert variant.html_url is None
        assert not (artifact_store.root / "user-1").exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_stream_fails(
        self, orchestrator, record_store, planned_session
    ):
        session, plans = planned_session

        events = await collect(
            orchestrator.generate(session, plans[0], None, MockLLMBackend([]))
        )

        assert len(events) == 1
        assert isinstance(events[0], ErrorEvent)
        variant = record_store.get_variant_by_index(session.id, 1)
        assert variant.status == VariantStatus.FAILED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_provider_error_mid_stream(
        self, orchestrator, record_store, planned_session
    ):
        session, plans = planned_session
        backend = MockLLMBackend(
            error=RateLimitError("Rate limit exceeded"), fail_after=2
        )

        events = await collect(orchestrator.generate(session, plans[0], None, backend))

        assert [type(e) for e in events] == [ChunkEvent, ChunkEvent, ErrorEvent]
        assert events[-1].error_type == "rate_limit"
        variant = record_store.get_variant_by_index(session.id, 1)
        assert variant.status == VariantStatus.FAILED
        assert variant.error_message == "Rate limit exceeded"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sdk_timeout_reported_as_timeout(
        self, orchestrator, record_store, planned_session
    ):
        session, plans = planned_session
        sdk_error = httpx.ReadTimeout("Request timed out.")
        backend = MockLLMBackend(error=translate_error(sdk_error), fail_after=1)

        events = await collect(orchestrator.generate(session, plans[0], None, backend))

        assert events[-1].error_type == "provider_timeout"
        assert "timeout" in events[-1].error
        variant = record_store.get_variant_by_index(session.id, 1)
        assert variant.status == VariantStatus.FAILED
        assert "timeout" in variant.error_message

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unexpected_error_reported(
        self, orchestrator, record_store, planned_session
    ):
        session, plans = planned_session
        backend = MockLLMBackend(error=KeyError("delta"), fail_after=1)

        events = await collect(orchestrator.generate(session, plans[0], None, backend))

        assert events[-1].error_type == "internal_error"
        variant = record_store.get_variant_by_index(session.id, 1)
        assert variant.status == VariantStatus.FAILED
        assert variant.error_message

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_upload_failure(self, record_store, planned_session):
        session, plans = planned_session
        artifacts = FailingArtifactStore()
        orchestrator = Orchestrator(record_store, artifacts, min_html_length=100)

        events = await collect(
            orchestrator.generate(session, plans[0], None, MockLLMBackend())
        )

        assert artifacts.puts == 1
        assert events[-1].error_type == "artifact_store_error"
        variant = record_store.get_variant_by_index(session.id, 1)
        assert variant.status == VariantStatus.FAILED
        assert "bucket unavailable" in variant.error_message
        assert variant.html_url is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_persistence_failure_after_upload(
        self, record_store, artifact_store, planned_session
    ):
        session, plans = planned_session
        orchestrator = Orchestrator(
            CompleteFailsStore(record_store), artifact_store, min_html_length=100
        )

        events = await collect(
            orchestrator.generate(session, plans[0], None, MockLLMBackend())
        )

        assert events[-1].error_type == "persistence_error"
        variant = record_store.get_variant_by_index(session.id, 1)
        assert variant.status == VariantStatus.FAILED
        assert f"user-1/{session.id}/variant_1.html" in variant.error_message
        assert variant.html_url is None
        # The uploaded artifact is retained at its deterministic path
        assert (artifact_store.root / f"user-1/{session.id}/variant_1.html").exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_start_is_idempotent_upsert(
        self, orchestrator, record_store, planned_session
    ):
        session, plans = planned_session

        await collect(
            orchestrator.generate(
                session, plans[0], None, MockLLMBackend(error=RateLimitError("slow"))
            )
        )
        failed = record_store.get_variant_by_index(session.id, 1)
        assert failed.status == VariantStatus.FAILED

        await collect(orchestrator.generate(session, plans[0], None, MockLLMBackend()))
        await collect(orchestrator.generate(session, plans[0], None, MockLLMBackend()))

        variants = record_store.list_variants(session.id)
        assert len(variants) == 1
        assert variants[0].id == failed.id
        assert variants[0].status == VariantStatus.COMPLETE
        assert variants[0].error_message is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_consumer_close_marks_cancelled(
        self, orchestrator, record_store, artifact_store, planned_session
    ):
        session, plans = planned_session
        stream = orchestrator.generate(session, plans[0], None, MockLLMBackend())

        first = await anext(stream)
        assert isinstance(first, ChunkEvent)
        await stream.aclose()

        variant = record_store.get_variant_by_index(session.id, 1)
        assert variant.status == VariantStatus.FAILED
        assert variant.error_message == CANCELLED_MESSAGE
        assert not (artifact_store.root / "user-1").exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_task_cancel_marks_cancelled(
        self, orchestrator, record_store, planned_session
    ):
        session, plans = planned_session
        backend = MockLLMBackend(hang_after=1)
        started = asyncio.Event()

        async def consume():
            async for _ in orchestrator.generate(session, plans[0], None, backend):
                started.set()

        task = asyncio.create_task(consume())
        await started.wait()
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        variant = record_store.get_variant_by_index(session.id, 1)
        assert variant.status == VariantStatus.FAILED
        assert variant.error_message == CANCELLED_MESSAGE

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_superseded_attempt_does_not_overwrite(
        self, orchestrator, record_store, artifact_store, planned_session
    ):
        session, plans = planned_session
        stale_html = MOCK_VARIANT_HTML.replace("Welcome", "Stale attempt")
        stale = orchestrator.generate(
            session, plans[0], None, MockLLMBackend(split_chunks(stale_html))
        )
        await anext(stale)

        fresh = await collect(
            orchestrator.generate(session, plans[0], None, MockLLMBackend())
        )
        assert isinstance(fresh[-1], CompleteEvent)

        rest = [event async for event in stale]
        assert isinstance(rest[-1], ErrorEvent)
        assert rest[-1].error == SUPERSEDED_MESSAGE

        variant = record_store.get_variant_by_index(session.id, 1)
        assert variant.status == VariantStatus.COMPLETE
        assert variant.html_url == fresh[-1].html_url
        stored = await artifact_store.get(variant.html_url)
        assert stored.decode("utf-8") == MOCK_VARIANT_HTML

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stale_upload_in_flight_cannot_replace_newer_artifact(
        self, record_store, artifact_store, planned_session
    ):
        session, plans = planned_session
        gated = GatedArtifactStore(artifact_store)
        orchestrator = Orchestrator(
            record_store, gated, min_html_length=100, stream_timeout=5.0
        )
        stale_html = MOCK_VARIANT_HTML.replace("Welcome", "Stale attempt")
        stale_task = asyncio.create_task(
            collect(
                orchestrator.generate(
                    session, plans[0], None, MockLLMBackend(split_chunks(stale_html))
                )
            )
        )
        await asyncio.wait_for(gated.entered.wait(), 5.0)
        stale_attempt = record_store.get_variant_by_index(session.id, 1).attempt_id

        fresh_task = asyncio.create_task(
            collect(orchestrator.generate(session, plans[0], None, MockLLMBackend()))
        )
        while (
            record_store.get_variant_by_index(session.id, 1).attempt_id
            == stale_attempt
        ):
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.1)

        gated.release.set()
        stale, fresh = await asyncio.wait_for(
            asyncio.gather(stale_task, fresh_task), 5.0
        )

        assert isinstance(stale[-1], ErrorEvent)
        assert stale[-1].error == SUPERSEDED_MESSAGE
        assert isinstance(fresh[-1], CompleteEvent)

        variant = record_store.get_variant_by_index(session.id, 1)
        assert variant.status == VariantStatus.COMPLETE
        assert variant.html_url == fresh[-1].html_url
        stored = await artifact_store.get(variant.html_url)
        assert stored.decode("utf-8") == MOCK_VARIANT_HTML
        assert not orchestrator._locks


# =============================================================================
# Session Scenarios
# =============================================================================


class TestSessionScenarios:
    """End-to-end generation scenarios across all variants of a session."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_all_succeed_completes_on_last(
        self, orchestrator, record_store, planned_session
    ):
        session, plans = planned_session

        for plan in plans:
            assert record_store.get_session(session.id).status != SessionStatus.COMPLETE
            result = await orchestrator.run_to_end(session, plan, MockLLMBackend())
            assert isinstance(result, CompleteEvent)

        assert record_store.get_session(session.id).status == SessionStatus.COMPLETE
        statuses = [v.status for v in record_store.list_variants(session.id)]
        assert statuses == [VariantStatus.COMPLETE] * 4

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout_is_isolated_then_retry_completes(
        self, record_store, artifact_store, planned_session
    ):
        session, plans = planned_session
        orchestrator = Orchestrator(
            record_store, artifact_store, min_html_length=100, stream_timeout=0.2
        )

        backends = {i: MockLLMBackend() for i in (1, 2, 4)}
        backends[3] = MockLLMBackend(hang_after=2)
        results = await asyncio.gather(
            *[
                orchestrator.run_to_end(session, p, backends[p.variant_index])
                for p in plans
            ]
        )

        by_index = {p.variant_index: r for p, r in zip(plans, results)}
        assert isinstance(by_index[3], ErrorEvent)
        assert by_index[3].error_type == "provider_timeout"
        for i in (1, 2, 4):
            assert isinstance(by_index[i], CompleteEvent)

        variant3 = record_store.get_variant_by_index(session.id, 3)
        assert variant3.status == VariantStatus.FAILED
        assert "timeout" in variant3.error_message
        assert record_store.get_session(session.id).status == SessionStatus.GENERATING

        # Retry variant 3
        retried = await orchestrator.retry(session.id, 3, MockLLMBackend())

        assert isinstance(retried, CompleteEvent)
        variant3 = record_store.get_variant_by_index(session.id, 3)
        assert variant3.status == VariantStatus.COMPLETE
        assert variant3.error_message is None
        assert record_store.get_session(session.id).status == SessionStatus.COMPLETE

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_generate_all(self, orchestrator, record_store, planned_session):
        session, _ = planned_session

        outcomes = await orchestrator.generate_all(session.id, MockLLMBackend())

        assert sorted(outcomes) == [1, 2, 3, 4]
        assert all(isinstance(r, CompleteEvent) for r in outcomes.values())
        assert len({r.html_path for r in outcomes.values()}) == 4
        assert record_store.get_session(session.id).status == SessionStatus.COMPLETE

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_regenerate_reopens_complete_session(
        self, orchestrator, record_store, planned_session
    ):
        session, plans = planned_session
        await orchestrator.generate_all(session.id, MockLLMBackend())
        assert record_store.get_session(session.id).status == SessionStatus.COMPLETE

        stream = orchestrator.generate(session, plans[1], None, MockLLMBackend())
        await anext(stream)
        assert record_store.get_session(session.id).status == SessionStatus.GENERATING

        rest = [event async for event in stream]
        assert isinstance(rest[-1], CompleteEvent)
        assert record_store.get_session(session.id).status == SessionStatus.COMPLETE

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_generate_all_requires_plans(self, orchestrator, record_store):
        from vibe.session import SessionLifecycle

        session = SessionLifecycle(record_store).create_session("<html></html>")
        with pytest.raises(ValidationError):
            await orchestrator.generate_all(session.id, MockLLMBackend())
