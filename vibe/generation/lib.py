"""Streaming variant generation.

The Orchestrator drives one variant from `generating` to `complete` or
`failed`: it forwards provider chunks as they arrive, stores the finished
HTML as one artifact, records the result, and asks the aggregator whether
the session is done.

Example:
    >>> orchestrator = Orchestrator(store, artifacts)
    >>> async for event in orchestrator.generate(session, plan, html, backend):
    ...     print(encode_sse(event), end="")
"""

import asyncio
import logging
import time
import weakref
from collections.abc import AsyncIterator
from uuid import uuid4

from ..artifacts import ArtifactStore, variant_path
from ..config import EnvVar, get_environment
from ..core.errors import (
    NotFoundError,
    PersistenceError,
    ProviderTimeoutError,
    ValidationError,
    VibeError,
)
from ..llm import GenerationConfig, LLMBackend
from ..prompt import BuiltPrompt, PromptBuilder
from ..records import RecordStore, Session, VariantPlan, VariantStatus
from ..session import CompletionAggregator, SessionLifecycle
from .models import ChunkEvent, CompleteEvent, ErrorEvent, GenerationEvent
from .state import VariantStateMachine

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Generation cancelled before completion"
SUPERSEDED_MESSAGE = "Generation superseded by a newer attempt"


def validate_html(html: str, min_length: int) -> None:
    """Reject empty or implausibly short model output.

    Raises:
        ValidationError: If the stripped text is shorter than min_length.
    """
    if len(html.strip()) < min_length:
        raise ValidationError(
            "Generated HTML is too short or empty",
            length=len(html.strip()),
            min_length=min_length,
        )


class Orchestrator:
    """Drives variant generation through the provider and artifact store.

    Args:
        store: Record store; the only shared mutable state.
        artifacts: Artifact store for finished HTML.
        lifecycle: Session lifecycle. Created from store when None.
        aggregator: Completion aggregator. Created from store when None.
        prompt_builder: Prompt builder. Defaults to PromptBuilder().
        min_html_length: Minimum accepted output length.
            Defaults to VIBE_MIN_HTML_LENGTH.
        stream_timeout: Maximum seconds one stream may run.
            Defaults to VIBE_STREAM_TIMEOUT.
        generation_config: Sampling options passed to the provider.
    """

    def __init__(
        self,
        store: RecordStore,
        artifacts: ArtifactStore,
        *,
        lifecycle: SessionLifecycle | None = None,
        aggregator: CompletionAggregator | None = None,
        prompt_builder: PromptBuilder | None = None,
        min_html_length: int | None = None,
        stream_timeout: float | None = None,
        generation_config: GenerationConfig | None = None,
    ):
        self._store = store
        self._artifacts = artifacts
        self._lifecycle = lifecycle or SessionLifecycle(store)
        self._aggregator = aggregator or CompletionAggregator(store)
        self._prompts = prompt_builder or PromptBuilder()
        self.min_html_length = get_environment(
            EnvVar.VIBE_MIN_HTML_LENGTH, override=min_html_length
        )
        self.stream_timeout = get_environment(
            EnvVar.VIBE_STREAM_TIMEOUT, override=stream_timeout
        )
        self._config = generation_config or GenerationConfig(
            max_tokens=get_environment(EnvVar.VIBE_MAX_OUTPUT_TOKENS)
        )
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    # =========================================================================
    # Single Variant
    # =========================================================================

    async def generate(
        self,
        session: Session,
        plan: VariantPlan,
        source_html: str | None,
        backend: LLMBackend,
    ) -> AsyncIterator[GenerationEvent]:
        """Generate one variant, yielding chunk events then one terminal event.

        Starting generation is an upsert on (session_id, variant_index):
        re-running it overwrites the variant and clears any previous error.
        Provider, validation, artifact and record failures are reported as
        an ErrorEvent and leave the variant failed; siblings are untouched.
        If the consumer stops iterating or the task is cancelled, the
        variant is marked failed and nothing is uploaded.

        Args:
            session: Owning session.
            plan: Plan to realize; its variant_index keys the variant.
            source_html: Screen to modify. Defaults to session.source_html.
            backend: Provider backend to stream from.

        Yields:
            ChunkEvent per provider chunk, then CompleteEvent or ErrorEvent.
        """
        source_html = source_html if source_html is not None else session.source_html
        index = plan.variant_index
        key = f"{session.id}#{index}"
        attempt_id = str(uuid4())
        started = time.monotonic()

        existing = await asyncio.to_thread(
            self._store.get_variant_by_index, session.id, index
        )
        VariantStateMachine.check(
            existing.status if existing else VariantStatus.PENDING,
            VariantStatus.GENERATING,
        )
        variant = await asyncio.to_thread(
            self._store.start_variant, session.id, index, plan.id, attempt_id
        )
        await asyncio.to_thread(self._lifecycle.mark_generating, session.id)
        logger.info(f"Variant {key} generating with {backend.name}")

        chunks: AsyncIterator[str] | None = None
        try:
            prompt = self._prompts.build_generation(plan, source_html)
            chunks = self._open_stream(backend, prompt)
            deadline = asyncio.get_running_loop().time() + self.stream_timeout
            accumulated: list[str] = []

            while (chunk := await self._next_chunk(chunks, deadline)) is not None:
                accumulated.append(chunk)
                logger.debug(f"Variant {key} chunk {len(accumulated)}")
                yield ChunkEvent(chunk)

            html = "".join(accumulated)
            validate_html(html, self.min_html_length)

            published = await self._publish(
                session, index, attempt_id, html, backend.model_name, started
            )
            if published is None:
                logger.warning(f"Variant {key} attempt {attempt_id} superseded")
                yield ErrorEvent(SUPERSEDED_MESSAGE, PersistenceError.error_type)
                return
            path, url, duration_ms = published

            await asyncio.to_thread(self._aggregator.recompute, session.id)

        except (GeneratorExit, asyncio.CancelledError):
            logger.warning(f"Variant {key} cancelled")
            await self._fail(session.id, index, attempt_id, CANCELLED_MESSAGE)
            raise
        except VibeError as e:
            logger.warning(f"Variant {key} failed: {e.error_type}: {e.message}")
            await self._fail(session.id, index, attempt_id, e.message)
            yield ErrorEvent(e.message, e.error_type)
            return
        except Exception as e:
            logger.exception(f"Variant {key} failed unexpectedly")
            await self._fail(session.id, index, attempt_id, str(e) or type(e).__name__)
            yield ErrorEvent(str(e) or "Generation failed", "internal_error")
            return
        finally:
            if chunks is not None:
                await chunks.aclose()

        logger.info(f"Variant {key} complete in {duration_ms}ms ({len(html)} chars)")
        yield CompleteEvent(
            html_url=url,
            html_path=path,
            html_length=len(html),
            duration_ms=duration_ms,
            model=backend.model_name,
            provider=backend.provider,
            variant_id=variant.id,
        )

    def _open_stream(
        self, backend: LLMBackend, prompt: BuiltPrompt
    ) -> AsyncIterator[str]:
        return backend.stream(
            prompt.user, system_prompt=prompt.system, config=self._config
        )

    async def _next_chunk(
        self, chunks: AsyncIterator[str], deadline: float
    ) -> str | None:
        """Await the next non-empty chunk, or None at end of stream.

        Raises:
            ProviderTimeoutError: If the stream runs past its deadline.
        """
        loop = asyncio.get_running_loop()
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise ProviderTimeoutError(
                    f"Provider stream timeout after {self.stream_timeout:g}s"
                )
            try:
                chunk = await asyncio.wait_for(anext(chunks), remaining)
            except StopAsyncIteration:
                return None
            except TimeoutError as e:
                raise ProviderTimeoutError(
                    f"Provider stream timeout after {self.stream_timeout:g}s"
                ) from e
            if chunk:
                return chunk

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def _publish(
        self,
        session: Session,
        index: int,
        attempt_id: str,
        html: str,
        model_name: str,
        started: float,
    ) -> tuple[str, str, int] | None:
        """Upload and record a finished attempt.

        Held under the variant's lock from the ownership check through the
        completion write, so a stale attempt's upload cannot land on the
        shared path after a newer attempt has completed.

        Returns:
            (path, url, duration_ms), or None if the attempt was superseded.

        Raises:
            ArtifactStoreError: Upload failed.
            PersistenceError: The upload succeeded but the record write failed.
        """
        async with self._lock_for(f"{session.id}#{index}"):
            current = await asyncio.to_thread(
                self._store.get_variant_by_index, session.id, index
            )
            if current is None or current.attempt_id != attempt_id:
                return None

            path = variant_path(session.user_id, session.id, index)
            url = await self._artifacts.put(path, html.encode("utf-8"))
            duration_ms = int((time.monotonic() - started) * 1000)

            try:
                owned = await asyncio.to_thread(
                    self._store.complete_variant,
                    session.id,
                    index,
                    attempt_id,
                    path,
                    url,
                    model_name,
                    duration_ms,
                )
            except PersistenceError as e:
                raise PersistenceError(
                    f"Artifact stored at {path} but the variant could not be "
                    f"recorded: {e.message}",
                    path=path,
                ) from e

        return (path, url, duration_ms) if owned else None

    async def _fail(
        self, session_id: str, index: int, attempt_id: str, message: str
    ) -> None:
        try:
            await asyncio.to_thread(
                self._store.fail_variant, session_id, index, attempt_id, message
            )
        except PersistenceError as e:
            logger.error(f"Could not mark variant {session_id}#{index} failed: {e}")

    # =========================================================================
    # Fan-out
    # =========================================================================

    async def run_to_end(
        self,
        session: Session,
        plan: VariantPlan,
        backend: LLMBackend,
        source_html: str | None = None,
    ) -> CompleteEvent | ErrorEvent:
        """Drain one generation and return its terminal event."""
        terminal: CompleteEvent | ErrorEvent = ErrorEvent(
            "Stream ended without a result"
        )
        async for event in self.generate(session, plan, source_html, backend):
            if not isinstance(event, ChunkEvent):
                terminal = event
        return terminal

    async def generate_all(
        self, session_id: str, backend: LLMBackend
    ) -> dict[int, CompleteEvent | ErrorEvent]:
        """Generate every planned variant of a session concurrently.

        Each variant has its own stream and accumulator; one failing never
        affects the others.

        Returns:
            Terminal event per variant_index.

        Raises:
            NotFoundError: If the session does not exist.
            ValidationError: If the session has no plans.
        """
        snapshot = await asyncio.to_thread(self._lifecycle.get_full_session, session_id)
        if not snapshot.plans:
            raise ValidationError(f"Session {session_id} has no variant plans")

        results = await asyncio.gather(
            *[
                self.run_to_end(snapshot.session, plan, backend)
                for plan in snapshot.plans
            ]
        )
        outcomes = {plan.variant_index: r for plan, r in zip(snapshot.plans, results)}

        failed = sorted(i for i, r in outcomes.items() if isinstance(r, ErrorEvent))
        logger.info(
            f"Session {session_id}: {len(outcomes) - len(failed)}/{len(outcomes)} "
            f"variants complete" + (f", failed {failed}" if failed else "")
        )
        return outcomes

    async def retry(
        self, session_id: str, variant_index: int, backend: LLMBackend
    ) -> CompleteEvent | ErrorEvent:
        """Regenerate one variant from its stored plan.

        Raises:
            NotFoundError: If the session or plan does not exist.
        """
        snapshot = await asyncio.to_thread(self._lifecycle.get_full_session, session_id)
        plan = next(
            (p for p in snapshot.plans if p.variant_index == variant_index), None
        )
        if plan is None:
            raise NotFoundError(f"No plan for variant {variant_index} in {session_id}")
        return await self.run_to_end(snapshot.session, plan, backend)


__all__ = [
    "Orchestrator",
    "validate_html",
    "CANCELLED_MESSAGE",
    "SUPERSEDED_MESSAGE",
]
