"""Iteration Manager for refining completed variants.

Each refinement is a single non-streaming provider call whose output is
stored as a new artifact and recorded as an immutable Iteration. Reverting
re-uploads an earlier iteration's `html_before` under a fresh path; no
iteration is ever removed.

Example:
    >>> manager = IterationManager(store, artifacts)
    >>> result = await manager.iterate(variant.id, "make the button blue", backend)
    >>> result.iteration_number
    1
    >>> await manager.revert(variant.id, result.iteration.id)
"""

import asyncio
import logging
import time
import weakref

from ..artifacts import ArtifactStore, iteration_path, revert_path
from ..config import EnvVar, get_environment
from ..core.errors import (
    InvalidTransitionError,
    NotFoundError,
    ProviderTimeoutError,
    ValidationError,
)
from ..generation import VariantStateMachine, validate_html
from ..llm import GenerationConfig, LLMBackend
from ..prompt import PromptBuilder, clean_html_response
from ..records import Iteration, RecordStore, Session, Variant
from .models import IterationResult, RevertResult

logger = logging.getLogger(__name__)


class IterationManager:
    """Applies refinements to complete variants and reverts them.

    Refinements of one variant are serialized in-process; the record
    store's guarded append rejects any that race from elsewhere.

    Args:
        store: Record store.
        artifacts: Artifact store.
        prompt_builder: Prompt builder. Defaults to PromptBuilder().
        min_html_length: Minimum accepted output length.
            Defaults to VIBE_MIN_HTML_LENGTH.
        timeout: Maximum seconds for one provider call.
            Defaults to VIBE_STREAM_TIMEOUT.
        generation_config: Sampling options passed to the provider.
    """

    def __init__(
        self,
        store: RecordStore,
        artifacts: ArtifactStore,
        *,
        prompt_builder: PromptBuilder | None = None,
        min_html_length: int | None = None,
        timeout: float | None = None,
        generation_config: GenerationConfig | None = None,
    ):
        self._store = store
        self._artifacts = artifacts
        self._prompts = prompt_builder or PromptBuilder()
        self.min_html_length = get_environment(
            EnvVar.VIBE_MIN_HTML_LENGTH, override=min_html_length
        )
        self.timeout = get_environment(EnvVar.VIBE_STREAM_TIMEOUT, override=timeout)
        self._config = generation_config or GenerationConfig(
            max_tokens=get_environment(EnvVar.VIBE_MAX_OUTPUT_TOKENS)
        )
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, variant_id: str) -> asyncio.Lock:
        lock = self._locks.get(variant_id)
        if lock is None:
            lock = self._locks[variant_id] = asyncio.Lock()
        return lock

    async def _load(self, variant_id: str) -> tuple[Variant, Session]:
        variant = await asyncio.to_thread(self._store.get_variant, variant_id)
        if variant is None:
            raise NotFoundError(f"Variant not found: {variant_id}")
        session = await asyncio.to_thread(self._store.get_session, variant.session_id)
        if session is None:
            raise NotFoundError(f"Session not found: {variant.session_id}")
        return variant, session

    # =========================================================================
    # Iterate
    # =========================================================================

    async def iterate(
        self,
        variant_id: str,
        prompt: str,
        backend: LLMBackend,
        current_html: str | None = None,
        session_id: str | None = None,
    ) -> IterationResult:
        """Apply one refinement prompt to a complete variant.

        Nothing is persisted unless the provider output passes validation.

        Args:
            variant_id: Variant to refine.
            prompt: Refinement instruction.
            backend: Provider backend for the non-streaming call.
            current_html: The variant's current HTML. Read from the variant's
                current artifact when None.
            session_id: When given, the variant must belong to this session.

        Returns:
            IterationResult with the appended iteration.

        Raises:
            ValidationError: Empty prompt, output too short, or session mismatch.
            NotFoundError: Unknown variant.
            InvalidTransitionError: Variant is not complete.
            ProviderError: Provider call failed or timed out.
            ArtifactStoreError: Upload failed.
            PersistenceError: The variant changed while the iteration ran.
        """
        if not prompt or not prompt.strip():
            raise ValidationError("Iteration prompt must not be empty")

        async with self._lock_for(variant_id):
            variant, session = await self._load(variant_id)
            if session_id is not None and variant.session_id != session_id:
                raise ValidationError(
                    f"Variant {variant_id} does not belong to session {session_id}"
                )
            VariantStateMachine.require_complete(variant)

            if current_html is None:
                current_html = (await self._artifacts.get(variant.html_url)).decode(
                    "utf-8"
                )

            number = variant.iteration_count + 1
            key = f"{variant.session_id}#{variant.variant_index}"
            logger.info(f"Variant {key} iteration {number} with {backend.name}")

            built = self._prompts.build_iteration(current_html, prompt)
            started = time.monotonic()
            try:
                result = await asyncio.wait_for(
                    backend.generate(
                        built.user, system_prompt=built.system, config=self._config
                    ),
                    self.timeout,
                )
            except TimeoutError as e:
                raise ProviderTimeoutError(
                    f"Provider call timeout after {self.timeout:g}s"
                ) from e
            duration_ms = int((time.monotonic() - started) * 1000)

            html_after = clean_html_response(result.content)
            validate_html(html_after, self.min_html_length)

            path = iteration_path(
                session.user_id, variant.session_id, variant.variant_index, number
            )
            url = await self._artifacts.put(path, html_after.encode("utf-8"))

            iteration = Iteration.create(
                variant_id=variant.id,
                session_id=variant.session_id,
                variant_index=variant.variant_index,
                iteration_number=number,
                prompt=prompt,
                html_before=current_html,
                html_after=html_after,
                html_path=path,
                html_url=url,
                generation_model=backend.model_name,
                generation_duration_ms=duration_ms,
            )
            updated = await asyncio.to_thread(self._store.append_iteration, iteration)

        logger.info(f"Variant {key} iteration {number} stored at {path}")
        return IterationResult(
            iteration=iteration, variant=updated, provider=backend.provider
        )

    # =========================================================================
    # Revert
    # =========================================================================

    async def revert(self, variant_id: str, iteration_id: str) -> RevertResult:
        """Point a variant back at the content an iteration started from.

        The restored HTML is uploaded as a new artifact; iterations and
        iteration_count are left unchanged.

        Raises:
            NotFoundError: Unknown variant or iteration.
            ValidationError: The iteration belongs to another variant.
            InvalidTransitionError: Variant is not complete.
        """
        async with self._lock_for(variant_id):
            variant, session = await self._load(variant_id)
            iteration = await asyncio.to_thread(self._store.get_iteration, iteration_id)
            if iteration is None:
                raise NotFoundError(f"Iteration not found: {iteration_id}")
            if iteration.variant_id != variant_id:
                raise ValidationError(
                    f"Iteration {iteration_id} does not belong to variant {variant_id}"
                )
            VariantStateMachine.require_complete(variant)

            path = revert_path(
                session.user_id, variant.session_id, variant.variant_index
            )
            url = await self._artifacts.put(path, iteration.html_before.encode("utf-8"))

            moved = await asyncio.to_thread(
                self._store.set_variant_pointer, variant_id, path, url
            )
            if not moved:
                raise InvalidTransitionError(
                    f"Variant {variant_id} is no longer complete", variant_id=variant_id
                )
            updated = await asyncio.to_thread(self._store.get_variant, variant_id)

        logger.info(
            f"Variant {variant.session_id}#{variant.variant_index} reverted to "
            f"before iteration {iteration.iteration_number}"
        )
        return RevertResult(
            html_url=url, html_path=path, iteration_id=iteration_id, variant=updated
        )

    # =========================================================================
    # History
    # =========================================================================

    def history(self, variant_id: str) -> list[Iteration]:
        """List a variant's iterations in iteration_number order.

        Raises:
            NotFoundError: Unknown variant.
        """
        if self._store.get_variant(variant_id) is None:
            raise NotFoundError(f"Variant not found: {variant_id}")
        return self._store.list_iterations(variant_id)

    def session_history(self, session_id: str) -> list[Iteration]:
        """List every iteration in a session in creation order."""
        if self._store.get_session(session_id) is None:
            raise NotFoundError(f"Session not found: {session_id}")
        return self._store.list_session_iterations(session_id)

    async def current_html(self, variant_id: str) -> str:
        """Read the content of a complete variant's current artifact."""
        variant, _ = await self._load(variant_id)
        VariantStateMachine.require_complete(variant)
        return (await self._artifacts.get(variant.html_url)).decode("utf-8")


__all__ = ["IterationManager"]
