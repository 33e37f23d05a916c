"""Data models for variant generation records.

This module defines the persisted structures for sessions, variant plans,
variants, and the append-only iteration log.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4


def _now() -> datetime:
    return datetime.now(UTC)


class SessionStatus(str, Enum):
    """Lifecycle status of a generation session.

    Members are declared in lifecycle order; `rank` gives the position used
    to enforce forward-only movement.
    """

    DRAFT = "draft"
    UNDERSTANDING_READY = "understanding_ready"
    PLAN_READY = "plan_ready"
    WIREFRAME_READY = "wireframe_ready"
    GENERATING = "generating"
    COMPLETE = "complete"

    @property
    def rank(self) -> int:
        return list(SessionStatus).index(self)


class VariantStatus(str, Enum):
    """Lifecycle status of a single variant."""

    PENDING = "pending"
    GENERATING = "generating"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class Session:
    """One end-to-end variant generation request for a source screen.

    Attributes:
        id: Unique session identifier.
        source_html: The screen being modified.
        status: Lifecycle status.
        variant_count: Number of plans/variants (N) the session owns.
        user_id: Owner of the session (bearer token subject).
        selected_variant_index: Variant chosen by the user, if any.
        created_at: Creation timestamp.
        updated_at: Last modification timestamp.
    """

    id: str
    source_html: str
    status: SessionStatus = SessionStatus.DRAFT
    variant_count: int = 4
    user_id: str | None = None
    selected_variant_index: int | None = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @classmethod
    def create(
        cls,
        source_html: str,
        variant_count: int = 4,
        user_id: str | None = None,
    ) -> "Session":
        """Factory method to create a new session with generated ID."""
        return cls(
            id=str(uuid4()),
            source_html=source_html,
            variant_count=variant_count,
            user_id=user_id,
        )


@dataclass
class VariantPlan:
    """A proposed modification strategy bound to one variant index.

    Plans are immutable once stored.

    Attributes:
        id: Unique plan identifier.
        session_id: Owning session.
        variant_index: Position 1..N, unique within the session.
        title: Short name of the strategy.
        description: What the variant changes and why.
        key_changes: Bullet list of concrete changes.
        style_notes: Visual direction for the variant.
        created_at: Creation timestamp.
    """

    id: str
    session_id: str
    variant_index: int
    title: str
    description: str = ""
    key_changes: list[str] = field(default_factory=list)
    style_notes: str = ""
    created_at: datetime = field(default_factory=_now)

    @classmethod
    def create(
        cls,
        session_id: str,
        variant_index: int,
        title: str,
        **kwargs: Any,
    ) -> "VariantPlan":
        """Factory method to create a new plan with generated ID."""
        return cls(
            id=str(uuid4()),
            session_id=session_id,
            variant_index=variant_index,
            title=title,
            **kwargs,
        )


@dataclass
class Variant:
    """Generation target and current artifact pointer for one plan.

    Exactly one Variant exists per (session_id, variant_index). `html_url`
    is set iff status is COMPLETE.

    Attributes:
        id: Unique variant identifier (stable across regenerations).
        session_id: Owning session.
        variant_index: Position 1..N within the session.
        plan_id: Plan this variant was generated from.
        status: Lifecycle status.
        html_path: Artifact store path of the current artifact.
        html_url: Public URL of the current artifact.
        error_message: Failure cause, set iff status is FAILED.
        generation_model: Model that produced the current generation.
        generation_duration_ms: Duration of the last generation.
        iteration_count: Number of applied iterations.
        attempt_id: Token of the generation attempt that owns the row.
        created_at: Creation timestamp.
        updated_at: Last modification timestamp.
    """

    id: str
    session_id: str
    variant_index: int
    plan_id: str | None = None
    status: VariantStatus = VariantStatus.PENDING
    html_path: str | None = None
    html_url: str | None = None
    error_message: str | None = None
    generation_model: str | None = None
    generation_duration_ms: int | None = None
    iteration_count: int = 0
    attempt_id: str | None = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @property
    def is_terminal(self) -> bool:
        return self.status in (VariantStatus.COMPLETE, VariantStatus.FAILED)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a camelCase dict for API responses."""
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "variantIndex": self.variant_index,
            "planId": self.plan_id,
            "status": self.status.value,
            "htmlPath": self.html_path,
            "htmlUrl": self.html_url,
            "errorMessage": self.error_message,
            "generationModel": self.generation_model,
            "generationDurationMs": self.generation_duration_ms,
            "iterationCount": self.iteration_count,
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class Iteration:
    """Immutable record of one refinement applied to a variant.

    Attributes:
        id: Unique iteration identifier.
        variant_id: Variant the refinement was applied to.
        session_id: Owning session.
        variant_index: Variant position within the session.
        iteration_number: 1-based, gapless, strictly increasing per variant.
        prompt: Refinement instruction.
        html_before: Variant content immediately before this iteration.
        html_after: Content produced by this iteration.
        html_path: Artifact store path of html_after.
        html_url: Public URL of html_after.
        generation_model: Model used for the refinement.
        generation_duration_ms: Provider call duration.
        created_at: Creation timestamp.
    """

    id: str
    variant_id: str
    session_id: str
    variant_index: int
    iteration_number: int
    prompt: str
    html_before: str
    html_after: str
    html_path: str = ""
    html_url: str = ""
    generation_model: str = ""
    generation_duration_ms: int = 0
    created_at: datetime = field(default_factory=_now)

    @classmethod
    def create(
        cls,
        variant_id: str,
        session_id: str,
        variant_index: int,
        iteration_number: int,
        prompt: str,
        html_before: str,
        html_after: str,
        **kwargs: Any,
    ) -> "Iteration":
        """Factory method to create a new iteration with generated ID."""
        return cls(
            id=str(uuid4()),
            variant_id=variant_id,
            session_id=session_id,
            variant_index=variant_index,
            iteration_number=iteration_number,
            prompt=prompt,
            html_before=html_before,
            html_after=html_after,
            **kwargs,
        )

    def to_dict(self, include_html: bool = False) -> dict[str, Any]:
        """Serialize to a camelCase dict for API responses.

        Args:
            include_html: Include the before/after HTML bodies.
        """
        data: dict[str, Any] = {
            "id": self.id,
            "variantId": self.variant_id,
            "sessionId": self.session_id,
            "variantIndex": self.variant_index,
            "iterationNumber": self.iteration_number,
            "prompt": self.prompt,
            "htmlPath": self.html_path,
            "htmlUrl": self.html_url,
            "generationModel": self.generation_model,
            "generationDurationMs": self.generation_duration_ms,
            "createdAt": self.created_at.isoformat(),
        }
        if include_html:
            data["htmlBefore"] = self.html_before
            data["htmlAfter"] = self.html_after
        return data


@dataclass
class SessionSnapshot:
    """A session with its plans and variants read together."""

    session: Session
    plans: list[VariantPlan] = field(default_factory=list)
    variants: list[Variant] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.session.id,
            "status": self.session.status.value,
            "variantCount": self.session.variant_count,
            "selectedVariantIndex": self.session.selected_variant_index,
            "createdAt": self.session.created_at.isoformat(),
            "updatedAt": self.session.updated_at.isoformat(),
            "plans": [
                {
                    "id": p.id,
                    "variantIndex": p.variant_index,
                    "title": p.title,
                    "description": p.description,
                    "keyChanges": p.key_changes,
                    "styleNotes": p.style_notes,
                }
                for p in self.plans
            ],
            "variants": [v.to_dict() for v in self.variants],
        }
