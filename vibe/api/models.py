"""Request bodies for the HTTP API.

Fields are snake_case in Python and camelCase on the wire.
"""

from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..records import SessionStatus, VariantPlan


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PlanBody(_Body):
    """Plan content sent with a generation request."""

    title: str = Field(min_length=1)
    description: str = ""
    key_changes: list[str] = Field(default_factory=list)
    style_notes: str = ""

    def to_plan(
        self, session_id: str, variant_index: int, plan_id: str | None = None
    ) -> VariantPlan:
        return VariantPlan(
            id=plan_id or str(uuid4()),
            session_id=session_id,
            variant_index=variant_index,
            title=self.title,
            description=self.description,
            key_changes=list(self.key_changes),
            style_notes=self.style_notes,
        )


class IndexedPlanBody(PlanBody):
    variant_index: int = Field(ge=1)


class GenerateRequest(_Body):
    """Streaming generation of one variant."""

    session_id: str
    plan_id: str | None = None
    variant_index: int = Field(ge=1)
    plan: PlanBody | None = None
    source_html: str | None = None
    provider: str | None = None
    model: str | None = None


class IterateRequest(_Body):
    """One refinement of a complete variant."""

    session_id: str | None = None
    variant_id: str
    variant_index: int | None = None
    current_html: str | None = None
    iteration_prompt: str
    provider: str | None = None
    model: str | None = None


class RevertRequest(_Body):
    variant_id: str
    iteration_id: str


class CreateSessionRequest(_Body):
    source_html: str
    variant_count: int | None = Field(default=None, ge=1)


class CreatePlansRequest(_Body):
    plans: list[IndexedPlanBody]


class AdvanceRequest(_Body):
    status: SessionStatus


class SelectVariantRequest(_Body):
    variant_index: int = Field(ge=1)


class ProviderRequest(_Body):
    """Optional provider and model override."""

    provider: str | None = None
    model: str | None = None


__all__ = [
    "PlanBody",
    "IndexedPlanBody",
    "GenerateRequest",
    "IterateRequest",
    "RevertRequest",
    "CreateSessionRequest",
    "CreatePlansRequest",
    "AdvanceRequest",
    "SelectVariantRequest",
    "ProviderRequest",
]
