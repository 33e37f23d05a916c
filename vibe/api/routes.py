"""HTTP routes for sessions, streaming generation and iteration."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from ..core.errors import ValidationError, VibeError
from ..generation import ErrorEvent, encode_sse
from ..records import Session, VariantPlan
from ..services import VibeServices, get_server_health
from .dependencies import app_services, current_user, owned_session, owned_variant
from .models import (
    AdvanceRequest,
    CreatePlansRequest,
    CreateSessionRequest,
    GenerateRequest,
    IterateRequest,
    ProviderRequest,
    RevertRequest,
    SelectVariantRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


# =============================================================================
# Health
# =============================================================================


@router.get("/health")
def health(services: VibeServices = Depends(app_services)) -> dict[str, Any]:
    """Service health; no credential required."""
    return get_server_health(services).to_dict()


# =============================================================================
# Sessions
# =============================================================================


@router.post("/sessions", status_code=201)
def create_session(
    body: CreateSessionRequest,
    user_id: str = Depends(current_user),
    services: VibeServices = Depends(app_services),
) -> dict[str, Any]:
    session = services.lifecycle.create_session(
        body.source_html, user_id=user_id, variant_count=body.variant_count
    )
    return services.lifecycle.get_full_session(session.id).to_dict()


@router.get("/sessions/{session_id}")
def get_session(
    session_id: str,
    user_id: str = Depends(current_user),
    services: VibeServices = Depends(app_services),
) -> dict[str, Any]:
    """Session with its plans and variants."""
    owned_session(services, session_id, user_id)
    return services.lifecycle.get_full_session(session_id).to_dict()


@router.post("/sessions/{session_id}/plans")
def create_plans(
    session_id: str,
    body: CreatePlansRequest,
    user_id: str = Depends(current_user),
    services: VibeServices = Depends(app_services),
) -> dict[str, Any]:
    owned_session(services, session_id, user_id)
    plans = [p.to_plan(session_id, p.variant_index) for p in body.plans]
    services.lifecycle.create_plans(session_id, plans)
    return services.lifecycle.get_full_session(session_id).to_dict()


@router.post("/sessions/{session_id}/advance")
def advance_session(
    session_id: str,
    body: AdvanceRequest,
    user_id: str = Depends(current_user),
    services: VibeServices = Depends(app_services),
) -> dict[str, Any]:
    owned_session(services, session_id, user_id)
    services.lifecycle.advance(session_id, body.status)
    return services.lifecycle.get_full_session(session_id).to_dict()


@router.post("/sessions/{session_id}/select")
def select_variant(
    session_id: str,
    body: SelectVariantRequest,
    user_id: str = Depends(current_user),
    services: VibeServices = Depends(app_services),
) -> dict[str, Any]:
    owned_session(services, session_id, user_id)
    services.lifecycle.select_variant(session_id, body.variant_index)
    return services.lifecycle.get_full_session(session_id).to_dict()


@router.post("/sessions/{session_id}/generate")
async def generate_session(
    session_id: str,
    body: ProviderRequest | None = None,
    user_id: str = Depends(current_user),
    services: VibeServices = Depends(app_services),
) -> dict[str, Any]:
    """Generate every planned variant concurrently and report each outcome."""
    owned_session(services, session_id, user_id)
    body = body or ProviderRequest()
    backend = services.backend_for(user_id, body.provider, body.model)
    try:
        outcomes = await services.orchestrator.generate_all(session_id, backend)
    finally:
        await backend.aclose()
    return {
        "sessionId": session_id,
        "status": services.lifecycle.get_session(session_id).status.value,
        "variants": {str(i): event.to_dict() for i, event in outcomes.items()},
    }


@router.post("/sessions/{session_id}/variants/{variant_index}/retry")
async def retry_variant(
    session_id: str,
    variant_index: int,
    body: ProviderRequest | None = None,
    user_id: str = Depends(current_user),
    services: VibeServices = Depends(app_services),
) -> dict[str, Any]:
    """Regenerate one variant from its stored plan."""
    owned_session(services, session_id, user_id)
    body = body or ProviderRequest()
    backend = services.backend_for(user_id, body.provider, body.model)
    try:
        event = await services.orchestrator.retry(session_id, variant_index, backend)
    finally:
        await backend.aclose()
    return event.to_dict()


@router.get("/sessions/{session_id}/iterations")
def session_iterations(
    session_id: str,
    user_id: str = Depends(current_user),
    services: VibeServices = Depends(app_services),
) -> dict[str, Any]:
    owned_session(services, session_id, user_id)
    iterations = services.iterations.session_history(session_id)
    return {"iterations": [it.to_dict() for it in iterations]}


# =============================================================================
# Streaming Generation
# =============================================================================


def _plan_for(
    services: VibeServices, session: Session, body: GenerateRequest
) -> VariantPlan:
    """Stored plan for the request, or a transient one from the body.

    Raises:
        ValidationError: Neither a matching stored plan nor plan content.
    """
    if body.plan_id:
        stored = services.store.get_plan(body.plan_id)
        if (
            stored is not None
            and stored.session_id == session.id
            and stored.variant_index == body.variant_index
        ):
            return stored
    if body.plan is None:
        raise ValidationError(
            f"No plan for variant {body.variant_index}; send plan content"
        )
    return body.plan.to_plan(session.id, body.variant_index, body.plan_id)


@router.post("/generate")
async def generate_variant(
    body: GenerateRequest,
    request: Request,
    user_id: str = Depends(current_user),
    services: VibeServices = Depends(app_services),
) -> StreamingResponse:
    """Stream one variant's generation as server-sent events.

    Everything that can reject the request runs before the variant row is
    touched; once streaming starts, failures arrive as an error event.
    """
    session = owned_session(services, body.session_id, user_id)
    if body.variant_index > session.variant_count:
        raise ValidationError(
            f"variantIndex must be between 1 and {session.variant_count}"
        )
    plan = _plan_for(services, session, body)
    backend = services.backend_for(user_id, body.provider, body.model)
    events = services.orchestrator.generate(session, plan, body.source_html, backend)

    async def event_stream():
        try:
            async for event in events:
                if await request.is_disconnected():
                    logger.info(
                        f"Client left {session.id}#{body.variant_index}; cancelling"
                    )
                    break
                yield encode_sse(event)
        except VibeError as e:
            logger.warning(f"Variant {session.id}#{body.variant_index} refused: {e}")
            yield encode_sse(ErrorEvent(e.message, e.error_type))
        finally:
            await events.aclose()
            await backend.aclose()

    return StreamingResponse(
        event_stream(), media_type="text/event-stream", headers=SSE_HEADERS
    )


# =============================================================================
# Iteration
# =============================================================================


@router.post("/iterate")
async def iterate_variant(
    body: IterateRequest,
    user_id: str = Depends(current_user),
    services: VibeServices = Depends(app_services),
) -> dict[str, Any]:
    """Apply one refinement prompt to a complete variant."""
    variant = owned_variant(services, body.variant_id, user_id)
    if body.variant_index is not None and body.variant_index != variant.variant_index:
        raise ValidationError(
            f"Variant {variant.id} has index {variant.variant_index}, "
            f"not {body.variant_index}"
        )
    backend = services.backend_for(user_id, body.provider, body.model)
    try:
        result = await services.iterations.iterate(
            variant.id,
            body.iteration_prompt,
            backend,
            current_html=body.current_html,
            session_id=body.session_id,
        )
    finally:
        await backend.aclose()
    return result.to_dict()


@router.post("/revert")
async def revert_variant(
    body: RevertRequest,
    user_id: str = Depends(current_user),
    services: VibeServices = Depends(app_services),
) -> dict[str, Any]:
    owned_variant(services, body.variant_id, user_id)
    result = await services.iterations.revert(body.variant_id, body.iteration_id)
    return result.to_dict()


@router.get("/variants/{variant_id}/iterations")
def variant_iterations(
    variant_id: str,
    user_id: str = Depends(current_user),
    services: VibeServices = Depends(app_services),
) -> dict[str, Any]:
    owned_variant(services, variant_id, user_id)
    iterations = services.iterations.history(variant_id)
    return {"iterations": [it.to_dict() for it in iterations]}


__all__ = ["router"]
