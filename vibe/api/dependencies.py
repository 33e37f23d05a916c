"""Request dependencies: services, the caller, and ownership checks."""

from fastapi import FastAPI, Header, Request

from ..auth import verify_bearer
from ..core.errors import NotFoundError
from ..records import Session, Variant
from ..services import VibeServices, get_services


def services_for(app: FastAPI) -> VibeServices:
    """Services attached to the app, or the global ones."""
    services = getattr(app.state, "services", None)
    return services if services is not None else get_services()


def app_services(request: Request) -> VibeServices:
    return services_for(request.app)


def current_user(authorization: str | None = Header(default=None)) -> str:
    """Subject of the request's bearer token.

    Raises:
        AuthenticationError: Missing or invalid token.
    """
    return verify_bearer(authorization)


def owned_session(services: VibeServices, session_id: str, user_id: str) -> Session:
    """Load a session the caller may act on.

    Sessions owned by someone else are reported as missing.
    """
    session = services.store.get_session(session_id)
    if session is None or (session.user_id and session.user_id != user_id):
        raise NotFoundError(f"Session not found: {session_id}")
    return session


def owned_variant(services: VibeServices, variant_id: str, user_id: str) -> Variant:
    variant = services.store.get_variant(variant_id)
    if variant is None:
        raise NotFoundError(f"Variant not found: {variant_id}")
    try:
        owned_session(services, variant.session_id, user_id)
    except NotFoundError as e:
        raise NotFoundError(f"Variant not found: {variant_id}") from e
    return variant


__all__ = [
    "services_for",
    "app_services",
    "current_user",
    "owned_session",
    "owned_variant",
]
