"""FastAPI application factory.

Example:
    >>> app = create_app()  # services from the environment
    >>> uvicorn.run(app, host="0.0.0.0", port=18090)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..core.errors import ValidationError, VibeError
from ..services import VERSION, VibeServices, close_services, get_server_health
from .dependencies import services_for
from .routes import router

logger = logging.getLogger(__name__)


async def _vibe_error_handler(request: Request, exc: VibeError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(
        {"success": False, **exc.to_dict()}, status_code=exc.http_status
    )


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'][1:]) or 'body'}: {err['msg']}"
        for err in exc.errors()
    )
    return JSONResponse(
        {
            "success": False,
            "error": f"Invalid request: {problems}",
            "errorType": ValidationError.error_type,
        },
        status_code=ValidationError.http_status,
    )


def create_app(services: VibeServices | None = None) -> FastAPI:
    """Build the HTTP API.

    Args:
        services: Services to serve. The global services from the
            environment are opened on first use when None, and closed on
            shutdown.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        health = get_server_health(services_for(app))
        logger.info(f"vibe-variants API v{VERSION} starting ({health.status.value})")
        yield
        if services is None:
            await close_services()
        logger.info("vibe-variants API stopped")

    app = FastAPI(title="vibe-variants", version=VERSION, lifespan=lifespan)
    app.state.services = services
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["authorization", "content-type"],
    )
    app.add_exception_handler(VibeError, _vibe_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.include_router(router)
    return app


__all__ = ["create_app"]
