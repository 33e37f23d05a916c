"""FastMCP server exposing variant iteration to LLM clients.

Generation itself streams over the HTTP API; the tools here cover what an
assistant does afterwards: refine a variant, undo a refinement, and read
history and session state.

Usage:
    # STDIO mode (for desktop clients)
    python . mcp

    # HTTP mode
    python . mcp --transport http --port 18080
"""

import argparse
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

from ..core.errors import NotFoundError, ValidationError, VibeError
from ..core.log import setup_logging
from ..llm import LLMModel, get_provider_type
from ..services import get_server_health, get_services
from .lib import ServerConfig, TransportType, get_server_version

logger = logging.getLogger(__name__)


# =============================================================================
# Server Instructions (LLM Guidance)
# =============================================================================

SERVER_INSTRUCTIONS = """\
## vibe-variants MCP Server

Refines AI-generated variants of an HTML screen. Every refinement is kept:
iterations are append-only and reverting stores a new copy of earlier
content instead of deleting anything.

### Quick Start
1. `status()` - check readiness
2. `get_session_status(session_id)` - see plans and which variants are complete
3. `iterate_variant(variant_id, "make the button blue")` - refine a variant
4. `get_iteration_history(variant_id=...)` - list refinements
5. `revert_variant(variant_id, iteration_id)` - go back to the content an
   iteration started from

Only variants with status `complete` can be refined or reverted.
"""

# =============================================================================
# Server Instance
# =============================================================================

mcp = FastMCP(
    name="vibe-variants",
    instructions=SERVER_INSTRUCTIONS,
)


@contextmanager
def _tool_errors() -> Iterator[None]:
    """Report domain errors to the client as tool errors."""
    try:
        yield
    except VibeError as e:
        logger.info(f"Tool call failed: {e.error_type}: {e.message}")
        raise ToolError(f"{e.error_type}: {e.message}") from e


# =============================================================================
# Iteration Tools
# =============================================================================


@mcp.tool
async def iterate_variant(
    variant_id: str,
    prompt: str,
    provider: str | None = None,
    model: str | None = None,
) -> dict[str, Any]:
    """Apply one refinement prompt to a complete variant.

    The model rewrites the variant's current HTML; the result is stored as a
    new artifact and recorded as the next iteration.

    Args:
        variant_id: Variant to refine.
        prompt: What to change, e.g. "make the button blue".
        provider: Optional provider (anthropic, openai, google, deepseek).
        model: Optional model name.

    Returns:
        Dictionary with:
        - iterationNumber: 1 for the first refinement, then 2, 3, ...
        - htmlUrl / htmlPath: The new artifact
        - iteration: The stored iteration record
    """
    services = get_services()
    with _tool_errors():
        variant = services.store.get_variant(variant_id)
        if variant is None:
            raise NotFoundError(f"Variant not found: {variant_id}")
        session = services.store.get_session(variant.session_id)
        backend = services.backend_for(
            session.user_id if session else None, provider, model
        )
        try:
            result = await services.iterations.iterate(variant_id, prompt, backend)
        finally:
            await backend.aclose()
    return result.to_dict()


@mcp.tool
async def revert_variant(variant_id: str, iteration_id: str) -> dict[str, Any]:
    """Point a variant back at the HTML an iteration started from.

    Nothing is deleted: the earlier content is stored again under a new
    path and the iteration history is unchanged.

    Args:
        variant_id: Variant to revert.
        iteration_id: Iteration whose starting content to restore.

    Returns:
        Dictionary with htmlUrl, htmlPath, revertedTo and iterationCount.
    """
    services = get_services()
    with _tool_errors():
        result = await services.iterations.revert(variant_id, iteration_id)
    return result.to_dict()


@mcp.tool
def get_iteration_history(
    variant_id: str | None = None,
    session_id: str | None = None,
    include_html: bool = False,
) -> dict[str, Any]:
    """List refinements of one variant, or of every variant in a session.

    Args:
        variant_id: Variant to list, ordered by iteration number.
        session_id: Session to list, ordered by creation time.
        include_html: Include htmlBefore/htmlAfter bodies.

    Returns:
        Dictionary with an `iterations` list.
    """
    services = get_services()
    with _tool_errors():
        if variant_id:
            iterations = services.iterations.history(variant_id)
        elif session_id:
            iterations = services.iterations.session_history(session_id)
        else:
            raise ValidationError("Pass variant_id or session_id")
    return {"iterations": [it.to_dict(include_html=include_html) for it in iterations]}


# =============================================================================
# Session Tools
# =============================================================================


@mcp.tool
def get_session_status(session_id: str) -> dict[str, Any]:
    """Get a session with its plans and the status of every variant.

    Args:
        session_id: Session to read.

    Returns:
        Dictionary with status, plans and variants (status, htmlUrl,
        iterationCount, errorMessage).
    """
    services = get_services()
    with _tool_errors():
        snapshot = services.lifecycle.get_full_session(session_id)
    return snapshot.to_dict()


# =============================================================================
# Status Tools
# =============================================================================


@mcp.tool
def status() -> dict[str, Any]:
    """Check server health and configured providers.

    Returns:
        Dictionary with:
        - status: "healthy", "degraded", or "unhealthy"
        - version: Server version
        - services: Record store, artifact store and provider detail
    """
    return get_server_health(get_services()).to_dict()


@mcp.tool
def list_models(provider: str | None = None) -> dict[str, Any]:
    """List known models, optionally for one provider.

    Args:
        provider: anthropic, openai, google or deepseek.
    """
    with _tool_errors():
        kind = get_provider_type(provider) if provider else None
    models = [
        {
            "name": m.spec.name,
            "provider": m.spec.provider.value,
            "contextWindow": m.spec.context_window,
            "description": m.spec.description,
        }
        for m in LLMModel
        if kind is None or m.spec.provider == kind
    ]
    return {"models": models}


# =============================================================================
# Server Lifecycle
# =============================================================================


def create_server() -> FastMCP:
    """Return the configured MCP server instance."""
    return mcp


def run_server(config: ServerConfig | None = None) -> None:
    """Run the MCP server with the configured transport."""
    config = config or ServerConfig.from_env()
    logger.info(f"Starting vibe-variants MCP server v{get_server_version()}")
    logger.info(f"Transport: {config.transport.value}")

    health = get_server_health(get_services())
    logger.info(f"Health: {health.status.value}")

    if config.transport == TransportType.STDIO:
        mcp.run()
    elif config.transport == TransportType.HTTP:
        logger.info(
            f"Running in HTTP mode at http://{config.host}:{config.port}{config.path}"
        )
        mcp.run(transport="http", host=config.host, port=config.port, path=config.path)
    elif config.transport == TransportType.SSE:
        logger.info(f"Running in SSE mode at http://{config.host}:{config.port}")
        mcp.run(transport="sse", host=config.host, port=config.port)
    else:
        raise ValueError(f"Unknown transport: {config.transport}")


# =============================================================================
# CLI Entry Point
# =============================================================================


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for the MCP server.

    Args:
        argv: Command line arguments (uses sys.argv if None).

    Returns:
        Exit code (0 for success).
    """
    defaults = ServerConfig.from_env()
    parser = argparse.ArgumentParser(
        prog="vibe-mcp",
        description="MCP server for refining generated screen variants",
    )
    parser.add_argument(
        "--transport",
        "-t",
        choices=[t.value for t in TransportType],
        default=TransportType.STDIO.value,
        help="Transport type (default: stdio)",
    )
    parser.add_argument(
        "--host",
        default=defaults.host,
        help=f"Bind address for HTTP/SSE (default: {defaults.host})",
    )
    parser.add_argument(
        "--port",
        "-p",
        type=int,
        default=defaults.port,
        help=f"Port for HTTP/SSE (default: {defaults.port})",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )
    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.INFO, stream=sys.stderr)

    config = ServerConfig(
        transport=TransportType(args.transport), host=args.host, port=args.port
    )
    try:
        run_server(config)
        return 0
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        return 0
    except Exception as e:
        logger.error(f"Server error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
