"""MCP (Model Context Protocol) server for vibe-variants.

Exposes variant refinement, revert and history reads to LLM clients.

Example:
    # Start server in STDIO mode
    >>> from vibe.mcp import run_server
    >>> run_server()

    # Create server for testing
    >>> from vibe.mcp import create_server
    >>> server = create_server()

Available Tools:
    - iterate_variant: Refine a complete variant with a prompt
    - revert_variant: Restore the content an iteration started from
    - get_iteration_history: List refinements of a variant or session
    - get_session_status: Session plans and variant statuses
    - list_models: Known models per provider
    - status: Health check
"""

from .lib import ServerConfig, TransportType, get_server_version
from .server import create_server, main, mcp, run_server

__all__ = [
    # Server instance
    "mcp",
    "create_server",
    "run_server",
    "main",
    # Configuration
    "ServerConfig",
    "TransportType",
    # Utilities
    "get_server_version",
]
