"""Pytest fixtures for MCP server tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Generator
from typing import TYPE_CHECKING

import pytest
import pytest_asyncio
from fastmcp import Client

from vibe.services import set_services

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from vibe.services import VibeServices


@pytest.fixture
def mcp_services(services: VibeServices) -> Generator[VibeServices, None, None]:
    """Install the temp-store services as the server's global services."""
    set_services(services)
    yield services
    set_services(None)


@pytest.fixture
def mcp_server(mcp_services: VibeServices) -> FastMCP:
    """Create the MCP server instance for testing."""
    from .server import create_server

    return create_server()


@pytest_asyncio.fixture
async def mcp_client(mcp_server: FastMCP) -> AsyncGenerator[Client, None]:
    """Create connected in-memory MCP client.

    Yields:
        Connected Client instance for testing.
    """
    async with Client(mcp_server) as client:
        yield client
