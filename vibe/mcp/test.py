"""Unit tests for the MCP server module.

Tests cover:
- Server configuration
- Tool registration
- Iteration, revert and read tools over the MCP protocol
"""

import json

import pytest
from fastmcp.exceptions import ToolError

from vibe.llm.conftest import MOCK_ITERATED_HTML, MOCK_VARIANT_HTML, MockLLMBackend

from .lib import ServerConfig, TransportType, get_server_version
from .server import create_server, main, mcp

EXPECTED_TOOLS = {
    "iterate_variant",
    "revert_variant",
    "get_iteration_history",
    "get_session_status",
    "list_models",
    "status",
}


def payload(result) -> dict:
    """Decode a tool result's JSON text content."""
    return json.loads(result.content[0].text)


# =============================================================================
# Configuration Tests
# =============================================================================


class TestServerConfig:
    """Tests for ServerConfig dataclass."""

    @pytest.mark.unit
    def test_default_config(self):
        config = ServerConfig()

        assert config.name == "vibe-variants"
        assert config.transport == TransportType.STDIO
        assert config.port == 18080
        assert config.path == "/mcp"

    @pytest.mark.unit
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("MCP_PORT", "19999")
        config = ServerConfig.from_env(transport=TransportType.HTTP)

        assert config.transport == TransportType.HTTP
        assert config.port == 19999

    @pytest.mark.unit
    def test_transport_from_string(self):
        assert TransportType("sse") == TransportType.SSE

    @pytest.mark.unit
    def test_version(self):
        assert len(get_server_version().split(".")) >= 2


class TestServerInstance:
    """Tests for the FastMCP server instance."""

    @pytest.mark.unit
    def test_create_server_returns_mcp(self):
        assert create_server() is mcp
        assert mcp.name == "vibe-variants"

    @pytest.mark.unit
    def test_main_rejects_unknown_transport(self):
        with pytest.raises(SystemExit):
            main(["--transport", "carrier-pigeon"])


# =============================================================================
# MCP Protocol Tests
# =============================================================================


@pytest.mark.mcp
class TestMCPProtocol:
    """Tool calls through an in-memory MCP client."""

    @pytest.mark.asyncio
    async def test_lists_tools(self, mcp_client):
        tools = await mcp_client.list_tools()
        assert {t.name for t in tools} == EXPECTED_TOOLS

    @pytest.mark.asyncio
    async def test_status(self, mcp_client):
        data = payload(await mcp_client.call_tool("status", {}))
        assert data["status"] in ("healthy", "degraded")
        assert data["services"]["recordStore"]["available"] is True

    @pytest.mark.asyncio
    async def test_list_models(self, mcp_client):
        data = payload(
            await mcp_client.call_tool("list_models", {"provider": "openai"})
        )
        assert data["models"]
        assert {m["provider"] for m in data["models"]} == {"openai"}

    @pytest.mark.asyncio
    async def test_list_models_unknown_provider(self, mcp_client):
        with pytest.raises(ToolError, match="configuration_error"):
            await mcp_client.call_tool("list_models", {"provider": "acme"})

    @pytest.mark.asyncio
    async def test_iterate_revert_history(
        self, mcp_client, mcp_services, planned_session
    ):
        session, plans = planned_session
        generated = await mcp_services.orchestrator.run_to_end(
            session, plans[0], MockLLMBackend()
        )

        iterated = payload(
            await mcp_client.call_tool(
                "iterate_variant",
                {"variant_id": generated.variant_id, "prompt": "make it blue"},
            )
        )
        assert iterated["success"] is True
        assert iterated["iterationNumber"] == 1
        stored = await mcp_services.artifacts.get(iterated["htmlUrl"])
        assert stored.decode("utf-8") == MOCK_ITERATED_HTML

        history = payload(
            await mcp_client.call_tool(
                "get_iteration_history",
                {"variant_id": generated.variant_id, "include_html": True},
            )
        )
        assert [it["prompt"] for it in history["iterations"]] == ["make it blue"]
        assert history["iterations"][0]["htmlBefore"] == MOCK_VARIANT_HTML

        reverted = payload(
            await mcp_client.call_tool(
                "revert_variant",
                {
                    "variant_id": generated.variant_id,
                    "iteration_id": iterated["iteration"]["id"],
                },
            )
        )
        assert reverted["iterationCount"] == 1
        restored = await mcp_services.artifacts.get(reverted["htmlUrl"])
        assert restored.decode("utf-8") == MOCK_VARIANT_HTML

        by_session = payload(
            await mcp_client.call_tool(
                "get_iteration_history", {"session_id": session.id}
            )
        )
        assert len(by_session["iterations"]) == 1

    @pytest.mark.asyncio
    async def test_iterate_unknown_variant(self, mcp_client):
        with pytest.raises(ToolError, match="not_found"):
            await mcp_client.call_tool(
                "iterate_variant", {"variant_id": "missing", "prompt": "x"}
            )

    @pytest.mark.asyncio
    async def test_iterate_incomplete_variant(
        self, mcp_client, mcp_services, planned_session
    ):
        session, plans = planned_session
        variant = mcp_services.store.start_variant(session.id, 2, plans[1].id, "a1")
        with pytest.raises(ToolError, match="invalid_transition"):
            await mcp_client.call_tool(
                "iterate_variant", {"variant_id": variant.id, "prompt": "x"}
            )

    @pytest.mark.asyncio
    async def test_history_requires_an_id(self, mcp_client):
        with pytest.raises(ToolError, match="validation_error"):
            await mcp_client.call_tool("get_iteration_history", {})

    @pytest.mark.asyncio
    async def test_session_status(self, mcp_client, planned_session):
        session, plans = planned_session
        data = payload(
            await mcp_client.call_tool("get_session_status", {"session_id": session.id})
        )
        assert data["status"] == "plan_ready"
        assert [p["title"] for p in data["plans"]] == [p.title for p in plans]
