"""Core MCP server configuration for vibe-variants."""

from dataclasses import dataclass
from enum import Enum

from ..config import EnvVar, get_environment
from ..services import VERSION


class TransportType(str, Enum):
    """Supported MCP transport types."""

    STDIO = "stdio"
    HTTP = "http"
    SSE = "sse"


@dataclass
class ServerConfig:
    """Configuration for the MCP server.

    Attributes:
        name: Server display name.
        transport: Transport type for communication.
        host: Bind address for HTTP/SSE transports.
        port: Port for HTTP/SSE transports.
        path: URL path for HTTP transport.
    """

    name: str = "vibe-variants"
    transport: TransportType = TransportType.STDIO
    host: str = "0.0.0.0"
    port: int = 18080
    path: str = "/mcp"

    @classmethod
    def from_env(cls, transport: TransportType | None = None) -> "ServerConfig":
        """Create config from MCP_HOST and MCP_PORT."""
        return cls(
            transport=transport or TransportType.STDIO,
            host=get_environment(EnvVar.MCP_HOST),
            port=get_environment(EnvVar.MCP_PORT),
        )


def get_server_version() -> str:
    """Get server version string."""
    return VERSION


__all__ = ["TransportType", "ServerConfig", "get_server_version"]
