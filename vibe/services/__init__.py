"""Shared services and health checks for the HTTP and MCP surfaces."""

from .health import (
    VERSION,
    HealthStatus,
    ServerHealth,
    ServiceStatus,
    get_server_health,
)
from .lib import (
    BackendFactory,
    VibeServices,
    close_services,
    get_services,
    set_services,
)

__all__ = [
    "BackendFactory",
    "VibeServices",
    "get_services",
    "set_services",
    "close_services",
    "VERSION",
    "HealthStatus",
    "ServiceStatus",
    "ServerHealth",
    "get_server_health",
]
