"""Health checks for the HTTP and MCP surfaces.

Reports whether the record store answers, where artifacts go, and which
providers have an environment credential.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from ..artifacts import HttpArtifactStore, LocalArtifactStore
from ..config import get_available_llm_providers, get_default_provider
from .lib import VibeServices

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


class HealthStatus(str, Enum):
    """Overall service health."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ServiceStatus:
    """Status of one dependency."""

    available: bool
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"available": self.available, "message": self.message, **self.details}


@dataclass
class ServerHealth:
    """Overall health with per-dependency detail.

    Attributes:
        status: HEALTHY when everything works, DEGRADED when generation
            needs per-user keys, UNHEALTHY when records are unreachable.
    """

    status: HealthStatus
    version: str
    checked_at: datetime
    record_store: ServiceStatus
    artifact_store: ServiceStatus
    llm_providers: ServiceStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "checkedAt": self.checked_at.isoformat(),
            "services": {
                "recordStore": self.record_store.to_dict(),
                "artifactStore": self.artifact_store.to_dict(),
                "llmProviders": self.llm_providers.to_dict(),
            },
        }


def check_record_store(services: VibeServices) -> ServiceStatus:
    """Check that the record store answers a read."""
    try:
        services.store.list_sessions(limit=1)
    except Exception as e:
        logger.warning(f"Record store check failed: {e}")
        return ServiceStatus(False, f"Record store check failed: {e}")
    details = {}
    db_path = getattr(services.store, "db_path", None)
    if db_path is not None:
        details["path"] = str(db_path)
    return ServiceStatus(True, "Record store is reachable", details)


def check_artifact_store(services: VibeServices) -> ServiceStatus:
    """Describe where artifacts are written."""
    artifacts = services.artifacts
    if isinstance(artifacts, LocalArtifactStore):
        return ServiceStatus(
            True, "Local artifact store", {"path": str(artifacts.root)}
        )
    if isinstance(artifacts, HttpArtifactStore):
        return ServiceStatus(
            True,
            "HTTP artifact store",
            {"url": artifacts.base_url, "bucket": artifacts.bucket},
        )
    return ServiceStatus(True, type(artifacts).__name__)


def check_llm_providers() -> ServiceStatus:
    """Check which providers have an environment API key."""
    providers = get_available_llm_providers()
    details = {"availableProviders": providers, "default": get_default_provider()}
    if not providers:
        return ServiceStatus(
            False,
            "No provider keys in environment; per-user keys are required",
            details,
        )
    return ServiceStatus(
        True, f"LLM providers available: {', '.join(providers)}", details
    )


def get_server_health(services: VibeServices) -> ServerHealth:
    """Run every check and derive the overall status."""
    record_store = check_record_store(services)
    artifact_store = check_artifact_store(services)
    llm_providers = check_llm_providers()

    if not record_store.available:
        status = HealthStatus.UNHEALTHY
    elif not llm_providers.available:
        status = HealthStatus.DEGRADED
    else:
        status = HealthStatus.HEALTHY

    return ServerHealth(
        status=status,
        version=VERSION,
        checked_at=datetime.now(UTC),
        record_store=record_store,
        artifact_store=artifact_store,
        llm_providers=llm_providers,
    )


__all__ = [
    "VERSION",
    "HealthStatus",
    "ServiceStatus",
    "ServerHealth",
    "check_record_store",
    "check_artifact_store",
    "check_llm_providers",
    "get_server_health",
]
