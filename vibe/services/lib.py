"""Process-wide service container for the HTTP and MCP surfaces.

Wires the record store, artifact store and provider credentials into the
orchestration components once, so request handlers and tools share them.
"""

import logging
from collections.abc import Callable
from pathlib import Path

from ..artifacts import ArtifactStore, create_artifact_store
from ..auth import CredentialResolver
from ..generation import Orchestrator
from ..iteration import IterationManager
from ..llm import LLMBackend
from ..records import RecordStore, open_record_store
from ..session import CompletionAggregator, SessionLifecycle

logger = logging.getLogger(__name__)

BackendFactory = Callable[[str | None, str | None, str | None], LLMBackend]
"""Builds a backend from (user_id, provider, model)."""


class VibeServices:
    """Shared components for one record store and artifact store.

    Args:
        store: Initialized record store.
        artifacts: Artifact store.
        backend_factory: Builds a provider backend for (user_id, provider,
            model). Defaults to CredentialResolver(store).create_backend.
    """

    def __init__(
        self,
        store: RecordStore,
        artifacts: ArtifactStore,
        backend_factory: BackendFactory | None = None,
    ):
        self.store = store
        self.artifacts = artifacts
        self.credentials = CredentialResolver(store)
        self.backend_factory = backend_factory or self.credentials.create_backend
        self.lifecycle = SessionLifecycle(store)
        self.aggregator = CompletionAggregator(store)
        self.orchestrator = Orchestrator(
            store, artifacts, lifecycle=self.lifecycle, aggregator=self.aggregator
        )
        self.iterations = IterationManager(store, artifacts)

    @classmethod
    def from_env(
        cls,
        db_path: Path | str | None = None,
        artifact_dir: Path | str | None = None,
    ) -> "VibeServices":
        """Open the stores configured by VIBE_DB_PATH and the artifact settings."""
        return cls(open_record_store(db_path), create_artifact_store(artifact_dir))

    def backend_for(
        self,
        user_id: str | None,
        provider: str | None = None,
        model: str | None = None,
    ) -> LLMBackend:
        """Build a provider backend for a user's request.

        Raises:
            ConfigurationError: Unknown provider or model, or no API key.
        """
        return self.backend_factory(user_id, provider, model)

    async def aclose(self) -> None:
        await self.artifacts.close()
        self.store.close()


# Global instance for convenience
_global_services: VibeServices | None = None


def get_services() -> VibeServices:
    """Get or create the global services from the environment."""
    global _global_services
    if _global_services is None:
        _global_services = VibeServices.from_env()
    return _global_services


def set_services(services: VibeServices | None) -> None:
    """Replace the global services (None clears them)."""
    global _global_services
    _global_services = services


async def close_services() -> None:
    """Close and clear the global services."""
    global _global_services
    if _global_services:
        await _global_services.aclose()
        _global_services = None


__all__ = [
    "BackendFactory",
    "VibeServices",
    "get_services",
    "set_services",
    "close_services",
]
