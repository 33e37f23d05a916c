"""Tests for the service container and health checks."""

import pytest

from vibe.artifacts import HttpArtifactStore, LocalArtifactStore

from .health import HealthStatus, check_artifact_store, get_server_health
from .lib import VibeServices, close_services, get_services, set_services


class TestVibeServices:
    """Tests for VibeServices wiring."""

    @pytest.mark.unit
    def test_components_share_stores(self, services, record_store):
        assert services.store is record_store
        assert services.lifecycle is not None
        assert services.orchestrator is not None
        assert services.iterations is not None

    @pytest.mark.unit
    def test_backend_for_uses_factory(self, services, backend_factory):
        backend = services.backend_for("user-1", "openai", "gpt-4o")
        assert backend.model_name == "mock-model-v1"
        assert backend_factory.requests == [("user-1", "openai", "gpt-4o")]

    @pytest.mark.unit
    def test_default_factory_resolves_credentials(
        self, record_store, artifact_store, monkeypatch
    ):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        record_store.store_api_key("user-1", "openai", "sk-user")
        services = VibeServices(record_store, artifact_store)
        backend = services.backend_for("user-1", "openai")
        assert backend.provider == "openai"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_from_env_and_global(self, tmp_path, monkeypatch):
        monkeypatch.setenv("VIBE_DB_PATH", str(tmp_path / "env.db"))
        monkeypatch.setenv("VIBE_ARTIFACT_DIR", str(tmp_path / "env-artifacts"))
        monkeypatch.delenv("VIBE_STORAGE_URL", raising=False)
        set_services(None)
        try:
            services = get_services()
            assert get_services() is services
            assert isinstance(services.artifacts, LocalArtifactStore)
            assert (tmp_path / "env.db").exists()
        finally:
            await close_services()


class TestHealth:
    """Tests for health reporting."""

    @pytest.mark.unit
    def test_healthy_with_env_key(self, services, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        health = get_server_health(services)
        assert health.status == HealthStatus.HEALTHY
        data = health.to_dict()
        assert data["services"]["recordStore"]["available"] is True
        assert "anthropic" in data["services"]["llmProviders"]["availableProviders"]

    @pytest.mark.unit
    def test_degraded_without_env_keys(self, services, monkeypatch):
        for var in (
            "ANTHROPIC_API_KEY",
            "OPENAI_API_KEY",
            "GOOGLE_API_KEY",
            "DEEPSEEK_API_KEY",
        ):
            monkeypatch.delenv(var, raising=False)
        assert get_server_health(services).status == HealthStatus.DEGRADED

    @pytest.mark.unit
    def test_unhealthy_when_store_closed(self, services, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        services.store.close()
        health = get_server_health(services)
        assert health.status == HealthStatus.UNHEALTHY
        assert health.record_store.available is False

    @pytest.mark.unit
    def test_artifact_store_details(self, services, record_store):
        local = check_artifact_store(services)
        assert local.details["path"] == str(services.artifacts.root)

        remote = VibeServices(
            record_store, HttpArtifactStore("https://storage.example", "bucket")
        )
        status = check_artifact_store(remote)
        assert status.details == {"url": "https://storage.example", "bucket": "bucket"}
