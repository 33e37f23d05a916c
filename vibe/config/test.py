"""Tests for configuration management."""

from pathlib import Path

import pytest

from .lib import (
    EnvConfig,
    EnvVar,
    get_artifact_dir,
    get_available_llm_providers,
    get_db_path,
    get_default_provider,
    get_environment,
    get_environment_info,
    list_environment_variables,
)

# =============================================================================
# Tests for get_environment (main interface)
# =============================================================================


class TestGetEnvironment:
    """Tests for the unified get_environment interface."""

    @pytest.mark.unit
    def test_returns_default_when_not_set(self, monkeypatch):
        """Returns default value when env var is not set."""
        monkeypatch.delenv("VIBE_VARIANT_COUNT", raising=False)
        assert get_environment(EnvVar.VIBE_VARIANT_COUNT) == 4

    @pytest.mark.unit
    def test_override_takes_priority(self, monkeypatch):
        """Override parameter takes highest priority."""
        monkeypatch.setenv("VIBE_VARIANT_COUNT", "6")
        assert get_environment(EnvVar.VIBE_VARIANT_COUNT, override=2) == 2

    @pytest.mark.unit
    def test_env_var_overrides_default(self, monkeypatch):
        """Environment variable overrides default value."""
        monkeypatch.setenv("VIBE_MIN_HTML_LENGTH", "250")
        result = get_environment(EnvVar.VIBE_MIN_HTML_LENGTH)
        assert result == 250
        assert isinstance(result, int)

    @pytest.mark.unit
    def test_float_type_conversion(self, monkeypatch):
        """Float type conversion from string."""
        monkeypatch.setenv("VIBE_STREAM_TIMEOUT", "12.5")
        assert get_environment(EnvVar.VIBE_STREAM_TIMEOUT) == 12.5

    @pytest.mark.unit
    def test_invalid_number_returns_default(self, monkeypatch):
        """Invalid numeric values fall back to the default."""
        monkeypatch.setenv("VIBE_STREAM_TIMEOUT", "soon")
        monkeypatch.setenv("VIBE_API_PORT", "not-a-number")
        assert get_environment(EnvVar.VIBE_STREAM_TIMEOUT) == 300.0
        assert get_environment(EnvVar.VIBE_API_PORT) == 18090

    @pytest.mark.unit
    def test_path_type_conversion(self, monkeypatch, tmp_path):
        """Path variables are returned as Path objects."""
        monkeypatch.setenv("VIBE_DB_PATH", str(tmp_path / "x.db"))
        assert get_environment(EnvVar.VIBE_DB_PATH) == tmp_path / "x.db"

    @pytest.mark.unit
    def test_none_default_for_api_keys(self, monkeypatch):
        """API keys default to None when not set."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert get_environment(EnvVar.OPENAI_API_KEY) is None


class TestGetEnvironmentInfo:
    """Tests for environment variable metadata."""

    @pytest.mark.unit
    def test_returns_env_config(self):
        """Returns EnvConfig dataclass."""
        info = get_environment_info(EnvVar.VIBE_API_PORT)
        assert isinstance(info, EnvConfig)
        assert info.name == "VIBE_API_PORT"
        assert info.var_type is int
        assert info.category == "service"

    @pytest.mark.unit
    def test_names_match_members(self):
        """Every EnvConfig name matches its enum member name."""
        for var in EnvVar:
            assert var.value.name == var.name


class TestListEnvironmentVariables:
    """Tests for listing environment variables."""

    @pytest.mark.unit
    def test_all(self):
        assert len(list_environment_variables()) == len(list(EnvVar))

    @pytest.mark.unit
    def test_filter_by_category(self):
        storage = list_environment_variables("storage")
        assert EnvVar.VIBE_DB_PATH in storage
        assert all(v.value.category == "storage" for v in storage)


class TestConvenienceFunctions:
    """Tests for path and provider helpers."""

    @pytest.mark.unit
    def test_db_path_override(self, tmp_path):
        assert get_db_path(tmp_path / "a.db") == tmp_path / "a.db"

    @pytest.mark.unit
    def test_db_path_default(self, monkeypatch):
        monkeypatch.delenv("VIBE_DB_PATH", raising=False)
        assert get_db_path() == Path.home() / ".vibe" / "vibe.db"

    @pytest.mark.unit
    def test_artifact_dir_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("VIBE_ARTIFACT_DIR", str(tmp_path))
        assert get_artifact_dir() == tmp_path

    @pytest.mark.unit
    def test_available_providers(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-ds")
        assert get_available_llm_providers() == ["anthropic", "deepseek"]

        monkeypatch.setenv("GOOGLE_API_KEY", "AIza-test")
        assert get_available_llm_providers() == ["anthropic", "google", "deepseek"]

    @pytest.mark.unit
    def test_default_provider_lowercased(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "OpenAI")
        assert get_default_provider() == "openai"
