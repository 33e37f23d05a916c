"""Tests for bearer validation and credential resolution."""

from datetime import UTC, datetime, timedelta

import jwt
import pytest

from vibe.core.errors import AuthenticationError, ConfigurationError
from vibe.llm import LLMProviderType, MissingAPIKeyError

from .lib import CredentialResolver, verify_bearer

SECRET = "test-secret-with-at-least-32-bytes!!"


def make_token(sub="user-1", secret=SECRET, **claims) -> str:
    payload = {"sub": sub, **claims}
    if sub is None:
        payload.pop("sub")
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def jwt_secret(monkeypatch):
    monkeypatch.setenv("VIBE_JWT_SECRET", SECRET)
    monkeypatch.delenv("VIBE_JWT_ALGORITHM", raising=False)
    return SECRET


@pytest.fixture
def clean_provider_env(monkeypatch):
    for var in (
        "ANTHROPIC_API_KEY",
        "OPENAI_API_KEY",
        "GOOGLE_API_KEY",
        "DEEPSEEK_API_KEY",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("LLM_PROVIDER", "anthropic")


class TestVerifyBearer:
    """Tests for verify_bearer."""

    @pytest.mark.unit
    def test_valid_token(self, jwt_secret):
        assert verify_bearer(f"Bearer {make_token()}") == "user-1"

    @pytest.mark.unit
    def test_scheme_is_case_insensitive(self, jwt_secret):
        assert verify_bearer(f"bearer {make_token(sub='u2')}") == "u2"

    @pytest.mark.unit
    @pytest.mark.parametrize("header", [None, "", "Bearer", "Basic abc", "Bearer  "])
    def test_missing_or_malformed(self, jwt_secret, header):
        with pytest.raises(AuthenticationError):
            verify_bearer(header)

    @pytest.mark.unit
    def test_wrong_secret(self, jwt_secret):
        token = make_token(secret="another-secret-with-at-least-32-bytes")
        with pytest.raises(AuthenticationError, match="Invalid token"):
            verify_bearer(f"Bearer {token}")

    @pytest.mark.unit
    def test_expired(self, jwt_secret):
        token = make_token(exp=datetime.now(UTC) - timedelta(minutes=5))
        with pytest.raises(AuthenticationError, match="expired"):
            verify_bearer(f"Bearer {token}")

    @pytest.mark.unit
    def test_subject_required(self, jwt_secret):
        with pytest.raises(AuthenticationError):
            verify_bearer(f"Bearer {make_token(sub=None, role='x')}")

    @pytest.mark.unit
    def test_unconfigured_secret(self, monkeypatch):
        monkeypatch.delenv("VIBE_JWT_SECRET", raising=False)
        with pytest.raises(ConfigurationError):
            verify_bearer(f"Bearer {make_token()}")

    @pytest.mark.unit
    def test_explicit_secret(self, monkeypatch):
        monkeypatch.delenv("VIBE_JWT_SECRET", raising=False)
        assert verify_bearer(f"Bearer {make_token()}", secret=SECRET) == "user-1"


class TestCredentialResolver:
    """Tests for CredentialResolver."""

    @pytest.mark.unit
    def test_stored_key_wins(self, record_store, clean_provider_env, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "env-key")
        record_store.store_api_key("user-1", "openai", "stored-key")
        resolver = CredentialResolver(record_store)
        assert resolver.resolve("user-1", "openai") == "stored-key"

    @pytest.mark.unit
    def test_env_fallback(self, record_store, clean_provider_env, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "env-key")
        resolver = CredentialResolver(record_store)
        assert resolver.resolve("user-1") == "env-key"
        assert resolver.resolve(None, "anthropic") == "env-key"

    @pytest.mark.unit
    def test_missing_key(self, record_store, clean_provider_env):
        with pytest.raises(MissingAPIKeyError) as exc:
            CredentialResolver(record_store).resolve("user-1", "deepseek")
        assert exc.value.to_dict()["errorCode"] == "API_KEY_MISSING"

    @pytest.mark.unit
    def test_unknown_provider(self, record_store, clean_provider_env):
        with pytest.raises(ConfigurationError):
            CredentialResolver(record_store).resolve("user-1", "acme")

    @pytest.mark.unit
    def test_create_backend_from_model(self, record_store, clean_provider_env):
        record_store.store_api_key("user-1", "openai", "sk-stored")
        backend = CredentialResolver(record_store).create_backend(
            "user-1", model="gpt-4o"
        )
        assert backend.provider == LLMProviderType.OPENAI.value
        assert backend.model_name == "gpt-4o"

    @pytest.mark.unit
    def test_create_backend_default_provider(
        self, record_store, clean_provider_env, monkeypatch
    ):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "env-key")
        backend = CredentialResolver(record_store).create_backend("user-1")
        assert backend.provider == "anthropic"
