"""Tests for the error taxonomy."""

import pytest

from .lib import (
    ArtifactStoreError,
    AuthenticationError,
    ConfigurationError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    ProviderError,
    ProviderTimeoutError,
    ValidationError,
    VibeError,
)


class TestErrorTaxonomy:
    """Tests for error classes and their payloads."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "cls",
        [
            AuthenticationError,
            ConfigurationError,
            ProviderError,
            ProviderTimeoutError,
            ValidationError,
            ArtifactStoreError,
            PersistenceError,
            NotFoundError,
            InvalidTransitionError,
        ],
    )
    def test_all_derive_from_base(self, cls):
        assert issubclass(cls, VibeError)

    @pytest.mark.unit
    def test_timeout_is_provider_error(self):
        err = ProviderTimeoutError("Generation stream timeout after 5s")
        assert isinstance(err, ProviderError)
        assert "timeout" in str(err)

    @pytest.mark.unit
    def test_to_dict(self):
        err = NotFoundError("Variant not found", variant_id="v1")
        body = err.to_dict()
        assert body["error"] == "Variant not found"
        assert body["errorType"] == "not_found"
        assert body["details"] == {"variant_id": "v1"}

    @pytest.mark.unit
    def test_configuration_error_code(self):
        err = ConfigurationError("No key", error_code="API_KEY_MISSING")
        assert err.to_dict()["errorCode"] == "API_KEY_MISSING"
        assert err.http_status == 400

    @pytest.mark.unit
    def test_status_codes(self):
        assert AuthenticationError("x").http_status == 401
        assert NotFoundError("x").http_status == 404
        assert InvalidTransitionError("x").http_status == 409
