"""Error taxonomy for vibe-variants.

Every failure that crosses a module boundary is one of the classes below.
Each carries a stable ``error_type`` code that the HTTP and MCP surfaces
put in error payloads, and an ``http_status`` used by the API layer.

Example:
    >>> try:
    ...     raise ValidationError("Generated HTML is too short or empty")
    ... except VibeError as e:
    ...     print(e.error_type, e.http_status)
    validation_error 400
"""

from __future__ import annotations

from typing import Any


class VibeError(Exception):
    """Base exception for all vibe-variants errors.

    Attributes:
        message: Human-readable description.
        details: Optional structured context (ids, paths, codes).
    """

    error_type: str = "vibe_error"
    http_status: int = 500

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible error body."""
        body: dict[str, Any] = {"error": self.message, "errorType": self.error_type}
        if self.details:
            body["details"] = self.details
        return body


# =============================================================================
# Request-level errors (never touch variant state)
# =============================================================================


class AuthenticationError(VibeError):
    """Missing or invalid bearer credential."""

    error_type = "authentication_error"
    http_status = 401


class ConfigurationError(VibeError):
    """No usable provider credential or an unknown provider/model.

    Attributes:
        error_code: Optional machine-readable code (e.g. ``API_KEY_MISSING``).
    """

    error_type = "configuration_error"
    http_status = 400

    def __init__(self, message: str, error_code: str | None = None, **details: Any):
        super().__init__(message, **details)
        self.error_code = error_code

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.error_code:
            body["errorCode"] = self.error_code
        return body


# =============================================================================
# Per-variant errors (mark the variant failed)
# =============================================================================


class ProviderError(VibeError):
    """Upstream model call or stream failed."""

    error_type = "provider_error"
    http_status = 502


class ProviderTimeoutError(ProviderError):
    """Provider stream exceeded its maximum duration."""

    error_type = "provider_timeout"
    http_status = 504


class ValidationError(VibeError):
    """Generated output (or a request field) failed validation."""

    error_type = "validation_error"
    http_status = 400


class ArtifactStoreError(VibeError):
    """Artifact upload or download failed."""

    error_type = "artifact_store_error"
    http_status = 502


class PersistenceError(VibeError):
    """Record store write or read failed, or a conditional write lost."""

    error_type = "persistence_error"
    http_status = 500


# =============================================================================
# Lookup and state errors
# =============================================================================


class NotFoundError(VibeError):
    """Referenced session, plan, variant, or iteration does not exist."""

    error_type = "not_found"
    http_status = 404


class InvalidTransitionError(VibeError):
    """Requested lifecycle transition is not allowed from the current state."""

    error_type = "invalid_transition"
    http_status = 409


__all__ = [
    "VibeError",
    "AuthenticationError",
    "ConfigurationError",
    "ProviderError",
    "ProviderTimeoutError",
    "ValidationError",
    "ArtifactStoreError",
    "PersistenceError",
    "NotFoundError",
    "InvalidTransitionError",
]
