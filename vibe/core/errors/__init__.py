"""Error taxonomy for vibe-variants."""

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
