"""Core utilities shared by every vibe-variants module."""

from .errors import (
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
from .log import get_logger, setup_logging

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # Errors
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
