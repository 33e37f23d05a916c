"""Centralized environment configuration management for vibe-variants.

Provides a unified interface for all environment variables with:
- Single `get_environment()` function for all configuration
- Type-safe enum with metadata (default, type, description)
- Consistent resolution: override > environment > default

Example:
    >>> from vibe.config import EnvVar, get_environment
    >>>
    >>> # Get values with automatic type conversion
    >>> count = get_environment(EnvVar.VIBE_VARIANT_COUNT)  # Returns int
    >>> api_key = get_environment(EnvVar.ANTHROPIC_API_KEY)  # Returns str | None
    >>>
    >>> # Override at runtime
    >>> timeout = get_environment(EnvVar.VIBE_STREAM_TIMEOUT, override=30.0)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, overload

# =============================================================================
# Environment Variable Configuration
# =============================================================================


@dataclass(frozen=True)
class EnvConfig:
    """Metadata for an environment variable.

    Attributes:
        name: Environment variable name (e.g., "VIBE_DB_PATH").
        default: Default value if not set in environment.
        var_type: Python type for value conversion (str, int, float, bool, Path).
        description: Human-readable description.
        category: Grouping category for documentation.
    """

    name: str
    default: Any
    var_type: type
    description: str = ""
    category: str = "general"


class EnvVar(Enum):
    """All environment variables used by vibe-variants.

    Each member contains an EnvConfig with name, default, type, and description.
    Use with `get_environment()` for type-safe access.

    Categories:
        - llm: LLM provider API keys and provider selection
        - generation: Variant generation limits
        - storage: Record and artifact storage locations
        - auth: Bearer token validation
        - service: Service hosts and ports
    """

    # -------------------------------------------------------------------------
    # LLM API Keys
    # -------------------------------------------------------------------------
    OPENAI_API_KEY = EnvConfig(
        name="OPENAI_API_KEY",
        default=None,
        var_type=str,
        description="OpenAI API key for GPT models",
        category="llm",
    )
    ANTHROPIC_API_KEY = EnvConfig(
        name="ANTHROPIC_API_KEY",
        default=None,
        var_type=str,
        description="Anthropic API key for Claude models",
        category="llm",
    )
    DEEPSEEK_API_KEY = EnvConfig(
        name="DEEPSEEK_API_KEY",
        default=None,
        var_type=str,
        description="DeepSeek API key",
        category="llm",
    )
    GOOGLE_API_KEY = EnvConfig(
        name="GOOGLE_API_KEY",
        default=None,
        var_type=str,
        description="Google AI Studio API key for Gemini models",
        category="llm",
    )
    LLM_PROVIDER = EnvConfig(
        name="LLM_PROVIDER",
        default="anthropic",
        var_type=str,
        description="Default LLM provider (anthropic, openai, google, deepseek)",
        category="llm",
    )

    # -------------------------------------------------------------------------
    # Generation Limits
    # -------------------------------------------------------------------------
    VIBE_VARIANT_COUNT = EnvConfig(
        name="VIBE_VARIANT_COUNT",
        default=4,
        var_type=int,
        description="Number of variant plans per session",
        category="generation",
    )
    VIBE_MIN_HTML_LENGTH = EnvConfig(
        name="VIBE_MIN_HTML_LENGTH",
        default=100,
        var_type=int,
        description="Minimum accepted length of generated HTML",
        category="generation",
    )
    VIBE_STREAM_TIMEOUT = EnvConfig(
        name="VIBE_STREAM_TIMEOUT",
        default=300.0,
        var_type=float,
        description="Maximum seconds a single variant may stay generating",
        category="generation",
    )
    VIBE_MAX_OUTPUT_TOKENS = EnvConfig(
        name="VIBE_MAX_OUTPUT_TOKENS",
        default=16384,
        var_type=int,
        description="Maximum output tokens requested from the provider",
        category="generation",
    )

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------
    VIBE_DB_PATH = EnvConfig(
        name="VIBE_DB_PATH",
        default=None,  # Computed from home directory
        var_type=Path,
        description="SQLite database file for sessions, variants, iterations",
        category="storage",
    )
    VIBE_ARTIFACT_DIR = EnvConfig(
        name="VIBE_ARTIFACT_DIR",
        default=None,  # Computed from home directory
        var_type=Path,
        description="Directory for locally stored HTML artifacts",
        category="storage",
    )
    VIBE_ARTIFACT_BASE_URL = EnvConfig(
        name="VIBE_ARTIFACT_BASE_URL",
        default=None,
        var_type=str,
        description="Public URL prefix for local artifacts (None=file:// URLs)",
        category="storage",
    )
    VIBE_STORAGE_URL = EnvConfig(
        name="VIBE_STORAGE_URL",
        default=None,
        var_type=str,
        description="Remote object storage URL (enables the HTTP artifact store)",
        category="storage",
    )
    VIBE_STORAGE_BUCKET = EnvConfig(
        name="VIBE_STORAGE_BUCKET",
        default="vibe-files",
        var_type=str,
        description="Bucket name in remote object storage",
        category="storage",
    )
    VIBE_STORAGE_KEY = EnvConfig(
        name="VIBE_STORAGE_KEY",
        default=None,
        var_type=str,
        description="Service key for remote object storage",
        category="storage",
    )

    # -------------------------------------------------------------------------
    # Auth
    # -------------------------------------------------------------------------
    VIBE_JWT_SECRET = EnvConfig(
        name="VIBE_JWT_SECRET",
        default=None,
        var_type=str,
        description="Shared secret used to verify bearer tokens",
        category="auth",
    )
    VIBE_JWT_ALGORITHM = EnvConfig(
        name="VIBE_JWT_ALGORITHM",
        default="HS256",
        var_type=str,
        description="Signing algorithm accepted for bearer tokens",
        category="auth",
    )

    # -------------------------------------------------------------------------
    # Service Hosts and Ports (chosen to avoid common ports like 8000, 8080)
    # -------------------------------------------------------------------------
    VIBE_API_HOST = EnvConfig(
        name="VIBE_API_HOST",
        default="0.0.0.0",
        var_type=str,
        description="HTTP API bind address",
        category="service",
    )
    VIBE_API_PORT = EnvConfig(
        name="VIBE_API_PORT",
        default=18090,
        var_type=int,
        description="HTTP API port (avoids 8000)",
        category="service",
    )
    MCP_HOST = EnvConfig(
        name="MCP_HOST",
        default="0.0.0.0",
        var_type=str,
        description="MCP server bind address",
        category="service",
    )
    MCP_PORT = EnvConfig(
        name="MCP_PORT",
        default=18080,
        var_type=int,
        description="MCP server port (avoids 8080)",
        category="service",
    )


# =============================================================================
# Type Conversion Helpers
# =============================================================================


def _parse_bool(value: str) -> bool | None:
    """Parse string to boolean.

    Recognizes: true/false, 1/0, yes/no (case-insensitive).
    Returns None for unrecognized values.
    """
    normalized = value.lower().strip()
    if normalized in ("true", "1", "yes"):
        return True
    if normalized in ("false", "0", "no"):
        return False
    return None


def _convert_value(value: str | None, var_type: type, default: Any) -> Any:
    """Convert string value to target type.

    Args:
        value: Raw string value from environment (or None).
        var_type: Target Python type.
        default: Default value if conversion fails or value is None.

    Returns:
        Converted value or default.
    """
    if value is None:
        return default

    if var_type is str:
        return value

    if var_type is int:
        try:
            return int(value)
        except ValueError:
            return default

    if var_type is float:
        try:
            return float(value)
        except ValueError:
            return default

    if var_type is bool:
        result = _parse_bool(value)
        return result if result is not None else default

    if var_type is Path:
        return Path(value)

    # Unknown type, return as-is
    return value


# =============================================================================
# Main Interface
# =============================================================================


@overload
def get_environment(env_var: EnvVar, override: int) -> int: ...


@overload
def get_environment(env_var: EnvVar, override: float) -> float: ...


@overload
def get_environment(env_var: EnvVar, override: str) -> str: ...


@overload
def get_environment(env_var: EnvVar, override: Path) -> Path: ...


@overload
def get_environment(env_var: EnvVar, override: None = None) -> Any: ...


def get_environment(env_var: EnvVar, override: Any = None) -> Any:
    """Get environment variable value with type conversion.

    Resolution priority:
        1. Explicit override parameter (highest)
        2. Environment variable value
        3. Default from EnvConfig (lowest)

    Args:
        env_var: Environment variable enum member.
        override: Optional override value (bypasses env lookup).

    Returns:
        Value converted to the appropriate type.

    Example:
        >>> get_environment(EnvVar.VIBE_VARIANT_COUNT)
        4
        >>> get_environment(EnvVar.VIBE_VARIANT_COUNT, override=2)
        2
    """
    config: EnvConfig = env_var.value

    if override is not None:
        return override

    raw_value = os.environ.get(config.name)
    return _convert_value(raw_value, config.var_type, config.default)


def get_environment_info(env_var: EnvVar) -> EnvConfig:
    """Get metadata for an environment variable.

    Args:
        env_var: Environment variable enum member.

    Returns:
        EnvConfig with name, default, type, and description.
    """
    return env_var.value


# =============================================================================
# Convenience Functions
# =============================================================================


def _data_home() -> Path:
    return Path.home() / ".vibe"


def get_db_path(override: Path | str | None = None) -> Path:
    """Get the record store database path.

    Resolution: override > VIBE_DB_PATH > ~/.vibe/vibe.db
    """
    if override is not None:
        return Path(override)
    env_path = get_environment(EnvVar.VIBE_DB_PATH)
    if env_path:
        return env_path
    return _data_home() / "vibe.db"


def get_artifact_dir(override: Path | str | None = None) -> Path:
    """Get the local artifact directory.

    Resolution: override > VIBE_ARTIFACT_DIR > ~/.vibe/artifacts
    """
    if override is not None:
        return Path(override)
    env_path = get_environment(EnvVar.VIBE_ARTIFACT_DIR)
    if env_path:
        return env_path
    return _data_home() / "artifacts"


def get_available_llm_providers() -> list[str]:
    """Get list of LLM providers with an API key in the environment.

    Returns:
        List of provider names (e.g., ["anthropic", "openai"]).
    """
    providers = []
    if get_environment(EnvVar.ANTHROPIC_API_KEY):
        providers.append("anthropic")
    if get_environment(EnvVar.OPENAI_API_KEY):
        providers.append("openai")
    if get_environment(EnvVar.GOOGLE_API_KEY):
        providers.append("google")
    if get_environment(EnvVar.DEEPSEEK_API_KEY):
        providers.append("deepseek")
    return providers


def get_default_provider() -> str:
    """Get the default LLM provider name (lowercased)."""
    return str(get_environment(EnvVar.LLM_PROVIDER)).lower()


def list_environment_variables(category: str | None = None) -> list[EnvVar]:
    """List all environment variables, optionally filtered by category.

    Args:
        category: Filter by category (llm, generation, storage, auth, service).
                 None returns all variables.

    Returns:
        List of EnvVar enum members.
    """
    if category is None:
        return list(EnvVar)

    return [var for var in EnvVar if var.value.category == category]


__all__ = [
    # Core types
    "EnvConfig",
    "EnvVar",
    # Main interface
    "get_environment",
    "get_environment_info",
    # Convenience functions
    "get_db_path",
    "get_artifact_dir",
    "get_available_llm_providers",
    "get_default_provider",
    # Introspection
    "list_environment_variables",
]
