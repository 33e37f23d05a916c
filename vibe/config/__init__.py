"""Centralized configuration management for vibe-variants.

Provides unified access to all configuration via the `get_environment()` function.

Example:
    >>> from vibe.config import EnvVar, get_environment
    >>>
    >>> count = get_environment(EnvVar.VIBE_VARIANT_COUNT)  # Returns int: 4
    >>> api_key = get_environment(EnvVar.OPENAI_API_KEY)  # Returns str | None
    >>>
    >>> # List available variables by category
    >>> for var in list_environment_variables("storage"):
    ...     info = get_environment_info(var)
    ...     print(f"{info.name}: {info.description}")

Environment Variable Categories:
    llm: API keys for LLM providers (Anthropic, OpenAI, DeepSeek)
    generation: Variant count, output length and stream time limits
    storage: Database path, artifact directory, remote bucket
    auth: Bearer token secret and algorithm
    service: HTTP API and MCP hosts/ports
"""

from .lib import (
    # Core types
    EnvConfig,
    EnvVar,
    # Main interface
    get_artifact_dir,
    get_available_llm_providers,
    get_db_path,
    get_default_provider,
    get_environment,
    get_environment_info,
    # Introspection
    list_environment_variables,
)

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
