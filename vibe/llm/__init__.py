"""Generation provider layer for variant generation.

Main components:
- LLMBackend: Abstract interface with `generate()` and `stream()`
- create_llm_backend: Factory function for creating backends

Supported providers:
- Anthropic (Claude Sonnet 4, default)
- OpenAI (GPT-4o, GPT-4.1)
- DeepSeek (V3, R1)

Example:
    >>> from vibe.llm import create_llm_backend
    >>> backend = create_llm_backend(provider="openai", api_key="sk-...")
    >>> async for chunk in backend.stream(prompt):
    ...     print(chunk, end="")
"""

from .backend import (
    DEFAULT_ANTHROPIC_MODEL,
    DEFAULT_DEEPSEEK_MODEL,
    DEFAULT_MODEL,
    DEFAULT_OPENAI_MODEL,
    DEFAULT_GOOGLE_MODEL,
    AuthenticationError,
    ContextLengthError,
    GenerationConfig,
    GenerationResult,
    InvalidResponseError,
    LLMBackend,
    LLMCapability,
    LLMError,
    LLMModel,
    LLMProviderType,
    LLMSpec,
    MissingAPIKeyError,
    RateLimitError,
    create_llm_backend,
    get_default_model,
    get_llm_spec,
    get_provider_type,
)

__all__ = [
    # Backends
    "LLMBackend",
    "GenerationConfig",
    "GenerationResult",
    "create_llm_backend",
    # Exceptions
    "LLMError",
    "RateLimitError",
    "ContextLengthError",
    "InvalidResponseError",
    "AuthenticationError",
    "MissingAPIKeyError",
    # Models
    "LLMCapability",
    "LLMProviderType",
    "LLMSpec",
    "LLMModel",
    "get_llm_spec",
    "get_default_model",
    "get_provider_type",
    "DEFAULT_MODEL",
    "DEFAULT_ANTHROPIC_MODEL",
    "DEFAULT_OPENAI_MODEL",
    "DEFAULT_GOOGLE_MODEL",
    "DEFAULT_DEEPSEEK_MODEL",
]
