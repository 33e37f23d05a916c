"""LLM backend implementations.

Provides the abstract base class and concrete implementations for the
supported generation providers (Anthropic, OpenAI, Google, DeepSeek).
"""

from .base import (
    AuthenticationError,
    ContextLengthError,
    GenerationConfig,
    GenerationResult,
    InvalidResponseError,
    LLMBackend,
    LLMError,
    MissingAPIKeyError,
    RateLimitError,
    translate_error,
)
from .factory import create_llm_backend
from .model_spec import (
    DEFAULT_ANTHROPIC_MODEL,
    DEFAULT_DEEPSEEK_MODEL,
    DEFAULT_MODEL,
    DEFAULT_OPENAI_MODEL,
    DEFAULT_GOOGLE_MODEL,
    LLMCapability,
    LLMModel,
    LLMProviderType,
    LLMSpec,
    get_default_model,
    get_llm_spec,
    get_provider_type,
)

__all__ = [
    # Base classes and types
    "LLMBackend",
    "GenerationConfig",
    "GenerationResult",
    # Exceptions
    "LLMError",
    "RateLimitError",
    "ContextLengthError",
    "InvalidResponseError",
    "AuthenticationError",
    "MissingAPIKeyError",
    "translate_error",
    # Model specification
    "LLMCapability",
    "LLMProviderType",
    "LLMSpec",
    "LLMModel",
    "get_llm_spec",
    "get_default_model",
    "get_provider_type",
    # Defaults
    "DEFAULT_MODEL",
    "DEFAULT_ANTHROPIC_MODEL",
    "DEFAULT_OPENAI_MODEL",
    "DEFAULT_GOOGLE_MODEL",
    "DEFAULT_DEEPSEEK_MODEL",
    # Factory
    "create_llm_backend",
]
