"""Backend factory for creating LLM backends from model specifications.

Provides a unified entry point for creating any supported LLM backend.
"""

from ...core.errors import ConfigurationError
from .base import LLMBackend
from .model_spec import (
    DEFAULT_MODEL,
    LLMModel,
    LLMProviderType,
    LLMSpec,
    get_default_model,
    get_llm_spec,
)


def create_llm_backend(
    model: str | LLMModel | LLMSpec | None = None,
    *,
    provider: str | LLMProviderType | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
    **kwargs,
) -> LLMBackend:
    """Create an LLM backend from a model specification.

    Routes to the backend class matching the model's provider. When only a
    provider is given, that provider's default model is used.

    Args:
        model: Model name, LLMModel, or LLMSpec. None selects a default.
        provider: Provider name; required for unregistered model names.
        api_key: API key. Falls back to the provider's environment variable.
        base_url: Optional custom API endpoint.
        **kwargs: Additional arguments passed to backend constructor
            (e.g., timeout, max_retries).

    Returns:
        Configured LLMBackend instance.

    Raises:
        ConfigurationError: If model/provider is unknown or no API key exists.

    Example:
        >>> backend = create_llm_backend()  # claude-sonnet-4-20250514
        >>> backend = create_llm_backend(provider="openai")  # gpt-4o
        >>> backend = create_llm_backend("gpt-4.1", api_key="sk-...")
    """
    if model is None:
        model = get_default_model(provider) if provider else DEFAULT_MODEL
    spec = get_llm_spec(model, provider)

    if spec.provider == LLMProviderType.OPENAI:
        from .openai import OpenAIBackend

        return OpenAIBackend(
            api_key=api_key,
            model=spec,
            base_url=base_url,
            **kwargs,
        )

    if spec.provider == LLMProviderType.ANTHROPIC:
        from .anthropic import AnthropicBackend

        return AnthropicBackend(api_key=api_key, model=spec, **kwargs)

    if spec.provider == LLMProviderType.GOOGLE:
        from .google import GoogleBackend

        return GoogleBackend(api_key=api_key, model=spec, **kwargs)

    if spec.provider == LLMProviderType.DEEPSEEK:
        from .deepseek import DeepSeekBackend

        return DeepSeekBackend(
            api_key=api_key,
            model=spec,
            base_url=base_url,
            **kwargs,
        )

    raise ConfigurationError(f"Unsupported provider type: {spec.provider}")


__all__ = ["create_llm_backend"]
