"""Abstract base class for LLM backends.

Defines the interface that all generation provider implementations must
follow: a single non-streaming call and a streaming call yielding ordered
text chunks.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import httpx

from ...core.errors import ConfigurationError, ProviderError, ProviderTimeoutError


@dataclass
class GenerationConfig:
    """Configuration for LLM text generation.

    Attributes:
        temperature: Sampling temperature (0.0-2.0). Lower = more deterministic.
        max_tokens: Maximum tokens to generate in response.
        stop_sequences: Optional sequences that stop generation.
        top_p: Nucleus sampling parameter (0.0-1.0).
    """

    temperature: float = 0.7
    max_tokens: int = 16384
    stop_sequences: list[str] = field(default_factory=list)
    top_p: float = 1.0


@dataclass
class GenerationResult:
    """Result from a non-streaming LLM call.

    Attributes:
        content: Generated text content.
        finish_reason: Why generation stopped ('stop', 'length', 'end_turn').
        usage: Token usage dict (prompt_tokens, completion_tokens, total_tokens).
        model: Model identifier that was used.
        raw_response: Provider-specific raw response for debugging.
    """

    content: str
    finish_reason: str
    usage: dict[str, int]
    model: str
    raw_response: Any = None


class LLMBackend(ABC):
    """Abstract interface for LLM text generation backends.

    Example:
        >>> backend = AnthropicBackend(api_key="sk-ant-...")
        >>> async for chunk in backend.stream("Rewrite this page"):
        ...     print(chunk, end="")
        >>> result = await backend.generate("Make the button blue")
    """

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        config: GenerationConfig | None = None,
    ) -> GenerationResult:
        """Generate text from a prompt in a single call.

        Args:
            prompt: User prompt text.
            system_prompt: Optional system instruction for context.
            config: Generation configuration options.

        Returns:
            GenerationResult with generated content and metadata.

        Raises:
            LLMError: If generation fails.
            RateLimitError: If API rate limit is exceeded.
            ContextLengthError: If prompt exceeds context window.
        """

    @abstractmethod
    def stream(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        config: GenerationConfig | None = None,
    ) -> AsyncIterator[str]:
        """Stream generated text chunks in emission order.

        Args:
            prompt: User prompt text.
            system_prompt: Optional system instruction for context.
            config: Generation configuration options.

        Yields:
            Non-empty text chunks.

        Raises:
            LLMError: If the stream cannot be opened or breaks mid-way.
        """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model identifier.

        Returns:
            String model name (e.g., 'gpt-4o', 'claude-sonnet-4-20250514').
        """

    @property
    @abstractmethod
    def provider(self) -> str:
        """Get the provider identifier.

        Returns:
            String provider name (e.g., 'openai', 'anthropic').
        """

    @property
    def name(self) -> str:
        """Get backend identifier for logging.

        Returns:
            String in format 'provider:model'.
        """
        return f"{self.provider}:{self.model_name}"

    @property
    @abstractmethod
    def context_window(self) -> int:
        """Get maximum context window size in tokens."""

    async def aclose(self) -> None:
        """Release the underlying HTTP client, if any."""
        client = getattr(self, "_client", None)
        if client is not None and hasattr(client, "close"):
            await client.close()
            self._client = None


class LLMError(ProviderError):
    """Base exception for LLM backend errors."""

    error_type = "llm_error"


class RateLimitError(LLMError):
    """Raised when API rate limit is exceeded.

    Attributes:
        retry_after: Suggested wait time in seconds before retry.
    """

    error_type = "rate_limit"

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class ContextLengthError(LLMError):
    """Raised when prompt exceeds the model's context window."""

    error_type = "context_length"


class InvalidResponseError(LLMError):
    """Raised when the provider returns an unusable response."""

    error_type = "invalid_response"


class AuthenticationError(LLMError):
    """Raised when the provider rejects the API key."""

    error_type = "provider_authentication"


class MissingAPIKeyError(ConfigurationError):
    """Raised when no API key is available for a provider."""

    def __init__(self, provider: str):
        super().__init__(
            f"No {provider} API key configured. Add one in settings or set "
            f"the provider's API key environment variable.",
            error_code="API_KEY_MISSING",
            provider=provider,
        )
        self.provider = provider


def translate_error(error: Exception) -> ProviderError:
    """Convert a provider SDK exception to a standard provider error.

    Args:
        error: The caught exception.

    Returns:
        ProviderTimeoutError, RateLimitError, ContextLengthError,
        AuthenticationError, or LLMError.
    """
    error_str = str(error).lower()

    if (
        isinstance(error, (TimeoutError, httpx.TimeoutException))
        or "timed out" in error_str
        or "timeout" in error_str
    ):
        return ProviderTimeoutError(f"Provider request timeout: {error}")
    if (
        "rate limit" in error_str
        or "rate_limit" in error_str
        or "resource_exhausted" in error_str
    ):
        return RateLimitError(str(error))
    if "context length" in error_str or "maximum context" in error_str:
        return ContextLengthError(str(error))
    if (
        "authentication" in error_str
        or "invalid api key" in error_str
        or "invalid x-api-key" in error_str
        or "api key not valid" in error_str
    ):
        return AuthenticationError(str(error))
    return LLMError(str(error))


__all__ = [
    "LLMBackend",
    "GenerationConfig",
    "GenerationResult",
    "LLMError",
    "RateLimitError",
    "ContextLengthError",
    "InvalidResponseError",
    "AuthenticationError",
    "MissingAPIKeyError",
    "translate_error",
]
