"""Anthropic Claude backend implementation.

Supports Claude Sonnet, Opus and Haiku models via the async Anthropic client.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

from ...config import EnvVar, get_environment
from .base import (
    GenerationConfig,
    GenerationResult,
    InvalidResponseError,
    LLMBackend,
    MissingAPIKeyError,
    translate_error,
)
from .model_spec import DEFAULT_ANTHROPIC_MODEL, LLMSpec, get_llm_spec

logger = logging.getLogger(__name__)


class AnthropicBackend(LLMBackend):
    """Anthropic Claude backend.

    Environment:
        ANTHROPIC_API_KEY: API key (required if not passed to constructor).

    Example:
        >>> backend = AnthropicBackend()
        >>> result = await backend.generate("Make the header sticky")
        >>> print(result.content)
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | LLMSpec = DEFAULT_ANTHROPIC_MODEL.spec.name,
        timeout: float = 300.0,
        max_retries: int = 0,
    ):
        """Initialize Anthropic backend.

        Args:
            api_key: Anthropic API key. Falls back to ANTHROPIC_API_KEY env var.
            model: Model name or spec.
            timeout: Request timeout in seconds.
            max_retries: SDK retry attempts for transient errors (none by
                default; a failed call surfaces immediately).

        Raises:
            MissingAPIKeyError: If no API key available.
        """
        self._api_key = api_key or get_environment(EnvVar.ANTHROPIC_API_KEY)
        if not self._api_key:
            raise MissingAPIKeyError("anthropic")

        self._spec = get_llm_spec(model)
        self._timeout = timeout
        self._max_retries = max_retries
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazily initialize the async Anthropic client."""
        if self._client is None:
            from anthropic import AsyncAnthropic

            self._client = AsyncAnthropic(
                api_key=self._api_key,
                timeout=self._timeout,
                max_retries=self._max_retries,
            )
        return self._client

    @property
    def model_name(self) -> str:
        """Get the model identifier."""
        return self._spec.name

    @property
    def provider(self) -> str:
        """Get the provider identifier."""
        return "anthropic"

    @property
    def context_window(self) -> int:
        """Get maximum context window size."""
        return self._spec.context_window

    def _build_kwargs(
        self,
        prompt: str,
        system_prompt: str | None,
        config: GenerationConfig,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._spec.name,
            "max_tokens": min(config.max_tokens, self._spec.max_output_tokens),
            "messages": [{"role": "user", "content": prompt}],
            "temperature": config.temperature,
        }
        if system_prompt:
            kwargs["system"] = system_prompt
        if config.stop_sequences:
            kwargs["stop_sequences"] = config.stop_sequences
        return kwargs

    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        config: GenerationConfig | None = None,
    ) -> GenerationResult:
        """Generate text using the Anthropic messages API.

        Raises:
            LLMError: If generation fails.
            InvalidResponseError: If the response has no text block.
        """
        config = config or GenerationConfig()
        client = self._get_client()
        kwargs = self._build_kwargs(prompt, system_prompt, config)

        try:
            response = await client.messages.create(**kwargs)
        except Exception as e:
            raise translate_error(e) from e

        text_blocks = [b.text for b in response.content if b.type == "text"]
        if not text_blocks:
            raise InvalidResponseError("Anthropic response contained no text")

        return GenerationResult(
            content="".join(text_blocks),
            finish_reason=response.stop_reason or "unknown",
            usage={
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": (
                    response.usage.input_tokens + response.usage.output_tokens
                ),
            },
            model=response.model,
            raw_response=response,
        )

    async def stream(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        config: GenerationConfig | None = None,
    ) -> AsyncIterator[str]:
        """Stream text deltas from the Anthropic messages API."""
        config = config or GenerationConfig()
        client = self._get_client()
        kwargs = self._build_kwargs(prompt, system_prompt, config)

        try:
            async with client.messages.stream(**kwargs) as stream:
                async for text in stream.text_stream:
                    if text:
                        yield text
        except Exception as e:
            raise translate_error(e) from e


__all__ = ["AnthropicBackend"]
