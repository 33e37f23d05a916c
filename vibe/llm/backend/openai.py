"""OpenAI GPT backend implementation.

Supports GPT-4o, GPT-4.1 and other OpenAI chat models via the async
OpenAI client.
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
from .model_spec import DEFAULT_OPENAI_MODEL, LLMSpec, get_llm_spec

logger = logging.getLogger(__name__)


class OpenAIBackend(LLMBackend):
    """OpenAI GPT backend.

    Environment:
        OPENAI_API_KEY: API key (required if not passed to constructor).

    Example:
        >>> backend = OpenAIBackend(model="gpt-4o")
        >>> async for chunk in backend.stream("Redesign this login page"):
        ...     print(chunk, end="")
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | LLMSpec = DEFAULT_OPENAI_MODEL.spec.name,
        base_url: str | None = None,
        timeout: float = 300.0,
        max_retries: int = 0,
    ):
        """Initialize OpenAI backend.

        Args:
            api_key: OpenAI API key. Falls back to OPENAI_API_KEY env var.
            model: Model name or spec (gpt-4o, gpt-4.1-mini, etc.).
            base_url: Optional custom API endpoint.
            timeout: Request timeout in seconds.
            max_retries: SDK retry attempts for transient errors (none by
                default; a failed call surfaces immediately).

        Raises:
            MissingAPIKeyError: If no API key available.
        """
        self._api_key = api_key or get_environment(EnvVar.OPENAI_API_KEY)
        if not self._api_key:
            raise MissingAPIKeyError("openai")

        self._spec = get_llm_spec(model)
        self._base_url = base_url
        self._timeout = timeout
        self._max_retries = max_retries
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazily initialize the async OpenAI client."""
        if self._client is None:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
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
        return "openai"

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
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict[str, Any] = {
            "model": self._spec.name,
            "messages": messages,
            "temperature": config.temperature,
            "max_tokens": min(config.max_tokens, self._spec.max_output_tokens),
            "top_p": config.top_p,
        }
        if config.stop_sequences:
            kwargs["stop"] = config.stop_sequences
        return kwargs

    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        config: GenerationConfig | None = None,
    ) -> GenerationResult:
        """Generate text using the OpenAI chat completions API.

        Raises:
            LLMError: If generation fails.
            InvalidResponseError: If the response has no choices.
        """
        config = config or GenerationConfig()
        client = self._get_client()
        kwargs = self._build_kwargs(prompt, system_prompt, config)

        try:
            response = await client.chat.completions.create(**kwargs)
        except Exception as e:
            raise translate_error(e) from e

        if not response.choices:
            raise InvalidResponseError("OpenAI response contained no choices")

        choice = response.choices[0]
        usage = response.usage
        return GenerationResult(
            content=choice.message.content or "",
            finish_reason=choice.finish_reason or "unknown",
            usage={
                "prompt_tokens": usage.prompt_tokens if usage else 0,
                "completion_tokens": usage.completion_tokens if usage else 0,
                "total_tokens": usage.total_tokens if usage else 0,
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
        """Stream text deltas from the OpenAI chat completions API."""
        config = config or GenerationConfig()
        client = self._get_client()
        kwargs = self._build_kwargs(prompt, system_prompt, config)

        try:
            async with await client.chat.completions.create(
                **kwargs, stream=True
            ) as response:
                async for chunk in response:
                    if not chunk.choices:
                        continue
                    text = chunk.choices[0].delta.content
                    if text:
                        yield text
        except Exception as e:
            raise translate_error(e) from e


__all__ = ["OpenAIBackend"]
