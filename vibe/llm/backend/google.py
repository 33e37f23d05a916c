"""Google Gemini backend implementation.

Supports Gemini Flash and Pro models via the async google-genai client.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
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
from .model_spec import DEFAULT_GOOGLE_MODEL, LLMSpec, get_llm_spec

logger = logging.getLogger(__name__)


class GoogleBackend(LLMBackend):
    """Google Gemini backend.

    Environment:
        GOOGLE_API_KEY: API key (required if not passed to constructor).

    Example:
        >>> backend = GoogleBackend(model="gemini-2.5-flash")
        >>> async for chunk in backend.stream("Give the hero a gradient"):
        ...     print(chunk, end="")
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | LLMSpec = DEFAULT_GOOGLE_MODEL.spec.name,
        timeout: float = 300.0,
    ):
        """Initialize Google backend.

        Args:
            api_key: Google AI Studio key. Falls back to GOOGLE_API_KEY env var.
            model: Model name or spec (gemini-2.0-flash, gemini-2.5-pro, etc.).
            timeout: Request timeout in seconds.

        Raises:
            MissingAPIKeyError: If no API key available.
        """
        self._api_key = api_key or get_environment(EnvVar.GOOGLE_API_KEY)
        if not self._api_key:
            raise MissingAPIKeyError("google")

        self._spec = get_llm_spec(model)
        self._timeout = timeout
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazily initialize the google-genai client."""
        if self._client is None:
            from google import genai
            from google.genai import types

            self._client = genai.Client(
                api_key=self._api_key,
                http_options=types.HttpOptions(timeout=int(self._timeout * 1000)),
            )
        return self._client

    @property
    def model_name(self) -> str:
        """Get the model identifier."""
        return self._spec.name

    @property
    def provider(self) -> str:
        """Get the provider identifier."""
        return "google"

    @property
    def context_window(self) -> int:
        """Get maximum context window size."""
        return self._spec.context_window

    def _build_config(
        self, system_prompt: str | None, config: GenerationConfig
    ) -> Any:
        from google.genai import types

        return types.GenerateContentConfig(
            system_instruction=system_prompt or None,
            temperature=config.temperature,
            top_p=config.top_p,
            max_output_tokens=min(config.max_tokens, self._spec.max_output_tokens),
            stop_sequences=config.stop_sequences or None,
        )

    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        config: GenerationConfig | None = None,
    ) -> GenerationResult:
        """Generate text using the Gemini generateContent API.

        Raises:
            LLMError: If generation fails.
            InvalidResponseError: If the response has no text.
        """
        config = config or GenerationConfig()
        client = self._get_client()

        try:
            response = await client.aio.models.generate_content(
                model=self._spec.name,
                contents=prompt,
                config=self._build_config(system_prompt, config),
            )
        except Exception as e:
            raise translate_error(e) from e

        if not response.text:
            raise InvalidResponseError("Gemini response contained no text")

        finish = response.candidates[0].finish_reason if response.candidates else None
        usage = response.usage_metadata
        return GenerationResult(
            content=response.text,
            finish_reason=str(getattr(finish, "value", finish) or "unknown"),
            usage={
                "prompt_tokens": (usage.prompt_token_count or 0) if usage else 0,
                "completion_tokens": (
                    (usage.candidates_token_count or 0) if usage else 0
                ),
                "total_tokens": (usage.total_token_count or 0) if usage else 0,
            },
            model=response.model_version or self._spec.name,
            raw_response=response,
        )

    async def stream(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        config: GenerationConfig | None = None,
    ) -> AsyncIterator[str]:
        """Stream text chunks from the Gemini streamGenerateContent API."""
        config = config or GenerationConfig()
        client = self._get_client()

        try:
            response = await client.aio.models.generate_content_stream(
                model=self._spec.name,
                contents=prompt,
                config=self._build_config(system_prompt, config),
            )
            async with aclosing(response) as chunks:
                async for chunk in chunks:
                    if chunk.text:
                        yield chunk.text
        except Exception as e:
            raise translate_error(e) from e

    async def aclose(self) -> None:
        """Release the async HTTP session."""
        if self._client is not None:
            await self._client.aio.aclose()
            self._client = None


__all__ = ["GoogleBackend"]
