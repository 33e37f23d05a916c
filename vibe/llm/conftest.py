"""LLM module test fixtures."""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator, Generator

import pytest

from vibe.llm.backend.base import GenerationConfig, GenerationResult, LLMBackend

# =============================================================================
# Mock LLM Backend
# =============================================================================

MOCK_VARIANT_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Variant</title>
<style>body { font-family: system-ui; margin: 0; } .hero { padding: 4rem; }</style>
</head>
<body>
<section class="hero"><h1>Welcome</h1><p>Redesigned landing page.</p></section>
</body>
</html>"""

MOCK_ITERATED_HTML = MOCK_VARIANT_HTML.replace(
    "<h1>Welcome</h1>", '<h1 style="color: #2563eb">Welcome</h1>'
)


def split_chunks(text: str, size: int = 40) -> list[str]:
    """Split text into fixed-size chunks like a streaming provider would."""
    return [text[i : i + size] for i in range(0, len(text), size)]


class MockLLMBackend(LLMBackend):
    """Scripted LLM backend for testing without API keys.

    Streams `chunks` in order, optionally failing or stalling part-way.
    `generate` pops from `responses` (falling back to `response`).
    Every call records its (system_prompt, prompt) pair in `calls`.

    Args:
        chunks: Chunks yielded by `stream`. Defaults to MOCK_VARIANT_HTML.
        response: Text returned by `generate`.
        responses: Queue of texts returned by successive `generate` calls.
        error: Exception raised by `stream` after `fail_after` chunks, and
            by `generate` immediately.
        fail_after: Number of chunks emitted before `error` is raised.
        hang_after: Number of chunks emitted before the stream stalls.
        delay: Seconds to sleep before each chunk or response.
        provider_name: Value reported by `provider`.
    """

    def __init__(
        self,
        chunks: list[str] | None = None,
        *,
        response: str = MOCK_ITERATED_HTML,
        responses: list[str] | None = None,
        error: Exception | None = None,
        fail_after: int = 0,
        hang_after: int | None = None,
        delay: float = 0.0,
        provider_name: str = "mock",
    ):
        self.chunks = chunks if chunks is not None else split_chunks(MOCK_VARIANT_HTML)
        self.response = response
        self.responses = list(responses or [])
        self.error = error
        self.fail_after = fail_after
        self.hang_after = hang_after
        self.delay = delay
        self.provider_name = provider_name
        self.calls: list[tuple[str | None, str]] = []
        self.closed = False

    @property
    def model_name(self) -> str:
        """Return mock model name."""
        return "mock-model-v1"

    @property
    def provider(self) -> str:
        """Return mock provider name."""
        return self.provider_name

    @property
    def context_window(self) -> int:
        """Return mock context window size."""
        return 200000

    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        config: GenerationConfig | None = None,
    ) -> GenerationResult:
        """Return the next scripted response."""
        self.calls.append((system_prompt, prompt))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        content = self.responses.pop(0) if self.responses else self.response
        return GenerationResult(
            content=content,
            finish_reason="stop",
            usage={"total_tokens": 100},
            model=self.model_name,
        )

    async def stream(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        config: GenerationConfig | None = None,
    ) -> AsyncIterator[str]:
        """Yield scripted chunks."""
        self.calls.append((system_prompt, prompt))
        for i, chunk in enumerate(self.chunks):
            if self.error is not None and i == self.fail_after:
                raise self.error
            if self.hang_after is not None and i == self.hang_after:
                await asyncio.Event().wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            yield chunk
        if self.error is not None and self.fail_after >= len(self.chunks):
            raise self.error

    async def aclose(self) -> None:
        self.closed = True


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def mock_llm_backend() -> MockLLMBackend:
    """Create a mock LLM backend for testing.

    Returns:
        MockLLMBackend instance.
    """
    return MockLLMBackend()


@pytest.fixture
def mock_api_key() -> str:
    """Provide a mock API key for testing."""
    return "test-api-key-12345"


@pytest.fixture
def preserve_env_keys() -> Generator[None, None, None]:
    """Fixture to preserve and restore API keys during tests.

    Saves existing API key environment variables before test and
    restores them after, allowing tests to modify them safely.
    """
    saved_keys: dict[str, str | None] = {}
    key_names = [
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "GOOGLE_API_KEY",
        "DEEPSEEK_API_KEY",
        "LLM_PROVIDER",
    ]

    for key in key_names:
        saved_keys[key] = os.environ.get(key)

    yield

    for key, value in saved_keys.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value
