"""Tests for LLM backend implementations."""

from types import SimpleNamespace

import httpx

import pytest

from vibe.core.errors import ConfigurationError, ProviderError, ProviderTimeoutError

from .anthropic import AnthropicBackend
from .base import (
    AuthenticationError,
    ContextLengthError,
    GenerationConfig,
    InvalidResponseError,
    LLMError,
    MissingAPIKeyError,
    RateLimitError,
    translate_error,
)
from .deepseek import DeepSeekBackend
from .factory import create_llm_backend
from .google import GoogleBackend
from .model_spec import (
    DEFAULT_MODEL,
    LLMCapability,
    LLMModel,
    LLMProviderType,
    LLMSpec,
    get_default_model,
    get_llm_spec,
    get_provider_type,
)
from .openai import OpenAIBackend


class TestLLMSpec:
    """Tests for LLMSpec dataclass."""

    @pytest.mark.unit
    def test_spec_capabilities(self):
        """Test capability checking."""
        spec = LLMSpec(
            name="test",
            provider=LLMProviderType.OPENAI,
            context_window=128000,
            max_output_tokens=4096,
            capabilities=frozenset({LLMCapability.STREAMING}),
        )
        assert spec.supports(LLMCapability.STREAMING)
        assert not spec.supports(LLMCapability.VISION)


class TestLLMModel:
    """Tests for LLMModel enum registry."""

    @pytest.mark.unit
    def test_default_is_sonnet_4(self):
        assert DEFAULT_MODEL.spec.name == "claude-sonnet-4-20250514"
        assert get_default_model("openai").spec.name == "gpt-4o"
        assert get_default_model("google").spec.name == "gemini-2.0-flash"
        assert get_default_model("deepseek").spec.name == "deepseek-chat"

    @pytest.mark.unit
    def test_by_name_lookup(self):
        assert LLMModel.by_name("gpt-4.1-mini") == LLMModel.GPT_4_1_MINI
        assert LLMModel.by_name("nonexistent") is None

    @pytest.mark.unit
    def test_list_by_provider(self):
        models = LLMModel.list_by_provider(LLMProviderType.ANTHROPIC)
        assert LLMModel.CLAUDE_SONNET_4 in models
        assert all(m.spec.provider == LLMProviderType.ANTHROPIC for m in models)

    @pytest.mark.unit
    def test_deepseek_has_base_url(self):
        assert "deepseek.com" in (LLMModel.DEEPSEEK_CHAT.spec.base_url or "")


class TestGetLLMSpec:
    """Tests for get_llm_spec helper."""

    @pytest.mark.unit
    def test_passthrough(self):
        spec = LLMModel.GPT_4O.spec
        assert get_llm_spec(spec) is spec
        assert get_llm_spec(LLMModel.GPT_4O) is spec
        assert get_llm_spec("gpt-4o") is spec

    @pytest.mark.unit
    def test_unknown_without_provider(self):
        with pytest.raises(ConfigurationError):
            get_llm_spec("mystery-model")

    @pytest.mark.unit
    def test_unknown_with_provider(self):
        spec = get_llm_spec("gpt-5-preview", "openai")
        assert spec.name == "gpt-5-preview"
        assert spec.provider == LLMProviderType.OPENAI
        assert spec.api_key_env_var == "OPENAI_API_KEY"

    @pytest.mark.unit
    def test_provider_mismatch(self):
        with pytest.raises(ConfigurationError):
            get_llm_spec("gpt-4o", "anthropic")

    @pytest.mark.unit
    def test_unsupported_provider(self):
        with pytest.raises(ConfigurationError, match="Unsupported provider"):
            get_provider_type("ollama")

    @pytest.mark.unit
    def test_provider_case_insensitive(self):
        assert get_provider_type("OpenAI") == LLMProviderType.OPENAI


class TestTranslateError:
    """Tests for provider exception translation."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("Rate limit reached for requests", RateLimitError),
            ("This model's maximum context length is 128000", ContextLengthError),
            ("Error code: 401 - invalid x-api-key", AuthenticationError),
            ("Request timed out.", ProviderTimeoutError),
            ("429 RESOURCE_EXHAUSTED. Quota exceeded", RateLimitError),
            ("API key not valid. Please pass a valid API key.", AuthenticationError),
            ("Internal server error", LLMError),
        ],
    )
    def test_mapping(self, message, expected):
        err = translate_error(RuntimeError(message))
        assert type(err) is expected
        assert isinstance(err, ProviderError)

    @pytest.mark.unit
    @pytest.mark.parametrize("sdk", ["openai", "anthropic"])
    def test_sdk_timeout(self, sdk):
        module = pytest.importorskip(sdk)
        request = httpx.Request("POST", "https://api.example.com/v1/messages")
        err = translate_error(module.APITimeoutError(request=request))
        assert isinstance(err, ProviderTimeoutError)
        assert "timeout" in err.message

    @pytest.mark.unit
    def test_transport_timeout(self):
        err = translate_error(httpx.ReadTimeout("The read operation timed out"))
        assert isinstance(err, ProviderTimeoutError)
        assert err.error_type == "provider_timeout"
        assert "timeout" in err.message

    @pytest.mark.unit
    def test_missing_key_error_code(self):
        err = MissingAPIKeyError("openai")
        assert err.to_dict()["errorCode"] == "API_KEY_MISSING"
        assert err.http_status == 400


class TestFactory:
    """Tests for create_llm_backend."""

    @pytest.mark.unit
    def test_default_anthropic(self, mock_api_key):
        backend = create_llm_backend(api_key=mock_api_key)
        assert isinstance(backend, AnthropicBackend)
        assert backend.model_name == "claude-sonnet-4-20250514"
        assert backend.name == "anthropic:claude-sonnet-4-20250514"

    @pytest.mark.unit
    def test_provider_default(self, mock_api_key):
        backend = create_llm_backend(provider="openai", api_key=mock_api_key)
        assert isinstance(backend, OpenAIBackend)
        assert backend.model_name == "gpt-4o"

    @pytest.mark.unit
    def test_deepseek(self, mock_api_key):
        backend = create_llm_backend("deepseek-chat", api_key=mock_api_key)
        assert isinstance(backend, DeepSeekBackend)
        assert backend.provider == "deepseek"
        assert backend._base_url == "https://api.deepseek.com/v1"

    @pytest.mark.unit
    def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(MissingAPIKeyError):
            create_llm_backend(provider="openai")

    @pytest.mark.unit
    def test_env_key(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-env")
        backend = create_llm_backend(provider="anthropic")
        assert backend._api_key == "sk-ant-env"

    @pytest.mark.unit
    def test_google(self, mock_api_key):
        backend = create_llm_backend(provider="google", api_key=mock_api_key)
        assert isinstance(backend, GoogleBackend)
        assert backend.name == "google:gemini-2.0-flash"

    @pytest.mark.unit
    def test_google_missing_key(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        with pytest.raises(MissingAPIKeyError) as exc:
            create_llm_backend("gemini-2.5-pro")
        assert exc.value.provider == "google"

    @pytest.mark.unit
    def test_unsupported_provider_is_configuration_error(self, mock_api_key):
        spec = LLMSpec(
            name="mystery-1", provider="mystery", context_window=1, max_output_tokens=1
        )
        with pytest.raises(ConfigurationError, match="Unsupported provider"):
            create_llm_backend(spec, api_key=mock_api_key)

    @pytest.mark.unit
    def test_sdk_retries_disabled(self, mock_api_key):
        for provider in ("anthropic", "openai", "deepseek"):
            backend = create_llm_backend(provider=provider, api_key=mock_api_key)
            assert backend._max_retries == 0


# =============================================================================
# Streaming against fake SDK clients
# =============================================================================


class _AsyncList:
    def __init__(self, items, error=None):
        self._items = items
        self._error = error
        self.closed = False

    async def __aiter__(self):
        for item in self._items:
            yield item
        if self._error:
            raise self._error

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.closed = True
        return False

    async def aclose(self):
        self.closed = True


def _openai_chunk(text):
    delta = SimpleNamespace(content=text)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta)])


class _FakeOpenAICompletions:
    def __init__(self, chunks, error=None):
        self.chunks = chunks
        self.error = error
        self.kwargs = None
        self.response = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        self.response = _AsyncList(
            [_openai_chunk(c) for c in self.chunks], self.error
        )
        return self.response


class _FakeAnthropicStream:
    def __init__(self, chunks):
        self.text_stream = _AsyncList(chunks)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class _FakeAnthropicMessages:
    def __init__(self, chunks):
        self.chunks = chunks
        self.kwargs = None

    def stream(self, **kwargs):
        self.kwargs = kwargs
        return _FakeAnthropicStream(self.chunks)


class _FakeGeminiModels:
    def __init__(self, chunks=(), text=None, error=None):
        self.chunks = chunks
        self.text = text
        self.error = error
        self.kwargs = None
        self.response = None

    async def generate_content_stream(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        self.response = _AsyncList([SimpleNamespace(text=c) for c in self.chunks])
        return self.response

    async def generate_content(self, **kwargs):
        self.kwargs = kwargs
        return SimpleNamespace(
            text=self.text,
            candidates=[SimpleNamespace(finish_reason=SimpleNamespace(value="STOP"))],
            usage_metadata=SimpleNamespace(
                prompt_token_count=10,
                candidates_token_count=20,
                total_token_count=30,
            ),
            model_version="gemini-2.0-flash-001",
        )


class _FakeGeminiClient:
    def __init__(self, models):
        self.closed = False

        async def aclose():
            self.closed = True

        self.aio = SimpleNamespace(models=models, aclose=aclose)


class TestStreaming:
    """Tests for stream() chunk handling."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_openai_stream_skips_empty(self, mock_api_key):
        backend = OpenAIBackend(api_key=mock_api_key)
        completions = _FakeOpenAICompletions(["<html>", None, "", "</html>"])
        backend._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))

        out = [c async for c in backend.stream("go", system_prompt="sys")]

        assert out == ["<html>", "</html>"]
        assert completions.kwargs["stream"] is True
        assert completions.kwargs["messages"][0] == {"role": "system", "content": "sys"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_openai_stream_error_translated(self, mock_api_key):
        backend = OpenAIBackend(api_key=mock_api_key)
        completions = _FakeOpenAICompletions(
            ["<html>"], error=RuntimeError("rate limit exceeded")
        )
        backend._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))

        seen = []
        with pytest.raises(RateLimitError):
            async for chunk in backend.stream("go"):
                seen.append(chunk)
        assert seen == ["<html>"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_anthropic_stream(self, mock_api_key):
        backend = AnthropicBackend(api_key=mock_api_key)
        messages = _FakeAnthropicMessages(["<html>", "", "<body>"])
        backend._client = SimpleNamespace(messages=messages)

        out = [
            c
            async for c in backend.stream(
                "go", system_prompt="sys", config=GenerationConfig(max_tokens=1000)
            )
        ]

        assert out == ["<html>", "<body>"]
        assert messages.kwargs["system"] == "sys"
        assert messages.kwargs["max_tokens"] == 1000

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_openai_stream_closed_when_consumer_stops(self, mock_api_key):
        backend = OpenAIBackend(api_key=mock_api_key)
        completions = _FakeOpenAICompletions(["<html>", "<body>", "</html>"])
        backend._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))

        chunks = backend.stream("go")
        assert await anext(chunks) == "<html>"
        await chunks.aclose()

        assert completions.response.closed

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_openai_stream_sdk_timeout(self, mock_api_key):
        openai = pytest.importorskip("openai")
        backend = OpenAIBackend(api_key=mock_api_key)
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        completions = _FakeOpenAICompletions(
            ["<html>"], error=openai.APITimeoutError(request=request)
        )
        backend._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))

        with pytest.raises(ProviderTimeoutError, match="timeout"):
            async for _ in backend.stream("go"):
                pass
        assert completions.response.closed


class TestGoogleBackend:
    """Tests for the Gemini backend against a fake google-genai client."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stream(self, mock_api_key):
        backend = GoogleBackend(api_key=mock_api_key)
        models = _FakeGeminiModels(chunks=["<html>", None, "", "</html>"])
        backend._client = _FakeGeminiClient(models)

        out = [c async for c in backend.stream("go", system_prompt="sys")]

        assert out == ["<html>", "</html>"]
        assert models.kwargs["model"] == "gemini-2.0-flash"
        assert models.kwargs["contents"] == "go"
        assert models.kwargs["config"].system_instruction == "sys"
        assert models.kwargs["config"].max_output_tokens == 8192
        assert models.response.closed

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stream_error_translated(self, mock_api_key):
        backend = GoogleBackend(api_key=mock_api_key)
        models = _FakeGeminiModels(error=RuntimeError("429 RESOURCE_EXHAUSTED"))
        backend._client = _FakeGeminiClient(models)

        with pytest.raises(RateLimitError):
            async for _ in backend.stream("go"):
                pass

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_generate(self, mock_api_key):
        backend = GoogleBackend(api_key=mock_api_key, model="gemini-2.5-pro")
        models = _FakeGeminiModels(text="<html>blue</html>")
        backend._client = _FakeGeminiClient(models)

        result = await backend.generate(
            "make it blue", config=GenerationConfig(max_tokens=1000)
        )

        assert result.content == "<html>blue</html>"
        assert result.finish_reason == "STOP"
        assert result.usage == {
            "prompt_tokens": 10,
            "completion_tokens": 20,
            "total_tokens": 30,
        }
        assert models.kwargs["model"] == "gemini-2.5-pro"
        assert models.kwargs["config"].max_output_tokens == 1000
        assert models.kwargs["config"].system_instruction is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_generate_without_text(self, mock_api_key):
        backend = GoogleBackend(api_key=mock_api_key)
        backend._client = _FakeGeminiClient(_FakeGeminiModels(text=""))
        with pytest.raises(InvalidResponseError):
            await backend.generate("go")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_aclose(self, mock_api_key):
        backend = GoogleBackend(api_key=mock_api_key)
        client = _FakeGeminiClient(_FakeGeminiModels())
        backend._client = client

        await backend.aclose()

        assert client.closed
        assert backend._client is None
