"""DeepSeek backend implementation (OpenAI-compatible API)."""

from ...config import EnvVar, get_environment
from .base import MissingAPIKeyError
from .model_spec import DEFAULT_DEEPSEEK_MODEL, LLMSpec, get_llm_spec
from .openai import OpenAIBackend


class DeepSeekBackend(OpenAIBackend):
    """DeepSeek backend using the OpenAI-compatible API.

    Environment:
        DEEPSEEK_API_KEY: API key (required if not passed to constructor).
    """

    DEEPSEEK_BASE_URL = "https://api.deepseek.com/v1"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | LLMSpec = DEFAULT_DEEPSEEK_MODEL.spec.name,
        base_url: str | None = None,
        timeout: float = 300.0,
        max_retries: int = 0,
    ):
        """Initialize DeepSeek backend.

        Args:
            api_key: DeepSeek API key. Falls back to DEEPSEEK_API_KEY env var.
            model: Model name (deepseek-chat, deepseek-reasoner).
            base_url: Optional custom API endpoint.
            timeout: Request timeout in seconds.
            max_retries: SDK retry attempts for transient errors (none by
                default; a failed call surfaces immediately).

        Raises:
            MissingAPIKeyError: If no API key available.
        """
        resolved_api_key = api_key or get_environment(EnvVar.DEEPSEEK_API_KEY)
        if not resolved_api_key:
            raise MissingAPIKeyError("deepseek")

        spec = get_llm_spec(model)

        # Parent would look up OPENAI_API_KEY, so set fields directly
        self._api_key = resolved_api_key
        self._spec = spec
        self._base_url = base_url or spec.base_url or self.DEEPSEEK_BASE_URL
        self._timeout = timeout
        self._max_retries = max_retries
        self._client = None

    @property
    def provider(self) -> str:
        """Get the provider identifier."""
        return "deepseek"


__all__ = ["DeepSeekBackend"]
