"""Model specification system for LLM backends.

Provides a registry of supported generation models with their capabilities,
context windows, and provider information.
"""

from dataclasses import dataclass, field
from enum import Enum

from ...core.errors import ConfigurationError


class LLMCapability(Enum):
    """Capabilities that an LLM model may support."""

    VISION = "vision"  # Image input support
    STREAMING = "streaming"  # Streaming response support
    SYSTEM_PROMPT = "system_prompt"  # Dedicated system role
    EXTENDED_THINKING = "extended_thinking"  # Extended reasoning mode


class LLMProviderType(Enum):
    """Available LLM backend providers."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GOOGLE = "google"
    DEEPSEEK = "deepseek"


@dataclass(frozen=True)
class LLMSpec:
    """Specification for an LLM model.

    Attributes:
        name: Model identifier (e.g., 'gpt-4o', 'claude-sonnet-4-20250514').
        provider: Backend provider type.
        context_window: Maximum context size in tokens.
        max_output_tokens: Maximum generation tokens.
        capabilities: Set of supported capabilities.
        description: Human-readable description.
        api_key_env_var: Environment variable name for API key.
        base_url: Optional custom API endpoint.
    """

    name: str
    provider: LLMProviderType
    context_window: int
    max_output_tokens: int
    capabilities: frozenset[LLMCapability] = field(default_factory=frozenset)
    description: str = ""
    api_key_env_var: str = ""
    base_url: str | None = None

    def supports(self, capability: LLMCapability) -> bool:
        """Check if model supports a capability."""
        return capability in self.capabilities


_OPENAI_FULL = frozenset(
    {
        LLMCapability.VISION,
        LLMCapability.STREAMING,
        LLMCapability.SYSTEM_PROMPT,
    }
)

_ANTHROPIC_FULL = frozenset(
    {
        LLMCapability.VISION,
        LLMCapability.STREAMING,
        LLMCapability.SYSTEM_PROMPT,
        LLMCapability.EXTENDED_THINKING,
    }
)

_GOOGLE_FULL = frozenset(
    {
        LLMCapability.VISION,
        LLMCapability.STREAMING,
        LLMCapability.SYSTEM_PROMPT,
    }
)

_DEEPSEEK_FULL = frozenset(
    {
        LLMCapability.STREAMING,
        LLMCapability.SYSTEM_PROMPT,
    }
)


class LLMModel(Enum):
    """Registry of available generation models."""

    # === Anthropic Claude Models ===
    CLAUDE_SONNET_4 = LLMSpec(
        name="claude-sonnet-4-20250514",
        provider=LLMProviderType.ANTHROPIC,
        context_window=200000,
        max_output_tokens=64000,
        capabilities=_ANTHROPIC_FULL,
        description="Anthropic Sonnet 4, default for variant generation",
        api_key_env_var="ANTHROPIC_API_KEY",
    )

    CLAUDE_SONNET_4_5 = LLMSpec(
        name="claude-sonnet-4-5",
        provider=LLMProviderType.ANTHROPIC,
        context_window=200000,
        max_output_tokens=64000,
        capabilities=_ANTHROPIC_FULL,
        description="Anthropic best balanced for coding and agents",
        api_key_env_var="ANTHROPIC_API_KEY",
    )

    CLAUDE_OPUS_4_5 = LLMSpec(
        name="claude-opus-4-5",
        provider=LLMProviderType.ANTHROPIC,
        context_window=200000,
        max_output_tokens=64000,
        capabilities=_ANTHROPIC_FULL,
        description="Anthropic most intelligent model",
        api_key_env_var="ANTHROPIC_API_KEY",
    )

    CLAUDE_HAIKU_4_5 = LLMSpec(
        name="claude-haiku-4-5",
        provider=LLMProviderType.ANTHROPIC,
        context_window=200000,
        max_output_tokens=64000,
        capabilities=_ANTHROPIC_FULL,
        description="Anthropic fastest model",
        api_key_env_var="ANTHROPIC_API_KEY",
    )

    # === OpenAI Models ===
    GPT_4O = LLMSpec(
        name="gpt-4o",
        provider=LLMProviderType.OPENAI,
        context_window=128000,
        max_output_tokens=16384,
        capabilities=_OPENAI_FULL,
        description="OpenAI multimodal flagship, default for OpenAI",
        api_key_env_var="OPENAI_API_KEY",
    )

    GPT_4_1 = LLMSpec(
        name="gpt-4.1",
        provider=LLMProviderType.OPENAI,
        context_window=128000,
        max_output_tokens=32768,
        capabilities=_OPENAI_FULL,
        description="OpenAI developer favorite for coding",
        api_key_env_var="OPENAI_API_KEY",
    )

    GPT_4_1_MINI = LLMSpec(
        name="gpt-4.1-mini",
        provider=LLMProviderType.OPENAI,
        context_window=128000,
        max_output_tokens=16384,
        capabilities=_OPENAI_FULL,
        description="OpenAI fast and efficient small model",
        api_key_env_var="OPENAI_API_KEY",
    )

    # === Google Gemini Models ===
    GEMINI_2_0_FLASH = LLMSpec(
        name="gemini-2.0-flash",
        provider=LLMProviderType.GOOGLE,
        context_window=1048576,
        max_output_tokens=8192,
        capabilities=_GOOGLE_FULL,
        description="Google fast multimodal model, default for Google",
        api_key_env_var="GOOGLE_API_KEY",
    )

    GEMINI_2_5_FLASH = LLMSpec(
        name="gemini-2.5-flash",
        provider=LLMProviderType.GOOGLE,
        context_window=1048576,
        max_output_tokens=65536,
        capabilities=_GOOGLE_FULL,
        description="Google price-performance thinking model",
        api_key_env_var="GOOGLE_API_KEY",
    )

    GEMINI_2_5_PRO = LLMSpec(
        name="gemini-2.5-pro",
        provider=LLMProviderType.GOOGLE,
        context_window=1048576,
        max_output_tokens=65536,
        capabilities=_GOOGLE_FULL,
        description="Google most capable thinking model",
        api_key_env_var="GOOGLE_API_KEY",
    )

    # === DeepSeek Models ===
    DEEPSEEK_CHAT = LLMSpec(
        name="deepseek-chat",
        provider=LLMProviderType.DEEPSEEK,
        context_window=64000,
        max_output_tokens=8192,
        capabilities=_DEEPSEEK_FULL,
        description="DeepSeek V3 chat model",
        api_key_env_var="DEEPSEEK_API_KEY",
        base_url="https://api.deepseek.com/v1",
    )

    DEEPSEEK_REASONER = LLMSpec(
        name="deepseek-reasoner",
        provider=LLMProviderType.DEEPSEEK,
        context_window=64000,
        max_output_tokens=8192,
        capabilities=_DEEPSEEK_FULL,
        description="DeepSeek R1 reasoning model",
        api_key_env_var="DEEPSEEK_API_KEY",
        base_url="https://api.deepseek.com/v1",
    )

    @property
    def spec(self) -> LLMSpec:
        """Get the LLMSpec for this model."""
        return self.value

    @classmethod
    def by_name(cls, name: str) -> "LLMModel | None":
        """Look up model by name string.

        Args:
            name: Model name to find.

        Returns:
            LLMModel if found, None otherwise.
        """
        for model in cls:
            if model.spec.name == name:
                return model
        return None

    @classmethod
    def list_by_provider(cls, provider: LLMProviderType) -> list["LLMModel"]:
        """Get all models for a specific provider."""
        return [m for m in cls if m.spec.provider == provider]


# Default models for each provider
DEFAULT_ANTHROPIC_MODEL = LLMModel.CLAUDE_SONNET_4
DEFAULT_OPENAI_MODEL = LLMModel.GPT_4O
DEFAULT_GOOGLE_MODEL = LLMModel.GEMINI_2_0_FLASH
DEFAULT_DEEPSEEK_MODEL = LLMModel.DEEPSEEK_CHAT

# Overall default
DEFAULT_MODEL = DEFAULT_ANTHROPIC_MODEL

_PROVIDER_DEFAULTS = {
    LLMProviderType.ANTHROPIC: DEFAULT_ANTHROPIC_MODEL,
    LLMProviderType.OPENAI: DEFAULT_OPENAI_MODEL,
    LLMProviderType.GOOGLE: DEFAULT_GOOGLE_MODEL,
    LLMProviderType.DEEPSEEK: DEFAULT_DEEPSEEK_MODEL,
}


def get_provider_type(provider: str | LLMProviderType) -> LLMProviderType:
    """Resolve a provider name to its LLMProviderType.

    Raises:
        ConfigurationError: If the provider is not supported.
    """
    if isinstance(provider, LLMProviderType):
        return provider
    try:
        return LLMProviderType(provider.lower())
    except ValueError as e:
        supported = ", ".join(p.value for p in LLMProviderType)
        raise ConfigurationError(
            f"Unsupported provider: {provider}. Supported: {supported}"
        ) from e


def get_default_model(provider: str | LLMProviderType) -> LLMModel:
    """Get the default model for a provider."""
    return _PROVIDER_DEFAULTS[get_provider_type(provider)]


def get_llm_spec(
    model: str | LLMModel | LLMSpec,
    provider: str | LLMProviderType | None = None,
) -> LLMSpec:
    """Resolve a model reference to its LLMSpec.

    Unregistered model names are accepted when a provider is given; they
    inherit the limits of that provider's default model.

    Args:
        model: Can be a model name string, LLMModel enum, or LLMSpec.
        provider: Optional provider for unregistered model names.

    Returns:
        The resolved LLMSpec.

    Raises:
        ConfigurationError: If the model name is unknown and no provider given,
            or the model belongs to a different provider.
    """
    if isinstance(model, LLMSpec):
        return model
    if isinstance(model, LLMModel):
        return model.spec

    found = LLMModel.by_name(model)
    if found:
        if provider is not None and found.spec.provider != get_provider_type(
            provider
        ):
            raise ConfigurationError(
                f"Model {model} is not served by provider {provider}"
            )
        return found.spec

    if provider is None:
        raise ConfigurationError(f"Unknown model: {model}")

    base = get_default_model(provider).spec
    return LLMSpec(
        name=model,
        provider=base.provider,
        context_window=base.context_window,
        max_output_tokens=base.max_output_tokens,
        capabilities=base.capabilities,
        description=f"Unregistered {base.provider.value} model",
        api_key_env_var=base.api_key_env_var,
        base_url=base.base_url,
    )


__all__ = [
    "LLMCapability",
    "LLMProviderType",
    "LLMSpec",
    "LLMModel",
    "DEFAULT_ANTHROPIC_MODEL",
    "DEFAULT_OPENAI_MODEL",
    "DEFAULT_GOOGLE_MODEL",
    "DEFAULT_DEEPSEEK_MODEL",
    "DEFAULT_MODEL",
    "get_default_model",
    "get_llm_spec",
    "get_provider_type",
]
