"""Bearer credential validation and provider credential resolution.

Both run before any variant state is written: a request that fails here
leaves the record store untouched.

Example:
    >>> user_id = verify_bearer(request.headers.get("Authorization"))
    >>> backend = CredentialResolver(store).create_backend(user_id, "openai")
"""

import logging

import jwt

from ..config import EnvVar, get_default_provider, get_environment
from ..core.errors import AuthenticationError, ConfigurationError
from ..llm import (
    LLMBackend,
    LLMProviderType,
    MissingAPIKeyError,
    create_llm_backend,
    get_llm_spec,
    get_provider_type,
)
from ..records import RecordStore

logger = logging.getLogger(__name__)

_PROVIDER_KEYS = {
    LLMProviderType.ANTHROPIC: EnvVar.ANTHROPIC_API_KEY,
    LLMProviderType.OPENAI: EnvVar.OPENAI_API_KEY,
    LLMProviderType.GOOGLE: EnvVar.GOOGLE_API_KEY,
    LLMProviderType.DEEPSEEK: EnvVar.DEEPSEEK_API_KEY,
}


# =============================================================================
# Bearer Tokens
# =============================================================================


def verify_bearer(
    authorization: str | None,
    *,
    secret: str | None = None,
    algorithm: str | None = None,
) -> str:
    """Validate an ``Authorization: Bearer <token>`` header.

    Args:
        authorization: Raw header value.
        secret: Signing secret. Defaults to VIBE_JWT_SECRET.
        algorithm: Accepted algorithm. Defaults to VIBE_JWT_ALGORITHM.

    Returns:
        The token's subject (user id).

    Raises:
        AuthenticationError: Missing, malformed, expired or unsigned token.
        ConfigurationError: No signing secret configured.
    """
    if not authorization:
        raise AuthenticationError("Missing authorization header")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Authorization header must be a bearer token")

    secret = secret or get_environment(EnvVar.VIBE_JWT_SECRET)
    if not secret:
        raise ConfigurationError("VIBE_JWT_SECRET is not configured")
    algorithm = get_environment(EnvVar.VIBE_JWT_ALGORITHM, override=algorithm)

    try:
        claims = jwt.decode(
            token.strip(),
            secret,
            algorithms=[algorithm],
            options={"require": ["sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        logger.debug(f"Rejected bearer token: {e}")
        raise AuthenticationError("Invalid token") from e

    return str(claims["sub"])


# =============================================================================
# Provider Credentials
# =============================================================================


class CredentialResolver:
    """Finds the API key a user's request should run with.

    Resolution: key stored for the user > provider environment variable.

    Args:
        store: Record store holding per-user provider keys.
    """

    def __init__(self, store: RecordStore):
        self._store = store

    def resolve(self, user_id: str | None, provider: str | None = None) -> str:
        """Get the API key for a provider.

        Raises:
            ConfigurationError: Unknown provider.
            MissingAPIKeyError: No key stored or configured.
        """
        kind = get_provider_type(provider or get_default_provider())
        if user_id:
            stored = self._store.get_api_key(user_id, kind.value)
            if stored:
                return stored
        key = get_environment(_PROVIDER_KEYS[kind])
        if not key:
            raise MissingAPIKeyError(kind.value)
        return key

    def create_backend(
        self,
        user_id: str | None,
        provider: str | None = None,
        model: str | None = None,
    ) -> LLMBackend:
        """Build a provider backend with the user's credential.

        The provider is taken from the model when only a model is given.

        Raises:
            ConfigurationError: Unknown provider or model, or no API key.
        """
        if provider is None and model is not None:
            provider = get_llm_spec(model).provider.value
        provider = provider or get_default_provider()
        api_key = self.resolve(user_id, provider)
        logger.debug(f"Resolved {provider} credential for user {user_id}")
        return create_llm_backend(model, provider=provider, api_key=api_key)


__all__ = ["verify_bearer", "CredentialResolver"]
