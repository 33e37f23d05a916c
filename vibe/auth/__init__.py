"""Request authentication and provider credentials.

Example:
    >>> from vibe.auth import CredentialResolver, verify_bearer
"""

from .lib import CredentialResolver, verify_bearer

__all__ = ["verify_bearer", "CredentialResolver"]
