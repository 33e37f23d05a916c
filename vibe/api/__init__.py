"""HTTP API: streaming generation, iteration, revert and session reads.

Example:
    >>> from vibe.api import create_app
    >>> app = create_app()
"""

from .lib import create_app

__all__ = ["create_app"]
