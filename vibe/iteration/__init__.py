"""Iteration and revert for completed variants.

Example:
    >>> from vibe.iteration import IterationManager
    >>> manager = IterationManager(store, artifacts)
    >>> result = await manager.iterate(variant_id, "make the button blue", backend)
"""

from .lib import IterationManager
from .models import IterationResult, RevertResult

__all__ = [
    "IterationManager",
    "IterationResult",
    "RevertResult",
]
