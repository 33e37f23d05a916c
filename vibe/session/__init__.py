"""Session lifecycle and completion aggregation.

Example:
    >>> from vibe.session import CompletionAggregator, SessionLifecycle
    >>> lifecycle = SessionLifecycle(store)
    >>> session = lifecycle.create_session(source_html)
    >>> CompletionAggregator(store).recompute(session.id)
    False
"""

from .lib import MANUAL_STATUSES, CompletionAggregator, SessionLifecycle

__all__ = [
    "CompletionAggregator",
    "SessionLifecycle",
    "MANUAL_STATUSES",
]
