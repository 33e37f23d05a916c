"""vibe-variants: variant generation and iteration orchestrator for HTML screens."""

from vibe.core import VibeError
from vibe.generation import ChunkEvent, CompleteEvent, ErrorEvent, Orchestrator
from vibe.iteration import IterationManager
from vibe.records import Iteration, Session, Variant, VariantPlan
from vibe.session import CompletionAggregator, SessionLifecycle

__all__ = [
    # Records
    "Session",
    "VariantPlan",
    "Variant",
    "Iteration",
    # Orchestration
    "Orchestrator",
    "ChunkEvent",
    "CompleteEvent",
    "ErrorEvent",
    "CompletionAggregator",
    "SessionLifecycle",
    "IterationManager",
    # Errors
    "VibeError",
]
