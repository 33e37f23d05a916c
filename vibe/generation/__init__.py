"""Streaming variant generation.

Main components:
- Orchestrator: drives one variant (or a whole session) through generation
- VariantStateMachine: variant status transition rules
- ChunkEvent / CompleteEvent / ErrorEvent: the generation event stream
- encode_sse: Server-Sent Events framing for the HTTP surface
"""

from .lib import CANCELLED_MESSAGE, SUPERSEDED_MESSAGE, Orchestrator, validate_html
from .models import (
    ChunkEvent,
    CompleteEvent,
    ErrorEvent,
    GenerationEvent,
    encode_sse,
)
from .state import VariantStateMachine

__all__ = [
    "Orchestrator",
    "VariantStateMachine",
    "validate_html",
    "ChunkEvent",
    "CompleteEvent",
    "ErrorEvent",
    "GenerationEvent",
    "encode_sse",
    "CANCELLED_MESSAGE",
    "SUPERSEDED_MESSAGE",
]
