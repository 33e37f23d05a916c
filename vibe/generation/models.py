"""Events emitted by streaming variant generation.

A generation stream is zero or more ChunkEvents followed by exactly one
terminal CompleteEvent or ErrorEvent.
"""

import json
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ChunkEvent:
    """One provider text chunk, forwarded as soon as it arrives."""

    content: str

    type = "chunk"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "content": self.content}


@dataclass(frozen=True)
class CompleteEvent:
    """Terminal success event.

    Attributes:
        html_url: Public URL of the stored artifact.
        html_path: Artifact store path.
        html_length: Length of the stored HTML in characters.
        duration_ms: Wall-clock generation time.
        model: Model that produced the HTML.
        provider: Provider that served the model.
        variant_id: Persisted variant ID.
    """

    html_url: str
    html_path: str
    html_length: int
    duration_ms: int
    model: str
    provider: str
    variant_id: str = ""

    type = "complete"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "htmlUrl": self.html_url,
            "htmlPath": self.html_path,
            "htmlLength": self.html_length,
            "durationMs": self.duration_ms,
            "model": self.model,
            "provider": self.provider,
            "variantId": self.variant_id,
        }


@dataclass(frozen=True)
class ErrorEvent:
    """Terminal failure event.

    Attributes:
        error: Human-readable cause.
        error_type: Stable error code from the error taxonomy.
    """

    error: str
    error_type: str = "error"

    type = "error"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "error": self.error, "errorType": self.error_type}


GenerationEvent = ChunkEvent | CompleteEvent | ErrorEvent


def encode_sse(event: GenerationEvent) -> str:
    """Encode an event as one Server-Sent Events frame."""
    return f"event: {event.type}\ndata: {json.dumps(event.to_dict())}\n\n"


__all__ = [
    "ChunkEvent",
    "CompleteEvent",
    "ErrorEvent",
    "GenerationEvent",
    "encode_sse",
]
