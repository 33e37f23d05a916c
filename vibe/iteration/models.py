"""Result types returned by the iteration manager."""

from dataclasses import dataclass
from typing import Any

from ..records import Iteration, Variant


@dataclass
class IterationResult:
    """Outcome of one successful refinement.

    Attributes:
        iteration: The appended iteration record.
        variant: Variant after it was pointed at the new artifact.
        provider: Provider that served the refinement.
    """

    iteration: Iteration
    variant: Variant
    provider: str = ""

    @property
    def html_url(self) -> str:
        return self.iteration.html_url

    @property
    def html_path(self) -> str:
        return self.iteration.html_path

    @property
    def iteration_number(self) -> int:
        return self.iteration.iteration_number

    @property
    def duration_ms(self) -> int:
        return self.iteration.generation_duration_ms

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the iteration response body."""
        return {
            "success": True,
            "iteration": self.iteration.to_dict(),
            "htmlUrl": self.html_url,
            "htmlPath": self.html_path,
            "iterationNumber": self.iteration_number,
            "durationMs": self.duration_ms,
            "model": self.iteration.generation_model,
            "provider": self.provider,
        }


@dataclass
class RevertResult:
    """Outcome of reverting a variant to an iteration's prior content.

    Attributes:
        html_url: URL of the newly stored revert artifact.
        html_path: Path of the revert artifact.
        iteration_id: Iteration whose html_before was restored.
        variant: Variant after it was repointed.
    """

    html_url: str
    html_path: str
    iteration_id: str
    variant: Variant

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "htmlUrl": self.html_url,
            "htmlPath": self.html_path,
            "revertedTo": self.iteration_id,
            "iterationCount": self.variant.iteration_count,
        }


__all__ = ["IterationResult", "RevertResult"]
