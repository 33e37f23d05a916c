"""Variant lifecycle rules.

    pending -> generating -> complete | failed
    failed -> generating        (manual retry)
    complete -> generating      (regeneration)
    generating -> generating    (a newer attempt supersedes an in-flight one)

`complete` is otherwise stable: iterations and reverts repoint its artifact
without changing status.
"""

from ..core.errors import InvalidTransitionError
from ..records import Variant, VariantStatus

_TRANSITIONS: dict[VariantStatus, frozenset[VariantStatus]] = {
    VariantStatus.PENDING: frozenset({VariantStatus.GENERATING}),
    VariantStatus.GENERATING: frozenset(
        {VariantStatus.GENERATING, VariantStatus.COMPLETE, VariantStatus.FAILED}
    ),
    VariantStatus.COMPLETE: frozenset({VariantStatus.GENERATING}),
    VariantStatus.FAILED: frozenset({VariantStatus.GENERATING}),
}


class VariantStateMachine:
    """Validates variant status transitions."""

    transitions = _TRANSITIONS

    @classmethod
    def can_transition(cls, current: VariantStatus, target: VariantStatus) -> bool:
        return target in cls.transitions[current]

    @classmethod
    def check(cls, current: VariantStatus, target: VariantStatus) -> None:
        """Raise InvalidTransitionError unless current -> target is allowed."""
        if not cls.can_transition(current, target):
            raise InvalidTransitionError(
                f"Variant cannot move from {current.value} to {target.value}"
            )

    @staticmethod
    def require_complete(variant: Variant) -> None:
        """Raise InvalidTransitionError unless the variant is complete.

        Iteration and revert only operate on complete variants.
        """
        if variant.status != VariantStatus.COMPLETE:
            raise InvalidTransitionError(
                f"Variant {variant.id} is {variant.status.value}; "
                f"it must be complete",
                variant_id=variant.id,
            )


__all__ = ["VariantStateMachine"]
