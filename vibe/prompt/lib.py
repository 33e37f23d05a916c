"""PromptBuilder for variant generation and iteration prompts.

Turns a VariantPlan plus the source screen into a generation prompt, and a
current HTML document plus a refinement instruction into an iteration
prompt. Also cleans non-streamed model output before validation.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vibe.records import VariantPlan


GENERATION_SYSTEM_PROMPT = """You are an expert front-end developer creating a HIGH-FIDELITY HTML prototype.

## YOUR TASK:
You will receive:
1. The SOURCE HTML of an existing screen (this is your reference)
2. A VARIANT PLAN describing what changes to make

## YOUR OUTPUT:
Generate a complete, standalone HTML document that:
1. Keeps the structure and visual language of the source screen
2. Applies the variant plan's changes thoughtfully
3. Is fully functional with all interactive elements
4. Is production-quality, responsive, and accessible

## CRITICAL REQUIREMENTS:
1. Output ONLY valid HTML - no markdown, no explanations
2. Start with <!DOCTYPE html> and include complete <html>, <head>, <body>
3. Include ALL styles inline or in a <style> block - no external CSS
4. Include any necessary JavaScript for interactivity"""

ITERATION_SYSTEM_PROMPT = """You are an expert front-end developer refining a UI based on user feedback.

Your task is to modify the provided HTML according to the user's iteration request. The result should be a complete, self-contained HTML document.

CRITICAL REQUIREMENTS:
1. Return ONLY the complete HTML document - no explanations, no markdown code blocks
2. Make ONLY the changes requested by the user
3. Preserve all other functionality and styling from the original
4. Ensure the HTML is valid and renders correctly
5. Maintain responsive design patterns

Start your response directly with <!DOCTYPE html> or <html>."""


@dataclass
class PromptConfig:
    """Configuration for prompt building.

    Attributes:
        max_source_length: Source HTML longer than this is truncated.
        include_style_notes: Whether to include the plan's style notes.
    """

    max_source_length: int = 60000
    include_style_notes: bool = True


@dataclass(frozen=True)
class BuiltPrompt:
    """A system/user prompt pair ready for an LLM backend."""

    system: str
    user: str

    @property
    def total_tokens_estimate(self) -> int:
        return (len(self.system) + len(self.user)) // 4  # Rough estimate


class PromptBuilder:
    """Builds generation and iteration prompts.

    Example:
        >>> builder = PromptBuilder()
        >>> prompt = builder.build_generation(plan, "<html>...</html>")
        >>> async for chunk in backend.stream(prompt.user, system_prompt=prompt.system):
        ...     ...
    """

    def __init__(self, config: PromptConfig | None = None):
        self._config = config or PromptConfig()

    def build_generation(self, plan: "VariantPlan", source_html: str) -> BuiltPrompt:
        """Build the prompt that turns a plan into a full HTML variant.

        Args:
            plan: Variant plan to apply.
            source_html: The screen being modified.

        Returns:
            BuiltPrompt with the generation system prompt.
        """
        parts = [self._format_plan(plan), self._format_source(source_html)]
        parts.append(
            "Generate the complete HTML document for this variant. "
            "Return ONLY the HTML."
        )
        return BuiltPrompt(system=GENERATION_SYSTEM_PROMPT, user="\n\n".join(parts))

    def build_iteration(self, current_html: str, instruction: str) -> BuiltPrompt:
        """Build the prompt that applies one refinement to a variant.

        Args:
            current_html: The variant's current HTML.
            instruction: The user's refinement request.

        Returns:
            BuiltPrompt with the iteration system prompt.
        """
        user = (
            f"Current HTML to modify:\n{current_html}\n\n"
            f"User's iteration request:\n{instruction}\n\n"
            "Generate the complete modified HTML document implementing this "
            "change. Return ONLY the HTML."
        )
        return BuiltPrompt(system=ITERATION_SYSTEM_PROMPT, user=user)

    def _format_plan(self, plan: "VariantPlan") -> str:
        lines = ["## VARIANT TO CREATE:", f"**{plan.title}**", ""]
        if plan.description:
            lines += [plan.description, ""]
        if plan.key_changes:
            lines.append("## CHANGES TO APPLY:")
            lines += [f"{i}. {change}" for i, change in enumerate(plan.key_changes, 1)]
            lines.append("")
        if self._config.include_style_notes and plan.style_notes:
            lines += ["## STYLE NOTES:", plan.style_notes]
        return "\n".join(lines).rstrip()

    def _format_source(self, source_html: str) -> str:
        html = source_html
        if len(html) > self._config.max_source_length:
            html = html[: self._config.max_source_length] + "\n<!-- truncated -->"
        return f"## SOURCE HTML:\n```html\n{html}\n```"


def clean_html_response(html: str) -> str:
    """Strip surrounding whitespace and markdown code fences from model output.

    >>> clean_html_response("```html\\n<p>x</p>\\n```")
    '<p>x</p>'
    """
    cleaned = html.strip()
    if cleaned.startswith("```html"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


__all__ = [
    "BuiltPrompt",
    "PromptBuilder",
    "PromptConfig",
    "GENERATION_SYSTEM_PROMPT",
    "ITERATION_SYSTEM_PROMPT",
    "clean_html_response",
]
