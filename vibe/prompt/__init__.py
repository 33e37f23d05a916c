"""Prompt building module for variant generation and iteration.

Provides PromptBuilder for the system/user prompt pairs sent to LLM
backends, and clean_html_response for fence-wrapped model output.
"""

from vibe.prompt.lib import (
    GENERATION_SYSTEM_PROMPT,
    ITERATION_SYSTEM_PROMPT,
    BuiltPrompt,
    PromptBuilder,
    PromptConfig,
    clean_html_response,
)

__all__ = [
    "BuiltPrompt",
    "PromptBuilder",
    "PromptConfig",
    "GENERATION_SYSTEM_PROMPT",
    "ITERATION_SYSTEM_PROMPT",
    "clean_html_response",
]
