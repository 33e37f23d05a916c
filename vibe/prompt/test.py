"""Tests for PromptBuilder module."""

import pytest

from vibe.prompt import (
    GENERATION_SYSTEM_PROMPT,
    ITERATION_SYSTEM_PROMPT,
    PromptBuilder,
    PromptConfig,
    clean_html_response,
)
from vibe.records import VariantPlan


@pytest.fixture
def plan() -> VariantPlan:
    return VariantPlan.create(
        session_id="s1",
        variant_index=2,
        title="Bold Hero",
        description="Make the hero section the focal point.",
        key_changes=["Enlarge headline", "Add gradient background"],
        style_notes="Warm palette",
    )


class TestPromptBuilder:
    """Tests for PromptBuilder class."""

    @pytest.mark.unit
    def test_generation_prompt_contains_plan(self, plan):
        prompt = PromptBuilder().build_generation(plan, "<main>source</main>")

        assert prompt.system == GENERATION_SYSTEM_PROMPT
        assert "**Bold Hero**" in prompt.user
        assert "1. Enlarge headline" in prompt.user
        assert "2. Add gradient background" in prompt.user
        assert "Warm palette" in prompt.user
        assert "<main>source</main>" in prompt.user

    @pytest.mark.unit
    def test_style_notes_can_be_excluded(self, plan):
        builder = PromptBuilder(PromptConfig(include_style_notes=False))
        assert "STYLE NOTES" not in builder.build_generation(plan, "<p/>").user

    @pytest.mark.unit
    def test_source_truncated(self, plan):
        builder = PromptBuilder(PromptConfig(max_source_length=10))
        prompt = builder.build_generation(plan, "x" * 50)
        assert "x" * 11 not in prompt.user
        assert "<!-- truncated -->" in prompt.user

    @pytest.mark.unit
    def test_iteration_prompt(self):
        prompt = PromptBuilder().build_iteration("<p>old</p>", "make the button blue")
        assert prompt.system == ITERATION_SYSTEM_PROMPT
        assert "<p>old</p>" in prompt.user
        assert "make the button blue" in prompt.user
        assert prompt.total_tokens_estimate > 0


class TestCleanHtmlResponse:
    """Tests for fence stripping."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "raw",
        [
            "```html\n<p>x</p>\n```",
            "```\n<p>x</p>\n```",
            "  <p>x</p>  ",
            "<p>x</p>```",
        ],
    )
    def test_strips_fences(self, raw):
        assert clean_html_response(raw) == "<p>x</p>"

    @pytest.mark.unit
    def test_empty(self):
        assert clean_html_response("   ") == ""
