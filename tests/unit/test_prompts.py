"""Tests for coaching prompt builders."""

from __future__ import annotations

import pytest

from wgw.domain.analysis import prompts

pytestmark = [pytest.mark.analysis]


def test_fallback_template_names_category_and_never_empty():
    assert "Family" in prompts.fallback_coaching("Family")
    assert "your life" in prompts.fallback_coaching("   ")
    assert prompts.fallback_coaching(None).strip()


def test_select_quote_matches_category_themes():
    quote = prompts.select_quote("Health & Wellness", seed=0)

    assert set(quote.themes) & set(prompts.CATEGORY_THEMES["Health & Wellness"])


def test_select_quote_is_deterministic_per_seed():
    assert prompts.select_quote("Career", seed=3) == prompts.select_quote("Career", seed=3)
    assert prompts.select_quote("Unlisted", seed=4) == prompts.QUOTES[4]


def test_coaching_prompt_carries_text_guidance_and_photo():
    prompt = prompts.build_coaching_prompt(
        "our tomatoes finally ripened",
        "Simple Pleasures",
        "Red tomatoes on a vine.",
        seed=1,
        streak=5,
    )

    assert "What's Going Well" in prompt.system
    assert prompts.CATEGORY_GUIDANCE["Simple Pleasures"] in prompt.system
    assert "5-day gratitude streak" in prompt.system
    assert '"our tomatoes finally ripened"' in prompt.user
    assert "Red tomatoes on a vine." in prompt.user


def test_unknown_category_uses_default_guidance():
    prompt = prompts.build_coaching_prompt("a good day", "Hobbies")

    assert prompts.DEFAULT_GUIDANCE in prompt.system
    assert "streak" not in prompt.system


def test_simplified_prompt_skips_blank_reflection():
    prompt = prompts.build_simplified_prompt("  ", "Learning")

    assert prompt.system == prompts.SIMPLE_SYSTEM
    assert "Their reflection" not in prompt.user
    assert '"Learning"' in prompt.user


def test_vision_prompt_includes_caption():
    prompt = prompts.build_vision_prompt("Family", " our dog ")

    assert prompt.system == prompts.VISION_SYSTEM
    assert '"our dog"' in prompt.user
