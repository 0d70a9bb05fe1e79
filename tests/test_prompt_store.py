from __future__ import annotations

import pytest

from search_aggregator.services.prompt_store import render_prompt


def test_render_prompt_substitutes_template_values():
    prompt = render_prompt("query_generation.system_prompt", count=7)
    assert "Generate 7 distinct" in prompt


def test_render_prompt_keeps_dollar_signs_in_values():
    prompt = render_prompt(
        "relevance.batch_user_prompt",
        prompt="cheap flights under $200",
        items="1) Title: x\n",
    )
    assert "cheap flights under $200" in prompt


def test_render_prompt_raises_for_unknown_key():
    with pytest.raises(KeyError):
        render_prompt("missing.prompt.key")


def test_render_prompt_raises_for_missing_value():
    with pytest.raises(KeyError):
        render_prompt("relevance.batch_user_prompt", prompt="only prompt")
