from __future__ import annotations

from unittest.mock import AsyncMock

import openai
import pytest

from search_aggregator.errors import GenerationFailed
from search_aggregator.llm_client import MissingAPIKey
from search_aggregator.services.query_generator import (
    LLMQueryGenerator,
    clean_query_line,
    parse_query_lines,
)


@pytest.mark.parametrize(
    "line, expected",
    [
        ("1. rust async runtimes", "rust async runtimes"),
        ("12) tokio vs async-std", "tokio vs async-std"),
        ("- \"quoted query\"", "quoted query"),
        ("  plain query  ", "plain query"),
        ("2024 election results", "2024 election results"),
    ],
)
def test_clean_query_line(line, expected):
    assert clean_query_line(line) == expected


def test_parse_query_lines_drops_blank_lines_and_caps_count():
    content = "1. first\n\n2. second\n3. third\n"
    assert parse_query_lines(content, 2) == ["first", "second"]


@pytest.mark.asyncio
async def test_generate_returns_cleaned_queries():
    chat = AsyncMock()
    chat.complete.return_value = "1. alpha\n2. beta\n3. gamma"
    generator = LLMQueryGenerator(chat, max_tokens=128)

    queries = await generator.generate("what is alpha", 3)

    assert queries == ["alpha", "beta", "gamma"]
    kwargs = chat.complete.await_args.kwargs
    assert kwargs["user"] == "what is alpha"
    assert "Generate 3 distinct" in kwargs["system"]
    assert kwargs["max_tokens"] == 128


@pytest.mark.asyncio
async def test_generate_fails_when_reply_has_no_queries():
    chat = AsyncMock()
    chat.complete.return_value = "\n   \n"

    with pytest.raises(GenerationFailed):
        await LLMQueryGenerator(chat).generate("prompt", 3)


@pytest.mark.asyncio
async def test_generate_reports_missing_api_key():
    chat = AsyncMock()
    chat.complete.side_effect = MissingAPIKey("OPENROUTER_API_KEY not set")

    with pytest.raises(GenerationFailed, match="OPENROUTER_API_KEY"):
        await LLMQueryGenerator(chat).generate("prompt", 3)


@pytest.mark.asyncio
async def test_generate_wraps_sdk_errors():
    chat = AsyncMock()
    chat.complete.side_effect = openai.OpenAIError("upstream exploded")

    with pytest.raises(GenerationFailed, match="upstream exploded"):
        await LLMQueryGenerator(chat).generate("prompt", 3)
