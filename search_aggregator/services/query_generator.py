from __future__ import annotations

import re
from typing import Protocol

import openai

from search_aggregator.errors import GenerationFailed
from search_aggregator.llm_client import EmptyCompletion, MissingAPIKey, OpenRouterChat
from search_aggregator.services.prompt_store import render_prompt

ENUMERATION_RE = re.compile(r"^(?:20|1\d|[1-9])[.)]\s*")


class QueryGenerator(Protocol):
    async def generate(self, prompt: str, n: int) -> list[str]: ...


def clean_query_line(line: str) -> str:
    """Strip a leading dash, an enumeration marker (1. / 1) ... 20.) and surrounding quotes."""
    cleaned = line.strip()
    if cleaned.startswith("-"):
        cleaned = cleaned[1:].strip()
    cleaned = ENUMERATION_RE.sub("", cleaned, count=1).strip()
    return cleaned.strip("\"'").strip()


def parse_query_lines(content: str, n: int) -> list[str]:
    queries = [q for q in (clean_query_line(line) for line in content.splitlines()) if q]
    return queries[: max(n, 0)]


class LLMQueryGenerator:
    """Generates web-search queries for a prompt with an OpenRouter model."""

    def __init__(self, chat: OpenRouterChat, *, max_tokens: int = 256):
        self.chat = chat
        self.max_tokens = max_tokens

    async def generate(self, prompt: str, n: int) -> list[str]:
        try:
            content = await self.chat.complete(
                system=render_prompt("query_generation.system_prompt", count=n),
                user=prompt,
                max_tokens=self.max_tokens,
                caller="query_generation",
                title="AI Search Aggregator",
            )
        except (openai.OpenAIError, MissingAPIKey, EmptyCompletion) as exc:
            raise GenerationFailed(str(exc)) from exc

        queries = parse_query_lines(content, n)
        if not queries:
            raise GenerationFailed("query generator returned no usable queries")
        return queries
