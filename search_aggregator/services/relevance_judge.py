from __future__ import annotations

import json
from typing import Protocol, Sequence

import openai

from search_aggregator.errors import JudgeFailed
from search_aggregator.llm_client import EmptyCompletion, MissingAPIKey, OpenRouterChat
from search_aggregator.models.search import SearchResult
from search_aggregator.services.prompt_store import render_prompt
from search_aggregator.tools.web_utils import truncate_text


class RelevanceJudge(Protocol):
    async def judge(self, prompt: str, title: str, url: str, content: str) -> bool: ...

    async def judge_batch(self, prompt: str, items: Sequence[SearchResult]) -> list[bool]: ...


def parse_batch_verdicts(content: str) -> list[bool]:
    """Read a JSON array of 0/1 or true/false from the bracketed part of a reply.

    Integers map to relevant only when equal to 1. The result may be shorter
    than the number of judged items; callers pad it.
    """
    text = content.strip()
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end == -1 or end <= start:
        raise JudgeFailed(f"unexpected classifier response: {text!r}")

    try:
        values = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise JudgeFailed(f"failed to parse classifier JSON: {exc}") from exc

    if not isinstance(values, list):
        raise JudgeFailed(f"classifier JSON is not an array: {text!r}")
    if all(isinstance(v, bool) for v in values):
        return list(values)
    if all(isinstance(v, int) and not isinstance(v, bool) for v in values):
        return [v == 1 for v in values]
    raise JudgeFailed(f"classifier array must hold only integers or only booleans: {text!r}")


def parse_single_verdict(answer: str) -> bool:
    ans = answer.strip()
    lowered = ans.lower()
    return ans.startswith("1") or lowered == "true" or lowered.startswith("yes")


class LLMRelevanceJudge:
    """Binary relevance judgments from an OpenRouter model."""

    def __init__(
        self,
        chat: OpenRouterChat,
        *,
        batch_max_tokens: int = 64,
        single_max_tokens: int = 4,
        snippet_chars: int = 700,
        content_chars: int = 3500,
    ):
        self.chat = chat
        self.batch_max_tokens = batch_max_tokens
        self.single_max_tokens = single_max_tokens
        self.snippet_chars = snippet_chars
        self.content_chars = content_chars

    def build_batch_prompt(self, prompt: str, items: Sequence[SearchResult]) -> str:
        rendered = "".join(
            render_prompt(
                "relevance.batch_item",
                number=i + 1,
                title=item.title.strip(),
                url=item.url.strip(),
                snippet=truncate_text(item.snippet, self.snippet_chars),
            )
            for i, item in enumerate(items)
        )
        return render_prompt("relevance.batch_user_prompt", prompt=prompt, items=rendered)

    async def judge_batch(self, prompt: str, items: Sequence[SearchResult]) -> list[bool]:
        try:
            content = await self.chat.complete(
                system=render_prompt("relevance.batch_system_prompt"),
                user=self.build_batch_prompt(prompt, items),
                max_tokens=self.batch_max_tokens,
                caller="ai_relevance_filter",
                title="AI Relevance Filter",
            )
        except (openai.OpenAIError, MissingAPIKey, EmptyCompletion) as exc:
            raise JudgeFailed(str(exc)) from exc
        return parse_batch_verdicts(content)

    async def judge(self, prompt: str, title: str, url: str, content: str) -> bool:
        try:
            answer = await self.chat.complete(
                system=render_prompt("relevance.single_system_prompt"),
                user=render_prompt(
                    "relevance.single_user_prompt",
                    prompt=prompt,
                    title=title.strip(),
                    url=url.strip(),
                    content=truncate_text(content, self.content_chars),
                ),
                max_tokens=self.single_max_tokens,
                caller="content_relevance",
                title="AI Single Content Relevance",
            )
        except (openai.OpenAIError, MissingAPIKey, EmptyCompletion) as exc:
            raise JudgeFailed(str(exc)) from exc
        return parse_single_verdict(answer)
