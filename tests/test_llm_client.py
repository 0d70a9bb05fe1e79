from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from search_aggregator.llm_client import EmptyCompletion, MissingAPIKey, OpenRouterChat


def _openai_client(response) -> SimpleNamespace:
    create = AsyncMock(return_value=response)
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)), close=AsyncMock())


def _response(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=2),
    )


@pytest.mark.asyncio
async def test_complete_sends_system_and_user_messages():
    client = _openai_client(_response("1"))
    chat = OpenRouterChat(client, model="openai/gpt-4o-mini", api_key="key", app_title="App")

    answer = await chat.complete(system="sys", user="usr", max_tokens=4, caller="test")

    assert answer == "1"
    kwargs = client.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "openai/gpt-4o-mini"
    assert kwargs["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "usr"},
    ]
    assert kwargs["max_tokens"] == 4
    assert kwargs["extra_headers"] == {"X-Title": "App"}


@pytest.mark.asyncio
async def test_complete_requires_api_key():
    client = _openai_client(_response("1"))
    chat = OpenRouterChat(client, model="m", api_key="")

    with pytest.raises(MissingAPIKey, match="OPENROUTER_API_KEY"):
        await chat.complete(system="s", user="u", max_tokens=4, caller="test")
    client.chat.completions.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_complete_raises_when_no_choices():
    client = _openai_client(SimpleNamespace(choices=[], usage=None))
    chat = OpenRouterChat(client, model="m", api_key="key")

    with pytest.raises(EmptyCompletion):
        await chat.complete(system="s", user="u", max_tokens=4, caller="test")
