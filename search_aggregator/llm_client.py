"""OpenRouter chat client built on the OpenAI-compatible SDK."""
from __future__ import annotations

import time
from typing import Any

from search_aggregator.config import Settings
from search_aggregator.services import logger as log_service


class MissingAPIKey(RuntimeError):
    pass


class EmptyCompletion(RuntimeError):
    pass


class OpenRouterChat:
    """Single-turn chat completions against OpenRouter.

    Each call sends one system and one user message and returns the text of
    the first choice. SDK errors (`openai.OpenAIError`) propagate unchanged so
    the caller can map them onto its own failure type.
    """

    def __init__(self, openai_client: Any, *, model: str, api_key: str, app_title: str = ""):
        self._client = openai_client
        self.model = model
        self.api_key = api_key
        self.app_title = app_title

    async def complete(
        self,
        *,
        system: str,
        user: str,
        max_tokens: int,
        caller: str,
        title: str | None = None,
    ) -> str:
        if not self.api_key:
            raise MissingAPIKey("OPENROUTER_API_KEY not set")

        request = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "max_tokens": max_tokens,
        }
        log_service.log_collaborator_exchange(caller, "request", request)

        t0 = time.monotonic()
        try:
            response = await self._client.chat.completions.create(
                **request,
                extra_headers={"X-Title": title or self.app_title},
            )
        except Exception as exc:
            log_service.log_llm_call(
                model=self.model,
                caller=caller,
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="error",
                error=str(exc),
            )
            raise

        usage = getattr(response, "usage", None)
        log_service.log_llm_call(
            model=self.model,
            caller=caller,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )

        choices = getattr(response, "choices", None) or []
        if not choices:
            raise EmptyCompletion("no choices returned from openrouter")
        content = getattr(choices[0].message, "content", None) or ""
        log_service.log_collaborator_exchange(caller, "response", content)
        return content

    async def aclose(self) -> None:
        await self._client.close()


def get_client(settings: Settings) -> OpenRouterChat:
    """Build an OpenRouter chat client from settings."""
    from openai import AsyncOpenAI

    base_url = settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    openai_client = AsyncOpenAI(
        api_key=settings.openrouter_api_key or "unset",
        base_url=base_url,
        timeout=settings.query_generation_timeout,
        max_retries=0,
    )
    return OpenRouterChat(
        openai_client,
        model=settings.openrouter_model,
        api_key=settings.openrouter_api_key,
        app_title=settings.openrouter_app_title,
    )
