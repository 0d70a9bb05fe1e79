from __future__ import annotations

from typing import Any, Protocol, Sequence

import httpx

from search_aggregator.errors import SearchBackendError
from search_aggregator.models.search import SearchResult
from search_aggregator.services import logger as log_service


class SearchBackend(Protocol):
    async def search(self, query: str, engines: Sequence[str]) -> list[SearchResult]: ...


def _score(raw: Any, position: int) -> float:
    try:
        score = float(raw or 0.0)
    except (TypeError, ValueError):
        score = 0.0
    if score == 0.0:
        # SearxNG omits the score for some engines; earlier results rank higher.
        score = 1.0 / (position + 1)
    return score


def map_results(payload: dict[str, Any]) -> list[SearchResult]:
    raw_results = payload.get("results") or []
    if not isinstance(raw_results, list):
        raise SearchBackendError("searx response has no results list")
    return [
        SearchResult(
            title=item.get("title", "") or "",
            url=item.get("url", "") or "",
            snippet=item.get("content", "") or "",
            score=_score(item.get("score"), idx),
        )
        for idx, item in enumerate(raw_results)
        if isinstance(item, dict)
    ]


class SearxSearch:
    """SearxNG JSON API client."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        base_url: str,
        language: str = "en",
        locale: str = "en-US",
        timeout: float = 20.0,
    ):
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.language = language
        self.locale = locale
        self.timeout = timeout

    def build_params(self, query: str, engines: Sequence[str]) -> dict[str, str]:
        params = {
            "q": query,
            "format": "json",
            "language": self.language,
            "locale": self.locale,
        }
        if engines:
            params["engines"] = ",".join(engines)
        return params

    async def search(self, query: str, engines: Sequence[str]) -> list[SearchResult]:
        params = self.build_params(query, engines)
        log_service.log_collaborator_exchange(
            "searx",
            "request",
            {"url": f"{self.base_url}/search", "params": params},
        )
        try:
            response = await self.http_client.get(
                f"{self.base_url}/search",
                params=params,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise SearchBackendError(f"searx request for {query!r} failed: {exc}") from exc
        except ValueError as exc:
            raise SearchBackendError(f"searx returned invalid JSON for {query!r}: {exc}") from exc

        log_service.log_collaborator_exchange(
            "searx",
            "response",
            {"status_code": response.status_code, "body": payload},
        )
        if not isinstance(payload, dict):
            raise SearchBackendError(f"searx returned unexpected payload for {query!r}")
        return map_results(payload)
