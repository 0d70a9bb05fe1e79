from __future__ import annotations

import httpx
import pytest

from search_aggregator.errors import SearchBackendError
from search_aggregator.tools.searx_search import SearxSearch, map_results


def test_map_results_uses_position_when_score_missing():
    payload = {
        "results": [
            {"title": "A", "url": "https://a.example", "content": "alpha", "score": 2.5},
            {"title": "B", "url": "https://b.example", "content": None},
            {"title": "C", "url": "https://c.example", "score": 0},
        ]
    }

    results = map_results(payload)

    assert [r.score for r in results] == [2.5, 0.5, pytest.approx(1 / 3)]
    assert results[1].snippet == ""


def test_map_results_handles_missing_results_key():
    assert map_results({}) == []


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_search_sends_query_parameters():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"results": [{"title": "A", "url": "https://a.example"}]})

    async with _client(handler) as client:
        searx = SearxSearch(client, base_url="http://searx:8080/", language="de", locale="de-DE")
        results = await searx.search("rust", ["google", "bing"])

    assert [r.url for r in results] == ["https://a.example"]
    params = seen[0].url.params
    assert seen[0].url.path == "/search"
    assert params["q"] == "rust"
    assert params["format"] == "json"
    assert params["engines"] == "google,bing"
    assert params["language"] == "de"


@pytest.mark.asyncio
async def test_search_without_engines_omits_parameter():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"results": []})

    async with _client(handler) as client:
        await SearxSearch(client, base_url="http://searx:8080").search("rust", [])

    assert "engines" not in seen[0].url.params


@pytest.mark.asyncio
async def test_search_raises_on_http_error_status():
    async with _client(lambda request: httpx.Response(502, text="bad gateway")) as client:
        with pytest.raises(SearchBackendError):
            await SearxSearch(client, base_url="http://searx:8080").search("rust", [])


@pytest.mark.asyncio
async def test_search_raises_on_invalid_json():
    async with _client(lambda request: httpx.Response(200, text="<html>")) as client:
        with pytest.raises(SearchBackendError, match="invalid JSON"):
            await SearxSearch(client, base_url="http://searx:8080").search("rust", [])
