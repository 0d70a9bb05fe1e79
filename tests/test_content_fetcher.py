from __future__ import annotations

import httpx
import pytest

from fakes import FakeJudge, make_result
from search_aggregator.errors import FetchFailed
from search_aggregator.services.deadline import Deadline
from search_aggregator.services.relevance_filter import ContentRelevanceFilter
from search_aggregator.tools import content_extractor
from search_aggregator.tools.content_extractor import extract_main_content
from search_aggregator.tools.content_fetcher import HttpContentFetcher


def _fetcher(handler, **kwargs) -> HttpContentFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpContentFetcher(client, extract_in_thread=False, **kwargs)


@pytest.mark.asyncio
async def test_fetch_returns_plain_text_with_collapsed_whitespace():
    fetcher = _fetcher(lambda request: httpx.Response(200, text="hello \n\n  world"))

    assert await fetcher.fetch("https://example.com/page") == "hello world"


@pytest.mark.asyncio
async def test_fetch_limits_body_size():
    fetcher = _fetcher(lambda request: httpx.Response(200, text="a" * 500), max_bytes=10)

    assert await fetcher.fetch("https://example.com/big") == "a" * 10


@pytest.mark.asyncio
async def test_fetch_fails_on_error_status():
    fetcher = _fetcher(lambda request: httpx.Response(404, text="not found"))

    with pytest.raises(FetchFailed, match="404"):
        await fetcher.fetch("https://example.com/missing")


@pytest.mark.asyncio
async def test_fetch_fails_on_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchFailed):
        await _fetcher(handler).fetch("https://example.com/down")


@pytest.mark.asyncio
async def test_fetch_fails_on_url_the_client_rejects():
    fetcher = _fetcher(lambda request: httpx.Response(200, text="unused"))

    with pytest.raises(FetchFailed):
        await fetcher.fetch("http://exämple..com/page")


@pytest.mark.asyncio
async def test_fetch_rejects_non_http_urls():
    fetcher = _fetcher(lambda request: httpx.Response(200, text="unused"))

    with pytest.raises(FetchFailed, match="unsupported url"):
        await fetcher.fetch("ftp://example.com/file")


@pytest.mark.asyncio
async def test_fetch_fails_on_empty_page():
    fetcher = _fetcher(lambda request: httpx.Response(200, text="   "))

    with pytest.raises(FetchFailed, match="no textual content"):
        await fetcher.fetch("https://example.com/empty")


def test_extract_prefers_trafilatura(monkeypatch):
    monkeypatch.setattr(content_extractor, "_extract_with_trafilatura", lambda raw: "main article text")

    extracted = extract_main_content("https://example.com", "<html><body><p>x</p></body></html>")

    assert extracted.method == "trafilatura"
    assert extracted.text == "main article text"


def test_extract_falls_back_to_soup_without_scripts(monkeypatch):
    monkeypatch.setattr(content_extractor, "_extract_with_trafilatura", lambda raw: "")
    html = "<html><head><script>var x = 1;</script></head><body><p>Hello   world</p></body></html>"

    extracted = extract_main_content("https://example.com", html)

    assert extracted.method == "soup"
    assert extracted.text == "Hello world"


def test_extract_returns_raw_text_for_non_html():
    extracted = extract_main_content("https://example.com/a.txt", "line one\nline two")

    assert extracted.method == "raw"
    assert extracted.text == "line one line two"


@pytest.mark.asyncio
async def test_content_filter_drops_only_the_item_with_a_rejected_url():
    good = make_result(1)
    bad = make_result(2, url="http://exämple..com/page")
    fetcher = _fetcher(lambda request: httpx.Response(200, text="page body"))

    kept = await ContentRelevanceFilter(fetcher, FakeJudge()).filter("q", [good, bad], Deadline.after(5))

    assert kept == [good]
