from __future__ import annotations

import asyncio
from typing import Protocol

import httpx

from search_aggregator.errors import FetchFailed
from search_aggregator.services import logger as log_service
from search_aggregator.tools.content_extractor import extract_main_content
from search_aggregator.tools.web_utils import is_valid_url


class ContentFetcher(Protocol):
    async def fetch(self, url: str) -> str: ...


class HttpContentFetcher:
    """Downloads a page (body capped at `max_bytes`) and extracts its primary text."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        max_bytes: int = 64 * 1024,
        timeout: float = 15.0,
        extract_in_thread: bool = True,
    ):
        self.http_client = http_client
        self.max_bytes = max(max_bytes, 1)
        self.timeout = timeout
        self.extract_in_thread = extract_in_thread

    async def _read_limited(self, response: httpx.Response) -> bytes:
        body = bytearray()
        async for chunk in response.aiter_bytes():
            body.extend(chunk)
            if len(body) >= self.max_bytes:
                break
        return bytes(body[: self.max_bytes])

    @staticmethod
    def _decode(raw: bytes, encoding: str | None) -> str:
        try:
            return raw.decode(encoding or "utf-8", errors="replace")
        except LookupError:
            return raw.decode("utf-8", errors="replace")

    async def fetch(self, url: str) -> str:
        if not is_valid_url(url):
            raise FetchFailed(f"unsupported url: {url!r}")

        try:
            async with self.http_client.stream(
                "GET",
                url,
                timeout=self.timeout,
                follow_redirects=True,
            ) as response:
                if response.status_code >= 400:
                    raise FetchFailed(f"{url} returned status {response.status_code}")
                raw = await self._read_limited(response)
                text = self._decode(raw, response.charset_encoding)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise FetchFailed(f"{url}: {exc}") from exc

        if self.extract_in_thread:
            extracted = await asyncio.to_thread(extract_main_content, url, text)
        else:
            extracted = extract_main_content(url, text)

        log_service.log_collaborator_exchange(
            "content_fetch",
            "response",
            {
                "url": url,
                "method": extracted.method,
                "raw_length": extracted.raw_length,
                "extracted_length": extracted.extracted_length,
            },
        )
        if not extracted.text:
            raise FetchFailed(f"{url} has no textual content")
        return extracted.text
