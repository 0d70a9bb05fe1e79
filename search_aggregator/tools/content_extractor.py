from __future__ import annotations

from dataclasses import dataclass

from bs4 import BeautifulSoup

from search_aggregator.tools.web_utils import collapse_whitespace


@dataclass
class ExtractedContent:
    url: str
    text: str
    method: str
    raw_length: int
    extracted_length: int


def _looks_like_html(raw_content: str) -> bool:
    head = raw_content[:2048].lower()
    return "<html" in head or "<body" in head or "<!doctype html" in head


def _extract_with_trafilatura(raw_html: str) -> str:
    import trafilatura

    extracted = trafilatura.extract(raw_html, output_format="txt")
    if not isinstance(extracted, str):
        return ""
    return collapse_whitespace(extracted)


def _extract_with_soup(raw_html: str) -> str:
    soup = BeautifulSoup(raw_html, "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    return collapse_whitespace(soup.get_text(" "))


def extract_main_content(url: str, raw_content: str) -> ExtractedContent:
    """Extract the primary text of a fetched page.

    HTML goes through trafilatura first and falls back to a BeautifulSoup
    text dump. Anything else is returned with whitespace collapsed.
    """
    if _looks_like_html(raw_content):
        for method, extractor in (
            ("trafilatura", _extract_with_trafilatura),
            ("soup", _extract_with_soup),
        ):
            text = extractor(raw_content)
            if text:
                return ExtractedContent(
                    url=url,
                    text=text,
                    method=method,
                    raw_length=len(raw_content),
                    extracted_length=len(text),
                )

    text = collapse_whitespace(raw_content)
    return ExtractedContent(
        url=url,
        text=text,
        method="raw",
        raw_length=len(raw_content),
        extracted_length=len(text),
    )
