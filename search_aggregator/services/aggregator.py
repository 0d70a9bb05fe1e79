from __future__ import annotations

from typing import Iterable

from search_aggregator.models.search import SearchResult


def aggregate(results: Iterable[SearchResult]) -> list[SearchResult]:
    """Deduplicate by URL and rank by score, descending.

    For a repeated URL the higher-scored item wins and an equal score keeps
    the earlier item. Items with equal scores stay in first-seen order.
    """
    by_url: dict[str, SearchResult] = {}
    for item in results:
        prev = by_url.get(item.url)
        if prev is None or item.score > prev.score:
            by_url[item.url] = item
    # dict keeps first-seen key order and sorted() is stable, including with reverse=True
    return sorted(by_url.values(), key=lambda item: item.score, reverse=True)
