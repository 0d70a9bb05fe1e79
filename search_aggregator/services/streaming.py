from __future__ import annotations

from search_aggregator.errors import AppError
from search_aggregator.models.events import Envelope, MessageType
from search_aggregator.models.search import ProgressEvent, SearchResult


def status(event: ProgressEvent) -> Envelope:
    return Envelope(type=MessageType.STATUS, data=event.to_dict())


def search_complete(
    queries: list[str],
    results: list[SearchResult],
    elapsed_ms: int,
) -> Envelope:
    return Envelope(
        type=MessageType.SEARCH_COMPLETE,
        data={
            "queries": list(queries),
            "results": [r.to_dict() for r in results],
            "elapsed_ms": elapsed_ms,
        },
    )


def error(err: AppError) -> Envelope:
    return Envelope(type=MessageType.ERROR, data=err.to_dict())
