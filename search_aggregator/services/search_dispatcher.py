from __future__ import annotations

import asyncio
from typing import Sequence

from search_aggregator.errors import SearchBackendError
from search_aggregator.models.search import SearchResult, Stage
from search_aggregator.services.deadline import Deadline
from search_aggregator.services.fanout import run_all_or_fail
from search_aggregator.services.logger import logger
from search_aggregator.services.progress import ProgressSink, SilentProgressSink
from search_aggregator.tools.searx_search import SearchBackend


class SearchDispatcher:
    """Runs every query against the search backend with bounded concurrency.

    Fail-fast: the first failing query aborts the stage and no partial results
    are returned. Results are merged in query order, then backend order.
    """

    def __init__(
        self,
        backend: SearchBackend,
        *,
        max_concurrency: int = 5,
        query_timeout: float = 30.0,
    ):
        self.backend = backend
        self.max_concurrency = max(max_concurrency, 1)
        self.query_timeout = query_timeout

    async def dispatch(
        self,
        queries: Sequence[str],
        engines: Sequence[str],
        deadline: Deadline,
        sink: ProgressSink | None = None,
    ) -> list[SearchResult]:
        sink = sink or SilentProgressSink()
        progress = await sink.start_stage(
            Stage.SEARCHING,
            len(queries),
            "Running search queries...",
            "Queries completed: {completed}/{total}",
        )

        slots: list[list[SearchResult] | None] = [None] * len(queries)
        lock = asyncio.Lock()
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_query(index: int, query: str) -> None:
            async with semaphore:
                try:
                    async with deadline.child(self.query_timeout).scope():
                        items = await self.backend.search(query, engines)
                except TimeoutError as exc:
                    logger.error(f"search timed out: query={query!r}")
                    raise SearchBackendError(f"search for {query!r} timed out") from exc
                except SearchBackendError as exc:
                    logger.error(f"search failed: query={query!r} error={exc}")
                    raise
            async with lock:
                slots[index] = items
            await progress.advance()

        await run_all_or_fail(run_query(i, q) for i, q in enumerate(queries))

        merged: list[SearchResult] = []
        for items in slots:
            merged.extend(items or [])
        return merged
