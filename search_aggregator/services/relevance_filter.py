"""Relevance filtering of ranked search results.

Two policies, selected by the request's content mode:

* `SnippetBatchFilter` (content mode off) judges the first `max_items`
  results in a single classifier call from title/url/snippet. If that call
  fails in any way the stage is skipped and the ranked input is returned
  unchanged (fail-open).
* `ContentRelevanceFilter` (content mode on) fetches each page and judges it
  individually, at most `max_concurrency` items at a time. A failed fetch
  drops the item; a failed judgment keeps it.
"""
from __future__ import annotations

import asyncio
import dataclasses
from typing import Sequence

from search_aggregator.errors import FetchFailed, JudgeFailed
from search_aggregator.models.search import FailureKind, RelevanceVerdict, SearchResult, Stage
from search_aggregator.services.deadline import Deadline
from search_aggregator.services.fanout import run_all_or_fail
from search_aggregator.services.logger import logger
from search_aggregator.services.progress import ProgressSink, SilentProgressSink
from search_aggregator.services.relevance_judge import RelevanceJudge
from search_aggregator.tools.content_fetcher import ContentFetcher


def apply_batch_verdicts(
    ranked: Sequence[SearchResult],
    verdicts: Sequence[bool],
    evaluated: int,
) -> list[SearchResult]:
    """Keep judged-relevant items among the first `evaluated`, then the unjudged tail.

    Missing trailing verdicts count as not relevant.
    """
    padded = list(verdicts[:evaluated]) + [False] * max(evaluated - len(verdicts), 0)
    kept = [item for item, keep in zip(ranked[:evaluated], padded) if keep]
    return kept + list(ranked[evaluated:])


class SnippetBatchFilter:
    def __init__(self, judge: RelevanceJudge, *, max_items: int = 30, timeout: float = 30.0):
        self.judge = judge
        self.max_items = max(max_items, 0)
        self.timeout = timeout

    async def filter(
        self,
        prompt: str,
        ranked: Sequence[SearchResult],
        deadline: Deadline,
        sink: ProgressSink | None = None,
    ) -> list[SearchResult]:
        sink = sink or SilentProgressSink()
        subset = list(ranked[: self.max_items])
        progress = await sink.start_stage(
            Stage.AI_FILTERING,
            len(subset),
            "Filtering results with AI...",
            "Results evaluated: {completed}/{total}",
        )
        if not subset:
            return list(ranked)

        try:
            async with deadline.child(self.timeout).scope():
                verdicts = await self.judge.judge_batch(prompt, subset)
        except (JudgeFailed, TimeoutError) as exc:
            logger.warning(f"ai filter failed, keeping unfiltered results: {exc!r}")
            await progress.advance(len(subset))
            return list(ranked)

        # the single batch call settles every capped item at once
        await progress.advance(len(subset))
        filtered = apply_batch_verdicts(ranked, verdicts, len(subset))
        logger.info(f"ai filter kept {len(filtered)} of {len(ranked)} results")
        return filtered


class ContentRelevanceFilter:
    def __init__(
        self,
        fetcher: ContentFetcher,
        judge: RelevanceJudge,
        *,
        max_concurrency: int = 3,
        fetch_timeout: float = 20.0,
        judge_timeout: float = 30.0,
        replace_snippet: bool = False,
    ):
        self.fetcher = fetcher
        self.judge = judge
        self.max_concurrency = max(max_concurrency, 1)
        self.fetch_timeout = fetch_timeout
        self.judge_timeout = judge_timeout
        self.replace_snippet = replace_snippet

    async def evaluate(
        self,
        index: int,
        item: SearchResult,
        prompt: str,
        deadline: Deadline,
    ) -> RelevanceVerdict:
        try:
            async with deadline.child(self.fetch_timeout).scope():
                content = await self.fetcher.fetch(item.url)
        except (FetchFailed, TimeoutError) as exc:
            logger.warning(f"content fetch failed, dropping url={item.url!r}: {exc!r}")
            return RelevanceVerdict(index=index, keep=False, failure=FailureKind.FETCH)
        except Exception as exc:
            # any other fetch fault is still scoped to this item
            logger.exception(f"content fetch crashed, dropping url={item.url!r}: {exc!r}")
            return RelevanceVerdict(index=index, keep=False, failure=FailureKind.FETCH)

        try:
            async with deadline.child(self.judge_timeout).scope():
                relevant = await self.judge.judge(prompt, item.title, item.url, content)
        except (JudgeFailed, TimeoutError) as exc:
            logger.warning(f"content relevance failed, keeping url={item.url!r}: {exc!r}")
            return RelevanceVerdict(index=index, keep=True, failure=FailureKind.JUDGE, content=content)

        return RelevanceVerdict(index=index, keep=relevant, content=content)

    async def filter(
        self,
        prompt: str,
        ranked: Sequence[SearchResult],
        deadline: Deadline,
        sink: ProgressSink | None = None,
    ) -> list[SearchResult]:
        sink = sink or SilentProgressSink()
        progress = await sink.start_stage(
            Stage.ANALYZING_CONTENT,
            len(ranked),
            "Analyzing page content...",
            "Pages analyzed: {completed}/{total}",
        )

        verdicts: list[RelevanceVerdict | None] = [None] * len(ranked)
        lock = asyncio.Lock()
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_item(index: int, item: SearchResult) -> None:
            async with semaphore:
                verdict = await self.evaluate(index, item, prompt, deadline)
            async with lock:
                verdicts[index] = verdict
            await progress.advance()

        await run_all_or_fail(run_item(i, item) for i, item in enumerate(ranked))
        return self._rebuild(ranked, verdicts)

    def _rebuild(
        self,
        ranked: Sequence[SearchResult],
        verdicts: Sequence[RelevanceVerdict | None],
    ) -> list[SearchResult]:
        filtered: list[SearchResult] = []
        for item, verdict in zip(ranked, verdicts):
            if verdict is None:
                filtered.append(item)
                continue
            if not verdict.keep:
                continue
            if self.replace_snippet and verdict.content:
                item = dataclasses.replace(item, snippet=verdict.content)
            filtered.append(item)

        dropped_fetch = sum(1 for v in verdicts if v is not None and v.failure is FailureKind.FETCH)
        judge_errors = sum(1 for v in verdicts if v is not None and v.failure is FailureKind.JUDGE)
        logger.info(
            f"content filter kept {len(filtered)} of {len(ranked)} results "
            f"(fetch_failed={dropped_fetch}, judge_failed={judge_errors})"
        )
        return filtered
