from __future__ import annotations

import pytest

from fakes import FakeFetcher, FakeJudge, make_result
from search_aggregator.errors import JudgeFailed
from search_aggregator.services.deadline import Deadline
from search_aggregator.services.relevance_filter import (
    ContentRelevanceFilter,
    SnippetBatchFilter,
    apply_batch_verdicts,
)


def test_apply_batch_verdicts_pads_missing_with_false_and_keeps_tail():
    ranked = [make_result(i) for i in range(1, 6)]

    kept = apply_batch_verdicts(ranked, [True], evaluated=3)

    assert [r.title for r in kept] == ["Title 1", "Title 4", "Title 5"]


@pytest.mark.asyncio
async def test_batch_filter_maps_verdicts_in_order(sink):
    a, b, c = make_result(1), make_result(2), make_result(3)
    judge = FakeJudge(batch=[True, False, True])

    kept = await SnippetBatchFilter(judge).filter("q", [a, b, c], Deadline.after(5), sink)

    assert kept == [a, c]
    assert [(e.completed, e.total) for e in sink.events] == [(0, 3), (3, 3)]


@pytest.mark.asyncio
async def test_batch_filter_fails_open(sink):
    ranked = [make_result(1), make_result(2)]
    judge = FakeJudge(batch_error=JudgeFailed("bad reply"))

    kept = await SnippetBatchFilter(judge).filter("q", ranked, Deadline.after(5), sink)

    assert kept == ranked
    assert sink.events[-1].completed == sink.events[-1].total == 2


@pytest.mark.asyncio
async def test_batch_filter_only_judges_first_items_and_keeps_tail():
    ranked = [make_result(i) for i in range(1, 6)]
    judge = FakeJudge(batch=[False, True])

    kept = await SnippetBatchFilter(judge, max_items=2).filter("q", ranked, Deadline.after(5))

    assert len(judge.batch_calls[0]) == 2
    assert [r.title for r in kept] == ["Title 2", "Title 3", "Title 4", "Title 5"]


@pytest.mark.asyncio
async def test_batch_filter_skips_call_for_empty_input(sink):
    judge = FakeJudge()

    kept = await SnippetBatchFilter(judge).filter("q", [], Deadline.after(5), sink)

    assert kept == []
    assert judge.batch_calls == []
    assert [(e.completed, e.total) for e in sink.events] == [(0, 0)]


@pytest.mark.asyncio
async def test_content_filter_drops_items_whose_fetch_fails(sink):
    items = [make_result(1), make_result(2), make_result(3)]
    fetcher = FakeFetcher(fail={items[1].url})

    kept = await ContentRelevanceFilter(fetcher, FakeJudge()).filter("q", items, Deadline.after(5), sink)

    assert kept == [items[0], items[2]]


@pytest.mark.asyncio
async def test_content_filter_keeps_items_whose_judgment_fails():
    items = [make_result(1), make_result(2), make_result(3)]
    judge = FakeJudge(relevant={items[0].url}, fail={items[2].url})

    kept = await ContentRelevanceFilter(FakeFetcher(), judge).filter("q", items, Deadline.after(5))

    assert kept == [items[0], items[2]]


@pytest.mark.asyncio
async def test_content_filter_respects_concurrency_cap():
    items = [make_result(i) for i in range(20)]
    fetcher = FakeFetcher(delay=0.01)

    kept = await ContentRelevanceFilter(fetcher, FakeJudge(), max_concurrency=3).filter(
        "q", items, Deadline.after(5)
    )

    assert kept == items
    assert fetcher.peak == 3


@pytest.mark.asyncio
async def test_content_filter_progress_is_monotonic_and_ends_at_total(sink):
    items = [make_result(i) for i in range(7)]

    await ContentRelevanceFilter(FakeFetcher(delay=0.001), FakeJudge()).filter(
        "q", items, Deadline.after(5), sink
    )

    progress = [e.completed for e in sink.events]
    assert progress == list(range(0, 8))
    assert all(e.total == 7 for e in sink.events)


@pytest.mark.asyncio
async def test_content_filter_can_replace_snippet_with_content():
    item = make_result(1)
    fetcher = FakeFetcher(pages={item.url: "full page text"})

    kept = await ContentRelevanceFilter(fetcher, FakeJudge(), replace_snippet=True).filter(
        "q", [item], Deadline.after(5)
    )

    assert kept[0].snippet == "full page text"
    assert item.snippet == "snippet 1"


@pytest.mark.asyncio
async def test_content_filter_drops_item_when_fetch_exceeds_timeout():
    items = [make_result(1)]
    fetcher = FakeFetcher(delay=0.5)

    kept = await ContentRelevanceFilter(fetcher, FakeJudge(), fetch_timeout=0.01).filter(
        "q", items, Deadline.after(5)
    )

    assert kept == []


class CrashingFetcher:
    async def fetch(self, url: str) -> str:
        if url.endswith("/2"):
            raise RuntimeError("unexpected parser failure")
        return f"content of {url}"


@pytest.mark.asyncio
async def test_content_filter_drops_item_when_fetch_raises_unexpected_error():
    items = [make_result(1), make_result(2), make_result(3)]

    kept = await ContentRelevanceFilter(CrashingFetcher(), FakeJudge()).filter("q", items, Deadline.after(5))

    assert kept == [items[0], items[2]]
