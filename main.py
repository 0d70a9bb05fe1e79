"""Search Aggregator

Simple CLI for running one search job from the terminal.
"""

import argparse
import asyncio
import sys

import httpx

from search_aggregator.config import settings
from search_aggregator.errors import AppError
from search_aggregator.llm_client import get_client
from search_aggregator.models.schemas import SearchRequest, SearchSettings
from search_aggregator.services.orchestrator import OrchestrationJob, SearchOrchestrator
from search_aggregator.services.progress import LoggingProgressSink
from search_aggregator.services.validation import accept_search_request


async def run_search(request: SearchRequest) -> int:
    """Run one search and print the ranked results. Returns a process exit code."""
    print(f"Search prompt: {request.prompt}")
    print("-" * 50)

    chat = get_client(settings)
    async with httpx.AsyncClient(headers={"User-Agent": "search-aggregator/0.1"}) as http_client:
        orchestrator = SearchOrchestrator.from_settings(http_client, chat, settings)
        try:
            accepted = accept_search_request(request, settings)
            job = OrchestrationJob.create(accepted, ceiling=settings.search_job_timeout)
            response = await orchestrator.run(job, LoggingProgressSink())
        except AppError as exc:
            print(f"\n[!] {exc.code}: {exc.message}")
            if exc.details:
                print(f"    {exc.details}")
            return 1
        finally:
            await chat.aclose()

    print(f"\n[*] Queries ({len(response.queries)}):")
    for i, query in enumerate(response.queries, 1):
        print(f"  {i}. {query}")

    print(f"\n[*] Results ({len(response.results)}) in {job.elapsed_ms}ms:")
    for i, result in enumerate(response.results, 1):
        print(f"  {i}. [{result.score:.3f}] {result.title}")
        print(f"     {result.url}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Search Aggregator")
    parser.add_argument("prompt", help="What to search for")
    parser.add_argument("--queries", "-n", type=int, default=0, help="Number of queries (default: from config)")
    parser.add_argument("--content-mode", "-c", action="store_true", help="Judge relevance on fetched page content")
    parser.add_argument("--engines", "-e", default="", help="Comma-separated search engines")
    parser.add_argument("--no-ai-filter", action="store_true", help="Skip the snippet relevance filter")

    args = parser.parse_args()

    request = SearchRequest(
        prompt=args.prompt,
        settings=SearchSettings(
            queries=args.queries,
            content_mode=args.content_mode,
            engines=[e for e in args.engines.split(",") if e.strip()],
            ai_filter=not args.no_ai_filter,
        ),
    )
    sys.exit(asyncio.run(run_search(request)))


if __name__ == "__main__":
    main()
